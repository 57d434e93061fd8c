"""Scenario: an incident, its simulated telemetry, and the correct answer."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
import yaml
from pydantic import BaseModel, Field

from oncall_gym.config import Settings, get_settings
from oncall_gym.exceptions import ScenarioNotFoundError, ValidationError
from oncall_gym.models.incident import Incident
from oncall_gym.simulator.data_store import DataStore
from oncall_gym.simulator.evaluator import EvaluationResult, evaluate_run
from oncall_gym.tools.registry import ToolRegistry


logger = structlog.get_logger()

SCENARIO_FILENAMES = ("scenario.yaml", "scenario.yml", "scenario.json")


class GroundTruth(BaseModel):
    """What actually went wrong and how to fix it."""

    root_cause: str
    correct_mitigation: Optional[str] = None
    key_evidence: List[str] = Field(default_factory=list)


class SuccessCriteria(BaseModel):
    """What a run must achieve to pass."""

    must_identify: List[str] = Field(default_factory=list)
    acceptable_mitigations: List[str] = Field(default_factory=list)
    max_steps: Optional[int] = Field(default=None, ge=1)


class Scenario:
    """
    A reproducible incident for training and benchmarking agents.

    Scenarios bundle the incident presented to the agent, the telemetry its
    tools can query, and the ground truth used to score the finished run.
    """

    def __init__(
        self,
        name: str,
        incident: Incident,
        ground_truth: GroundTruth,
        success_criteria: Optional[SuccessCriteria] = None,
        data_store: Optional[DataStore] = None,
        description: str = "",
        difficulty: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        self.name = name
        self.incident = incident
        self.ground_truth = ground_truth
        self.success_criteria = success_criteria or SuccessCriteria()
        self.data_store = data_store or DataStore()
        self.description = description
        self.difficulty = difficulty
        self.tags = list(tags or [])

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fixture_dir: Optional[Path] = None) -> "Scenario":
        """
        Build a scenario from parsed scenario data.

        Telemetry comes from the inline ``data`` section, or else from
        fixture files in ``fixture_dir``.
        """
        for key in ("name", "incident", "ground_truth"):
            if key not in data:
                raise ValidationError(f"scenario is missing '{key}'")

        if "data" in data:
            data_store = DataStore.from_dict(data["data"])
        elif fixture_dir is not None:
            data_store = DataStore.from_fixtures(fixture_dir)
        else:
            data_store = DataStore()

        return cls(
            name=data["name"],
            description=data.get("description", ""),
            difficulty=data.get("difficulty"),
            tags=data.get("tags"),
            incident=Incident.from_dict(data["incident"]),
            ground_truth=GroundTruth.model_validate(data["ground_truth"]),
            success_criteria=SuccessCriteria.model_validate(data.get("success_criteria") or {}),
            data_store=data_store,
        )

    @classmethod
    def load(cls, directory: Union[str, Path]) -> "Scenario":
        """Load ``scenario.yaml`` (or ``.yml`` / ``.json``) from a fixture directory."""
        directory = Path(directory).expanduser()

        for filename in SCENARIO_FILENAMES:
            path = directory / filename
            if path.is_file():
                break
        else:
            raise ScenarioNotFoundError(f"scenario file not found in {directory}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)

        scenario = cls.from_dict(data or {}, fixture_dir=directory)
        logger.info("Scenario loaded", scenario=scenario.name, path=str(path))
        return scenario

    def tool_registry(self) -> ToolRegistry:
        """Default tools bound to this scenario's telemetry."""
        return ToolRegistry.default(data_source=self.data_store)

    def evaluate(self, run: Any, settings: Optional[Settings] = None) -> EvaluationResult:
        """Score a finished run against this scenario's ground truth."""
        config = (settings or get_settings()).evaluation
        result = evaluate_run(
            run,
            ground_truth=self.ground_truth,
            success_criteria=self.success_criteria,
            weights=config.weights,
            success_threshold=config.success_threshold,
            partial_credit=config.partial_credit,
        )

        logger.info(
            "Run evaluated",
            scenario=self.name,
            success=result.success,
            score=result.score,
        )
        return result

    def __repr__(self):
        return f"Scenario(name={self.name!r}, service={self.incident.service!r})"
