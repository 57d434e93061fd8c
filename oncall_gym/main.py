"""Oncall Gym - Main Entry Point.

Runs an agent against a scenario and prints the evaluation as JSON:

    oncall-gym fixtures/incidents/latency_spike --agent my_agents:DeployHunter
"""

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import structlog

from oncall_gym.audit.log import AuditLog, FileBackend, MemoryBackend
from oncall_gym.config import Settings, get_settings, load_settings
from oncall_gym.exceptions import OncallGymError, ValidationError
from oncall_gym.simulator.evaluator import EvaluationResult
from oncall_gym.simulator.scenario import Scenario
from oncall_gym.workflows.engine import Engine
from oncall_gym.workflows.run import Run


# Configure structured logging
def setup_logging(settings: Settings):
    """Configure structured logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdout carries the evaluation report
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )


logger = structlog.get_logger()


def load_agent(path: str) -> Any:
    """Import and instantiate an agent given as ``"package.module:ClassName"``."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ValidationError(f"agent must be given as 'module:ClassName', got '{path}'")

    module = importlib.import_module(module_name)
    try:
        agent_class = getattr(module, class_name)
    except AttributeError:
        raise ValidationError(f"module '{module_name}' has no attribute '{class_name}'") from None

    return agent_class()


def run_scenario(
    scenario: Scenario,
    agent: Any,
    settings: Optional[Settings] = None,
    audit_log: Optional[AuditLog] = None,
    max_steps: Optional[int] = None,
) -> Tuple[Run, EvaluationResult]:
    """
    Run an agent against a scenario from start to finish and score it.

    ``max_steps`` falls back to the scenario's own limit and then to
    ``settings.engine.default_max_steps``.
    """
    settings = settings or get_settings()
    audit_log = audit_log if audit_log is not None else AuditLog(MemoryBackend())

    engine = Engine(
        agent=agent,
        tool_registry=scenario.tool_registry(),
        event_handler=audit_log.append,
        settings=settings,
    )

    if max_steps is None:
        max_steps = scenario.success_criteria.max_steps

    run = engine.start_run(scenario.incident, max_steps=max_steps)
    run = engine.run_to_completion(run)
    evaluation = scenario.evaluate(run, settings=settings)

    logger.info(
        "Scenario finished",
        scenario=scenario.name,
        run_id=run.id,
        status=run.status.value,
        steps=run.step_count,
        score=evaluation.score,
        success=evaluation.success,
    )
    return run, evaluation


def _resolve_scenario_dir(name: str, settings: Settings) -> Path:
    path = Path(name).expanduser()
    if path.is_dir():
        return path
    return Path(settings.scenarios_path) / name


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oncall-gym",
        description="Run an incident-response agent against a scenario and score it.",
    )
    parser.add_argument(
        "scenario",
        help="Scenario directory, or a scenario name under the configured scenarios path",
    )
    parser.add_argument(
        "--agent",
        required=True,
        help="Agent class as 'package.module:ClassName'",
    )
    parser.add_argument("--max-steps", type=int, default=None, help="Override the step limit")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--audit-log", default=None, help="Append audit events to this JSONL file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 when the run passes evaluation, 1 otherwise."""
    args = build_parser().parse_args(argv)

    settings = load_settings(args.config) if args.config else get_settings()
    setup_logging(settings)

    audit_log_path = args.audit_log or settings.logging.audit_log_path
    backend = FileBackend(audit_log_path) if audit_log_path else MemoryBackend()
    audit_log = AuditLog(backend)

    try:
        scenario = Scenario.load(_resolve_scenario_dir(args.scenario, settings))
        agent = load_agent(args.agent)
        run, evaluation = run_scenario(
            scenario,
            agent,
            settings=settings,
            audit_log=audit_log,
            max_steps=args.max_steps,
        )
    except OncallGymError as e:
        logger.error("Scenario run failed", error=str(e), error_type=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        return 1

    report = {
        "scenario": scenario.name,
        "run": {
            "id": run.id,
            "status": run.status.value,
            "step_count": run.step_count,
            "resolution": run.to_dict()["resolution"],
        },
        "evaluation": evaluation.model_dump(),
        "audit": audit_log.summary(),
    }
    print(json.dumps(report, indent=2, default=str))
    return 0 if evaluation.success else 1


if __name__ == "__main__":
    sys.exit(main())
