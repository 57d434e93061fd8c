"""Configuration management for Oncall Gym."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class EngineConfig(BaseModel):
    """Investigation loop configuration."""
    default_max_steps: int = Field(default=20, ge=1, le=50)


class EvaluationConfig(BaseModel):
    """Scenario scoring configuration."""
    mitigation_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    evidence_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    efficiency_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    success_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    partial_credit: float = Field(default=0.5, gt=0.0, lt=1.0)

    @model_validator(mode="after")
    def _check_weights(self):
        total = self.mitigation_weight + self.evidence_weight + self.efficiency_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"evaluation weights must sum to 1.0 (got {total})")
        return self

    @property
    def weights(self) -> Dict[str, float]:
        return {
            "mitigation": self.mitigation_weight,
            "evidence": self.evidence_weight,
            "efficiency": self.efficiency_weight,
        }


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "json"
    audit_log_path: Optional[str] = None


class Settings(BaseSettings):
    """Main application settings."""

    # Investigation loop
    engine: EngineConfig = Field(default_factory=EngineConfig)

    # Scoring
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)

    # Logging
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Scenario fixtures
    scenarios_path: str = "fixtures/incidents"

    class Config:
        env_prefix = "ONCALL_GYM_"
        env_nested_delimiter = "__"


def load_yaml_config(path: str) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    path = Path(path).expanduser()
    if not path.exists():
        return {}

    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings from configuration file and environment variables.

    Priority (highest to lowest):
    1. Config file sections
    2. Environment variables
    3. Default values
    """
    # Determine config path
    if config_path is None:
        config_path = os.environ.get(
            "ONCALL_GYM_CONFIG_PATH",
            "config/config.yaml"
        )

    # Load YAML config
    yaml_config = load_yaml_config(config_path)

    # Build settings dict
    settings_dict = {}

    if "engine" in yaml_config:
        settings_dict["engine"] = EngineConfig(**yaml_config["engine"])

    if "evaluation" in yaml_config:
        settings_dict["evaluation"] = EvaluationConfig(**yaml_config["evaluation"])

    if "logging" in yaml_config:
        settings_dict["logging"] = LoggingConfig(**yaml_config["logging"])

    if "scenarios" in yaml_config:
        settings_dict["scenarios_path"] = yaml_config["scenarios"].get(
            "path", "fixtures/incidents"
        )

    # Create settings (environment variables fill sections the file omits)
    settings = Settings(**settings_dict)

    audit_log_path = os.environ.get("ONCALL_GYM_AUDIT_LOG", "")
    if audit_log_path:
        settings.logging.audit_log_path = audit_log_path

    return settings


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings():
    """Reset the global settings instance (for testing)."""
    global _settings
    _settings = None
