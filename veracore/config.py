"""
VeraCore — Configuration System

All configuration is Pydantic-validated and loaded from:
1. default.yaml (defaults)
2. Environment variables (overrides)

Every tunable threshold of the detection and decision pipeline lives here.
The defaults reproduce the documented behaviour exactly; overriding them
changes verdicts, so overrides belong in a versioned config file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class ClassifierConfig(BaseModel):
    # Evidence-signal confidence seed for silent failures
    evidence_base_score: float = 0.55
    evidence_step: float = 0.10
    evidence_cap: float = 0.85
    # Evidence kinds required before a silent failure is CONFIRMED
    confirm_min_evidence_kinds: int = 2

    @model_validator(mode="after")
    def _cap_bounds_base(self) -> ClassifierConfig:
        if not 0.0 <= self.evidence_base_score <= self.evidence_cap <= 1.0:
            raise ValueError("evidence scores must satisfy 0 <= base <= cap <= 1")
        return self


class CalibrationConfig(BaseModel):
    max_total_adjustment: float = 0.15
    stable_dom_max_changes: int = 5
    minimal_dom_max_changes: int = 2
    high_dom_min_changes: int = 20
    jitter_min_failures: int = 2
    jitter_failure_rate: float = 0.3
    late_render_ms: float = 2000.0


class DecisionConfig(BaseModel):
    rules_engine_confidence: float = 0.99
    default_confidence: float = 0.75
    insufficient_data_confidence: float = 0.3
    journey_confidence_cap: float = 0.85
    # READY needs at least this share of planned steps executed
    coverage_threshold: float = 0.7
    policy_hard_fail_exit_codes: list[int] = Field(default_factory=lambda: [1])
    policy_warning_exit_codes: list[int] = Field(default_factory=lambda: [2])

    @model_validator(mode="after")
    def _insufficient_data_is_low(self) -> DecisionConfig:
        if self.insufficient_data_confidence >= 0.5:
            raise ValueError("insufficient_data_confidence must be below 0.5")
        return self


class RunStateConfig(BaseModel):
    max_skip_examples: int = 5


class DeterminismConfig(BaseModel):
    # Field names stripped in addition to the built-in volatile set
    extra_volatile_fields: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Config ──────────────────────────────────────────────────


class VeraCoreConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="VERACORE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    run_state: RunStateConfig = Field(default_factory=RunStateConfig)
    determinism: DeterminismConfig = Field(default_factory=DeterminismConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> VeraCoreConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    config_path = config_path or os.environ.get("VERACORE_CONFIG_PATH")
    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    # Logging is the one section commonly flipped per environment
    env: dict[str, Any] = {}
    if level := os.environ.get("VERACORE_LOG_LEVEL"):
        env.setdefault("logging", {})["level"] = level
    if fmt := os.environ.get("VERACORE_LOG_FORMAT"):
        env.setdefault("logging", {})["format"] = fmt

    return VeraCoreConfig(**_deep_merge(raw, env))
