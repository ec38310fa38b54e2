"""
VeraCore — Decision Signals

The bundle of run outcomes the Decision Authority folds into a single
launch verdict. Every collection defaults to empty so that a partial
bundle is simply a bundle with fewer signals in it.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator

from veracore.primitives.common import Verdict, VeraBaseModel


class Outcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FRICTION = "FRICTION"
    FAILURE = "FAILURE"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class FlowResult(VeraBaseModel):
    flow_id: str
    outcome: Outcome
    name: str = ""


class AttemptResult(VeraBaseModel):
    attempt_id: str
    outcome: Outcome
    executed: bool = True


class RulesEngineOutput(VeraBaseModel):
    final_verdict: Verdict
    reasons: list[str] = Field(default_factory=list)
    triggered_rule_ids: list[str] = Field(default_factory=list)


class PolicyEvaluation(VeraBaseModel):
    passed: bool = True
    exit_code: int = 0
    summary: str = ""


class BaselineComparison(VeraBaseModel):
    regressions: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_regressions(self) -> bool:
        return bool(self.regressions)


class CoverageSummary(VeraBaseModel):
    total: int = 0
    executed: int = 0

    @property
    def ratio(self) -> float:
        return self.executed / self.total if self.total else 0.0


class Signals(VeraBaseModel):
    flows: list[FlowResult] = Field(default_factory=list)
    attempts: list[AttemptResult] = Field(default_factory=list)
    rules_engine_output: RulesEngineOutput | None = None
    journey_verdict: Verdict | None = None
    policy_eval: PolicyEvaluation | None = None
    baseline: BaselineComparison | None = None
    coverage: CoverageSummary | None = None

    @field_validator("flows", "attempts", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value
