"""
VeraCore — Decision Primitives

The single authoritative launch decision and its audit trail.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import Field

from veracore.primitives.common import Verdict, VeraBaseModel, utc_now


class VerdictSource(str, enum.Enum):
    RULES_ENGINE = "rules_engine"
    FLOWS_FAILURE = "flows_failure"
    ATTEMPTS_FAILURE = "attempts_failure"
    POLICY_HARD_FAIL = "policy_hard_fail"
    OBSERVED = "observed"
    FLOWS_FRICTION = "flows_friction"
    ATTEMPTS_FRICTION = "attempts_friction"
    INSUFFICIENT_DATA = "insufficient_data"
    COVERAGE_DOWNGRADE = "coverage_downgrade"
    JOURNEY_DOWNGRADE = "journey_downgrade"


class ReasonCode(str, enum.Enum):
    RULES_ENGINE = "RULES_ENGINE"
    FLOW_FAILURES = "FLOW_FAILURES"
    ATTEMPT_FAILURES = "ATTEMPT_FAILURES"
    POLICY_HARD_FAILURE = "POLICY_HARD_FAILURE"
    POLICY_WARNING = "POLICY_WARNING"
    OBSERVED_SUCCESS = "OBSERVED_SUCCESS"
    FLOW_FRICTION = "FLOW_FRICTION"
    ATTEMPT_FRICTION = "ATTEMPT_FRICTION"
    NO_APPLICABLE_SIGNALS = "NO_APPLICABLE_SIGNALS"
    JOURNEY_DOWNGRADE = "JOURNEY_DOWNGRADE"
    BASELINE_REGRESSIONS = "BASELINE_REGRESSIONS"
    NOT_APPLICABLE_FLOWS = "NOT_APPLICABLE_FLOWS"
    NOT_APPLICABLE_ATTEMPTS = "NOT_APPLICABLE_ATTEMPTS"
    COVERAGE_SUMMARY = "COVERAGE_SUMMARY"
    COVERAGE_INSUFFICIENT = "COVERAGE_INSUFFICIENT"
    SIGNALS_MALFORMED = "SIGNALS_MALFORMED"
    NOT_TRIGGERED = "NOT_TRIGGERED"
    FINALIZED = "FINALIZED"


class DecisionReason(VeraBaseModel):
    code: ReasonCode
    message: str

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.code.value, self.message)


class VerdictHistoryEntry(VeraBaseModel):
    phase: str
    source: str
    suggested_verdict: Verdict | None = None
    reason_code: ReasonCode
    timestamp: datetime = Field(default_factory=utc_now)


class Decision(VeraBaseModel):
    final_verdict: Verdict
    exit_code: int
    reasons: list[DecisionReason] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    verdict_source: VerdictSource
    verdict_history: list[VerdictHistoryEntry] = Field(default_factory=list)
    triggered_rule_ids: list[str] = Field(default_factory=list)
