"""
VeraCore — Run State Types

Analysis states, skip reasons, determinism factors, and the frozen
snapshot a finalised run publishes.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field

from veracore.primitives.common import FrozenModel


class AnalysisState(str, enum.Enum):
    ANALYSIS_COMPLETE = "ANALYSIS_COMPLETE"
    ANALYSIS_INCOMPLETE = "ANALYSIS_INCOMPLETE"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"


class SkipReason(str, enum.Enum):
    TIMEOUT_OBSERVE = "TIMEOUT_OBSERVE"
    TIMEOUT_DETECT = "TIMEOUT_DETECT"
    TIMEOUT_TOTAL = "TIMEOUT_TOTAL"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    INFRA_CRASH = "INFRA_CRASH"
    NO_EXPECTATIONS_EXTRACTED = "NO_EXPECTATIONS_EXTRACTED"
    PARSE_ERROR = "PARSE_ERROR"
    DYNAMIC_ROUTE_UNSUPPORTED = "DYNAMIC_ROUTE_UNSUPPORTED"
    EXTERNAL_URL_SKIPPED = "EXTERNAL_URL_SKIPPED"
    SAFETY_POLICY = "SAFETY_POLICY"
    SELECTOR_MISMATCH = "SELECTOR_MISMATCH"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def normalize(cls, value: SkipReason | str) -> SkipReason:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# Systemic reasons mean the run itself could not finish its work
SYSTEMIC_SKIP_REASONS: frozenset[SkipReason] = frozenset({
    SkipReason.TIMEOUT_OBSERVE,
    SkipReason.TIMEOUT_DETECT,
    SkipReason.TIMEOUT_TOTAL,
    SkipReason.BUDGET_EXCEEDED,
    SkipReason.INFRA_CRASH,
})


class TimeoutPhase(str, enum.Enum):
    OBSERVE = "observe"
    DETECT = "detect"
    TOTAL = "total"


TIMEOUT_SKIP_REASONS: dict[TimeoutPhase, SkipReason] = {
    TimeoutPhase.OBSERVE: SkipReason.TIMEOUT_OBSERVE,
    TimeoutPhase.DETECT: SkipReason.TIMEOUT_DETECT,
    TimeoutPhase.TOTAL: SkipReason.TIMEOUT_TOTAL,
}


class DeterminismLevel(str, enum.Enum):
    DETERMINISTIC = "DETERMINISTIC"
    CONTROLLED_NON_DETERMINISTIC = "CONTROLLED_NON_DETERMINISTIC"
    NON_DETERMINISTIC = "NON_DETERMINISTIC"


class DeterminismFactor(str, enum.Enum):
    NETWORK_TIMING = "NETWORK_TIMING"
    TIMEOUT_RISK = "TIMEOUT_RISK"
    EXTERNAL_API = "EXTERNAL_API"
    BROWSER_SCHEDULING = "BROWSER_SCHEDULING"
    FLAKINESS = "FLAKINESS"
    ASYNC_DOM = "ASYNC_DOM"
    RETRY_LOGIC = "RETRY_LOGIC"
    ORDER_DEPENDENCE = "ORDER_DEPENDENCE"


NON_DETERMINISTIC_FACTORS: frozenset[DeterminismFactor] = frozenset({
    DeterminismFactor.NETWORK_TIMING,
    DeterminismFactor.TIMEOUT_RISK,
    DeterminismFactor.EXTERNAL_API,
    DeterminismFactor.BROWSER_SCHEDULING,
    DeterminismFactor.FLAKINESS,
})

CONTROLLED_FACTORS: frozenset[DeterminismFactor] = frozenset({
    DeterminismFactor.ASYNC_DOM,
    DeterminismFactor.RETRY_LOGIC,
    DeterminismFactor.ORDER_DEPENDENCE,
})


class DeterminismComparison(FrozenModel):
    baseline_run_id: str
    identical: bool
    difference_count: int = 0


class DeterminismRecord(FrozenModel):
    level: DeterminismLevel = DeterminismLevel.DETERMINISTIC
    factors: list[DeterminismFactor] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    comparison: DeterminismComparison | None = None
    reproducible: bool | None = None


class RunState(FrozenModel):
    """Immutable, serialisable record of a finalised run."""

    run_id: str
    state: AnalysisState
    exit_code: int
    expectations_discovered: int = 0
    expectations_analyzed: int = 0
    expectations_skipped: int = 0
    findings_count: int = 0
    completeness_ratio: float = 1.0
    skip_reasons: dict[str, int] = Field(default_factory=dict)
    skip_examples: dict[str, list[str]] = Field(default_factory=dict)
    systemic_reasons: list[str] = Field(default_factory=list)
    non_systemic_reasons: list[str] = Field(default_factory=list)
    analyzed_expectations: list[str] = Field(default_factory=list)
    skipped_expectations: dict[str, str] = Field(default_factory=dict)
    contract_violations: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    determinism: DeterminismRecord = Field(default_factory=DeterminismRecord)

    @property
    def is_complete(self) -> bool:
        return self.state == AnalysisState.ANALYSIS_COMPLETE
