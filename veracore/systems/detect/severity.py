"""
VeraCore — Severity Mapper

Pure lookup from (judgment, promise kind) to a severity level. Kinds are
grouped into criticality tiers; a tier matches the kind itself or any
dotted sub-kind (``navigate`` matches ``navigate.link``).
"""

from __future__ import annotations

import enum

from veracore.primitives.common import Severity
from veracore.primitives.finding import Judgment


class KindTier(str, enum.Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    STANDARD = "standard"


CRITICAL_KINDS: frozenset[str] = frozenset({"navigate", "submit", "payment", "auth"})
IMPORTANT_KINDS: frozenset[str] = frozenset({"feedback", "state"})

# Failures and passes share a table so that a passing critical promise
# reads as important as a failing one would have been.
_FAILURE_TABLE: dict[KindTier, Severity] = {
    KindTier.CRITICAL: Severity.CRITICAL,
    KindTier.IMPORTANT: Severity.HIGH,
    KindTier.STANDARD: Severity.MEDIUM,
}

_NEEDS_REVIEW_TABLE: dict[KindTier, Severity] = {
    KindTier.CRITICAL: Severity.MEDIUM,
    KindTier.IMPORTANT: Severity.LOW,
    KindTier.STANDARD: Severity.LOW,
}

_WEAK_PASS_TABLE: dict[KindTier, Severity] = {
    KindTier.CRITICAL: Severity.LOW,
    KindTier.IMPORTANT: Severity.LOW,
    KindTier.STANDARD: Severity.LOW,
}

SEVERITY_TABLES: dict[Judgment, dict[KindTier, Severity]] = {
    Judgment.FAILURE_SILENT: _FAILURE_TABLE,
    Judgment.FAILURE_MISLEADING: _FAILURE_TABLE,
    Judgment.PASS: _FAILURE_TABLE,
    Judgment.NEEDS_REVIEW: _NEEDS_REVIEW_TABLE,
    Judgment.WEAK_PASS: _WEAK_PASS_TABLE,
}


def kind_tier(promise_kind: str) -> KindTier:
    root = promise_kind.split(".", 1)[0].lower()
    if root in CRITICAL_KINDS:
        return KindTier.CRITICAL
    if root in IMPORTANT_KINDS:
        return KindTier.IMPORTANT
    return KindTier.STANDARD


def map_severity(judgment: Judgment, promise_kind: str) -> Severity:
    return SEVERITY_TABLES[judgment][kind_tier(promise_kind)]
