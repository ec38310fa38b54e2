"""
VeraCore — Silent Failure Classifier

Turns one (Expectation, Observation) pair into one Finding.

The taxonomy is closed and evaluated in order:
  observed        - the promised outcome was seen
  coverage-gap    - never attempted, or skipped for safety with no evidence
  unproven        - attempted, not observed, and nothing captured
  silent-failure  - attempted, not observed, and evidence was captured
  informational   - anything else, including malformed input

Evidence gate: a silent failure is never produced without at least one
evidence file or a positive DOM-change signal. Absence of evidence is
"unproven", never "failure".

Classification never raises. Bad input degrades to an informational
finding with zero confidence and a reason naming what was wrong.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from veracore.config import ClassifierConfig
from veracore.primitives.common import FindingStatus, Severity
from veracore.primitives.expectation import Expectation
from veracore.primitives.finding import (
    Classification,
    ClassificationKind,
    Finding,
    FindingConfidence,
)
from veracore.primitives.observation import Observation
from veracore.systems.detect.severity import map_severity
from veracore.systems.detect.types import DetectionStats, EvidenceKind

logger = structlog.get_logger(system="detect", component="classifier")

DOM_CHANGE_SIGNALS: tuple[str, ...] = ("dom_changed", "meaningful_dom_change")
NETWORK_SIGNALS: tuple[str, ...] = ("network_activity", "correlated_network_activity")
SCREENSHOT_SUFFIXES: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".webp")

# ─── Impact Table ─────────────────────────────────────────────────

_LOW_IMPACT_ROUTE_MARKERS = ("privacy", "terms", "legal", "cookie", "footer", "about")
_SECONDARY_ROUTE_MARKERS = ("settings", "admin", "account", "preferences")
_CRITICAL_ENDPOINT_MARKERS = ("auth", "login", "payment", "checkout", "billing")


def _navigation_impact(value: str) -> Severity:
    lowered = value.lower()
    if any(marker in lowered for marker in _LOW_IMPACT_ROUTE_MARKERS):
        return Severity.LOW
    if any(marker in lowered for marker in _SECONDARY_ROUTE_MARKERS):
        return Severity.MEDIUM
    return Severity.HIGH


def _network_impact(value: str) -> Severity:
    lowered = value.lower()
    if any(marker in lowered for marker in _CRITICAL_ENDPOINT_MARKERS):
        return Severity.HIGH
    return Severity.MEDIUM


IMPACT_BY_TYPE: dict[str, Severity] = {
    "submit": Severity.HIGH,
    "form": Severity.HIGH,
    "state": Severity.MEDIUM,
    "feedback": Severity.MEDIUM,
}


def impact_for(expectation: Expectation) -> Severity:
    """Static impact lookup keyed by expectation type and promise value."""
    if expectation.type == "navigation":
        return _navigation_impact(expectation.promise.value)
    if expectation.type == "network":
        return _network_impact(expectation.promise.value)
    return IMPACT_BY_TYPE.get(expectation.type, Severity.LOW)


# ─── Evidence ─────────────────────────────────────────────────────


def evidence_kinds(observation: Observation) -> set[EvidenceKind]:
    kinds: set[EvidenceKind] = set()
    for path in observation.evidence_files:
        lowered = path.lower()
        if "dom_diff" in lowered:
            kinds.add(EvidenceKind.DOM_DIFF)
        elif lowered.endswith(SCREENSHOT_SUFFIXES):
            kinds.add(EvidenceKind.SCREENSHOT)
        else:
            kinds.add(EvidenceKind.ARTIFACT)
    if observation.flag(*DOM_CHANGE_SIGNALS):
        kinds.add(EvidenceKind.DOM_CHANGE_SIGNAL)
    if observation.flag(*NETWORK_SIGNALS):
        kinds.add(EvidenceKind.NETWORK_SIGNAL)
    return kinds


def has_evidence(observation: Observation) -> bool:
    return bool(observation.evidence_files) or observation.flag(*DOM_CHANGE_SIGNALS)


def evidence_score(kinds: set[EvidenceKind], config: ClassifierConfig) -> float:
    """More independent evidence kinds give a higher score, up to the cap."""
    if not kinds:
        return 0.0
    score = config.evidence_base_score + config.evidence_step * (len(kinds) - 1)
    return round(min(config.evidence_cap, score), 3)


# ─── Classification ───────────────────────────────────────────────


def _taxonomy(expectation: Expectation, observation: Observation | None) -> tuple[Classification, str]:
    if observation is None:
        return Classification.of(ClassificationKind.COVERAGE_GAP), "no observation recorded"

    if observation.expectation_id != expectation.id:
        return (
            Classification.of(ClassificationKind.INFORMATIONAL),
            f"observation belongs to {observation.expectation_id}",
        )

    if observation.observed:
        return Classification.of(ClassificationKind.OBSERVED), observation.reason or "outcome observed"

    if not observation.attempted:
        return (
            Classification.of(ClassificationKind.COVERAGE_GAP),
            observation.reason or "interaction not attempted",
        )

    evidence = has_evidence(observation)
    if observation.safety_skipped:
        if not evidence:
            return (
                Classification.of(ClassificationKind.COVERAGE_GAP),
                observation.reason or "skipped by safety policy",
            )
        return (
            Classification.of(ClassificationKind.INFORMATIONAL),
            "safety-skipped interaction carries evidence",
        )

    if not evidence:
        return (
            Classification.of(ClassificationKind.UNPROVEN),
            observation.reason or "attempted but outcome not observed and no evidence captured",
        )

    return (
        Classification.silent_failure(observation.cause),
        observation.reason or "attempted with evidence but promised outcome did not occur",
    )


def _initial_score(
    classification: Classification,
    observation: Observation | None,
    config: ClassifierConfig,
) -> float:
    if classification.kind == ClassificationKind.OBSERVED:
        return 1.0
    if classification.kind == ClassificationKind.SILENT_FAILURE and observation is not None:
        return evidence_score(evidence_kinds(observation), config)
    return 0.0


def _status(
    classification: Classification,
    observation: Observation | None,
    config: ClassifierConfig,
) -> FindingStatus:
    if classification.kind == ClassificationKind.OBSERVED:
        return FindingStatus.OBSERVED
    if classification.kind != ClassificationKind.SILENT_FAILURE or observation is None:
        return FindingStatus.UNKNOWN
    kinds = evidence_kinds(observation)
    if observation.evidence_files and len(kinds) >= config.confirm_min_evidence_kinds:
        return FindingStatus.CONFIRMED
    return FindingStatus.SUSPECTED


def _malformed(raw: Any, errors: ValidationError, what: str) -> Finding:
    fields = sorted({str(err["loc"][0]) for err in errors.errors() if err.get("loc")})
    raw_id = ""
    if isinstance(raw, Mapping):
        raw_id = str(raw.get("id") or raw.get("expectation_id") or "")
    reason = f"malformed {what}: invalid {', '.join(fields) or 'input'}"
    logger.warning("malformed_input", what=what, expectation_id=raw_id, fields=fields)
    classification = Classification.of(ClassificationKind.INFORMATIONAL)
    return Finding(
        id=raw_id,
        expectation_id=raw_id,
        classification=classification,
        judgment=classification.judgment,
        severity=map_severity(classification.judgment, ""),
        status=FindingStatus.UNKNOWN,
        reason=reason,
    )


def classify(
    expectation: Expectation | Mapping[str, Any],
    observation: Observation | Mapping[str, Any] | None,
    config: ClassifierConfig | None = None,
) -> Finding:
    """
    Classify one expectation against its observation.

    Confidence is seeded here (``original_score == calibrated_score``);
    calibration is a separate stage.
    """
    cfg = config or ClassifierConfig()

    if not isinstance(expectation, Expectation):
        try:
            expectation = Expectation.model_validate(expectation)
        except ValidationError as exc:
            return _malformed(expectation, exc, "expectation")

    if observation is not None and not isinstance(observation, Observation):
        try:
            observation = Observation.model_validate(observation)
        except ValidationError as exc:
            malformed = _malformed(observation, exc, "observation")
            return malformed.model_copy(
                update={
                    "id": expectation.id,
                    "expectation_id": expectation.id,
                    "promise_kind": expectation.promise.kind,
                    "source": expectation.source,
                }
            )

    classification, reason = _taxonomy(expectation, observation)
    judgment = classification.judgment
    score = _initial_score(classification, observation, cfg)

    evidence: list[str] = []
    if classification.is_silent_failure and observation is not None:
        evidence = sorted(set(observation.evidence_files))

    return Finding(
        id=expectation.id,
        expectation_id=expectation.id,
        promise_kind=expectation.promise.kind,
        classification=classification,
        judgment=judgment,
        impact=impact_for(expectation),
        severity=map_severity(judgment, expectation.promise.kind),
        status=_status(classification, observation, cfg),
        confidence=FindingConfidence(original_score=score, calibrated_score=score),
        evidence=evidence,
        reason=reason,
        source=expectation.source,
    )


def detection_stats(findings: Iterable[Finding]) -> DetectionStats:
    """Counts by classification kind, severity and status, plus mean confidence."""
    items = list(findings)
    if not items:
        return DetectionStats()
    by_kind = Counter(f.classification.kind.value for f in items)
    by_severity = Counter(f.severity.value for f in items)
    by_status = Counter(f.status.value for f in items)
    average = sum(f.confidence.calibrated_score for f in items) / len(items)
    return DetectionStats(
        total=len(items),
        by_classification=dict(sorted(by_kind.items())),
        by_severity=dict(sorted(by_severity.items())),
        by_status=dict(sorted(by_status.items())),
        average_confidence=round(average, 3),
    )
