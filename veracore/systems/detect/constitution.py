"""
VeraCore — Constitution Validator

Last gate before findings are published. The validator may only lower a
finding's status, never raise it, and it never drops a well-formed
finding: every adjustment is recorded as a machine-readable note on the
finding's enrichment so the audit trail survives.

Checks, per finding, in order:
  1. Status ceiling      - a status stronger than the classification
                           admits is lowered to the ceiling
  2. Evidence law        - CONFIRMED with no cited evidence -> SUSPECTED
  3. Cross-linkage       - every evidence file cited by a CONFIRMED finding
                           must appear in the observation record for that
                           expectation and in the run's evidence index

Raw records that cannot be parsed into a Finding at all are dropped and
reported. Those drops are contract violations and fail the run.

Validation is idempotent: re-validating the output changes nothing.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from veracore.primitives.common import STATUS_RANK, FindingStatus
from veracore.primitives.finding import ClassificationKind, Finding
from veracore.primitives.observation import Observation
from veracore.systems.detect.types import DroppedFinding, ValidationBatch

logger = structlog.get_logger(system="detect", component="constitution")

NOTE_STATUS_EXCEEDS_CLASSIFICATION = "status_exceeds_classification"
NOTE_CONFIRMED_WITHOUT_EVIDENCE = "confirmed_without_evidence"
NOTE_EVIDENCE_NOT_IN_OBSERVATION = "evidence_not_in_observation"
NOTE_EVIDENCE_NOT_IN_INDEX = "evidence_not_in_index"

STATUS_CEILING: dict[ClassificationKind, FindingStatus] = {
    ClassificationKind.SILENT_FAILURE: FindingStatus.CONFIRMED,
    ClassificationKind.OBSERVED: FindingStatus.OBSERVED,
    ClassificationKind.UNPROVEN: FindingStatus.UNKNOWN,
    ClassificationKind.COVERAGE_GAP: FindingStatus.UNKNOWN,
    ClassificationKind.INFORMATIONAL: FindingStatus.UNKNOWN,
}


# ─── Evidence Indices ─────────────────────────────────────────────


def normalize_evidence_path(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def build_evidence_file_index(paths: Iterable[str]) -> frozenset[str]:
    """Set of evidence files that actually exist in the run's evidence store."""
    return frozenset(normalize_evidence_path(p) for p in paths)


def build_observe_evidence_index(
    observations: Iterable[Observation],
) -> dict[str, frozenset[str]]:
    """Expectation id -> evidence files the observation phase recorded for it."""
    index: dict[str, set[str]] = {}
    for obs in observations:
        index.setdefault(obs.expectation_id, set()).update(
            normalize_evidence_path(p) for p in obs.evidence_files
        )
    return {key: frozenset(value) for key, value in index.items()}


# ─── Validation ───────────────────────────────────────────────────


def _lower(finding: Finding, status: FindingStatus, note: str) -> Finding:
    notes = list(finding.enrichment.evidence_cross_artifact_notes)
    if note not in notes:
        notes.append(note)
    enrichment = finding.enrichment.model_copy(update={"evidence_cross_artifact_notes": notes})
    return finding.model_copy(update={"status": status, "enrichment": enrichment})


def validate_finding(
    finding: Finding,
    *,
    evidence_file_index: Collection[str] | None = None,
    observe_evidence_by_expectation: Mapping[str, Collection[str]] | None = None,
) -> Finding:
    """
    Validate one finding. Returns the same object when nothing changed.

    An index passed as ``None`` is not checked; an empty index is checked
    and fails every citation.
    """
    result = finding

    ceiling = STATUS_CEILING[result.classification.kind]
    if STATUS_RANK[result.status] > STATUS_RANK[ceiling]:
        result = _lower(result, ceiling, NOTE_STATUS_EXCEEDS_CLASSIFICATION)

    if result.status != FindingStatus.CONFIRMED:
        return result

    if not result.evidence:
        return _lower(result, FindingStatus.SUSPECTED, NOTE_CONFIRMED_WITHOUT_EVIDENCE)

    cited = [normalize_evidence_path(p) for p in result.evidence]

    if observe_evidence_by_expectation is not None:
        recorded = {
            normalize_evidence_path(p)
            for p in observe_evidence_by_expectation.get(result.expectation_id, ())
        }
        if any(path not in recorded for path in cited):
            result = _lower(result, FindingStatus.SUSPECTED, NOTE_EVIDENCE_NOT_IN_OBSERVATION)

    if evidence_file_index is not None:
        indexed = {normalize_evidence_path(p) for p in evidence_file_index}
        if any(path not in indexed for path in cited):
            result = _lower(result, FindingStatus.SUSPECTED, NOTE_EVIDENCE_NOT_IN_INDEX)

    return result


def batch_validate(
    findings: Iterable[Finding | Mapping[str, Any]],
    *,
    evidence_file_index: Collection[str] | None = None,
    observe_evidence_by_expectation: Mapping[str, Collection[str]] | None = None,
) -> ValidationBatch:
    """Validate findings in order. Output order matches input order."""
    batch = ValidationBatch()

    for position, raw in enumerate(findings):
        if isinstance(raw, Finding):
            finding = raw
        else:
            try:
                finding = Finding.model_validate(raw)
            except ValidationError as exc:
                raw_id = str(raw.get("id", "")) if isinstance(raw, Mapping) else ""
                batch.dropped.append(DroppedFinding(
                    id=raw_id or f"#{position}",
                    reason=f"unparseable finding: {exc.error_count()} validation error(s)",
                ))
                continue

        validated = validate_finding(
            finding,
            evidence_file_index=evidence_file_index,
            observe_evidence_by_expectation=observe_evidence_by_expectation,
        )
        if validated.status != finding.status:
            batch.downgraded += 1
            logger.info(
                "finding_downgraded",
                finding_id=finding.id,
                from_status=finding.status.value,
                to_status=validated.status.value,
                notes=validated.enrichment.evidence_cross_artifact_notes,
            )
        batch.valid.append(validated)

    if batch.dropped:
        logger.error("findings_dropped", count=len(batch.dropped))

    return batch
