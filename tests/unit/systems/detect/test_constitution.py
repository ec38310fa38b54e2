"""
Tests for the Constitution Validator.

Covers:
  - Cross-linkage downgrades (observation record, evidence index)
  - Evidence law and status ceilings
  - Non-upgrade, order preservation, idempotency
  - Dropping unparseable records
  - Evidence index builders
"""

from __future__ import annotations

from veracore.primitives.common import FindingStatus
from veracore.primitives.finding import Classification, Finding, Judgment
from veracore.primitives.observation import Observation
from veracore.systems.detect.constitution import (
    NOTE_CONFIRMED_WITHOUT_EVIDENCE,
    NOTE_EVIDENCE_NOT_IN_INDEX,
    NOTE_EVIDENCE_NOT_IN_OBSERVATION,
    NOTE_STATUS_EXCEEDS_CLASSIFICATION,
    batch_validate,
    build_evidence_file_index,
    build_observe_evidence_index,
    validate_finding,
)


def _make_finding(
    finding_id: str = "exp_1",
    label: str = "silent-failure:no-change",
    status: FindingStatus = FindingStatus.CONFIRMED,
    evidence: list[str] | None = None,
) -> Finding:
    classification = Classification.parse(label)
    return Finding(
        id=finding_id,
        expectation_id=finding_id,
        promise_kind="navigate",
        classification=classification,
        judgment=classification.judgment,
        status=status,
        evidence=["shot.png"] if evidence is None else evidence,
    )


# ─── Cross-linkage ────────────────────────────────────────────────


class TestCrossLinkage:
    def test_foreign_evidence_downgrades(self):
        finding = _make_finding(evidence=["foreign.png"])
        batch = batch_validate(
            [finding],
            observe_evidence_by_expectation={"exp_1": ["shot.png"]},
        )
        assert batch.downgraded == 1
        assert batch.valid[0].status == FindingStatus.SUSPECTED
        assert batch.valid[0].enrichment.evidence_cross_artifact_notes == [
            NOTE_EVIDENCE_NOT_IN_OBSERVATION
        ]

    def test_missing_from_index_downgrades(self):
        finding = _make_finding()
        result = validate_finding(
            finding,
            evidence_file_index={"other.png"},
            observe_evidence_by_expectation={"exp_1": ["shot.png"]},
        )
        assert result.status == FindingStatus.SUSPECTED
        assert result.enrichment.evidence_cross_artifact_notes == [NOTE_EVIDENCE_NOT_IN_INDEX]

    def test_linked_evidence_keeps_confirmed(self):
        finding = _make_finding()
        result = validate_finding(
            finding,
            evidence_file_index={"shot.png"},
            observe_evidence_by_expectation={"exp_1": ["./shot.png"]},
        )
        assert result is finding
        assert result.status == FindingStatus.CONFIRMED

    def test_unchecked_indices_are_skipped(self):
        finding = _make_finding()
        assert validate_finding(finding).status == FindingStatus.CONFIRMED


# ─── Evidence Law & Ceilings ──────────────────────────────────────


class TestStatusRules:
    def test_confirmed_without_evidence(self):
        result = validate_finding(_make_finding(evidence=[]))
        assert result.status == FindingStatus.SUSPECTED
        assert NOTE_CONFIRMED_WITHOUT_EVIDENCE in result.enrichment.evidence_cross_artifact_notes

    def test_status_above_classification_is_lowered(self):
        finding = _make_finding(label="unproven", status=FindingStatus.SUSPECTED, evidence=[])
        result = validate_finding(finding)
        assert result.status == FindingStatus.UNKNOWN
        assert result.enrichment.evidence_cross_artifact_notes == [NOTE_STATUS_EXCEEDS_CLASSIFICATION]

    def test_confirmed_observation_is_lowered_to_observed(self):
        finding = _make_finding(label="observed", status=FindingStatus.CONFIRMED)
        assert validate_finding(finding).status == FindingStatus.OBSERVED

    def test_suspected_is_never_promoted(self):
        finding = _make_finding(status=FindingStatus.SUSPECTED)
        result = validate_finding(
            finding,
            evidence_file_index={"shot.png"},
            observe_evidence_by_expectation={"exp_1": ["shot.png"]},
        )
        assert result.status == FindingStatus.SUSPECTED


# ─── Batch Behaviour ──────────────────────────────────────────────


class TestBatchValidate:
    def test_order_is_preserved(self):
        findings = [_make_finding(finding_id=f"exp_{i}") for i in (3, 1, 2)]
        batch = batch_validate(findings)
        assert [f.id for f in batch.valid] == ["exp_3", "exp_1", "exp_2"]

    def test_revalidation_is_idempotent(self):
        findings = [
            _make_finding(finding_id="exp_1", evidence=["foreign.png"]),
            _make_finding(finding_id="exp_2", evidence=[]),
        ]
        index = {"exp_1": ["shot.png"], "exp_2": []}
        first = batch_validate(findings, observe_evidence_by_expectation=index)
        second = batch_validate(first.valid, observe_evidence_by_expectation=index)
        assert first.downgraded == 2
        assert second.downgraded == 0
        assert [f.model_dump() for f in second.valid] == [f.model_dump() for f in first.valid]

    def test_well_formed_findings_are_never_dropped(self):
        findings = [_make_finding(finding_id=f"exp_{i}", evidence=[]) for i in range(4)]
        batch = batch_validate(findings, evidence_file_index=set())
        assert len(batch.valid) == 4
        assert batch.dropped == []

    def test_unparseable_record_is_dropped(self):
        good = _make_finding().model_dump(mode="json")
        batch = batch_validate([{"id": "broken", "classification": "nonsense"}, good])
        assert [d.id for d in batch.dropped] == ["broken"]
        assert len(batch.valid) == 1
        assert batch.valid[0].judgment == Judgment.FAILURE_SILENT


# ─── Index Builders ───────────────────────────────────────────────


class TestIndexBuilders:
    def test_file_index_normalises_paths(self):
        index = build_evidence_file_index(["./shots/a.png", "shots\\b.png"])
        assert index == frozenset({"shots/a.png", "shots/b.png"})

    def test_observe_index_groups_by_expectation(self):
        observations = [
            Observation(expectation_id="exp_1", evidence_files=["./a.png"]),
            Observation(expectation_id="exp_1", evidence_files=["b.png"]),
            Observation(expectation_id="exp_2"),
        ]
        index = build_observe_evidence_index(observations)
        assert index == {"exp_1": frozenset({"a.png", "b.png"}), "exp_2": frozenset()}
