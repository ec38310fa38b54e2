"""
Tests for the Determinism Comparator.

Covers:
  - Volatile field stripping and path relativisation
  - Findings comparison independent of emission order
  - Difference types and ordering
"""

from __future__ import annotations

from veracore.config import DeterminismConfig
from veracore.primitives.finding import Classification, Finding
from veracore.systems.determinism.comparator import (
    DifferenceType,
    compare,
    compare_findings,
    find_differences,
    is_volatile,
    normalize,
)


def _make_finding_dict(exp_id: str, detected_at: str, score: float = 0.6) -> dict:
    return {
        "id": exp_id,
        "expectation_id": exp_id,
        "classification": "silent-failure:no-change",
        "confidence": {"calibrated_score": score},
        "detectedAt": detected_at,
        "timestamp": detected_at,
    }


# ─── Normalisation ────────────────────────────────────────────────


class TestNormalize:
    def test_volatile_names(self):
        assert is_volatile("timestamp")
        assert is_volatile("startedAt")
        assert is_volatile("finished_at")
        assert is_volatile("observeMs")
        assert is_volatile("lastTimestampSeen")
        assert not is_volatile("status")
        assert not is_volatile("items")

    def test_strips_volatile_fields_and_sorts_keys(self):
        normalized = normalize({"b": 1, "runId": "x", "a": {"durationMs": 5, "c": 2}})
        assert normalized == {"a": {"c": 2}, "b": 1}
        assert list(normalized) == ["a", "b"]

    def test_relativises_paths(self):
        normalized = normalize(
            {"projectDir": "/home/ci/app", "screenshotPath": "/home/ci/app/shots/a.png", "cwd": "/elsewhere"},
            base_path="/home/ci/app",
        )
        assert normalized == {"cwd": "/elsewhere", "projectDir": ".", "screenshotPath": "shots/a.png"}

    def test_extra_volatile_fields(self):
        config = DeterminismConfig(extra_volatile_fields=["hostname"])
        result = compare({"hostname": "a", "v": 1}, {"hostname": "b", "v": 1}, config=config)
        assert result.identical


# ─── Comparison ───────────────────────────────────────────────────


class TestCompare:
    def test_findings_differing_only_in_time_and_order(self):
        first = [
            _make_finding_dict("exp_a", "2026-01-01T00:00:00Z"),
            _make_finding_dict("exp_b", "2026-01-01T00:00:01Z"),
        ]
        second = [
            _make_finding_dict("exp_b", "2026-02-02T10:00:00Z"),
            _make_finding_dict("exp_a", "2026-02-02T10:00:05Z"),
        ]
        result = compare_findings(first, second)
        assert result.identical
        assert result.differences == []
        assert result.first_hash == result.second_hash

    def test_real_change_is_reported(self):
        first = [_make_finding_dict("exp_a", "t1", score=0.6)]
        second = [_make_finding_dict("exp_a", "t2", score=0.7)]
        result = compare_findings(first, second)
        assert not result.identical
        assert [(d.path, d.type) for d in result.differences] == [
            ("[0].confidence.calibrated_score", DifferenceType.VALUE_MISMATCH)
        ]

    def test_accepts_models(self):
        classification = Classification.parse("observed")
        finding = Finding(
            id="exp_a",
            expectation_id="exp_a",
            classification=classification,
            judgment=classification.judgment,
        )
        assert compare_findings([finding], [finding.model_dump(mode="json")]).identical

    def test_int_and_float_are_equal(self):
        assert compare({"n": 1}, {"n": 1.0}).identical


# ─── Differences ──────────────────────────────────────────────────


class TestFindDifferences:
    def test_type_mismatch(self):
        diffs = find_differences({"a": None}, {"a": 0})
        assert diffs[0].type == DifferenceType.TYPE_MISMATCH
        assert diffs[0].path == "a"

    def test_missing_keys(self):
        diffs = find_differences({"a": 1}, {"b": 1})
        assert [(d.path, d.type) for d in diffs] == [
            ("a", DifferenceType.MISSING_IN_SECOND),
            ("b", DifferenceType.MISSING_IN_FIRST),
        ]

    def test_length_mismatch_keeps_walking_elements(self):
        diffs = find_differences([1, 2, 3], [1, 9])
        assert [(d.path, d.type) for d in diffs] == [
            ("", DifferenceType.LENGTH_MISMATCH),
            ("[1]", DifferenceType.VALUE_MISMATCH),
            ("[2]", DifferenceType.MISSING_IN_SECOND),
        ]
        assert (diffs[0].value1, diffs[0].value2) == (3, 2)
        assert (diffs[1].value1, diffs[1].value2) == (2, 9)

    def test_array_against_object(self):
        diffs = find_differences({"x": [1]}, {"x": {"k": 1}})
        assert [(d.path, d.type) for d in diffs] == [("x", DifferenceType.ARRAY_MISMATCH)]
        assert (diffs[0].value1, diffs[0].value2) == (True, False)

    def test_array_against_scalar_is_type_mismatch(self):
        diffs = find_differences({"x": [1]}, {"x": "1"})
        assert [(d.path, d.type) for d in diffs] == [("x", DifferenceType.TYPE_MISMATCH)]
        assert (diffs[0].value1, diffs[0].value2) == ("array", "string")

    def test_reordered_array_is_reported_per_element(self):
        diffs = find_differences([1, 2, 3], [3, 2, 1])
        assert [(d.path, d.type) for d in diffs] == [
            ("[0]", DifferenceType.VALUE_MISMATCH),
            ("[2]", DifferenceType.VALUE_MISMATCH),
        ]

    def test_difference_record_shape(self):
        diff = compare({"a": 1}, {"a": 2}).differences[0]
        assert diff.model_dump(mode="json") == {
            "path": "a",
            "type": "value-mismatch",
            "value1": 1,
            "value2": 2,
        }

    def test_elementwise_changes(self):
        diffs = find_differences([{"v": 1}, {"v": 2}], [{"v": 1}, {"v": 3}])
        assert [(d.path, d.type) for d in diffs] == [("[1].v", DifferenceType.VALUE_MISMATCH)]
