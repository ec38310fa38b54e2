"""
Tests for shared primitives.

Covers:
  - Expectation content-hash ids
  - Classification variant rules and labels
  - Finding serialisation
  - stable_hash
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from veracore.primitives.common import stable_hash
from veracore.primitives.expectation import Expectation, expectation_id
from veracore.primitives.finding import Classification, ClassificationKind, Finding
from veracore.primitives.observation import ObservationCause


class TestExpectation:
    def test_id_is_content_hash(self):
        a = Expectation.build(type="navigation", kind="navigate", value="/x", file="a.jsx", line=1)
        b = Expectation.build(type="navigation", kind="navigate", value="/x", file="a.jsx", line=1)
        assert a.id == b.id
        assert a.id.startswith("exp_")
        assert a.id == expectation_id("a.jsx", 1, 0, "navigate", "/x")

    def test_location_changes_id(self):
        a = Expectation.build(type="navigation", kind="navigate", value="/x", file="a.jsx", line=1)
        b = Expectation.build(type="navigation", kind="navigate", value="/x", file="a.jsx", line=2)
        assert a.id != b.id

    def test_expectations_are_immutable(self):
        exp = Expectation.build(type="navigation", kind="navigate", value="/x", file="a.jsx")
        with pytest.raises(ValidationError):
            exp.type = "network"


class TestClassification:
    def test_silent_failure_requires_cause(self):
        with pytest.raises(ValidationError):
            Classification(kind=ClassificationKind.SILENT_FAILURE)

    def test_other_kinds_reject_cause(self):
        with pytest.raises(ValidationError):
            Classification(kind=ClassificationKind.UNPROVEN, cause=ObservationCause.BLOCKED)

    def test_label_round_trip(self):
        classification = Classification.silent_failure(ObservationCause.PREVENTED_SUBMIT)
        assert classification.label == "silent-failure:prevented-submit"
        assert Classification.parse(classification.label) == classification

    def test_missing_cause_becomes_unknown(self):
        assert Classification.silent_failure(None).cause == ObservationCause.UNKNOWN


class TestFinding:
    def test_classification_serialises_as_label(self):
        classification = Classification.parse("silent-failure:timeout")
        finding = Finding(
            id="exp_1",
            expectation_id="exp_1",
            classification=classification,
            judgment=classification.judgment,
        )
        data = finding.model_dump(mode="json")
        assert data["classification"] == "silent-failure:timeout"
        assert Finding.model_validate(data) == finding


class TestStableHash:
    def test_key_order_does_not_matter(self):
        assert stable_hash({"a": 1, "b": [1, 2]}) == stable_hash({"b": [1, 2], "a": 1})

    def test_values_matter(self):
        assert stable_hash({"a": 1}) != stable_hash({"a": 2})
