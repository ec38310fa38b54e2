"""
Tests for the Severity Mapper.
"""

from __future__ import annotations

import pytest

from veracore.primitives.common import Severity
from veracore.primitives.finding import Judgment
from veracore.systems.detect.severity import KindTier, kind_tier, map_severity


class TestKindTier:
    def test_critical_kinds(self):
        for kind in ("navigate", "submit", "payment", "auth"):
            assert kind_tier(kind) == KindTier.CRITICAL

    def test_dotted_subkind_matches_root(self):
        assert kind_tier("navigate.link") == KindTier.CRITICAL
        assert kind_tier("feedback.toast") == KindTier.IMPORTANT
        assert kind_tier("state.update") == KindTier.IMPORTANT

    def test_everything_else_is_standard(self):
        assert kind_tier("network.request") == KindTier.STANDARD
        assert kind_tier("") == KindTier.STANDARD


class TestMapSeverity:
    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("navigate", Severity.CRITICAL),
            ("feedback.toast", Severity.HIGH),
            ("network.request", Severity.MEDIUM),
        ],
    )
    def test_silent_failure(self, kind, expected):
        assert map_severity(Judgment.FAILURE_SILENT, kind) == expected

    def test_misleading_failure_matches_silent(self):
        assert map_severity(Judgment.FAILURE_MISLEADING, "submit") == Severity.CRITICAL

    def test_needs_review(self):
        assert map_severity(Judgment.NEEDS_REVIEW, "payment") == Severity.MEDIUM
        assert map_severity(Judgment.NEEDS_REVIEW, "state.update") == Severity.LOW

    def test_weak_pass_is_low(self):
        assert map_severity(Judgment.WEAK_PASS, "auth") == Severity.LOW

    def test_pass_mirrors_failure_table(self):
        for kind in ("auth", "feedback.banner", "hover"):
            assert map_severity(Judgment.PASS, kind) == map_severity(Judgment.FAILURE_SILENT, kind)
