"""
VeraCore — Observation Primitives

What actually happened when the runtime collaborator attempted an
Expectation's interaction. Observations arrive from outside this package
and are treated as raw evidence.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field

from veracore.primitives.common import VeraBaseModel


class ObservationCause(str, enum.Enum):
    NOT_FOUND = "not-found"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    PREVENTED_SUBMIT = "prevented-submit"
    NO_CHANGE = "no-change"
    ERROR = "error"
    UNKNOWN = "unknown"


class Observation(VeraBaseModel):
    expectation_id: str
    attempted: bool = False
    observed: bool = False
    reason: str = ""
    cause: ObservationCause | None = None
    safety_skipped: bool = False
    evidence_files: list[str] = Field(default_factory=list)
    # Runtime signals, e.g. dom_changed, url_changed, network_requests,
    # network_failures, dom_change_count, retry_count.
    signals: dict[str, Any] = Field(default_factory=dict)
    # Milliseconds, e.g. render_delay_ms.
    timing: dict[str, float] = Field(default_factory=dict)

    def signal(self, *names: str, default: Any = None) -> Any:
        """First present signal among ``names``."""
        for name in names:
            if name in self.signals and self.signals[name] is not None:
                return self.signals[name]
        return default

    def flag(self, *names: str) -> bool:
        return bool(self.signal(*names, default=False))

    def count(self, *names: str) -> int:
        value = self.signal(*names, default=0)
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0
