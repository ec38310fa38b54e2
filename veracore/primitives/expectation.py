"""
VeraCore — Expectation Primitives

An Expectation is a promise extracted from source code: "clicking this
link navigates to /checkout", "submitting this form posts to /api/login".
Expectations are immutable once extracted and are identified by a content
hash, so the same promise in the same place always gets the same id.
"""

from __future__ import annotations

import hashlib

from pydantic import Field

from veracore.primitives.common import FrozenModel


class SourceRef(FrozenModel):
    """Where in the codebase a promise was found."""

    file: str
    line: int = Field(default=0, ge=0)
    column: int = Field(default=0, ge=0)


class Promise(FrozenModel):
    kind: str  # e.g. "navigate", "submit", "network.request", "feedback.toast"
    value: str = ""  # route, endpoint, selector or message


class Expectation(FrozenModel):
    id: str
    type: str  # navigation | network | submit | state | feedback | ...
    promise: Promise
    source: SourceRef

    @classmethod
    def build(
        cls,
        *,
        type: str,
        kind: str,
        value: str,
        file: str,
        line: int = 0,
        column: int = 0,
    ) -> Expectation:
        return cls(
            id=expectation_id(file, line, column, kind, value),
            type=type,
            promise=Promise(kind=kind, value=value),
            source=SourceRef(file=file, line=line, column=column),
        )

    @property
    def sort_key(self) -> tuple[str, int, int, str]:
        return (self.source.file, self.source.line, self.source.column, self.id)


def expectation_id(file: str, line: int, column: int, kind: str, value: str) -> str:
    """Content hash over source location and promise. Stable across runs."""
    material = f"{file}|{line}|{column}|{kind}|{value}"
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return f"exp_{digest[:16]}"
