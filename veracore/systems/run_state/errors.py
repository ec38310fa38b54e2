"""
VeraCore -- Run State Error Hierarchy

All exceptions raised by run accounting.

Severity guide:
  InvariantViolationError  FATAL -- accounting does not add up; run must fail
  RunStateFrozenError      BUG   -- a caller recorded after finalisation
"""

from __future__ import annotations


class RunStateError(RuntimeError):
    """Base for all run accounting errors."""


class InvariantViolationError(RunStateError):
    """
    Expectation accounting is inconsistent: analysed plus skipped does not
    equal discovered, or an expectation is both analysed and skipped.

    Recovery: none. The run is marked ANALYSIS_FAILED and exits 2.
    """


class RunStateFrozenError(RunStateError):
    """
    A record call arrived after the run state was finalised.

    Recovery: none. The finalised snapshot is authoritative.
    """
