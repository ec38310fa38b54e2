"""
VeraCore — Determinism

Decides whether two runs over the same inputs produced the same results,
once timestamps, durations and absolute paths are set aside.
"""

from veracore.systems.determinism.comparator import (
    VOLATILE_FIELDS,
    ComparisonResult,
    Difference,
    DifferenceType,
    compare,
    compare_findings,
    find_differences,
    is_path_field,
    is_volatile,
    normalize,
    normalize_findings_for_comparison,
)

__all__ = [
    "VOLATILE_FIELDS",
    "ComparisonResult",
    "Difference",
    "DifferenceType",
    "compare",
    "compare_findings",
    "find_differences",
    "is_path_field",
    "is_volatile",
    "normalize",
    "normalize_findings_for_comparison",
]
