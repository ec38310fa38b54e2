"""
VeraCore — Determinism Comparator

Post-hoc comparison of two run summaries. Both sides are normalised first:
keys sorted, volatile fields (timestamps, durations, run ids) removed and
path fields made relative to the run's base path. Whatever differs after
that is a real difference between the runs.

Quick path: the SHA-256 of the normalised forms. Only when the hashes
disagree is a structural diff walked.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import Field

from veracore.config import DeterminismConfig
from veracore.primitives.common import VeraBaseModel, stable_hash

logger = structlog.get_logger()

VOLATILE_FIELDS: frozenset[str] = frozenset({
    "timestamp", "createdAt", "updatedAt", "startedAt", "completedAt",
    "observedAt", "detectedAt", "generatedAt", "verifiedAt", "writtenAt",
    "learnedAt", "failedAt", "runId", "run_id", "pid", "duration",
    "durationMs", "totalMs", "learnMs", "observeMs", "detectMs",
    "relativeTime", "relative_time", "sequence",
})

_VOLATILE_SUFFIXES: tuple[str, ...] = ("At", "_at", "Time", "_time", "Ms", "_ms")
_PATH_SUFFIXES: tuple[str, ...] = ("Path", "_path", "Dir", "_dir")
_PATH_FIELDS: frozenset[str] = frozenset({"cwd", "src"})


class DifferenceType(str, enum.Enum):
    TYPE_MISMATCH = "type-mismatch"
    VALUE_MISMATCH = "value-mismatch"
    MISSING_IN_FIRST = "missing-in-first"
    MISSING_IN_SECOND = "missing-in-second"
    LENGTH_MISMATCH = "length-mismatch"
    ARRAY_MISMATCH = "array-mismatch"


class Difference(VeraBaseModel):
    path: str
    type: DifferenceType
    value1: Any = None
    value2: Any = None


class ComparisonResult(VeraBaseModel):
    identical: bool
    first_hash: str
    second_hash: str
    differences: list[Difference] = Field(default_factory=list)


# ─── Normalisation ────────────────────────────────────────────────


def is_volatile(name: str, extra: Iterable[str] = ()) -> bool:
    if name in VOLATILE_FIELDS or name in set(extra):
        return True
    if name.endswith(_VOLATILE_SUFFIXES):
        return True
    return "timestamp" in name.lower()


def is_path_field(name: str) -> bool:
    return name in _PATH_FIELDS or name.endswith(_PATH_SUFFIXES)


def relativize(value: str, base_path: str) -> str:
    normalized = value.replace("\\", "/")
    base = base_path.replace("\\", "/").rstrip("/")
    if base and (normalized == base or normalized.startswith(base + "/")):
        normalized = normalized[len(base):].lstrip("/") or "."
    return normalized


def _plain(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def normalize(value: Any, base_path: str = "", extra_volatile: Iterable[str] = ()) -> Any:
    """Canonical, comparison-ready copy of ``value``."""
    extra = frozenset(extra_volatile)
    value = _plain(value)

    if isinstance(value, Mapping):
        result: dict[str, Any] = {}
        for key in sorted(value, key=str):
            name = str(key)
            if is_volatile(name, extra):
                continue
            item = value[key]
            if is_path_field(name) and isinstance(item, str):
                result[name] = relativize(item, base_path)
            else:
                result[name] = normalize(item, base_path, extra)
        return result

    if isinstance(value, (list, tuple)):
        return [normalize(item, base_path, extra) for item in value]

    return value


def normalize_findings_for_comparison(findings: Iterable[Any]) -> list[Any]:
    """Findings sorted by expectation id so emission order cannot matter."""
    plain = [_plain(f) for f in findings]
    return sorted(
        plain,
        key=lambda f: str(f.get("expectation_id") or f.get("id") or "") if isinstance(f, Mapping) else "",
    )


# ─── Diff ─────────────────────────────────────────────────────────


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def find_differences(first: Any, second: Any, path: str = "") -> list[Difference]:
    """Structural diff of two normalised values, in key then index order."""
    first_type, second_type = _json_type(first), _json_type(second)
    containers = {"array", "object"}

    if first_type in containers and second_type in containers and first_type != second_type:
        # One side is a list, the other a mapping
        return [Difference(
            path=path,
            type=DifferenceType.ARRAY_MISMATCH,
            value1=first_type == "array",
            value2=second_type == "array",
        )]

    if first_type != second_type:
        return [Difference(
            path=path,
            type=DifferenceType.TYPE_MISMATCH,
            value1=first_type,
            value2=second_type,
        )]

    if first_type == "object":
        diffs: list[Difference] = []
        for key in sorted(set(first) | set(second), key=str):
            child = _join(path, str(key))
            if key not in first:
                diffs.append(Difference(path=child, type=DifferenceType.MISSING_IN_FIRST, value2=second[key]))
            elif key not in second:
                diffs.append(Difference(path=child, type=DifferenceType.MISSING_IN_SECOND, value1=first[key]))
            else:
                diffs.extend(find_differences(first[key], second[key], child))
        return diffs

    if first_type == "array":
        diffs = []
        if len(first) != len(second):
            diffs.append(Difference(
                path=path,
                type=DifferenceType.LENGTH_MISMATCH,
                value1=len(first),
                value2=len(second),
            ))
        # Elements past the shorter side still get their own entry
        for index in range(max(len(first), len(second))):
            child = f"{path}[{index}]"
            if index >= len(first):
                diffs.append(Difference(path=child, type=DifferenceType.MISSING_IN_FIRST, value2=second[index]))
            elif index >= len(second):
                diffs.append(Difference(path=child, type=DifferenceType.MISSING_IN_SECOND, value1=first[index]))
            else:
                diffs.extend(find_differences(first[index], second[index], child))
        return diffs

    if first != second:
        return [Difference(path=path, type=DifferenceType.VALUE_MISMATCH, value1=first, value2=second)]
    return []


def compare(
    first: Any,
    second: Any,
    base_path: str = "",
    config: DeterminismConfig | None = None,
) -> ComparisonResult:
    cfg = config or DeterminismConfig()
    norm_first = normalize(first, base_path, cfg.extra_volatile_fields)
    norm_second = normalize(second, base_path, cfg.extra_volatile_fields)
    first_hash = stable_hash(norm_first)
    second_hash = stable_hash(norm_second)

    if first_hash == second_hash:
        return ComparisonResult(identical=True, first_hash=first_hash, second_hash=second_hash)

    differences = find_differences(norm_first, norm_second)
    logger.info(
        "runs_differ",
        system="determinism",
        differences=len(differences),
        first_hash=first_hash[:12],
        second_hash=second_hash[:12],
    )
    return ComparisonResult(
        identical=not differences,
        first_hash=first_hash,
        second_hash=second_hash,
        differences=differences,
    )


def compare_findings(
    first: Iterable[Any],
    second: Iterable[Any],
    base_path: str = "",
    config: DeterminismConfig | None = None,
) -> ComparisonResult:
    """Compare two findings lists independent of emission order."""
    return compare(
        normalize_findings_for_comparison(first),
        normalize_findings_for_comparison(second),
        base_path,
        config,
    )
