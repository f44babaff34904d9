"""
[MIGRATION V13] Progress adapters for the hybrid (shadow) phase.

Task rows written before V13 carry only the legacy ``progress`` field, as a
bare number or as an ``{actual, planned}`` object. V13-aware writers add the
``progressV13`` shadow field and leave ``progress`` alone. Until
``finalize_v13`` folds the shadow field back into ``progress``, every reader
goes through ``resolve_progress`` so that no call site branches on schema
version.

Delete this module once finalize has run in every environment.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel

Number = Union[int, float]


class ResolvedProgress(BaseModel):
    """Canonical progress shape consumed by the UI, reports and aggregation."""
    actual: Number = 0
    planned: Number = 0
    aggregated: Optional[Number] = None

    def to_dict(self) -> dict:
        """Plain dict form; ``aggregated`` only appears when it was set."""
        return self.model_dump(exclude_none=True)


# Source variants. Exactly one describes any given task.

@dataclass(frozen=True)
class Shadow:
    value: Mapping


@dataclass(frozen=True)
class LegacyObject:
    value: Mapping


@dataclass(frozen=True)
class LegacyScalar:
    value: Number


@dataclass(frozen=True)
class Absent:
    pass


ProgressSource = Union[Shadow, LegacyObject, LegacyScalar, Absent]


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never meant "percent complete"
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _number_or_zero(value: Any) -> Number:
    return value if _is_number(value) else 0


def _field(task: Any, *names: str) -> Any:
    """Read the first non-None field among ``names`` from a dict or an object."""
    for name in names:
        if isinstance(task, Mapping):
            value = task.get(name)
        else:
            value = getattr(task, name, None)
        if value is not None:
            return value
    return None


def classify_progress(task: Any) -> ProgressSource:
    """Infer which schema generation ``task``'s progress was written under."""
    if task is None:
        return Absent()

    shadow = _field(task, "progressV13", "progress_v13")
    # Presence of the shadow object marks the row as migrated, whatever it holds
    if isinstance(shadow, Mapping):
        return Shadow(shadow)

    legacy = _field(task, "progress")
    if isinstance(legacy, Mapping):
        return LegacyObject(legacy)
    if _is_number(legacy):
        return LegacyScalar(legacy)

    return Absent()


def resolve_progress(task: Any) -> ResolvedProgress:
    """
    Safely resolve progress from a task in legacy (v12) or shadow (v13) state.

    Priority: progressV13 > progress (object) > progress (number) > zero.

    Accepts ``None``, a task document dict, or a ``Task`` row. Never raises
    and never mutates ``task``.
    """
    source = classify_progress(task)

    if isinstance(source, Shadow):
        aggregated = source.value.get("aggregated")
        return ResolvedProgress(
            actual=_number_or_zero(source.value.get("actual")),
            planned=_number_or_zero(source.value.get("planned")),
            aggregated=aggregated if _is_number(aggregated) else None,
        )

    if isinstance(source, LegacyObject):
        # Malformed legacy objects default each sub-field on its own
        return ResolvedProgress(
            actual=_number_or_zero(source.value.get("actual")),
            planned=_number_or_zero(source.value.get("planned")),
        )

    if isinstance(source, LegacyScalar):
        # Passed through as stored; some eras wrote 0-1 fractions, others 0-100
        return ResolvedProgress(actual=source.value, planned=0)

    return ResolvedProgress(actual=0, planned=0)


# Alias for backward compatibility
get_progress_safe = resolve_progress
