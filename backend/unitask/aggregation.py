"""Project-level progress roll-ups built on resolved task progress."""

from typing import Any, Iterable

from pydantic import BaseModel

from unitask.data_migration import resolve_progress


class ProgressSummary(BaseModel):
    task_count: int = 0
    actual_total: float = 0
    planned_total: float = 0
    actual_average: float = 0
    planned_average: float = 0


def summarize_progress(tasks: Iterable[Any]) -> ProgressSummary:
    """Sum and average ``actual``/``planned`` over ``tasks`` (documents or rows)."""
    count = 0
    actual_total = 0.0
    planned_total = 0.0
    for task in tasks:
        progress = resolve_progress(task)
        actual_total += progress.actual
        planned_total += progress.planned
        count += 1

    if count == 0:
        return ProgressSummary()

    return ProgressSummary(
        task_count=count,
        actual_total=actual_total,
        planned_total=planned_total,
        actual_average=round(actual_total / count, 2),
        planned_average=round(planned_total / count, 2),
    )
