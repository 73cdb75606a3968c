# taskboard/services/statistics.py
"""Assembly of the dashboard statistics from raw counts"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping

from taskboard.api.v1.schemas.tasks import PriorityBreakdown, TaskStatistics
from taskboard.db.models.enums import Priority

_TWO_PLACES = Decimal("0.01")


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks, rounded half-up to 2 decimal places"""
    if total <= 0:
        return 0.0
    rate = Decimal(completed) * 100 / Decimal(total)
    return float(rate.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def build_task_statistics(
        total: int,
        completed: int,
        overdue: int,
        priority_counts: Mapping[int, int]
) -> TaskStatistics:
    """
    Combine counts into the statistics payload.

    Every priority level is listed, in ascending order, even when no task
    currently has it.
    """
    by_priority = [
        PriorityBreakdown(
            priority=priority,
            label=priority.label,
            count=priority_counts.get(int(priority), 0)
        )
        for priority in Priority
    ]

    return TaskStatistics(
        total=total,
        completed=completed,
        pending=total - completed,
        overdue=overdue,
        completion_rate=completion_rate(completed, total),
        by_priority=by_priority
    )
