# taskboard/utils/validators.py
from typing import Optional, Tuple, List, Any, Mapping, Sequence
from datetime import datetime
from uuid import UUID

from taskboard.db.models.enums import Priority
from taskboard.utils.helpers import ensure_utc, utc_now


class TaskRuleValidator:
    """Business rules a task must satisfy at write time"""

    @staticmethod
    def validate_high_priority_due_date(priority: Optional[int], due_date: Optional[datetime]) -> Tuple[bool, Optional[str]]:
        """
        High priority tasks must carry a due date
        Returns (is_valid, error_message)
        """
        if priority == Priority.HIGH and due_date is None:
            return False, "High priority tasks must have a due date"
        return True, None

    @staticmethod
    def validate_future_due_date(due_date: Optional[datetime], now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        """A supplied due date must lie strictly in the future"""
        if due_date is None:
            return True, None
        now = ensure_utc(now) if now is not None else utc_now()
        if ensure_utc(due_date) <= now:
            return False, "Due date must be in the future"
        return True, None

    @classmethod
    def validate_create(cls, data: Mapping[str, Any], now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        """Validate the fields of a task about to be created"""
        is_valid, message = cls.validate_high_priority_due_date(data.get("priority"), data.get("due_date"))
        if not is_valid:
            return is_valid, message
        return cls.validate_future_due_date(data.get("due_date"), now)

    @classmethod
    def validate_update(cls, existing: Any, changes: Mapping[str, Any], now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        """
        Validate a partial update against the stored task.

        The effective priority and due date are the supplied values when
        present in ``changes`` (an explicit None clears the due date),
        otherwise the stored ones.
        """
        priority = changes["priority"] if "priority" in changes else existing.priority
        due_date = changes["due_date"] if "due_date" in changes else existing.due_date

        is_valid, message = cls.validate_high_priority_due_date(priority, due_date)
        if not is_valid:
            return is_valid, message

        # Only a newly supplied due date has to be in the future
        if "due_date" in changes:
            return cls.validate_future_due_date(changes["due_date"], now)
        return True, None

    @staticmethod
    def validate_task_ids(task_ids: Sequence[UUID]) -> Tuple[bool, Optional[str]]:
        """Bulk requests need at least one ID and no repeats"""
        if not task_ids:
            return False, "At least one task ID is required"

        seen = set()
        duplicates: List[str] = []
        for task_id in task_ids:
            if task_id in seen and str(task_id) not in duplicates:
                duplicates.append(str(task_id))
            seen.add(task_id)
        if duplicates:
            return False, f"Duplicate task IDs: {', '.join(duplicates)}"
        return True, None
