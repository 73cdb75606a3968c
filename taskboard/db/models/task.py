# taskboard/db/models/task.py
"""Task model"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from taskboard.db.models.base import Base, TimestampMixin, UUIDMixin
from taskboard.db.models.enums import Priority

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


class Task(Base, UUIDMixin, TimestampMixin):
    """A single to-do item. ``order_index`` is its position in the board."""
    __tablename__ = "tasks"

    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    description = Column(String(DESCRIPTION_MAX_LENGTH), nullable=True)
    priority = Column(Integer, nullable=False, default=int(Priority.MEDIUM))
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index('idx_task_order_index', 'order_index'),
        Index('idx_task_completed_due', 'completed', 'due_date'),
        Index('idx_task_priority', 'priority'),
        Index('idx_task_created_at', 'created_at'),
    )

    def __repr__(self):
        return f"<Task title={self.title} order_index={self.order_index}>"
