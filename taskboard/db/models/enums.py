# taskboard/db/models/enums.py
import enum


class Priority(enum.IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.title()


class TaskStatusFilter(str, enum.Enum):
    """Completion filter for task listings"""
    ALL = "all"
    COMPLETED = "completed"
    PENDING = "pending"


class TaskSortField(str, enum.Enum):
    """Fields a task listing can be sorted by (wire names)"""
    DUE_DATE = "dueDate"
    PRIORITY = "priority"
    CREATED_AT = "createdAt"
    TITLE = "title"
    ORDER_INDEX = "orderIndex"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"
