"""Task record model shared by recurring templates and generated instances."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .utils.datetime import DateLike, ensure_aware, now_utc, parse_date_value, to_iso_string


class Priority(Enum):
    """Task priority levels."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NONE = "None"


class RecurringPattern(Enum):
    """Recurrence periods understood by the recurrence engine."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"  # Explicit days of week


def _aware(value: Optional[DateLike]) -> Optional[DateLike]:
    # Plain dates carry no timezone
    if isinstance(value, datetime):
        return ensure_aware(value)
    return value


@dataclass
class Task:
    """A task record.

    The same shape is used for ordinary tasks, recurring templates and the
    instance drafts generated from them. Drafts have ``id=None`` until the
    storage layer assigns one.
    """

    id: Optional[int]
    name: str
    description: Optional[str] = None

    # Scheduling
    date: Optional[DateLike] = None
    deadline: Optional[datetime] = None
    estimate: Optional[str] = None  # "2h", "1h 30m", "45m"
    actual_time: Optional[str] = None

    # Organization
    priority: Priority = Priority.NONE
    list_id: str = "inbox"
    labels: List[str] = field(default_factory=list)
    completed: bool = False

    # Recurrence
    is_recurring: bool = False
    recurring_pattern: Optional[RecurringPattern] = None
    recurring_interval: Optional[int] = None
    recurring_end_date: Optional[DateLike] = None
    recurring_days_of_week: List[int] = field(default_factory=list)  # 0=Sunday
    recurring_day_of_month: Optional[int] = None
    parent_recurring_task_id: Optional[int] = None

    # Metadata
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def __post_init__(self):
        self.date = _aware(self.date)
        self.deadline = _aware(self.deadline)
        self.recurring_end_date = _aware(self.recurring_end_date)
        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)

    @property
    def is_template(self) -> bool:
        """True for a recurring definition that spawns instances."""
        return self.is_recurring and self.parent_recurring_task_id is None

    @property
    def is_instance(self) -> bool:
        """True for a task generated from a recurring template."""
        return self.parent_recurring_task_id is not None

    def complete(self, now: Optional[datetime] = None):
        """Mark the task as completed."""
        self.completed = True
        self.updated_at = ensure_aware(now) if now else now_utc()

    def reopen(self, now: Optional[datetime] = None):
        """Reopen a completed task."""
        self.completed = False
        self.updated_at = ensure_aware(now) if now else now_utc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the Task to a dictionary with ISO date strings."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "date": to_iso_string(self.date),
            "deadline": to_iso_string(self.deadline),
            "estimate": self.estimate,
            "actual_time": self.actual_time,
            "priority": self.priority.value,
            "list_id": self.list_id,
            "labels": list(self.labels),
            "completed": self.completed,
            "is_recurring": self.is_recurring,
            "recurring_pattern": self.recurring_pattern.value if self.recurring_pattern else None,
            "recurring_interval": self.recurring_interval,
            "recurring_end_date": to_iso_string(self.recurring_end_date),
            "recurring_days_of_week": list(self.recurring_days_of_week),
            "recurring_day_of_month": self.recurring_day_of_month,
            "parent_recurring_task_id": self.parent_recurring_task_id,
            "created_at": to_iso_string(self.created_at),
            "updated_at": to_iso_string(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create a Task from a dictionary produced by ``to_dict``."""
        def parse_value(value: Optional[str]):
            if value:
                try:
                    return parse_date_value(value)
                except ValueError:
                    return None
            return None

        pattern = data.get("recurring_pattern")
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            description=data.get("description"),
            date=parse_value(data.get("date")),
            deadline=parse_value(data.get("deadline")),
            estimate=data.get("estimate"),
            actual_time=data.get("actual_time"),
            priority=Priority(data.get("priority", "None")),
            list_id=data.get("list_id", "inbox"),
            labels=data.get("labels", []),
            completed=data.get("completed", False),
            is_recurring=data.get("is_recurring", False),
            recurring_pattern=RecurringPattern(pattern) if pattern else None,
            recurring_interval=data.get("recurring_interval"),
            recurring_end_date=parse_value(data.get("recurring_end_date")),
            recurring_days_of_week=data.get("recurring_days_of_week", []),
            recurring_day_of_month=data.get("recurring_day_of_month"),
            parent_recurring_task_id=data.get("parent_recurring_task_id"),
            created_at=parse_value(data.get("created_at")) or now_utc(),
            updated_at=parse_value(data.get("updated_at")) or now_utc(),
        )
