"""Application services for smart-todo."""

from .recurring_scheduler import RecurringScheduler

__all__ = [
    "RecurringScheduler",
]
