"""smart-todo - natural language task entry and recurring task scheduling."""

__version__ = "0.1.0"
__author__ = "smart-todo Team"

from .task import Task, Priority, RecurringPattern
from .parser import (
    NaturalLanguageParser,
    ParsedTask,
    ParseErrorKind,
    ParseResult,
    TaskBuilder,
    parse,
    parse_task_input,
    suggest,
)
from .recurring import (
    RecurrenceParser,
    RecurringTaskConfig,
    describe,
    generate_instances,
    next_due_date,
    should_create_new_instance,
)

__all__ = [
    "Task",
    "Priority",
    "RecurringPattern",
    "NaturalLanguageParser",
    "ParsedTask",
    "ParseErrorKind",
    "ParseResult",
    "TaskBuilder",
    "parse",
    "parse_task_input",
    "suggest",
    "RecurrenceParser",
    "RecurringTaskConfig",
    "describe",
    "generate_instances",
    "next_due_date",
    "should_create_new_instance",
    "__version__",
]
