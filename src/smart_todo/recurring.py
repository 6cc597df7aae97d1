"""
Recurring task engine for smart-todo.

Computes next occurrence dates for a recurring task definition, materializes
instance drafts over a date window, and decides when a new instance is due.
Every function here is pure: configs and templates are passed by value and
nothing is stored between calls, so a series being exhausted (past its end
date) is re-evaluated on every call.

"No result" outcomes (not recurring, series exhausted, unusable pattern) are
returned as ``None``/``False``/``[]`` rather than raised.
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .task import RecurringPattern, Task
from .utils.datetime import DateLike, add_months, ensure_aware, now_utc, sunday_weekday

logger = logging.getLogger(__name__)

DAY_ABBREVIATIONS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class RecurringTaskConfig:
    """Recurrence settings attached to a template task.

    ``days_of_week`` uses 0=Sunday ... 6=Saturday and only applies to the
    custom pattern; ``day_of_month`` only applies to the monthly pattern.
    ``end_date`` is inclusive: an occurrence on the end date is still valid.
    A string ``pattern`` is converted to the enum when it names one.
    """
    is_recurring: bool = True
    pattern: RecurringPattern = RecurringPattern.DAILY
    interval: int = 1
    end_date: Optional[DateLike] = None
    days_of_week: Tuple[int, ...] = ()
    day_of_month: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.pattern, str):
            try:
                object.__setattr__(self, "pattern", RecurringPattern(self.pattern.lower()))
            except ValueError:
                # Left as-is; next_due_date treats it as unusable
                pass
        object.__setattr__(self, "days_of_week", tuple(self.days_of_week or ()))


def _as_day(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def _is_after(a: DateLike, b: DateLike) -> bool:
    """``a > b``; mixed date/datetime values are compared by calendar day."""
    if isinstance(a, datetime) and isinstance(b, datetime):
        return ensure_aware(a) > ensure_aware(b)
    return _as_day(a) > _as_day(b)


def _next_custom_date(base: DateLike, days_of_week: Tuple[int, ...]) -> Optional[DateLike]:
    days = {day for day in days_of_week if isinstance(day, int) and 0 <= day <= 6}
    if not days:
        return None

    current = sunday_weekday(base)
    # A matching base weekday moves to next week's occurrence
    days_ahead = min((day - current) % 7 or 7 for day in days)
    return base + timedelta(days=days_ahead)


def _step(base: DateLike, config: RecurringTaskConfig) -> Optional[DateLike]:
    pattern = config.pattern
    if pattern == RecurringPattern.CUSTOM:
        return _next_custom_date(base, config.days_of_week)

    interval = config.interval
    if not isinstance(interval, int) or interval < 1:
        return None

    if pattern == RecurringPattern.DAILY:
        return base + timedelta(days=interval)
    if pattern == RecurringPattern.WEEKLY:
        return base + timedelta(weeks=interval)
    if pattern == RecurringPattern.MONTHLY:
        day = config.day_of_month
        if day is not None and not 1 <= day <= 31:
            day = None
        return add_months(base, interval, day)
    if pattern == RecurringPattern.YEARLY:
        return add_months(base, 12 * interval)
    return None


def next_due_date(base: DateLike, config: RecurringTaskConfig) -> Optional[DateLike]:
    """Next occurrence strictly after ``base``, or None.

    Returns None when the config is not recurring, the pattern cannot produce
    a date, or the candidate falls after ``config.end_date``. The result has
    the same type, clock time and timezone as ``base``.
    """
    if not config.is_recurring:
        return None

    candidate = _step(base, config)
    if candidate is None:
        logger.debug(f"No next date for pattern {config.pattern!r} (interval={config.interval})")
        return None

    if config.end_date is not None and _is_after(candidate, config.end_date):
        logger.debug(f"Series exhausted: {candidate} is after end date {config.end_date}")
        return None

    return candidate


def should_create_new_instance(last_instance_date: Optional[DateLike], config: RecurringTaskConfig,
                               now: Optional[DateLike] = None) -> bool:
    """Whether the instance following ``last_instance_date`` is due by ``now``.

    With no previous instance the first one is always due. Overdue
    occurrences count as due, so a late scheduler run catches up.
    """
    if not config.is_recurring:
        return False
    if last_instance_date is None:
        return True

    next_date = next_due_date(last_instance_date, config)
    if next_date is None:
        return False

    return not _is_after(next_date, now if now is not None else now_utc())


def build_instance(template: Task, occurrence: DateLike, stamp: datetime) -> Task:
    """Instance draft of ``template`` scheduled on ``occurrence``."""
    return replace(
        template,
        id=None,
        date=occurrence,
        completed=False,
        parent_recurring_task_id=template.id,
        labels=list(template.labels),
        recurring_days_of_week=list(template.recurring_days_of_week),
        created_at=stamp,
        updated_at=stamp,
    )


def generate_instances(template: Task, config: RecurringTaskConfig, start: DateLike, end: DateLike,
                       now: Optional[datetime] = None) -> List[Task]:
    """Instance drafts for every occurrence in ``[start, end)``.

    The first draft sits on ``start`` itself; later ones follow
    ``next_due_date``. Generation also stops at the config's end date.
    Drafts are stamped with ``now`` (current time by default), so repeated
    calls with the same ``now`` return equal lists.
    """
    if not config.is_recurring:
        return []

    stamp = ensure_aware(now) if now is not None else now_utc()
    instances = []
    current = start
    while _is_after(end, current):
        if config.end_date is not None and _is_after(current, config.end_date):
            break

        instances.append(build_instance(template, current, stamp))

        next_date = next_due_date(current, config)
        if next_date is None or not _is_after(next_date, current):
            break
        current = next_date

    return instances


def describe(config: RecurringTaskConfig) -> str:
    """Human readable label such as "Weekly", "Every 3 weeks" or "Weekly on Mon, Wed"."""
    if not config.is_recurring:
        return ""

    interval = config.interval
    units = {
        RecurringPattern.DAILY: ("Daily", "days"),
        RecurringPattern.WEEKLY: ("Weekly", "weeks"),
        RecurringPattern.MONTHLY: ("Monthly", "months"),
        RecurringPattern.YEARLY: ("Yearly", "years"),
    }

    if config.pattern in units:
        single, plural = units[config.pattern]
        return single if interval == 1 else f"Every {interval} {plural}"

    if config.pattern == RecurringPattern.CUSTOM:
        days = sorted({day for day in config.days_of_week if 0 <= day <= 6})
        if not days:
            return "Custom"
        names = ", ".join(DAY_ABBREVIATIONS[day] for day in days)
        return f"Weekly on {names}" if interval == 1 else f"Every {interval} weeks on {names}"

    return ""


class RecurrenceParser:
    """Parses standalone recurrence phrases into configs."""

    DAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

    PATTERNS = {
        # Daily
        r'^(?:daily|every day)$': (RecurringPattern.DAILY, {}),
        r'^every (\d+) days?$': (RecurringPattern.DAILY, lambda m: {'interval': int(m.group(1))}),

        # Weekly
        r'^(?:weekly|every week)$': (RecurringPattern.WEEKLY, {}),
        r'^every (\d+) weeks?$': (RecurringPattern.WEEKLY, lambda m: {'interval': int(m.group(1))}),
        r'^every (sunday|monday|tuesday|wednesday|thursday|friday|saturday)$':
            (RecurringPattern.CUSTOM, lambda m: {'days_of_week': (RecurrenceParser.day_name_to_number(m.group(1)),)}),
        r'^weekdays$': (RecurringPattern.CUSTOM, {'days_of_week': (1, 2, 3, 4, 5)}),
        r'^weekends$': (RecurringPattern.CUSTOM, {'days_of_week': (0, 6)}),

        # Monthly
        r'^(?:monthly|every month)$': (RecurringPattern.MONTHLY, {}),
        r'^every (\d+) months?$': (RecurringPattern.MONTHLY, lambda m: {'interval': int(m.group(1))}),
        r'^monthly on the (\d{1,2})(?:st|nd|rd|th)?$':
            (RecurringPattern.MONTHLY, lambda m: {'day_of_month': int(m.group(1))}),

        # Yearly
        r'^(?:yearly|annually|every year)$': (RecurringPattern.YEARLY, {}),
        r'^every (\d+) years?$': (RecurringPattern.YEARLY, lambda m: {'interval': int(m.group(1))}),
    }

    @classmethod
    def day_name_to_number(cls, day_name: str) -> int:
        """Convert day name to number (0=Sunday)"""
        return cls.DAY_NAMES.index(day_name.lower())

    @classmethod
    def parse(cls, pattern_str: str, end_date: Optional[DateLike] = None) -> Optional[RecurringTaskConfig]:
        """Parse a natural language recurrence phrase, or return None."""
        pattern_str = " ".join((pattern_str or "").lower().split())

        for regex, (pattern, params) in cls.PATTERNS.items():
            match = re.match(regex, pattern_str)
            if match:
                if callable(params):
                    params = params(match)
                config = RecurringTaskConfig(pattern=pattern, end_date=end_date, **params)
                if config.interval < 1 or (config.day_of_month is not None and not 1 <= config.day_of_month <= 31):
                    return None
                return config

        return None


def config_from_parsed(parsed, end_date: Optional[DateLike] = None) -> Optional[RecurringTaskConfig]:
    """Config for a ``ParsedTask`` that carries a recurrence, else None."""
    if parsed.recurring_pattern is None:
        return None
    return RecurringTaskConfig(
        pattern=parsed.recurring_pattern,
        interval=parsed.recurring_interval or 1,
        end_date=end_date,
    )


def config_from_task(task: Task) -> RecurringTaskConfig:
    """Config stored on a template task; pattern defaults to daily, interval to 1."""
    return RecurringTaskConfig(
        is_recurring=task.is_recurring,
        pattern=task.recurring_pattern or RecurringPattern.DAILY,
        interval=task.recurring_interval or 1,
        end_date=task.recurring_end_date,
        days_of_week=tuple(task.recurring_days_of_week),
        day_of_month=task.recurring_day_of_month,
    )


def config_to_dict(config: RecurringTaskConfig) -> Dict[str, Any]:
    """Plain dict form of a config, e.g. for JSON output."""
    pattern = config.pattern
    return {
        "is_recurring": config.is_recurring,
        "pattern": pattern.value if isinstance(pattern, RecurringPattern) else pattern,
        "interval": config.interval,
        "end_date": config.end_date.isoformat() if config.end_date else None,
        "days_of_week": list(config.days_of_week),
        "day_of_month": config.day_of_month,
    }
