"""Natural language parser for quick task entry.

Turns a line such as ``"Urgent meeting tomorrow at 2 PM #work 2h weekly"``
into a ``ParsedTask``. Extraction runs as a fixed pipeline of stages; each
stage looks for one kind of fragment, and on a hit removes the matched text
before the next stage runs, so one token can never fill two fields.

Stage order: labels, time of day, date, priority, estimate, recurrence, then
the leftover text becomes the name (and optional description).
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from fuzzywuzzy import fuzz, process

from .config import ConfigModel
from .task import Priority, RecurringPattern, Task
from .utils.datetime import add_months, at_minutes, ensure_aware, now_utc, start_of_day, to_iso_string

logger = logging.getLogger(__name__)


@dataclass
class ParsedTask:
    """Represents a parsed task with extracted metadata."""
    name: str
    description: Optional[str] = None
    date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    priority: Optional[Priority] = None
    labels: List[str] = field(default_factory=list)
    estimate: Optional[str] = None
    recurring_pattern: Optional[RecurringPattern] = None
    recurring_interval: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "date": to_iso_string(self.date),
            "deadline": to_iso_string(self.deadline),
            "priority": self.priority.value if self.priority else None,
            "labels": list(self.labels),
            "estimate": self.estimate,
            "recurring_pattern": self.recurring_pattern.value if self.recurring_pattern else None,
            "recurring_interval": self.recurring_interval,
        }


class ParseErrorKind(Enum):
    """Why a parse produced no task."""
    EMPTY_INPUT = "empty_input"
    PARSE_FAILURE = "parse_failure"


@dataclass
class ParseResult:
    """Outcome of ``parse``: either a task or an error kind, never both."""
    success: bool
    task: Optional[ParsedTask] = None
    error: Optional[ParseErrorKind] = None
    message: str = ""

    @classmethod
    def ok(cls, task: ParsedTask) -> "ParseResult":
        return cls(success=True, task=task)

    @classmethod
    def fail(cls, error: ParseErrorKind, message: str) -> "ParseResult":
        return cls(success=False, error=error, message=message)


@dataclass(frozen=True)
class PatternRule:
    """One row of a pattern table: a regex and a pure function of its match.

    ``extract`` receives the match object plus any stage context (the parse
    reference time for date rules) and returns the field value.
    """
    regex: Pattern
    extract: Callable[..., Any]


def _rule(pattern: str, extract: Callable[..., Any]) -> PatternRule:
    return PatternRule(re.compile(pattern, re.IGNORECASE), extract)


# --- time of day -----------------------------------------------------------

def _clock_minutes(match) -> int:
    hours = int(match.group(1))
    minutes = int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid clock time {match.group(0)!r}")
    period = (match.group(3) or "").lower()
    if period == "pm" and hours < 12:
        return (hours + 12) * 60 + minutes
    if period == "am" and hours == 12:
        return minutes
    return hours * 60 + minutes


def _hour_minutes(match) -> int:
    hours = int(match.group(1))
    if hours > 23:
        raise ValueError(f"Invalid clock time {match.group(0)!r}")
    period = match.group(2).lower()
    if period == "pm" and hours < 12:
        return (hours + 12) * 60
    if period == "am" and hours == 12:
        return 0
    return hours * 60


TIME_RULES: Tuple[PatternRule, ...] = (
    _rule(r"\bat\s*(\d{1,2}):(\d{2})\s*(am|pm)?\b", _clock_minutes),
    _rule(r"\bat\s*(\d{1,2})\s*(am|pm)\b", _hour_minutes),
    _rule(r"\b(\d{1,2}):(\d{2})\s*(am|pm)?\b", _clock_minutes),
    _rule(r"\b(\d{1,2})\s*(am|pm)\b", _hour_minutes),
    _rule(r"\bnoon\b", lambda m: 12 * 60),
    _rule(r"\bmidnight\b", lambda m: 0),
    _rule(r"\bmorning\b", lambda m: 9 * 60),
    _rule(r"\bafternoon\b", lambda m: 14 * 60),
    _rule(r"\bevening\b", lambda m: 18 * 60),
)


# --- calendar date ---------------------------------------------------------

def _next_weekday(weekday: int) -> Callable[..., datetime]:
    """Build an extractor for the next ``weekday`` (0=Monday) strictly after today."""
    def extract(match, today: datetime) -> datetime:
        days_ahead = (weekday - today.weekday()) % 7
        return today + timedelta(days=days_ahead or 7)
    return extract


def _slash_date(match, today: datetime) -> datetime:
    month, day, year = (int(g) for g in match.groups())
    if year < 100:
        year += 2000
    return datetime(year, month, day, tzinfo=today.tzinfo)


def _iso_date(match, today: datetime) -> datetime:
    year, month, day = (int(g) for g in match.groups())
    return datetime(year, month, day, tzinfo=today.tzinfo)


_WEEKDAY_WORDS = (
    "monday|mon",
    "tuesday|tues|tue",
    "wednesday|wed",
    "thursday|thurs|thu",
    "friday|fri",
    "saturday|sat",
    "sunday|sun",
)

DATE_RULES: Tuple[PatternRule, ...] = (
    _rule(r"\btoday\b", lambda m, today: today),
    _rule(r"\btomorrow\b", lambda m, today: today + timedelta(days=1)),
    _rule(r"\byesterday\b", lambda m, today: today - timedelta(days=1)),
    _rule(r"\bnext\s+week\b", lambda m, today: today + timedelta(weeks=1)),
    _rule(r"\bnext\s+month\b", lambda m, today: add_months(today, 1)),
    _rule(r"\bnext\s+year\b", lambda m, today: add_months(today, 12)),
) + tuple(
    _rule(rf"\b(?:next\s+)?(?:{words})\b", _next_weekday(weekday))
    for weekday, words in enumerate(_WEEKDAY_WORDS)
) + (
    _rule(r"\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b", _slash_date),
    _rule(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b", _iso_date),
)


# --- priority, estimate, recurrence ----------------------------------------

PRIORITY_RULES: Tuple[PatternRule, ...] = (
    _rule(r"\b(?:urgent|asap|critical|emergency)\b(?:\s+priority\b)?", lambda m: Priority.HIGH),
    _rule(r"\b(?:important|high)\b(?:\s+priority\b)?", lambda m: Priority.HIGH),
    _rule(r"\b(?:medium|moderate|normal)\b(?:\s+priority\b)?", lambda m: Priority.MEDIUM),
    _rule(r"\b(?:low|minor|casual)\b(?:\s+priority\b)?", lambda m: Priority.LOW),
)

# The full matched text is kept as the estimate so "1h 30m" displays as typed
ESTIMATE_RULES: Tuple[PatternRule, ...] = (
    _rule(r"\b(\d+)\s*h(?:ours?|rs?)?\s*(\d+)\s*m(?:in(?:ute)?s?)?\b", lambda m: m.group(0)),
    _rule(r"\b(\d+)\s*h(?:ours?|rs?)?\b", lambda m: m.group(0)),
    _rule(r"\b(\d+)\s*m(?:in(?:ute)?s?)?\b", lambda m: m.group(0)),
)

RECURRENCE_KEYWORD_RULES: Tuple[PatternRule, ...] = (
    _rule(r"\b(?:daily|every\s+day)\b", lambda m: (RecurringPattern.DAILY, 1)),
    _rule(r"\b(?:weekly|every\s+week)\b", lambda m: (RecurringPattern.WEEKLY, 1)),
    _rule(r"\b(?:monthly|every\s+month)\b", lambda m: (RecurringPattern.MONTHLY, 1)),
    _rule(r"\b(?:yearly|annually|every\s+year)\b", lambda m: (RecurringPattern.YEARLY, 1)),
)

RECURRENCE_INTERVAL_RULES: Tuple[PatternRule, ...] = (
    _rule(r"\bevery\s+([1-9]\d*)\s+days?\b", lambda m: (RecurringPattern.DAILY, int(m.group(1)))),
    _rule(r"\bevery\s+([1-9]\d*)\s+weeks?\b", lambda m: (RecurringPattern.WEEKLY, int(m.group(1)))),
    _rule(r"\bevery\s+([1-9]\d*)\s+months?\b", lambda m: (RecurringPattern.MONTHLY, int(m.group(1)))),
    _rule(r"\bevery\s+([1-9]\d*)\s+years?\b", lambda m: (RecurringPattern.YEARLY, int(m.group(1)))),
)

RECURRENCE_RULES = RECURRENCE_KEYWORD_RULES + RECURRENCE_INTERVAL_RULES

LABEL_RE = re.compile(r"#(\w+)")
DESCRIPTION_RE = re.compile(r"^(.+?)(?:\s+-\s+|:\s+)(.+)$")
# A preposition left dangling in front of a removed date or time ("by friday")
LEADING_PREPOSITION_RE = re.compile(r"\b(?:on|by|for|at|due)\s*$", re.IGNORECASE)


# --- pipeline stages -------------------------------------------------------

def _cut(text: str, match) -> str:
    return f"{text[:match.start()]} {text[match.end():]}"


def _cut_with_preposition(text: str, match) -> str:
    before = LEADING_PREPOSITION_RE.sub("", text[:match.start()])
    return f"{before} {text[match.end():]}"


def _normalize(text: str) -> str:
    return " ".join(text.split())


def find_first(rules: Sequence[PatternRule], text: str):
    """Return ``(rule, match)`` for the first rule that matches, else ``(None, None)``."""
    for rule in rules:
        match = rule.regex.search(text)
        if match:
            return rule, match
    return None, None


def _first_match_stage(rules: Sequence[PatternRule], text: str, *context, cut=_cut) -> Tuple[Any, str]:
    rule, match = find_first(rules, text)
    if rule is None:
        return None, text
    return rule.extract(match, *context), cut(text, match)


def extract_labels(text: str) -> Tuple[List[str], str]:
    """Pull every ``#tag`` out of the text, lowercased, in order of appearance."""
    labels = [tag.lower() for tag in LABEL_RE.findall(text)]
    return labels, LABEL_RE.sub(" ", text)


def extract_time(text: str) -> Tuple[Optional[int], str]:
    """Minutes since midnight for the first recognised time of day."""
    return _first_match_stage(TIME_RULES, text, cut=_cut_with_preposition)


def extract_date(text: str, now: datetime) -> Tuple[Optional[datetime], str]:
    """Start of day for the first recognised date, relative to ``now``."""
    return _first_match_stage(DATE_RULES, text, start_of_day(now), cut=_cut_with_preposition)


def extract_priority(text: str) -> Tuple[Optional[Priority], str]:
    return _first_match_stage(PRIORITY_RULES, text)


def extract_estimate(text: str) -> Tuple[Optional[str], str]:
    return _first_match_stage(ESTIMATE_RULES, text)


def extract_recurrence(text: str) -> Tuple[Optional[Tuple[RecurringPattern, int]], str]:
    """Keyword patterns are tried before ``every N <unit>`` patterns."""
    return _first_match_stage(RECURRENCE_RULES, text)


def split_name(text: str) -> Tuple[str, Optional[str]]:
    """Collapse whitespace and split ``name - description`` / ``name: description``."""
    name = _normalize(text)
    match = DESCRIPTION_RE.match(name)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    return name, None


# --- suggestions -----------------------------------------------------------

HINTS: Tuple[Tuple[str, str], ...] = (
    ("time", 'Add time: "2 PM", "14:30", "morning"'),
    ("date", 'Add date: "tomorrow", "Monday", "next week"'),
    ("priority", 'Add priority: "urgent", "important", "low priority"'),
    ("labels", 'Add labels: "#work", "#personal", "#urgent"'),
    ("estimate", 'Add estimate: "2h", "30m", "1h 30m"'),
    ("recurrence", 'Add recurring: "daily", "weekly", "every 2 weeks"'),
)


def detect_categories(text: str) -> Dict[str, bool]:
    """Report which optional categories ``parse`` would fill for ``text``.

    Runs the same tables in the same order as the parse pipeline, consuming
    matches as it goes, but never builds values, so it cannot fail.
    """
    found = {"labels": bool(LABEL_RE.search(text))}
    remaining = LABEL_RE.sub(" ", text)
    for category, rules in (
        ("time", TIME_RULES),
        ("date", DATE_RULES),
        ("priority", PRIORITY_RULES),
        ("estimate", ESTIMATE_RULES),
        ("recurrence", RECURRENCE_RULES),
    ):
        _, match = find_first(rules, remaining)
        found[category] = match is not None
        if match:
            remaining = _cut(remaining, match)
    return found


class NaturalLanguageParser:
    """Parser for free-form task entry."""

    def __init__(self, config: Optional[ConfigModel] = None):
        self.config = config or ConfigModel()

    def parse(self, input_text: str, now: Optional[datetime] = None) -> ParseResult:
        """Parse natural language input into structured task data.

        Never raises: blank input yields ``EMPTY_INPUT`` and any unexpected
        error (an impossible date such as ``2/30/2024`` included) yields
        ``PARSE_FAILURE`` with no partial task.
        """
        cleaned = (input_text or "").strip()
        if not cleaned:
            return ParseResult.fail(ParseErrorKind.EMPTY_INPUT, "Empty input")

        try:
            task = self._run_pipeline(cleaned, ensure_aware(now) if now else now_utc())
        except Exception:
            logger.warning(f"Failed to parse task input {cleaned!r}", exc_info=True)
            return ParseResult.fail(ParseErrorKind.PARSE_FAILURE, "Failed to parse input")

        if task is None:
            return ParseResult.fail(ParseErrorKind.EMPTY_INPUT, "No task name left after parsing")

        logger.debug(f"Parsed {cleaned!r} -> {task}")
        return ParseResult.ok(task)

    def _run_pipeline(self, text: str, now: datetime) -> Optional[ParsedTask]:
        labels, remaining = extract_labels(text)
        minutes, remaining = extract_time(remaining)
        day, remaining = extract_date(remaining, now)

        scheduled = deadline = None
        if day is not None and minutes is not None:
            scheduled = at_minutes(day, minutes)
        elif day is not None:
            scheduled = day
        elif minutes is not None:
            deadline = at_minutes(now, minutes)

        priority, remaining = extract_priority(remaining)
        estimate, remaining = extract_estimate(remaining)
        recurrence, remaining = extract_recurrence(remaining)

        name, description = split_name(remaining)
        if not name:
            return None

        pattern, interval = recurrence if recurrence else (None, None)
        return ParsedTask(
            name=name,
            description=description,
            date=scheduled,
            deadline=deadline,
            priority=priority,
            labels=labels,
            estimate=estimate,
            recurring_pattern=pattern,
            recurring_interval=interval,
        )

    def suggest(self, input_text: str) -> List[str]:
        """Hints for each optional category the input does not fill yet."""
        text = (input_text or "").strip()
        if len(text) < self.config.suggestion_min_length:
            return []

        found = detect_categories(text)
        return [hint for category, hint in HINTS if not found[category]]

    def suggest_corrections(self, input_text: str, available_labels: Optional[List[str]] = None) -> List[str]:
        """Suggest known labels for hashtags that look like typos."""
        suggestions = []
        if not available_labels:
            return suggestions

        known = [label.lower() for label in available_labels]
        for label in LABEL_RE.findall(input_text or ""):
            label = label.lower()
            if label in known:
                continue
            close_matches = process.extractBests(
                label, known, scorer=fuzz.ratio, score_cutoff=self.config.fuzzy_match_cutoff, limit=3
            )
            if close_matches:
                suggestions.append(f"Did you mean #{close_matches[0][0]} instead of #{label}?")

        return suggestions


class TaskBuilder:
    """Builds Task records from parsed task data."""

    def __init__(self, config: Optional[ConfigModel] = None):
        self.config = config or ConfigModel()

    def build(self, parsed: ParsedTask, task_id: Optional[int] = None, list_id: Optional[str] = None) -> Task:
        """Build a Task from parsed task data, filling absent fields from config."""
        recurring = parsed.recurring_pattern is not None
        return Task(
            id=task_id,
            name=parsed.name,
            description=parsed.description,
            date=parsed.date,
            deadline=parsed.deadline,
            estimate=parsed.estimate,
            priority=parsed.priority or self.config.default_priority,
            list_id=list_id or self.config.default_list,
            labels=list(parsed.labels),
            is_recurring=recurring,
            recurring_pattern=parsed.recurring_pattern,
            recurring_interval=(parsed.recurring_interval or 1) if recurring else None,
        )


_default_parser = NaturalLanguageParser()


def parse(input_text: str, now: Optional[datetime] = None) -> ParseResult:
    """Parse with default configuration."""
    return _default_parser.parse(input_text, now)


def suggest(input_text: str) -> List[str]:
    """Category hints with default configuration."""
    return _default_parser.suggest(input_text)


def parse_task_input(input_text: str, config: ConfigModel,
                     available_labels: Optional[List[str]] = None,
                     now: Optional[datetime] = None) -> Tuple[ParseResult, List[str], List[str]]:
    """Parse input and collect category hints and label corrections in one call."""
    parser = NaturalLanguageParser(config)
    result = parser.parse(input_text, now)
    hints = parser.suggest(input_text)
    corrections = parser.suggest_corrections(input_text, available_labels)
    return result, hints, corrections
