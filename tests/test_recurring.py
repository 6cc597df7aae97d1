"""Tests for the recurring task engine."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone

import pytest

from smart_todo.parser import ParsedTask
from smart_todo.recurring import (
    RecurrenceParser, RecurringTaskConfig, config_from_parsed, config_from_task,
    describe, generate_instances, next_due_date, should_create_new_instance,
)
from smart_todo.task import Priority, RecurringPattern, Task

UTC = timezone.utc


def cfg(pattern=RecurringPattern.DAILY, interval=1, **kwargs):
    return RecurringTaskConfig(pattern=pattern, interval=interval, **kwargs)


class TestNextDueDate:
    """Calendar arithmetic per pattern."""

    def test_daily(self):
        assert next_due_date(date(2024, 1, 1), cfg()) == date(2024, 1, 2)

    def test_weekly_interval(self):
        assert next_due_date(date(2024, 1, 1), cfg(RecurringPattern.WEEKLY, 2)) == date(2024, 1, 15)

    def test_monthly_keeps_day(self):
        result = next_due_date(date(2024, 1, 15), cfg(RecurringPattern.MONTHLY))

        assert (result.month, result.day) == (2, 15)

    @pytest.mark.parametrize("base,interval,expected", [
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2023, 1, 31), 1, date(2023, 2, 28)),
        (date(2024, 11, 30), 3, date(2025, 2, 28)),
        (date(2024, 12, 15), 1, date(2025, 1, 15)),
    ])
    def test_monthly_clamps_to_month_length(self, base, interval, expected):
        assert next_due_date(base, cfg(RecurringPattern.MONTHLY, interval)) == expected

    def test_monthly_day_of_month(self):
        assert next_due_date(date(2024, 1, 15), cfg(RecurringPattern.MONTHLY, day_of_month=10)) == date(2024, 2, 10)
        assert next_due_date(date(2024, 1, 15), cfg(RecurringPattern.MONTHLY, day_of_month=31)) == date(2024, 2, 29)

    def test_yearly_leap_day(self):
        assert next_due_date(date(2024, 2, 29), cfg(RecurringPattern.YEARLY)) == date(2025, 2, 28)
        assert next_due_date(date(2024, 2, 29), cfg(RecurringPattern.YEARLY, 4)) == date(2028, 2, 29)

    def test_datetime_keeps_clock_and_timezone(self):
        base = datetime(2024, 1, 1, 14, 30, tzinfo=UTC)

        assert next_due_date(base, cfg()) == datetime(2024, 1, 2, 14, 30, tzinfo=UTC)

    def test_pattern_given_as_string(self):
        assert next_due_date(date(2024, 1, 1), cfg("Weekly")) == date(2024, 1, 8)


class TestCustomPattern:
    """Explicit days of week, 0=Sunday."""

    def test_next_listed_day(self):
        # 2024-01-01 is a Monday
        assert next_due_date(date(2024, 1, 1), cfg(RecurringPattern.CUSTOM, days_of_week=(1, 3))) == date(2024, 1, 3)

    def test_wraps_to_next_week(self):
        assert next_due_date(date(2024, 1, 3), cfg(RecurringPattern.CUSTOM, days_of_week=(1, 3))) == date(2024, 1, 8)

    def test_base_weekday_always_advances(self):
        assert next_due_date(date(2024, 1, 1), cfg(RecurringPattern.CUSTOM, days_of_week=(1,))) == date(2024, 1, 8)

    def test_sunday_is_zero(self):
        assert next_due_date(date(2024, 1, 6), cfg(RecurringPattern.CUSTOM, days_of_week=(0,))) == date(2024, 1, 7)

    def test_interval_ignored(self):
        config = cfg(RecurringPattern.CUSTOM, 5, days_of_week=(1, 3))

        assert next_due_date(date(2024, 1, 1), config) == date(2024, 1, 3)

    @pytest.mark.parametrize("days", [(), (7,), (-1, 9)])
    def test_no_usable_days(self, days):
        assert next_due_date(date(2024, 1, 1), cfg(RecurringPattern.CUSTOM, days_of_week=days)) is None


class TestNoResult:
    """Absent results are values, not errors."""

    def test_not_recurring(self):
        assert next_due_date(date(2024, 1, 1), cfg(is_recurring=False)) is None

    @pytest.mark.parametrize("pattern", ["hourly", None])
    def test_unknown_pattern(self, pattern):
        assert next_due_date(date(2024, 1, 1), cfg(pattern)) is None

    @pytest.mark.parametrize("interval", [0, -2])
    def test_interval_below_one(self, interval):
        assert next_due_date(date(2024, 1, 1), cfg(interval=interval)) is None


class TestEndDate:
    """The end date is an inclusive bound."""

    def test_candidate_on_end_date_is_returned(self):
        config = cfg(end_date=date(2024, 1, 2))

        assert next_due_date(date(2024, 1, 1), config) == date(2024, 1, 2)

    def test_candidate_after_end_date(self):
        config = cfg(end_date=date(2024, 1, 2))

        assert next_due_date(date(2024, 1, 2), config) is None

    def test_plain_end_date_covers_the_whole_day(self):
        config = cfg(end_date=date(2024, 1, 2))
        base = datetime(2024, 1, 1, 18, 0, tzinfo=UTC)

        assert next_due_date(base, config) == datetime(2024, 1, 2, 18, 0, tzinfo=UTC)

    def test_datetime_end_date(self):
        config = cfg(end_date=datetime(2024, 1, 2, 12, 0, tzinfo=UTC))

        assert next_due_date(datetime(2024, 1, 1, 9, 0, tzinfo=UTC), config) is not None
        assert next_due_date(datetime(2024, 1, 1, 13, 0, tzinfo=UTC), config) is None


class TestShouldCreateNewInstance:
    """Due checks for the scheduler."""

    @pytest.mark.parametrize("now", [date(1990, 1, 1), date(2024, 1, 1), datetime(2100, 1, 1, tzinfo=UTC), None])
    def test_first_instance_always_due(self, now):
        assert should_create_new_instance(None, cfg(), now) is True

    def test_not_recurring(self):
        assert should_create_new_instance(None, cfg(is_recurring=False), date(2024, 1, 1)) is False

    def test_due_on_next_date(self):
        assert should_create_new_instance(date(2024, 1, 1), cfg(), date(2024, 1, 2)) is True

    def test_not_yet_due(self):
        assert should_create_new_instance(date(2024, 1, 1), cfg(), date(2024, 1, 1)) is False

    def test_late_catch_up(self):
        assert should_create_new_instance(date(2024, 1, 1), cfg(), date(2024, 1, 10)) is True

    def test_exhausted_series(self):
        config = cfg(end_date=date(2024, 1, 1))

        assert should_create_new_instance(date(2024, 1, 1), config, date(2024, 3, 1)) is False

    def test_mixed_date_and_datetime(self):
        now = datetime(2024, 1, 2, 8, 0, tzinfo=UTC)

        assert should_create_new_instance(date(2024, 1, 1), cfg(), now) is True

    def test_defaults_to_current_time(self):
        assert should_create_new_instance(date(2000, 1, 1), cfg()) is True
        assert should_create_new_instance(date(2999, 1, 1), cfg()) is False


class TestGenerateInstances:
    """Materializing drafts over a window."""

    def setup_method(self):
        self.template = Task(
            id=7,
            name="Standup",
            description="Daily sync",
            priority=Priority.HIGH,
            labels=["work"],
            estimate="15m",
            list_id="team",
            completed=True,
            is_recurring=True,
            recurring_pattern=RecurringPattern.DAILY,
            recurring_interval=1,
        )
        self.stamp = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)

    def test_daily_window(self):
        start = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        end = datetime(2024, 1, 5, 9, 0, tzinfo=UTC)
        drafts = generate_instances(self.template, cfg(), start, end, now=self.stamp)

        assert 0 < len(drafts) <= 5
        assert drafts[0].date == start
        for earlier, later in zip(drafts, drafts[1:]):
            assert later.date - earlier.date == timedelta(hours=24)
        assert drafts[-1].date < end

    def test_draft_fields(self):
        drafts = generate_instances(self.template, cfg(), date(2024, 1, 1), date(2024, 1, 3), now=self.stamp)
        draft = drafts[0]

        assert draft.id is None
        assert draft.parent_recurring_task_id == 7
        assert draft.completed is False
        assert draft.name == "Standup"
        assert draft.description == "Daily sync"
        assert draft.priority == Priority.HIGH
        assert draft.estimate == "15m"
        assert draft.list_id == "team"
        assert draft.labels == ["work"]
        assert draft.labels is not self.template.labels
        assert draft.is_recurring is True
        assert draft.created_at == draft.updated_at == self.stamp

    def test_template_untouched(self):
        generate_instances(self.template, cfg(), date(2024, 1, 1), date(2024, 1, 3), now=self.stamp)

        assert self.template.id == 7
        assert self.template.completed is True
        assert self.template.date is None

    def test_idempotent(self):
        args = (self.template, cfg(RecurringPattern.WEEKLY), date(2024, 1, 1), date(2024, 3, 1))

        assert generate_instances(*args, now=self.stamp) == generate_instances(*args, now=self.stamp)

    def test_weekly_over_a_month(self):
        drafts = generate_instances(self.template, cfg(RecurringPattern.WEEKLY), date(2024, 1, 1), date(2024, 2, 1))

        assert [d.date.day for d in drafts] == [1, 8, 15, 22, 29]

    def test_monthly_respects_calendar(self):
        drafts = generate_instances(self.template, cfg(RecurringPattern.MONTHLY), date(2024, 1, 31), date(2024, 5, 1))

        assert [(d.date.month, d.date.day) for d in drafts] == [(1, 31), (2, 29), (3, 29), (4, 29)]

    def test_custom_days(self):
        config = cfg(RecurringPattern.CUSTOM, days_of_week=(1, 3, 5))
        drafts = generate_instances(self.template, config, date(2024, 1, 1), date(2024, 1, 8))

        assert [d.date for d in drafts] == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]

    def test_stops_at_config_end_date(self):
        config = cfg(end_date=date(2024, 1, 3))
        drafts = generate_instances(self.template, config, date(2024, 1, 1), date(2024, 1, 10))

        assert [d.date for d in drafts] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]

    def test_start_after_end_date(self):
        config = cfg(end_date=date(2024, 1, 3))

        assert generate_instances(self.template, config, date(2024, 1, 4), date(2024, 1, 10)) == []

    def test_empty_window(self):
        assert generate_instances(self.template, cfg(), date(2024, 1, 5), date(2024, 1, 5)) == []

    def test_not_recurring(self):
        assert generate_instances(self.template, cfg(is_recurring=False), date(2024, 1, 1), date(2024, 1, 5)) == []

    def test_unusable_pattern_yields_only_start(self):
        config = cfg(RecurringPattern.CUSTOM)
        drafts = generate_instances(self.template, config, date(2024, 1, 1), date(2024, 1, 10))

        assert [d.date for d in drafts] == [date(2024, 1, 1)]

    def test_parallel_calls(self):
        args = (self.template, cfg(RecurringPattern.CUSTOM, days_of_week=(1, 4)), date(2024, 1, 1), date(2024, 6, 1))
        expected = generate_instances(*args, now=self.stamp)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: generate_instances(*args, now=self.stamp), range(32)))

        assert all(result == expected for result in results)


class TestDescribe:
    """Human readable labels."""

    @pytest.mark.parametrize("pattern,interval,expected", [
        (RecurringPattern.DAILY, 1, "Daily"),
        (RecurringPattern.DAILY, 2, "Every 2 days"),
        (RecurringPattern.WEEKLY, 1, "Weekly"),
        (RecurringPattern.WEEKLY, 3, "Every 3 weeks"),
        (RecurringPattern.MONTHLY, 1, "Monthly"),
        (RecurringPattern.MONTHLY, 6, "Every 6 months"),
        (RecurringPattern.YEARLY, 1, "Yearly"),
        (RecurringPattern.YEARLY, 2, "Every 2 years"),
    ])
    def test_label_table(self, pattern, interval, expected):
        assert describe(cfg(pattern, interval)) == expected

    def test_custom_days(self):
        assert describe(cfg(RecurringPattern.CUSTOM, days_of_week=(1, 3))) == "Weekly on Mon, Wed"
        assert describe(cfg(RecurringPattern.CUSTOM, days_of_week=(3, 1))) == "Weekly on Mon, Wed"
        assert describe(cfg(RecurringPattern.CUSTOM, 2, days_of_week=(0, 6))) == "Every 2 weeks on Sun, Sat"

    def test_custom_without_days(self):
        assert describe(cfg(RecurringPattern.CUSTOM)) == "Custom"

    def test_not_recurring(self):
        assert describe(cfg(is_recurring=False)) == ""


class TestRecurrenceParser:
    """Standalone recurrence phrases."""

    @pytest.mark.parametrize("text,pattern,interval", [
        ("daily", RecurringPattern.DAILY, 1),
        ("Every 3 days", RecurringPattern.DAILY, 3),
        ("every week", RecurringPattern.WEEKLY, 1),
        ("every 2 weeks", RecurringPattern.WEEKLY, 2),
        ("monthly", RecurringPattern.MONTHLY, 1),
        ("annually", RecurringPattern.YEARLY, 1),
        ("every 5 years", RecurringPattern.YEARLY, 5),
    ])
    def test_simple_phrases(self, text, pattern, interval):
        config = RecurrenceParser.parse(text)

        assert config.pattern == pattern
        assert config.interval == interval

    def test_day_phrases(self):
        assert RecurrenceParser.parse("every Monday").days_of_week == (1,)
        assert RecurrenceParser.parse("weekdays").days_of_week == (1, 2, 3, 4, 5)
        assert RecurrenceParser.parse("weekends").days_of_week == (0, 6)
        assert RecurrenceParser.parse("weekends").pattern == RecurringPattern.CUSTOM

    def test_monthly_on_day(self):
        config = RecurrenceParser.parse("monthly on the 15th")

        assert config.pattern == RecurringPattern.MONTHLY
        assert config.day_of_month == 15

    def test_end_date_passed_through(self):
        assert RecurrenceParser.parse("daily", end_date=date(2024, 5, 1)).end_date == date(2024, 5, 1)

    @pytest.mark.parametrize("text", ["every 0 days", "fortnightly", "", "monthly on the 40th"])
    def test_unrecognised(self, text):
        assert RecurrenceParser.parse(text) is None


class TestConfigBuilders:
    """Configs from parsed input and stored templates."""

    def test_from_parsed(self):
        parsed = ParsedTask(name="Sync", recurring_pattern=RecurringPattern.WEEKLY, recurring_interval=2)
        config = config_from_parsed(parsed, end_date=date(2024, 6, 1))

        assert config == RecurringTaskConfig(pattern=RecurringPattern.WEEKLY, interval=2, end_date=date(2024, 6, 1))

    def test_from_parsed_without_recurrence(self):
        assert config_from_parsed(ParsedTask(name="Once")) is None

    def test_from_task_defaults(self):
        config = config_from_task(Task(id=1, name="x", is_recurring=True))

        assert config.pattern == RecurringPattern.DAILY
        assert config.interval == 1

    def test_from_task_fields(self):
        task = Task(
            id=1, name="x", is_recurring=True, recurring_pattern=RecurringPattern.CUSTOM,
            recurring_days_of_week=[2, 4], recurring_end_date=date(2024, 12, 31),
        )
        config = config_from_task(task)

        assert config.days_of_week == (2, 4)
        assert config.end_date == date(2024, 12, 31)
        assert describe(config) == "Weekly on Tue, Thu"
