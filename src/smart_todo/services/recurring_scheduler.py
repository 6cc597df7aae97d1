"""Scheduler-side orchestration of recurring tasks.

The storage layer hands in the stored templates and their instances; this
service decides which new instance drafts to persist. It never stores
anything itself.
"""

import logging
from dataclasses import fields, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..config import ConfigModel
from ..recurring import (
    build_instance,
    config_from_task,
    generate_instances,
    next_due_date,
    should_create_new_instance,
)
from ..task import Task
from ..utils.datetime import DateLike, as_datetime, ensure_aware, now_utc

logger = logging.getLogger(__name__)

# Template edits to these never reach instances: series settings, the
# anchor date, and per-instance state
TEMPLATE_ONLY_FIELDS = frozenset({
    "id",
    "date",
    "completed",
    "is_recurring",
    "recurring_pattern",
    "recurring_interval",
    "recurring_end_date",
    "recurring_days_of_week",
    "recurring_day_of_month",
    "parent_recurring_task_id",
    "created_at",
    "updated_at",
})


def _as_instance(draft: Task) -> Task:
    """Instances are stored as plain tasks; only the template recurs."""
    return replace(draft, is_recurring=False)


class RecurringScheduler:
    """Materializes upcoming instances of recurring templates."""

    def __init__(self, config: Optional[ConfigModel] = None):
        self.config = config or ConfigModel()

    @staticmethod
    def latest_instance_date(template_id: Optional[int], instances: Iterable[Task]) -> Optional[DateLike]:
        """Date of the most recent dated instance of a template."""
        dates = [
            task.date for task in instances
            if task.parent_recurring_task_id == template_id and task.date is not None
        ]
        if not dates:
            return None
        return max(dates, key=as_datetime)

    def generate_for_template(self, template: Task, instances: Iterable[Task],
                              now: Optional[datetime] = None) -> List[Task]:
        """New instance drafts for one template, up to the configured window."""
        now = ensure_aware(now) if now is not None else now_utc()
        recurrence = config_from_task(template)

        last = self.latest_instance_date(template.id, instances)
        if last is None:
            if template.date is None:
                logger.debug(f"Skipping template {template.id}: no date to anchor the series")
                return []
            start = template.date
        else:
            if not should_create_new_instance(last, recurrence, now):
                logger.debug(f"Template {template.id}: next instance after {last} not due yet")
                return []
            start = next_due_date(last, recurrence)
            if start is None:
                return []

        window_end = now + timedelta(days=self.config.instance_window_days)
        drafts = generate_instances(template, recurrence, start, window_end, now=now)
        drafts = [_as_instance(draft) for draft in drafts]
        logger.info(f"Template {template.id}: generated {len(drafts)} instance(s)")
        return drafts

    def generate_due_instances(self, templates: Iterable[Task], instances: Iterable[Task],
                               now: Optional[datetime] = None) -> List[Task]:
        """Drafts for every recurring template whose next instance is due."""
        instances = list(instances)
        drafts = []
        for template in templates:
            if not template.is_template:
                continue
            drafts.extend(self.generate_for_template(template, instances, now))
        return drafts

    def complete_instance(self, instance: Task, template: Optional[Task],
                          now: Optional[datetime] = None) -> Tuple[Task, Optional[Task]]:
        """Mark ``instance`` complete and draft its successor, if any.

        Raises:
            ValueError: If ``template`` is not the instance's parent.
        """
        now = ensure_aware(now) if now is not None else now_utc()
        completed = replace(instance, completed=True, updated_at=now)

        if template is None or not instance.is_instance or instance.date is None:
            return completed, None

        if template.id != instance.parent_recurring_task_id:
            raise ValueError(
                f"Task {instance.id} belongs to template {instance.parent_recurring_task_id}, not {template.id}"
            )

        next_date = next_due_date(instance.date, config_from_task(template))
        if next_date is None:
            logger.debug(f"Template {template.id}: series exhausted after {instance.date}")
            return completed, None

        return completed, _as_instance(build_instance(template, next_date, now))

    @staticmethod
    def future_instances(template_id: int, instances: Iterable[Task]) -> List[Task]:
        """Uncompleted instances of a template, e.g. to drop when it is deleted."""
        return [
            task for task in instances
            if task.parent_recurring_task_id == template_id and not task.completed
        ]

    @staticmethod
    def propagate_update(template_id: int, updates: Dict[str, Any], instances: Iterable[Task],
                         now: Optional[datetime] = None) -> List[Task]:
        """Apply a template edit to its uncompleted instances.

        Recurrence settings, identity, the anchor date, completion state and
        timestamps in ``updates`` are ignored; everything else (name,
        priority, labels, ...) is copied.
        Returns updated copies of the affected instances only.

        Raises:
            ValueError: If ``updates`` names a field Task does not have.
        """
        known = {f.name for f in fields(Task)}
        unknown = sorted(set(updates) - known)
        if unknown:
            raise ValueError(f"Unknown task field(s): {', '.join(unknown)}")

        changes = {key: value for key, value in updates.items() if key not in TEMPLATE_ONLY_FIELDS}
        now = ensure_aware(now) if now is not None else now_utc()

        updated = []
        for task in RecurringScheduler.future_instances(template_id, instances):
            values = dict(changes)
            if "labels" in values:
                values["labels"] = list(values["labels"])
            updated.append(replace(task, updated_at=now, **values))
        logger.info(f"Template {template_id}: updated {len(updated)} open instance(s)")
        return updated
