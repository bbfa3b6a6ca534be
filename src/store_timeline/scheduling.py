from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, Sequence

from .date_rules import DEFAULT_CALENDAR, CalendarArithmetic, advance
from .timeline_models import (
    PRIORITY_BY_MILESTONE,
    AnchorName,
    AnchorSet,
    GeneratedTask,
    PhaseSpan,
    ReschedulePolicy,
    SourceType,
    TaskStatus,
    TemplateTask,
)

logger = logging.getLogger(__name__)


class TimelineError(Exception):
    """Base class for scheduler errors."""


class TimelineValidationError(TimelineError):
    """Raised when inputs are invalid (missing anchors, bad catalog, malformed files)."""


class TaskNotFoundError(TimelineError):
    """Raised when a reschedule references a task id that is not in the plan."""


class TimelineInvariantError(TimelineError):
    """Raised when a template yields a due date before its start date."""

    def __init__(self, template_index: int, template: TemplateTask, start: date, due: date):
        self.template_index = template_index
        self.template_name = template.name
        super().__init__(
            f"Template task [{template_index}] '{template.name}' produced due date {due} "
            f"before start date {start}"
        )


def task_id_for(index: int) -> str:
    """Deterministic id for the template at catalog position `index` (0-based)."""
    return f"tpl-{index + 1:03d}"


def validate_catalog(catalog: Sequence[TemplateTask]) -> None:
    if not catalog:
        raise TimelineValidationError("Template catalog must contain at least one task")
    for idx, template in enumerate(catalog):
        if template.duration_days < 0:
            raise TimelineValidationError(
                f"Template task [{idx}] '{template.name}' has negative duration_days={template.duration_days}"
            )


def generate_timeline(
    anchors: AnchorSet,
    catalog: Sequence[TemplateTask],
    calendar: CalendarArithmetic = DEFAULT_CALENDAR,
) -> list[GeneratedTask]:
    """
    Materialize a dated plan from `catalog` against resolved `anchors`.

    - Validates the catalog before computing anything.
    - Tasks whose anchor is missing from `anchors` fall back to OPEN_DATE.
    - Start is the anchor advanced by offset_days, due is start advanced by
      duration_days, both under the template's day-count rule.
    - The result is sorted by start date; equal starts keep catalog order.
    """

    validate_catalog(catalog)

    tasks: list[GeneratedTask] = []
    for idx, template in enumerate(catalog):
        anchor_date = anchors.get(template.anchor, anchors.open_date)
        start = advance(anchor_date, template.offset_days, template.rule, calendar)
        due = advance(start, template.duration_days, template.rule, calendar)
        if due < start:
            raise TimelineInvariantError(idx, template, start, due)

        tasks.append(
            GeneratedTask(
                task_id=task_id_for(idx),
                title=template.name,
                phase=template.phase,
                start_date=start,
                due_date=due,
                rule=template.rule,
                anchor=template.anchor,
                order=template.order,
                status=TaskStatus.NOT_STARTED,
                priority=PRIORITY_BY_MILESTONE[bool(template.is_milestone)],
                source_type=SourceType.TEMPLATE,
                is_milestone=bool(template.is_milestone),
                role_responsible=template.role_responsible,
            )
        )

    # list.sort is stable, so ties keep catalog order.
    tasks.sort(key=lambda task: task.start_date)
    logger.debug("Generated %d tasks for open date %s", len(tasks), anchors.open_date)
    return tasks


def reschedule_on_anchor_change(
    tasks: Sequence[GeneratedTask],
    old_anchor_date: date,
    new_anchor_date: date,
    anchor: AnchorName | str,
    calendar: CalendarArithmetic = DEFAULT_CALENDAR,
) -> list[GeneratedTask]:
    """
    Shift every task recorded against `anchor` by the anchor's calendar-day delta.

    Tasks bound to other anchors, or detached by a manual edit, are returned
    as-is. Order and durations are preserved. A zero delta returns the input.
    """

    anchor = _coerce_anchor(anchor)
    delta = calendar.days_between(new_anchor_date, old_anchor_date)
    if delta == 0:
        return list(tasks)

    shifted = 0
    result: list[GeneratedTask] = []
    for task in tasks:
        if task.anchor == anchor:
            result.append(_shift(task, delta, calendar))
            shifted += 1
        else:
            result.append(task)

    logger.debug("Anchor %s moved by %+d days; shifted %d of %d tasks", anchor.value, delta, shifted, len(result))
    return result


def reschedule_on_task_edit(
    tasks: Sequence[GeneratedTask],
    task_id: str,
    new_start_date: date,
    policy: ReschedulePolicy | str = ReschedulePolicy.THIS_ONLY,
    calendar: CalendarArithmetic = DEFAULT_CALENDAR,
) -> list[GeneratedTask]:
    """
    Move one task to `new_start_date` and propagate the same delta per `policy`.

    - THIS_ONLY: only the edited task moves, and it is detached from its
      anchor so later anchor changes leave it where the user put it.
    - CASCADE_LATER: the edited task and every task with a greater order move.
    - CASCADE_ALL: every task moves.

    Due dates move with start dates, so durations are preserved. Raises
    TaskNotFoundError, before touching anything, if `task_id` is unknown, and
    TimelineValidationError if more than one task carries it.
    """

    policy = _coerce_policy(policy)
    matches = [idx for idx, task in enumerate(tasks) if task.task_id == task_id]
    if not matches:
        raise TaskNotFoundError(f"Task '{task_id}' not found in plan")
    if len(matches) > 1:
        raise TimelineValidationError(f"Task id '{task_id}' is shared by {len(matches)} tasks in plan")
    edited_idx = matches[0]
    edited = tasks[edited_idx]

    delta = calendar.days_between(new_start_date, edited.start_date)

    if policy is ReschedulePolicy.THIS_ONLY:
        result = list(tasks)
        result[edited_idx] = replace(_shift(edited, delta, calendar), anchor=None)
        logger.debug("Task %s moved by %+d days and detached from its anchor", task_id, delta)
        return result

    if delta == 0:
        return list(tasks)

    result = []
    for idx, task in enumerate(tasks):
        if policy is ReschedulePolicy.CASCADE_ALL or idx == edited_idx or task.order > edited.order:
            result.append(_shift(task, delta, calendar))
        else:
            result.append(task)

    logger.debug("Task %s moved by %+d days with policy %s", task_id, delta, policy.value)
    return result


def compute_phase_spans(tasks: Iterable[GeneratedTask]) -> dict[str, PhaseSpan]:
    """
    Summarise a plan per phase as (start, finish, task count, milestone count).

    Phases appear in order of first occurrence in `tasks`.
    """

    spans: dict[str, PhaseSpan] = {}
    for task in tasks:
        current = spans.get(task.phase)
        if current is None:
            spans[task.phase] = PhaseSpan(
                phase=task.phase,
                start=task.start_date,
                finish=task.due_date,
                task_count=1,
                milestone_count=int(task.is_milestone),
            )
            continue
        spans[task.phase] = PhaseSpan(
            phase=task.phase,
            start=min(current.start, task.start_date),
            finish=max(current.finish, task.due_date),
            task_count=current.task_count + 1,
            milestone_count=current.milestone_count + int(task.is_milestone),
        )
    return spans


def _shift(task: GeneratedTask, delta: int, calendar: CalendarArithmetic) -> GeneratedTask:
    return replace(
        task,
        start_date=calendar.add_days(task.start_date, delta),
        due_date=calendar.add_days(task.due_date, delta),
    )


def _coerce_anchor(value: AnchorName | str) -> AnchorName:
    try:
        return AnchorName(value)
    except ValueError as exc:
        raise TimelineValidationError(f"Unknown anchor '{value}'") from exc


def _coerce_policy(value: ReschedulePolicy | str) -> ReschedulePolicy:
    try:
        return ReschedulePolicy(value)
    except ValueError as exc:
        raise TimelineValidationError(f"Unknown reschedule policy '{value}'") from exc
