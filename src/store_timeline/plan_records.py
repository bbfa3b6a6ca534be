from __future__ import annotations

import datetime as _dt
from typing import Any, Iterable, Mapping

import yaml

from .catalog import _assert_allowed_keys, _parse_enum, _Path, _require_int, _require_str, _require_value
from .scheduling import TimelineValidationError
from .timeline_models import (
    AnchorName,
    DayCountRule,
    GeneratedTask,
    SourceType,
    TaskPriority,
    TaskStatus,
)

_RECORD_KEYS = {
    "id",
    "title",
    "phase",
    "start_date",
    "due_date",
    "status",
    "priority",
    "source_type",
    "rule",
    "anchor",
    "milestone",
    "role_responsible",
    "order",
}


def to_records(tasks: Iterable[GeneratedTask]) -> list[dict[str, Any]]:
    """
    Flatten generated tasks into plain dicts for storage or YAML output.

    Dates become YYYY-MM-DD strings and enums their names; a detached task
    has `anchor: None`. List order is preserved.
    """

    return [
        {
            "id": task.task_id,
            "title": task.title,
            "phase": task.phase,
            "start_date": task.start_date.isoformat(),
            "due_date": task.due_date.isoformat(),
            "status": task.status.value,
            "priority": task.priority.value,
            "source_type": task.source_type.value,
            "rule": task.rule.value,
            "anchor": None if task.is_detached else task.anchor.value,
            "milestone": task.is_milestone,
            "role_responsible": task.role_responsible,
            "order": task.order,
        }
        for task in tasks
    ]


def from_records(records: Iterable[Mapping[str, Any]]) -> list[GeneratedTask]:
    """Inverse of to_records; raises TimelineValidationError on malformed records or duplicate ids."""

    ids: set[str] = set()
    return [_parse_record(record, _Path((f"tasks[{idx}]",)), ids) for idx, record in enumerate(records)]


def dump_plan(
    tasks: Iterable[GeneratedTask],
    path: str | None = None,
    anchors: Mapping[AnchorName, _dt.date] | None = None,
) -> str:
    """Serialize a plan (and optionally its anchors) to YAML; write to `path` when given."""

    document: dict[str, Any] = {}
    if anchors:
        document["anchors"] = {AnchorName(name).value: day.isoformat() for name, day in anchors.items()}
    document["tasks"] = to_records(tasks)

    text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    if path is not None:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text)
    return text


def load_plan(path: str) -> tuple[dict[AnchorName, _dt.date], list[GeneratedTask]]:
    """Read a plan YAML file written by dump_plan; returns (anchors, tasks)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    root = _Path()
    if not isinstance(raw, dict):
        raise TimelineValidationError(f"{root}: expected mapping at top level")
    _assert_allowed_keys(raw, {"anchors", "tasks"}, root)

    anchors_raw = raw.get("anchors") or {}
    if not isinstance(anchors_raw, dict):
        raise TimelineValidationError(f"{root.child('anchors')}: expected mapping")
    anchors: dict[AnchorName, _dt.date] = {}
    for key, value in anchors_raw.items():
        anchor_path = root.child(f"anchors.{key}")
        anchors[_parse_enum(AnchorName, key, anchor_path)] = _parse_date(value, anchor_path)

    tasks_raw = raw.get("tasks")
    if not isinstance(tasks_raw, list):
        raise TimelineValidationError(f"{root.child('tasks')}: expected list")
    return anchors, from_records(tasks_raw)


def _parse_record(data: Any, path: _Path, ids: set[str]) -> GeneratedTask:
    if not isinstance(data, Mapping):
        raise TimelineValidationError(f"{path}: expected mapping for task record")
    _assert_allowed_keys(data, _RECORD_KEYS, path)

    task_id = _require_str(data, "id", path)
    if task_id in ids:
        raise TimelineValidationError(f"{path.child('id')}: duplicate task id '{task_id}'")
    ids.add(task_id)

    start = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    due = _parse_date(_require_value(data, "due_date", path), path.child("due_date"))
    if due < start:
        raise TimelineValidationError(f"{path}: due_date {due} precedes start_date {start}")

    role = data.get("role_responsible")
    if role is not None and not isinstance(role, str):
        raise TimelineValidationError(f"{path.child('role_responsible')}: expected string")

    milestone = data.get("milestone", False)
    if not isinstance(milestone, bool):
        raise TimelineValidationError(f"{path.child('milestone')}: expected boolean")

    anchor_raw = data.get("anchor")
    return GeneratedTask(
        task_id=task_id,
        title=_require_str(data, "title", path),
        phase=_require_str(data, "phase", path),
        start_date=start,
        due_date=due,
        rule=_parse_enum(DayCountRule, _require_value(data, "rule", path), path.child("rule")),
        anchor=None if anchor_raw is None else _parse_enum(AnchorName, anchor_raw, path.child("anchor")),
        order=_require_int(data, "order", path),
        status=_parse_enum(TaskStatus, data.get("status", TaskStatus.NOT_STARTED.value), path.child("status")),
        priority=_parse_enum(TaskPriority, data.get("priority", TaskPriority.MEDIUM.value), path.child("priority")),
        source_type=_parse_enum(
            SourceType, data.get("source_type", SourceType.TEMPLATE.value), path.child("source_type")
        ),
        is_milestone=milestone,
        role_responsible=role,
    )


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # PyYAML already turns unquoted YYYY-MM-DD scalars into dates.
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise TimelineValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        return _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise TimelineValidationError(f"{path}: expected YYYY-MM-DD string") from exc
