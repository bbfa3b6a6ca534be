from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import yaml

from .scheduling import TimelineValidationError, validate_catalog
from .timeline_models import AnchorName, DayCountRule, TemplateTask

DEFAULT_CATALOG_PATH = Path(__file__).with_name("catalogs") / "default.yaml"

_TASK_KEYS = {
    "name",
    "phase",
    "anchor",
    "offset_days",
    "duration_days",
    "rule",
    "role_responsible",
    "milestone",
    "order",
}

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[3].offset_days."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_catalog(path: str) -> tuple[TemplateTask, ...]:
    """Load and validate a template catalog from a YAML file."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_catalog(raw)


def default_catalog() -> tuple[TemplateTask, ...]:
    """The standard 54-task store-opening catalog shipped with the package."""

    text = DEFAULT_CATALOG_PATH.read_text(encoding="utf-8")
    return parse_catalog(yaml.safe_load(text))


def parse_catalog(data: Any) -> tuple[TemplateTask, ...]:
    """Build a catalog from already-parsed YAML data."""

    path = _Path()
    if not isinstance(data, dict):
        raise TimelineValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"catalog", "tasks"}, path)

    header = data.get("catalog")
    if header is not None:
        if not isinstance(header, dict):
            raise TimelineValidationError(f"{path.child('catalog')}: expected mapping")
        _assert_allowed_keys(header, {"name", "description"}, path.child("catalog"))

    tasks_raw = data.get("tasks")
    if tasks_raw is None:
        raise TimelineValidationError(f"{path}: missing required field 'tasks'")
    if not isinstance(tasks_raw, list):
        raise TimelineValidationError(f"{path.child('tasks')}: expected list")

    catalog = tuple(_parse_task(item, path.child(f"tasks[{idx}]")) for idx, item in enumerate(tasks_raw))
    validate_catalog(catalog)
    return catalog


def _parse_task(data: Any, path: _Path) -> TemplateTask:
    if not isinstance(data, dict):
        raise TimelineValidationError(f"{path}: expected mapping for template task")
    _assert_allowed_keys(data, _TASK_KEYS, path)

    duration_days = _require_int(data, "duration_days", path)
    if duration_days < 0:
        raise TimelineValidationError(f"{path.child('duration_days')}: must not be negative")

    role = data.get("role_responsible")
    if role is not None and not isinstance(role, str):
        raise TimelineValidationError(f"{path.child('role_responsible')}: expected string")

    milestone = data.get("milestone", False)
    if not isinstance(milestone, bool):
        raise TimelineValidationError(f"{path.child('milestone')}: expected boolean")

    return TemplateTask(
        name=_require_str(data, "name", path),
        phase=_require_str(data, "phase", path),
        anchor=_parse_enum(AnchorName, _require_value(data, "anchor", path), path.child("anchor")),
        offset_days=_require_int(data, "offset_days", path),
        duration_days=duration_days,
        rule=_parse_enum(DayCountRule, data.get("rule", DayCountRule.CALENDAR_DAYS.value), path.child("rule")),
        role_responsible=role,
        is_milestone=milestone,
        order=_require_int(data, "order", path),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise TimelineValidationError(f"{path}: unexpected fields {extras}")


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise TimelineValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise TimelineValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_int(data: dict[str, Any], key: str, path: _Path) -> int:
    value = _require_value(data, key, path)
    # bool is an int subclass; `true` is never a valid day count.
    if not isinstance(value, int) or isinstance(value, bool):
        raise TimelineValidationError(f"{path.child(key)}: expected integer")
    return value


def _parse_enum(enum_type: type[E], value: Any, path: _Path) -> E:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise TimelineValidationError(f"{path}: expected one of {allowed}, got {value!r}") from exc
