from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping


class AnchorName(str, Enum):
    """Named business milestones that template tasks are offset from."""

    OPEN_DATE = "OPEN_DATE"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    CONSTRUCTION_START = "CONSTRUCTION_START"


class DayCountRule(str, Enum):
    """How offsets and durations are counted."""

    CALENDAR_DAYS = "CALENDAR_DAYS"
    BUSINESS_DAYS_MON_FRI = "BUSINESS_DAYS_MON_FRI"


class ReschedulePolicy(str, Enum):
    """Which tasks follow a manually edited task."""

    THIS_ONLY = "THIS_ONLY"
    CASCADE_LATER = "CASCADE_LATER"
    CASCADE_ALL = "CASCADE_ALL"


class TaskStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class SourceType(str, Enum):
    TEMPLATE = "TEMPLATE"
    MANUAL = "MANUAL"


PRIORITY_BY_MILESTONE: Mapping[bool, TaskPriority] = MappingProxyType(
    {
        True: TaskPriority.HIGH,
        False: TaskPriority.MEDIUM,
    }
)
"""Priority assigned to generated tasks, keyed by the template's milestone flag."""


class AnchorSet(Mapping[AnchorName, date]):
    """
    Read-only mapping of resolved anchor dates.

    Built by the anchor resolver; OPEN_DATE is always present.
    """

    __slots__ = ("_dates",)

    def __init__(self, dates: Mapping[AnchorName, date]):
        if AnchorName.OPEN_DATE not in dates:
            raise KeyError(AnchorName.OPEN_DATE)
        self._dates = MappingProxyType(dict(dates))

    def __getitem__(self, key: AnchorName) -> date:
        return self._dates[key]

    def __iter__(self) -> Iterator[AnchorName]:
        return iter(self._dates)

    def __len__(self) -> int:
        return len(self._dates)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._dates) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._dates.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{name.value}={day.isoformat()}" for name, day in self._dates.items())
        return f"AnchorSet({inner})"

    @property
    def open_date(self) -> date:
        return self._dates[AnchorName.OPEN_DATE]


@dataclass(frozen=True)
class TemplateTask:
    """Reusable task definition expressed relative to an anchor date."""

    name: str
    phase: str
    anchor: AnchorName
    offset_days: int
    duration_days: int
    rule: DayCountRule = DayCountRule.CALENDAR_DAYS
    role_responsible: str | None = None
    is_milestone: bool = False
    order: int = 0


@dataclass(frozen=True)
class GeneratedTask:
    """
    Concrete, dated task materialized from a template.

    `anchor` is None once the task has been detached from automatic
    anchor-following by a manual edit.
    """

    task_id: str
    title: str
    phase: str
    start_date: date
    due_date: date
    rule: DayCountRule
    anchor: AnchorName | None
    order: int
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: TaskPriority = TaskPriority.MEDIUM
    source_type: SourceType = SourceType.TEMPLATE
    is_milestone: bool = False
    role_responsible: str | None = None

    @property
    def span_days(self) -> int:
        """Calendar days between start and due date."""
        return (self.due_date - self.start_date).days

    @property
    def is_detached(self) -> bool:
        return self.anchor is None


@dataclass(frozen=True)
class PhaseSpan:
    """Date range and counts for one phase of a generated plan."""

    phase: str
    start: date
    finish: date
    task_count: int
    milestone_count: int
