from __future__ import annotations

import logging
from datetime import date, datetime
from types import MappingProxyType
from typing import Mapping

from .date_rules import DEFAULT_CALENDAR, CalendarArithmetic
from .scheduling import TimelineValidationError
from .timeline_models import AnchorName, AnchorSet

logger = logging.getLogger(__name__)

DEFAULT_DERIVATIONS: Mapping[AnchorName, int] = MappingProxyType(
    {
        AnchorName.CONTRACT_SIGNED: -180,
        AnchorName.CONSTRUCTION_START: -90,
    }
)
"""Calendar-day offsets from OPEN_DATE used for anchors the caller did not supply."""


def resolve_anchors(
    partial: Mapping[AnchorName | str, date | None],
    derivations: Mapping[AnchorName, int] = DEFAULT_DERIVATIONS,
    calendar: CalendarArithmetic = DEFAULT_CALENDAR,
) -> AnchorSet:
    """
    Fill in missing anchors relative to OPEN_DATE and return an AnchorSet.

    OPEN_DATE is required and never derived. Optional anchors given as None
    are treated as absent. Anchors supplied by the caller always win over
    derivation.
    """

    supplied: dict[AnchorName, date] = {}
    for key, value in partial.items():
        try:
            name = AnchorName(key)
        except ValueError as exc:
            raise TimelineValidationError(f"Unknown anchor '{key}'") from exc
        if value is None:
            # A null optional anchor counts as absent; a null OPEN_DATE fails below.
            continue
        if not isinstance(value, date):
            raise TimelineValidationError(f"Anchor {name.value}: expected a date, got {value!r}")
        supplied[name] = value.date() if isinstance(value, datetime) else value

    open_date = supplied.get(AnchorName.OPEN_DATE)
    if open_date is None:
        raise TimelineValidationError("Anchor OPEN_DATE is required")

    resolved = dict(supplied)
    for key, offset in derivations.items():
        name = AnchorName(key)
        if name is AnchorName.OPEN_DATE:
            continue
        if name not in resolved:
            resolved[name] = calendar.add_days(open_date, offset)
            logger.debug("Derived %s = %s from OPEN_DATE %+d days", name.value, resolved[name], offset)

    return AnchorSet(resolved)
