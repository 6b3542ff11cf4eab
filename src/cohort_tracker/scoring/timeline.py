"""Reconcile an edited progress history into a consistent timeline slice.

The editor presents one row per timeline entry of a (requirement, cohort)
slice. Rows hold raw strings for the numeric cells. Before anything is saved
the whole sequence is validated; only when every row passes are the running
totals recomputed in order and the slice replaced in a single request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..models import TimelineEntry, User

REQUIRED_MESSAGE = "This field is required"
NON_ZERO_INTEGER_MESSAGE = "This field must be a non-zero integer"
INTEGER_MESSAGE = "This field must be an integer"

_SIGNED_INTEGER = re.compile(r"[+-]?[0-9]+")
_DIGITS = re.compile(r"[0-9]*")


@dataclass(slots=True)
class HistoryItem:
    """One editable row of a progress history."""

    date: datetime | None
    count: str
    hours: str
    minutes: str
    entry: TimelineEntry


@dataclass(slots=True)
class HistoryItemError:
    date: str | None = None
    count: str | None = None
    hours: str | None = None
    minutes: str | None = None

    def __bool__(self) -> bool:
        return any((self.date, self.count, self.hours, self.minutes))


class TimelineUpdateRequest(BaseModel):
    """Body of the atomic timeline replacement request."""

    model_config = ConfigDict(populate_by_name=True)

    requirement_id: str = Field(..., alias="requirementId")
    cohort: str
    entries: list[TimelineEntry] = Field(default_factory=list)
    count: int = Field(..., description="Sum of the increments of every entry.")
    minutes_spent: int = Field(..., alias="minutesSpent")

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(slots=True)
class TimelineUpdate:
    timeline: list[TimelineEntry] = field(default_factory=list)
    errors: dict[int, HistoryItemError] = field(default_factory=dict)
    total_count: int = 0
    total_minutes: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_request(self, requirement_id: str, cohort: str) -> TimelineUpdateRequest:
        if not self.ok:
            raise ValueError("Cannot build a request from an update with errors")
        return TimelineUpdateRequest(
            requirement_id=requirement_id,
            cohort=cohort,
            entries=self.timeline,
            count=self.total_count,
            minutes_spent=self.total_minutes,
        )


def _is_signed_integer(value: str) -> bool:
    return _SIGNED_INTEGER.fullmatch(value.strip()) is not None


def _is_digits(value: str) -> bool:
    return _DIGITS.fullmatch(value) is not None


def validate_item(item: HistoryItem) -> HistoryItemError:
    error = HistoryItemError()
    if item.date is None:
        error.date = REQUIRED_MESSAGE
    if not _is_signed_integer(item.count) or int(item.count) == 0:
        error.count = NON_ZERO_INTEGER_MESSAGE
    if item.hours and not _is_digits(item.hours):
        error.hours = INTEGER_MESSAGE
    if item.minutes and not _is_digits(item.minutes):
        error.minutes = INTEGER_MESSAGE
    return error


def reconcile_timeline(items: Sequence[HistoryItem], cohort: str) -> TimelineUpdate:
    """Validate every row, then rebuild the chain of running totals.

    When any row fails validation the returned update carries only the
    per-row errors; no entry is produced and the input entries are never
    modified.
    """

    errors: dict[int, HistoryItemError] = {}
    for index, item in enumerate(items):
        error = validate_item(item)
        if error:
            errors[index] = error
    if errors:
        return TimelineUpdate(errors=errors)

    timeline: list[TimelineEntry] = []
    previous_count = 0
    total_count = 0
    total_minutes = 0
    for item in items:
        count = int(item.count)
        minutes_spent = 60 * int(item.hours or 0) + int(item.minutes or 0)
        new_count = previous_count + count
        timeline.append(
            item.entry.model_copy(
                update={
                    "cohort": cohort,
                    "previous_count": previous_count,
                    "new_count": new_count,
                    "minutes_spent": minutes_spent,
                    "created_at": item.date,
                },
                deep=True,
            )
        )
        previous_count = new_count
        total_count += count
        total_minutes += minutes_spent

    return TimelineUpdate(timeline=timeline, total_count=total_count, total_minutes=total_minutes)


def timeline_slice(user: User, requirement_id: str, cohort: str) -> list[TimelineEntry]:
    """The user's entries for one requirement in one cohort, oldest first."""

    entries = [
        entry
        for entry in user.timeline
        if entry.requirement_id == requirement_id and entry.cohort == cohort
    ]
    return sorted(entries, key=lambda entry: entry.created_at)


def history_items(entries: Iterable[TimelineEntry]) -> list[HistoryItem]:
    return [
        HistoryItem(
            date=entry.created_at,
            count=str(entry.new_count - entry.previous_count),
            hours=str(entry.minutes_spent // 60),
            minutes=str(entry.minutes_spent % 60),
            entry=entry,
        )
        for entry in entries
    ]


def running_totals(items: Iterable[HistoryItem]) -> tuple[int, int]:
    """Live (count, minutes) totals of an edit in progress.

    Cells that do not parse are skipped rather than reported.
    """

    count = 0
    minutes = 0
    for item in items:
        if _is_signed_integer(item.count):
            count += int(item.count)
        if item.hours and _is_digits(item.hours):
            minutes += 60 * int(item.hours)
        if item.minutes and _is_digits(item.minutes):
            minutes += int(item.minutes)
    return count, minutes


def format_duration(minutes: int) -> str:
    hours, remainder = divmod(max(minutes, 0), 60)
    if hours and remainder:
        return f"{hours}h {remainder}m"
    if hours:
        return f"{hours}h"
    return f"{remainder}m"


__all__ = [
    "HistoryItem",
    "HistoryItemError",
    "INTEGER_MESSAGE",
    "NON_ZERO_INTEGER_MESSAGE",
    "REQUIRED_MESSAGE",
    "TimelineUpdate",
    "TimelineUpdateRequest",
    "format_duration",
    "history_items",
    "reconcile_timeline",
    "running_totals",
    "timeline_slice",
]
