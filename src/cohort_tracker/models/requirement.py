"""Requirement catalog and progress models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALL_COHORTS = "ALL_COHORTS"


@dataclass(frozen=True, slots=True)
class ScoreKey:
    """Key into a per-cohort counts map: either global or one named cohort."""

    cohort: str | None = None

    GLOBAL: ClassVar["ScoreKey"]

    @classmethod
    def for_cohort(cls, cohort: str) -> "ScoreKey":
        return cls(cohort=cohort)

    @property
    def is_global(self) -> bool:
        return self.cohort is None

    @property
    def wire_key(self) -> str:
        return ALL_COHORTS if self.cohort is None else self.cohort


ScoreKey.GLOBAL = ScoreKey()


def resolution_order(cohort: str | None) -> tuple[ScoreKey, ...]:
    """Return the keys consulted for a cohort, global first."""

    if not cohort:
        return (ScoreKey.GLOBAL,)
    return (ScoreKey.GLOBAL, ScoreKey.for_cohort(cohort))


def lookup_count(counts: Mapping[str, int], cohort: str | None) -> int | None:
    """Resolve a count, checking the global entry before the cohort entry.

    Returns None when neither key is present. A stored zero is a hit.
    """

    for key in resolution_order(cohort):
        value = counts.get(key.wire_key)
        if value is not None:
            return value
    return None


class ScoreboardDisplay(str, Enum):
    """How a requirement is drawn on the scoreboard."""

    HIDDEN = "HIDDEN"
    CHECKBOX = "CHECKBOX"
    PROGRESS_BAR = "PROGRESS_BAR"
    UNSPECIFIED = "UNSPECIFIED"


class RequirementCategory(str, Enum):
    """Known categories, declared in display priority order."""

    WELCOME = "Welcome to the Dojo"
    GAMES = "Games + Analysis"
    TACTICS = "Tactics"
    MIDDLEGAMES = "Middlegames + Strategy"
    ENDGAME = "Endgame"
    OPENING = "Opening"
    NON_DOJO = "Non-Dojo"


_CATEGORY_PRIORITY = {category.value: index for index, category in enumerate(RequirementCategory)}


def category_priority(category: str) -> int:
    """Rank of a category; unknown categories rank after every known one."""

    return _CATEGORY_PRIORITY.get(category, len(_CATEGORY_PRIORITY))


class Requirement(BaseModel):
    """A curriculum task with per-cohort or global target counts."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Stable identifier of the requirement.")
    name: str = Field(..., description="Display name, used as the column header.")
    category: str = Field(..., description="Category the requirement is grouped under.")
    description: str = Field(default="", description="Long-form description.")
    scoreboard_display: ScoreboardDisplay = Field(
        default=ScoreboardDisplay.UNSPECIFIED,
        alias="scoreboardDisplay",
        description="Scoreboard rendering mode.",
    )
    counts: dict[str, int] = Field(
        default_factory=dict,
        description="Target counts keyed by cohort or ALL_COHORTS.",
    )

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Requirement id must not be empty")
        return normalized

    @field_validator("scoreboard_display", mode="before")
    @classmethod
    def _coerce_display(cls, value: Any):
        if isinstance(value, ScoreboardDisplay):
            return value
        try:
            return ScoreboardDisplay(value)
        except ValueError:
            return ScoreboardDisplay.UNSPECIFIED

    @property
    def is_hidden(self) -> bool:
        return self.scoreboard_display is ScoreboardDisplay.HIDDEN

    def applies_to(self, cohort: str | None) -> bool:
        """Whether the requirement has a target for the cohort."""

        return lookup_count(self.counts, cohort) is not None


class RequirementProgress(BaseModel):
    """A user's counters against one requirement."""

    model_config = ConfigDict(populate_by_name=True)

    requirement_id: str = Field(..., alias="requirementId")
    counts: dict[str, int] = Field(default_factory=dict)
    minutes_spent: dict[str, int] = Field(default_factory=dict, alias="minutesSpent")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_validator("minutes_spent", mode="before")
    @classmethod
    def _wrap_scalar_minutes(cls, value: Any):
        # Older records store a single cumulative number.
        if isinstance(value, (int, float)):
            return {ALL_COHORTS: int(value)}
        return value

    @property
    def total_minutes(self) -> int:
        return sum(self.minutes_spent.values())


class TimelineEntry(BaseModel):
    """One historical increment of progress toward a requirement."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    requirement_id: str = Field(..., alias="requirementId")
    requirement_name: str | None = Field(default=None, alias="requirementName")
    cohort: str
    previous_count: int = Field(default=0, alias="previousCount")
    new_count: int = Field(default=0, alias="newCount")
    minutes_spent: int = Field(default=0, alias="minutesSpent")
    created_at: datetime = Field(..., alias="createdAt")

    @property
    def increment(self) -> int:
        return self.new_count - self.previous_count


def check_chain(entries: Sequence[TimelineEntry]) -> list[int]:
    """Return the indices of entries that break the running-total chain.

    The entries must already be one (requirement, cohort) slice in order.
    """

    broken: list[int] = []
    expected = 0
    for index, entry in enumerate(entries):
        if entry.previous_count != expected or entry.increment == 0:
            broken.append(index)
        expected = entry.new_count
    return broken


__all__ = [
    "ALL_COHORTS",
    "Requirement",
    "RequirementCategory",
    "RequirementProgress",
    "ScoreKey",
    "ScoreboardDisplay",
    "TimelineEntry",
    "category_priority",
    "check_chain",
    "lookup_count",
    "resolution_order",
]
