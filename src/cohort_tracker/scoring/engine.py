"""Score, target and column computations for cohort scoreboards.

Every function here is pure: it reads the user and the requirement catalog
and returns plain values. Nothing is cached, so results always reflect the
data passed in.

Counts are resolved with :func:`lookup_count`, which consults the global
``ALL_COHORTS`` entry before the cohort entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Iterable, Mapping, Protocol, Sequence

from ..models import (
    Requirement,
    RequirementProgress,
    ScoreboardDisplay,
    category_priority,
    lookup_count,
)


class Scoreable(Protocol):
    """Anything carrying per-requirement progress (users, graduations)."""

    @property
    def progress(self) -> Mapping[str, RequirementProgress]: ...


class CellDisplay(str, Enum):
    CHECKBOX = "CHECKBOX"
    PROGRESS_BAR = "PROGRESS_BAR"


@dataclass(slots=True, frozen=True)
class CheckboxCell:
    checked: bool


@dataclass(slots=True, frozen=True)
class ProgressCell:
    value: int
    max: int


@dataclass(slots=True, frozen=True)
class ScoreColumn:
    """Display descriptor for one requirement column."""

    field: str
    header_name: str
    display: CellDisplay
    requirement: Requirement
    cohort: str | None
    total: int

    def value(self, user: Scoreable) -> int:
        return score_for(user, self.requirement, self.cohort)

    def render(self, user: Scoreable) -> CheckboxCell | ProgressCell:
        score = self.value(user)
        if self.display is CellDisplay.CHECKBOX:
            return CheckboxCell(checked=score >= self.total)
        return ProgressCell(value=score, max=self.total)


@dataclass(slots=True)
class ColumnGroup:
    group_id: str
    children: list[str] = field(default_factory=list)


def score_for(user: Scoreable, requirement: Requirement, cohort: str | None) -> int:
    progress = user.progress.get(requirement.id)
    if progress is None:
        return 0
    return lookup_count(progress.counts, cohort) or 0


def target_for(requirement: Requirement, cohort: str | None) -> int:
    target = lookup_count(requirement.counts, cohort)
    return 1 if target is None else target


def visible_requirements(requirements: Iterable[Requirement], cohort: str | None) -> list[Requirement]:
    """Requirements shown on the cohort's scoreboard: not hidden and applicable."""

    return [r for r in requirements if not r.is_hidden and r.applies_to(cohort)]


def column_for(requirement: Requirement, cohort: str | None) -> ScoreColumn:
    display = (
        CellDisplay.CHECKBOX
        if requirement.scoreboard_display is ScoreboardDisplay.CHECKBOX
        else CellDisplay.PROGRESS_BAR
    )
    return ScoreColumn(
        field=requirement.id,
        header_name=requirement.name,
        display=display,
        requirement=requirement,
        cohort=cohort,
        total=target_for(requirement, cohort),
    )


def score_columns(requirements: Iterable[Requirement], cohort: str | None) -> list[ScoreColumn]:
    return [column_for(r, cohort) for r in visible_requirements(requirements, cohort)]


def cohort_score(user: Scoreable, cohort: str | None, requirements: Iterable[Requirement]) -> int:
    return sum(score_for(user, r, cohort) for r in visible_requirements(requirements, cohort))


def category_score(
    user: Scoreable,
    cohort: str | None,
    requirements: Iterable[Requirement],
    category: str,
) -> int:
    return sum(
        score_for(user, r, cohort)
        for r in visible_requirements(requirements, cohort)
        if r.category == category
    )


def category_scores(
    user: Scoreable, cohort: str | None, requirements: Iterable[Requirement]
) -> dict[str, int]:
    scores: dict[str, int] = {}
    for requirement in visible_requirements(requirements, cohort):
        scores[requirement.category] = scores.get(requirement.category, 0) + score_for(
            user, requirement, cohort
        )
    return scores


def percent_complete(user: Scoreable, cohort: str | None, requirements: Iterable[Requirement]) -> float:
    visible = visible_requirements(requirements, cohort)
    total = sum(target_for(r, cohort) for r in visible)
    if total <= 0:
        return 0.0
    score = sum(score_for(user, r, cohort) for r in visible)
    return min(100.0, max(0.0, 100.0 * score / total))


def format_percent_complete(value: float) -> str:
    return f"{value:.0f}%"


def column_groups(requirements: Iterable[Requirement]) -> list[ColumnGroup]:
    """Group requirement columns by category, in first-encounter order."""

    groups: dict[str, ColumnGroup] = {}
    for requirement in requirements:
        group = groups.get(requirement.category)
        if group is None:
            group = groups[requirement.category] = ColumnGroup(group_id=requirement.category)
        group.children.append(requirement.id)
    return list(groups.values())


def compare_requirements(a: Requirement, b: Requirement) -> int:
    """Total order: category priority, category name, requirement name, id."""

    left = (category_priority(a.category), a.category, a.name, a.id)
    right = (category_priority(b.category), b.category, b.name, b.id)
    return (left > right) - (left < right)


def sort_requirements(requirements: Iterable[Requirement]) -> list[Requirement]:
    return sorted(requirements, key=cmp_to_key(compare_requirements))


def scoreboard_requirements(
    requirements: Sequence[Requirement], cohort: str | None
) -> list[Requirement]:
    """Visible requirements in display order."""

    return sort_requirements(visible_requirements(requirements, cohort))


__all__ = [
    "CellDisplay",
    "CheckboxCell",
    "ColumnGroup",
    "ProgressCell",
    "ScoreColumn",
    "Scoreable",
    "category_score",
    "category_scores",
    "cohort_score",
    "column_for",
    "column_groups",
    "compare_requirements",
    "format_percent_complete",
    "percent_complete",
    "score_columns",
    "score_for",
    "scoreboard_requirements",
    "sort_requirements",
    "target_for",
    "visible_requirements",
]
