"""Scoreboard rows assembled from users and the requirement catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..models import Graduation, RatingSystem, Requirement, User
from .engine import (
    ColumnGroup,
    ScoreColumn,
    category_scores,
    cohort_score,
    column_groups,
    percent_complete,
    score_columns,
    score_for,
    scoreboard_requirements,
)

_RATING_FIELDS: dict[RatingSystem, tuple[str, str]] = {
    RatingSystem.CHESSCOM: ("start_chesscom_rating", "current_chesscom_rating"),
    RatingSystem.LICHESS: ("start_lichess_rating", "current_lichess_rating"),
    RatingSystem.FIDE: ("start_fide_rating", "current_fide_rating"),
    RatingSystem.USCF: ("start_uscf_rating", "current_uscf_rating"),
}


def start_rating(member: User | Graduation) -> int:
    if isinstance(member, Graduation):
        return member.start_rating
    fields = _RATING_FIELDS.get(member.rating_system) if member.rating_system else None
    return getattr(member, fields[0]) if fields else 0


def current_rating(member: User | Graduation) -> int:
    if isinstance(member, Graduation):
        return member.current_rating
    fields = _RATING_FIELDS.get(member.rating_system) if member.rating_system else None
    return getattr(member, fields[1]) if fields else 0


def rating_change(member: User | Graduation) -> int:
    return current_rating(member) - start_rating(member)


@dataclass(slots=True)
class ScoreboardRow:
    username: str
    display_name: str
    previous_cohort: str
    graduation_cohorts: list[str]
    rating_system: RatingSystem | None
    start_rating: int
    current_rating: int
    rating_change: int
    cohort_score: int
    percent_complete: float
    category_scores: dict[str, int] = field(default_factory=dict)
    scores: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class Scoreboard:
    cohort: str
    columns: list[ScoreColumn]
    groups: list[ColumnGroup]
    rows: list[ScoreboardRow]


def build_row(
    member: User | Graduation, cohort: str, requirements: Sequence[Requirement]
) -> ScoreboardRow:
    graduation_cohorts = [] if isinstance(member, Graduation) else list(member.graduation_cohorts)
    return ScoreboardRow(
        username=member.username,
        display_name=member.display_name,
        previous_cohort=member.previous_cohort,
        graduation_cohorts=graduation_cohorts,
        rating_system=member.rating_system,
        start_rating=start_rating(member),
        current_rating=current_rating(member),
        rating_change=rating_change(member),
        cohort_score=cohort_score(member, cohort, requirements),
        percent_complete=percent_complete(member, cohort, requirements),
        category_scores=category_scores(member, cohort, requirements),
        scores={r.id: score_for(member, r, cohort) for r in requirements},
    )


def scoreboard_members(
    members: Iterable[User | Graduation], cohort: str, current_user: User | None = None
) -> list[User | Graduation]:
    """Members to display; the signed-in user leads their own cohort's board."""

    members = list(members)
    if current_user is None or current_user.dojo_cohort != cohort:
        return members
    return [current_user] + [m for m in members if m.username != current_user.username]


def build_scoreboard(
    members: Iterable[User | Graduation],
    cohort: str,
    requirements: Iterable[Requirement],
    current_user: User | None = None,
) -> Scoreboard:
    ordered = scoreboard_requirements(list(requirements), cohort)
    members = scoreboard_members(members, cohort, current_user)
    return Scoreboard(
        cohort=cohort,
        columns=score_columns(ordered, cohort),
        groups=column_groups(ordered),
        rows=[build_row(member, cohort, ordered) for member in members],
    )


__all__ = [
    "Scoreboard",
    "ScoreboardRow",
    "build_row",
    "build_scoreboard",
    "current_rating",
    "rating_change",
    "scoreboard_members",
    "start_rating",
]
