"""User and graduation models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .requirement import RequirementProgress, TimelineEntry


class RatingSystem(str, Enum):
    CHESSCOM = "CHESSCOM"
    LICHESS = "LICHESS"
    FIDE = "FIDE"
    USCF = "USCF"


class User(BaseModel):
    """A member of a cohort, with progress and history."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    display_name: str = Field(default="", alias="displayName")
    dojo_cohort: str = Field(default="", alias="dojoCohort")
    previous_cohort: str = Field(default="", alias="previousCohort")
    graduation_cohorts: list[str] = Field(default_factory=list, alias="graduationCohorts")
    rating_system: RatingSystem | None = Field(default=None, alias="ratingSystem")

    start_chesscom_rating: int = Field(default=0, alias="startChesscomRating")
    current_chesscom_rating: int = Field(default=0, alias="currentChesscomRating")
    start_lichess_rating: int = Field(default=0, alias="startLichessRating")
    current_lichess_rating: int = Field(default=0, alias="currentLichessRating")
    start_fide_rating: int = Field(default=0, alias="startFideRating")
    current_fide_rating: int = Field(default=0, alias="currentFideRating")
    start_uscf_rating: int = Field(default=0, alias="startUscfRating")
    current_uscf_rating: int = Field(default=0, alias="currentUscfRating")

    progress: dict[str, RequirementProgress] = Field(default_factory=dict)
    timeline: list[TimelineEntry] = Field(default_factory=list)

    @field_validator("rating_system", mode="before")
    @classmethod
    def _blank_rating_system(cls, value: Any):
        if value == "":
            return None
        return value

    @field_validator("graduation_cohorts", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):
        if value is None:
            return []
        return value


class Graduation(BaseModel):
    """Snapshot of a user's progress taken when they left a cohort."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    display_name: str = Field(default="", alias="displayName")
    previous_cohort: str = Field(..., alias="previousCohort")
    new_cohort: str = Field(..., alias="newCohort")
    score: float = 0
    rating_system: RatingSystem | None = Field(default=None, alias="ratingSystem")
    start_rating: int = Field(default=0, alias="startRating")
    current_rating: int = Field(default=0, alias="currentRating")
    comments: str = ""
    progress: dict[str, RequirementProgress] = Field(default_factory=dict)
    created_at: datetime | None = Field(default=None, alias="createdAt")


__all__ = ["Graduation", "RatingSystem", "User"]
