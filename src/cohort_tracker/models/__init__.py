"""Wire models for requirements, users and events."""

from .event import Event, EventStatus, EventType, Participant
from .requirement import (
    ALL_COHORTS,
    Requirement,
    RequirementCategory,
    RequirementProgress,
    ScoreKey,
    ScoreboardDisplay,
    TimelineEntry,
    category_priority,
    check_chain,
    lookup_count,
)
from .user import Graduation, RatingSystem, User

__all__ = [
    "ALL_COHORTS",
    "Event",
    "EventStatus",
    "EventType",
    "Graduation",
    "Participant",
    "RatingSystem",
    "Requirement",
    "RequirementCategory",
    "RequirementProgress",
    "ScoreKey",
    "ScoreboardDisplay",
    "TimelineEntry",
    "User",
    "category_priority",
    "check_chain",
    "lookup_count",
]
