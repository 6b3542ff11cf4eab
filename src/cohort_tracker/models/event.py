"""Calendar event models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    AVAILABILITY = "AVAILABILITY"
    DOJO = "DOJO"


class EventStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    BOOKED = "BOOKED"
    CANCELED = "CANCELED"


class Participant(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    display_name: str = Field(default="", alias="displayName")
    cohort: str = ""


class Event(BaseModel):
    """A calendar event visible to one or more cohorts."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: EventType = EventType.AVAILABILITY
    owner: str = ""
    owner_display_name: str = Field(default="", alias="ownerDisplayName")
    owner_cohort: str = Field(default="", alias="ownerCohort")
    title: str = ""
    start_time: str = Field(default="", alias="startTime")
    end_time: str = Field(default="", alias="endTime")
    cohorts: list[str] = Field(default_factory=list)
    status: EventStatus = EventStatus.SCHEDULED
    location: str = ""
    description: str = ""
    max_participants: int = Field(default=0, alias="maxParticipants")
    participants: list[Participant] = Field(default_factory=list)

    def visible_to(self, cohort: str) -> bool:
        return not self.cohorts or cohort in self.cohorts


__all__ = ["Event", "EventStatus", "EventType", "Participant"]
