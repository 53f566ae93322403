from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from society.core.schemas import ApiModel, CursorQuery, check_url
from society.events.models import AttendeeStatus, LocationType
from society.utils.dates import to_naive_utc


class EventFilter(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    MY = "my"
    ATTENDING = "attending"


class EventsQuery(CursorQuery):
    filter: EventFilter = EventFilter.UPCOMING


class _EventFields(ApiModel):
    @field_validator("start_date", "end_date", check_fields=False)
    @classmethod
    def naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else None

    @field_validator("cover_image_url", "event_url", check_fields=False)
    @classmethod
    def valid_url(cls, value: Optional[str]) -> Optional[str]:
        return check_url(value)


class CreateEventRequest(_EventFields):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    cover_image_url: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=500)
    location_type: LocationType = LocationType.IN_PERSON
    event_url: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    is_public: bool = True
    max_attendees: Optional[int] = Field(default=None, ge=1)


class UpdateEventRequest(_EventFields):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    cover_image_url: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=500)
    location_type: Optional[LocationType] = None
    event_url: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_public: Optional[bool] = None
    max_attendees: Optional[int] = Field(default=None, ge=1)


class AttendRequest(ApiModel):
    status: AttendeeStatus
