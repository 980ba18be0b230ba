from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .exceptions import ValidationError
from .tags import validate_tags


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Tags
class TagCatalog(CamelModel):
    categories: Dict[str, List[str]]


# Events
def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Offset-aware datetimes are converted to UTC and stored naive."""
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EventBase(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    date_time: datetime
    tags: List[str] = Field(default_factory=list)

    @field_validator("date_time")
    @classmethod
    def date_time_as_utc(cls, value):
        return as_naive_utc(value)

    @field_validator("tags")
    @classmethod
    def tags_in_catalog(cls, value):
        return validate_tags(value, field="tags")


class EventCreate(EventBase):
    pass


class EventUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    date_time: Optional[datetime] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "date_time")
    @classmethod
    def not_null(cls, value, info: ValidationInfo):
        # validators only see fields that were sent
        if value is None:
            raise ValidationError(info.field_name, "may not be null")
        return value

    @field_validator("date_time")
    @classmethod
    def date_time_as_utc(cls, value):
        return as_naive_utc(value)

    @field_validator("tags")
    @classmethod
    def tags_in_catalog(cls, value):
        if value is None:
            return value
        return validate_tags(value, field="tags")


class Event(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    date_time: datetime
    tags: List[str]
    organizer_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class EventDetail(Event):
    # only filled in for students
    is_saved: Optional[bool] = None


# Interests
class InterestsUpdate(CamelModel):
    interests: List[str]

    @field_validator("interests")
    @classmethod
    def interests_in_catalog(cls, value):
        return validate_tags(value, field="interests")


class Interests(CamelModel):
    interests: List[str]


class InterestsUpdated(Interests):
    message: str = "Interests updated successfully"


# Notifications
class NotificationEvent(CamelModel):
    id: int
    title: str
    date_time: datetime
    tags: List[str]


class Notification(CamelModel):
    id: int
    event_id: int
    message: str
    matched_tags: List[str]
    is_read: bool
    created_at: datetime
    event: NotificationEvent


class NotificationList(CamelModel):
    notifications: List[Notification]


class MarkReadRequest(CamelModel):
    ids: Optional[List[int]] = None


class MarkReadResult(CamelModel):
    message: str = "Notifications updated"
    updated: int


class UnreadCount(CamelModel):
    count: int


# Engagement
class ViewTracked(CamelModel):
    message: str = "View tracked successfully"
    is_new_view: bool


class SaveState(CamelModel):
    message: str
    saved: bool


class EventMetrics(CamelModel):
    total_views: int = 0
    total_saves: int = 0
    recent_views: int = 0
    recent_saves: int = 0


class EventMetricsResponse(CamelModel):
    event_id: int
    metrics: EventMetrics


class EventEngagement(CamelModel):
    id: int
    title: str
    date_time: datetime
    created_at: datetime
    unique_views: int = 0
    save_count: int = 0


class EngagementSummary(CamelModel):
    total_events: int = 0
    total_views: int = 0
    total_saves: int = 0
    avg_views_per_event: float = 0.0
    avg_saves_per_event: float = 0.0


class OrganizerSummary(CamelModel):
    events: List[EventEngagement]
    summary: EngagementSummary
