from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional, Tuple
import logging

from . import models, schemas
from .database import utcnow
from .exceptions import NotFoundError, StorageError, ValidationError
from .tags import is_valid_tag

logger = logging.getLogger(__name__)


def create_event(db: Session, event: schemas.EventCreate, organizer_id: int) -> models.Event:
    db_event = models.Event(**event.model_dump(), organizer_id=organizer_id)
    try:
        db.add(db_event)
        db.commit()
        db.refresh(db_event)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create event for organizer {organizer_id}: {e}")
        raise StorageError("create_event", organizer_id=organizer_id) from e
    logger.info(f"Event {db_event.id} created by organizer {organizer_id} with tags {db_event.tags}")
    return db_event


def get_event(db: Session, event_id: int):
    try:
        return db.query(models.Event).filter(models.Event.id == event_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load event {event_id}: {e}")
        raise StorageError("get_event", event_id=event_id) from e


def get_owned_event(db: Session, event_id: int, organizer_id: int) -> models.Event:
    """Event owned by the organizer; missing and foreign events look the same."""
    try:
        db_event = db.query(models.Event)\
            .filter(models.Event.id == event_id, models.Event.organizer_id == organizer_id)\
            .first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load event {event_id} for organizer {organizer_id}: {e}")
        raise StorageError("get_owned_event", event_id=event_id, organizer_id=organizer_id) from e
    if db_event is None:
        raise NotFoundError("Event not found or access denied")
    return db_event


def get_events_by_organizer(db: Session, organizer_id: int) -> List[models.Event]:
    try:
        return db.query(models.Event)\
            .filter(models.Event.organizer_id == organizer_id)\
            .order_by(models.Event.date_time)\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list events of organizer {organizer_id}: {e}")
        raise StorageError("get_events_by_organizer", organizer_id=organizer_id) from e


def list_upcoming_events(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    tag: Optional[str] = None
) -> List[models.Event]:
    """Events that have not started yet, soonest first, optionally carrying `tag`."""
    if tag is not None and not is_valid_tag(tag):
        raise ValidationError("tag", f"unknown tag: {tag}")

    try:
        query = db.query(models.Event)\
            .filter(models.Event.date_time >= utcnow())\
            .order_by(models.Event.date_time, models.Event.id)
        if tag is None:
            return query.offset(skip).limit(limit).all()
        # tags live in a JSON column, so the membership test runs here
        tagged = [event for event in query.all() if tag in (event.tags or [])]
    except SQLAlchemyError as e:
        logger.error(f"Failed to list upcoming events: {e}")
        raise StorageError("list_upcoming_events", tag=tag) from e
    return tagged[skip:skip + limit]


def update_event(
    db: Session,
    db_event: models.Event,
    event_update: schemas.EventUpdate
) -> Tuple[models.Event, bool]:
    """Apply the update; the flag says whether the tag set changed."""
    update_data = event_update.model_dump(exclude_unset=True)
    if update_data.get("tags") is None:
        update_data.pop("tags", None)

    event_id = db_event.id
    old_tags = set(db_event.tags or [])
    for field, value in update_data.items():
        setattr(db_event, field, value)

    try:
        db.commit()
        db.refresh(db_event)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update event {event_id}: {e}")
        raise StorageError("update_event", event_id=event_id) from e

    tags_changed = set(db_event.tags or []) != old_tags
    logger.info(f"Event {event_id} updated (tags changed: {tags_changed})")
    return db_event, tags_changed
