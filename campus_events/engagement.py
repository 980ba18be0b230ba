"""View and save tracking for events, and the organizer-facing aggregates.

Every count is derived from the raw event_views / event_saves rows at query
time; there is no running counter to drift from the log.
"""
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc, func, select
from typing import List, Optional
import logging

from . import config, models, schemas
from .database import insert_or_ignore, utcnow
from .events import get_event, get_owned_event
from .exceptions import NotFoundError, StorageError

logger = logging.getLogger(__name__)


def _require_event(db: Session, event_id: int):
    if get_event(db, event_id) is None:
        raise NotFoundError("Event not found")


def track_view(db: Session, event_id: int, student_id: int) -> bool:
    """Record the student's first view of the event. True only the first time."""
    _require_event(db, event_id)
    try:
        is_new_view = insert_or_ignore(
            db,
            models.EventView,
            {"event_id": event_id, "student_id": student_id, "viewed_at": utcnow()},
            ("event_id", "student_id"),
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to track view of event {event_id} by student {student_id}: {e}")
        raise StorageError("track_view", event_id=event_id, student_id=student_id) from e
    return is_new_view


def track_save(db: Session, event_id: int, student_id: int) -> bool:
    _require_event(db, event_id)
    try:
        insert_or_ignore(
            db,
            models.EventSave,
            {"event_id": event_id, "student_id": student_id, "saved_at": utcnow()},
            ("event_id", "student_id"),
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save event {event_id} for student {student_id}: {e}")
        raise StorageError("track_save", event_id=event_id, student_id=student_id) from e
    return True


def remove_save(db: Session, event_id: int, student_id: int) -> bool:
    """Unsave. Removing a save that does not exist is a no-op."""
    try:
        db.query(models.EventSave)\
            .filter(
                models.EventSave.event_id == event_id,
                models.EventSave.student_id == student_id
            ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to remove save of event {event_id} for student {student_id}: {e}")
        raise StorageError("remove_save", event_id=event_id, student_id=student_id) from e
    return False


def is_saved(db: Session, event_id: int, student_id: int) -> bool:
    try:
        return db.query(models.EventSave)\
            .filter(
                models.EventSave.event_id == event_id,
                models.EventSave.student_id == student_id
            ).first() is not None
    except SQLAlchemyError as e:
        logger.error(f"Failed to read save of event {event_id} for student {student_id}: {e}")
        raise StorageError("is_saved", event_id=event_id, student_id=student_id) from e


def get_saved_events(db: Session, student_id: int) -> List[models.Event]:
    try:
        return db.query(models.Event)\
            .join(models.EventSave, models.Event.id == models.EventSave.event_id)\
            .filter(models.EventSave.student_id == student_id)\
            .order_by(desc(models.EventSave.saved_at))\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list saved events for student {student_id}: {e}")
        raise StorageError("get_saved_events", student_id=student_id) from e


def get_metrics(
    db: Session,
    event_id: int,
    organizer_id: int,
    now: Optional[datetime] = None
) -> schemas.EventMetrics:
    """Totals and trailing-window counts for an event the organizer owns."""
    get_owned_event(db, event_id, organizer_id)
    since = (now or utcnow()) - timedelta(days=config.RECENT_WINDOW_DAYS)

    try:
        views = db.query(models.EventView).filter(models.EventView.event_id == event_id)
        saves = db.query(models.EventSave).filter(models.EventSave.event_id == event_id)
        return schemas.EventMetrics(
            total_views=views.count(),
            total_saves=saves.count(),
            recent_views=views.filter(models.EventView.viewed_at >= since).count(),
            recent_saves=saves.filter(models.EventSave.saved_at >= since).count(),
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to aggregate metrics for event {event_id}: {e}")
        raise StorageError("get_metrics", event_id=event_id) from e


def get_organizer_summary(db: Session, organizer_id: int) -> schemas.OrganizerSummary:
    """Per-event unique views and savers for every owned event, plus the rollup."""
    view_count = select(func.count(models.EventView.id))\
        .where(models.EventView.event_id == models.Event.id)\
        .correlate(models.Event)\
        .scalar_subquery()
    save_count = select(func.count(models.EventSave.id))\
        .where(models.EventSave.event_id == models.Event.id)\
        .correlate(models.Event)\
        .scalar_subquery()

    try:
        rows = db.query(
            models.Event.id,
            models.Event.title,
            models.Event.date_time,
            models.Event.created_at,
            view_count.label("unique_views"),
            save_count.label("save_count"),
        ).filter(models.Event.organizer_id == organizer_id)\
            .order_by(desc(models.Event.created_at), desc(models.Event.id))\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to build engagement summary for organizer {organizer_id}: {e}")
        raise StorageError("get_organizer_summary", organizer_id=organizer_id) from e

    events = [
        schemas.EventEngagement(
            id=row.id,
            title=row.title,
            date_time=row.date_time,
            created_at=row.created_at,
            unique_views=row.unique_views or 0,
            save_count=row.save_count or 0,
        )
        for row in rows
    ]

    total_events = len(events)
    total_views = sum(event.unique_views for event in events)
    total_saves = sum(event.save_count for event in events)
    summary = schemas.EngagementSummary(
        total_events=total_events,
        total_views=total_views,
        total_saves=total_saves,
        avg_views_per_event=round(total_views / total_events, 1) if total_events else 0.0,
        avg_saves_per_event=round(total_saves / total_events, 1) if total_events else 0.0,
    )
    return schemas.OrganizerSummary(events=events, summary=summary)
