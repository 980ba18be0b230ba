from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc
from typing import Iterable, List, Optional
import logging

from . import config, models
from .exceptions import StorageError

logger = logging.getLogger(__name__)


def list_notifications(db: Session, student_id: int, limit: Optional[int] = None) -> List[models.Notification]:
    """Newest first, bounded to the most recent `limit` rows"""
    if limit is None:
        limit = config.NOTIFICATION_LIST_LIMIT
    try:
        return db.query(models.Notification)\
            .options(joinedload(models.Notification.event))\
            .filter(models.Notification.user_id == student_id)\
            .order_by(desc(models.Notification.created_at), desc(models.Notification.id))\
            .limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list notifications for student {student_id}: {e}")
        raise StorageError("list_notifications", student_id=student_id) from e


def _mark(db: Session, student_id: int, query, operation: str) -> int:
    # single UPDATE: rows inserted after it runs stay unread
    try:
        updated = query.filter(
            models.Notification.user_id == student_id,
            models.Notification.is_read == False  # noqa: E712
        ).update({models.Notification.is_read: True}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operation} failed for student {student_id}: {e}")
        raise StorageError(operation, student_id=student_id) from e
    return updated


def mark_all_read(db: Session, student_id: int) -> int:
    updated = _mark(db, student_id, db.query(models.Notification), "mark_all_read")
    logger.info(f"Marked {updated} notifications read for student {student_id}")
    return updated


def mark_read(db: Session, student_id: int, ids: Iterable[int]) -> int:
    """Ids owned by other students are ignored without notice."""
    ids = set(ids or [])
    if not ids:
        return 0
    query = db.query(models.Notification).filter(models.Notification.id.in_(ids))
    return _mark(db, student_id, query, "mark_read")


def get_unread_count(db: Session, student_id: int) -> int:
    try:
        return db.query(models.Notification)\
            .filter(
                models.Notification.user_id == student_id,
                models.Notification.is_read == False  # noqa: E712
            ).count()
    except SQLAlchemyError as e:
        logger.error(f"Failed to count unread notifications for student {student_id}: {e}")
        raise StorageError("get_unread_count", student_id=student_id) from e
