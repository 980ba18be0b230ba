"""Fan-out of interest-matched notifications when an event is published.

Candidates come from the tag index on student_interests, so a publish only
touches students subscribed to at least one of the event's tags. The unique
(user_id, event_id) constraint on notifications makes every insert
insert-or-ignore: re-running the matcher for the same event never creates a
second notification for a student, and students notified earlier are not
re-notified when the event's tags change later.
"""
from collections import defaultdict
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, List, Sequence, Set
import logging

from . import models
from .database import insert_or_ignore, utcnow
from .exceptions import StorageError

logger = logging.getLogger(__name__)


def build_message(title: str, matched_tags: Sequence[str]) -> str:
    return f'New event "{title}" matches your interests: {", ".join(matched_tags)}'


def _unique_tags(tags) -> List[str]:
    ordered = []
    for tag in tags or []:
        if tag not in ordered:
            ordered.append(tag)
    return ordered


def find_candidates(db: Session, event_id: int, event_tags: Sequence[str]) -> Dict[int, Set[str]]:
    """Map of student id -> subscribed tags among event_tags, skipping students already notified."""
    already_notified = select(models.Notification.user_id)\
        .where(models.Notification.event_id == event_id)

    rows = db.query(models.StudentInterest.user_id, models.StudentInterest.tag)\
        .filter(
            models.StudentInterest.tag.in_(list(event_tags)),
            models.StudentInterest.user_id.not_in(already_notified)
        ).all()

    candidates = defaultdict(set)
    for row in rows:
        candidates[row.user_id].add(row.tag)
    return candidates


def notify_matching_students(db: Session, event) -> int:
    """Create one notification per newly matching student. Returns how many were written.

    `event` needs `id`, `title` and `tags`. Each insert is committed on its own;
    a storage error stops the run and keeps what was already written.
    """
    event_id, title = event.id, event.title
    event_tags = _unique_tags(event.tags)
    if not event_tags:
        logger.info(f"Event {event_id} has no tags, nothing to notify")
        return 0

    try:
        candidates = find_candidates(db, event_id, event_tags)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to look up candidates for event {event_id}: {e}")
        raise StorageError("find_candidates", event_id=event_id) from e

    created = 0
    for student_id in sorted(candidates):
        matched_tags = [tag for tag in event_tags if tag in candidates[student_id]]
        values = {
            "user_id": student_id,
            "event_id": event_id,
            "message": build_message(title, matched_tags),
            "matched_tags": matched_tags,
            "is_read": False,
            "created_at": utcnow(),
        }
        try:
            if insert_or_ignore(db, models.Notification, values, ("user_id", "event_id")):
                created += 1
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Fan-out for event {event_id} stopped at student {student_id} "
                f"after {created} notifications: {e}"
            )
            raise StorageError("notify_matching_students", event_id=event_id, student_id=student_id) from e

    logger.info(f"Event {event_id}: {created} notifications created for {len(candidates)} candidates")
    return created


def publish_event_notifications(db: Session, event) -> int:
    """Run the fan-out as a side effect of publishing; never fails the caller."""
    event_id = event.id
    try:
        return notify_matching_students(db, event)
    except StorageError as e:
        logger.warning(f"Notification fan-out for event {event_id} failed: {e}")
        return 0
