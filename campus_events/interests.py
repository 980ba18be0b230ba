from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Iterable, Set
import logging

from . import models
from .exceptions import StorageError
from .tags import validate_tags

logger = logging.getLogger(__name__)


def get_interests(db: Session, student_id: int) -> Set[str]:
    try:
        rows = db.query(models.StudentInterest.tag)\
            .filter(models.StudentInterest.user_id == student_id)\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read interests for student {student_id}: {e}")
        raise StorageError("get_interests", student_id=student_id) from e
    return {row.tag for row in rows}


def replace_interests(db: Session, student_id: int, tags: Iterable[str]) -> Set[str]:
    """Swap the student's whole tag set in one transaction.

    An empty iterable clears every interest. On failure the previous set is kept.
    """
    new_tags = validate_tags(tags, field="interests")

    try:
        db.query(models.StudentInterest)\
            .filter(models.StudentInterest.user_id == student_id)\
            .delete(synchronize_session=False)
        db.add_all(
            models.StudentInterest(user_id=student_id, tag=tag) for tag in new_tags
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to replace interests for student {student_id}: {e}")
        raise StorageError("replace_interests", student_id=student_id) from e

    logger.info(f"Student {student_id} now follows {len(new_tags)} tags")
    return set(new_tags)
