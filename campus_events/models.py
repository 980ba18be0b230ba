from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .database import Base, utcnow


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text)
    location = Column(String)
    date_time = Column(DateTime, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    organizer_id = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)


class StudentInterest(Base):
    __tablename__ = "student_interests"
    __table_args__ = (
        UniqueConstraint("user_id", "tag", name="uq_student_interests_user_tag"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    # the matcher looks subscribers up by tag
    tag = Column(String, nullable=False, index=True)


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_notifications_user_event"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    matched_tags = Column(JSON, nullable=False, default=list)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event")


class EventView(Base):
    __tablename__ = "event_views"
    __table_args__ = (
        UniqueConstraint("event_id", "student_id", name="uq_event_views_event_student"),
    )

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, nullable=False)
    viewed_at = Column(DateTime, default=utcnow, nullable=False)


class EventSave(Base):
    __tablename__ = "event_saves"
    __table_args__ = (
        UniqueConstraint("event_id", "student_id", name="uq_event_saves_event_student"),
    )

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    saved_at = Column(DateTime, default=utcnow, nullable=False)
