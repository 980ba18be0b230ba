"""Pytest fixtures: an in-memory SQLite Database per test and a TestClient
whose auth dependency reads the caller from an X-Test-User header
("student:1", "organizer:7") instead of calling the auth service.
"""
from datetime import timedelta

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient

from campus_events import events, schemas
from campus_events.database import Database, utcnow
from campus_events.dependencies import verify_token
from campus_events.main import create_app


def fake_verify_token(request: Request):
    header = request.headers.get("X-Test-User")
    if not header:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    role, user_id = header.split(":")
    return {"user_id": int(user_id), "email": f"{role}{user_id}@campus.test", "role": role}


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.drop_all()
    database.engine.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(database):
    app = create_app(database)
    app.dependency_overrides[verify_token] = fake_verify_token
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_event(db):
    """Create an event directly through the events module."""
    def _make_event(tags, organizer_id=1, title="Study Break", days_ahead=3):
        event_in = schemas.EventCreate(
            title=title,
            description="Drop by between classes",
            location="Student Union",
            date_time=utcnow().replace(microsecond=0) + timedelta(days=days_ahead),
            tags=tags,
        )
        return events.create_event(db, event_in, organizer_id)
    return _make_event
