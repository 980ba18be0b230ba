"""Tests for notification fan-out on event publish."""
import pytest
from sqlalchemy.exc import OperationalError

from campus_events import events, interests, matcher, models, schemas
from campus_events.exceptions import StorageError


def notifications_for(db, event_id):
    return db.query(models.Notification)\
        .filter(models.Notification.event_id == event_id)\
        .order_by(models.Notification.user_id)\
        .all()


def test_example_scenario(db, make_event):
    interests.replace_interests(db, 1, ["Free Pizza", "Career Fair"])

    pizza_night = make_event(["Free Pizza", "Music"], title="Pizza Night")
    created = matcher.notify_matching_students(db, pizza_night)

    rows = notifications_for(db, pizza_night.id)
    assert created == 1
    assert len(rows) == 1
    assert rows[0].user_id == 1
    assert rows[0].matched_tags == ["Free Pizza"]
    assert rows[0].is_read is False
    assert "Pizza Night" in rows[0].message
    assert "Free Pizza" in rows[0].message

    mixer = make_event(["Networking"], title="Alumni Mixer")
    assert matcher.notify_matching_students(db, mixer) == 0
    assert notifications_for(db, mixer.id) == []


def test_only_intersecting_students_are_notified(db, make_event):
    interests.replace_interests(db, 1, ["Music"])
    interests.replace_interests(db, 2, ["Sports", "Free Snacks"])
    interests.replace_interests(db, 3, ["Comedy"])
    interests.replace_interests(db, 4, [])

    event = make_event(["Free Snacks", "Music", "Trivia"])
    matcher.notify_matching_students(db, event)

    rows = notifications_for(db, event.id)
    assert [row.user_id for row in rows] == [1, 2]
    assert rows[0].matched_tags == ["Music"]
    assert rows[1].matched_tags == ["Free Snacks"]


def test_matched_tags_follow_event_tag_order(db, make_event):
    interests.replace_interests(db, 1, ["Trivia", "Free Coffee", "Music"])

    event = make_event(["Music", "Free Coffee", "Games", "Trivia"])
    matcher.notify_matching_students(db, event)

    assert notifications_for(db, event.id)[0].matched_tags == ["Music", "Free Coffee", "Trivia"]


def test_event_without_tags_notifies_nobody(db, make_event):
    interests.replace_interests(db, 1, ["Music"])

    event = make_event([])
    assert matcher.notify_matching_students(db, event) == 0
    assert notifications_for(db, event.id) == []


def test_rerunning_the_matcher_never_duplicates(db, make_event):
    interests.replace_interests(db, 1, ["Music"])
    interests.replace_interests(db, 2, ["Music"])
    event = make_event(["Music"])

    assert matcher.notify_matching_students(db, event) == 2
    assert matcher.notify_matching_students(db, event) == 0
    assert len(notifications_for(db, event.id)) == 2


def test_unique_constraint_absorbs_duplicates_even_without_prefilter(db, make_event, monkeypatch):
    interests.replace_interests(db, 1, ["Music"])
    event = make_event(["Music"])
    matcher.notify_matching_students(db, event)

    # bypass the anti-join so the insert itself meets the existing row
    monkeypatch.setattr(matcher, "find_candidates", lambda db, event_id, tags: {1: {"Music"}})

    assert matcher.notify_matching_students(db, event) == 0
    assert len(notifications_for(db, event.id)) == 1


def test_tag_change_only_reaches_students_not_yet_notified(db, make_event):
    interests.replace_interests(db, 1, ["Free Pizza", "Music"])
    interests.replace_interests(db, 2, ["Music"])
    event = make_event(["Free Pizza"])
    matcher.notify_matching_students(db, event)

    event, tags_changed = events.update_event(db, event, schemas.EventUpdate(tags=["Free Pizza", "Music"]))
    assert tags_changed
    assert matcher.notify_matching_students(db, event) == 1

    rows = notifications_for(db, event.id)
    assert [row.user_id for row in rows] == [1, 2]
    # student 1 keeps the first notification
    assert rows[0].matched_tags == ["Free Pizza"]
    assert rows[1].matched_tags == ["Music"]


def test_storage_failure_keeps_notifications_already_written(db, make_event, monkeypatch):
    for student_id in (1, 2, 3):
        interests.replace_interests(db, student_id, ["Music"])
    event = make_event(["Music"])

    real_insert = matcher.insert_or_ignore
    calls = []

    def flaky_insert(session, model, values, conflict_columns):
        calls.append(values["user_id"])
        if len(calls) == 2:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return real_insert(session, model, values, conflict_columns)

    monkeypatch.setattr(matcher, "insert_or_ignore", flaky_insert)
    with pytest.raises(StorageError):
        matcher.notify_matching_students(db, event)

    assert calls == [1, 2]
    assert [row.user_id for row in notifications_for(db, event.id)] == [1]

    # a later run picks up the students the failed run missed
    monkeypatch.setattr(matcher, "insert_or_ignore", real_insert)
    assert matcher.notify_matching_students(db, event) == 2
    assert [row.user_id for row in notifications_for(db, event.id)] == [1, 2, 3]


def test_publish_swallows_fan_out_failure(db, make_event, monkeypatch):
    interests.replace_interests(db, 1, ["Music"])
    event = make_event(["Music"])

    def broken(*args, **kwargs):
        raise StorageError("notify_matching_students", event_id=event.id)

    monkeypatch.setattr(matcher, "notify_matching_students", broken)
    assert matcher.publish_event_notifications(db, event) == 0


def test_build_message_lists_matched_tags():
    message = matcher.build_message("Career Night", ["Career Fair", "Free Food"])
    assert message == 'New event "Career Night" matches your interests: Career Fair, Free Food'
