"""Tests for the notification inbox."""
from datetime import timedelta

from campus_events import interests, matcher, models, notifications
from campus_events.database import utcnow


def add_notification(db, student_id, event, created_at=None, is_read=False):
    row = models.Notification(
        user_id=student_id,
        event_id=event.id,
        message=f"New event {event.title}",
        matched_tags=list(event.tags),
        is_read=is_read,
        created_at=created_at or utcnow(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def test_list_is_newest_first_with_event_details(db, make_event):
    first = make_event(["Music"], title="Open Mic")
    second = make_event(["Free Coffee"], title="Coffee Hour")
    now = utcnow()
    add_notification(db, 1, first, created_at=now - timedelta(hours=2))
    add_notification(db, 1, second, created_at=now - timedelta(minutes=5))

    rows = notifications.list_notifications(db, 1)

    assert [row.event.title for row in rows] == ["Coffee Hour", "Open Mic"]
    assert rows[0].event.tags == ["Free Coffee"]


def test_list_is_bounded(db, make_event):
    now = utcnow()
    for i in range(5):
        event = make_event(["Music"], title=f"Show {i}")
        add_notification(db, 1, event, created_at=now + timedelta(seconds=i))

    rows = notifications.list_notifications(db, 1, limit=3)
    assert [row.event.title for row in rows] == ["Show 4", "Show 3", "Show 2"]


def test_zero_limit_returns_nothing(db, make_event):
    add_notification(db, 1, make_event(["Music"]))

    assert notifications.list_notifications(db, 1, limit=0) == []
    assert len(notifications.list_notifications(db, 1)) == 1


def test_list_never_returns_other_students_rows(db, make_event):
    event = make_event(["Music"])
    add_notification(db, 1, event)
    add_notification(db, 2, event)

    rows = notifications.list_notifications(db, 2)
    assert [row.user_id for row in rows] == [2]


def test_mark_all_read_leaves_later_notifications_unread(db, make_event):
    interests.replace_interests(db, 1, ["Music"])
    matcher.notify_matching_students(db, make_event(["Music"]))
    matcher.notify_matching_students(db, make_event(["Music"]))
    assert notifications.get_unread_count(db, 1) == 2

    assert notifications.mark_all_read(db, 1) == 2
    assert notifications.get_unread_count(db, 1) == 0

    matcher.notify_matching_students(db, make_event(["Music"]))
    assert notifications.get_unread_count(db, 1) == 1


def test_mark_all_read_only_counts_rows_it_changed(db, make_event):
    add_notification(db, 1, make_event(["Music"]), is_read=True)
    add_notification(db, 1, make_event(["Music"]))

    assert notifications.mark_all_read(db, 1) == 1
    assert notifications.mark_all_read(db, 1) == 0


def test_mark_read_ignores_ids_of_other_students(db, make_event):
    event = make_event(["Music"])
    mine = add_notification(db, 1, event)
    theirs = add_notification(db, 2, event)
    mine_id, theirs_id = mine.id, theirs.id

    assert notifications.mark_read(db, 1, [mine_id, theirs_id, 9999]) == 1
    assert notifications.get_unread_count(db, 1) == 0
    assert notifications.get_unread_count(db, 2) == 1


def test_mark_read_with_no_ids_changes_nothing(db, make_event):
    add_notification(db, 1, make_event(["Music"]))

    assert notifications.mark_read(db, 1, []) == 0
    assert notifications.get_unread_count(db, 1) == 1


def test_unread_count_for_empty_inbox(db):
    assert notifications.get_unread_count(db, 42) == 0
