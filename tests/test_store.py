from datetime import date, timedelta
from unittest import mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from models import db
from scheduling.errors import BookingConflictError, BookingWriteError
from scheduling.store import BookingStore
from tests.conftest import make_booking, make_room

DAY = date(2024, 6, 10)


def fields(room, start, end, **extra):
    out = {"room_id": room.id, "booking_date": DAY, "start_time": start, "end_time": end,
           "status": "pending", "title": "Planning"}
    out.update(extra)
    return out


def test_active_rooms_ordered_by_name(app):
    make_room("Beta")
    make_room("Alpha")
    make_room("Gamma", is_active=False)
    store = BookingStore(db.session)
    assert [r.name for r in store.active_rooms()] == ["Alpha", "Beta"]
    assert [r.name for r in store.all_rooms()] == ["Alpha", "Beta", "Gamma"]


def test_bookings_between_is_inclusive_and_ordered(app):
    room = make_room()
    make_booking(room, DAY + timedelta(days=1), "09:00", "10:00", title="c")
    make_booking(room, DAY, "13:00", "14:00", title="b")
    make_booking(room, DAY, "08:00", "09:00", title="a")
    make_booking(room, DAY + timedelta(days=7), "09:00", "10:00", title="outside")

    rows = BookingStore(db.session).bookings_between(DAY, DAY + timedelta(days=6))
    assert [b.title for b in rows] == ["a", "b", "c"]


def test_create_rejects_overlap_and_allows_touching(app):
    room = make_room()
    make_booking(room, DAY, "09:00", "10:00")
    store = BookingStore(db.session)

    with pytest.raises(BookingConflictError) as err:
        store.create_booking(fields(room, "09:30", "10:30"))
    assert [c.start_time for c in err.value.conflicts] == ["09:00"]

    booking = store.create_booking(fields(room, "10:00", "11:00"))
    assert booking.id is not None


def test_cancel_frees_the_slot(app):
    room = make_room()
    existing = make_booking(room, DAY, "09:00", "10:00")
    store = BookingStore(db.session)

    store.cancel_booking(existing)
    assert existing.status == "cancelled"
    assert existing.cancelled_at is not None
    assert store.bookings_for_room_day(room.id, DAY) == []
    assert store.create_booking(fields(room, "09:30", "10:30")).id is not None


def test_update_excludes_itself_from_conflicts(app):
    room = make_room()
    booking = make_booking(room, DAY, "09:00", "10:00")
    store = BookingStore(db.session)
    store.update_booking(booking, {"end_time": "10:30"})
    assert booking.end_time == "10:30"


def test_read_failure_yields_empty_list(app, caplog):
    store = BookingStore(db.session)
    with mock.patch("sqlalchemy.orm.Query.all", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        assert store.active_rooms() == []
        assert store.bookings_between(DAY, DAY) == []
    assert "Failed to load" in caplog.text


def test_constraint_race_becomes_write_error(app):
    room = make_room()
    store = BookingStore(db.session)
    with mock.patch("sqlalchemy.orm.Session.commit", side_effect=IntegrityError("INSERT", {}, Exception("overlap"))):
        with pytest.raises(BookingWriteError) as err:
            store.create_booking(fields(room, "09:00", "10:00"))
    assert err.value.status_code == 409
    assert "just booked" in err.value.message


def test_conflict_reread_failure_becomes_write_error(app, caplog):
    room = make_room()
    store = BookingStore(db.session)
    with mock.patch("sqlalchemy.orm.Query.all", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        with pytest.raises(BookingWriteError) as err:
            store.create_booking(fields(room, "09:00", "10:00"))
    assert err.value.status_code == 500
    assert err.value.message == "Could not create the booking. Please try again."
    assert "Conflict check before booking create failed" in caplog.text
    assert store.bookings_between(DAY, DAY) == []
