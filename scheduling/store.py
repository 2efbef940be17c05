"""Reads and writes of rooms and bookings through an injected SQLAlchemy session.

Reads degrade to an empty result on database errors (logged), so a schedule
still renders while the database is unhappy. Writes re-run the conflict check
inside the write transaction and translate database errors into
``BookingWriteError``.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.booking import Booking
from models.room import Room
from scheduling.conflicts import Candidate, find_conflicts
from scheduling.errors import BookingConflictError, BookingWriteError

logger = logging.getLogger(__name__)

BOOKING_FIELDS = (
    "room_id", "booking_date", "start_time", "end_time", "status", "title", "description",
    "attendees_count", "booker_name", "booker_email", "booker_phone", "user_id",
)

ROOM_FIELDS = ("name", "location", "capacity", "description", "is_active")


class BookingStore:
    def __init__(self, session):
        self.session = session

    # ---------- reads ----------
    def _read(self, what, query):
        try:
            return query.all()
        except SQLAlchemyError:
            logger.exception("Failed to load %s", what)
            self.session.rollback()
            return []

    def active_rooms(self):
        q = self.session.query(Room).filter(Room.is_active.is_(True)).order_by(Room.name.asc())
        return self._read("rooms", q)

    def all_rooms(self):
        return self._read("rooms", self.session.query(Room).order_by(Room.name.asc()))

    def get_room(self, room_id):
        return self.session.get(Room, room_id)

    def bookings_between(self, start, end, room_id=None, status=None, user_id=None):
        q = self.session.query(Booking).filter(Booking.booking_date >= start, Booking.booking_date <= end)
        if room_id:
            q = q.filter(Booking.room_id == room_id)
        if status:
            q = q.filter(Booking.status == status)
        if user_id:
            q = q.filter(Booking.user_id == user_id)
        q = q.order_by(Booking.booking_date.asc(), Booking.start_time.asc())
        return self._read("bookings", q)

    def bookings_for_user(self, user_id, status=None):
        q = self.session.query(Booking).filter(Booking.user_id == user_id)
        if status:
            q = q.filter(Booking.status == status)
        q = q.order_by(Booking.booking_date.desc(), Booking.start_time.asc())
        return self._read("bookings", q)

    def _room_day_query(self, room_id, day):
        return (
            self.session.query(Booking)
            .filter(
                Booking.room_id == room_id,
                Booking.booking_date == day,
                Booking.status != "cancelled",
            )
            .order_by(Booking.start_time.asc())
        )

    def bookings_for_room_day(self, room_id, day):
        return self._read("bookings", self._room_day_query(room_id, day))

    def get_booking(self, booking_id):
        return self.session.get(Booking, booking_id)

    def fetch_week(self, start, end):
        """(rooms, bookings) for a schedule window; the shape ScheduleView expects."""
        return self.active_rooms(), self.bookings_between(start, end)

    # ---------- writes ----------
    def _check_conflicts(self, fields, action, exclude_id=None):
        candidate = Candidate(fields["room_id"], fields["booking_date"], fields["start_time"], fields["end_time"])
        try:
            existing = self._room_day_query(candidate.room_id, candidate.booking_date).all()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Conflict check before booking %s failed", action)
            raise BookingWriteError(f"Could not {action} the booking. Please try again.")
        conflicts = find_conflicts(candidate, existing, exclude_id=exclude_id)
        if conflicts:
            raise BookingConflictError(conflicts)

    def _commit(self, action):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning("Booking %s rejected by a database constraint", action)
            raise BookingWriteError(
                "This time slot was just booked by someone else. Please choose another time.",
                status_code=409,
            )
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Booking %s failed", action)
            raise BookingWriteError(f"Could not {action} the booking. Please try again.")

    def create_booking(self, fields: dict) -> Booking:
        self._check_conflicts(fields, "create")
        booking = Booking(**{k: v for k, v in fields.items() if k in BOOKING_FIELDS})
        self.session.add(booking)
        self._commit("create")
        return booking

    def update_booking(self, booking: Booking, fields: dict) -> Booking:
        changes = {k: v for k, v in fields.items() if k in BOOKING_FIELDS}
        merged = {
            "room_id": changes.get("room_id", booking.room_id),
            "booking_date": changes.get("booking_date", booking.booking_date),
            "start_time": changes.get("start_time", booking.start_time),
            "end_time": changes.get("end_time", booking.end_time),
        }
        if changes.get("status", booking.status) != "cancelled":
            self._check_conflicts(merged, "update", exclude_id=booking.id)

        for key, value in changes.items():
            setattr(booking, key, value)
        if changes.get("status") == "cancelled" and booking.cancelled_at is None:
            booking.cancelled_at = datetime.utcnow()
        self._commit("update")
        return booking

    def set_status(self, booking: Booking, status: str) -> Booking:
        # cancelling is an ordinary status update; rows are never deleted
        return self.update_booking(booking, {"status": status})

    def cancel_booking(self, booking: Booking) -> Booking:
        return self.set_status(booking, "cancelled")

    # ---------- rooms ----------
    def save_room(self, room: Room, fields: dict) -> Room:
        for key, value in fields.items():
            if key in ROOM_FIELDS:
                setattr(room, key, value)
        if room.id is None:
            self.session.add(room)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise BookingWriteError("Room name already exists", status_code=409)
        return room

    def room_has_bookings(self, room_id) -> bool:
        return self.session.query(Booking.id).filter(Booking.room_id == room_id).first() is not None

    def delete_room(self, room: Room):
        self.session.delete(room)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise BookingWriteError("Room still has bookings; deactivate it instead", status_code=409)
