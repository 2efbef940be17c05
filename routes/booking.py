from datetime import date

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.room import Room
from scheduling.conflicts import Candidate, booking_summary, find_conflicts
from scheduling.errors import BookingConflictError, BookingWriteError, ValidationError
from scheduling.slots import END_TIMES, TIME_SLOTS, is_on_axis, next_slot, normalize_time
from scheduling.store import BookingStore
from scheduling.view_state import week_range
from security.rbac import require_roles, can_manage_booking, is_admin, login_required
from utils.audit import log_event

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")

ADMIN_DECISIONS = ("approved", "rejected")


def _parse_date(value: str) -> date:
    # Expect ISO format like "2026-01-20"
    return date.fromisoformat((value or "").strip())


def _booking_fields(data: dict, partial: bool = False):
    """Returns (fields, errors) for a booking create/update payload."""
    fields, errors = {}, []

    def wanted(key):
        return key in data or not partial

    if wanted("title"):
        title = data.get("title")
        title = title.strip() if isinstance(title, str) else ""
        if not title:
            errors.append("title is required")
        elif len(title) > 160:
            errors.append("title is too long")
        else:
            fields["title"] = title

    if wanted("room_id"):
        try:
            fields["room_id"] = int(data.get("room_id"))
        except (TypeError, ValueError):
            errors.append("room_id is required")

    if wanted("booking_date"):
        try:
            fields["booking_date"] = _parse_date(data.get("booking_date"))
        except (TypeError, ValueError):
            errors.append("Invalid booking_date. Use YYYY-MM-DD")

    for key, allowed in (("start_time", TIME_SLOTS), ("end_time", END_TIMES)):
        if not wanted(key):
            continue
        try:
            value = normalize_time(data.get(key))
        except ValidationError as exc:
            errors.append(f"{key}: {exc.message}")
            continue
        if not is_on_axis(value, allowed):
            errors.append(f"{key} must be a half-hour mark between {allowed[0]} and {allowed[-1]}")
        else:
            fields[key] = value

    if "attendees_count" in data or not partial:
        raw = data.get("attendees_count")
        try:
            count = int(raw) if raw not in (None, "") else 0
        except (TypeError, ValueError):
            errors.append("attendees_count must be an integer")
        else:
            if count < 0:
                errors.append("attendees_count must not be negative")
            else:
                fields["attendees_count"] = count

    for key, max_len in (("description", 5000), ("booker_name", 120), ("booker_email", 255), ("booker_phone", 30)):
        if key not in data:
            continue
        value = data.get(key)
        value = value.strip() if isinstance(value, str) else ""
        if len(value) > max_len:
            errors.append(f"{key} is too long")
        else:
            fields[key] = value or None

    if fields.get("booker_email") and "@" not in fields["booker_email"]:
        errors.append("Invalid booker_email")

    return fields, errors


def _check_room(room_id, attendees_count):
    """Returns an error response tuple, or None when the room can take the booking."""
    room = db.session.get(Room, room_id)
    if not room or not room.is_active:
        return jsonify(error="Room not found"), 404
    if room.capacity and attendees_count and attendees_count > room.capacity:
        return jsonify(error=f"Room capacity is {room.capacity} people"), 400
    return None


def _conflict_response(exc: BookingConflictError, booking_id=None):
    log_event(
        "BOOKING_CONFLICT",
        user_id=g.user.id,
        entity="booking",
        entity_id=booking_id,
        metadata={"conflicts": [c.id for c in exc.conflicts]},
    )
    return jsonify(error=exc.message, conflicts=[booking_summary(c) for c in exc.conflicts]), 409


def _get_manageable(booking_id: int):
    booking = BookingStore(db.session).get_booking(booking_id)
    if not booking or not can_manage_booking(booking):
        return None
    return booking


# ---------- reads ----------
@booking_bp.get("")
@login_required
def list_bookings():
    # defaults to the current Sunday-Saturday week
    week = week_range(date.today())
    try:
        start = _parse_date(request.args["start"]) if request.args.get("start") else week[0]
        end = _parse_date(request.args["end"]) if request.args.get("end") else week[-1]
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if end < start:
        return jsonify(error="end must not be before start"), 400

    rows = BookingStore(db.session).bookings_between(
        start,
        end,
        room_id=request.args.get("room_id", type=int),
        status=request.args.get("status"),
    )
    return jsonify([b.to_dict(include_room=True) for b in rows]), 200


@booking_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")
    rows = BookingStore(db.session).bookings_for_user(g.user.id, status=status)
    return jsonify([b.to_dict(include_room=True) for b in rows]), 200


@booking_bp.get("/new")
@login_required
def new_booking_form():
    """Pre-filled creation form; the target of empty schedule cells."""
    room_id = request.args.get("room", type=int)
    date_str = request.args.get("date")
    time_str = request.args.get("time")

    start_time = end_time = ""
    if time_str:
        try:
            start_time = normalize_time(time_str)
        except ValidationError as exc:
            return jsonify(error=exc.message), 400
        if not is_on_axis(start_time):
            return jsonify(error="time must be a half-hour mark between 08:00 and 21:00"), 400
        end_time = next_slot(start_time) or END_TIMES[-1]

    booking_date = ""
    if date_str:
        try:
            booking_date = _parse_date(date_str).isoformat()
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    rooms = BookingStore(db.session).active_rooms()
    return jsonify(
        form={
            "title": "",
            "room_id": room_id if room_id in {r.id for r in rooms} else None,
            "booking_date": booking_date,
            "start_time": start_time,
            "end_time": end_time,
            "attendees_count": None,
            "description": "",
            "booker_name": g.user.display_name,
            "booker_email": g.user.email,
            "booker_phone": g.user.phone_number or "",
        },
        rooms=[r.to_dict() for r in rooms],
        start_times=list(TIME_SLOTS),
        end_times=list(END_TIMES),
    ), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = BookingStore(db.session).get_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    out = booking.to_dict(include_room=True)
    out["can_edit"] = can_manage_booking(booking)
    return jsonify(out), 200


@booking_bp.post("/check")
@login_required
def check_conflicts():
    data = request.get_json(silent=True) or {}
    fields, errors = _booking_fields(
        {k: data.get(k) for k in ("room_id", "booking_date", "start_time", "end_time")},
        partial=True,
    )
    if errors:
        return jsonify(error="Invalid booking", details=errors), 400
    if fields["start_time"] >= fields["end_time"]:
        return jsonify(error="end_time must be after start_time"), 400

    candidate = Candidate(fields["room_id"], fields["booking_date"], fields["start_time"], fields["end_time"])
    existing = BookingStore(db.session).bookings_for_room_day(candidate.room_id, candidate.booking_date)
    try:
        exclude_id = int(data["exclude_id"]) if data.get("exclude_id") not in (None, "") else None
    except (TypeError, ValueError):
        return jsonify(error="exclude_id must be an integer"), 400
    conflicts = find_conflicts(candidate, existing, exclude_id=exclude_id)
    return jsonify(conflicts=[booking_summary(c) for c in conflicts]), 200


# ---------- writes ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    fields, errors = _booking_fields(data)
    if errors:
        return jsonify(error="Invalid booking", details=errors), 400
    if fields["start_time"] >= fields["end_time"]:
        return jsonify(error="end_time must be after start_time"), 400
    if fields["booking_date"] < date.today():
        return jsonify(error="Cannot book a past date"), 400

    failure = _check_room(fields["room_id"], fields["attendees_count"])
    if failure:
        return failure

    fields.setdefault("booker_name", g.user.display_name)
    fields.setdefault("booker_email", g.user.email)
    fields["user_id"] = g.user.id
    fields["status"] = current_app.config.get("DEFAULT_BOOKING_STATUS", "pending")

    store = BookingStore(db.session)
    try:
        booking = store.create_booking(fields)
    except BookingConflictError as exc:
        return _conflict_response(exc)
    except BookingWriteError as exc:
        log_event("BOOKING_CREATE_FAIL", user_id=g.user.id, entity="room", entity_id=fields["room_id"])
        return jsonify(error=exc.message), exc.status_code

    log_event(
        "BOOKING_CREATE",
        user_id=g.user.id,
        entity="booking",
        entity_id=booking.id,
        metadata={"room_id": booking.room_id, "date": booking.booking_date, "start": booking.start_time},
    )
    return jsonify(booking.to_dict(include_room=True)), 201


@booking_bp.patch("/<int:booking_id>")
@login_required
def update_booking(booking_id: int):
    booking = _get_manageable(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    if booking.status == "cancelled":
        return jsonify(error="Cancelled bookings cannot be edited"), 400

    data = request.get_json(silent=True) or {}
    fields, errors = _booking_fields(data, partial=True)
    if errors:
        return jsonify(error="Invalid booking", details=errors), 400

    start = fields.get("start_time", booking.start_time)
    end = fields.get("end_time", booking.end_time)
    if start >= end:
        return jsonify(error="end_time must be after start_time"), 400

    if "room_id" in fields or "attendees_count" in fields:
        failure = _check_room(fields.get("room_id", booking.room_id), fields.get("attendees_count", booking.attendees_count))
        if failure:
            return failure

    # an owner's edit goes back to the approval queue
    if not is_admin():
        fields["status"] = "pending"

    try:
        BookingStore(db.session).update_booking(booking, fields)
    except BookingConflictError as exc:
        return _conflict_response(exc, booking_id=booking.id)
    except BookingWriteError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("BOOKING_UPDATE", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata=sorted(fields))
    return jsonify(booking.to_dict(include_room=True)), 200


@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    booking = _get_manageable(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    if booking.status == "cancelled":
        return jsonify(error="Booking not cancellable"), 400

    try:
        BookingStore(db.session).cancel_booking(booking)
    except BookingWriteError as exc:
        return jsonify(error=exc.message), exc.status_code

    action = "BOOKING_CANCEL" if booking.user_id == g.user.id else "ADMIN_BOOKING_CANCEL"
    log_event(action, user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(message="Cancelled", booking=booking.to_dict()), 200


@booking_bp.post("/<int:booking_id>/status")
@require_roles("ADMIN")
def decide_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().lower()
    if status not in ADMIN_DECISIONS:
        return jsonify(error="status must be approved or rejected"), 400

    store = BookingStore(db.session)
    booking = store.get_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    if booking.status == "cancelled":
        return jsonify(error="Cancelled bookings cannot be approved or rejected"), 400

    try:
        store.set_status(booking, status)
    except BookingConflictError as exc:
        return _conflict_response(exc, booking_id=booking.id)
    except BookingWriteError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("BOOKING_STATUS", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"status": status})
    return jsonify(booking.to_dict()), 200

