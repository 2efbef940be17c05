from flask import Blueprint, request, jsonify, g

from models import db
from models.room import Room
from scheduling.errors import BookingWriteError
from scheduling.store import BookingStore
from security.rbac import require_roles, is_admin, login_required
from utils.audit import log_event

room_bp = Blueprint("rooms", __name__, url_prefix="/rooms")


def _room_fields(data: dict, partial: bool = False):
    """Returns (fields, errors) for a room create/update payload."""
    fields, errors = {}, []

    if "name" in data or not partial:
        name = data.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            errors.append("name is required")
        elif len(name) > 120:
            errors.append("name is too long")
        else:
            fields["name"] = name

    if "location" in data:
        location = data.get("location")
        fields["location"] = (location.strip() or None) if isinstance(location, str) else None

    if "description" in data:
        description = data.get("description")
        fields["description"] = (description.strip() or None) if isinstance(description, str) else None

    if "capacity" in data or not partial:
        raw = data.get("capacity")
        try:
            capacity = int(raw) if raw not in (None, "") else 0
        except (TypeError, ValueError):
            errors.append("capacity must be an integer")
        else:
            if capacity < 0:
                errors.append("capacity must not be negative")
            else:
                fields["capacity"] = capacity

    if "is_active" in data:
        if not isinstance(data.get("is_active"), bool):
            errors.append("is_active must be true or false")
        else:
            fields["is_active"] = data["is_active"]

    return fields, errors


@room_bp.get("")
@login_required
def list_rooms():
    store = BookingStore(db.session)
    show_all = request.args.get("all") in ("1", "true") and is_admin()
    rooms = store.all_rooms() if show_all else store.active_rooms()
    return jsonify([r.to_dict() for r in rooms]), 200


@room_bp.get("/<int:room_id>")
@login_required
def get_room(room_id: int):
    room = db.session.get(Room, room_id)
    if not room or (not room.is_active and not is_admin()):
        return jsonify(error="Room not found"), 404
    return jsonify(room.to_dict()), 200


@room_bp.post("")
@require_roles("ADMIN")
def create_room():
    data = request.get_json(silent=True) or {}
    fields, errors = _room_fields(data)
    if errors:
        return jsonify(error="Invalid room", details=errors), 400

    try:
        room = BookingStore(db.session).save_room(Room(), fields)
    except BookingWriteError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("ROOM_CREATE", user_id=g.user.id, entity="room", entity_id=room.id)
    return jsonify(room.to_dict()), 201


@room_bp.patch("/<int:room_id>")
@require_roles("ADMIN")
def update_room(room_id: int):
    room = db.session.get(Room, room_id)
    if not room:
        return jsonify(error="Room not found"), 404

    data = request.get_json(silent=True) or {}
    fields, errors = _room_fields(data, partial=True)
    if errors:
        return jsonify(error="Invalid room", details=errors), 400

    try:
        BookingStore(db.session).save_room(room, fields)
    except BookingWriteError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("ROOM_UPDATE", user_id=g.user.id, entity="room", entity_id=room.id, metadata=fields)
    return jsonify(room.to_dict()), 200


@room_bp.delete("/<int:room_id>")
@require_roles("ADMIN")
def delete_room(room_id: int):
    store = BookingStore(db.session)
    room = store.get_room(room_id)
    if not room:
        return jsonify(error="Room not found"), 404

    # bookings keep their history; such rooms can only be deactivated
    if store.room_has_bookings(room.id):
        return jsonify(error="Room still has bookings; deactivate it instead"), 409

    try:
        store.delete_room(room)
    except BookingWriteError as exc:
        return jsonify(error=exc.message), exc.status_code

    log_event("ROOM_DELETE", user_id=g.user.id, entity="room", entity_id=room_id)
    return "", 204
