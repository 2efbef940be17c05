from functools import wraps
from flask import g, jsonify

ADMIN = "ADMIN"
MEMBER = "MEMBER"

def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    if not user:
        return False
    return user.has_role(role_name)

def is_admin() -> bool:
    return has_role(ADMIN)

def can_manage_booking(booking) -> bool:
    """Owners manage their own bookings; admins manage all of them."""
    user = getattr(g, "user", None)
    if user is None:
        return False
    return booking.user_id == user.id or user.has_role(ADMIN)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            user_roles = {r.name for r in user.roles}
            if not user_roles.intersection(role_names):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
