from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.csrf import issue_csrf_token
from security.password import hash_password, verify_password
from security.rbac import MEMBER, login_required
from security.session import (
    attach_session_cookie,
    clear_session_cookie,
    end_session,
    open_session,
    session_token_from_request,
)
from utils.audit import log_event
from utils.roles import filter_role_names


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _clean_optional(value, max_len: int):
    """Returns (value, ok). None stays None; strings are stripped and length-checked."""
    if value is None:
        return None, True
    if not isinstance(value, str) or len(value.strip()) > max_len:
        return None, False
    return value.strip() or None, True


def _user_payload(user: User):
    return dict(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        display_name=user.display_name,
        phone_number=user.phone_number,
        roles=filter_role_names(user.roles),
    )


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 8)
    if len(password) < min_length:
        return jsonify(error=f"Password must be at least {min_length} characters"), 400

    full_name, ok_name = _clean_optional(data.get("full_name"), 120)
    phone_number, ok_phone = _clean_optional(data.get("phone_number"), 30)
    if not ok_name or not ok_phone:
        return jsonify(error="Invalid full_name or phone_number"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        phone_number=phone_number,
    )
    db.session.add(user)
    db.session.flush()

    member_role = Role.query.filter_by(name=MEMBER).first()
    if member_role:
        user.roles.append(member_role)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id)

    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    # one browser per account: signing in closes the others
    raw_token, rotated = open_session(user.id)

    resp = jsonify(message="Login OK", user=_user_payload(user))
    attach_session_cookie(resp, raw_token)
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"rotated_sessions": rotated})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_payload(g.user), session=g.session.to_dict()), 200


@auth_bp.post("/logout")
@login_required
def logout():
    end_session(session_token_from_request(), reason="logout")
    log_event("LOGOUT", user_id=g.user.id)

    return clear_session_cookie(jsonify(message="Logged out")), 200


@auth_bp.post("/profile")
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}

    if "full_name" in data:
        full_name, ok = _clean_optional(data.get("full_name"), 120)
        if not ok:
            return jsonify(error="Invalid full_name"), 400
        g.user.full_name = full_name

    if "phone_number" in data:
        phone_number, ok = _clean_optional(data.get("phone_number"), 30)
        if not ok:
            return jsonify(error="Invalid phone_number"), 400
        g.user.phone_number = phone_number

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=g.user.id)
    return jsonify(message="Profile updated", user=_user_payload(g.user)), 200
