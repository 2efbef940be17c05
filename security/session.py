"""Cookie-backed login sessions.

Everything about the cookie and its lifetime comes from the app config
(``AUTH_COOKIE_NAME``, ``SESSION_LIFETIME_SECONDS``, ``IDLE_TIMEOUT_SECONDS``,
``SESSION_COOKIE_SECURE``, ``SESSION_COOKIE_SAMESITE``). A session that has
lapsed is closed the first time it is presented, so the table always says why
a browser was signed out.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import NamedTuple

from flask import current_app, g, request

from models import db
from models.session import LoginSession

logger = logging.getLogger(__name__)


class SessionPolicy(NamedTuple):
    cookie_name: str
    lifetime: timedelta
    idle_timeout: timedelta
    secure: bool
    samesite: str

    @classmethod
    def from_config(cls, config):
        return cls(
            cookie_name=config["AUTH_COOKIE_NAME"],
            lifetime=timedelta(seconds=config["SESSION_LIFETIME_SECONDS"]),
            idle_timeout=timedelta(seconds=config["IDLE_TIMEOUT_SECONDS"]),
            secure=bool(config["SESSION_COOKIE_SECURE"]),
            samesite=config["SESSION_COOKIE_SAMESITE"],
        )


def current_policy() -> SessionPolicy:
    return SessionPolicy.from_config(current_app.config)


def _digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _open_sessions(user_id: int):
    return LoginSession.query.filter_by(user_id=user_id, ended_at=None).all()


def open_session(user_id: int):
    """Signs ``user_id`` in on this browser, closing any session it had elsewhere.

    Returns ``(raw_token, rotated)`` where ``rotated`` counts the sessions closed.
    """
    policy = current_policy()
    now = datetime.utcnow()

    previous = _open_sessions(user_id)
    for sess in previous:
        sess.end("rotated", now)

    raw_token = secrets.token_urlsafe(32)
    db.session.add(LoginSession(
        user_id=user_id,
        token_hash=_digest(raw_token),
        issued_at=now,
        last_seen_at=now,
        expires_at=now + policy.lifetime,
        client_ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=(request.headers.get("User-Agent") or "")[:255],
    ))
    db.session.commit()
    return raw_token, len(previous)


def resolve_session(raw_token: str, now: datetime = None):
    """The open session behind ``raw_token``, touched; None once it has lapsed."""
    if not raw_token:
        return None
    sess = LoginSession.query.filter_by(token_hash=_digest(raw_token)).first()
    if sess is None or not sess.is_open:
        return None

    now = now or datetime.utcnow()
    reason = sess.lapse_reason(now, current_policy().idle_timeout)
    if reason:
        sess.end(reason, now)
        db.session.commit()
        logger.info("Session %s for user %s closed: %s", sess.id, sess.user_id, reason)
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def end_session(raw_token: str, reason: str = "logout") -> bool:
    sess = LoginSession.query.filter_by(token_hash=_digest(raw_token)).first() if raw_token else None
    if sess is None or not sess.is_open:
        return False
    sess.end(reason)
    db.session.commit()
    return True


def attach_session_cookie(resp, raw_token: str):
    policy = current_policy()
    resp.set_cookie(
        policy.cookie_name,
        raw_token,
        httponly=True,
        secure=policy.secure,
        samesite=policy.samesite,
        max_age=int(policy.lifetime.total_seconds()),
        path="/",
    )
    return resp


def clear_session_cookie(resp):
    resp.delete_cookie(current_policy().cookie_name, path="/")
    return resp


def session_token_from_request():
    return request.cookies.get(current_policy().cookie_name)


def load_current_user():
    """before_request hook: binds ``g.session`` and ``g.user`` for this request."""
    sess = resolve_session(session_token_from_request())
    g.session = sess
    g.user = sess.user if sess else None
