from datetime import datetime, timedelta
from models.db import db

SESSION_END_REASONS = ("logout", "rotated", "idle", "expired")


class LoginSession(db.Model):
    """A signed-in browser. The cookie carries the raw token, the row its SHA-256."""
    __tablename__ = "login_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)

    issued_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_seen_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    # set once; an ended session never comes back
    ended_at = db.Column(db.DateTime, nullable=True)
    end_reason = db.Column(db.String(20), nullable=True)

    client_ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    user = db.relationship("User")

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def lapse_reason(self, now: datetime, idle_timeout: timedelta):
        """Why an open session may no longer be used at ``now``, or None."""
        if self.expires_at <= now:
            return "expired"
        if self.last_seen_at + idle_timeout <= now:
            return "idle"
        return None

    def end(self, reason: str, now: datetime = None):
        if reason not in SESSION_END_REASONS:
            raise ValueError(f"unknown session end reason: {reason}")
        if self.is_open:
            self.ended_at = now or datetime.utcnow()
            self.end_reason = reason

    def to_dict(self):
        return {
            "id": self.id,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "last_seen_at": self.last_seen_at.isoformat() if self.last_seen_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "client_ip": self.client_ip,
        }
