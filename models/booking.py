from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "approved", "rejected", "cancelled")


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    booking_date = db.Column(db.Date, nullable=False, index=True)
    # wall-clock "HH:MM"; fixed width so string comparison orders correctly
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending")
    # status values: pending, approved, rejected, cancelled

    title = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    attendees_count = db.Column(db.Integer, nullable=False, default=0)

    booker_name = db.Column(db.String(120), nullable=True)
    booker_email = db.Column(db.String(255), nullable=True)
    booker_phone = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    room = db.relationship("Room", back_populates="bookings")

    __table_args__ = (
        db.CheckConstraint("start_time < end_time", name="ck_booking_time_order"),
        db.Index("ix_bookings_room_date", "room_id", "booking_date"),
    )

    def to_dict(self, include_room=False):
        out = {
            "id": self.id,
            "room_id": self.room_id,
            "user_id": self.user_id,
            "booking_date": self.booking_date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status,
            "title": self.title,
            "description": self.description,
            "attendees_count": self.attendees_count,
            "booker_name": self.booker_name,
            "booker_email": self.booker_email,
            "booker_phone": self.booker_phone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
        if include_room and self.room is not None:
            out["room"] = {
                "id": self.room.id,
                "name": self.room.name,
                "location": self.room.location,
                "capacity": self.room.capacity,
            }
        return out
