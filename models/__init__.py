from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import LoginSession
from .room import Room
from .booking import Booking, BOOKING_STATUSES
