from .health import health_bp
from .auth import auth_bp
from .rooms import room_bp
from .booking import booking_bp
from .schedule import schedule_bp
from .audit_logs import audit_bp
