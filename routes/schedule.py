from datetime import date

from flask import Blueprint, request, jsonify

from models import db
from scheduling.errors import ValidationError
from scheduling.store import BookingStore
from scheduling.view_state import ScheduleView, VIEW_MODES
from security.rbac import login_required

schedule_bp = Blueprint("schedule", __name__, url_prefix="/schedule")

NAV_UNITS = ("week", "day")


@schedule_bp.get("")
@login_required
def schedule():
    # query: date=YYYY-MM-DD, view=schedule|list, nav=week|day, step=-1|1
    date_str = request.args.get("date")
    mode = (request.args.get("view") or "schedule").strip().lower()
    nav = (request.args.get("nav") or "").strip().lower()
    step = request.args.get("step", default=0, type=int)

    try:
        selected = date.fromisoformat(date_str) if date_str else date.today()
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if mode not in VIEW_MODES:
        return jsonify(error=f"view must be one of {', '.join(VIEW_MODES)}"), 400
    if nav and nav not in NAV_UNITS:
        return jsonify(error="nav must be week or day"), 400

    store = BookingStore(db.session)
    try:
        view = ScheduleView(store.fetch_week, selected_date=selected, view_mode=mode)
        if nav == "week" and step:
            view.navigate_week(step)
        elif nav == "day" and step:
            view.navigate_day(step)
        if not view.applied_generation:
            view.refresh()
    except ValidationError as exc:
        return jsonify(error=exc.message), 400
    except OverflowError:
        # the week around the date runs past date.min or date.max
        return jsonify(error="date is outside the supported calendar range"), 400

    return jsonify(view.to_dict()), 200
