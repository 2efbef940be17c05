from datetime import date, timedelta
from unittest import mock

from sqlalchemy.exc import OperationalError

from models.audit_log import AuditLog
from models.booking import Booking
from tests.conftest import make_booking, make_room, make_user, login


def payload(room, day, start, end, **extra):
    out = {
        "title": "Design review",
        "room_id": room.id,
        "booking_date": day.isoformat(),
        "start_time": start,
        "end_time": end,
        "attendees_count": 4,
    }
    out.update(extra)
    return out


def test_create_booking_defaults(member_client, member, future_day):
    room = make_room()
    resp = member_client.post("/bookings", json=payload(room, future_day, "09:00", "10:00"))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["status"] == "pending"
    assert body["user_id"] == member.id
    assert body["booker_name"] == "Mia Member"
    assert body["booker_email"] == member.email
    assert body["room"]["name"] == "R1"
    assert AuditLog.query.filter_by(action="BOOKING_CREATE").count() == 1


def test_overlap_is_rejected_with_conflict_list(member_client, future_day):
    room = make_room()
    make_booking(room, future_day, "09:00", "10:00", title="Standup")

    resp = member_client.post("/bookings", json=payload(room, future_day, "09:30", "10:30"))
    assert resp.status_code == 409
    body = resp.get_json()
    assert [(c["start_time"], c["end_time"], c["title"]) for c in body["conflicts"]] == [("09:00", "10:00", "Standup")]
    assert "09:00-10:00 Standup" in body["error"]
    assert Booking.query.count() == 1
    assert AuditLog.query.filter_by(action="BOOKING_CONFLICT").count() == 1


def test_back_to_back_bookings_are_allowed(member_client, future_day):
    room = make_room()
    make_booking(room, future_day, "09:00", "10:00")
    resp = member_client.post("/bookings", json=payload(room, future_day, "10:00", "11:00"))
    assert resp.status_code == 201


def test_cancel_then_rebook(member_client, future_day):
    room = make_room()
    resp = member_client.post("/bookings", json=payload(room, future_day, "09:00", "10:00"))
    booking_id = resp.get_json()["id"]

    resp = member_client.post(f"/bookings/{booking_id}/cancel")
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "cancelled"
    assert member_client.post(f"/bookings/{booking_id}/cancel").status_code == 400

    resp = member_client.post("/bookings", json=payload(room, future_day, "09:30", "10:30"))
    assert resp.status_code == 201


def test_validation_errors(member_client, future_day):
    room = make_room(capacity=4)
    cases = [
        payload(room, future_day, "10:00", "09:00"),
        payload(room, future_day, "09:00", "09:00"),
        payload(room, future_day, "09:15", "10:00"),
        payload(room, future_day, "07:30", "08:30"),
        payload(room, future_day, "09:00", "10:00", title="  "),
        payload(room, future_day, "09:00", "10:00", attendees_count="lots"),
        payload(room, future_day, "09:00", "10:00", booker_email="not-an-email"),
        payload(room, future_day, "09:00", "10:00", attendees_count=5),
        payload(room, date.today() - timedelta(days=1), "09:00", "10:00"),
        dict(payload(room, future_day, "09:00", "10:00"), booking_date="10/06/2024"),
    ]
    for case in cases:
        assert member_client.post("/bookings", json=case).status_code == 400, case


def test_last_slot_can_be_booked(member_client, future_day):
    room = make_room()
    resp = member_client.post("/bookings", json=payload(room, future_day, "21:00", "21:30"))
    assert resp.status_code == 201


def test_inactive_room_is_not_bookable(member_client, future_day):
    room = make_room(is_active=False)
    resp = member_client.post("/bookings", json=payload(room, future_day, "09:00", "10:00"))
    assert resp.status_code == 404


def test_owner_edit_goes_back_to_pending(member_client, member, future_day):
    room = make_room()
    booking = make_booking(room, future_day, "09:00", "10:00", status="approved", user=member)
    make_booking(room, future_day, "11:00", "12:00", title="Lunch talk")

    resp = member_client.patch(f"/bookings/{booking.id}", json={"end_time": "10:30"})
    assert resp.status_code == 200
    assert resp.get_json()["end_time"] == "10:30"
    assert resp.get_json()["status"] == "pending"

    resp = member_client.patch(f"/bookings/{booking.id}", json={"end_time": "11:30"})
    assert resp.status_code == 409

    resp = member_client.patch(f"/bookings/{booking.id}", json={"start_time": "11:00"})
    assert resp.status_code == 400


def test_members_cannot_touch_other_bookings(member_client, future_day):
    other = make_user("other@example.com", "MEMBER")
    room = make_room()
    booking = make_booking(room, future_day, "09:00", "10:00", user=other)

    assert member_client.patch(f"/bookings/{booking.id}", json={"title": "Mine"}).status_code == 404
    assert member_client.post(f"/bookings/{booking.id}/cancel").status_code == 404
    assert member_client.get(f"/bookings/{booking.id}").get_json()["can_edit"] is False


def test_admin_decides_and_cancels(admin_client, member_client, member, future_day):
    room = make_room()
    booking = make_booking(room, future_day, "09:00", "10:00", status="pending", user=member)

    assert member_client.post(f"/bookings/{booking.id}/status", json={"status": "approved"}).status_code == 403
    assert admin_client.post(f"/bookings/{booking.id}/status", json={"status": "maybe"}).status_code == 400

    resp = admin_client.post(f"/bookings/{booking.id}/status", json={"status": "approved"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "approved"

    assert admin_client.post(f"/bookings/{booking.id}/cancel").status_code == 200
    assert AuditLog.query.filter_by(action="ADMIN_BOOKING_CANCEL").count() == 1


def test_check_endpoint_previews_conflicts(member_client, future_day):
    room = make_room()
    existing = make_booking(room, future_day, "09:00", "10:00")
    body = {"room_id": room.id, "booking_date": future_day.isoformat(), "start_time": "09:30", "end_time": "10:30"}

    conflicts = member_client.post("/bookings/check", json=body).get_json()["conflicts"]
    assert [c["id"] for c in conflicts] == [existing.id]

    body["exclude_id"] = existing.id
    assert member_client.post("/bookings/check", json=body).get_json()["conflicts"] == []
    assert member_client.post("/bookings/check", json={"room_id": room.id}).status_code == 400


def test_new_form_is_prefilled_from_query(member_client, member):
    room = make_room()
    resp = member_client.get(f"/bookings/new?room={room.id}&date=2030-01-07&time=09:30")
    assert resp.status_code == 200
    form = resp.get_json()["form"]
    assert form["room_id"] == room.id
    assert form["booking_date"] == "2030-01-07"
    assert (form["start_time"], form["end_time"]) == ("09:30", "10:00")
    assert form["booker_email"] == member.email

    assert member_client.get("/bookings/new?time=21:00").get_json()["form"]["end_time"] == "21:30"
    assert member_client.get("/bookings/new?time=07:00").status_code == 400
    assert member_client.get("/bookings/new?time=09:45").status_code == 400


def test_list_and_my_bookings(member_client, member, future_day):
    room = make_room()
    make_booking(room, future_day, "13:00", "14:00", user=member, title="mine")
    make_booking(room, future_day, "09:00", "10:00", title="theirs")

    week_start = future_day - timedelta(days=3)
    rows = member_client.get(f"/bookings?start={week_start}&end={future_day}").get_json()
    assert [b["title"] for b in rows] == ["theirs", "mine"]

    mine = member_client.get("/bookings/me").get_json()
    assert [b["title"] for b in mine] == ["mine"]

    assert member_client.get("/bookings?start=2024-06-10&end=2024-06-01").status_code == 400


def test_requires_login(client):
    assert client.get("/bookings").status_code == 401
    assert client.post("/bookings", json={}).status_code == 401


def test_admin_reads_audit_log(app, admin):
    client = app.test_client()
    login(client, admin.email)
    rows = client.get("/admin/audit-logs?action=login_success").get_json()
    assert [r["action"] for r in rows] == ["LOGIN_SUCCESS"]


def test_database_failure_during_create_is_readable(member_client, future_day):
    room = make_room()
    with mock.patch("sqlalchemy.orm.Query.all", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        resp = member_client.post("/bookings", json=payload(room, future_day, "09:00", "10:00"))
    assert resp.status_code == 500
    assert resp.get_json()["error"] == "Could not create the booking. Please try again."
    assert Booking.query.count() == 0
