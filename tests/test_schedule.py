from datetime import timedelta

import pytest

from tests.conftest import make_booking, make_room


def test_schedule_grid_for_selected_day(member_client, future_day):
    room = make_room("R1")
    make_room("R2")
    make_booking(room, future_day, "09:00", "10:30", title="Planning")

    resp = member_client.get(f"/schedule?date={future_day}")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["selected_date"] == future_day.isoformat()
    assert body["view"] == "schedule"
    assert len(body["week"]) == 7

    rows = {r["room"]["name"]: r["cells"] for r in body["grid"]["rows"]}
    assert list(rows) == ["R1", "R2"]
    booked = [c for c in rows["R1"] if c["booking"]]
    assert [(c["slot"], c["span"], c["booking"]["title"]) for c in booked] == [("09:00", 3, "Planning")]
    assert "09:30" not in [c["slot"] for c in rows["R1"]]
    assert len(rows["R2"]) == 27
    assert rows["R2"][0]["create_url"].startswith("/bookings/new?room=")


def test_inactive_rooms_and_cancelled_bookings_are_hidden(member_client, future_day):
    room = make_room("R1")
    make_room("Old", is_active=False)
    make_booking(room, future_day, "09:00", "10:00", status="cancelled")

    body = member_client.get(f"/schedule?date={future_day}").get_json()
    assert [r["room"]["name"] for r in body["grid"]["rows"]] == ["R1"]
    assert all(c["booking"] is None for c in body["grid"]["rows"][0]["cells"])


def test_week_navigation(member_client, future_day):
    room = make_room()
    make_booking(room, future_day + timedelta(days=7), "09:00", "10:00")

    body = member_client.get(f"/schedule?date={future_day}&nav=week&step=1").get_json()
    assert body["selected_date"] == (future_day + timedelta(days=7)).isoformat()
    assert sum(d["bookings"] for d in body["week"]) == 1

    body = member_client.get(f"/schedule?date={future_day}&nav=day&step=-1").get_json()
    assert body["selected_date"] == (future_day - timedelta(days=1)).isoformat()
    assert sum(d["bookings"] for d in body["week"]) == 0


def test_list_view_groups_by_date(member_client, future_day):
    room = make_room()
    make_booking(room, future_day, "13:00", "14:00", title="b")
    make_booking(room, future_day, "09:00", "10:00", title="a")

    body = member_client.get(f"/schedule?date={future_day}&view=list").get_json()
    assert "grid" not in body
    assert body["days"][0]["date"] == future_day.isoformat()
    assert [b["title"] for b in body["days"][0]["bookings"]] == ["a", "b"]
    assert body["days"][0]["bookings"][0]["room_name"] == "R1"


def test_bad_parameters(member_client):
    assert member_client.get("/schedule?date=tomorrow").status_code == 400
    assert member_client.get("/schedule?view=calendar").status_code == 400
    assert member_client.get("/schedule?nav=month&step=1").status_code == 400


@pytest.mark.parametrize("query", [
    "date=9999-12-31",
    "date=0001-01-01",
    "date=9999-12-25&nav=week&step=1",
])
def test_weeks_past_the_calendar_edge_are_rejected(member_client, query):
    resp = member_client.get(f"/schedule?{query}")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "date is outside the supported calendar range"


def test_last_full_week_of_the_calendar_is_served(member_client):
    # 9999-12-25 is a Saturday, so its Sunday-Saturday week still fits
    resp = member_client.get("/schedule?date=9999-12-25")
    assert resp.status_code == 200
    assert resp.get_json()["week"][-1]["date"] == "9999-12-25"
