"""Advisory double-booking check for a candidate reservation.

The result is a UX fast path only: it runs against whatever bookings the caller
just read, so a concurrent writer can still slip in between the read and the
write. The database exclusion constraint on bookings is what actually keeps a
room from being double-booked.
"""
from typing import NamedTuple

from scheduling.records import as_date, field
from scheduling.slots import normalize_time


class Candidate(NamedTuple):
    room_id: int
    booking_date: object
    start_time: str
    end_time: str


def overlaps(s1: str, e1: str, s2: str, e2: str) -> bool:
    # half-open intervals: touching endpoints do not overlap
    return s1 < e2 and e1 > s2


def find_conflicts(candidate, existing_bookings, exclude_id=None) -> list:
    """Return the bookings from ``existing_bookings`` that overlap ``candidate``.

    Bookings for another room or day, cancelled bookings and the booking whose
    id equals ``exclude_id`` (the one being edited) are ignored. Input order is
    preserved.
    """
    room_id = field(candidate, "room_id")
    day = as_date(field(candidate, "booking_date"))
    start = normalize_time(field(candidate, "start_time"))
    end = normalize_time(field(candidate, "end_time"))

    conflicts = []
    for b in existing_bookings:
        if field(b, "status") == "cancelled":
            continue
        if exclude_id is not None and field(b, "id") == exclude_id:
            continue
        if field(b, "room_id") != room_id or as_date(field(b, "booking_date")) != day:
            continue
        if overlaps(start, end, normalize_time(field(b, "start_time")), normalize_time(field(b, "end_time"))):
            conflicts.append(b)
    return conflicts


def booking_summary(booking) -> dict:
    return {
        "id": field(booking, "id"),
        "title": field(booking, "title"),
        "start_time": normalize_time(field(booking, "start_time")),
        "end_time": normalize_time(field(booking, "end_time")),
        "status": field(booking, "status"),
        "booker_name": field(booking, "booker_name"),
        "attendees_count": field(booking, "attendees_count"),
    }


def conflict_message(conflicts) -> str:
    if not conflicts:
        return ""
    parts = [
        f"{c['start_time']}-{c['end_time']} {c['title'] or '(untitled)'}"
        for c in map(booking_summary, conflicts)
    ]
    return "Time slot already booked: " + "; ".join(parts)
