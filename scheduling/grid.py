"""Room x time-slot matrix for one day, with merged cells for bookings.

Each booking is rendered once per room row, at the first slot it covers, with a
span equal to the number of slots it occupies. The slots it merely covers get no
cell of their own, the same way a ``colspan`` cell swallows its neighbours.
"""
from typing import NamedTuple, Optional
from urllib.parse import urlencode

from scheduling.conflicts import booking_summary
from scheduling.records import as_date, field
from scheduling.slots import TIME_SLOTS, normalize_time, slot_index

QUICK_CREATE_PATH = "/bookings/new"


def quick_create_url(room_id, day, slot: str) -> str:
    return f"{QUICK_CREATE_PATH}?" + urlencode({"room": room_id, "date": as_date(day).isoformat(), "time": slot})


class GridCell(NamedTuple):
    slot: str
    booking: Optional[object]
    span: int
    create_url: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.booking is None


class GridRow(NamedTuple):
    room: object
    cells: list

    def cell_at(self, slot: str):
        for cell in self.cells:
            if cell.slot == slot:
                return cell
        return None


class ScheduleGrid(NamedTuple):
    day: object
    time_slots: tuple
    rows: list

    def to_dict(self):
        return {
            "date": self.day.isoformat() if self.day else None,
            "time_slots": list(self.time_slots),
            "rows": [
                {
                    "room": {
                        "id": field(row.room, "id"),
                        "name": field(row.room, "name"),
                        "location": field(row.room, "location"),
                        "capacity": field(row.room, "capacity"),
                    },
                    "cells": [
                        {
                            "slot": c.slot,
                            "span": c.span,
                            "booking": booking_summary(c.booking) if c.booking is not None else None,
                            "create_url": c.create_url,
                        }
                        for c in row.cells
                    ],
                }
                for row in self.rows
            ],
        }


def _key(booking):
    ident = field(booking, "id")
    return ident if ident is not None else id(booking)


def _placement(booking, time_slots):
    start = normalize_time(field(booking, "start_time"))
    end = normalize_time(field(booking, "end_time"))
    # first slot >= start, and one past the last slot < end; both clipped to the axis
    return slot_index(start, time_slots), slot_index(end, time_slots)


def build_grid(rooms, bookings_for_day, time_slots=TIME_SLOTS, day=None) -> ScheduleGrid:
    """Build the schedule grid for one day.

    ``bookings_for_day`` may hold bookings for any room; cancelled ones are
    skipped. ``day`` only feeds the quick-create links of empty cells and
    defaults to the date of the first booking.
    """
    live = [b for b in bookings_for_day if field(b, "status") != "cancelled"]
    if day is None and live:
        day = field(live[0], "booking_date")
    day = as_date(day) if day is not None else None

    by_room = {}
    for b in live:
        first, stop = _placement(b, time_slots)
        if stop <= first:
            # entirely outside the axis
            continue
        by_room.setdefault(field(b, "room_id"), []).append((first, stop, b))
    for placed in by_room.values():
        placed.sort(key=lambda p: (p[0], p[1], field(p[2], "id") or 0))

    rows = []
    for room in rooms:
        room_id = field(room, "id")
        placed = by_room.get(room_id, [])
        rendered = set()
        covered_until = 0
        cells = []
        for idx, slot in enumerate(time_slots):
            starting = [p for p in placed if p[0] == idx and _key(p[2]) not in rendered]
            for first, stop, b in starting:
                rendered.add(_key(b))
                cells.append(GridCell(slot=slot, booking=b, span=stop - first))
                covered_until = max(covered_until, stop)
            if starting or idx < covered_until:
                continue
            cells.append(GridCell(
                slot=slot,
                booking=None,
                span=1,
                create_url=quick_create_url(room_id, day, slot) if day is not None else None,
            ))
        rows.append(GridRow(room=room, cells=cells))

    return ScheduleGrid(day=day, time_slots=tuple(time_slots), rows=rows)
