"""Which week/day the schedule shows, and when its data has to be re-read.

Every change of the selected date bumps a request generation and re-reads the
whole week around it through the injected ``fetch`` callable. Responses are applied only
when their generation is still the latest one, so a slow response to an older
navigation step never overwrites a newer one.
"""
import logging
from datetime import date, timedelta
from typing import NamedTuple

from scheduling.conflicts import booking_summary
from scheduling.errors import ValidationError
from scheduling.grid import build_grid
from scheduling.records import as_date, field
from scheduling.slots import TIME_SLOTS

logger = logging.getLogger(__name__)

VIEW_MODES = ("schedule", "list")


def week_range(day: date) -> list:
    """The Sunday-to-Saturday week containing ``day``."""
    # date.weekday() is Monday=0; shift so Sunday=0
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return [start + timedelta(days=i) for i in range(7)]


class FetchRequest(NamedTuple):
    generation: int
    start: date
    end: date


class ScheduleView:
    def __init__(self, fetch, selected_date=None, view_mode="schedule", time_slots=TIME_SLOTS):
        if view_mode not in VIEW_MODES:
            raise ValidationError(f"view must be one of {', '.join(VIEW_MODES)}")
        self._fetch = fetch
        self.selected_date = as_date(selected_date) if selected_date else date.today()
        self.view_mode = view_mode
        self.time_slots = time_slots

        self.generation = 0
        self.applied_generation = 0
        self.loading = False
        self.rooms = []
        self.bookings = []

    # ---------- derived ----------
    @property
    def week(self) -> list:
        return week_range(self.selected_date)

    @property
    def day_bookings(self) -> list:
        return [b for b in self.bookings if as_date(field(b, "booking_date")) == self.selected_date]

    def grid(self):
        return build_grid(self.rooms, self.day_bookings, self.time_slots, day=self.selected_date)

    def grouped_bookings(self) -> dict:
        grouped = {}
        for b in self.bookings:
            grouped.setdefault(as_date(field(b, "booking_date")).isoformat(), []).append(b)
        return grouped

    def week_summary(self) -> list:
        grouped = self.grouped_bookings()
        return [
            {
                "date": d.isoformat(),
                "weekday": (d.weekday() + 1) % 7,
                "selected": d == self.selected_date,
                "bookings": len(grouped.get(d.isoformat(), [])),
            }
            for d in self.week
        ]

    # ---------- transitions ----------
    def navigate_week(self, step: int = 1):
        return self._move_to(self.selected_date + timedelta(days=7 * step))

    def navigate_day(self, step: int = 1):
        return self._move_to(self.selected_date + timedelta(days=step))

    def select_date(self, day):
        return self._move_to(as_date(day))

    def set_view_mode(self, mode: str):
        if mode not in VIEW_MODES:
            raise ValidationError(f"view must be one of {', '.join(VIEW_MODES)}")
        self.view_mode = mode

    def _move_to(self, day: date):
        if day == self.selected_date:
            return None
        self.selected_date = day
        return self.refresh()

    # ---------- fetching ----------
    def request(self) -> FetchRequest:
        self.generation += 1
        self.loading = True
        week = self.week
        return FetchRequest(self.generation, week[0], week[-1])

    def apply(self, generation: int, rooms, bookings) -> bool:
        if generation != self.generation:
            logger.debug("Discarding stale schedule response %s (latest %s)", generation, self.generation)
            return False
        self.rooms = list(rooms)
        self.bookings = list(bookings)
        self.applied_generation = generation
        self.loading = False
        return True

    def refresh(self) -> FetchRequest:
        req = self.request()
        rooms, bookings = self._fetch(req.start, req.end)
        self.apply(req.generation, rooms, bookings)
        return req

    def to_dict(self):
        out = {
            "selected_date": self.selected_date.isoformat(),
            "view": self.view_mode,
            "generation": self.applied_generation,
            "week": self.week_summary(),
        }
        if self.view_mode == "schedule":
            out["grid"] = self.grid().to_dict()
        else:
            out["days"] = [
                {
                    "date": day,
                    "bookings": [
                        dict(
                            booking_summary(b),
                            room_id=field(b, "room_id"),
                            room_name=field(field(b, "room"), "name") if field(b, "room") is not None else None,
                            booking_date=day,
                        )
                        for b in rows
                    ],
                }
                for day, rows in self.grouped_bookings().items()
            ]
        return out
