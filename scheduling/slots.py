"""Fixed half-hour time axis used by the schedule grid and booking validation.

All wall-clock values are kept as zero-padded ``"HH:MM"`` strings so that plain
string comparison orders them correctly.
"""
import re
from bisect import bisect_left
from datetime import time

from scheduling.errors import ValidationError

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)")

DAY_START = "08:00"
DAY_END = "21:00"
SLOT_MINUTES = 30


def _to_minutes(value: str) -> int:
    hh, mm = value.split(":")
    return int(hh) * 60 + int(mm)


def _from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def build_time_slots(start: str = DAY_START, end: str = DAY_END, minutes: int = SLOT_MINUTES) -> tuple:
    """Return every ``minutes``-spaced mark from ``start`` to ``end`` inclusive."""
    if minutes <= 0:
        raise ValueError("slot length must be positive")
    first, last = _to_minutes(start), _to_minutes(end)
    return tuple(_from_minutes(m) for m in range(first, last + 1, minutes))


# 27 marks: 08:00, 08:30, ..., 21:00
TIME_SLOTS = build_time_slots()


def normalize_time(value) -> str:
    """Truncate a time representation ("09:00:00", time(9, 0), ...) to "HH:MM"."""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    text = (value or "").strip() if isinstance(value, str) else ""
    m = _HHMM.match(text)
    if not m:
        raise ValidationError(f"Invalid time {value!r}. Use HH:MM")
    return text[:5]


def is_on_axis(value: str, time_slots=TIME_SLOTS) -> bool:
    return value in time_slots


def slot_index(value: str, time_slots=TIME_SLOTS) -> int:
    """Index of the first slot at or after ``value``; ``len(time_slots)`` past the end."""
    return bisect_left(time_slots, value)


def next_slot(value: str, time_slots=TIME_SLOTS):
    idx = slot_index(value, time_slots)
    if idx < len(time_slots) and time_slots[idx] == value:
        idx += 1
    return time_slots[idx] if idx < len(time_slots) else None


# valid end times: one slot past the start of the axis through one slot past its end,
# so the 21:00 slot itself can be booked
END_TIMES = build_time_slots(
    _from_minutes(_to_minutes(DAY_START) + SLOT_MINUTES),
    _from_minutes(_to_minutes(DAY_END) + SLOT_MINUTES),
)
