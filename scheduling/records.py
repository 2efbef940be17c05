from collections.abc import Mapping
from datetime import date, datetime


def field(record, name, default=None):
    # rooms and bookings arrive either as ORM rows or as plain dicts
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
