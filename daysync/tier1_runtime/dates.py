"""
daysync.tier1_runtime.dates
────────────────────────────
Pure calendar helpers over a "today" string. They never read the device
clock: the caller passes the TimeService's current date, so a mock date
propagates into every derived range and label.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Mapping
from zoneinfo import ZoneInfo


class TimeFilter(str, Enum):
    DAY = "D"
    WEEK = "W"
    MONTH = "M"


DateRange = dict[str, str]

DEFAULT_FORMAT_OPTIONS: dict[str, str] = {
    "year": "numeric",
    "month": "long",
    "day": "numeric",
}


def _as_date(value: str) -> date:
    return date.fromisoformat(value[:10])


# ── Ranges ─────────────────────────────────────────────────────────────────

def get_week_range(today: str) -> DateRange:
    """Monday..Sunday of the week containing *today*."""
    d = _as_date(today)
    start = d - timedelta(days=d.weekday())
    end = start + timedelta(days=6)
    return {"start": start.isoformat(), "end": end.isoformat()}


def get_month_range(today: str) -> DateRange:
    d = _as_date(today)
    last_day = calendar.monthrange(d.year, d.month)[1]
    return {
        "start": d.replace(day=1).isoformat(),
        "end": d.replace(day=last_day).isoformat(),
    }


def get_start_of_week(today: str) -> str:
    return get_week_range(today)["start"]


def get_start_of_month(today: str) -> str:
    return get_month_range(today)["start"]


def get_date_range(filter: TimeFilter | str, today: str) -> DateRange:
    """Inclusive date window for a D/W/M filter. Unknown filters mean today."""
    try:
        key = TimeFilter(filter)
    except ValueError:
        key = TimeFilter.DAY
    if key is TimeFilter.WEEK:
        return get_week_range(today)
    if key is TimeFilter.MONTH:
        return get_month_range(today)
    d = _as_date(today).isoformat()
    return {"start": d, "end": d}


# ── Formatting ─────────────────────────────────────────────────────────────

def _to_user_datetime(value: str, tz_name: str) -> datetime:
    """
    Date-only strings stay on their calendar day. Aware timestamps are
    converted into the user's zone; naive ones are taken as user-local.
    """
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), datetime.min.time())
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(tz_name))
    return dt


def _format_part(dt: datetime, part: str, style: str) -> str:
    if part == "weekday":
        return dt.strftime("%a") if style == "short" else dt.strftime("%A")
    if part == "year":
        return f"{dt.year % 100:02d}" if style == "2-digit" else str(dt.year)
    if part == "month":
        if style == "long":
            return dt.strftime("%B")
        if style == "short":
            return dt.strftime("%b")
        return f"{dt.month:02d}" if style == "2-digit" else str(dt.month)
    if part == "day":
        return f"{dt.day:02d}" if style == "2-digit" else str(dt.day)
    raise ValueError(f"Unsupported format part: {part!r}")


def _format_time(dt: datetime, options: Mapping[str, Any]) -> str:
    hour = dt.hour % 12 or 12
    hour_text = f"{hour:02d}" if options.get("hour") == "2-digit" else str(hour)
    text = hour_text
    if options.get("minute"):
        text += f":{dt.minute:02d}"
    return f"{text} {'AM' if dt.hour < 12 else 'PM'}"


def format_user_date(
    value: str,
    tz_name: str,
    options: Mapping[str, Any] | None = None,
) -> str:
    """
    Format *value* for display in en-US style.

    Options mirror the browser's Intl.DateTimeFormat keys: weekday, year,
    month, day, hour, minute. A key set to None removes a default.

        format_user_date("2025-06-15", "UTC")                    -> "June 15, 2025"
        format_user_date("2025-06-15", "UTC", {"weekday": "long"})
                                                                 -> "Sunday, June 15, 2025"
        format_user_date("2025-06-15", "UTC", {"month": "numeric"})
                                                                 -> "6/15/2025"
    """
    merged = {**DEFAULT_FORMAT_OPTIONS, **(options or {})}
    opts = {k: v for k, v in merged.items() if v}
    dt = _to_user_datetime(value, tz_name)

    parts = {k: _format_part(dt, k, opts[k]) for k in ("weekday", "year", "month", "day") if k in opts}
    textual_month = opts.get("month") in ("long", "short")

    if textual_month:
        text = parts["month"]
        if "day" in parts:
            text += f" {parts['day']}"
        if "year" in parts:
            text += f", {parts['year']}" if "day" in parts else f" {parts['year']}"
    else:
        text = "/".join(parts[k] for k in ("month", "day", "year") if k in parts)

    if "weekday" in parts:
        text = f"{parts['weekday']}, {text}" if text else parts["weekday"]
    if opts.get("hour"):
        clock_text = _format_time(dt, opts)
        text = f"{text}, {clock_text}" if text else clock_text
    return text


def format_relative_date(value: str, today: str) -> str:
    """
    Label *value* relative to *today*: Today, Tomorrow, In 3 days, 2 days ago...
    An unparseable *value* is returned unchanged.
    """
    try:
        diff = (_as_date(value) - _as_date(today)).days
    except ValueError:
        return value
    if diff == 0:
        return "Today"
    if diff == 1:
        return "Tomorrow"
    if diff == -1:
        return "Yesterday"
    if diff > 1:
        return f"In {diff} days"
    return f"{abs(diff)} days ago"


__all__ = [
    "TimeFilter",
    "DateRange",
    "get_week_range",
    "get_month_range",
    "get_start_of_week",
    "get_start_of_month",
    "get_date_range",
    "format_user_date",
    "format_relative_date",
]
