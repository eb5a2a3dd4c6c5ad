# src/taskbot/tasks/dates.py

"""
Due date resolution for free-form task messages.

The resolver is an ordered list of matchers. Each matcher looks for one
pattern class and returns a datetime or None; the first hit wins and the
rest are never consulted. Rules are not combined: "завтра в 15:00" is
tomorrow at the default hour, because the "tomorrow" matcher runs before the
clock-time matcher.

All results are naive local wall time (or carry the tzinfo of `now`).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime, time, timedelta

DEFAULT_DUE_TIME = time(18, 0)

TODAY_RE = re.compile(r"(?<!\w)(?:сегодня|today)(?!\w)", re.IGNORECASE)
TOMORROW_RE = re.compile(r"(?<!\w)(?:завтра|tomorrow)(?!\w)", re.IGNORECASE)
DAY_AFTER_TOMORROW_RE = re.compile(
    r"(?<!\w)(?:послезавтра|day\s+after\s+tomorrow)(?!\w)", re.IGNORECASE
)
IN_DAYS_RE = re.compile(
    r"(?<!\w)(?:через\s+(\d+)\s+(?:день|дня|дней)|in\s+(\d+)\s+days?)(?!\w)",
    re.IGNORECASE,
)
CLOCK_TIME_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?!\d)")

# Everything the title normalizer strips, longest phrases first.
DATE_PHRASE_PATTERNS: tuple[re.Pattern[str], ...] = (
    DAY_AFTER_TOMORROW_RE,
    TOMORROW_RE,
    TODAY_RE,
    IN_DAYS_RE,
    CLOCK_TIME_RE,
)

DueMatcher = Callable[[str, datetime], datetime | None]


def _at_default_time(day: date, now: datetime) -> datetime:
    return datetime.combine(day, DEFAULT_DUE_TIME, tzinfo=now.tzinfo)


def _days_ahead(now: datetime, days: int) -> datetime | None:
    try:
        return _at_default_time(now.date() + timedelta(days=days), now)
    except OverflowError:
        return None


def match_today(text: str, now: datetime) -> datetime | None:
    if TODAY_RE.search(text):
        return _days_ahead(now, 0)
    return None


def match_tomorrow(text: str, now: datetime) -> datetime | None:
    # "day after tomorrow" contains "tomorrow" as a word; hide it from this rule.
    if TOMORROW_RE.search(DAY_AFTER_TOMORROW_RE.sub(" ", text)):
        return _days_ahead(now, 1)
    return None


def match_day_after_tomorrow(text: str, now: datetime) -> datetime | None:
    if DAY_AFTER_TOMORROW_RE.search(text):
        return _days_ahead(now, 2)
    return None


def match_in_days(text: str, now: datetime) -> datetime | None:
    for m in IN_DAYS_RE.finditer(text):
        days = int(m.group(1) or m.group(2))
        if days > 0:
            return _days_ahead(now, days)
    return None


def match_clock_time(text: str, now: datetime) -> datetime | None:
    for m in CLOCK_TIME_RE.finditer(text):
        hours, minutes = int(m.group(1)), int(m.group(2))
        if hours > 23 or minutes > 59:
            continue
        due = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        if due < now:
            due += timedelta(days=1)
        return due
    return None


MATCHERS: tuple[DueMatcher, ...] = (
    match_today,
    match_tomorrow,
    match_day_after_tomorrow,
    match_in_days,
    match_clock_time,
)


def resolve_due_at(text: str, now: datetime | None = None) -> datetime | None:
    """Return the due datetime described by `text`, or None if nothing matches."""
    if not text:
        return None
    if now is None:
        now = datetime.now()

    for matcher in MATCHERS:
        due = matcher(text, now)
        if due is not None:
            return due
    return None
