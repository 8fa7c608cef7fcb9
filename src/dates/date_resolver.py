"""
Resolve the verbatim due-date phrase returned by the extractor
("Tuesday", "tomorrow", "next Friday at noon") into an absolute UTC instant.

Parsing is delegated to dateparser with a future preference, so a bare
weekday always lands on its next occurrence after the reference instant.
"next <weekday>" means that weekday in the following (Sunday-based) week,
and a phrase that names no time of day resolves to noon.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import dateparser

from ai_todo.errors import DateResolutionSoftFailure

logger = logging.getLogger(__name__)

TASKS_TIMEZONE = os.getenv("TASKS_TIMEZONE", "UTC").strip() or "UTC"

_WEEKDAYS = r"(?:mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)(?:day|nesday|sday|rsday|urday)?"
_WEEKDAY_INDEX = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}

# Phrases with no time of day land at noon.
DEFAULT_TIME = time(12, 0)

_LEADING_FILLER = re.compile(r"^\s*(?:due\s+)?(?:on|by|before)\s+", re.IGNORECASE)
_NEXT_WEEKDAY = re.compile(rf"\bnext\s+({_WEEKDAYS})\b", re.IGNORECASE)
_WEEKDAY_QUALIFIER = re.compile(rf"\b(?:this|coming)\s+(?={_WEEKDAYS}\b)", re.IGNORECASE)
_AT_BEFORE_TIME = re.compile(r"\bat\s+(?=\d)", re.IGNORECASE)
_TONIGHT = re.compile(r"\btonight\b", re.IGNORECASE)
_WORD_TIMES = (
    (re.compile(r"\bnoon\b", re.IGNORECASE), "12:00"),
    (re.compile(r"\bmidnight\b", re.IGNORECASE), "00:00"),
    (_TONIGHT, "today 20:00"),
)
_HAS_TIME = re.compile(
    r"\d{1,2}:\d{2}|\b\d{1,2}\s*(?:am|pm)\b|\b(?:hours?|hrs?|minutes?|mins?|seconds?|secs?)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ResolvedDate:
    instant: datetime  # timezone-aware, UTC
    iso: str


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, falling back to UTC")
        return ZoneInfo("UTC")


def normalize_phrase(phrase: str) -> str:
    """Rewrite the bits of English that dateparser handles poorly."""
    text = _LEADING_FILLER.sub("", phrase.strip())
    # Forward bias already picks the upcoming occurrence for "this"/"coming".
    # "next <weekday>" is kept; resolve_due_date moves it into the following week.
    text = _WEEKDAY_QUALIFIER.sub("", text)
    for pattern, replacement in _WORD_TIMES:
        text = pattern.sub(replacement, text)
    text = _AT_BEFORE_TIME.sub("", text)
    return " ".join(text.split())


def days_to_next_weekday(ref_weekday: int, weekday: int) -> int:
    """Days from `ref_weekday` to "next `weekday`" (Monday == 0).

    Weeks start on Sunday. From a weekday, a target still ahead in the current
    week is pushed into the following week; one already passed is simply the
    next occurrence. From Saturday or Sunday the following week begins right
    away.
    """
    # Sunday == 0 from here on.
    ref = (ref_weekday + 1) % 7
    target = (weekday + 1) % 7
    forward = (target - ref) % 7
    if ref == 0:
        return 7 if target == 0 else target
    if ref == 6:
        if target == 6:
            return 7
        if target == 0:
            return 8
        return 1 + target
    if target < ref and target != 0:
        return forward
    return forward + 7


def resolve_due_date(
    phrase: str,
    now: datetime,
    tz_name: Optional[str] = None,
) -> ResolvedDate:
    """Resolve `phrase` relative to `now`.

    Phrases without a time of day land at noon. "tonight" never resolves
    into the past.

    Raises DateResolutionSoftFailure when nothing date-like is found or the
    parser fails.
    """
    if phrase is None or not phrase.strip():
        raise DateResolutionSoftFailure(phrase or "", "empty phrase")

    tz = get_zone(tz_name or TASKS_TIMEZONE)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    # dateparser works on naive wall-clock time in the user's zone.
    local_now = now.astimezone(tz).replace(tzinfo=None)

    text = normalize_phrase(phrase)
    next_weekday = _NEXT_WEEKDAY.search(text)
    if next_weekday:
        text = _NEXT_WEEKDAY.sub(r"\1", text, count=1)

    try:
        parsed = dateparser.parse(
            text,
            languages=["en"],
            settings={
                "RELATIVE_BASE": local_now,
                "PREFER_DATES_FROM": "future",
                "RETURN_AS_TIMEZONE_AWARE": False,
            },
        )
    except Exception as e:
        raise DateResolutionSoftFailure(phrase, f"parser error: {e}") from e

    if parsed is None:
        raise DateResolutionSoftFailure(phrase)

    if next_weekday:
        weekday = _WEEKDAY_INDEX[next_weekday.group(1)[:3].lower()]
        target = local_now.date() + timedelta(days=days_to_next_weekday(local_now.weekday(), weekday))
        parsed = datetime.combine(target, parsed.time())

    if not _HAS_TIME.search(text):
        parsed = datetime.combine(parsed.date(), DEFAULT_TIME)

    if _TONIGHT.search(phrase) and parsed < local_now:
        parsed += timedelta(days=1)

    instant = parsed.replace(tzinfo=tz).astimezone(timezone.utc)
    return ResolvedDate(instant=instant, iso=instant.isoformat())


def try_resolve_due_date(
    phrase: Optional[str],
    now: datetime,
    tz_name: Optional[str] = None,
) -> Optional[ResolvedDate]:
    """Like resolve_due_date, but returns None instead of raising."""
    if phrase is None:
        return None
    try:
        return resolve_due_date(phrase, now, tz_name)
    except DateResolutionSoftFailure as e:
        logger.info(f"Due date left empty: {e}")
        return None
