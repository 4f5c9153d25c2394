"""Normalisation of the date formats returned by the accounting system."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

LOGGER = logging.getLogger(__name__)

MONTHS = {
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
}

DateLike = Union[str, date, datetime, None]


@dataclass(frozen=True)
class ParsedDate:
    """Result of :func:`normalize_date`.

    ``defaulted`` is True when the input could not be parsed and ``value``
    is today's date instead.
    """

    value: date
    defaulted: bool = False


def normalize_date(raw: DateLike, today: Optional[date] = None) -> ParsedDate:
    """Parse ``YYYYMMDD``, ``DD-Mon-YY`` or ISO dates. Never raises."""

    fallback = ParsedDate(value=today or date.today(), defaulted=True)
    if raw is None:
        return fallback
    if isinstance(raw, datetime):
        return ParsedDate(value=raw.date())
    if isinstance(raw, date):
        return ParsedDate(value=raw)

    text = str(raw).strip()
    if not text:
        return fallback

    parsed = _parse_compact(text) or _parse_day_month_year(text) or _parse_generic(text)
    if parsed is None:
        return fallback
    return ParsedDate(value=parsed)


def parse_date(raw: DateLike, today: Optional[date] = None) -> date:
    parsed = normalize_date(raw, today=today)
    if parsed.defaulted:
        LOGGER.warning("Unparseable date %r, defaulting to %s", raw, parsed.value)
    return parsed.value


def _parse_compact(text: str) -> Optional[date]:
    if len(text) != 8 or not text.isdigit():
        return None
    try:
        return date(int(text[:4]), int(text[4:6]), int(text[6:]))
    except ValueError:
        return None


def _parse_day_month_year(text: str) -> Optional[date]:
    parts = text.split("-")
    if len(parts) != 3:
        return None
    day, month_name, year = (part.strip() for part in parts)
    month = MONTHS.get(month_name.title())
    if month is None:
        return None
    if len(year) != 2 or not year.isdigit() or not day.isdigit() or len(day) > 2:
        return None
    try:
        return date(2000 + int(year), month, int(day))
    except ValueError:
        return None


def _parse_generic(text: str) -> Optional[date]:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None
