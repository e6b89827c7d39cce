"""
Date coercion shared by the structural and generative paths.

Statement exports disagree on date layout.  Known numeric layouts are
matched explicitly; anything else is handed to ``dateutil``.  A value that
cannot be read becomes "today" according to an injectable clock, so callers
and tests control the fallback.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Any, Callable, Optional

from dateutil import parser as dateutil_parser

from statement_ingest.logging_setup import get_logger

logger = get_logger("date_parser")

Clock = Callable[[], dt.date]

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T\s].*)?$")
_NUMERIC_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2}|\d{4})$")


def system_today() -> dt.date:
    return dt.date.today()


def _build(year: int, month: int, day: int) -> Optional[dt.date]:
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any, day_first: bool = True) -> Optional[dt.date]:
    """Parse a raw date cell.  Returns ``None`` when nothing sensible is found."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    m = _ISO_RE.match(text)
    if m:
        return _build(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _NUMERIC_RE.match(text)
    if m:
        first, second, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if year < 100:
            year += 2000
        if day_first:
            return _build(year, second, first)
        return _build(year, first, second)

    try:
        return dateutil_parser.parse(text, dayfirst=day_first).date()
    except (ValueError, OverflowError):
        logger.debug("parse_date: cannot parse %r", text)
        return None


def coerce_date(
    value: Any,
    day_first: bool = True,
    clock: Clock = system_today,
) -> dt.date:
    """Like ``parse_date`` but falls back to ``clock()``."""
    parsed = parse_date(value, day_first=day_first)
    if parsed is None:
        fallback = clock()
        logger.info("Unparseable date %r; defaulting to %s", value, fallback)
        return fallback
    return parsed
