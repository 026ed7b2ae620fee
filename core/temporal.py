"""
Temporal Utility
================

Normalizes the heterogeneous date/time values found in dossier payloads
(bare dates, ISO timestamps with or without offset, epoch milliseconds,
free-form strings) into naive local instants.

Conventions:
- A bare YYYY-MM-DD is local midnight. It is never routed through a
  timezone conversion, so its day-key is stable on any host.
- Offset-aware values are converted to the reference zone (pytz name or
  the process-local zone) and returned naive.
- Parsing never raises; unusable values become None. A bare time
  ("08:15") carries no day and is unusable.
"""

from datetime import date, datetime, time
from typing import Any, Optional
import logging
import re
import warnings

import pandas as pd
import pytz

from core.errors import ParseError

logger = logging.getLogger(__name__)

BARE_DATE_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
DATE_PREFIX_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
DATE_TOKEN_RE = re.compile(r"\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}|[A-Za-z]{3,}\.? *\d|\d[ ,]*[A-Za-z]{3,}")

DATE_DISPLAY_FORMAT = '%d/%m/%Y'
TIME_DISPLAY_FORMAT = '%H:%M'
TIMESTAMP_DISPLAY_FORMAT = '%d/%m/%Y %H:%M:%S'


def _to_reference_zone(value: datetime, tz: Optional[str]) -> datetime:
    """Convert an aware datetime to naive local time in the reference zone"""
    if value.tzinfo is None:
        return value
    if tz:
        return value.astimezone(pytz.timezone(tz)).replace(tzinfo=None)
    return value.astimezone().replace(tzinfo=None)


def _parse_string(raw: str) -> datetime:
    text = raw.strip()
    if not text:
        raise ParseError("empty date string")

    match = BARE_DATE_RE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError as e:
            raise ParseError(f"impossible date: {raw!r}") from e

    # ISO-8601 first ("Z" suffix spelled out for older interpreters)
    iso = text[:-1] + '+00:00' if text.endswith('Z') else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass

    # Without a calendar date pandas would fill in today
    if not DATE_TOKEN_RE.search(text):
        raise ParseError(f"no date component: {raw!r}")

    with warnings.catch_warnings():
        # pandas warns when it has to guess the format element by element
        warnings.simplefilter('ignore')
        parsed = pd.to_datetime(text, errors='coerce')
    if parsed is pd.NaT or pd.isna(parsed):
        raise ParseError(f"unrecognized date/time: {raw!r}")
    return parsed.to_pydatetime()


def parse_instant_strict(raw: Any, tz: Optional[str] = None) -> datetime:
    """
    Parse a raw value into a naive local instant.

    Raises:
        ParseError: when the value cannot be interpreted
    """
    if raw is None or isinstance(raw, bool):
        raise ParseError(f"not a date/time: {raw!r}")

    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        value = datetime.combine(raw, time())
    elif isinstance(raw, (int, float)):
        # Epoch milliseconds, as produced by JavaScript clients
        try:
            value = datetime.fromtimestamp(raw / 1000.0, tz=pytz.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ParseError(f"epoch out of range: {raw!r}") from e
    elif isinstance(raw, str):
        value = _parse_string(raw)
    else:
        raise ParseError(f"unsupported type {type(raw).__name__}")

    return _to_reference_zone(value, tz)


def parse_instant(raw: Any, tz: Optional[str] = None) -> Optional[datetime]:
    """Parse a raw value into a naive local instant, or None if unusable"""
    try:
        return parse_instant_strict(raw, tz)
    except ParseError as e:
        if raw not in (None, ''):
            logger.debug(f"Unparseable date/time ignored: {e}")
        return None


def day_key(instant: Optional[datetime]) -> Optional[str]:
    """Canonical YYYY-MM-DD of a local instant"""
    if instant is None:
        return None
    return f"{instant.year:04d}-{instant.month:02d}-{instant.day:02d}"


def date_only_key(raw: Any, tz: Optional[str] = None) -> Optional[str]:
    """
    Day-key of a date-only field.

    Upstream sends service dates as "2025-01-01" or "2025-01-01T00:00:00Z";
    the leading date text is the intended day, so it is taken verbatim
    instead of being shifted into the local zone.
    """
    if isinstance(raw, str):
        match = DATE_PREFIX_RE.match(raw.strip())
        if match:
            year, month, day = (int(g) for g in match.groups())
            try:
                return day_key(datetime(year, month, day))
            except ValueError:
                return None
    return day_key(parse_instant(raw, tz))


def hours_worked(entry_raw: Any, exit_raw: Any, tz: Optional[str] = None) -> Optional[float]:
    """
    Elapsed hours from entry to exit.

    Returns None if either operand is unparseable or the duration is not
    positive (exit at or before entry is invalid, not "worked backwards").
    """
    start = parse_instant(entry_raw, tz)
    end = parse_instant(exit_raw, tz)
    if start is None or end is None:
        return None
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return None
    return seconds / 3600


def key_to_date(key: str) -> date:
    """Inverse of day_key for canonical keys"""
    return datetime.strptime(key, '%Y-%m-%d').date()


def format_date(raw: Any, tz: Optional[str] = None) -> str:
    """dd/mm/YYYY, or the raw text when unparseable"""
    parsed = parse_instant(raw, tz)
    if parsed is None:
        return '' if raw is None else str(raw)
    return parsed.strftime(DATE_DISPLAY_FORMAT)


def format_time(raw: Any, tz: Optional[str] = None) -> str:
    """HH:MM, or the raw text when unparseable (e.g. bare "08:15")"""
    parsed = parse_instant(raw, tz)
    if parsed is None:
        return '' if raw is None else str(raw)
    return parsed.strftime(TIME_DISPLAY_FORMAT)


def format_timestamp(instant: datetime) -> str:
    return instant.strftime(TIMESTAMP_DISPLAY_FORMAT)


def timestamp_token(instant: datetime) -> str:
    """Filename-safe timestamp: separators stripped (20250102T083000)"""
    return re.sub(r'[^0-9A-Za-z]', '', instant.replace(microsecond=0).isoformat())


def now_local() -> datetime:
    """Real-clock default for injected 'now' parameters"""
    return datetime.now()
