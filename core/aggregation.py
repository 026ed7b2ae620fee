"""
Aggregation Engine
==================

Groups dossier records by calendar day and builds the month grid shown in
the operator calendar. Grids are padded with blank cells so every week row
holds exactly 7 cells.
"""

from calendar import monthrange
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union
import logging

from models.data_models import (
    CalendarDayCell, DayDetail, LogEntry, OperatorDossier, ReprimandRecord, ServiceRecord,
)
from core.parameters import SUNDAY
from core.temporal import date_only_key, day_key, now_local, parse_instant

logger = logging.getLogger(__name__)

T = TypeVar('T')

NO_DATE_KEY = 'SIN_FECHA'

MonthLike = Union[date, datetime, str, None]


def group_by_day(
    records: Iterable[T],
    date_selector: Callable[[T], Optional[str]],
) -> "OrderedDict[str, List[T]]":
    """
    Stable grouping by day-key.

    ``date_selector`` returns the record's day-key (or None). Records without
    a usable date land in the NO_DATE_KEY bucket instead of being dropped.
    """
    grouped: "OrderedDict[str, List[T]]" = OrderedDict()
    undated = 0
    for record in records:
        key = date_selector(record) or NO_DATE_KEY
        if key == NO_DATE_KEY:
            undated += 1
        grouped.setdefault(key, []).append(record)
    if undated:
        logger.debug(f"{undated} record(s) grouped under {NO_DATE_KEY}")
    return grouped


def services_by_day(services: Iterable[ServiceRecord]) -> "OrderedDict[str, List[ServiceRecord]]":
    return group_by_day(services, lambda s: date_only_key(s.service_date))


def reprimands_by_day(reprimands: Iterable[ReprimandRecord]) -> "OrderedDict[str, List[ReprimandRecord]]":
    return group_by_day(reprimands, lambda r: date_only_key(r.date))


def log_entry_day_key(entry: LogEntry, tz: Optional[str] = None) -> Optional[str]:
    return day_key(parse_instant(entry.effective_date, tz))


def month_start(month: MonthLike, now: Optional[datetime] = None) -> date:
    """
    First day of the month designated by ``month``.

    Accepts a date/datetime, "YYYY-MM" or any parseable date string. None
    falls back to ``now`` (real clock when not injected).
    """
    if month is None:
        reference = now or now_local()
        return date(reference.year, reference.month, 1)
    if isinstance(month, datetime):
        return date(month.year, month.month, 1)
    if isinstance(month, date):
        return month.replace(day=1)
    text = str(month).strip()
    if len(text) == 7 and text[4] == '-':
        text = f"{text}-01"
    parsed = parse_instant(text)
    if parsed is None:
        raise ValueError(f"Invalid month: {month!r}")
    return date(parsed.year, parsed.month, 1)


def shift_month(month: MonthLike, delta: int) -> date:
    """Move the calendar by ``delta`` months (navigation arrows)"""
    start = month_start(month)
    index = start.year * 12 + (start.month - 1) + delta
    return date(index // 12, index % 12 + 1, 1)


def build_calendar_grid(
    month: MonthLike,
    grouped_services: Mapping[str, Sequence[ServiceRecord]],
    grouped_reprimands: Mapping[str, Sequence[ReprimandRecord]],
    daily_totals: Mapping[str, int],
    first_weekday: int = SUNDAY,
    now: Optional[datetime] = None,
) -> List[CalendarDayCell]:
    """
    Full padded month grid.

    Leading blanks align day 1 with its weekday column (weeks start on
    ``first_weekday``, Python numbering); trailing blanks complete the last
    week. Same inputs always give an identical grid.
    """
    start = month_start(month, now)
    _, days_in_month = monthrange(start.year, start.month)

    cells: List[CalendarDayCell] = []
    lead = (start.weekday() - first_weekday) % 7
    cells.extend(CalendarDayCell() for _ in range(lead))

    for offset in range(days_in_month):
        current = start + timedelta(days=offset)
        key = day_key(datetime(current.year, current.month, current.day))
        cells.append(CalendarDayCell(
            date=current,
            day_key=key,
            services=tuple(grouped_services.get(key, ())),
            reprimands=tuple(grouped_reprimands.get(key, ())),
            total_services=int(daily_totals.get(key, 0) or 0),
        ))

    remainder = len(cells) % 7
    if remainder:
        cells.extend(CalendarDayCell() for _ in range(7 - remainder))

    return cells


def initial_month(
    dossier: OperatorDossier,
    start_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> date:
    """
    Month shown right after a search: the requested start date, else the
    first day of the service summary, else the first day of the log-entry
    summary, else the current month.
    """
    candidates = (
        start_date,
        next(iter(dossier.daily_totals), None),
        next(iter(dossier.log_daily_totals), None),
    )
    for candidate in candidates:
        if candidate:
            parsed = parse_instant(candidate)
            if parsed is not None:
                return date(parsed.year, parsed.month, 1)
    return month_start(None, now)


def day_detail(cell: CalendarDayCell) -> Optional[DayDetail]:
    """Records behind a calendar cell; None for blank or empty days"""
    if cell.is_blank or not cell.has_data:
        return None
    return DayDetail(day_key=cell.day_key, services=cell.services, reprimands=cell.reprimands)


def find_cell(grid: Sequence[CalendarDayCell], key: str) -> Optional[CalendarDayCell]:
    for cell in grid:
        if cell.day_key == key:
            return cell
    return None


def sort_log_entries(entries: Iterable[LogEntry], tz: Optional[str] = None) -> List[LogEntry]:
    """Newest effective date first; undated entries sink to the end"""
    floor = datetime.min

    def sort_key(entry: LogEntry) -> Any:
        return parse_instant(entry.effective_date, tz) or floor

    return sorted(entries, key=sort_key, reverse=True)


def daily_totals_from_summary(summary: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    """Map upstream [{fecha, total}] rows to day-key -> count"""
    totals: Dict[str, int] = {}
    for row in summary:
        if not isinstance(row, Mapping):
            continue
        key = date_only_key(row.get('fecha'))
        if not key:
            continue
        try:
            totals[key] = int(row.get('total') or 0)
        except (TypeError, ValueError):
            logger.warning(f"Invalid daily total for {key}: {row.get('total')!r}")
            totals[key] = 0
    return totals
