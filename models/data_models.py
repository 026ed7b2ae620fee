"""
data_models.py - Core Data Structures
======================================

Data models for operator dossiers, derived calendar/streak/alert views and
export selections.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Dict, Any, Tuple
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class AlertSeverity(Enum):
    """Alert severity tags"""
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class ShiftClass(Enum):
    """Shift-duration classification of a log entry"""
    SHORT = "short"
    NORMAL = "normal"
    LONG = "long"
    UNKNOWN = "unknown"


class ExportDataset(Enum):
    """Dataset selectable for tabular export"""
    SERVICES = "services"
    LOG_ENTRIES = "logEntries"

    @property
    def file_token(self) -> str:
        return 'servicios' if self is ExportDataset.SERVICES else 'bitacora'


class ExportFormat(Enum):
    """Tabular serialization handled by the spreadsheet sink"""
    SPREADSHEET = "spreadsheet"
    COMMA_SEPARATED = "commaSeparated"

    @property
    def extension(self) -> str:
        return '.xlsx' if self is ExportFormat.SPREADSHEET else '.csv'


# ============================================================================
# FETCHED RECORDS
# ============================================================================

@dataclass(frozen=True)
class SurveyResult:
    """Passenger survey attached to a service"""
    rating: Optional[str] = None
    agent: Optional[str] = None
    comments: Optional[str] = None
    passenger_signature: Optional[str] = None  # image reference (data URL)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rating': self.rating,
            'agent': self.agent,
            'comments': self.comments,
            'passenger_signature': self.passenger_signature,
        }


@dataclass(frozen=True)
class ServiceRecord:
    """Single flight-assistance service"""
    record_id: Optional[str]
    service_date: Optional[str]   # date-only semantics
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    flight_number: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    service_type: Optional[str] = None
    seat_type: Optional[str] = None
    status: Optional[str] = None
    pnr: Optional[str] = None
    airline: Optional[str] = None
    station: Optional[str] = None
    survey: Optional[SurveyResult] = None
    # Remaining upstream keys, exportable by name
    extras: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def normalized_status(self) -> str:
        return (self.status or '').upper()

    @property
    def has_survey(self) -> bool:
        return self.survey is not None

    def to_dict(self) -> Dict[str, Any]:
        """Generic key-value view used by dotted-path export lookups"""
        data = dict(self.extras)
        data.update({
            'record_id': self.record_id,
            'service_date': self.service_date,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'flight_number': self.flight_number,
            'origin': self.origin,
            'destination': self.destination,
            'service_type': self.service_type,
            'seat_type': self.seat_type,
            'status': self.status,
            'pnr': self.pnr,
            'airline': self.airline,
            'station': self.station,
            'survey': self.survey.to_dict() if self.survey else None,
        })
        return data


@dataclass(frozen=True)
class LogEntry:
    """Shift log entry (bitácora)"""
    record_id: Optional[str]
    entry: Optional[str] = None
    exit: Optional[str] = None
    registered_at: Optional[str] = None  # fallback when entry is missing
    status: Optional[str] = None
    seat: Optional[str] = None
    observations: Optional[str] = None
    recorded_by: Optional[str] = None
    station: Optional[str] = None
    collaborator_id: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def effective_date(self) -> Optional[str]:
        return self.entry or self.registered_at

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extras)
        data.update({
            'record_id': self.record_id,
            'entry': self.entry,
            'exit': self.exit,
            'registered_at': self.registered_at,
            'status': self.status,
            'seat': self.seat,
            'observations': self.observations,
            'recorded_by': self.recorded_by,
            'station': self.station,
            'collaborator_id': self.collaborator_id,
        })
        return data


@dataclass(frozen=True)
class ReprimandRecord:
    """Disciplinary record (amonestación)"""
    record_id: Optional[str]
    date: Optional[str]
    sanction: Optional[str] = None
    reason: Optional[str] = None
    recorded_by: Optional[str] = None
    sanctioned_collaborator_id: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class OperatorProfile:
    """Operator identity"""
    collaborator_id: Optional[str]
    name: Optional[str] = None
    surnames: Optional[str] = None
    initials: Optional[str] = None
    station: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.name or ''} {self.surnames or ''}".strip()


@dataclass(frozen=True)
class OperatorDossier:
    """
    Aggregate root for one operator.

    Built fresh from every fetch and replaced wholesale; nothing downstream
    mutates it.
    """
    operator: OperatorProfile
    services: Tuple[ServiceRecord, ...] = ()
    log_entries: Tuple[LogEntry, ...] = ()
    reprimands: Tuple[ReprimandRecord, ...] = ()
    daily_totals: Dict[str, int] = field(default_factory=dict, compare=False, hash=False)
    log_daily_totals: Dict[str, int] = field(default_factory=dict, compare=False, hash=False)
    wristbands: Tuple[Dict[str, Any], ...] = field(default=(), compare=False, hash=False)
    service_total: Optional[int] = None
    log_total: Optional[int] = None

    @property
    def total_services(self) -> int:
        return self.service_total if self.service_total is not None else len(self.services)

    @property
    def total_log_entries(self) -> int:
        return self.log_total if self.log_total is not None else len(self.log_entries)

    def identifier(self, fallback: Optional[str] = None) -> str:
        """Collaborator id used in filenames and headers"""
        return str(self.operator.collaborator_id or fallback or 'reporte')


# ============================================================================
# DERIVED VIEWS
# ============================================================================

@dataclass(frozen=True)
class CalendarDayCell:
    """One cell of the month grid; blank cells pad the first/last week"""
    date: Optional[date] = None
    day_key: Optional[str] = None
    services: Tuple[ServiceRecord, ...] = ()
    reprimands: Tuple[ReprimandRecord, ...] = ()
    total_services: int = 0

    @property
    def is_blank(self) -> bool:
        return self.date is None

    @property
    def label(self) -> str:
        return str(self.date.day) if self.date else ''

    @property
    def has_data(self) -> bool:
        return bool(self.services or self.reprimands)


@dataclass(frozen=True)
class DayDetail:
    """Records of one selected calendar day"""
    day_key: str
    services: Tuple[ServiceRecord, ...]
    reprimands: Tuple[ReprimandRecord, ...]


@dataclass(frozen=True)
class FlightStreak:
    """Maximal run of consecutive days on the same flight number"""
    flight_number: str
    start_key: str
    end_key: str
    length: int
    origin: Optional[str] = None
    destination: Optional[str] = None


@dataclass(frozen=True)
class Alert:
    severity: AlertSeverity
    message: str


@dataclass(frozen=True)
class SurveyCoverage:
    total: int
    with_survey: int
    coverage_percent: float


@dataclass(frozen=True)
class StatusShare:
    status: str
    count: int
    percent: float


@dataclass(frozen=True)
class SurveyRating:
    score: float      # 0..5 in half steps
    total: int
    excellent: int


@dataclass(frozen=True)
class LogEntryView:
    """Log entry with its computed duration and classification"""
    entry: LogEntry
    day_key: Optional[str]
    hours: Optional[float]
    shift_class: ShiftClass


# ============================================================================
# EXPORT
# ============================================================================

@dataclass(frozen=True)
class ExportSelection:
    dataset: ExportDataset
    fields: Tuple[str, ...]
    format: ExportFormat = ExportFormat.SPREADSHEET
    date_from: Optional[str] = None   # log entries only
    date_to: Optional[str] = None


@dataclass
class ExportTable:
    """Rectangular row-set ready for a spreadsheet sink"""
    rows: List[List[Any]]
    sheet_name: str
    filename: str
    format: ExportFormat
    record_count: int = 0


# ============================================================================
# ANALYSIS OUTPUT
# ============================================================================

@dataclass
class DossierAnalysis:
    """Everything derived from one dossier snapshot"""
    dossier: OperatorDossier
    month: date
    services_by_day: Dict[str, List[ServiceRecord]]
    reprimands_by_day: Dict[str, List[ReprimandRecord]]
    calendar: List[CalendarDayCell]
    streaks: List[FlightStreak]
    highlighted_streaks: List[FlightStreak]
    coverage: SurveyCoverage
    status_distribution: List[StatusShare]
    rating: Optional[SurveyRating]
    log_entries: List[LogEntryView]
    alerts: List[Alert]

    @property
    def counts(self) -> Dict[str, int]:
        return {
            'services': self.dossier.total_services,
            'log_entries': self.dossier.total_log_entries,
            'reprimands': len(self.dossier.reprimands),
            'wristbands': len(self.dossier.wristbands),
        }

    @property
    def short_shifts(self) -> int:
        return sum(1 for v in self.log_entries if v.shift_class is ShiftClass.SHORT)

    @property
    def long_shifts(self) -> int:
        return sum(1 for v in self.log_entries if v.shift_class is ShiftClass.LONG)
