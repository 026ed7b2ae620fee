"""
Core Dossier Analytics Components
=================================

Main exports for operator dossier aggregation, streaks, statistics and
alerts.
"""

from core.errors import (
    DossierError,
    ParseError,
    ValidationError,
    EmptyFieldSelectionError,
    EmptyDateSelectionError,
    NoMatchingRecordsError,
    SinkError,
    FetchError,
)

from core.parameters import (
    TemporalParameters,
    CalendarParameters,
    StreakParameters,
    ShiftParameters,
    AlertThresholds,
    LayoutParameters,
    DossierConfig,
)

from core.temporal import parse_instant, day_key, date_only_key, hours_worked
from core.aggregation import (
    NO_DATE_KEY,
    group_by_day,
    build_calendar_grid,
    shift_month,
    day_detail,
)
from core.streaks import detect_flight_streaks, highlighted_streaks
from core.statistics import (
    survey_coverage,
    status_distribution,
    shift_classification,
    survey_rating,
    build_alerts,
    is_system_closed,
    is_finished_service,
)
from core.analyzer import DossierAnalyzer

__all__ = [
    # Errors
    'DossierError',
    'ParseError',
    'ValidationError',
    'EmptyFieldSelectionError',
    'EmptyDateSelectionError',
    'NoMatchingRecordsError',
    'SinkError',
    'FetchError',
    # Parameters
    'TemporalParameters',
    'CalendarParameters',
    'StreakParameters',
    'ShiftParameters',
    'AlertThresholds',
    'LayoutParameters',
    'DossierConfig',
    # Temporal
    'parse_instant',
    'day_key',
    'date_only_key',
    'hours_worked',
    # Aggregation
    'NO_DATE_KEY',
    'group_by_day',
    'build_calendar_grid',
    'shift_month',
    'day_detail',
    # Streaks & statistics
    'detect_flight_streaks',
    'highlighted_streaks',
    'survey_coverage',
    'status_distribution',
    'shift_classification',
    'survey_rating',
    'build_alerts',
    'is_system_closed',
    'is_finished_service',
    # Main analyzer
    'DossierAnalyzer',
]
