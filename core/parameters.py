"""
Configuration & Parameters for Dossier Analytics
================================================

All configuration dataclasses for the dossier pipeline:
- TemporalParameters: reference timezone for instant normalization
- CalendarParameters: week layout of the month grid
- StreakParameters: consecutive-flight thresholds
- ShiftParameters: shift-duration classification bounds
- AlertThresholds: alert rules (survey coverage, shifts, unfinished services)
- LayoutParameters: A4 geometry for the evidence document (millimetres)
- DossierConfig: master configuration container
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

# Python weekday numbering (Monday=0)
MONDAY = 0
SUNDAY = 6


@dataclass
class TemporalParameters:
    """Instant normalization"""

    # pytz zone name; None means the process-local zone
    reference_timezone: Optional[str] = None


@dataclass
class CalendarParameters:
    """Month grid layout"""

    first_weekday: int = SUNDAY


@dataclass
class StreakParameters:
    """
    Consecutive flight assignment thresholds

    Emission and highlight thresholds are independent: streaks of 2 days
    are reported, 3+ days get a badge.
    """

    min_run_days: int = 2
    highlight_run_days: int = 3


@dataclass
class ShiftParameters:
    """Shift-duration classification (hours)"""

    short_below_hours: float = 9.0
    long_above_hours: float = 10.0

    def classify(self, hours: Optional[float]) -> str:
        if hours is None:
            return 'unknown'
        if hours < self.short_below_hours:
            return 'short'
        if hours > self.long_above_hours:
            return 'long'
        return 'normal'


@dataclass
class AlertThresholds:
    """Alert rules evaluated by build_alerts"""

    survey_coverage_min_percent: float = 80.0
    system_closed_ratio: float = 0.5
    long_shift_ratio: float = 0.5

    # Status words are matched case-insensitively
    system_keywords: Tuple[str, ...] = ('sistema', 'system')
    finished_statuses: Tuple[str, ...] = ('CONCLUIDO', 'CONCLUDED', 'NOSHOW')

    # Survey rating label counted as a full score
    excellent_rating: str = 'EXCELENTE'
    rating_scale: float = 5.0


@dataclass
class LayoutParameters:
    """
    Evidence document geometry (A4 portrait, millimetres)
    """

    page_width: float = 210.0
    page_height: float = 297.0
    usable_height: float = 285.0
    top_margin: float = 12.0
    panel_margin: float = 10.0
    text_margin: float = 16.0

    header_panel_height: float = 30.0
    summary_panel_height: float = 46.0
    section_title_height: float = 14.0
    line_height: float = 6.0

    grid_left: float = 12.0
    grid_gap: float = 4.0
    grid_margin_total: float = 30.0
    row_gap: float = 6.0
    # Breathing room kept below every card before forcing a page break
    card_bottom_reserve: float = 10.0

    service_card_height: float = 28.0
    log_card_base_height: float = 22.0
    observation_line_height: float = 4.0

    colors: Dict[str, Tuple[int, int, int]] = field(default_factory=lambda: {
        'bg': (15, 23, 42),
        'card': (26, 32, 55),
        'accent': (124, 58, 237),
        'accent2': (59, 130, 246),
        'text': (226, 232, 240),
        'muted': (148, 163, 184),
        'alert': (248, 113, 113),
        'white': (255, 255, 255),
    })

    @property
    def card_width(self) -> float:
        return (self.page_width - self.grid_margin_total) / 2


@dataclass
class DossierConfig:
    """Master configuration container"""
    temporal: TemporalParameters
    calendar: CalendarParameters
    streaks: StreakParameters
    shifts: ShiftParameters
    alerts: AlertThresholds
    layout: LayoutParameters

    @classmethod
    def default_config(cls):
        return cls(
            temporal=TemporalParameters(),
            calendar=CalendarParameters(),
            streaks=StreakParameters(),
            shifts=ShiftParameters(),
            alerts=AlertThresholds(),
            layout=LayoutParameters(),
        )

    @classmethod
    def strict_config(cls):
        """
        Tighter supervision thresholds.
        - Survey coverage expected at 90%
        - Shift warnings when a third of the shifts are irregular
        - Streak badge from 2 consecutive days
        """
        return cls(
            temporal=TemporalParameters(),
            calendar=CalendarParameters(),
            streaks=StreakParameters(min_run_days=2, highlight_run_days=2),
            shifts=ShiftParameters(),
            alerts=AlertThresholds(
                survey_coverage_min_percent=90.0,
                system_closed_ratio=0.33,
                long_shift_ratio=0.33,
            ),
            layout=LayoutParameters(),
        )

    @classmethod
    def from_preset(cls, name: Optional[str]):
        presets = {
            'default': cls.default_config,
            'strict': cls.strict_config,
        }
        return presets.get((name or 'default').lower(), cls.default_config)()
