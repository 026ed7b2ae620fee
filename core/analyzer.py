"""
Dossier Analyzer
================

Single entry point that derives every view of an operator dossier:
day groupings, month calendar, flight streaks, survey/status metrics,
classified log entries and alerts.

Each call works on the snapshot it is given; nothing is cached between
calls, so a re-fetched dossier simply gets a fresh analysis.
"""

from datetime import datetime
from typing import Optional
import logging

from models.data_models import DossierAnalysis, LogEntryView, OperatorDossier
from core.parameters import DossierConfig
from core.aggregation import (
    MonthLike, build_calendar_grid, initial_month, log_entry_day_key, month_start,
    reprimands_by_day, services_by_day, sort_log_entries,
)
from core.statistics import (
    build_alerts, shift_classification, status_distribution, survey_coverage, survey_rating,
)
from core.streaks import detect_flight_streaks, highlighted_streaks
from core.temporal import hours_worked

logger = logging.getLogger(__name__)


class DossierAnalyzer:
    """
    Derived analytics for one operator dossier
    """

    def __init__(self, config: DossierConfig = None):
        self.config = config or DossierConfig.default_config()
        self.tz = self.config.temporal.reference_timezone

    def log_entry_views(self, dossier: OperatorDossier):
        views = []
        for entry in sort_log_entries(dossier.log_entries, self.tz):
            hours = hours_worked(entry.entry, entry.exit, self.tz)
            views.append(LogEntryView(
                entry=entry,
                day_key=log_entry_day_key(entry, self.tz),
                hours=hours,
                shift_class=shift_classification(hours, self.config.shifts),
            ))
        return views

    def analyze(
        self,
        dossier: OperatorDossier,
        month: MonthLike = None,
        now: Optional[datetime] = None,
        start_date: Optional[str] = None,
    ) -> DossierAnalysis:
        """
        Build the full analysis.

        Args:
            dossier: fetched dossier snapshot
            month: calendar month to lay out; defaults to ``start_date``,
                then the first summarized day, then ``now``
            now: injected current instant (real clock when None)
            start_date: start of the requested search range (fechaInicio)
        """
        services = list(dossier.services)
        grouped_services = services_by_day(services)
        grouped_reprimands = reprimands_by_day(dossier.reprimands)

        if month is not None:
            shown_month = month_start(month)
        else:
            shown_month = initial_month(dossier, start_date=start_date, now=now)
        calendar = build_calendar_grid(
            shown_month,
            grouped_services,
            grouped_reprimands,
            dossier.daily_totals,
            first_weekday=self.config.calendar.first_weekday,
            now=now,
        )

        streaks = detect_flight_streaks(services, self.config.streaks.min_run_days)
        coverage = survey_coverage(services)
        alerts = build_alerts(
            coverage,
            dossier.log_entries,
            services,
            thresholds=self.config.alerts,
            shift_params=self.config.shifts,
            tz=self.tz,
        )

        logger.info(
            f"Dossier {dossier.identifier()} analyzed: {len(services)} services, "
            f"{len(dossier.log_entries)} log entries, {len(streaks)} streaks, {len(alerts)} alerts"
        )

        return DossierAnalysis(
            dossier=dossier,
            month=shown_month,
            services_by_day=dict(grouped_services),
            reprimands_by_day=dict(grouped_reprimands),
            calendar=calendar,
            streaks=streaks,
            highlighted_streaks=highlighted_streaks(streaks, self.config.streaks.highlight_run_days),
            coverage=coverage,
            status_distribution=status_distribution(services),
            rating=survey_rating(services, self.config.alerts),
            log_entries=self.log_entry_views(dossier),
            alerts=alerts,
        )
