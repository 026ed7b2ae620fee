"""
Statistics & Alert Engine
=========================

Survey coverage, status distribution, shift-duration classification and
the prioritized alert list shown on top of a dossier.

Alert rules (fixed order):
1. Survey coverage below the minimum -> warning, otherwise success
2. Shifts with a known duration: system-closed or long shifts above their
   ratio -> warning; any short shift -> info
3. Services not in a finished status -> warning

Alerts are informational only; nothing here blocks an export.
"""

from collections import OrderedDict
from typing import Iterable, List, Optional, Sequence

from models.data_models import (
    Alert, AlertSeverity, LogEntry, ServiceRecord, ShiftClass, StatusShare,
    SurveyCoverage, SurveyRating,
)
from core.parameters import AlertThresholds, ShiftParameters
from core.temporal import hours_worked

NO_STATUS = 'SIN_STATUS'


# ============================================================================
# STATUS PREDICATES
# ============================================================================

def is_system_closed(status: Optional[str], thresholds: AlertThresholds = None) -> bool:
    """
    True when a shift was closed automatically.

    Match rule: the status contains any of ``system_keywords`` anywhere,
    case-insensitive ("Cerrado por sistema", "SYSTEM CLOSE").
    """
    thresholds = thresholds or AlertThresholds()
    text = (status or '').lower()
    return any(word.lower() in text for word in thresholds.system_keywords)


def is_finished_service(status: Optional[str], thresholds: AlertThresholds = None) -> bool:
    """
    True when a service reached a final status.

    Match rule: the upper-cased status equals one of ``finished_statuses``
    exactly; missing status is unfinished.
    """
    thresholds = thresholds or AlertThresholds()
    finished = {s.upper() for s in thresholds.finished_statuses}
    return (status or '').upper() in finished


# ============================================================================
# METRICS
# ============================================================================

def survey_coverage(services: Sequence[ServiceRecord]) -> SurveyCoverage:
    total = len(services)
    with_survey = sum(1 for s in services if s.has_survey)
    percent = (100.0 * with_survey / total) if total else 0.0
    return SurveyCoverage(total=total, with_survey=with_survey, coverage_percent=percent)


def status_distribution(services: Sequence[ServiceRecord]) -> List[StatusShare]:
    """Per upper-cased status: count and percent of all services"""
    total = len(services)
    counts: "OrderedDict[str, int]" = OrderedDict()
    for service in services:
        status = (service.status or NO_STATUS).upper()
        counts[status] = counts.get(status, 0) + 1
    return [
        StatusShare(status=status, count=count, percent=(100.0 * count / total) if total else 0.0)
        for status, count in counts.items()
    ]


def shift_classification(hours: Optional[float], params: ShiftParameters = None) -> ShiftClass:
    """< 9 h short, > 10 h long, 9..10 h normal, unknown without duration"""
    params = params or ShiftParameters()
    return ShiftClass(params.classify(hours))


def survey_rating(services: Iterable[ServiceRecord], thresholds: AlertThresholds = None) -> Optional[SurveyRating]:
    """
    Star score from survey ratings.

    Share of "EXCELENTE" ratings scaled to 0-5 and rounded to the nearest
    half star. None when no survey carries a rating.
    """
    thresholds = thresholds or AlertThresholds()
    ratings = [
        str(s.survey.rating).strip().upper()
        for s in services
        if s.survey is not None and s.survey.rating
    ]
    if not ratings:
        return None
    excellent = sum(1 for r in ratings if r == thresholds.excellent_rating.upper())
    score = excellent / len(ratings) * thresholds.rating_scale
    rounded = int(score * 2 + 0.5) / 2
    return SurveyRating(score=rounded, total=len(ratings), excellent=excellent)


# ============================================================================
# ALERTS
# ============================================================================

def _coverage_alerts(coverage: SurveyCoverage, thresholds: AlertThresholds) -> List[Alert]:
    if not coverage.total:
        return []
    if coverage.coverage_percent < thresholds.survey_coverage_min_percent:
        return [Alert(
            AlertSeverity.WARNING,
            f"Request the survey at service close: {coverage.with_survey}/{coverage.total} "
            f"({coverage.coverage_percent:.1f}%)",
        )]
    return [Alert(
        AlertSeverity.SUCCESS,
        f"Healthy survey coverage: {coverage.coverage_percent:.1f}%",
    )]


def _shift_alerts(
    log_entries: Sequence[LogEntry],
    thresholds: AlertThresholds,
    shift_params: ShiftParameters,
    tz: Optional[str],
) -> List[Alert]:
    known = []
    for entry in log_entries:
        hours = hours_worked(entry.entry, entry.exit, tz)
        if hours is not None:
            known.append((entry, shift_params.classify(hours)))
    if not known:
        return []

    total = len(known)
    system_closed = sum(1 for entry, _ in known if is_system_closed(entry.status, thresholds))
    long_shifts = sum(1 for _, cls in known if cls == 'long')
    short_shifts = sum(1 for _, cls in known if cls == 'short')

    alerts: List[Alert] = []
    if (system_closed / total > thresholds.system_closed_ratio
            or long_shifts / total > thresholds.long_shift_ratio):
        alerts.append(Alert(
            AlertSeverity.WARNING,
            f"Please close your shift: {system_closed} closed by the system, "
            f"{long_shifts} longer than {shift_params.long_above_hours:g}h.",
        ))
    if short_shifts > 0:
        alerts.append(Alert(
            AlertSeverity.INFO,
            f"Complete your shifts: {short_shifts} shift(s) shorter than "
            f"{shift_params.short_below_hours:g}h.",
        ))
    return alerts


def _unfinished_service_alerts(services: Sequence[ServiceRecord], thresholds: AlertThresholds) -> List[Alert]:
    if not services:
        return []
    unfinished = sum(1 for s in services if not is_finished_service(s.status, thresholds))
    if not unfinished:
        return []
    percent = 100.0 * unfinished / len(services)
    finished = '/'.join(thresholds.finished_statuses)
    return [Alert(
        AlertSeverity.WARNING,
        f"Unfinished services: {unfinished}/{len(services)} ({percent:.1f}%) "
        f"with a status other than {finished}.",
    )]


def build_alerts(
    coverage: SurveyCoverage,
    log_entries: Sequence[LogEntry],
    services: Sequence[ServiceRecord],
    thresholds: AlertThresholds = None,
    shift_params: ShiftParameters = None,
    tz: Optional[str] = None,
) -> List[Alert]:
    """Deterministic alert list, rules evaluated in fixed order"""
    thresholds = thresholds or AlertThresholds()
    shift_params = shift_params or ShiftParameters()

    alerts: List[Alert] = []
    alerts.extend(_coverage_alerts(coverage, thresholds))
    alerts.extend(_shift_alerts(log_entries, thresholds, shift_params, tz))
    alerts.extend(_unfinished_service_alerts(services, thresholds))
    return alerts
