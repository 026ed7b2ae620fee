"""
Consecutive Flight Streak Detection
===================================

Flags operators assigned the same flight number on back-to-back days.

For each flight number the distinct service days are collected (several
services of the same flight on one day count once), sorted, and scanned for
maximal runs where neighbours are exactly one calendar day apart.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional
import logging

from models.data_models import FlightStreak, ServiceRecord
from core.temporal import date_only_key, key_to_date

logger = logging.getLogger(__name__)


class _FlightDays:
    """Distinct days of one flight plus the first record seen for it"""

    def __init__(self, sample: ServiceRecord):
        self.sample = sample
        self.days = set()


def _collect_flight_days(services: Iterable[ServiceRecord]) -> "OrderedDict[str, _FlightDays]":
    flights: "OrderedDict[str, _FlightDays]" = OrderedDict()
    skipped = 0
    for service in services:
        flight = (service.flight_number or '').strip()
        key = date_only_key(service.service_date)
        if not flight or not key:
            skipped += 1
            continue
        if flight not in flights:
            flights[flight] = _FlightDays(service)
        flights[flight].days.add(key)
    if skipped:
        logger.debug(f"{skipped} service(s) without flight number or date skipped for streaks")
    return flights


def _runs(keys: List[str]) -> List[List[str]]:
    """Split sorted day-keys into maximal consecutive runs"""
    runs: List[List[str]] = []
    current: List[str] = []
    previous = None
    for key in keys:
        day = key_to_date(key)
        if previous is not None and (day - previous).days == 1:
            current.append(key)
        else:
            if current:
                runs.append(current)
            current = [key]
        previous = day
    if current:
        runs.append(current)
    return runs


def detect_flight_streaks(services: Iterable[ServiceRecord], min_run_days: int = 2) -> List[FlightStreak]:
    """
    Maximal runs of consecutive days per flight number.

    Runs shorter than ``min_run_days`` are dropped. Result is sorted by
    descending length; equal lengths keep encounter order.
    """
    streaks: List[FlightStreak] = []
    for flight, info in _collect_flight_days(services).items():
        for run in _runs(sorted(info.days)):
            if len(run) < min_run_days:
                continue
            streaks.append(FlightStreak(
                flight_number=flight,
                start_key=run[0],
                end_key=run[-1],
                length=len(run),
                origin=info.sample.origin,
                destination=info.sample.destination,
            ))

    # sorted() is stable, so ties keep encounter order
    return sorted(streaks, key=lambda s: s.length, reverse=True)


def highlighted_streaks(streaks: Iterable[FlightStreak], highlight_run_days: int = 3) -> List[FlightStreak]:
    """Streaks long enough for the "3+ consecutive days" badge"""
    return [s for s in streaks if s.length >= highlight_run_days]


def streak_summary(streak: FlightStreak, highlight_run_days: int = 3) -> Dict[str, Optional[object]]:
    """Serializable view used by the API and the summary document"""
    return {
        'flight_number': streak.flight_number,
        'start': streak.start_key,
        'end': streak.end_key,
        'days': streak.length,
        'origin': streak.origin,
        'destination': streak.destination,
        'highlighted': streak.length >= highlight_run_days,
    }
