"""
Tests for consecutive flight detection
"""

from core.streaks import detect_flight_streaks, highlighted_streaks, streak_summary
from models.data_models import ServiceRecord


def _make_service(flight, service_date, origin='MEX', destination='CUN'):
    return ServiceRecord(record_id=f"{flight}-{service_date}", service_date=service_date,
                         flight_number=flight, origin=origin, destination=destination)


def _services(flight, days, **kwargs):
    return [_make_service(flight, day, **kwargs) for day in days]


class TestDetectFlightStreaks:

    def test_isolated_day_is_dropped(self):
        services = _services('AM100', ['2025-01-01', '2025-01-02', '2025-01-03', '2025-01-05'])
        streaks = detect_flight_streaks(services)
        assert len(streaks) == 1
        assert streaks[0].flight_number == 'AM100'
        assert streaks[0].start_key == '2025-01-01'
        assert streaks[0].end_key == '2025-01-03'
        assert streaks[0].length == 3

    def test_input_order_does_not_matter(self):
        services = _services('AM100', ['2025-01-03', '2025-01-01', '2025-01-02'])
        assert detect_flight_streaks(services)[0].length == 3

    def test_repeated_day_counted_once(self):
        services = _services('AM100', ['2025-01-01', '2025-01-01', '2025-01-02'])
        streaks = detect_flight_streaks(services)
        assert streaks[0].length == 2

    def test_run_across_month_boundary(self):
        services = _services('Y4210', ['2025-01-31', '2025-02-01'])
        streak = detect_flight_streaks(services)[0]
        assert (streak.start_key, streak.end_key) == ('2025-01-31', '2025-02-01')

    def test_two_runs_of_the_same_flight(self):
        services = _services('AM100', ['2025-01-01', '2025-01-02', '2025-01-10', '2025-01-11', '2025-01-12'])
        streaks = detect_flight_streaks(services)
        assert [(s.start_key, s.length) for s in streaks] == [('2025-01-10', 3), ('2025-01-01', 2)]

    def test_sorted_by_length_ties_keep_encounter_order(self):
        services = (
            _services('AM100', ['2025-01-01', '2025-01-02'])
            + _services('VB300', ['2025-01-05', '2025-01-06', '2025-01-07', '2025-01-08'])
            + _services('Y4210', ['2025-01-01', '2025-01-02'])
        )
        assert [s.flight_number for s in detect_flight_streaks(services)] == ['VB300', 'AM100', 'Y4210']

    def test_minimum_run_is_configurable(self):
        services = _services('AM100', ['2025-01-01', '2025-01-02'])
        assert detect_flight_streaks(services, min_run_days=3) == []
        assert len(detect_flight_streaks(services, min_run_days=1)) == 1

    def test_services_without_flight_or_date_are_skipped(self):
        services = [
            _make_service(None, '2025-01-01'),
            _make_service('  ', '2025-01-02'),
            _make_service('AM100', None),
        ]
        assert detect_flight_streaks(services) == []

    def test_route_taken_from_first_record(self):
        services = [
            _make_service('AM100', '2025-01-01', origin='GDL', destination='TIJ'),
            _make_service('AM100', '2025-01-02', origin='MEX', destination='CUN'),
        ]
        streak = detect_flight_streaks(services)[0]
        assert (streak.origin, streak.destination) == ('GDL', 'TIJ')


class TestHighlight:

    def test_highlight_threshold_independent_of_emission(self):
        services = (_services('AM100', ['2025-01-01', '2025-01-02'])
                    + _services('VB300', ['2025-01-05', '2025-01-06', '2025-01-07']))
        streaks = detect_flight_streaks(services)
        assert len(streaks) == 2
        assert [s.flight_number for s in highlighted_streaks(streaks)] == ['VB300']
        assert len(highlighted_streaks(streaks, highlight_run_days=2)) == 2

    def test_summary_view(self):
        streak = detect_flight_streaks(_services('AM100', ['2025-01-01', '2025-01-02', '2025-01-03']))[0]
        assert streak_summary(streak) == {
            'flight_number': 'AM100',
            'start': '2025-01-01',
            'end': '2025-01-03',
            'days': 3,
            'origin': 'MEX',
            'destination': 'CUN',
            'highlighted': True,
        }
