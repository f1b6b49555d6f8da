"""
Unit tests for GPS fix resolution.
"""

import pytest

from bluegrid.geo import GpsReading, haversine_m, average_position, assess_quality, resolve_fix


class TestHaversine:
    def test_zero_distance(self):
        p = GpsReading(9.59, 76.52, 5)
        assert haversine_m(p, p) == 0

    def test_one_millidegree_of_latitude(self):
        d = haversine_m(GpsReading(9.590, 76.52, 5), GpsReading(9.591, 76.52, 5))
        assert d == pytest.approx(111.2, abs=0.5)


class TestAveraging:
    def test_weights_favour_accurate_readings(self):
        fix = average_position([GpsReading(10.0, 76.0, 2), GpsReading(10.3, 76.3, 6)])
        # weights 1 and 1/3
        assert fix.latitude == pytest.approx(10.075)
        assert fix.longitude == pytest.approx(76.075)
        assert fix.accuracy == 2

    def test_empty_readings(self):
        with pytest.raises(ValueError):
            average_position([])

    def test_non_positive_accuracy(self):
        with pytest.raises(ValueError):
            average_position([GpsReading(10.0, 76.0, 0)])


class TestQuality:
    @pytest.mark.parametrize("accuracy,stable,expected", [
        (2.5, 3, "excellent"),
        (2.5, 1, "fair"),
        (7.0, 2, "good"),
        (15.0, 4, "fair"),
        (40.0, 5, "poor"),
    ])
    def test_grades(self, accuracy, stable, expected):
        assert assess_quality(accuracy, stable) == expected


class TestResolveFix:
    def test_stops_when_accurate_and_stable(self):
        samples = [(9.5916, 76.5222, 2.0)] * 8
        fix = resolve_fix(samples)
        assert fix.readings_used == 4
        assert fix.quality == "excellent"

    def test_stops_after_five_stable_readings(self):
        samples = [(9.5916, 76.5222, 10.0)] * 8
        fix = resolve_fix(samples)
        assert fix.readings_used == 6
        assert fix.quality == "fair"

    def test_caps_reading_count(self):
        # Every reading jumps ~110 m, so nothing is ever stable
        samples = [(9.59 + i * 0.001, 76.52, 30.0) for i in range(15)]
        fix = resolve_fix(samples)
        assert fix.readings_used == 10
        assert fix.quality == "poor"

    def test_short_run_uses_last_reading(self):
        fix = resolve_fix([(9.0, 76.0, 20.0), (9.5, 76.5, 15.0)])
        assert (fix.latitude, fix.longitude, fix.accuracy) == (9.5, 76.5, 15.0)
        assert fix.readings_used == 2

    def test_no_readings(self):
        with pytest.raises(ValueError):
            resolve_fix([])
