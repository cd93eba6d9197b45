"""
Tests for Usage Score Engine

Run with: pytest tests/test_usage_score_engine.py -v
"""

import pytest

from analytics_config import UsageScoreConfig, get_usage_thresholds
from errors import InvalidConfigurationError
from tests.fixtures.fleet_fixtures import (
    AS_OF,
    make_fuel_record,
    make_maintenance_record,
    make_vehicle,
    utc,
)
from usage_score_engine import (
    UNASSIGNED_DRIVER,
    UsageClass,
    UsageSubScores,
    build_usage_report,
    combine_sub_scores,
    fuel_frequency_score,
    maintenance_score,
    mileage_score,
    monthly_mileage,
    records_in_month,
    recency_score,
    score_vehicle_usage,
)


@pytest.fixture
def medium():
    return get_usage_thresholds("medium")


@pytest.fixture
def config():
    return UsageScoreConfig()


class TestClassification:
    """Test preset classification"""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (75, UsageClass.HIGH),
            (70, UsageClass.HIGH),
            (50, UsageClass.NORMAL),
            (30, UsageClass.LOW),
            (25, UsageClass.LOW),
        ],
    )
    def test_medium_preset(self, medium, score, expected):
        """Medium preset: >= 70 high, <= 30 low, normal in between"""
        assert UsageClass.from_score(score, medium) == expected

    def test_presets_shift_cutoffs(self):
        """The same score classifies differently per preset"""
        assert UsageClass.from_score(60, get_usage_thresholds("low")) == UsageClass.HIGH
        assert UsageClass.from_score(60, get_usage_thresholds("high")) == UsageClass.NORMAL
        assert UsageClass.from_score(45, get_usage_thresholds("high")) == UsageClass.LOW


class TestSubScores:
    """Test the individual sub-score formulas"""

    def test_mileage(self, config):
        """Half the reference mileage is 50; capped at 100"""
        assert mileage_score(1000, config) == pytest.approx(50.0)
        assert mileage_score(5000, config) == 100.0
        assert mileage_score(0, config) == 0.0

    def test_fuel_frequency(self, config):
        """5 points per transaction, capped at 100"""
        assert fuel_frequency_score(3, config) == pytest.approx(15.0)
        assert fuel_frequency_score(40, config) == 100.0

    def test_maintenance(self, config):
        """5 points off per event, floored at 0"""
        assert maintenance_score(4, config) == pytest.approx(80.0)
        assert maintenance_score(30, config) == 0.0

    @pytest.mark.parametrize(
        "days,expected", [(None, 0.0), (0, 100.0), (45, 50.0), (90, 0.0), (400, 0.0)]
    )
    def test_recency(self, config, days, expected):
        """Recency decays to 0 over 90 days; no activity at all is 0"""
        assert recency_score(days, config) == pytest.approx(expected)

    def test_equal_weights_are_a_mean(self, config):
        """Default weighting is the arithmetic mean"""
        sub = UsageSubScores(mileage=50, fuel_frequency=15, maintenance=80, recency=100)
        assert combine_sub_scores(sub, config) == pytest.approx(61.25)

    def test_custom_weights(self):
        """Zero weights drop a sub-score from the composite"""
        config = UsageScoreConfig(
            weight_fuel_frequency=0, weight_maintenance=0, weight_recency=0
        )
        sub = UsageSubScores(mileage=40, fuel_frequency=100, maintenance=100, recency=100)
        assert combine_sub_scores(sub, config) == pytest.approx(40.0)

    def test_sub_scores_clamped_before_combining(self, config):
        """Out-of-range sub-scores cannot push the composite out of bounds"""
        sub = UsageSubScores(mileage=500, fuel_frequency=500, maintenance=-50, recency=500)
        assert combine_sub_scores(sub, config) == pytest.approx(75.0)


class TestMonthlyInputs:
    """Test reference-month selection and mileage"""

    def test_records_in_month(self):
        """Only records inside the calendar month of as_of, oldest first"""
        records = [
            make_fuel_record(when=utc(2025, 6, 10)),
            make_fuel_record(when=utc(2025, 5, 31, 23)),
            make_fuel_record(when=utc(2025, 6, 1, 0)),
            make_fuel_record(when=None),
        ]
        inside = records_in_month(records, AS_OF)
        assert [r.timestamp_created.day for r in inside] == [1, 10]

    def test_monthly_mileage_ignores_backwards_readings(self):
        """Negative deltas count as zero"""
        records = [
            make_fuel_record(when=utc(2025, 6, 1), odometer=1000),
            make_fuel_record(when=utc(2025, 6, 2), odometer=900),
            make_fuel_record(when=utc(2025, 6, 3), odometer=1500),
        ]
        assert monthly_mileage(records) == pytest.approx(600.0)


class TestScoreVehicleUsage:
    """Test scoring a single vehicle"""

    def test_full_vehicle(self, medium):
        """All four sub-scores from a month of activity"""
        vehicle = make_vehicle("v1", manufactured=utc(2021, 6, 1), driver_id="d1")
        fuel = [
            make_fuel_record("v1", utc(2025, 6, 1), odometer=10000),
            make_fuel_record("v1", utc(2025, 6, 5), odometer=10500),
            make_fuel_record("v1", utc(2025, 6, 10), odometer=11000),
        ]
        maintenance = [
            make_maintenance_record("v1", utc(2025, 1, 10)),
            make_maintenance_record("v1", utc(2025, 3, 1)),
        ]

        usage = score_vehicle_usage(vehicle, fuel, maintenance, AS_OF, medium)

        assert usage.age_years == 4
        assert usage.monthly_mileage == pytest.approx(1000.0)
        assert usage.fuel_transactions == 3
        assert usage.maintenance_count == 2
        assert usage.days_since_last_activity == pytest.approx(5.0)
        assert usage.sub_scores.mileage == pytest.approx(50.0)
        assert usage.sub_scores.fuel_frequency == pytest.approx(15.0)
        assert usage.sub_scores.maintenance == pytest.approx(90.0)
        assert usage.sub_scores.recency == pytest.approx(100 - 5 / 0.9)
        assert usage.usage_score == pytest.approx((50 + 15 + 90 + 100 - 5 / 0.9) / 4)
        assert usage.classification == UsageClass.NORMAL
        assert usage.utilization_rate == pytest.approx(50.0)
        assert usage.driver_name == "d1"

    def test_lifetime_average_fallback(self, medium):
        """No mileage this month falls back to odometer / months of age"""
        vehicle = make_vehicle("v1", manufactured=utc(2021, 1, 1))
        fuel = [make_fuel_record("v1", utc(2025, 3, 1), odometer=48000)]

        usage = score_vehicle_usage(vehicle, fuel, [], AS_OF, medium)

        assert usage.monthly_mileage == 0.0
        assert usage.avg_monthly_mileage == pytest.approx(1000.0)
        assert usage.sub_scores.mileage == pytest.approx(50.0)
        assert usage.fuel_transactions == 0

    def test_no_activity_at_all(self, medium):
        """A vehicle with nothing recorded scores only on maintenance"""
        usage = score_vehicle_usage(make_vehicle("v1"), [], [], AS_OF, medium)
        assert usage.days_since_last_activity is None
        assert usage.last_activity is None
        assert usage.usage_score == pytest.approx(25.0)
        assert usage.classification == UsageClass.LOW
        assert usage.driver_name == UNASSIGNED_DRIVER

    def test_future_records_do_not_count_as_activity(self, medium):
        """Activity after as_of is ignored for recency"""
        fuel = [make_fuel_record("v1", utc(2025, 6, 20), odometer=1000)]
        usage = score_vehicle_usage(make_vehicle("v1"), fuel, [], AS_OF, medium)
        assert usage.last_activity is None
        assert usage.sub_scores.recency == 0.0

    def test_score_always_in_bounds(self, medium):
        """Heavy activity never exceeds 100"""
        fuel = [
            make_fuel_record("v1", utc(2025, 6, day), odometer=1000 * day)
            for day in range(1, 15)
        ]
        usage = score_vehicle_usage(make_vehicle("v1"), fuel, [], AS_OF, medium)
        assert 0.0 <= usage.usage_score <= 100.0
        assert usage.sub_scores.mileage == 100.0


class TestBuildUsageReport:
    """Test the fleet usage report"""

    def test_fixture_fleet(self, fleet_snapshot, as_of):
        """Heavy and light trucks are normal; the idle van is low"""
        report = build_usage_report(
            fleet_snapshot.vehicles,
            fleet_snapshot.fuel_records,
            fleet_snapshot.maintenance_records,
            as_of=as_of,
        )
        by_id = {v.vehicle_id: v for v in report.vehicles}

        heavy = by_id["veh-heavy-0001"]
        assert heavy.monthly_mileage == pytest.approx(500.0)
        assert heavy.fuel_transactions == 2
        assert heavy.maintenance_count == 6
        assert heavy.classification == UsageClass.NORMAL

        assert by_id["veh-light-0002"].classification == UsageClass.NORMAL
        assert by_id["veh-van-0003"].classification == UsageClass.LOW
        assert [v.vehicle_id for v in report.low_usage] == ["veh-van-0003"]
        assert report.high_usage == []

    def test_idle_vehicles(self, fleet_snapshot, as_of):
        """Vehicles averaging under 500 km a month are idle"""
        report = build_usage_report(
            fleet_snapshot.vehicles,
            fleet_snapshot.fuel_records,
            fleet_snapshot.maintenance_records,
            as_of=as_of,
        )
        assert [v.vehicle_id for v in report.idle] == ["veh-van-0003"]

    def test_driver_usage(self, fleet_snapshot, as_of):
        """Only assigned vehicles are grouped by driver, best score first"""
        report = build_usage_report(
            fleet_snapshot.vehicles,
            fleet_snapshot.fuel_records,
            fleet_snapshot.maintenance_records,
            as_of=as_of,
        )
        assert [d.driver_name for d in report.driver_usage] == ["Bob", "Alice"]
        assert all(d.vehicle_count == 1 for d in report.driver_usage)

    def test_averages(self, fleet_snapshot, as_of):
        """Fleet averages are plain means over every vehicle"""
        report = build_usage_report(
            fleet_snapshot.vehicles,
            fleet_snapshot.fuel_records,
            fleet_snapshot.maintenance_records,
            as_of=as_of,
        )
        scores = [v.usage_score for v in report.vehicles]
        assert report.average_usage_score == pytest.approx(sum(scores) / 3)

    def test_empty_fleet(self, as_of):
        """No vehicles gives an empty report"""
        report = build_usage_report([], [], [], as_of=as_of)
        assert report.vehicles == []
        assert report.average_usage_score == 0.0

    def test_unknown_preset(self, as_of):
        """Unknown presets are a configuration error"""
        with pytest.raises(InvalidConfigurationError):
            build_usage_report([], [], [], as_of=as_of, preset="extreme")

    def test_to_dict(self, fleet_snapshot, as_of):
        """Serialized report names the preset and lists ids"""
        data = build_usage_report(
            fleet_snapshot.vehicles,
            fleet_snapshot.fuel_records,
            fleet_snapshot.maintenance_records,
            as_of=as_of,
            preset="high",
        ).to_dict()
        assert data["preset"] == {"name": "high", "high": 90.0, "low": 50.0}
        assert "veh-van-0003" in data["low_usage"]
        assert len(data["vehicles"]) == 3
