"""
Tests for Fuel Analytics Engine

Run with: pytest tests/test_fuel_analytics_engine.py -v
"""

import pytest

from fuel_analytics_engine import EfficiencyCategory, FuelAnalyticsEngine, percent_change
from fuel_efficiency_engine import calculate_fleet_efficiencies
from tests.fixtures.fleet_fixtures import AS_OF, make_fuel_record, make_vehicle, utc


@pytest.fixture
def engine():
    return FuelAnalyticsEngine()


@pytest.fixture
def summary_records():
    return [
        make_fuel_record("v1", utc(2025, 6, 2), liters=50, price=1.5),
        make_fuel_record("v1", utc(2025, 6, 10), liters=40, price=1.5),
        make_fuel_record("v2", utc(2025, 5, 20), liters=100, price=1.0),
    ]


class TestHelpers:
    """Test category and percent helpers"""

    @pytest.mark.parametrize(
        "efficiency,expected",
        [
            (16.0, EfficiencyCategory.EXCELLENT),
            (15.0, EfficiencyCategory.GOOD),
            (10.5, EfficiencyCategory.GOOD),
            (10.0, EfficiencyCategory.AVERAGE),
            (5.0, EfficiencyCategory.POOR),
            (0.0, EfficiencyCategory.POOR),
        ],
    )
    def test_efficiency_category(self, efficiency, expected):
        """Cutoffs are strict lower bounds"""
        assert EfficiencyCategory.from_efficiency(efficiency) == expected

    def test_percent_change(self):
        assert percent_change(135, 100) == pytest.approx(35.0)
        assert percent_change(90, 100) == pytest.approx(-10.0)
        assert percent_change(50, 0) == 0.0


class TestSummary:
    """Test month-over-month summary"""

    def test_current_vs_previous(self, engine, summary_records):
        """June against May"""
        summary = engine.summary(summary_records, AS_OF)
        assert summary.current_month_cost == pytest.approx(135.0)
        assert summary.current_month_volume == pytest.approx(90.0)
        assert summary.current_month_transactions == 2
        assert summary.average_price_per_liter == pytest.approx(1.5)
        assert summary.cost_change_percent == pytest.approx(35.0)
        assert summary.volume_change_percent == pytest.approx(-10.0)

    def test_projection(self, engine, summary_records):
        """Halfway through June projects double the spend so far"""
        summary = engine.summary(summary_records, AS_OF)
        assert summary.days_in_month == 30
        assert summary.days_passed == 15
        assert summary.month_progress == pytest.approx(50.0)
        assert summary.projected_monthly_cost == pytest.approx(270.0)

    def test_weekly_trend(self, engine, summary_records):
        """Last 7 days against the 7 before"""
        summary = engine.summary(summary_records, AS_OF)
        assert summary.recent_7_days_cost == pytest.approx(60.0)
        assert summary.previous_7_days_cost == pytest.approx(75.0)
        assert summary.weekly_trend_percent == pytest.approx(-20.0)

    def test_empty(self, engine):
        """No records gives zeros without dividing by zero"""
        summary = engine.summary([], AS_OF)
        assert summary.average_price_per_liter == 0.0
        assert summary.projected_monthly_cost == 0.0
        assert summary.cost_change_percent == 0.0


class TestConsumptionByVehicle:
    """Test top consumers"""

    def test_ranked_by_liters(self, engine):
        """Largest consumer first; unknown vehicles get a short id label"""
        vehicles = [make_vehicle("veh-1", plate="AB-123")]
        records = [
            make_fuel_record("veh-1", utc(2025, 6, 1), liters=30),
            make_fuel_record("ghost-abcdef", utc(2025, 6, 1), liters=80),
            make_fuel_record("veh-1", utc(2025, 6, 2), liters=20),
        ]
        ranked = engine.consumption_by_vehicle(vehicles, records)
        assert [(c.label, c.liters) for c in ranked] == [
            ("Truck abcdef", 80.0),
            ("AB-123", 50.0),
        ]

    def test_limit(self, engine):
        """At most ten vehicles"""
        records = [
            make_fuel_record(f"veh-{i:02d}", utc(2025, 6, 1), liters=i + 1) for i in range(12)
        ]
        assert len(engine.consumption_by_vehicle([], records)) == 10


class TestEfficiencyBreakdown:
    """Test efficiency categories over the fleet"""

    def test_fixture_fleet(self, engine, fleet_snapshot):
        """Heavy truck is poor, light truck good, van unrated"""
        efficiencies = calculate_fleet_efficiencies(
            [v.id for v in fleet_snapshot.vehicles], fleet_snapshot.fuel_records
        )
        breakdown = engine.efficiency_breakdown(fleet_snapshot.vehicles, efficiencies)

        assert breakdown.category_counts == {"excellent": 0, "good": 1, "average": 0, "poor": 1}
        assert breakdown.by_vehicle_type == {"Heavy Truck": 5.0, "Light Truck": 12.5}
        assert breakdown.top_performers == []
        assert [r.vehicle_id for r in breakdown.poor_performers] == ["veh-heavy-0001"]
        assert breakdown.average == pytest.approx(8.75)
        assert breakdown.best.vehicle_id == "veh-light-0002"
        assert breakdown.worst.vehicle_id == "veh-heavy-0001"

    def test_no_data(self, engine):
        """No rated vehicles gives an empty breakdown"""
        breakdown = engine.efficiency_breakdown([], {})
        assert breakdown.average == 0.0
        assert breakdown.best is None
        assert breakdown.to_dict()["worst"] is None


class TestAnalyze:
    """Test the full fuel report"""

    def test_fixture_fleet(self, engine, fleet_snapshot, as_of):
        """Trend covers twelve months ending with the current one"""
        efficiencies = calculate_fleet_efficiencies(
            [v.id for v in fleet_snapshot.vehicles], fleet_snapshot.fuel_records
        )
        report = engine.analyze(
            fleet_snapshot.vehicles, fleet_snapshot.fuel_records, efficiencies, as_of=as_of
        )

        assert len(report.monthly_trend) == 12
        assert report.monthly_trend[-1].label == "2025-06"
        assert report.monthly_trend[0].label == "2024-07"
        assert report.top_consumers[0].vehicle_id == "veh-heavy-0001"
        assert report.total_volume == pytest.approx(1900.0 + 320.0)

        data = report.to_dict()
        assert data["summary"]["current_month"]["transactions"] == 3
        assert len(data["monthly_trend"]) == 12
