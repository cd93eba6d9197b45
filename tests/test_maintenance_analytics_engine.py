"""
Tests for Maintenance Analytics Engine

Run with: pytest tests/test_maintenance_analytics_engine.py -v
"""

import pytest

from maintenance_analytics_engine import (
    UNKNOWN,
    MaintenanceAnalyticsEngine,
    RequestPriority,
)
from tests.fixtures.fleet_fixtures import make_maintenance_record, make_vehicle, utc


@pytest.fixture
def engine():
    return MaintenanceAnalyticsEngine()


class TestRequestPriority:
    """Test priority from mileage at request"""

    @pytest.mark.parametrize(
        "mileage,expected",
        [
            (150000, RequestPriority.HIGH),
            (100000, RequestPriority.MEDIUM),
            (60000, RequestPriority.MEDIUM),
            (50000, RequestPriority.LOW),
            (0, RequestPriority.LOW),
        ],
    )
    def test_from_mileage(self, mileage, expected):
        """Cutoffs are strict"""
        assert RequestPriority.from_mileage(mileage) == expected


class TestKPIs:
    """Test maintenance KPIs"""

    def test_costs_and_requests(self, engine, maintenance_request_rows):
        """Labor is 30% of total; completion rate over all requests"""
        records = [
            make_maintenance_record(cost=100),
            make_maintenance_record(cost=200),
            make_maintenance_record(cost=700),
        ]
        kpis = engine.kpis(records, maintenance_request_rows)

        assert kpis.total_cost == pytest.approx(1000.0)
        assert kpis.labor_cost == pytest.approx(300.0)
        assert kpis.record_count == 3
        assert kpis.request_count == 4
        assert kpis.pending_requests == 1
        assert kpis.completion_rate == pytest.approx(50.0)
        # 3 and 5 days
        assert kpis.avg_days_to_complete == pytest.approx(4.0)

    def test_no_requests(self, engine):
        """Empty inputs never divide by zero"""
        kpis = engine.kpis([], [])
        assert kpis.completion_rate == 0.0
        assert kpis.avg_days_to_complete == 0.0


class TestBreakdowns:
    """Test grouped maintenance views over the fixture fleet"""

    def test_monthly_trend(self, engine, fleet_snapshot):
        """Months sorted oldest first with counts and costs"""
        trend = engine.monthly_trend(fleet_snapshot.maintenance_records)
        assert [b.key for b in trend] == [
            "2024-08",
            "2024-10",
            "2024-12",
            "2025-02",
            "2025-04",
            "2025-05",
        ]
        february = trend[3]
        assert february.count == 2
        assert february.cost == pytest.approx(1900.0)
        assert february.avg_cost == pytest.approx(950.0)

    def test_type_breakdown(self, engine, fleet_snapshot):
        """Most expensive type first; unknown ids are grouped as Unknown"""
        breakdown = engine.type_breakdown(
            fleet_snapshot.maintenance_records, fleet_snapshot.maintenance_types
        )
        assert [(b.key, b.count, b.cost) for b in breakdown] == [
            ("Oil Change", 4, 4900.0),
            ("Brakes", 3, 4500.0),
        ]

        unnamed = engine.type_breakdown([make_maintenance_record(type_id="mt-x")], {})
        assert unnamed[0].key == UNKNOWN

    def test_issue_prone_vehicles(self, engine, fleet_snapshot):
        """Most maintenance events first"""
        items = engine.issue_prone_vehicles(
            fleet_snapshot.vehicles, fleet_snapshot.maintenance_records
        )
        assert [v.vehicle_id for v in items] == ["veh-heavy-0001", "veh-light-0002"]
        heavy = items[0]
        assert heavy.plate_number == "HV-101"
        assert heavy.issue_count == 6
        assert heavy.avg_cost == pytest.approx(1500.0)
        assert heavy.last_maintenance == utc(2025, 5, 1, 0)

    def test_issue_prone_ties_and_unknown(self, engine):
        """Ties break on cost; vehicles missing from the fleet show Unknown"""
        records = [
            make_maintenance_record("a", utc(2025, 1, 1), cost=100),
            make_maintenance_record("b", utc(2025, 1, 1), cost=300),
        ]
        items = engine.issue_prone_vehicles([make_vehicle("a", plate="A-1")], records)
        assert [v.vehicle_id for v in items] == ["b", "a"]
        assert items[0].plate_number == UNKNOWN
        assert items[0].vehicle_type == UNKNOWN

    def test_issue_prone_limit(self, engine):
        """At most ten vehicles"""
        records = [make_maintenance_record(f"v{i}", cost=i) for i in range(15)]
        assert len(engine.issue_prone_vehicles([], records)) == 10

    def test_vehicles_in_maintenance(self, engine, maintenance_request_rows):
        """Pending and approved requests, prioritized by mileage"""
        items = engine.vehicles_in_maintenance([], maintenance_request_rows, {})
        assert [(v.request_id, v.status, v.priority) for v in items] == [
            ("r1", "pending", RequestPriority.HIGH),
            ("r2", "approved", RequestPriority.MEDIUM),
        ]
        assert items[0].plate_number == UNKNOWN


class TestAnalyze:
    """Test the full maintenance report"""

    def test_fixture_fleet(self, engine, fleet_snapshot):
        report = engine.analyze(
            fleet_snapshot.vehicles,
            fleet_snapshot.maintenance_records,
            fleet_snapshot.maintenance_requests,
            fleet_snapshot.maintenance_types,
        )
        assert report.kpis.total_cost == pytest.approx(9400.0)
        assert report.kpis.completion_rate == pytest.approx(50.0)
        assert report.kpis.avg_days_to_complete == pytest.approx(3.0)

        in_shop = report.vehicles_in_maintenance
        assert len(in_shop) == 1
        assert in_shop[0].plate_number == "HV-101"
        assert in_shop[0].maintenance_type == "Brakes"
        assert in_shop[0].priority == RequestPriority.HIGH

        data = report.to_dict()
        assert data["kpis"]["labor_cost"] == 2820.0
        assert data["vehicles_in_maintenance"][0]["request_id"] == "rq-1"
