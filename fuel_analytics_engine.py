"""
Fuel Analytics Engine
Monthly fuel history, consumption by vehicle, month-over-month summary and
efficiency categories for the fuel dashboard.

Efficiency values come from fuel_efficiency_engine (distance per liter).
"""

import calendar
import logging
import statistics
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from analytics_config import FuelAnalyticsConfig
from consumption_forecaster import MonthlyTotal, add_months, build_monthly_history
from fuel_efficiency_engine import FuelEfficiencyResult
from models import FuelRecord, Vehicle, to_datetime

logger = logging.getLogger(__name__)


def percent_change(current: float, previous: float) -> float:
    """Relative change in percent; 0 when there is no previous value"""
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


class EfficiencyCategory(str, Enum):
    """Efficiency bands in distance per liter"""

    EXCELLENT = "excellent"  # > 15
    GOOD = "good"  # > 10
    AVERAGE = "average"  # > 5
    POOR = "poor"

    @classmethod
    def from_efficiency(
        cls, efficiency: float, config: Optional[FuelAnalyticsConfig] = None
    ) -> "EfficiencyCategory":
        config = config or FuelAnalyticsConfig()
        if efficiency > config.excellent_efficiency:
            return cls.EXCELLENT
        if efficiency > config.good_efficiency:
            return cls.GOOD
        if efficiency > config.average_efficiency:
            return cls.AVERAGE
        return cls.POOR


@dataclass
class VehicleConsumption:
    vehicle_id: str
    label: str
    liters: float
    cost: float

    def to_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "label": self.label,
            "liters": round(self.liters, 2),
            "cost": round(self.cost, 2),
        }


@dataclass
class FuelSummary:
    """Current month vs previous month, with projections"""

    current_month_cost: float
    current_month_volume: float
    current_month_transactions: int
    average_price_per_liter: float
    previous_month_cost: float
    previous_month_volume: float
    cost_change_percent: float
    volume_change_percent: float
    days_in_month: int
    days_passed: int
    projected_monthly_cost: float
    recent_7_days_cost: float
    previous_7_days_cost: float

    @property
    def month_progress(self) -> float:
        return self.days_passed / self.days_in_month * 100

    @property
    def weekly_trend_percent(self) -> float:
        return percent_change(self.recent_7_days_cost, self.previous_7_days_cost)

    def to_dict(self) -> Dict:
        return {
            "current_month": {
                "cost": round(self.current_month_cost, 2),
                "volume": round(self.current_month_volume, 2),
                "transactions": self.current_month_transactions,
                "average_price_per_liter": round(self.average_price_per_liter, 3),
            },
            "comparisons": {
                "previous_month_cost": round(self.previous_month_cost, 2),
                "previous_month_volume": round(self.previous_month_volume, 2),
                "cost_change_percent": round(self.cost_change_percent, 1),
                "volume_change_percent": round(self.volume_change_percent, 1),
            },
            "projections": {
                "month_progress": round(self.month_progress, 1),
                "projected_monthly_cost": round(self.projected_monthly_cost, 2),
                "weekly_trend_percent": round(self.weekly_trend_percent, 1),
            },
        }


@dataclass
class EfficiencyBreakdown:
    category_counts: Dict[str, int]
    by_vehicle_type: Dict[str, float]
    top_performers: List[FuelEfficiencyResult]
    poor_performers: List[FuelEfficiencyResult]
    average: float
    best: Optional[FuelEfficiencyResult] = None
    worst: Optional[FuelEfficiencyResult] = None

    def to_dict(self) -> Dict:
        return {
            "category_counts": dict(self.category_counts),
            "by_vehicle_type": {k: round(v, 3) for k, v in self.by_vehicle_type.items()},
            "top_performers": [r.to_dict() for r in self.top_performers],
            "poor_performers": [r.to_dict() for r in self.poor_performers],
            "average": round(self.average, 3),
            "best": self.best.vehicle_id if self.best else None,
            "worst": self.worst.vehicle_id if self.worst else None,
        }


@dataclass
class FuelAnalyticsReport:
    monthly_trend: List[MonthlyTotal]
    top_consumers: List[VehicleConsumption]
    summary: FuelSummary
    efficiency: EfficiencyBreakdown
    total_cost: float = 0.0
    total_volume: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "total_cost": round(self.total_cost, 2),
            "total_volume": round(self.total_volume, 2),
            "monthly_trend": [m.to_dict() for m in self.monthly_trend],
            "top_consumers": [c.to_dict() for c in self.top_consumers],
            "summary": self.summary.to_dict(),
            "efficiency": self.efficiency.to_dict(),
        }


class FuelAnalyticsEngine:
    """Fuel dashboard aggregates for one snapshot"""

    def __init__(self, config: Optional[FuelAnalyticsConfig] = None):
        self.config = config or FuelAnalyticsConfig()

    def monthly_trend(self, records: Iterable[FuelRecord], as_of: datetime) -> List[MonthlyTotal]:
        """Trailing months including the current one, zero-filled"""
        return build_monthly_history(
            records, date(as_of.year, as_of.month, 1), self.config.trend_months
        )

    def consumption_by_vehicle(
        self, vehicles: Iterable[Vehicle], records: Iterable[FuelRecord]
    ) -> List[VehicleConsumption]:
        labels = {v.id: v.label for v in vehicles}
        totals: Dict[str, VehicleConsumption] = {}
        for record in records:
            entry = totals.get(record.vehicle_id)
            if entry is None:
                label = labels.get(record.vehicle_id) or f"Truck {record.vehicle_id[-6:] or 'Unknown'}"
                entry = totals[record.vehicle_id] = VehicleConsumption(
                    record.vehicle_id, label, 0.0, 0.0
                )
            entry.liters += record.fuel_amount
            entry.cost += record.cost

        ranked = sorted(totals.values(), key=lambda c: c.liters, reverse=True)
        return ranked[: self.config.top_consumers]

    def summary(self, records: Iterable[FuelRecord], as_of: datetime) -> FuelSummary:
        records = [r for r in records if r.timestamp_created is not None]
        this_month = date(as_of.year, as_of.month, 1)
        last_month = add_months(this_month, -1)

        def in_month(record: FuelRecord, month: date) -> bool:
            stamp = record.timestamp_created
            return (stamp.year, stamp.month) == (month.year, month.month)

        current = [r for r in records if in_month(r, this_month)]
        previous = [r for r in records if in_month(r, last_month)]

        current_cost = sum(r.cost for r in current)
        current_volume = sum(r.fuel_amount for r in current)
        previous_cost = sum(r.cost for r in previous)
        previous_volume = sum(r.fuel_amount for r in previous)

        days_in_month = calendar.monthrange(as_of.year, as_of.month)[1]
        days_passed = as_of.day

        recent_week = 0.0
        previous_week = 0.0
        for record in records:
            age_days = (as_of - record.timestamp_created).days
            if 0 <= age_days <= 7:
                recent_week += record.cost
            elif 7 < age_days <= 14:
                previous_week += record.cost

        return FuelSummary(
            current_month_cost=current_cost,
            current_month_volume=current_volume,
            current_month_transactions=len(current),
            average_price_per_liter=current_cost / current_volume if current_volume > 0 else 0.0,
            previous_month_cost=previous_cost,
            previous_month_volume=previous_volume,
            cost_change_percent=percent_change(current_cost, previous_cost),
            volume_change_percent=percent_change(current_volume, previous_volume),
            days_in_month=days_in_month,
            days_passed=days_passed,
            projected_monthly_cost=(
                current_cost / days_passed * days_in_month if current_cost > 0 else 0.0
            ),
            recent_7_days_cost=recent_week,
            previous_7_days_cost=previous_week,
        )

    def efficiency_breakdown(
        self,
        vehicles: Iterable[Vehicle],
        efficiencies: Dict[str, FuelEfficiencyResult],
    ) -> EfficiencyBreakdown:
        cfg = self.config
        types = {v.id: v.vehicle_type or "Unknown" for v in vehicles}
        rated = [r for r in efficiencies.values() if r.has_sufficient_data]

        counts = {c.value: 0 for c in EfficiencyCategory}
        by_type: Dict[str, List[float]] = {}
        for result in rated:
            counts[EfficiencyCategory.from_efficiency(result.efficiency, cfg).value] += 1
            by_type.setdefault(types.get(result.vehicle_id, "Unknown"), []).append(
                result.efficiency
            )

        ranked = sorted(rated, key=lambda r: r.efficiency, reverse=True)
        top = [r for r in ranked if r.efficiency > cfg.excellent_efficiency]
        poor = [r for r in reversed(ranked) if r.efficiency <= cfg.average_efficiency]

        return EfficiencyBreakdown(
            category_counts=counts,
            by_vehicle_type={k: statistics.fmean(v) for k, v in by_type.items()},
            top_performers=top[: cfg.top_performers],
            poor_performers=poor[: cfg.top_performers],
            average=statistics.fmean(r.efficiency for r in rated) if rated else 0.0,
            best=ranked[0] if ranked else None,
            worst=ranked[-1] if ranked else None,
        )

    def analyze(
        self,
        vehicles: Iterable[Vehicle],
        fuel_records: Iterable[FuelRecord],
        efficiencies: Dict[str, FuelEfficiencyResult],
        as_of: Optional[datetime] = None,
    ) -> FuelAnalyticsReport:
        as_of = to_datetime(as_of) or datetime.now(timezone.utc)
        vehicles = list(vehicles)
        records = list(fuel_records)

        report = FuelAnalyticsReport(
            monthly_trend=self.monthly_trend(records, as_of),
            top_consumers=self.consumption_by_vehicle(vehicles, records),
            summary=self.summary(records, as_of),
            efficiency=self.efficiency_breakdown(vehicles, efficiencies),
            total_cost=sum(r.cost for r in records),
            total_volume=sum(r.fuel_amount for r in records),
        )
        logger.info(
            f"Fuel analytics: {len(records)} records, "
            f"month cost {report.summary.current_month_cost:,.2f} "
            f"({report.summary.cost_change_percent:+.1f}% vs last month)"
        )
        return report
