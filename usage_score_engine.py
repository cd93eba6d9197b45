"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                        USAGE SCORE ENGINE                                      ║
╠═══════════════════════════════════════════════════════════════════════════════╣
║  Purpose: 0-100 usage score per vehicle and preset-based classification        ║
║                                                                                ║
║  Sub-scores (each clamped to [0, 100] before combination):                     ║
║  - Mileage        = min(monthly_mileage / 2000 * 100, 100)                     ║
║  - Fuel frequency = min(transactions_this_month * 5, 100)                      ║
║  - Maintenance    = max(100 - maintenance_count * 5, 0)                        ║
║  - Recency        = max(100 - days_since_last_activity / 0.9, 0)               ║
║                                                                                ║
║  Score = weighted mean (equal weights by default)                              ║
╚═══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from analytics_config import DEFAULT_PRESET, UsageScoreConfig, UsageThresholds, get_usage_thresholds
from models import FuelRecord, MaintenanceRecord, Vehicle, age_in_years, group_by_vehicle, to_datetime

logger = logging.getLogger(__name__)

UNASSIGNED_DRIVER = "Unassigned"


# ═══════════════════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════


class UsageClass(str, Enum):
    """Usage classification against the active preset"""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @classmethod
    def from_score(cls, score: float, thresholds: UsageThresholds) -> "UsageClass":
        if score >= thresholds.high_cutoff:
            return cls.HIGH
        if score <= thresholds.low_cutoff:
            return cls.LOW
        return cls.NORMAL


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(value, high))


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class UsageSubScores:
    mileage: float
    fuel_frequency: float
    maintenance: float
    recency: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "mileage": self.mileage,
            "fuel_frequency": self.fuel_frequency,
            "maintenance": self.maintenance,
            "recency": self.recency,
        }

    def to_dict(self) -> Dict:
        return {k: round(v, 1) for k, v in self.as_dict().items()}


@dataclass
class VehicleUsage:
    """Usage score and the inputs that produced it"""

    vehicle_id: str
    plate_number: str
    vehicle_type: str
    age_years: int
    driver_name: str
    is_assigned: bool

    total_mileage: float  # highest odometer seen
    monthly_mileage: float  # mileage inside the reference month
    avg_monthly_mileage: float  # monthly, or the lifetime average fallback
    fuel_transactions: int
    maintenance_count: int
    days_since_last_activity: Optional[float]
    last_activity: Optional[datetime]

    sub_scores: UsageSubScores
    usage_score: float
    classification: UsageClass

    @property
    def utilization_rate(self) -> float:
        """Utilization in percent; same cap as the mileage sub-score"""
        return self.sub_scores.mileage

    def to_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "plate_number": self.plate_number,
            "vehicle_type": self.vehicle_type,
            "age_years": self.age_years,
            "driver_name": self.driver_name,
            "is_assigned": self.is_assigned,
            "total_mileage": round(self.total_mileage, 1),
            "monthly_mileage": round(self.monthly_mileage, 1),
            "avg_monthly_mileage": round(self.avg_monthly_mileage, 1),
            "fuel_transactions": self.fuel_transactions,
            "maintenance_count": self.maintenance_count,
            "days_since_last_activity": (
                round(self.days_since_last_activity, 1)
                if self.days_since_last_activity is not None
                else None
            ),
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "sub_scores": self.sub_scores.to_dict(),
            "usage_score": round(self.usage_score, 1),
            "utilization_rate": round(self.utilization_rate, 1),
            "classification": self.classification.value,
        }


@dataclass
class DriverUsage:
    driver_name: str
    vehicle_count: int
    avg_usage_score: float
    avg_mileage: float

    def to_dict(self) -> Dict:
        return {
            "driver_name": self.driver_name,
            "vehicle_count": self.vehicle_count,
            "avg_usage_score": round(self.avg_usage_score, 1),
            "avg_mileage": round(self.avg_mileage, 1),
        }


@dataclass
class FleetUsageReport:
    """Fleet-wide usage picture for one preset"""

    thresholds: UsageThresholds
    vehicles: List[VehicleUsage]
    average_usage_score: float
    average_utilization_rate: float
    idle: List[VehicleUsage] = field(default_factory=list)
    driver_usage: List[DriverUsage] = field(default_factory=list)

    @property
    def high_usage(self) -> List[VehicleUsage]:
        return sorted(
            (v for v in self.vehicles if v.classification == UsageClass.HIGH),
            key=lambda v: v.usage_score,
            reverse=True,
        )

    @property
    def low_usage(self) -> List[VehicleUsage]:
        return sorted(
            (v for v in self.vehicles if v.classification == UsageClass.LOW),
            key=lambda v: v.usage_score,
        )

    def to_dict(self) -> Dict:
        return {
            "preset": self.thresholds.to_dict(),
            "average_usage_score": round(self.average_usage_score, 1),
            "average_utilization_rate": round(self.average_utilization_rate, 1),
            "high_usage": [v.vehicle_id for v in self.high_usage],
            "low_usage": [v.vehicle_id for v in self.low_usage],
            "idle_vehicles": [v.vehicle_id for v in self.idle],
            "driver_usage": [d.to_dict() for d in self.driver_usage],
            "vehicles": [v.to_dict() for v in self.vehicles],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SUB-SCORE INPUTS
# ═══════════════════════════════════════════════════════════════════════════════


def month_bounds(as_of: datetime) -> Tuple[datetime, datetime]:
    """[first instant of the month, first instant of next month)"""
    start = as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def records_in_month(records: Iterable[FuelRecord], as_of: datetime) -> List[FuelRecord]:
    """Fuel records timestamped inside the calendar month of as_of, oldest first"""
    start, end = month_bounds(as_of)
    inside = [
        r for r in records if r.timestamp_created and start <= r.timestamp_created < end
    ]
    inside.sort(key=lambda r: r.timestamp_created)
    return inside


def monthly_mileage(month_records: List[FuelRecord]) -> float:
    """Sum of positive consecutive odometer deltas (records already sorted)"""
    readings = [r.odometer_reading for r in month_records if r.odometer_reading > 0]
    return sum(max(b - a, 0.0) for a, b in zip(readings, readings[1:]))


def last_activity_at(
    fuel_records: Iterable[FuelRecord],
    maintenance_records: Iterable[MaintenanceRecord],
    as_of: datetime,
) -> Optional[datetime]:
    """Most recent fuel or maintenance timestamp not after as_of"""
    stamps = [r.timestamp_created for r in fuel_records if r.timestamp_created]
    stamps += [r.completion_date for r in maintenance_records if r.completion_date]
    stamps = [s for s in stamps if s <= as_of]
    return max(stamps) if stamps else None


def mileage_score(avg_monthly_mileage: float, config: UsageScoreConfig) -> float:
    return clamp_score(avg_monthly_mileage / config.reference_monthly_mileage * 100)


def fuel_frequency_score(transactions: int, config: UsageScoreConfig) -> float:
    return clamp_score(
        min(transactions * config.points_per_fuel_transaction, config.fuel_frequency_ceiling)
    )


def maintenance_score(count: int, config: UsageScoreConfig) -> float:
    return clamp_score(100 - count * config.maintenance_penalty_per_event)


def recency_score(days_since: Optional[float], config: UsageScoreConfig) -> float:
    """No recorded activity at all scores 0"""
    if days_since is None:
        return 0.0
    return clamp_score(
        config.recency_ceiling - max(days_since, 0.0) / config.recency_decay_days_per_point
    )


def combine_sub_scores(sub_scores: UsageSubScores, config: UsageScoreConfig) -> float:
    weights = config.weights
    values = sub_scores.as_dict()
    total_weight = sum(weights.values())
    weighted = sum(clamp_score(values[name]) * w for name, w in weights.items())
    return clamp_score(weighted / total_weight)


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════


def score_vehicle_usage(
    vehicle: Vehicle,
    fuel_records: List[FuelRecord],
    maintenance_records: List[MaintenanceRecord],
    as_of: datetime,
    thresholds: UsageThresholds,
    config: Optional[UsageScoreConfig] = None,
) -> VehicleUsage:
    """
    Score one vehicle.

    Args:
        vehicle: The vehicle
        fuel_records: This vehicle's fuel records
        maintenance_records: This vehicle's maintenance records
        as_of: Reference instant; the reference month is its calendar month
        thresholds: Active preset cutoffs
        config: Sub-score caps and weights
    """
    config = config or UsageScoreConfig()
    as_of = to_datetime(as_of)

    age = age_in_years(vehicle.manufacture_date, as_of)
    month_records = records_in_month(fuel_records, as_of)
    odometers = [r.odometer_reading for r in fuel_records]
    total_mileage = max(odometers) if odometers else 0.0

    mileage_this_month = monthly_mileage(month_records)
    avg_monthly = mileage_this_month or total_mileage / max(age * 12, 1)

    last_activity = last_activity_at(fuel_records, maintenance_records, as_of)
    days_since = (
        (as_of - last_activity) / timedelta(days=1) if last_activity is not None else None
    )

    sub_scores = UsageSubScores(
        mileage=mileage_score(avg_monthly, config),
        fuel_frequency=fuel_frequency_score(len(month_records), config),
        maintenance=maintenance_score(len(maintenance_records), config),
        recency=recency_score(days_since, config),
    )
    score = combine_sub_scores(sub_scores, config)

    return VehicleUsage(
        vehicle_id=vehicle.id,
        plate_number=vehicle.plate_number,
        vehicle_type=vehicle.vehicle_type,
        age_years=age,
        driver_name=vehicle.driver_name or vehicle.driver_id or UNASSIGNED_DRIVER,
        is_assigned=vehicle.is_assigned,
        total_mileage=total_mileage,
        monthly_mileage=mileage_this_month,
        avg_monthly_mileage=avg_monthly,
        fuel_transactions=len(month_records),
        maintenance_count=len(maintenance_records),
        days_since_last_activity=days_since,
        last_activity=last_activity,
        sub_scores=sub_scores,
        usage_score=score,
        classification=UsageClass.from_score(score, thresholds),
    )


def idle_vehicles(
    vehicles: Iterable[VehicleUsage], idle_monthly_mileage: float
) -> List[VehicleUsage]:
    """Vehicles averaging below the idle mileage, least used first"""
    return sorted(
        (v for v in vehicles if v.avg_monthly_mileage < idle_monthly_mileage),
        key=lambda v: v.avg_monthly_mileage,
    )


def aggregate_driver_usage(vehicles: Iterable[VehicleUsage]) -> List[DriverUsage]:
    """Per-driver mean usage and mileage over assigned vehicles, best first"""
    buckets: Dict[str, List[VehicleUsage]] = {}
    for vehicle in vehicles:
        if vehicle.is_assigned:
            buckets.setdefault(vehicle.driver_name, []).append(vehicle)

    drivers = [
        DriverUsage(
            driver_name=name,
            vehicle_count=len(items),
            avg_usage_score=statistics.fmean(v.usage_score for v in items),
            avg_mileage=statistics.fmean(v.avg_monthly_mileage for v in items),
        )
        for name, items in buckets.items()
    ]
    drivers.sort(key=lambda d: d.avg_usage_score, reverse=True)
    return drivers


def build_usage_report(
    vehicles: Iterable[Vehicle],
    fuel_records: Iterable[FuelRecord],
    maintenance_records: Iterable[MaintenanceRecord],
    as_of: Optional[datetime] = None,
    preset: str = DEFAULT_PRESET,
    config: Optional[UsageScoreConfig] = None,
    thresholds: Optional[UsageThresholds] = None,
) -> FleetUsageReport:
    """
    Score every vehicle and summarize the fleet.

    Raises:
        InvalidConfigurationError: unknown preset
    """
    config = config or UsageScoreConfig()
    thresholds = thresholds or get_usage_thresholds(preset)
    as_of = to_datetime(as_of) or datetime.now(timezone.utc)

    fuel_by_vehicle = group_by_vehicle(fuel_records)
    maintenance_by_vehicle = group_by_vehicle(maintenance_records)

    scored = [
        score_vehicle_usage(
            vehicle,
            fuel_by_vehicle.get(vehicle.id, []),
            maintenance_by_vehicle.get(vehicle.id, []),
            as_of,
            thresholds,
            config,
        )
        for vehicle in vehicles
    ]

    report = FleetUsageReport(
        thresholds=thresholds,
        vehicles=scored,
        average_usage_score=statistics.fmean(v.usage_score for v in scored) if scored else 0.0,
        average_utilization_rate=(
            statistics.fmean(v.utilization_rate for v in scored) if scored else 0.0
        ),
        idle=idle_vehicles(scored, config.idle_monthly_mileage),
        driver_usage=aggregate_driver_usage(scored),
    )

    logger.info(
        f"Usage scored for {len(scored)} vehicles (preset={thresholds.name}): "
        f"{len(report.high_usage)} high, {len(report.low_usage)} low, {len(report.idle)} idle"
    )
    return report
