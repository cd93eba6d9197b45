"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                     RETIREMENT / UPGRADE ENGINE                                ║
╠═══════════════════════════════════════════════════════════════════════════════╣
║  Purpose: Rank vehicles by retirement urgency (lower score = more urgent)      ║
║                                                                                ║
║  Sub-scores:                                                                   ║
║  - Age          = max(100 - age * 10, 0)                                       ║
║  - Maintenance  = max(100 - count * 5, 0)                                      ║
║  - Cost         = max(100 - total_cost / 1000, 0)                              ║
║  - Efficiency   = min(km_per_liter / 20 * 100, 100)                            ║
║                                                                                ║
║  Upgrade triggers (independent, OR-ed):                                        ║
║  - score < 40                                                                  ║
║  - > 5 maintenance events AND last-12-month cost > 5000                        ║
║  - efficiency sub-score < 30                                                   ║
╚═══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from analytics_config import RetirementConfig
from fuel_efficiency_engine import FuelEfficiencyResult
from models import MaintenanceRecord, Vehicle, age_in_years, group_by_vehicle, to_datetime

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════


class RetirementPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_age(cls, age_years: int, config: RetirementConfig) -> "RetirementPriority":
        if age_years >= config.high_priority_age:
            return cls.HIGH
        if age_years >= config.medium_priority_age:
            return cls.MEDIUM
        return cls.LOW


class UpgradeTrigger(str, Enum):
    """Why a vehicle was flagged as an upgrade candidate"""

    LOW_SCORE = "low_score"
    HIGH_MAINTENANCE_COST = "high_maintenance_cost"
    POOR_EFFICIENCY = "poor_efficiency"


# ═══════════════════════════════════════════════════════════════════════════════
# SUB-SCORES
# ═══════════════════════════════════════════════════════════════════════════════


def _clamp(value: float) -> float:
    return max(0.0, min(value, 100.0))


@dataclass
class RetirementSubScores:
    age: float
    maintenance_frequency: float
    maintenance_cost: float
    efficiency: float

    @property
    def score(self) -> float:
        """Arithmetic mean of the four clamped sub-scores"""
        return _clamp(
            statistics.fmean(
                [
                    _clamp(self.age),
                    _clamp(self.maintenance_frequency),
                    _clamp(self.maintenance_cost),
                    _clamp(self.efficiency),
                ]
            )
        )

    def to_dict(self) -> Dict:
        return {
            "age": round(self.age, 1),
            "maintenance_frequency": round(self.maintenance_frequency, 1),
            "maintenance_cost": round(self.maintenance_cost, 1),
            "efficiency": round(self.efficiency, 1),
        }


def efficiency_sub_score(
    efficiency: Optional[float], config: Optional[RetirementConfig] = None
) -> float:
    """Efficiency scaled against the reference; None means no usable efficiency data."""
    config = config or RetirementConfig()
    if efficiency is None:
        return config.missing_efficiency_score
    return _clamp(efficiency / config.reference_efficiency * 100)


def compute_sub_scores(
    age_years: float,
    maintenance_count: int,
    total_maintenance_cost: float,
    efficiency: Optional[float],
    config: Optional[RetirementConfig] = None,
) -> RetirementSubScores:
    """
    Build the four retirement sub-scores.

    Example (age 20, 10 events, 50000 spent, 2.0 km/L):
        age 0, maintenance 50, cost 50, efficiency 10 -> score 27.5
    """
    config = config or RetirementConfig()
    return RetirementSubScores(
        age=_clamp(100 - max(age_years, 0) * config.age_penalty_per_year),
        maintenance_frequency=_clamp(
            100 - max(maintenance_count, 0) * config.maintenance_penalty_per_event
        ),
        maintenance_cost=_clamp(
            100 - max(total_maintenance_cost, 0.0) / config.cost_divisor
        ),
        efficiency=efficiency_sub_score(efficiency, config),
    )


def is_upcoming_retirement(
    vehicle_type: Optional[str], age_years: int, config: Optional[RetirementConfig] = None
) -> bool:
    config = config or RetirementConfig()
    return (
        config.retirement_age_for(vehicle_type) - age_years
        <= config.upcoming_retirement_window_years
    )


def upgrade_triggers(
    sub_scores: RetirementSubScores,
    maintenance_count: int,
    recent_maintenance_cost: float,
    has_efficiency_data: bool,
    config: Optional[RetirementConfig] = None,
) -> List[UpgradeTrigger]:
    config = config or RetirementConfig()
    triggers = []
    if sub_scores.score < config.upgrade_score_threshold:
        triggers.append(UpgradeTrigger.LOW_SCORE)
    if (
        maintenance_count > config.upgrade_maintenance_count
        and recent_maintenance_cost > config.upgrade_recent_cost_threshold
    ):
        triggers.append(UpgradeTrigger.HIGH_MAINTENANCE_COST)
    # No efficiency data is not evidence of poor efficiency
    if has_efficiency_data and sub_scores.efficiency < config.upgrade_efficiency_score_threshold:
        triggers.append(UpgradeTrigger.POOR_EFFICIENCY)
    return triggers


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class VehicleRetirement:
    """Retirement assessment of one vehicle"""

    vehicle_id: str
    plate_number: str
    vehicle_type: str
    age_years: int
    retirement_age: int
    years_to_retirement: int
    retirement_year: int
    maintenance_count: int
    total_maintenance_cost: float
    recent_maintenance_cost: float
    avg_annual_maintenance_cost: float
    efficiency: Optional[float]
    sub_scores: RetirementSubScores
    is_upcoming_retirement: bool
    upgrade_triggers: List[UpgradeTrigger]
    replacement_cost: float
    priority: RetirementPriority

    @property
    def score(self) -> float:
        return self.sub_scores.score

    @property
    def is_upgrade_candidate(self) -> bool:
        return bool(self.upgrade_triggers)

    def to_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "plate_number": self.plate_number,
            "vehicle_type": self.vehicle_type,
            "age_years": self.age_years,
            "retirement_age": self.retirement_age,
            "years_to_retirement": self.years_to_retirement,
            "retirement_year": self.retirement_year,
            "maintenance_count": self.maintenance_count,
            "total_maintenance_cost": round(self.total_maintenance_cost, 2),
            "recent_maintenance_cost": round(self.recent_maintenance_cost, 2),
            "avg_annual_maintenance_cost": round(self.avg_annual_maintenance_cost, 2),
            "efficiency": round(self.efficiency, 3) if self.efficiency is not None else None,
            "sub_scores": self.sub_scores.to_dict(),
            "score": round(self.score, 1),
            "is_upcoming_retirement": self.is_upcoming_retirement,
            "is_upgrade_candidate": self.is_upgrade_candidate,
            "upgrade_triggers": [t.value for t in self.upgrade_triggers],
            "replacement_cost": round(self.replacement_cost, 2),
            "priority": self.priority.value,
        }


@dataclass
class RetirementTimelineEntry:
    year: int
    count: int
    estimated_cost: float
    vehicle_ids: List[str]

    def to_dict(self) -> Dict:
        return {
            "year": self.year,
            "count": self.count,
            "estimated_cost": round(self.estimated_cost, 2),
            "vehicle_ids": list(self.vehicle_ids),
        }


@dataclass
class AgeGroup:
    """Vehicles in an age bucket such as "0-2" """

    age_group: str
    min_age: int
    count: int
    avg_maintenance_cost: float

    def to_dict(self) -> Dict:
        return {
            "age_group": self.age_group,
            "count": self.count,
            "avg_maintenance_cost": round(self.avg_maintenance_cost, 2),
        }


@dataclass
class Recommendation:
    type: str
    priority: str
    title: str
    description: str
    action: str

    def to_dict(self) -> Dict:
        return {
            "type": self.type,
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
            "action": self.action,
        }


@dataclass
class RetirementReport:
    vehicles: List[VehicleRetirement]
    timeline: List[RetirementTimelineEntry] = field(default_factory=list)
    age_distribution: List[AgeGroup] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)

    @property
    def upcoming_retirements(self) -> List[VehicleRetirement]:
        return sorted(
            (v for v in self.vehicles if v.is_upcoming_retirement),
            key=lambda v: (v.retirement_age - v.age_years, v.vehicle_id),
        )

    @property
    def upgrade_candidates(self) -> List[VehicleRetirement]:
        return sorted(
            (v for v in self.vehicles if v.is_upgrade_candidate),
            key=lambda v: (v.score, v.vehicle_id),
        )

    @property
    def replacement_budget(self) -> float:
        """Replacement cost of every upcoming retirement"""
        return sum(v.replacement_cost for v in self.upcoming_retirements)

    @property
    def maintenance_vs_age(self) -> List[Dict]:
        return [
            {
                "vehicle_id": v.vehicle_id,
                "plate_number": v.plate_number,
                "age": v.age_years,
                "maintenance_cost": round(v.avg_annual_maintenance_cost, 2),
            }
            for v in self.vehicles
        ]

    def to_dict(self) -> Dict:
        return {
            "vehicles": [v.to_dict() for v in self.vehicles],
            "upcoming_retirements": [v.vehicle_id for v in self.upcoming_retirements],
            "upgrade_candidates": [v.vehicle_id for v in self.upgrade_candidates],
            "replacement_budget": round(self.replacement_budget, 2),
            "timeline": [t.to_dict() for t in self.timeline],
            "age_distribution": [g.to_dict() for g in self.age_distribution],
            "maintenance_vs_age": self.maintenance_vs_age,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════


class RetirementEngine:
    """
    Retirement and upgrade analysis for a fleet.

    Usage:
        engine = RetirementEngine()
        report = engine.analyze_fleet(vehicles, maintenance_records, efficiencies, as_of)
    """

    def __init__(self, config: Optional[RetirementConfig] = None):
        self.config = config or RetirementConfig()

    def assess_vehicle(
        self,
        vehicle: Vehicle,
        maintenance_records: List[MaintenanceRecord],
        efficiency: Optional[FuelEfficiencyResult],
        as_of: datetime,
    ) -> VehicleRetirement:
        cfg = self.config
        as_of = to_datetime(as_of)
        age = age_in_years(vehicle.manufacture_date, as_of)

        total_cost = sum(r.cost for r in maintenance_records)
        window_start = as_of - timedelta(days=cfg.upgrade_recent_cost_window_days)
        recent_cost = sum(
            r.cost
            for r in maintenance_records
            if r.completion_date and window_start <= r.completion_date <= as_of
        )

        has_efficiency = efficiency is not None and efficiency.has_sufficient_data
        efficiency_value = efficiency.efficiency if has_efficiency else None

        sub_scores = compute_sub_scores(
            age, len(maintenance_records), total_cost, efficiency_value, cfg
        )
        retirement_age = cfg.retirement_age_for(vehicle.vehicle_type)
        years_left = max(retirement_age - age, 0)

        return VehicleRetirement(
            vehicle_id=vehicle.id,
            plate_number=vehicle.plate_number,
            vehicle_type=vehicle.vehicle_type,
            age_years=age,
            retirement_age=retirement_age,
            years_to_retirement=years_left,
            retirement_year=as_of.year + years_left,
            maintenance_count=len(maintenance_records),
            total_maintenance_cost=total_cost,
            recent_maintenance_cost=recent_cost,
            avg_annual_maintenance_cost=total_cost / age if age > 0 else 0.0,
            efficiency=efficiency_value,
            sub_scores=sub_scores,
            is_upcoming_retirement=is_upcoming_retirement(vehicle.vehicle_type, age, cfg),
            upgrade_triggers=upgrade_triggers(
                sub_scores, len(maintenance_records), recent_cost, has_efficiency, cfg
            ),
            replacement_cost=cfg.replacement_cost_for(vehicle.vehicle_type),
            priority=RetirementPriority.from_age(age, cfg),
        )

    def build_timeline(
        self, assessments: Iterable[VehicleRetirement]
    ) -> List[RetirementTimelineEntry]:
        by_year: Dict[int, RetirementTimelineEntry] = {}
        for item in assessments:
            entry = by_year.setdefault(
                item.retirement_year,
                RetirementTimelineEntry(item.retirement_year, 0, 0.0, []),
            )
            entry.count += 1
            entry.estimated_cost += item.replacement_cost
            entry.vehicle_ids.append(item.vehicle_id)
        return [by_year[year] for year in sorted(by_year)]

    def build_age_distribution(
        self, assessments: Iterable[VehicleRetirement]
    ) -> List[AgeGroup]:
        size = self.config.age_bucket_years
        buckets: Dict[int, List[float]] = defaultdict(list)
        for item in assessments:
            buckets[(item.age_years // size) * size].append(item.avg_annual_maintenance_cost)
        return [
            AgeGroup(
                age_group=f"{start}-{start + size - 1}",
                min_age=start,
                count=len(costs),
                avg_maintenance_cost=statistics.fmean(costs),
            )
            for start, costs in sorted(buckets.items())
        ]

    def build_recommendations(self, report: RetirementReport) -> List[Recommendation]:
        recommendations = []
        upcoming = report.upcoming_retirements
        if upcoming:
            recommendations.append(
                Recommendation(
                    type="retirement",
                    priority="high",
                    title="Upcoming Retirements",
                    description=(
                        f"{len(upcoming)} vehicles need retirement planning within "
                        f"{self.config.upcoming_retirement_window_years} years"
                    ),
                    action="Plan budget for vehicle replacement",
                )
            )
        candidates = report.upgrade_candidates
        if candidates:
            recommendations.append(
                Recommendation(
                    type="upgrade",
                    priority="medium",
                    title="Upgrade Candidates",
                    description=f"{len(candidates)} vehicles may benefit from early replacement",
                    action="Evaluate cost-benefit of early replacement",
                )
            )
        return recommendations

    def analyze_fleet(
        self,
        vehicles: Iterable[Vehicle],
        maintenance_records: Iterable[MaintenanceRecord],
        efficiencies: Optional[Dict[str, FuelEfficiencyResult]] = None,
        as_of: Optional[datetime] = None,
    ) -> RetirementReport:
        as_of = to_datetime(as_of) or datetime.now(timezone.utc)
        efficiencies = efficiencies or {}
        maintenance_by_vehicle = group_by_vehicle(maintenance_records)

        assessments = [
            self.assess_vehicle(
                vehicle,
                maintenance_by_vehicle.get(vehicle.id, []),
                efficiencies.get(vehicle.id),
                as_of,
            )
            for vehicle in vehicles
        ]

        report = RetirementReport(
            vehicles=assessments,
            timeline=self.build_timeline(assessments),
            age_distribution=self.build_age_distribution(assessments),
        )
        report.recommendations = self.build_recommendations(report)

        logger.info(
            f"Retirement analysis: {len(assessments)} vehicles, "
            f"{len(report.upcoming_retirements)} upcoming, "
            f"{len(report.upgrade_candidates)} upgrade candidates, "
            f"budget ${report.replacement_budget:,.0f}"
        )
        return report
