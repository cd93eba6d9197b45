"""
Fuel Efficiency Engine - distance/fuel ratio per vehicle

Pure functions over a vehicle's refuel history. Only consecutive odometer
pairs of the same vehicle, in timestamp order, are used; a pair whose
odometer delta falls outside the plausibility window is treated as a data
error (odometer reset, typo, missed refuel) and skipped.

Result ratios are in distance units per liter. The MPG-equivalent is a fixed
multiplication of that ratio; the raw ratio is always kept for
cost-per-distance math.
"""

import logging
import statistics
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from analytics_config import FuelEfficiencyConfig
from models import FuelRecord, group_by_vehicle

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class EfficiencyStatus(str, Enum):
    """Whether enough plausible data existed for a ratio"""

    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass
class FuelEfficiencyResult:
    """
    Efficiency of a single vehicle

    Attributes:
        efficiency: distance per liter (0.0 when insufficient data)
        mpg_equivalent: efficiency x conversion factor
        total_distance: sum of accepted odometer deltas
        total_fuel: sum of fuel amounts of accepted pairs
        total_fuel_cost: cost of fuel of accepted pairs
        accepted_pairs / rejected_pairs: plausibility filter counters
        valid_records: records that had both odometer and fuel amount
    """

    vehicle_id: str
    efficiency: float
    mpg_equivalent: float
    total_distance: float
    total_fuel: float
    total_fuel_cost: float
    accepted_pairs: int
    rejected_pairs: int
    valid_records: int
    status: EfficiencyStatus

    @property
    def has_sufficient_data(self) -> bool:
        return self.status == EfficiencyStatus.OK

    @property
    def cost_per_distance(self) -> float:
        """Fuel cost per distance unit, from the unconverted ratio"""
        if self.total_distance <= 0:
            return 0.0
        return self.total_fuel_cost / self.total_distance

    def to_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "efficiency": round(self.efficiency, 3),
            "mpg_equivalent": round(self.mpg_equivalent, 3),
            "total_distance": round(self.total_distance, 1),
            "total_fuel": round(self.total_fuel, 2),
            "cost_per_distance": round(self.cost_per_distance, 4),
            "accepted_pairs": self.accepted_pairs,
            "rejected_pairs": self.rejected_pairs,
            "valid_records": self.valid_records,
            "status": self.status.value,
        }


def _sort_key(record: FuelRecord) -> datetime:
    return record.timestamp_created or _EPOCH


def is_plausible_delta(delta: float, config: FuelEfficiencyConfig) -> bool:
    """Both bounds are exclusive: 1 < delta < 2000 by default."""
    return config.min_distance_delta < delta < config.max_distance_delta


def to_mpg_equivalent(
    distance_per_liter: float, config: Optional[FuelEfficiencyConfig] = None
) -> float:
    """Convert a distance/liter ratio to the MPG-equivalent used in reports."""
    config = config or FuelEfficiencyConfig()
    return distance_per_liter * config.mpg_conversion_factor


def calculate_fuel_efficiency(
    records: Iterable[FuelRecord],
    vehicle_id: str = "UNKNOWN",
    config: Optional[FuelEfficiencyConfig] = None,
) -> FuelEfficiencyResult:
    """
    Compute the distance/fuel ratio for one vehicle.

    Args:
        records: Fuel records of a single vehicle, any order
        vehicle_id: Vehicle identifier for the result and logging
        config: Plausibility window and conversion factor

    Returns:
        FuelEfficiencyResult; efficiency is 0.0 with INSUFFICIENT_DATA status
        when fewer than two valid records or no plausible pair exist

    Example:
        odometer 1000 (50 L) then 1400 (40 L) -> 400 / 40 = 10.0
    """
    config = config or FuelEfficiencyConfig()

    valid = [r for r in records if r.odometer_reading > 0 and r.fuel_amount > 0]
    valid.sort(key=_sort_key)

    total_distance = 0.0
    total_fuel = 0.0
    total_cost = 0.0
    accepted = 0
    rejected = 0

    for previous, current in zip(valid, valid[1:]):
        delta = current.odometer_reading - previous.odometer_reading
        if not is_plausible_delta(delta, config) or current.fuel_amount <= 0:
            rejected += 1
            logger.debug(
                f"[{vehicle_id}] Rejected odometer pair "
                f"{previous.odometer_reading:.0f} -> {current.odometer_reading:.0f} "
                f"(delta {delta:.0f})"
            )
            continue
        total_distance += delta
        total_fuel += current.fuel_amount
        total_cost += current.cost
        accepted += 1

    sufficient = len(valid) >= config.min_valid_records and total_fuel > 0
    efficiency = total_distance / total_fuel if sufficient else 0.0

    return FuelEfficiencyResult(
        vehicle_id=vehicle_id,
        efficiency=efficiency,
        mpg_equivalent=to_mpg_equivalent(efficiency, config),
        total_distance=total_distance if sufficient else 0.0,
        total_fuel=total_fuel if sufficient else 0.0,
        total_fuel_cost=total_cost if sufficient else 0.0,
        accepted_pairs=accepted,
        rejected_pairs=rejected,
        valid_records=len(valid),
        status=EfficiencyStatus.OK if sufficient else EfficiencyStatus.INSUFFICIENT_DATA,
    )


def calculate_fleet_efficiencies(
    vehicle_ids: Iterable[str],
    fuel_records: Iterable[FuelRecord],
    config: Optional[FuelEfficiencyConfig] = None,
) -> Dict[str, FuelEfficiencyResult]:
    """Efficiency for every vehicle id; vehicles without records get INSUFFICIENT_DATA."""
    by_vehicle = group_by_vehicle(fuel_records)
    return {
        vehicle_id: calculate_fuel_efficiency(
            by_vehicle.get(vehicle_id, []), vehicle_id=vehicle_id, config=config
        )
        for vehicle_id in vehicle_ids
    }


def fleet_average_efficiency(results: Iterable[FuelEfficiencyResult]) -> float:
    """Unweighted mean over vehicles with sufficient data (0.0 if none)."""
    values: List[float] = [r.efficiency for r in results if r.has_sufficient_data]
    return statistics.fmean(values) if values else 0.0
