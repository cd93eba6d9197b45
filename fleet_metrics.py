"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                         FLEET METRICS                                          ║
╠═══════════════════════════════════════════════════════════════════════════════╣
║  compute_metrics(snapshot) -> DerivedMetrics                                   ║
║    Pure: runs every engine over one read-only snapshot. Nothing is cached;     ║
║    each call recomputes from scratch.                                          ║
║                                                                                ║
║  FleetMetricsService.refresh(fetch)                                            ║
║    Fetch-then-compute cycle. A failed fetch aborts the cycle and the           ║
║    previous successful result stays current. Last write wins.                  ║
╚═══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from analytics_config import DEFAULT_PRESET, AnalyticsConfig
from consumption_forecaster import FleetForecastReport, build_forecast_report
from errors import SnapshotFetchError
from fuel_analytics_engine import FuelAnalyticsEngine, FuelAnalyticsReport
from fuel_efficiency_engine import (
    FuelEfficiencyResult,
    calculate_fleet_efficiencies,
    fleet_average_efficiency,
)
from maintenance_analytics_engine import MaintenanceAnalyticsEngine, MaintenanceAnalyticsReport
from models import FleetSnapshot, to_datetime
from retirement_engine import RetirementEngine, RetirementReport
from usage_score_engine import FleetUsageReport, build_usage_report

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[], Union[FleetSnapshot, Dict[str, Any]]]


@dataclass
class DerivedMetrics:
    """Everything computed from one snapshot"""

    as_of: datetime
    preset: str
    vehicle_count: int
    efficiency: Dict[str, FuelEfficiencyResult]
    usage: FleetUsageReport
    retirement: RetirementReport
    forecast: FleetForecastReport
    fuel: FuelAnalyticsReport
    maintenance: MaintenanceAnalyticsReport

    @property
    def fleet_efficiency(self) -> float:
        return fleet_average_efficiency(self.efficiency.values())

    def to_dict(self) -> Dict:
        return {
            "as_of": self.as_of.isoformat(),
            "preset": self.preset,
            "vehicle_count": self.vehicle_count,
            "fleet_efficiency": round(self.fleet_efficiency, 3),
            "efficiency": {k: v.to_dict() for k, v in self.efficiency.items()},
            "usage": self.usage.to_dict(),
            "retirement": self.retirement.to_dict(),
            "forecast": self.forecast.to_dict(),
            "fuel": self.fuel.to_dict(),
            "maintenance": self.maintenance.to_dict(),
        }


def compute_metrics(
    snapshot: FleetSnapshot,
    config: Optional[AnalyticsConfig] = None,
    preset: str = DEFAULT_PRESET,
    as_of: Optional[datetime] = None,
) -> DerivedMetrics:
    """
    Run every engine over one snapshot.

    Args:
        snapshot: Vehicles, fuel records, maintenance records and requests
        config: Engine configuration (defaults when None)
        preset: Usage threshold preset name (low/medium/high)
        as_of: Reference instant (defaults to now, UTC)

    Raises:
        InvalidConfigurationError: unknown preset
    """
    config = config or AnalyticsConfig()
    thresholds = config.thresholds(preset)
    as_of = to_datetime(as_of) or datetime.now(timezone.utc)
    vehicle_ids = [v.id for v in snapshot.vehicles]

    efficiency = calculate_fleet_efficiencies(
        vehicle_ids, snapshot.fuel_records, config.efficiency
    )
    usage = build_usage_report(
        snapshot.vehicles,
        snapshot.fuel_records,
        snapshot.maintenance_records,
        as_of=as_of,
        config=config.usage,
        thresholds=thresholds,
    )
    retirement = RetirementEngine(config.retirement).analyze_fleet(
        snapshot.vehicles, snapshot.maintenance_records, efficiency, as_of
    )
    forecast = build_forecast_report(
        vehicle_ids, snapshot.fuel_records, as_of=as_of, config=config.forecast
    )
    fuel = FuelAnalyticsEngine(config.fuel).analyze(
        snapshot.vehicles, snapshot.fuel_records, efficiency, as_of
    )
    maintenance = MaintenanceAnalyticsEngine(config.maintenance).analyze(
        snapshot.vehicles,
        snapshot.maintenance_records,
        snapshot.maintenance_requests,
        snapshot.maintenance_types,
    )

    return DerivedMetrics(
        as_of=as_of,
        preset=thresholds.name,
        vehicle_count=len(vehicle_ids),
        efficiency=efficiency,
        usage=usage,
        retirement=retirement,
        forecast=forecast,
        fuel=fuel,
        maintenance=maintenance,
    )


@dataclass
class RefreshFailure:
    """Opaque failure state shown instead of a partial result"""

    message: str
    occurred_at: datetime

    def to_dict(self) -> Dict:
        return {"message": self.message, "occurred_at": self.occurred_at.isoformat()}


class FleetMetricsService:
    """
    Holds the latest successful DerivedMetrics.

    Usage:
        service = FleetMetricsService(config, preset="high")
        service.refresh(lambda: store.fetch_snapshot())
        service.current  # last good result, or None
    """

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        preset: str = DEFAULT_PRESET,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or AnalyticsConfig()
        self.preset = preset
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.current: Optional[DerivedMetrics] = None
        self.last_error: Optional[RefreshFailure] = None

    @property
    def is_stale(self) -> bool:
        """True when the most recent refresh failed"""
        return self.last_error is not None

    def _load(self, fetch: SnapshotSource) -> FleetSnapshot:
        try:
            raw = fetch()
            if isinstance(raw, FleetSnapshot):
                return raw
            return FleetSnapshot.model_validate(raw)
        except SnapshotFetchError:
            raise
        except Exception as e:
            logger.exception(f"Snapshot fetch raised {type(e).__name__}")
            raise SnapshotFetchError("snapshot", str(e) or type(e).__name__) from e

    def refresh(self, fetch: SnapshotSource) -> Optional[DerivedMetrics]:
        """
        Fetch a snapshot and recompute.

        Returns the current metrics: the new ones on success, the previous
        ones (possibly None) when the fetch failed.
        """
        try:
            snapshot = self._load(fetch)
        except SnapshotFetchError as e:
            logger.error(f"❌ {e.message} - keeping previous metrics")
            self.last_error = RefreshFailure(e.message, self._clock())
            return self.current

        # Config errors are programmer errors and propagate
        self.current = compute_metrics(
            snapshot, self.config, self.preset, as_of=self._clock()
        )
        self.last_error = None
        logger.info(
            f"✅ Fleet metrics refreshed: {self.current.vehicle_count} vehicles "
            f"(preset={self.current.preset})"
        )
        return self.current

    def status(self) -> Dict:
        return {
            "has_metrics": self.current is not None,
            "as_of": self.current.as_of.isoformat() if self.current else None,
            "stale": self.is_stale,
            "last_error": self.last_error.to_dict() if self.last_error else None,
        }


__all__ = [
    "DerivedMetrics",
    "FleetMetricsService",
    "RefreshFailure",
    "compute_metrics",
]
