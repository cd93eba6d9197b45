"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                         ANALYTICS ROUTER v1.0.0                                ║
║                 Derived fleet metrics over a posted snapshot                   ║
╚═══════════════════════════════════════════════════════════════════════════════╝

Endpoints:
- GET  /analytics/presets      - Usage threshold presets
- POST /analytics/metrics      - Every derived metric for a snapshot
- POST /analytics/efficiency   - Per-vehicle fuel efficiency
- POST /analytics/usage        - Usage scores and classification
- POST /analytics/retirement   - Retirement / upgrade analysis
- POST /analytics/forecast     - Consumption, price and cost forecast
- POST /analytics/fuel         - Fuel dashboard aggregates
- POST /analytics/maintenance  - Maintenance dashboard aggregates

The snapshot is the request body; nothing is stored between calls.
"""

import logging
from dataclasses import replace
from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from analytics_config import (
    AnalyticsConfig,
    get_usage_thresholds,
    load_analytics_config,
)
from consumption_forecaster import build_forecast_report
from errors import FleetAnalyticsError
from fleet_metrics import compute_metrics
from fuel_analytics_engine import FuelAnalyticsEngine
from fuel_efficiency_engine import calculate_fleet_efficiencies, fleet_average_efficiency
from maintenance_analytics_engine import MaintenanceAnalyticsEngine
from models import FleetSnapshot
from retirement_engine import RetirementEngine
from settings import settings
from usage_score_engine import build_usage_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fleetAnalytics/api/analytics", tags=["Fleet Analytics"])


@lru_cache(maxsize=1)
def get_analytics_config() -> AnalyticsConfig:
    """
    Analytics config with the YAML overrides named in the environment.

    FORECAST_WINDOW_MONTHS applies unless the overrides file sets its own window.
    """
    config = load_analytics_config(settings.analytics.overrides_file)
    if not config.is_overridden("forecast", "window_months"):
        config.forecast = replace(
            config.forecast, window_months=settings.analytics.forecast_window_months
        )
    return config


def _preset(preset: Optional[str]) -> str:
    return preset or settings.analytics.default_preset


def _handle_unexpected(endpoint: str, e: Exception):
    logger.error(f"Error in {endpoint}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail=f"{endpoint} failed: {e}")


@router.get("/presets")
async def list_presets(config: AnalyticsConfig = Depends(get_analytics_config)):
    """Available usage threshold presets and the default one."""
    return {
        "default": settings.analytics.default_preset,
        "presets": [
            get_usage_thresholds(name, config.usage_presets).to_dict()
            for name in config.usage_presets
        ],
    }


@router.post("/metrics")
async def fleet_metrics(
    snapshot: FleetSnapshot,
    preset: Optional[str] = Query(None, description="Usage preset: low, medium or high"),
    as_of: Optional[datetime] = Query(None, description="Reference instant (default now)"),
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """
    Run every engine over the posted snapshot.

    Returns:
        Efficiency, usage, retirement, forecast, fuel and maintenance metrics
    """
    try:
        return compute_metrics(snapshot, config, _preset(preset), as_of).to_dict()
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("fleet_metrics", e)


@router.post("/efficiency")
async def fleet_efficiency(
    snapshot: FleetSnapshot,
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """Distance per liter per vehicle, plus the fleet average."""
    try:
        results = calculate_fleet_efficiencies(
            [v.id for v in snapshot.vehicles], snapshot.fuel_records, config.efficiency
        )
        return {
            "fleet_average": round(fleet_average_efficiency(results.values()), 3),
            "vehicles": [r.to_dict() for r in results.values()],
        }
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("fleet_efficiency", e)


@router.post("/usage")
async def fleet_usage(
    snapshot: FleetSnapshot,
    preset: Optional[str] = Query(None, description="Usage preset: low, medium or high"),
    as_of: Optional[datetime] = Query(None),
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """Usage scores classified against the selected preset."""
    try:
        report = build_usage_report(
            snapshot.vehicles,
            snapshot.fuel_records,
            snapshot.maintenance_records,
            as_of=as_of,
            config=config.usage,
            thresholds=config.thresholds(_preset(preset)),
        )
        return report.to_dict()
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("fleet_usage", e)


@router.post("/retirement")
async def fleet_retirement(
    snapshot: FleetSnapshot,
    as_of: Optional[datetime] = Query(None),
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """Retirement scores, upcoming retirements, upgrade candidates and budget."""
    try:
        efficiencies = calculate_fleet_efficiencies(
            [v.id for v in snapshot.vehicles], snapshot.fuel_records, config.efficiency
        )
        report = RetirementEngine(config.retirement).analyze_fleet(
            snapshot.vehicles, snapshot.maintenance_records, efficiencies, as_of
        )
        return report.to_dict()
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("fleet_retirement", e)


@router.post("/forecast")
async def fleet_forecast(
    snapshot: FleetSnapshot,
    window_months: Optional[int] = Query(
        None, ge=1, le=36, description="Trailing window length in months"
    ),
    as_of: Optional[datetime] = Query(None),
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """Per-vehicle and fleet consumption/price/cost forecasts."""
    try:
        forecast_config = config.forecast
        if window_months is not None:
            forecast_config = replace(forecast_config, window_months=window_months)
        report = build_forecast_report(
            [v.id for v in snapshot.vehicles],
            snapshot.fuel_records,
            as_of=as_of,
            config=forecast_config,
        )
        return report.to_dict()
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("fleet_forecast", e)


@router.post("/fuel")
async def fuel_analytics(
    snapshot: FleetSnapshot,
    as_of: Optional[datetime] = Query(None),
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """Monthly fuel trend, top consumers, month summary and efficiency bands."""
    try:
        efficiencies = calculate_fleet_efficiencies(
            [v.id for v in snapshot.vehicles], snapshot.fuel_records, config.efficiency
        )
        report = FuelAnalyticsEngine(config.fuel).analyze(
            snapshot.vehicles, snapshot.fuel_records, efficiencies, as_of
        )
        return report.to_dict()
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("fuel_analytics", e)


@router.post("/maintenance")
async def maintenance_analytics(
    snapshot: FleetSnapshot,
    config: AnalyticsConfig = Depends(get_analytics_config),
):
    """Maintenance KPIs, trends, issue-prone vehicles and open requests."""
    try:
        report = MaintenanceAnalyticsEngine(config.maintenance).analyze(
            snapshot.vehicles,
            snapshot.maintenance_records,
            snapshot.maintenance_requests,
            snapshot.maintenance_types,
        )
        return report.to_dict()
    except FleetAnalyticsError:
        raise
    except Exception as e:
        _handle_unexpected("maintenance_analytics", e)
