"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                  CONSUMPTION & COST FORECASTER                                 ║
╠═══════════════════════════════════════════════════════════════════════════════╣
║  Purpose: Project fuel consumption, fuel price and fuel cost from a            ║
║           trailing window of monthly totals                                    ║
║                                                                                ║
║  Trend:      mean(last third) vs mean(first third)                             ║
║              slope/month = (recent - early) / (n / 2)                          ║
║              consumption +-5% of overall mean, price +-2%                      ║
║  Forecast:   daily_average * N + slope * (N / 30), floored at 0                ║
║  Confidence: 95 - CV * 100, clamped to [60, 95]; < 3 points -> 50              ║
║                                                                                ║
║  Fleet level: unweighted mean of per-vehicle daily averages and prices,        ║
║  multiplied by fleet size. This is an approximation of the fleet total,        ║
║  not a sum of per-vehicle forecasts.                                           ║
╚═══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from analytics_config import ForecastConfig
from models import FuelRecord, group_by_vehicle, to_datetime

logger = logging.getLogger(__name__)

FLEET_SUBJECT = "fleet"
NEXT_YEAR = "next_year"


# ═══════════════════════════════════════════════════════════════════════════════
# MONTHLY HISTORY
# ═══════════════════════════════════════════════════════════════════════════════


def add_months(month: date, count: int) -> date:
    """First day of the month `count` months after (or before) `month`"""
    index = month.year * 12 + (month.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


@dataclass
class MonthlyTotal:
    """Fuel totals of one calendar month"""

    month: date
    consumption: float = 0.0
    total_cost: float = 0.0
    transactions: int = 0

    @property
    def average_price(self) -> float:
        """Volume-weighted price per liter (0 for an empty month)"""
        if self.consumption <= 0:
            return 0.0
        return self.total_cost / self.consumption

    @property
    def label(self) -> str:
        return self.month.strftime("%Y-%m")

    def to_dict(self) -> Dict:
        return {
            "month": self.label,
            "consumption": round(self.consumption, 2),
            "cost": round(self.total_cost, 2),
            "transactions": self.transactions,
            "average_price": round(self.average_price, 3),
        }


def build_monthly_history(
    records: Iterable[FuelRecord],
    last_month: date,
    months: int,
) -> List[MonthlyTotal]:
    """
    Zero-filled monthly totals, oldest first, ending with `last_month`.

    Records without a timestamp or outside the window are ignored.
    """
    first_month = add_months(date(last_month.year, last_month.month, 1), -(months - 1))
    history = [MonthlyTotal(month=add_months(first_month, i)) for i in range(months)]
    by_month = {m.month: m for m in history}

    for record in records:
        if record.timestamp_created is None:
            continue
        stamp = record.timestamp_created
        bucket = by_month.get(date(stamp.year, stamp.month, 1))
        if bucket is None:
            continue
        bucket.consumption += record.fuel_amount
        bucket.total_cost += record.cost
        bucket.transactions += 1

    return history


# ═══════════════════════════════════════════════════════════════════════════════
# TREND & CONFIDENCE
# ═══════════════════════════════════════════════════════════════════════════════


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass
class TrendAnalysis:
    direction: TrendDirection
    slope_per_month: float
    early_mean: float
    recent_mean: float
    overall_mean: float

    def to_dict(self) -> Dict:
        return {
            "direction": self.direction.value,
            "slope_per_month": round(self.slope_per_month, 4),
            "early_mean": round(self.early_mean, 3),
            "recent_mean": round(self.recent_mean, 3),
            "overall_mean": round(self.overall_mean, 3),
        }


def detect_trend(values: Sequence[float], threshold: float) -> TrendAnalysis:
    """
    Compare the most recent third of the window against the earliest third.

    Example:
        >>> detect_trend([100, 100, 100, 150, 150, 150], 0.05).direction
        <TrendDirection.INCREASING: 'increasing'>
    """
    n = len(values)
    if n < 2:
        mean = float(values[0]) if values else 0.0
        return TrendAnalysis(TrendDirection.STABLE, 0.0, mean, mean, mean)

    third = max(n // 3, 1)
    early = statistics.fmean(values[:third])
    recent = statistics.fmean(values[-third:])
    overall = statistics.fmean(values)
    slope = (recent - early) / (n / 2)

    band = threshold * abs(overall)
    if slope > band:
        direction = TrendDirection.INCREASING
    elif slope < -band:
        direction = TrendDirection.DECREASING
    else:
        direction = TrendDirection.STABLE

    return TrendAnalysis(direction, slope, early, recent, overall)


def forecast_confidence(
    values: Sequence[float], config: Optional[ForecastConfig] = None
) -> float:
    """Lower coefficient of variation -> higher confidence (percent)."""
    config = config or ForecastConfig()
    if len(values) < config.min_points_for_confidence:
        return config.default_confidence

    mean = statistics.fmean(values)
    if mean <= 0:
        return config.default_confidence

    cv = statistics.pstdev(values) / mean
    raw = config.max_confidence - cv * 100
    return max(config.min_confidence, min(raw, config.max_confidence))


def project_total(
    daily_average: float, slope_per_month: float, days: float, days_per_month: float = 30.0
) -> float:
    """Consumption over the next `days` days, never negative"""
    return max(daily_average * days + slope_per_month * (days / days_per_month), 0.0)


def project_level(
    level: float, slope_per_month: float, days: float, days_per_month: float = 30.0
) -> float:
    """A level (such as price per liter) `days` days ahead, never negative"""
    return max(level + slope_per_month * (days / days_per_month), 0.0)


# ═══════════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class SeriesForecast:
    """Forecast of one series (consumption or price)"""

    baseline: float  # daily average consumption, or average price
    trend: TrendAnalysis
    confidence: float
    predictions: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "baseline": round(self.baseline, 3),
            "trend": self.trend.direction.value,
            "slope_per_month": round(self.trend.slope_per_month, 4),
            "confidence": round(self.confidence, 1),
            "predictions": {k: round(v, 2) for k, v in self.predictions.items()},
        }


@dataclass
class ConsumptionForecast:
    """Consumption, price and cost forecast for a vehicle or the fleet"""

    subject: str
    months_used: int
    consumption: SeriesForecast
    price: SeriesForecast
    history: List[MonthlyTotal] = field(default_factory=list)

    @property
    def cost_projection(self) -> Dict[str, float]:
        return {
            horizon: volume * self.price.predictions.get(horizon, 0.0)
            for horizon, volume in self.consumption.predictions.items()
        }

    def to_dict(self) -> Dict:
        return {
            "subject": self.subject,
            "months_used": self.months_used,
            "consumption": self.consumption.to_dict(),
            "price": self.price.to_dict(),
            "cost_projection": {k: round(v, 2) for k, v in self.cost_projection.items()},
            "history": [m.to_dict() for m in self.history],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# FORECASTER
# ═══════════════════════════════════════════════════════════════════════════════


class ConsumptionForecaster:
    """
    Trailing-window forecaster.

    The window is made of complete calendar months before the reference
    month; the partial current month would bias every trend downward.
    """

    def __init__(self, config: Optional[ForecastConfig] = None):
        self.config = config or ForecastConfig()

    def _horizons(self) -> Dict[str, int]:
        return dict(self.config.horizons_days)

    def consumption_predictions(self, daily_average: float, slope: float) -> Dict[str, float]:
        cfg = self.config
        predictions = {
            name: project_total(daily_average, slope, days, cfg.days_per_month)
            for name, days in self._horizons().items()
        }
        # Next year starts from the level reached after twelve more months
        shifted_daily = daily_average + slope * 12 / cfg.days_per_month
        predictions[NEXT_YEAR] = project_total(shifted_daily, slope, 365, cfg.days_per_month)
        return predictions

    def price_predictions(self, price: float, slope: float) -> Dict[str, float]:
        cfg = self.config
        predictions = {
            name: project_level(price, slope, days, cfg.days_per_month)
            for name, days in self._horizons().items()
        }
        predictions[NEXT_YEAR] = project_level(price, slope, 730, cfg.days_per_month)
        return predictions

    def forecast_history(
        self, history: List[MonthlyTotal], subject: str = FLEET_SUBJECT
    ) -> ConsumptionForecast:
        """Forecast from monthly totals already built (oldest first)."""
        cfg = self.config
        volumes = [m.consumption for m in history]
        priced = [m.average_price for m in history if m.transactions > 0 and m.average_price > 0]

        # Zero-filled months pad the window; only observed months count as data points
        observed = sum(1 for m in history if m.transactions > 0)

        daily_average = (
            statistics.fmean(volumes) / cfg.days_per_month if volumes else 0.0
        )
        average_price = statistics.fmean(priced) if priced else 0.0

        if observed < cfg.min_points_for_confidence:
            mean = statistics.fmean(volumes) if volumes else 0.0
            consumption_trend = TrendAnalysis(TrendDirection.STABLE, 0.0, mean, mean, mean)
            consumption_confidence = cfg.default_confidence
        else:
            consumption_trend = detect_trend(volumes, cfg.consumption_trend_threshold)
            consumption_confidence = forecast_confidence(volumes, cfg)

        if len(priced) < cfg.min_points_for_confidence:
            price_trend = TrendAnalysis(
                TrendDirection.STABLE, 0.0, average_price, average_price, average_price
            )
        else:
            price_trend = detect_trend(priced, cfg.price_trend_threshold)

        return ConsumptionForecast(
            subject=subject,
            months_used=len(history),
            consumption=SeriesForecast(
                baseline=daily_average,
                trend=consumption_trend,
                confidence=consumption_confidence,
                predictions=self.consumption_predictions(
                    daily_average, consumption_trend.slope_per_month
                ),
            ),
            price=SeriesForecast(
                baseline=average_price,
                trend=price_trend,
                confidence=forecast_confidence(priced, cfg),
                predictions=self.price_predictions(
                    average_price, price_trend.slope_per_month
                ),
            ),
            history=history,
        )

    def window_history(
        self, records: Iterable[FuelRecord], as_of: datetime
    ) -> List[MonthlyTotal]:
        last_complete = add_months(date(as_of.year, as_of.month, 1), -1)
        return build_monthly_history(records, last_complete, self.config.window_months)

    def forecast_vehicle(
        self, records: Iterable[FuelRecord], vehicle_id: str, as_of: datetime
    ) -> ConsumptionForecast:
        as_of = to_datetime(as_of)
        return self.forecast_history(self.window_history(records, as_of), vehicle_id)

    def forecast_fleet(
        self,
        per_vehicle: Iterable[ConsumptionForecast],
        fleet_size: int,
        fleet_history: Optional[List[MonthlyTotal]] = None,
    ) -> ConsumptionForecast:
        """
        Fleet forecast from per-vehicle forecasts.

        Daily consumption = mean(per-vehicle daily averages) * fleet_size
        Price             = mean(per-vehicle average prices)
        Trend slope and confidence come from the fleet-wide monthly history
        when given.
        """
        cfg = self.config
        forecasts = list(per_vehicle)
        dailies = [f.consumption.baseline for f in forecasts if f.consumption.baseline > 0]
        prices = [f.price.baseline for f in forecasts if f.price.baseline > 0]

        fleet_daily = statistics.fmean(dailies) * fleet_size if dailies else 0.0
        fleet_price = statistics.fmean(prices) if prices else 0.0

        history = fleet_history or []
        base = self.forecast_history(history, FLEET_SUBJECT)
        consumption_slope = base.consumption.trend.slope_per_month
        price_slope = base.price.trend.slope_per_month

        return ConsumptionForecast(
            subject=FLEET_SUBJECT,
            months_used=len(history),
            consumption=SeriesForecast(
                baseline=fleet_daily,
                trend=base.consumption.trend,
                confidence=base.consumption.confidence,
                predictions=self.consumption_predictions(fleet_daily, consumption_slope),
            ),
            price=SeriesForecast(
                baseline=fleet_price,
                trend=base.price.trend,
                confidence=base.price.confidence,
                predictions=self.price_predictions(fleet_price, price_slope),
            ),
            history=history,
        )


@dataclass
class FleetForecastReport:
    fleet: ConsumptionForecast
    vehicles: Dict[str, ConsumptionForecast]

    def to_dict(self) -> Dict:
        return {
            "fleet": self.fleet.to_dict(),
            "vehicles": {k: v.to_dict() for k, v in self.vehicles.items()},
        }


def build_forecast_report(
    vehicle_ids: Sequence[str],
    fuel_records: Iterable[FuelRecord],
    as_of: Optional[datetime] = None,
    config: Optional[ForecastConfig] = None,
) -> FleetForecastReport:
    """Per-vehicle forecasts plus the fleet-level approximation."""
    forecaster = ConsumptionForecaster(config)
    as_of = to_datetime(as_of) or datetime.now(timezone.utc)
    records = list(fuel_records)
    by_vehicle = group_by_vehicle(records)

    vehicles = {
        vehicle_id: forecaster.forecast_vehicle(by_vehicle.get(vehicle_id, []), vehicle_id, as_of)
        for vehicle_id in vehicle_ids
    }
    fleet = forecaster.forecast_fleet(
        vehicles.values(),
        fleet_size=len(vehicle_ids),
        fleet_history=forecaster.window_history(records, as_of),
    )

    logger.info(
        f"Forecast for {len(vehicles)} vehicles over {forecaster.config.window_months} months: "
        f"consumption {fleet.consumption.trend.direction.value}, "
        f"price {fleet.price.trend.direction.value}"
    )
    return FleetForecastReport(fleet=fleet, vehicles=vehicles)
