"""
Fleet Analytics Configuration
Centralized scoring constants, threshold presets and vehicle-type lookup tables

Every weight, cap and divisor used by the engines lives here as a named,
overridable value. Overrides can be supplied from a YAML file (see
analytics_overrides.example.yaml) through load_analytics_config().

Author: Fleet Analytics Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

import yaml

from errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# USAGE THRESHOLD PRESETS
# ═══════════════════════════════════════════════════════════════════════════════

USAGE_THRESHOLD_PRESETS: Dict[str, Dict[str, float]] = {
    "low": {"high": 50.0, "low": 20.0},
    "medium": {"high": 70.0, "low": 30.0},
    "high": {"high": 90.0, "low": 50.0},
}

DEFAULT_PRESET = "medium"


@dataclass(frozen=True)
class UsageThresholds:
    """High/low cutoffs for usage classification"""

    name: str
    high_cutoff: float
    low_cutoff: float

    def to_dict(self) -> Dict:
        return {"name": self.name, "high": self.high_cutoff, "low": self.low_cutoff}


def get_usage_thresholds(
    preset: str = DEFAULT_PRESET,
    presets: Optional[Dict[str, Dict[str, float]]] = None,
) -> UsageThresholds:
    """
    Resolve a named preset (low/medium/high) to its cutoffs.

    Raises:
        InvalidConfigurationError: preset name is not in the table
    """
    table = presets if presets is not None else USAGE_THRESHOLD_PRESETS
    key = (preset or "").strip().lower()
    if key not in table:
        raise InvalidConfigurationError(
            f"Unknown usage threshold preset '{preset}'",
            field="preset",
            details={"available": sorted(table.keys())},
        )
    entry = table[key]
    return UsageThresholds(
        name=key, high_cutoff=float(entry["high"]), low_cutoff=float(entry["low"])
    )


# ═══════════════════════════════════════════════════════════════════════════════
# VEHICLE-TYPE LOOKUP TABLES
# Ordered (substring, value) pairs, matched case-insensitively, first match wins
# ═══════════════════════════════════════════════════════════════════════════════

RETIREMENT_AGE_TABLE: List[Tuple[str, int]] = [
    ("heavy", 12),
    ("medium", 15),
    ("light", 15),
    ("pickup", 10),
    ("van", 10),
]
DEFAULT_RETIREMENT_AGE = 15

REPLACEMENT_COST_TABLE: List[Tuple[str, float]] = [
    ("light", 30000.0),
    ("medium", 60000.0),
    ("heavy", 120000.0),
    ("van", 25000.0),
    ("pickup", 35000.0),
]
DEFAULT_REPLACEMENT_COST = 50000.0


def lookup_by_vehicle_type(
    table: List[Tuple[str, Any]], vehicle_type: Optional[str], default: Any
) -> Any:
    """
    Return the value of the first pattern contained in vehicle_type.

    Example:
        >>> lookup_by_vehicle_type(REPLACEMENT_COST_TABLE, "Heavy Truck", 50000)
        120000.0
    """
    if not vehicle_type:
        return default
    needle = str(vehicle_type).lower()
    for pattern, value in table:
        if pattern.lower() in needle:
            return value
    return default


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE CONFIGS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class FuelEfficiencyConfig:
    """Plausibility window and unit conversion for distance/fuel ratios"""

    min_distance_delta: float = 1.0  # exclusive
    max_distance_delta: float = 2000.0  # exclusive
    mpg_conversion_factor: float = 2.35  # km/L -> MPG-equivalent
    min_valid_records: int = 2

    def __post_init__(self):
        if self.min_distance_delta >= self.max_distance_delta:
            raise InvalidConfigurationError(
                "min_distance_delta must be less than max_distance_delta"
            )
        if self.mpg_conversion_factor <= 0:
            raise InvalidConfigurationError("mpg_conversion_factor must be positive")


@dataclass
class UsageScoreConfig:
    """Sub-score caps and weights for the usage composite"""

    reference_monthly_mileage: float = 2000.0
    points_per_fuel_transaction: float = 5.0
    fuel_frequency_ceiling: float = 100.0
    maintenance_penalty_per_event: float = 5.0
    recency_ceiling: float = 100.0
    recency_decay_days_per_point: float = 0.9  # 0 points after 90 idle days
    idle_monthly_mileage: float = 500.0

    # Equal weighting = arithmetic mean
    weight_mileage: float = 1.0
    weight_fuel_frequency: float = 1.0
    weight_maintenance: float = 1.0
    weight_recency: float = 1.0

    def __post_init__(self):
        if self.reference_monthly_mileage <= 0:
            raise InvalidConfigurationError(
                "reference_monthly_mileage must be positive"
            )
        if self.recency_decay_days_per_point <= 0:
            raise InvalidConfigurationError(
                "recency_decay_days_per_point must be positive"
            )
        weights = self.weights.values()
        if any(w < 0 for w in weights) or sum(weights) <= 0:
            raise InvalidConfigurationError(
                "usage weights must be non-negative and not all zero"
            )

    @property
    def weights(self) -> Dict[str, float]:
        return {
            "mileage": self.weight_mileage,
            "fuel_frequency": self.weight_fuel_frequency,
            "maintenance": self.weight_maintenance,
            "recency": self.weight_recency,
        }


@dataclass
class RetirementConfig:
    """Sub-score divisors, upgrade triggers and lookup tables"""

    age_penalty_per_year: float = 10.0
    maintenance_penalty_per_event: float = 5.0
    cost_divisor: float = 1000.0
    reference_efficiency: float = 20.0  # km/L considered ideal
    missing_efficiency_score: float = 50.0
    upcoming_retirement_window_years: int = 3

    upgrade_score_threshold: float = 40.0
    upgrade_maintenance_count: int = 5
    upgrade_recent_cost_threshold: float = 5000.0
    upgrade_recent_cost_window_days: int = 365
    upgrade_efficiency_score_threshold: float = 30.0

    high_priority_age: int = 12
    medium_priority_age: int = 8
    age_bucket_years: int = 3

    retirement_age_table: List[Tuple[str, int]] = field(
        default_factory=lambda: list(RETIREMENT_AGE_TABLE)
    )
    default_retirement_age: int = DEFAULT_RETIREMENT_AGE
    replacement_cost_table: List[Tuple[str, float]] = field(
        default_factory=lambda: list(REPLACEMENT_COST_TABLE)
    )
    default_replacement_cost: float = DEFAULT_REPLACEMENT_COST

    def __post_init__(self):
        if self.cost_divisor <= 0:
            raise InvalidConfigurationError("cost_divisor must be positive")
        if self.reference_efficiency <= 0:
            raise InvalidConfigurationError("reference_efficiency must be positive")
        if self.age_bucket_years <= 0:
            raise InvalidConfigurationError("age_bucket_years must be positive")
        # YAML gives lists of lists
        self.retirement_age_table = [tuple(p) for p in self.retirement_age_table]
        self.replacement_cost_table = [tuple(p) for p in self.replacement_cost_table]

    def retirement_age_for(self, vehicle_type: Optional[str]) -> int:
        return lookup_by_vehicle_type(
            self.retirement_age_table, vehicle_type, self.default_retirement_age
        )

    def replacement_cost_for(self, vehicle_type: Optional[str]) -> float:
        return lookup_by_vehicle_type(
            self.replacement_cost_table, vehicle_type, self.default_replacement_cost
        )


@dataclass
class ForecastConfig:
    """Trailing-window trend and confidence parameters"""

    window_months: int = 6
    days_per_month: float = 30.0
    consumption_trend_threshold: float = 0.05
    price_trend_threshold: float = 0.02
    min_points_for_confidence: int = 3
    default_confidence: float = 50.0
    min_confidence: float = 60.0
    max_confidence: float = 95.0
    horizons_days: Dict[str, int] = field(
        default_factory=lambda: {"today": 1, "this_month": 30, "this_year": 365}
    )

    def __post_init__(self):
        if self.window_months < 1:
            raise InvalidConfigurationError("window_months must be at least 1")
        if self.days_per_month <= 0:
            raise InvalidConfigurationError("days_per_month must be positive")
        if self.min_confidence > self.max_confidence:
            raise InvalidConfigurationError(
                "min_confidence must not exceed max_confidence"
            )


@dataclass
class FuelAnalyticsConfig:
    """Reporting windows and efficiency category cutoffs (km/L)"""

    trend_months: int = 12
    top_consumers: int = 10
    excellent_efficiency: float = 15.0
    good_efficiency: float = 10.0
    average_efficiency: float = 5.0
    top_performers: int = 5


@dataclass
class MaintenanceAnalyticsConfig:
    """Maintenance KPI constants"""

    labor_cost_share: float = 0.30
    issue_prone_limit: int = 10
    high_priority_mileage: float = 100000.0
    medium_priority_mileage: float = 50000.0


@dataclass
class AnalyticsConfig:
    """Bundle of every engine configuration"""

    efficiency: FuelEfficiencyConfig = field(default_factory=FuelEfficiencyConfig)
    usage: UsageScoreConfig = field(default_factory=UsageScoreConfig)
    retirement: RetirementConfig = field(default_factory=RetirementConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    fuel: FuelAnalyticsConfig = field(default_factory=FuelAnalyticsConfig)
    maintenance: MaintenanceAnalyticsConfig = field(
        default_factory=MaintenanceAnalyticsConfig
    )
    usage_presets: Dict[str, Dict[str, float]] = field(
        default_factory=lambda: {k: dict(v) for k, v in USAGE_THRESHOLD_PRESETS.items()}
    )
    # "section.key" names set explicitly by overrides
    overridden: FrozenSet[str] = field(default_factory=frozenset, repr=False)

    def thresholds(self, preset: str = DEFAULT_PRESET) -> UsageThresholds:
        return get_usage_thresholds(preset, self.usage_presets)

    def is_overridden(self, section: str, key: str) -> bool:
        return f"{section}.{key}" in self.overridden


def _build_section(section_cls, overrides: Dict[str, Any]):
    known = {f.name for f in fields(section_cls)}
    unknown = set(overrides) - known
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown keys for {section_cls.__name__}: {sorted(unknown)}"
        )
    return section_cls(**overrides)


def build_analytics_config(overrides: Optional[Dict[str, Any]] = None) -> AnalyticsConfig:
    """Build an AnalyticsConfig applying a nested overrides dict on top of defaults."""
    overrides = overrides or {}
    config = AnalyticsConfig()
    kwargs = {}
    overridden = set()
    sections = [f for f in fields(AnalyticsConfig) if f.name != "overridden"]
    for f in sections:
        if f.name not in overrides:
            kwargs[f.name] = getattr(config, f.name)
            continue
        value = overrides[f.name]
        current = getattr(config, f.name)
        if is_dataclass(current):
            kwargs[f.name] = _build_section(type(current), value or {})
        else:
            merged = dict(current)
            merged.update(value or {})
            kwargs[f.name] = merged
        overridden.update(f"{f.name}.{key}" for key in (value or {}))
    unknown = set(overrides) - {f.name for f in sections}
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown analytics config sections: {sorted(unknown)}"
        )
    return AnalyticsConfig(overridden=frozenset(overridden), **kwargs)


def load_analytics_config(path: Optional[Union[str, Path]] = None) -> AnalyticsConfig:
    """
    Load analytics config, applying YAML overrides when the file exists.

    A missing file is not an error: defaults are used and a debug line logged.
    """
    if not path:
        return AnalyticsConfig()

    path = Path(path)
    if not path.exists():
        logger.debug(f"Analytics overrides file not found: {path} - using defaults")
        return AnalyticsConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise InvalidConfigurationError(
            f"Analytics overrides in {path} must be a mapping"
        )

    config = build_analytics_config(raw)
    logger.info(f"✅ Loaded analytics overrides from {path} ({', '.join(raw)})")
    return config
