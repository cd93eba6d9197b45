"""
Fleet Analytics Settings v1.0.0
Centralized configuration from environment variables

Runtime knobs (logging, presets, forecast window, overrides file) come from
the environment. Scoring constants live in analytics_config.py.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_env(key: str, default: str = "", required: bool = False) -> str:
    """Get environment variable with optional requirement enforcement."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set!")
    return value


def _get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    return int(os.getenv(key, str(default)))


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    return os.getenv(key, str(default)).lower() in ("true", "1", "yes")


def _get_env_list(key: str, default: str = "", separator: str = ",") -> List[str]:
    """Get list from comma-separated environment variable."""
    value = os.getenv(key, default)
    return [item.strip() for item in value.split(separator) if item.strip()]


# =============================================================================
# ANALYTICS SETTINGS
# =============================================================================
@dataclass
class AnalyticsSettings:
    """Defaults applied when a caller does not choose explicitly."""

    default_preset: str = field(
        default_factory=lambda: _get_env("USAGE_THRESHOLD_PRESET", "medium")
    )
    forecast_window_months: int = field(
        default_factory=lambda: _get_env_int("FORECAST_WINDOW_MONTHS", 6)
    )
    overrides_file: Optional[Path] = field(
        default_factory=lambda: (
            Path(_get_env("ANALYTICS_OVERRIDES_FILE"))
            if _get_env("ANALYTICS_OVERRIDES_FILE")
            else None
        )
    )


# =============================================================================
# APPLICATION SETTINGS
# =============================================================================
@dataclass
class AppSettings:
    """General application settings."""

    debug: bool = field(default_factory=lambda: _get_env_bool("DEBUG", False))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_to_file: bool = field(
        default_factory=lambda: _get_env_bool("LOG_TO_FILE", False)
    )
    log_dir: Path = field(
        default_factory=lambda: Path(
            _get_env("LOG_DIR", str(Path(__file__).parent / "logs"))
        )
    )
    cors_origins: List[str] = field(
        default_factory=lambda: _get_env_list("CORS_ORIGINS", "*")
    )
    version: str = "1.0.0"


# =============================================================================
# GLOBAL SETTINGS INSTANCE
# =============================================================================
class Settings:
    """Global settings container - singleton pattern."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize all settings."""
        self.analytics = AnalyticsSettings()
        self.app = AppSettings()

    def validate(self) -> List[str]:
        """Validate settings and return list of warnings."""
        warnings = []

        if self.analytics.forecast_window_months < 3:
            warnings.append(
                "⚠️ FORECAST_WINDOW_MONTHS < 3 - forecast confidence will use the default"
            )

        overrides = self.analytics.overrides_file
        if overrides is not None and not overrides.exists():
            warnings.append(f"ℹ️ Analytics overrides file not found: {overrides}")

        return warnings

    def to_dict(self) -> Dict:
        """Export settings as dictionary (for debugging)."""
        return {
            "version": self.app.version,
            "debug": self.app.debug,
            "log_level": self.app.log_level,
            "default_preset": self.analytics.default_preset,
            "forecast_window_months": self.analytics.forecast_window_months,
            "overrides_file": (
                str(self.analytics.overrides_file)
                if self.analytics.overrides_file
                else None
            ),
        }


# Create global settings instance
settings = Settings()
