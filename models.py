"""
Pydantic models for fleet snapshot records

Records arrive as flat dicts from the external store. Field names are
accepted in snake_case, camelCase, or the store's own column names
(truck_id, created, fuel_amount, ...). Missing or malformed numbers are
coerced to 0.0 and unparseable timestamps to None so that no aggregate ever
sees an undefined value.
"""

import math
from collections import defaultdict
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# COERCION HELPERS
# =============================================================================
def to_float(value: Any) -> float:
    """Coerce a numeric-ish value to float; anything unusable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into a timezone-aware datetime (UTC if naive).

    Accepts datetimes, dates, epoch seconds and ISO-8601 strings such as
    "2025-03-01 08:15:00.000Z". Returns None when the value can't be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_in_years(start: Optional[datetime], as_of: datetime) -> int:
    """Full calendar years between start and as_of; 0 when start is unknown or in the future."""
    if start is None or start > as_of:
        return 0
    years = as_of.year - start.year
    if (as_of.month, as_of.day) < (start.month, start.day):
        years -= 1
    return max(years, 0)


def _to_id(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# =============================================================================
# ENUMS
# =============================================================================
class MaintenanceRequestStatus(str, Enum):
    """Flat request status as stored upstream"""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    COMPLETED = "completed"


# =============================================================================
# RECORDS
# =============================================================================
class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Vehicle(_Record):
    """A truck in the fleet"""

    id: str = Field(
        default="", validation_alias=AliasChoices("id", "vehicle_id", "vehicleId")
    )
    plate_number: str = Field(
        default="", validation_alias=AliasChoices("plate_number", "plateNumber")
    )
    vehicle_type: str = Field(
        default="",
        validation_alias=AliasChoices("vehicle_type", "vehicleType", "truck_type"),
    )
    manufacture_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices(
            "manufacture_date", "manufactureDate", "truck_date"
        ),
    )
    driver_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("driver_id", "driverId", "users_id")
    )
    driver_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("driver_name", "driverName")
    )

    coerce_ids = field_validator("id", mode="before")(_to_id)
    coerce_texts = field_validator("plate_number", "vehicle_type", mode="before")(_to_text)
    coerce_dates = field_validator("manufacture_date", mode="before")(to_datetime)

    @field_validator("driver_id", "driver_name", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Optional[str]:
        text = _to_text(value)
        return text or None

    @property
    def label(self) -> str:
        """Plate number, or a short id-based label when the plate is blank"""
        return self.plate_number or f"Truck {self.id[-6:]}"

    @property
    def is_assigned(self) -> bool:
        return bool(self.driver_id)


class FuelRecord(_Record):
    """A single refuel transaction"""

    id: str = Field(default="", validation_alias=AliasChoices("id", "record_id"))
    vehicle_id: str = Field(
        default="",
        validation_alias=AliasChoices("vehicle_id", "vehicleId", "truck_id", "truck"),
    )
    timestamp_created: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp_created", "timestampCreated", "created"),
    )
    fuel_amount: float = Field(
        default=0.0, validation_alias=AliasChoices("fuel_amount", "fuelAmount")
    )
    fuel_price: float = Field(
        default=0.0, validation_alias=AliasChoices("fuel_price", "fuelPrice")
    )
    odometer_reading: float = Field(
        default=0.0,
        validation_alias=AliasChoices("odometer_reading", "odometerReading", "odometer"),
    )

    coerce_ids = field_validator("id", "vehicle_id", mode="before")(_to_id)
    coerce_numbers = field_validator(
        "fuel_amount", "fuel_price", "odometer_reading", mode="before"
    )(to_float)
    coerce_dates = field_validator("timestamp_created", mode="before")(to_datetime)

    @property
    def cost(self) -> float:
        return self.fuel_amount * self.fuel_price


class MaintenanceRecord(_Record):
    """A completed maintenance job"""

    id: str = Field(default="", validation_alias=AliasChoices("id", "record_id"))
    vehicle_id: str = Field(
        default="",
        validation_alias=AliasChoices("vehicle_id", "vehicleId", "truck", "truck_id"),
    )
    completion_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("completion_date", "completionDate"),
    )
    cost: float = Field(default=0.0)
    maintenance_type_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "maintenance_type_id", "maintenanceTypeId", "maintenance_type"
        ),
    )
    odometer_at_completion: float = Field(
        default=0.0,
        validation_alias=AliasChoices(
            "odometer_at_completion", "odometerAtCompletion", "odometer_reading"
        ),
    )
    request_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("request_id", "requestId", "associated_request"),
    )

    coerce_ids = field_validator("id", "vehicle_id", "maintenance_type_id", mode="before")(
        _to_id
    )
    coerce_numbers = field_validator("cost", "odometer_at_completion", mode="before")(
        to_float
    )
    coerce_dates = field_validator("completion_date", mode="before")(to_datetime)


class MaintenanceRequest(_Record):
    """A driver-raised maintenance request with a flat status field"""

    id: str = Field(default="", validation_alias=AliasChoices("id", "request_id"))
    vehicle_id: str = Field(
        default="",
        validation_alias=AliasChoices("vehicle_id", "vehicleId", "truck", "truck_id"),
    )
    request_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("request_date", "requestDate")
    )
    handled_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("handled_date", "handledDate")
    )
    status: str = Field(default=MaintenanceRequestStatus.PENDING.value)
    maintenance_type_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "maintenance_type_id", "maintenanceTypeId", "maintenance_type"
        ),
    )
    current_mileage_at_request: float = Field(
        default=0.0,
        validation_alias=AliasChoices(
            "current_mileage_at_request", "currentMileageAtRequest"
        ),
    )

    coerce_ids = field_validator("id", "vehicle_id", "maintenance_type_id", mode="before")(
        _to_id
    )
    coerce_numbers = field_validator("current_mileage_at_request", mode="before")(to_float)
    coerce_dates = field_validator("request_date", "handled_date", mode="before")(
        to_datetime
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> str:
        return _to_text(value).lower() or MaintenanceRequestStatus.PENDING.value


class FleetSnapshot(_Record):
    """Everything one aggregation cycle needs, fetched up front"""

    vehicles: List[Vehicle] = Field(
        default_factory=list, validation_alias=AliasChoices("vehicles", "trucks")
    )
    fuel_records: List[FuelRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("fuel_records", "fuelRecords", "truck_fuel"),
    )
    maintenance_records: List[MaintenanceRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("maintenance_records", "maintenanceRecords"),
    )
    maintenance_requests: List[MaintenanceRequest] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "maintenance_requests", "maintenanceRequests", "maintenance_request"
        ),
    )
    maintenance_types: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("maintenance_types", "maintenanceTypes"),
        description="maintenance type id -> display name",
    )

    @field_validator(
        "vehicles",
        "fuel_records",
        "maintenance_records",
        "maintenance_requests",
        mode="before",
    )
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("maintenance_types", mode="before")
    @classmethod
    def types_to_map(cls, value: Any) -> Any:
        # Store returns a list of {id, name} rows
        if value is None:
            return {}
        if isinstance(value, list):
            return {
                _to_id(row.get("id")): _to_text(row.get("name"))
                for row in value
                if isinstance(row, dict)
            }
        return value


R = TypeVar("R", FuelRecord, MaintenanceRecord, MaintenanceRequest)


def group_by_vehicle(records: Iterable[R]) -> Dict[str, List[R]]:
    """Bucket records by vehicle_id, preserving input order"""
    grouped: Dict[str, List[R]] = defaultdict(list)
    for record in records:
        grouped[record.vehicle_id].append(record)
    return dict(grouped)
