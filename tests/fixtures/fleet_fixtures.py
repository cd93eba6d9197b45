"""
Fleet-related fixtures for testing

Timestamps are laid out around AS_OF (2025-06-15 12:00 UTC).
"""

from datetime import datetime, timezone
from typing import Optional

import pytest

from models import FleetSnapshot, FuelRecord, MaintenanceRecord, MaintenanceRequest, Vehicle

AS_OF = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def make_fuel_record(
    vehicle_id: str = "veh-1",
    when: Optional[datetime] = None,
    liters: float = 50.0,
    price: float = 1.5,
    odometer: float = 0.0,
) -> FuelRecord:
    return FuelRecord(
        vehicle_id=vehicle_id,
        timestamp_created=when,
        fuel_amount=liters,
        fuel_price=price,
        odometer_reading=odometer,
    )


def make_maintenance_record(
    vehicle_id: str = "veh-1",
    when: Optional[datetime] = None,
    cost: float = 100.0,
    type_id: str = "",
) -> MaintenanceRecord:
    return MaintenanceRecord(
        vehicle_id=vehicle_id,
        completion_date=when,
        cost=cost,
        maintenance_type_id=type_id,
    )


def make_vehicle(
    vehicle_id: str = "veh-1",
    vehicle_type: str = "",
    manufactured: Optional[datetime] = None,
    plate: str = "",
    driver_id: Optional[str] = None,
    driver_name: Optional[str] = None,
) -> Vehicle:
    return Vehicle(
        id=vehicle_id,
        plate_number=plate,
        vehicle_type=vehicle_type,
        manufacture_date=manufactured,
        driver_id=driver_id,
        driver_name=driver_name,
    )


def _fleet_payload() -> dict:
    """Snapshot in the store's own field names"""
    fuel = []
    # Heavy truck: monthly 1500 km on 300 L, plus a short top-up leg (5.0 km/L)
    for i in range(6):
        fuel.append(
            {
                "id": f"fh-{i}",
                "truck_id": "veh-heavy-0001",
                "created": f"2025-0{i + 1}-05 08:00:00.000Z",
                "fuel_amount": 300,
                "fuel_price": 1.5,
                "odometer_reading": 100000 + 1500 * i,
            }
        )
    fuel.append(
        {
            "id": "fh-6",
            "truck_id": "veh-heavy-0001",
            "created": "2025-06-12 09:30:00.000Z",
            "fuel_amount": 100,
            "fuel_price": 1.5,
            "odometer_reading": 108000,
        }
    )
    # Light truck: 1000 km on 80 L (12.5 km/L)
    for i in range(4):
        fuel.append(
            {
                "id": f"fl-{i}",
                "truck_id": "veh-light-0002",
                "created": f"2025-0{i + 3}-08T10:00:00Z",
                "fuel_amount": 80,
                "fuel_price": 1.6,
                "odometer_reading": 40000 + 1000 * i,
            }
        )

    maintenance = [
        {
            "id": f"mh-{i}",
            "truck": "veh-heavy-0001",
            "completion_date": date,
            "cost": 1500,
            "maintenance_type": "mt-oil" if i % 2 else "mt-brake",
        }
        for i, date in enumerate(
            ["2024-08-01", "2024-10-01", "2024-12-01", "2025-02-01", "2025-04-01", "2025-05-01"]
        )
    ]
    maintenance.append(
        {
            "id": "ml-0",
            "truck": "veh-light-0002",
            "completion_date": "2025-02-10",
            "cost": 400,
            "maintenance_type": "mt-oil",
        }
    )

    return {
        "trucks": [
            {
                "id": "veh-heavy-0001",
                "plate_number": "HV-101",
                "truck_type": "Heavy Truck",
                "truck_date": "2010-03-01",
                "users_id": "drv-1",
                "driver_name": "Alice",
            },
            {
                "id": "veh-light-0002",
                "plate_number": "LT-202",
                "truck_type": "Light Truck",
                "truck_date": "2021-01-10",
                "users_id": "drv-2",
                "driver_name": "Bob",
            },
            {
                "id": "veh-van-0003",
                "plate_number": "",
                "truck_type": "Van",
                "truck_date": None,
                "users_id": "",
            },
        ],
        "truck_fuel": fuel,
        "maintenance_records": maintenance,
        "maintenance_requests": [
            {
                "id": "rq-1",
                "truck": "veh-heavy-0001",
                "request_date": "2025-06-10",
                "status": "pending",
                "maintenance_type": "mt-brake",
                "current_mileage_at_request": 108000,
            },
            {
                "id": "rq-2",
                "truck": "veh-light-0002",
                "request_date": "2025-02-01",
                "handled_date": "2025-02-04",
                "status": "completed",
                "maintenance_type": "mt-oil",
                "current_mileage_at_request": 41000,
            },
        ],
        "maintenance_types": [
            {"id": "mt-oil", "name": "Oil Change"},
            {"id": "mt-brake", "name": "Brakes"},
        ],
    }


@pytest.fixture
def as_of():
    """Reference instant shared by the scenario fixtures"""
    return AS_OF


@pytest.fixture
def fleet_payload():
    """Raw snapshot dict as returned by the store"""
    return _fleet_payload()


@pytest.fixture
def fleet_snapshot(fleet_payload):
    """Validated snapshot: heavy truck, light truck, idle van"""
    return FleetSnapshot.model_validate(fleet_payload)


@pytest.fixture
def scenario_a_records():
    """Two refuels 400 km apart, 40 L on the second"""
    return [
        make_fuel_record("veh-1", utc(2025, 5, 1), liters=50, odometer=1000),
        make_fuel_record("veh-1", utc(2025, 5, 8), liters=40, odometer=1400),
    ]


@pytest.fixture
def maintenance_request_rows():
    return [
        MaintenanceRequest(id="r1", vehicle_id="veh-1", status="pending",
                           current_mileage_at_request=150000),
        MaintenanceRequest(id="r2", vehicle_id="veh-2", status="approved",
                           current_mileage_at_request=60000),
        MaintenanceRequest(id="r3", vehicle_id="veh-1", status="completed",
                           request_date=utc(2025, 6, 1), handled_date=utc(2025, 6, 4)),
        MaintenanceRequest(id="r4", vehicle_id="veh-2", status="completed",
                           request_date=utc(2025, 6, 1), handled_date=utc(2025, 6, 6)),
    ]
