"""
Maintenance Analytics Engine
KPIs, monthly cost trend, issue-prone vehicles, type breakdown and the list of
vehicles currently waiting on maintenance.
"""

import logging
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from analytics_config import MaintenanceAnalyticsConfig
from models import MaintenanceRecord, MaintenanceRequest, MaintenanceRequestStatus, Vehicle

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class RequestPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_mileage(
        cls, mileage: float, config: Optional[MaintenanceAnalyticsConfig] = None
    ) -> "RequestPriority":
        config = config or MaintenanceAnalyticsConfig()
        if mileage > config.high_priority_mileage:
            return cls.HIGH
        if mileage > config.medium_priority_mileage:
            return cls.MEDIUM
        return cls.LOW


@dataclass
class MaintenanceKPIs:
    total_cost: float
    record_count: int
    request_count: int
    pending_requests: int
    completed_requests: int
    avg_days_to_complete: float
    labor_cost: float

    @property
    def completion_rate(self) -> float:
        if self.request_count == 0:
            return 0.0
        return self.completed_requests / self.request_count * 100

    def to_dict(self) -> Dict:
        return {
            "total_cost": round(self.total_cost, 2),
            "record_count": self.record_count,
            "request_count": self.request_count,
            "pending_requests": self.pending_requests,
            "completion_rate": round(self.completion_rate, 1),
            "avg_days_to_complete": round(self.avg_days_to_complete, 1),
            "labor_cost": round(self.labor_cost, 2),
        }


@dataclass
class CostBucket:
    """Count and cost of a group of maintenance records (a month, a type)"""

    key: str
    count: int = 0
    cost: float = 0.0

    @property
    def avg_cost(self) -> float:
        return self.cost / self.count if self.count else 0.0

    def to_dict(self) -> Dict:
        return {
            "key": self.key,
            "count": self.count,
            "cost": round(self.cost, 2),
            "avg_cost": round(self.avg_cost, 2),
        }


@dataclass
class IssueProneVehicle:
    vehicle_id: str
    plate_number: str
    vehicle_type: str
    issue_count: int
    total_cost: float
    last_maintenance: Optional[datetime]

    @property
    def avg_cost(self) -> float:
        return self.total_cost / self.issue_count if self.issue_count else 0.0

    def to_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "plate_number": self.plate_number,
            "vehicle_type": self.vehicle_type,
            "issue_count": self.issue_count,
            "total_cost": round(self.total_cost, 2),
            "avg_cost": round(self.avg_cost, 2),
            "last_maintenance": (
                self.last_maintenance.isoformat() if self.last_maintenance else None
            ),
        }


@dataclass
class VehicleInMaintenance:
    request_id: str
    vehicle_id: str
    plate_number: str
    maintenance_type: str
    request_date: Optional[datetime]
    status: str
    priority: RequestPriority

    def to_dict(self) -> Dict:
        return {
            "request_id": self.request_id,
            "vehicle_id": self.vehicle_id,
            "plate_number": self.plate_number,
            "maintenance_type": self.maintenance_type,
            "request_date": self.request_date.isoformat() if self.request_date else None,
            "status": self.status,
            "priority": self.priority.value,
        }


@dataclass
class MaintenanceAnalyticsReport:
    kpis: MaintenanceKPIs
    monthly_trend: List[CostBucket] = field(default_factory=list)
    issue_prone_vehicles: List[IssueProneVehicle] = field(default_factory=list)
    type_breakdown: List[CostBucket] = field(default_factory=list)
    vehicles_in_maintenance: List[VehicleInMaintenance] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "kpis": self.kpis.to_dict(),
            "monthly_trend": [b.to_dict() for b in self.monthly_trend],
            "issue_prone_vehicles": [v.to_dict() for v in self.issue_prone_vehicles],
            "type_breakdown": [b.to_dict() for b in self.type_breakdown],
            "vehicles_in_maintenance": [v.to_dict() for v in self.vehicles_in_maintenance],
        }


class MaintenanceAnalyticsEngine:
    """
    Maintenance dashboard aggregates.

    Usage:
        engine = MaintenanceAnalyticsEngine()
        report = engine.analyze(vehicles, records, requests, type_names)
    """

    def __init__(self, config: Optional[MaintenanceAnalyticsConfig] = None):
        self.config = config or MaintenanceAnalyticsConfig()

    def kpis(
        self,
        records: List[MaintenanceRecord],
        requests: List[MaintenanceRequest],
    ) -> MaintenanceKPIs:
        total_cost = sum(r.cost for r in records)
        completed = [r for r in requests if r.status == MaintenanceRequestStatus.COMPLETED.value]
        pending = [r for r in requests if r.status == MaintenanceRequestStatus.PENDING.value]

        durations = [
            (r.handled_date - r.request_date) // timedelta(days=1)
            for r in completed
            if r.request_date and r.handled_date
        ]

        return MaintenanceKPIs(
            total_cost=total_cost,
            record_count=len(records),
            request_count=len(requests),
            pending_requests=len(pending),
            completed_requests=len(completed),
            avg_days_to_complete=statistics.fmean(durations) if durations else 0.0,
            labor_cost=total_cost * self.config.labor_cost_share,
        )

    def monthly_trend(self, records: Iterable[MaintenanceRecord]) -> List[CostBucket]:
        """Cost per completion month (YYYY-MM), oldest first"""
        buckets: Dict[str, CostBucket] = {}
        for record in records:
            if record.completion_date is None:
                continue
            key = record.completion_date.strftime("%Y-%m")
            bucket = buckets.setdefault(key, CostBucket(key))
            bucket.count += 1
            bucket.cost += record.cost
        return [buckets[k] for k in sorted(buckets)]

    def issue_prone_vehicles(
        self, vehicles: Iterable[Vehicle], records: Iterable[MaintenanceRecord]
    ) -> List[IssueProneVehicle]:
        known = {v.id: v for v in vehicles}
        grouped: Dict[str, List[MaintenanceRecord]] = defaultdict(list)
        for record in records:
            if record.vehicle_id:
                grouped[record.vehicle_id].append(record)

        items = []
        for vehicle_id, vehicle_records in grouped.items():
            vehicle = known.get(vehicle_id)
            dates = [r.completion_date for r in vehicle_records if r.completion_date]
            items.append(
                IssueProneVehicle(
                    vehicle_id=vehicle_id,
                    plate_number=vehicle.plate_number if vehicle else UNKNOWN,
                    vehicle_type=(vehicle.vehicle_type if vehicle else "") or UNKNOWN,
                    issue_count=len(vehicle_records),
                    total_cost=sum(r.cost for r in vehicle_records),
                    last_maintenance=max(dates) if dates else None,
                )
            )

        items.sort(key=lambda v: (-v.issue_count, -v.total_cost, v.vehicle_id))
        return items[: self.config.issue_prone_limit]

    def type_breakdown(
        self, records: Iterable[MaintenanceRecord], type_names: Dict[str, str]
    ) -> List[CostBucket]:
        """Per maintenance type, most expensive first"""
        buckets: Dict[str, CostBucket] = {}
        for record in records:
            name = type_names.get(record.maintenance_type_id) or UNKNOWN
            bucket = buckets.setdefault(name, CostBucket(name))
            bucket.count += 1
            bucket.cost += record.cost
        return sorted(buckets.values(), key=lambda b: b.cost, reverse=True)

    def vehicles_in_maintenance(
        self,
        vehicles: Iterable[Vehicle],
        requests: Iterable[MaintenanceRequest],
        type_names: Dict[str, str],
    ) -> List[VehicleInMaintenance]:
        open_statuses = {
            MaintenanceRequestStatus.PENDING.value,
            MaintenanceRequestStatus.APPROVED.value,
        }
        plates = {v.id: v.plate_number for v in vehicles}
        return [
            VehicleInMaintenance(
                request_id=r.id,
                vehicle_id=r.vehicle_id,
                plate_number=plates.get(r.vehicle_id) or UNKNOWN,
                maintenance_type=type_names.get(r.maintenance_type_id) or UNKNOWN,
                request_date=r.request_date,
                status=r.status,
                priority=RequestPriority.from_mileage(r.current_mileage_at_request, self.config),
            )
            for r in requests
            if r.status in open_statuses
        ]

    def analyze(
        self,
        vehicles: Iterable[Vehicle],
        records: Iterable[MaintenanceRecord],
        requests: Iterable[MaintenanceRequest],
        type_names: Optional[Dict[str, str]] = None,
    ) -> MaintenanceAnalyticsReport:
        vehicles = list(vehicles)
        records = list(records)
        requests = list(requests)
        type_names = type_names or {}

        report = MaintenanceAnalyticsReport(
            kpis=self.kpis(records, requests),
            monthly_trend=self.monthly_trend(records),
            issue_prone_vehicles=self.issue_prone_vehicles(vehicles, records),
            type_breakdown=self.type_breakdown(records, type_names),
            vehicles_in_maintenance=self.vehicles_in_maintenance(vehicles, requests, type_names),
        )
        logger.info(
            f"Maintenance analytics: {len(records)} records, {len(requests)} requests, "
            f"{report.kpis.pending_requests} pending, total ${report.kpis.total_cost:,.2f}"
        )
        return report
