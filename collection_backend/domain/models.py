"""
Collection domain models. Dataclasses only. No FastAPI, no I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

WORKER_ROLES = ("wc1", "wc2", "wc3")
ADMIN_ROLE = "admin"

REQUEST_STATUSES = {"pending", "approved", "completed", "cancelled"}
PAYMENT_STATUSES = {"pending", "paid", "failed"}
COLLECTION_TYPES = {"food", "polythene", "paper", "hazardous", "ewaste"}
BIN_STATUSES = {"Empty", "Half-Full", "Full", "Overflow"}

ROUTE_STATUSES = ("assigned", "in_progress", "completed", "cancelled")
ACTIVE_ROUTE_STATUSES = frozenset({"assigned", "in_progress"})
TERMINAL_ROUTE_STATUSES = frozenset({"completed", "cancelled"})

PRIORITIES = {"normal", "high", "urgent"}
ENTRY_STATUSES = {"pending", "collected", "failed"}
COLLECTION_METHODS = {"scan", "manual"}
ISSUE_TYPES = {
    "damaged_bin",
    "blocked_access",
    "qr_damaged",
    "overflow",
    "hazardous_material",
    "other",
}


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class BinLocation:
    address: str
    coordinates: Coordinates
    area: str


@dataclass(frozen=True)
class Bin:
    """Physical receptacle. Telemetry is owned by bin monitoring; read-only here."""
    bin_id: str
    location: BinLocation
    capacity: int = 100
    bin_type: str = "food"
    fill_level: float = 0.0
    battery: float = 100.0
    status: str = "Empty"
    is_active: bool = True


@dataclass(frozen=True)
class Worker:
    worker_id: str
    name: str
    email: str
    role: str
    is_active: bool = True


@dataclass
class WasteRequest:
    request_id: str
    bin_id: str
    user_id: str
    customer_name: str
    customer_email: str
    collection_type: str
    preferred_date: str  # "YYYY-MM-DD"
    cost: float
    status: str = "pending"
    payment_status: str = "pending"
    notes: str = ""
    urgent: bool = False
    assigned_worker: Optional[str] = None
    assigned_at: Optional[datetime] = None
    route_id: Optional[str] = None
    scheduled_date: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        return self.status == "approved" and self.payment_status == "paid"

    @property
    def is_unassigned(self) -> bool:
        return self.route_id is None and self.assigned_worker is None


@dataclass(frozen=True)
class CustomerSnapshot:
    """Requester info captured when the route is built. Not re-read live."""
    name: str
    email: str
    collection_type: str
    cost: float
    notes: str = ""


@dataclass
class RouteBinEntry:
    bin_id: str
    request_id: str
    sequence: int
    customer_info: CustomerSnapshot
    priority: str = "normal"
    estimated_time: int = 15
    collection_status: str = "pending"
    completed_at: Optional[datetime] = None


@dataclass
class Route:
    route_id: str
    collector_id: str
    assigned_date: str
    area: str
    entries: List[RouteBinEntry]
    estimated_duration: int
    status: str = "assigned"
    total_bins: int = 0
    completed_bins: int = 0
    actual_duration: Optional[int] = None
    notes: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    version: int = 0

    def entry_for(self, bin_id: str) -> Optional[RouteBinEntry]:
        return next((e for e in self.entries if e.bin_id == bin_id), None)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ROUTE_STATUSES

    def pending_entries(self) -> List[RouteBinEntry]:
        return [e for e in self.entries if e.collection_status == "pending"]


@dataclass(frozen=True)
class GeoSnapshot:
    coordinates: Coordinates
    accuracy: Optional[float] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ProximityCheck:
    is_valid: bool
    distance: float


@dataclass(frozen=True)
class CollectionIssue:
    issue_type: str
    description: str
    requires_admin: bool
    reported_at: datetime


@dataclass(frozen=True)
class CollectionEvent:
    """Immutable record of one attempt to close out a stop."""
    collection_id: str
    route_id: str
    bin_id: str
    request_id: str
    collector_id: str
    outcome: str  # "collected" | "failed"
    created_at: datetime
    method: Optional[str] = None  # None para reportes de incidencia
    reason: Optional[str] = None
    issue: Optional[CollectionIssue] = None
    location: Optional[GeoSnapshot] = None
    proximity: Optional[ProximityCheck] = None
    notes: str = ""


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass(frozen=True)
class DomainEvent:
    kind: str
    route_id: str
    recipient_id: Optional[str]  # None = administradores
    occurred_at: datetime
    payload: dict = field(default_factory=dict)


# --- availability / query results ---


@dataclass
class EligibleBin:
    bin: Bin
    requests: List[WasteRequest]


@dataclass
class AreaGroup:
    area: str
    bins: List[EligibleBin]
    total_requests: int
    estimated_duration: int  # minutes


@dataclass(frozen=True)
class WorkerLoad:
    worker: Worker
    current_load: int
    available: bool


@dataclass
class WorkerAvailability:
    available: List[WorkerLoad]
    assigned: List[WorkerLoad]
    total_workers: int


@dataclass(frozen=True)
class StopOverride:
    """Per-bin overrides supplied when a route is built."""
    estimated_time: Optional[int] = None
    priority: Optional[str] = None


@dataclass
class RouteResult:
    route: Route
    events: List[DomainEvent] = field(default_factory=list)


@dataclass
class CollectionResult:
    event: CollectionEvent
    route: Route
    request_status: str
    events: List[DomainEvent] = field(default_factory=list)

    @property
    def progress(self) -> dict:
        return {
            "completed": self.route.completed_bins,
            "total": self.route.total_bins,
            "route_status": self.route.status,
        }
