"""
API request/response schemas. Pydantic only in api layer.
Response models read straight from the domain dataclasses (from_attributes).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DomainSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- requests ---


class StopOverrideSchema(BaseModel):
    estimated_time: int | None = Field(default=None, gt=0)
    priority: str | None = None  # normal | high | urgent


class CreateRouteRequest(BaseModel):
    collector_id: str
    assigned_date: str  # "YYYY-MM-DD"
    area: str
    selected_bins: list[str]
    notes: str | None = None
    bin_overrides: dict[str, StopOverrideSchema] | None = None


class UpdateRouteStatusRequest(BaseModel):
    status: str  # assigned | in_progress | completed | cancelled
    notes: str | None = None


class CancelRouteRequest(BaseModel):
    reason: str


class CoordinatesSchema(DomainSchema):
    lat: float
    lng: float


class LocationDataSchema(DomainSchema):
    coordinates: CoordinatesSchema
    accuracy: float | None = None
    timestamp: datetime | None = None


class ScanCollectionRequest(BaseModel):
    bin_id: str
    route_id: str
    location_data: LocationDataSchema | None = None
    notes: str | None = None


class ManualCollectionRequest(ScanCollectionRequest):
    reason: str | None = None


class ReportIssueRequest(BaseModel):
    bin_id: str
    route_id: str
    issue_type: str
    description: str | None = None
    requires_admin: bool = True
    location_data: LocationDataSchema | None = None


# --- responses ---


class BinLocationSchema(DomainSchema):
    address: str
    coordinates: CoordinatesSchema
    area: str


class BinSchema(DomainSchema):
    bin_id: str
    location: BinLocationSchema
    capacity: int
    bin_type: str
    fill_level: float
    battery: float
    status: str


class WasteRequestSchema(DomainSchema):
    request_id: str
    bin_id: str
    customer_name: str
    customer_email: str
    collection_type: str
    preferred_date: str
    status: str
    payment_status: str
    cost: float
    notes: str
    route_id: str | None = None


class EligibleBinSchema(DomainSchema):
    bin: BinSchema
    requests: list[WasteRequestSchema]


class AreaGroupSchema(DomainSchema):
    area: str
    bins: list[EligibleBinSchema]
    total_requests: int
    estimated_duration: int


class AreasResponse(BaseModel):
    date: str
    message: str
    areas: list[AreaGroupSchema]


class WorkerSchema(DomainSchema):
    worker_id: str
    name: str
    email: str
    role: str


class WorkerLoadSchema(DomainSchema):
    worker: WorkerSchema
    current_load: int
    available: bool


class WorkersResponse(BaseModel):
    date: str
    available: list[WorkerLoadSchema]
    assigned: list[WorkerLoadSchema]
    total_workers: int


class CustomerInfoSchema(DomainSchema):
    name: str
    email: str
    collection_type: str
    cost: float
    notes: str


class RouteBinEntrySchema(DomainSchema):
    bin_id: str
    request_id: str
    sequence: int
    priority: str
    estimated_time: int
    customer_info: CustomerInfoSchema
    collection_status: str
    completed_at: datetime | None = None


class RouteSchema(DomainSchema):
    route_id: str
    collector_id: str
    assigned_date: str
    area: str
    status: str
    entries: list[RouteBinEntrySchema]
    total_bins: int
    completed_bins: int
    estimated_duration: int
    actual_duration: int | None = None
    notes: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    created_at: datetime | None = None
    version: int


class RouteResponse(BaseModel):
    message: str
    route: RouteSchema
    warnings: list[str] = []


class RouteListResponse(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    routes: list[RouteSchema]
    stats: dict[str, dict]


class RouteStatsSchema(DomainSchema):
    date: str
    total_routes: int
    routes_by_status: dict[str, int]
    total_bins: int
    completed_bins: int
    total_workers: int
    estimated_duration: int
    actual_duration: int
    areas: list[str]
    worker_types: dict[str, int]
    completion_rate: int
    efficiency: int


class IssueSchema(DomainSchema):
    issue_type: str
    description: str
    requires_admin: bool
    reported_at: datetime


class ProximitySchema(DomainSchema):
    is_valid: bool
    distance: float


class CollectionEventSchema(DomainSchema):
    collection_id: str
    route_id: str
    bin_id: str
    request_id: str
    collector_id: str
    outcome: str
    method: str | None = None
    reason: str | None = None
    issue: IssueSchema | None = None
    location: LocationDataSchema | None = None
    proximity: ProximitySchema | None = None
    notes: str
    created_at: datetime


class RouteProgressSchema(BaseModel):
    completed: int
    total: int
    route_status: str


class CollectionResponse(BaseModel):
    message: str
    collection: CollectionEventSchema
    route_progress: RouteProgressSchema
    waste_request_status: str
    warnings: list[str] = []


class IssueResponse(BaseModel):
    message: str
    collection: CollectionEventSchema
    route_progress: RouteProgressSchema
    admin_notified: bool
    warnings: list[str] = []


class CollectorStopSchema(DomainSchema):
    entry: RouteBinEntrySchema
    bin: BinSchema | None = None
    request_status: str | None = None
    payment_status: str | None = None
    distance_km: float | None = None


class CollectorRouteSchema(DomainSchema):
    route: RouteSchema
    stops: list[CollectorStopSchema]


class CollectorRouteResponse(BaseModel):
    message: str
    date: str
    assignment: CollectorRouteSchema | None = None


class HistoryResponse(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    collections: list[CollectionEventSchema]
