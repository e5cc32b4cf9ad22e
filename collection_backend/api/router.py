"""
Routing API router. Calls application only. No business logic.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from collection_backend.api.dependencies import get_caller, get_event_bus, get_policy, get_store
from collection_backend.api.schemas import (
    AreaGroupSchema,
    AreasResponse,
    CancelRouteRequest,
    CollectionEventSchema,
    CollectionResponse,
    CollectorRouteResponse,
    CollectorRouteSchema,
    CreateRouteRequest,
    HistoryResponse,
    IssueResponse,
    LocationDataSchema,
    ManualCollectionRequest,
    ReportIssueRequest,
    RouteListResponse,
    RouteProgressSchema,
    RouteResponse,
    RouteSchema,
    RouteStatsSchema,
    ScanCollectionRequest,
    UpdateRouteStatusRequest,
    WorkerLoadSchema,
    WorkersResponse,
)
from collection_backend.application.events import ISSUE_REPORTED, EventBus
from collection_backend.application.use_cases.availability import (
    list_available_workers,
    list_eligible_areas,
)
from collection_backend.application.use_cases.collection_events import (
    manual_collection,
    report_issue,
    scan_collection,
)
from collection_backend.application.use_cases.create_route import create_route
from collection_backend.application.use_cases.route_lifecycle import (
    cancel_route,
    update_route_status,
)
from collection_backend.application.use_cases.route_queries import (
    collection_history,
    get_collector_route,
    get_route,
    get_route_stats,
    list_routes,
)
from collection_backend.application.validation import parse_date
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.errors import (
    ConsistencyError,
    EntryNotFound,
    NotAuthorized,
    PartialCancellation,
    RouteError,
    RouteNotFound,
    ValidationError,
    WorkerNotFound,
)
from collection_backend.domain.models import (
    Caller,
    CollectionResult,
    Coordinates,
    GeoSnapshot,
    StopOverride,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotAuthorized, 403),
    (RouteNotFound, 404),
    (EntryNotFound, 404),
    (WorkerNotFound, 404),
    (ConsistencyError, 409),
    (PartialCancellation, 500),
)


def _to_http(e: RouteError) -> HTTPException:
    status = next((code for kind, code in _STATUS_BY_ERROR if isinstance(e, kind)), 400)
    if status >= 500:
        logger.error("Routing operation failed: %s", e)
    return HTTPException(status_code=status, detail={"code": e.code, "message": str(e)})


def _geo(location: LocationDataSchema | None) -> GeoSnapshot | None:
    if location is None:
        return None
    return GeoSnapshot(
        coordinates=Coordinates(lat=location.coordinates.lat, lng=location.coordinates.lng),
        accuracy=location.accuracy,
        timestamp=location.timestamp,
    )


def _collection_response(
    message: str, result: CollectionResult, warnings: list[str]
) -> CollectionResponse:
    return CollectionResponse(
        message=message,
        collection=CollectionEventSchema.model_validate(result.event),
        route_progress=RouteProgressSchema(**result.progress),
        waste_request_status=result.request_status,
        warnings=warnings,
    )


# --- route creation support ---


@router.get("/routes/bins-by-area", response_model=AreasResponse)
def endpoint_bins_by_area(
    date: str | None = None,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
) -> AreasResponse:
    """
    GET /routes/bins-by-area?date=YYYY-MM-DD
    Approved, paid, unassigned requests grouped by bin area.
    """
    try:
        if not caller.is_admin:
            raise NotAuthorized("Access denied. Only administrators can plan routes.")
        target = parse_date(date)
        areas = list_eligible_areas(store, target, policy)
        if areas:
            total = sum(a.total_requests for a in areas)
            message = f"Found {total} requests across {len(areas)} areas"
        else:
            message = "No approved requests found for the selected date"
        return AreasResponse(
            date=target,
            message=message,
            areas=[AreaGroupSchema.model_validate(a) for a in areas],
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/routes/available-workers", response_model=WorkersResponse)
def endpoint_available_workers(
    date: str | None = None,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
) -> WorkersResponse:
    """GET /routes/available-workers?date=YYYY-MM-DD"""
    try:
        if not caller.is_admin:
            raise NotAuthorized("Access denied. Only administrators can plan routes.")
        target = parse_date(date)
        result = list_available_workers(store, target, policy)
        return WorkersResponse(
            date=target,
            available=[WorkerLoadSchema.model_validate(w) for w in result.available],
            assigned=[WorkerLoadSchema.model_validate(w) for w in result.assigned],
            total_workers=result.total_workers,
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# --- routes ---


@router.post("/routes", response_model=RouteResponse, status_code=201)
def endpoint_create_route(
    request: CreateRouteRequest,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
    bus: EventBus = Depends(get_event_bus),
) -> RouteResponse:
    """
    POST /routes

    Body:
        - collector_id, assigned_date, area
        - selected_bins (list[str]): bin ids in visiting order
        - notes (optional), bin_overrides (optional): {bin_id: {estimated_time, priority}}
    """
    try:
        overrides = {
            bin_id: StopOverride(estimated_time=o.estimated_time, priority=o.priority)
            for bin_id, o in (request.bin_overrides or {}).items()
        }
        result = create_route(
            store,
            caller,
            collector_id=request.collector_id,
            assigned_date=request.assigned_date,
            area=request.area,
            bin_ids=request.selected_bins,
            notes=request.notes,
            overrides=overrides,
            policy=policy,
        )
        report = bus.publish(result.events)
        return RouteResponse(
            message=f"Route created successfully in {result.route.area} area",
            route=RouteSchema.model_validate(result.route),
            warnings=report.warnings,
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/routes", response_model=RouteListResponse)
def endpoint_list_routes(
    date: str | None = None,
    status: str | None = Query(default=None, description="One status or comma-separated list"),
    collector_id: str | None = None,
    area: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
) -> RouteListResponse:
    """GET /routes. Workers only see their own routes."""
    try:
        result = list_routes(
            store,
            caller,
            date=date,
            status=status,
            collector_id=collector_id,
            area=area,
            page=page,
            limit=limit,
            policy=policy,
        )
        return RouteListResponse(
            count=len(result.items),
            total=result.total,
            page=result.page,
            pages=result.pages,
            routes=[RouteSchema.model_validate(r) for r in result.items],
            stats=result.stats,
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/routes/stats", response_model=RouteStatsSchema)
def endpoint_route_stats(
    date: str | None = None,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
) -> RouteStatsSchema:
    """GET /routes/stats?date=YYYY-MM-DD"""
    try:
        return RouteStatsSchema.model_validate(get_route_stats(store, caller, date))
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/routes/{route_id}", response_model=RouteSchema)
def endpoint_get_route(
    route_id: str,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
) -> RouteSchema:
    try:
        return RouteSchema.model_validate(get_route(store, caller, route_id))
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/routes/{route_id}/status", response_model=RouteResponse)
def endpoint_update_route_status(
    route_id: str,
    request: UpdateRouteStatusRequest,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
    bus: EventBus = Depends(get_event_bus),
) -> RouteResponse:
    """
    PUT /routes/{route_id}/status

    Body:
        - status (str): assigned | in_progress | completed | cancelled
        - notes (str, optional): appended to the route; required reason when cancelling
    """
    try:
        result = update_route_status(
            store, caller, route_id, request.status, request.notes, policy=policy
        )
        report = bus.publish(result.events)
        return RouteResponse(
            message=f"Route status updated to {result.route.status}",
            route=RouteSchema.model_validate(result.route),
            warnings=report.warnings,
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/routes/{route_id}", response_model=RouteResponse)
def endpoint_cancel_route(
    route_id: str,
    request: CancelRouteRequest,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
    bus: EventBus = Depends(get_event_bus),
) -> RouteResponse:
    """
    DELETE /routes/{route_id}: cancels, never removes.
    Pending stops' requests go back to pending and unassigned.
    """
    try:
        result = cancel_route(store, caller, route_id, request.reason, policy=policy)
        report = bus.publish(result.events)
        return RouteResponse(
            message="Route cancelled and requests unassigned",
            route=RouteSchema.model_validate(result.route),
            warnings=report.warnings,
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# --- collection ---


@router.post("/collection/scan", response_model=CollectionResponse)
def endpoint_scan_collection(
    request: ScanCollectionRequest,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
    bus: EventBus = Depends(get_event_bus),
) -> CollectionResponse:
    """POST /collection/scan: bin QR scanned at the stop."""
    try:
        result = scan_collection(
            store,
            caller,
            route_id=request.route_id,
            bin_id=request.bin_id,
            location=_geo(request.location_data),
            notes=request.notes,
            policy=policy,
        )
        report = bus.publish(result.events)
        return _collection_response("Bin collection recorded successfully", result, report.warnings)
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/collection/manual", response_model=CollectionResponse)
def endpoint_manual_collection(
    request: ManualCollectionRequest,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
    bus: EventBus = Depends(get_event_bus),
) -> CollectionResponse:
    """POST /collection/manual: used when the scan fails or is unavailable."""
    try:
        result = manual_collection(
            store,
            caller,
            route_id=request.route_id,
            bin_id=request.bin_id,
            reason=request.reason,
            location=_geo(request.location_data),
            notes=request.notes,
            policy=policy,
        )
        report = bus.publish(result.events)
        return _collection_response("Manual collection recorded successfully", result, report.warnings)
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/collection/report-issue", response_model=IssueResponse)
def endpoint_report_issue(
    request: ReportIssueRequest,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
    bus: EventBus = Depends(get_event_bus),
) -> IssueResponse:
    """
    POST /collection/report-issue

    The stop is marked failed. admin_notified is false when the admin
    notification could not be delivered; the report itself still stands.
    """
    try:
        result = report_issue(
            store,
            caller,
            route_id=request.route_id,
            bin_id=request.bin_id,
            issue_type=request.issue_type,
            description=request.description,
            requires_admin=request.requires_admin,
            location=_geo(request.location_data),
            policy=policy,
        )
        report = bus.publish(result.events)
        return IssueResponse(
            message="Issue reported successfully",
            collection=CollectionEventSchema.model_validate(result.event),
            route_progress=RouteProgressSchema(**result.progress),
            admin_notified=request.requires_admin and report.delivered(ISSUE_REPORTED),
            warnings=report.warnings,
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/collection/collectors/{collector_id}/route", response_model=CollectorRouteResponse)
def endpoint_collector_route(
    collector_id: str,
    date: str | None = None,
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
) -> CollectorRouteResponse:
    """
    GET /collection/collectors/{collector_id}/route?date=&lat=&lng=
    With lat/lng each stop carries its distance from the worker in km.
    """
    try:
        target = parse_date(date)
        position = Coordinates(lat=lat, lng=lng) if lat is not None and lng is not None else None
        found = get_collector_route(store, caller, collector_id, target, position)
        if found is None:
            return CollectorRouteResponse(message="No tasks assigned for this date", date=target)
        return CollectorRouteResponse(
            message=f"Found route with {len(found.stops)} assigned tasks for {target}",
            date=target,
            assignment=CollectorRouteSchema.model_validate(found),
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/collection/history", response_model=HistoryResponse)
def endpoint_collection_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    start_date: str | None = None,
    end_date: str | None = None,
    caller: Caller = Depends(get_caller),
    store: InMemoryStore = Depends(get_store),
    policy: RoutingPolicy = Depends(get_policy),
) -> HistoryResponse:
    """GET /collection/history: the caller's own collection events, newest first."""
    try:
        result = collection_history(
            store,
            caller,
            page=page,
            limit=limit,
            start_date=start_date,
            end_date=end_date,
            policy=policy,
        )
        return HistoryResponse(
            count=len(result.items),
            total=result.total,
            page=result.page,
            pages=result.pages,
            collections=[CollectionEventSchema.model_validate(e) for e in result.items],
        )
    except RouteError as e:
        raise _to_http(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
