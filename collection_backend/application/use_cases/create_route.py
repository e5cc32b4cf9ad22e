"""
Route builder use case. Orchestrates store + domain. No FastAPI.

Flow: validate input -> check worker capacity -> per selected bin (caller order):
      area check -> (bin, date) not held -> oldest routable request -> entry
      -> persist route + reserve bins + link snapshot requests (one transaction).
"""

import logging
from typing import Dict, List, Optional

from collection_backend.application.config import DEFAULT_ROUTING_POLICY
from collection_backend.application.events import ROUTE_ASSIGNED, make_event
from collection_backend.application.use_cases.availability import eligible_requests_for_bin
from collection_backend.application.validation import (
    check_length,
    generate_code,
    parse_date,
    require_admin,
    require_text,
    utcnow,
)
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.errors import (
    BinAlreadyRouted,
    BinNotInArea,
    NoBinsSelected,
    RequestNoLongerEligible,
    ValidationError,
    WorkerNotFound,
    WorkerUnavailable,
)
from collection_backend.domain.models import (
    PRIORITIES,
    WORKER_ROLES,
    Caller,
    CustomerSnapshot,
    Route,
    RouteBinEntry,
    RouteResult,
    StopOverride,
    WasteRequest,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)


def _validate_overrides(overrides: Dict[str, StopOverride], bin_ids: List[str]) -> None:
    for bin_id, o in overrides.items():
        if bin_id not in bin_ids:
            raise ValidationError(f"Override given for bin {bin_id} which is not selected")
        if o.estimated_time is not None and o.estimated_time <= 0:
            raise ValidationError(f"estimated_time for bin {bin_id} must be positive")
        if o.priority is not None and o.priority not in PRIORITIES:
            raise ValidationError(
                f"Invalid priority {o.priority!r} for bin {bin_id}; allowed: {sorted(PRIORITIES)}"
            )


def snapshot_customer(request: WasteRequest) -> CustomerSnapshot:
    return CustomerSnapshot(
        name=request.customer_name,
        email=request.customer_email,
        collection_type=request.collection_type,
        cost=request.cost,
        notes=request.notes,
    )


def create_route(
    store: InMemoryStore,
    caller: Caller,
    collector_id: str,
    assigned_date: str,
    area: str,
    bin_ids: List[str],
    notes: Optional[str] = None,
    overrides: Optional[Dict[str, StopOverride]] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> RouteResult:
    """
    Build and persist a Route for collector_id on assigned_date.

    Raises:
        NotAuthorized, ValidationError, NoBinsSelected, WorkerNotFound,
        WorkerUnavailable, BinNotInArea, BinAlreadyRouted, RequestNoLongerEligible.
    """
    require_admin(caller, "create routes")
    collector_id = require_text(collector_id, "collector_id")
    require_text(assigned_date, "assigned_date")
    route_date = parse_date(assigned_date, "assigned_date")
    area = require_text(area, "area")
    notes = check_length(notes, "notes", policy.notes_max_length)

    bin_ids = [str(b).strip() for b in (bin_ids or []) if str(b).strip()]
    if not bin_ids:
        raise NoBinsSelected()
    if len(set(bin_ids)) != len(bin_ids):
        raise ValidationError("Selected bins contain duplicates")
    overrides = overrides or {}
    _validate_overrides(overrides, bin_ids)

    worker = store.get_worker(collector_id)
    if worker is None or worker.role not in WORKER_ROLES or not worker.is_active:
        raise WorkerNotFound(collector_id)

    now = utcnow()
    with store.transaction():
        if store.active_route_count(collector_id, route_date) >= policy.max_routes_per_worker:
            raise WorkerUnavailable(collector_id, route_date)

        route_id = generate_code("RT")
        entries: List[RouteBinEntry] = []
        linked: List[WasteRequest] = []

        for sequence, bin_id in enumerate(bin_ids, start=1):
            bin_ = store.get_bin(bin_id)
            if bin_ is None or not bin_.is_active or bin_.location.area != area:
                raise BinNotInArea(bin_id, area)
            holder = store.bin_holder(bin_id, route_date)
            if holder is not None:
                raise BinAlreadyRouted(bin_id, route_date, holder)
            candidates = eligible_requests_for_bin(store, bin_id, route_date)
            if not candidates:
                raise RequestNoLongerEligible(bin_id)

            primary = candidates[0]
            override = overrides.get(bin_id, StopOverride())
            entries.append(
                RouteBinEntry(
                    bin_id=bin_id,
                    request_id=primary.request_id,
                    sequence=sequence,
                    customer_info=snapshot_customer(primary),
                    priority=override.priority or ("high" if primary.urgent else "normal"),
                    estimated_time=override.estimated_time or policy.per_stop_minutes,
                )
            )
            linked.append(primary)

        route = Route(
            route_id=route_id,
            collector_id=collector_id,
            assigned_date=route_date,
            area=area,
            entries=entries,
            estimated_duration=sum(e.estimated_time for e in entries),
            status="assigned",
            total_bins=len(entries),
            completed_bins=0,
            notes=notes or f"Route created for {area} area on {route_date}",
            created_at=now,
        )
        route = store.add_route(route)
        for e in entries:
            store.reserve_bin(e.bin_id, route_date, route_id)
        for req in linked:
            req.assigned_worker = collector_id
            req.assigned_at = now
            req.route_id = route_id
            req.scheduled_date = route_date
            store.put_request(req)

    logger.info(
        "Created route %s with %d bins for %s in %s on %s",
        route.route_id,
        route.total_bins,
        worker.name or collector_id,
        area,
        route_date,
    )
    event = make_event(
        ROUTE_ASSIGNED,
        route.route_id,
        collector_id,
        now,
        assigned_date=route_date,
        area=area,
        total_bins=route.total_bins,
    )
    return RouteResult(route=route, events=[event])
