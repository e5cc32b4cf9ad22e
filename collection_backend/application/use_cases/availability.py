"""
Area / worker availability for route creation. Read-only. No FastAPI.

Empty results are valid: "no areas" and "no workers" are answers, not errors.
"""

import logging
from typing import Dict, List, Optional

from collection_backend.application.config import DEFAULT_ROUTING_POLICY
from collection_backend.application.validation import parse_date
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.models import (
    WORKER_ROLES,
    AreaGroup,
    EligibleBin,
    WasteRequest,
    WorkerAvailability,
    WorkerLoad,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)


def is_routable(request: WasteRequest, target_date: str) -> bool:
    """Approved, paid, not linked to any route, due on or before target_date."""
    return (
        request.is_eligible
        and request.is_unassigned
        and request.preferred_date <= target_date
    )


def _request_age_key(request: WasteRequest) -> tuple:
    created = request.created_at.isoformat() if request.created_at else ""
    return (request.preferred_date, created, request.request_id)


def eligible_requests_for_bin(
    store: InMemoryStore, bin_id: str, target_date: str
) -> List[WasteRequest]:
    """Routable requests for one bin, oldest first."""
    found = store.find_requests(lambda r: r.bin_id == bin_id and is_routable(r, target_date))
    return sorted(found, key=_request_age_key)


def list_eligible_areas(
    store: InMemoryStore,
    date: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> List[AreaGroup]:
    """
    Group routable requests by the area of their bin.
    Bins already held by a non-terminal route for the date are left out.
    estimated_duration = per-stop minutes x distinct bins.
    """
    target = parse_date(date)

    requests = sorted(
        store.find_requests(lambda r: is_routable(r, target)), key=_request_age_key
    )
    groups: Dict[str, AreaGroup] = {}
    bins_by_id: Dict[str, EligibleBin] = {}

    for req in requests:
        bin_ = store.get_bin(req.bin_id)
        if bin_ is None or not bin_.is_active:
            continue
        if store.bin_holder(bin_.bin_id, target) is not None:
            continue
        area = bin_.location.area
        group = groups.get(area)
        if group is None:
            group = AreaGroup(area=area, bins=[], total_requests=0, estimated_duration=0)
            groups[area] = group

        entry = bins_by_id.get(bin_.bin_id)
        if entry is None:
            entry = EligibleBin(bin=bin_, requests=[])
            bins_by_id[bin_.bin_id] = entry
            group.bins.append(entry)
            group.estimated_duration += policy.per_stop_minutes
        entry.requests.append(req)
        group.total_requests += 1

    areas = sorted(groups.values(), key=lambda g: g.area)
    logger.info(
        "Found %d routable requests across %d areas for %s",
        sum(g.total_requests for g in areas),
        len(areas),
        target,
    )
    return areas


def list_available_workers(
    store: InMemoryStore,
    date: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> WorkerAvailability:
    target = parse_date(date)
    workers = [w for w in store.list_workers() if w.role in WORKER_ROLES and w.is_active]

    available: List[WorkerLoad] = []
    assigned: List[WorkerLoad] = []
    for w in sorted(workers, key=lambda w: (w.name, w.worker_id)):
        load = store.active_route_count(w.worker_id, target)
        item = WorkerLoad(worker=w, current_load=load, available=load < policy.max_routes_per_worker)
        (available if item.available else assigned).append(item)

    logger.info(
        "Found %d available workers and %d assigned workers for %s",
        len(available),
        len(assigned),
        target,
    )
    return WorkerAvailability(available=available, assigned=assigned, total_workers=len(workers))
