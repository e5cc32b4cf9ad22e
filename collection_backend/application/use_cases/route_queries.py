"""
Read-side use cases: route listing, details, daily stats, the collector's
worklist for a day and their collection history. No mutation.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from collection_backend.application.config import DEFAULT_ROUTING_POLICY
from collection_backend.application.use_cases.route_lifecycle import load_route
from collection_backend.application.validation import (
    parse_date,
    require_admin,
    require_route_access,
)
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.errors import NotAuthorized, ValidationError
from collection_backend.domain.geo import distances_km
from collection_backend.domain.models import (
    ROUTE_STATUSES,
    WORKER_ROLES,
    Bin,
    Caller,
    CollectionEvent,
    Coordinates,
    Route,
    RouteBinEntry,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Page:
    items: list
    total: int
    page: int
    pages: int


@dataclass
class RoutePage(Page):
    stats: Dict[str, dict] = field(default_factory=dict)


@dataclass
class RouteStats:
    date: str
    total_routes: int
    routes_by_status: Dict[str, int]
    total_bins: int
    completed_bins: int
    total_workers: int
    estimated_duration: int
    actual_duration: int
    areas: List[str]
    worker_types: Dict[str, int]
    completion_rate: int
    efficiency: int


@dataclass
class CollectorStop:
    entry: RouteBinEntry
    bin: Optional[Bin]
    request_status: Optional[str]
    payment_status: Optional[str]
    distance_km: Optional[float] = None


@dataclass
class CollectorRoute:
    route: Route
    stops: List[CollectorStop]


def _check_paging(page: int, limit: int, policy: RoutingPolicy) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= limit <= policy.max_page_limit:
        raise ValidationError(f"limit must be between 1 and {policy.max_page_limit}")


def _paginate(items: Sequence[T], page: int, limit: int) -> Tuple[List[T], int]:
    start = (page - 1) * limit
    return list(items[start : start + limit]), math.ceil(len(items) / limit)


def _parse_statuses(status: Optional[str]) -> Optional[List[str]]:
    """'assigned' or 'assigned,in_progress' -> list; None -> no filter."""
    if not status:
        return None
    statuses = [s.strip() for s in status.split(",") if s.strip()]
    bad = [s for s in statuses if s not in ROUTE_STATUSES]
    if bad:
        raise ValidationError(
            f"Invalid status {', '.join(bad)}; must be one of {', '.join(ROUTE_STATUSES)}"
        )
    return statuses


def _newest_first(route: Route) -> tuple:
    return (route.assigned_date, route.created_at or _EPOCH)


def list_routes(
    store: InMemoryStore,
    caller: Caller,
    date: Optional[str] = None,
    status: Optional[str] = None,
    collector_id: Optional[str] = None,
    area: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> RoutePage:
    """Filtered, paged routes. Workers only ever see their own routes."""
    limit = limit or policy.default_page_limit
    _check_paging(page, limit, policy)
    statuses = _parse_statuses(status)
    target = parse_date(date) if date else None
    if not caller.is_admin:
        collector_id = caller.user_id

    def keep(r: Route) -> bool:
        return (
            (collector_id is None or r.collector_id == collector_id)
            and (target is None or r.assigned_date == target)
            and (statuses is None or r.status in statuses)
            and (area is None or r.area == area)
        )

    routes = sorted(store.list_routes(keep), key=_newest_first, reverse=True)

    stats: Dict[str, dict] = {}
    for r in routes:
        s = stats.setdefault(r.status, {"count": 0, "total_bins": 0, "completed_bins": 0})
        s["count"] += 1
        s["total_bins"] += r.total_bins
        s["completed_bins"] += r.completed_bins

    items, pages = _paginate(routes, page, limit)
    logger.debug("Retrieved %d of %d routes", len(items), len(routes))
    return RoutePage(items=items, total=len(routes), page=page, pages=pages, stats=stats)


def get_route(store: InMemoryStore, caller: Caller, route_id: str) -> Route:
    route = load_route(store, route_id)
    require_route_access(caller, route)
    return route


def get_route_stats(store: InMemoryStore, caller: Caller, date: Optional[str] = None) -> RouteStats:
    require_admin(caller, "view route statistics")
    target = parse_date(date)
    routes = store.list_routes(lambda r: r.assigned_date == target)

    by_status = {s: 0 for s in ROUTE_STATUSES}
    worker_types = {role: 0 for role in WORKER_ROLES}
    workers = set()
    areas: List[str] = []
    total_bins = completed_bins = estimated = actual = 0

    for r in routes:
        by_status[r.status] += 1
        total_bins += r.total_bins
        completed_bins += r.completed_bins
        estimated += r.estimated_duration
        actual += r.actual_duration or 0
        if r.area not in areas:
            areas.append(r.area)
        workers.add(r.collector_id)
        worker = store.get_worker(r.collector_id)
        if worker is not None and worker.role in worker_types:
            worker_types[worker.role] += 1

    completion = round(completed_bins / total_bins * 100) if total_bins > 0 else 0
    efficiency = round(estimated / actual * 100) if estimated > 0 and actual > 0 else 0
    logger.info("Generated stats for %s: %d routes, %d%% complete", target, len(routes), completion)
    return RouteStats(
        date=target,
        total_routes=len(routes),
        routes_by_status=by_status,
        total_bins=total_bins,
        completed_bins=completed_bins,
        total_workers=len(workers),
        estimated_duration=estimated,
        actual_duration=actual,
        areas=areas,
        worker_types=worker_types,
        completion_rate=completion,
        efficiency=efficiency,
    )


def get_collector_route(
    store: InMemoryStore,
    caller: Caller,
    collector_id: str,
    date: Optional[str] = None,
    position: Optional[Coordinates] = None,
) -> Optional[CollectorRoute]:
    """
    The collector's route for the day: newest non-terminal one, else newest of
    any status. None when nothing is assigned.

    Stops carry the snapshot as built plus live request/bin state; the snapshot
    is never rewritten here. With a position, each stop gets its distance in km.
    """
    if not caller.is_admin and caller.user_id != collector_id:
        raise NotAuthorized("Not authorized to access these tasks")
    target = parse_date(date)
    routes = store.list_routes(
        lambda r: r.collector_id == collector_id and r.assigned_date == target
    )
    if not routes:
        logger.info("No route assigned to collector %s for %s", collector_id, target)
        return None
    routes.sort(key=lambda r: (r.is_active, r.created_at or _EPOCH), reverse=True)
    route = routes[0]

    stops: List[CollectorStop] = []
    for entry in route.entries:
        req = store.get_request(entry.request_id)
        stops.append(
            CollectorStop(
                entry=entry,
                bin=store.get_bin(entry.bin_id),
                request_status=req.status if req else None,
                payment_status=req.payment_status if req else None,
            )
        )

    if position is not None:
        located = [s for s in stops if s.bin is not None]
        points = [(s.bin.location.coordinates.lat, s.bin.location.coordinates.lng) for s in located]
        for stop, d in zip(located, distances_km(position.lat, position.lng, points)):
            stop.distance_km = float(d)

    return CollectorRoute(route=route, stops=stops)


def collection_history(
    store: InMemoryStore,
    caller: Caller,
    page: int = 1,
    limit: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> Page:
    """The caller's own collection events, newest first."""
    limit = limit or policy.default_page_limit
    _check_paging(page, limit, policy)
    start = parse_date(start_date, "start_date") if start_date else None
    end = parse_date(end_date, "end_date") if end_date else None

    def keep(e: CollectionEvent) -> bool:
        day = e.created_at.date().isoformat()
        return (
            e.collector_id == caller.user_id
            and (start is None or day >= start)
            and (end is None or day <= end)
        )

    # appended in time order; reversing first keeps ties newest-first
    events = sorted(store.list_events(keep)[::-1], key=lambda e: e.created_at, reverse=True)
    items, pages = _paginate(events, page, limit)
    return Page(items=items, total=len(events), page=page, pages=pages)
