"""
Route lifecycle use case: start / complete / cancel / reopen.

Every transition runs inside one store transaction and is saved with the
route's version; a cancellation either reverts every pending stop's request
or nothing at all.
"""

import logging
from typing import List, Optional

from collection_backend.application.config import DEFAULT_ROUTING_POLICY
from collection_backend.application.events import (
    ROUTE_CANCELLED,
    ROUTE_COMPLETED,
    ROUTE_REOPENED,
    ROUTE_STARTED,
    make_event,
)
from collection_backend.application.validation import (
    check_length,
    require_admin,
    require_route_access,
    require_text,
    utcnow,
)
from collection_backend.domain import route_state
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.errors import (
    PartialCancellation,
    RouteNotFound,
    ValidationError,
    WorkerUnavailable,
)
from collection_backend.domain.models import (
    ROUTE_STATUSES,
    Caller,
    DomainEvent,
    Route,
    RouteResult,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)


def load_route(store: InMemoryStore, route_id: str) -> Route:
    route = store.get_route(route_id)
    if route is None:
        raise RouteNotFound(route_id)
    return route


def release_pending_requests(store: InMemoryStore, route: Route) -> List[str]:
    """
    Put every pending stop's request back to status=pending, unassigned.
    Raises PartialCancellation (inside the caller's transaction) if any request
    could not be reverted.
    """
    reverted: List[str] = []
    missing: List[str] = []
    for entry in route.pending_entries():
        req = store.get_request(entry.request_id)
        if req is None:
            missing.append(entry.request_id)
            continue
        if req.route_id not in (None, route.route_id):
            # ya enlazada a otra ruta
            continue
        req.status = "pending"
        req.assigned_worker = None
        req.assigned_at = None
        req.route_id = None
        req.scheduled_date = None
        store.put_request(req)
        reverted.append(req.request_id)

    for request_id in reverted:
        check = store.get_request(request_id)
        if check is None or check.status != "pending" or check.route_id is not None:
            missing.append(request_id)
    if missing:
        raise PartialCancellation(route.route_id, missing)
    return reverted


def _transition(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    action: str,
    note: Optional[str] = None,
    reason: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> RouteResult:
    now = utcnow()
    events: List[DomainEvent] = []
    with store.transaction():
        route = load_route(store, route_id)
        old_status = route.status

        if action == "start":
            require_route_access(caller, route)
            route_state.start(route, now)
            events.append(make_event(ROUTE_STARTED, route_id, None, now, collector_id=route.collector_id))
        elif action == "complete":
            require_route_access(caller, route)
            route_state.complete(route, now)
            store.release_bins(route_id)
            events.append(
                make_event(
                    ROUTE_COMPLETED,
                    route_id,
                    None,
                    now,
                    collector_id=route.collector_id,
                    actual_duration=route.actual_duration,
                )
            )
        elif action == "cancel":
            require_admin(caller, "cancel routes")
            route_state.cancel(route, reason)
            reverted = release_pending_requests(store, route)
            store.release_bins(route_id)
            events.append(
                make_event(ROUTE_CANCELLED, route_id, route.collector_id, now, reason=reason)
            )
            logger.info("Cancelled route %s, unassigned %d requests", route_id, len(reverted))
        elif action == "reopen":
            require_admin(caller, "reopen routes")
            own = 1 if route.is_active else 0
            load = store.active_route_count(route.collector_id, route.assigned_date) - own
            if load >= policy.max_routes_per_worker:
                raise WorkerUnavailable(route.collector_id, route.assigned_date)
            route_state.reopen(route)
            release_pending_requests(store, route)
            store.release_bins(route_id)
            for entry in route.entries:
                store.reserve_bin(entry.bin_id, route.assigned_date, route_id)
            events.append(make_event(ROUTE_REOPENED, route_id, route.collector_id, now))
        else:
            raise ValidationError(f"Unknown route action {action!r}")

        if note:
            route_state.append_note(route, f"Status Update: {note}")
        route = store.save_route(route)

    logger.info("Updated route %s status from %s to %s", route_id, old_status, route.status)
    return RouteResult(route=route, events=events)


def start_route(store: InMemoryStore, caller: Caller, route_id: str) -> RouteResult:
    return _transition(store, caller, route_id, "start")


def complete_route(store: InMemoryStore, caller: Caller, route_id: str) -> RouteResult:
    return _transition(store, caller, route_id, "complete")


def cancel_route(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    reason: Optional[str],
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> RouteResult:
    reason = require_text(reason, "reason", policy.notes_max_length)
    return _transition(store, caller, route_id, "cancel", reason=reason)


def reopen_route(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    note: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> RouteResult:
    return _transition(store, caller, route_id, "reopen", note=note, policy=policy)


def update_route_status(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    new_status: str,
    notes: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> RouteResult:
    """
    Move a route to new_status. Cancelling uses notes as the (required) reason;
    other targets append notes as "Status Update: ...".
    """
    if new_status not in ROUTE_STATUSES:
        raise ValidationError(
            f"Invalid status {new_status!r}; allowed: {', '.join(ROUTE_STATUSES)}"
        )
    notes = check_length(notes, "notes", policy.notes_max_length) or None
    action = route_state.ACTION_BY_TARGET[new_status]
    if action == "cancel":
        return cancel_route(store, caller, route_id, notes, policy)
    return _transition(store, caller, route_id, action, note=notes, policy=policy)
