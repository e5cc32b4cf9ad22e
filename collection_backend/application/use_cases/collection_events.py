"""
Collection event processor: scan, manual entry, issue report.

Each call closes out at most one pending stop. The "still pending" check and
the state change happen in the same store transaction, so a second call for
the same (route, bin) gets AlreadyProcessed and changes nothing.
Geolocation is optional and the proximity check is advisory only.
"""

import logging
from typing import List, Optional

from collection_backend.application.config import DEFAULT_MANUAL_REASON, DEFAULT_ROUTING_POLICY
from collection_backend.application.events import (
    BIN_COLLECTED,
    ISSUE_REPORTED,
    ROUTE_COMPLETED,
    ROUTE_STARTED,
    make_event,
)
from collection_backend.application.use_cases.route_lifecycle import load_route
from collection_backend.application.validation import (
    check_length,
    generate_code,
    require_route_access,
    require_text,
    utcnow,
)
from collection_backend.domain import route_state
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.errors import (
    AlreadyProcessed,
    EntryNotFound,
    InvalidTransition,
    RequestNoLongerEligible,
    ValidationError,
)
from collection_backend.domain.geo import validate_proximity
from collection_backend.domain.models import (
    ISSUE_TYPES,
    Caller,
    CollectionEvent,
    CollectionIssue,
    CollectionResult,
    DomainEvent,
    GeoSnapshot,
    ProximityCheck,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)


def _validate_location(location: Optional[GeoSnapshot]) -> None:
    if location is None:
        return
    lat, lng = location.coordinates.lat, location.coordinates.lng
    if not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180")
    if location.accuracy is not None and not location.accuracy >= 0:
        raise ValidationError("Accuracy cannot be negative")


def _check_proximity(
    store: InMemoryStore,
    bin_id: str,
    location: Optional[GeoSnapshot],
    policy: RoutingPolicy,
) -> Optional[ProximityCheck]:
    if location is None:
        return None
    bin_ = store.get_bin(bin_id)
    if bin_ is None:
        return None
    check = validate_proximity(
        location.coordinates, bin_.location.coordinates, policy.max_collection_distance_km
    )
    if not check.is_valid:
        logger.warning(
            "Collection for bin %s recorded %.2f km from the bin (limit %.2f km)",
            bin_id,
            check.distance,
            policy.max_collection_distance_km,
        )
    return check


def _record(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    bin_id: str,
    outcome: str,
    location: Optional[GeoSnapshot],
    policy: RoutingPolicy,
    method: Optional[str] = None,
    reason: Optional[str] = None,
    issue: Optional[CollectionIssue] = None,
    notes: str = "",
) -> CollectionResult:
    route_id = require_text(route_id, "route_id")
    bin_id = require_text(bin_id, "bin_id")
    _validate_location(location)

    now = utcnow()
    events: List[DomainEvent] = []
    with store.transaction():
        route = load_route(store, route_id)
        require_route_access(caller, route)
        if not route.is_active:
            raise InvalidTransition(route_id, route.status, "in_progress", "route is closed")
        entry = route.entry_for(bin_id)
        if entry is None:
            raise EntryNotFound(route_id, bin_id)
        if entry.collection_status != "pending":
            raise AlreadyProcessed(route_id, bin_id, entry.collection_status)

        request = store.get_request(entry.request_id)
        if outcome == "collected" and (request is None or not request.is_eligible):
            raise RequestNoLongerEligible(bin_id, entry.request_id)

        if route.status == "assigned":
            route_state.start(route, now)
            events.append(
                make_event(ROUTE_STARTED, route_id, None, now, collector_id=route.collector_id)
            )

        event = CollectionEvent(
            collection_id=generate_code("COL"),
            route_id=route_id,
            bin_id=bin_id,
            request_id=entry.request_id,
            collector_id=caller.user_id,
            outcome=outcome,
            created_at=now,
            method=method,
            reason=reason,
            issue=issue,
            location=location,
            proximity=_check_proximity(store, bin_id, location, policy),
            notes=notes,
        )
        store.add_event(event)

        entry.collection_status = outcome
        if outcome == "collected":
            entry.completed_at = now
            request.status = "completed"
            store.put_request(request)
        request_status = request.status if request is not None else "unknown"

        if route_state.recompute_progress(route, now) == "completed":
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
        route = store.save_route(route)

    if outcome == "collected":
        events.append(
            make_event(
                BIN_COLLECTED,
                route_id,
                request.user_id,
                now,
                bin_id=bin_id,
                request_id=request.request_id,
                method=method,
            )
        )
    elif issue is not None and issue.requires_admin:
        events.append(
            make_event(
                ISSUE_REPORTED,
                route_id,
                None,
                now,
                bin_id=bin_id,
                issue_type=issue.issue_type,
                description=issue.description,
                reported_by=caller.user_id,
            )
        )
    return CollectionResult(event=event, route=route, request_status=request_status, events=events)


def scan_collection(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    bin_id: str,
    location: Optional[GeoSnapshot] = None,
    notes: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> CollectionResult:
    notes = check_length(notes, "notes", policy.notes_max_length)
    result = _record(
        store, caller, route_id, bin_id, "collected", location, policy, method="scan", notes=notes
    )
    logger.info(
        "Bin %s collected by scan on route %s (%d/%d)",
        bin_id,
        route_id,
        result.route.completed_bins,
        result.route.total_bins,
    )
    return result


def manual_collection(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    bin_id: str,
    reason: Optional[str] = None,
    location: Optional[GeoSnapshot] = None,
    notes: Optional[str] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> CollectionResult:
    """Used when the QR scan fails or is unavailable; reason is kept on the event."""
    reason = check_length(reason, "reason", policy.notes_max_length) or DEFAULT_MANUAL_REASON
    notes = check_length(notes, "notes", policy.notes_max_length)
    text = f"Manual entry - Reason: {reason}"
    if notes:
        text = f"{text}. Notes: {notes}"
    result = _record(
        store,
        caller,
        route_id,
        bin_id,
        "collected",
        location,
        policy,
        method="manual",
        reason=reason,
        notes=text,
    )
    logger.info(
        "Bin %s collected manually on route %s (%s)", bin_id, route_id, reason
    )
    return result


def report_issue(
    store: InMemoryStore,
    caller: Caller,
    route_id: str,
    bin_id: str,
    issue_type: str,
    description: Optional[str] = None,
    requires_admin: bool = True,
    location: Optional[GeoSnapshot] = None,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> CollectionResult:
    """
    Mark the stop failed. Terminal for that stop: never counted in
    completed_bins and never retried automatically.
    """
    if issue_type not in ISSUE_TYPES:
        raise ValidationError(
            f"Invalid issue type {issue_type!r}; allowed: {', '.join(sorted(ISSUE_TYPES))}"
        )
    description = check_length(description, "description", policy.notes_max_length)
    issue = CollectionIssue(
        issue_type=issue_type,
        description=description,
        requires_admin=bool(requires_admin),
        reported_at=utcnow(),
    )
    result = _record(
        store,
        caller,
        route_id,
        bin_id,
        "failed",
        location,
        policy,
        issue=issue,
        notes=f"Issue reported: {issue_type} - {description}",
    )
    logger.info("Issue %s reported for bin %s on route %s", issue_type, bin_id, route_id)
    return result
