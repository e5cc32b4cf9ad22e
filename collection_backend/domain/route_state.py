"""
Route status state machine. Pure, in-place mutation on the Route aggregate.
Store access, authorization and request reverts live in the application layer.
"""

from datetime import datetime
from typing import Optional

from collection_backend.domain.errors import InvalidTransition
from collection_backend.domain.models import Route

# (from_status, action) -> to_status.
# "reopen" is checked apart: any status except assigned.
TRANSITIONS = {
    ("assigned", "start"): "in_progress",
    ("in_progress", "complete"): "completed",
    ("assigned", "cancel"): "cancelled",
    ("in_progress", "cancel"): "cancelled",
}

ACTION_BY_TARGET = {
    "in_progress": "start",
    "completed": "complete",
    "cancelled": "cancel",
    "assigned": "reopen",
}


def _minutes_between(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 60)


def check_transition(route: Route, action: str) -> str:
    """Return the target status for action, or raise InvalidTransition."""
    if action == "reopen":
        if route.status == "assigned":
            raise InvalidTransition(route.route_id, route.status, "assigned", "route is already assigned")
        return "assigned"
    target = TRANSITIONS.get((route.status, action))
    if target is None:
        wanted = next((t for t, a in ACTION_BY_TARGET.items() if a == action), action)
        raise InvalidTransition(route.route_id, route.status, wanted)
    if action == "complete" and route.completed_bins != route.total_bins:
        raise InvalidTransition(
            route.route_id,
            route.status,
            target,
            f"{route.completed_bins}/{route.total_bins} bins collected",
        )
    return target


def start(route: Route, now: datetime) -> None:
    route.status = check_transition(route, "start")
    if route.start_time is None:
        route.start_time = now


def complete(route: Route, now: datetime) -> None:
    route.status = check_transition(route, "complete")
    route.end_time = now
    if route.start_time is not None:
        route.actual_duration = _minutes_between(route.start_time, now)


def cancel(route: Route, reason: str) -> None:
    route.status = check_transition(route, "cancel")
    append_note(route, f"Route Cancelled: {reason}")


def reopen(route: Route) -> None:
    check_transition(route, "reopen")
    route.status = "assigned"
    route.start_time = None
    route.end_time = None
    route.actual_duration = None


def append_note(route: Route, note: str) -> None:
    route.notes = f"{route.notes}\n\n{note}" if route.notes else note


def recompute_progress(route: Route, now: datetime) -> Optional[str]:
    """
    Recount collected stops. Auto-complete when every stop is collected and the
    route is in_progress. Returns the new status when it changed, else None.
    """
    route.completed_bins = sum(1 for e in route.entries if e.collection_status == "collected")
    route.total_bins = len(route.entries)
    if route.completed_bins == route.total_bins and route.status == "in_progress":
        complete(route, now)
        return route.status
    return None
