"""
Typed errors for route building, lifecycle and collection events.

All derive from RouteError (a ValueError) so callers that only know the
"ValueError -> 400" convention keep working; the api layer maps each type to
its own status code.
"""


class RouteError(ValueError):
    code = "route_error"


# --- validation ---


class ValidationError(RouteError):
    code = "validation_error"


class NoBinsSelected(ValidationError):
    code = "no_bins_selected"

    def __init__(self, message: str = "At least one bin must be selected"):
        super().__init__(message)


class BinNotInArea(ValidationError):
    code = "bin_not_in_area"

    def __init__(self, bin_id: str, area: str):
        self.bin_id = bin_id
        self.area = area
        super().__init__(f"Bin {bin_id} is not an active bin in area {area!r}")


# --- auth precondition ---


class NotAuthorized(RouteError):
    code = "not_authorized"


# --- not found ---


class RouteNotFound(RouteError):
    code = "route_not_found"

    def __init__(self, route_id: str):
        self.route_id = route_id
        super().__init__(f"Route {route_id} not found")


class EntryNotFound(RouteError):
    code = "entry_not_found"

    def __init__(self, route_id: str, bin_id: str):
        self.route_id = route_id
        self.bin_id = bin_id
        super().__init__(f"Bin {bin_id} is not part of route {route_id}")


class WorkerNotFound(RouteError):
    code = "worker_not_found"

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        super().__init__(f"Invalid collector ID {worker_id} or collector is not a worker")


# --- consistency ---


class ConsistencyError(RouteError):
    code = "consistency_error"


class WorkerUnavailable(ConsistencyError):
    code = "worker_unavailable"

    def __init__(self, worker_id: str, date: str):
        self.worker_id = worker_id
        self.date = date
        super().__init__(f"Collector {worker_id} already has a route assigned for {date}")


class BinAlreadyRouted(ConsistencyError):
    code = "bin_already_routed"

    def __init__(self, bin_id: str, date: str, route_id: str):
        self.bin_id = bin_id
        self.date = date
        self.route_id = route_id
        super().__init__(f"Bin {bin_id} is already on route {route_id} for {date}")


class AlreadyProcessed(ConsistencyError):
    code = "already_processed"

    def __init__(self, route_id: str, bin_id: str, status: str):
        self.route_id = route_id
        self.bin_id = bin_id
        self.status = status
        super().__init__(f"Bin {bin_id} on route {route_id} is already {status}")


class RequestNoLongerEligible(ConsistencyError):
    code = "request_no_longer_eligible"

    def __init__(self, bin_id: str, request_id: str | None = None):
        self.bin_id = bin_id
        self.request_id = request_id
        if request_id:
            msg = f"Request {request_id} for bin {bin_id} is no longer approved and paid"
        else:
            msg = f"No approved and paid collection request found for bin {bin_id}"
        super().__init__(msg)


class InvalidTransition(ConsistencyError):
    code = "invalid_transition"

    def __init__(self, route_id: str, current: str, target: str, detail: str = ""):
        self.route_id = route_id
        self.current = current
        self.target = target
        msg = f"Route {route_id} cannot move from {current} to {target}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class ConcurrentModification(ConsistencyError):
    code = "concurrent_modification"

    def __init__(self, route_id: str, expected: int, actual: int):
        self.route_id = route_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Route {route_id} was modified concurrently (expected version {expected}, found {actual})"
        )


# --- fatal ---


class PartialCancellation(RouteError):
    code = "partial_cancellation"

    def __init__(self, route_id: str, missing_request_ids: list[str]):
        self.route_id = route_id
        self.missing_request_ids = missing_request_ids
        super().__init__(
            f"Cancelling route {route_id} could not revert requests: {', '.join(missing_request_ids)}"
        )
