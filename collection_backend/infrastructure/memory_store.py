# ==========================================
# IN-MEMORY COLLECTION STORE
# ------------------------------------------
# Holds bins, workers, waste requests, routes
# and collection events in process memory.
# Volatile: resets when the service restarts.
#
# Guarantees the core relies on:
#  - transaction(): one writer at a time, and
#    every change made inside the block is
#    rolled back if the block raises.
#    Stored objects are never mutated in
#    place (writes store fresh copies), so the
#    snapshot is a shallow copy of the indexes
#    plus the event count.
#  - save_route(): optimistic version check.
#  - reserve_bin(): unique (bin_id, date) index
#    over non-terminal routes.
# ==========================================

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from collection_backend.domain.errors import BinAlreadyRouted, ConcurrentModification
from collection_backend.domain.models import (
    ACTIVE_ROUTE_STATUSES,
    Bin,
    CollectionEvent,
    Route,
    WasteRequest,
    Worker,
)

logger = logging.getLogger(__name__)


class InMemoryStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._bins: Dict[str, Bin] = {}
        self._workers: Dict[str, Worker] = {}
        self._requests: Dict[str, WasteRequest] = {}
        self._routes: Dict[str, Route] = {}
        self._events: List[CollectionEvent] = []
        # (bin_id, date) -> route_id
        self._bin_reservations: Dict[Tuple[str, str], str] = {}

    # --- transaction boundary ---

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self._lock:
            requests = dict(self._requests)
            routes = dict(self._routes)
            reservations = dict(self._bin_reservations)
            event_count = len(self._events)
            try:
                yield self
            except BaseException:
                self._requests = requests
                self._routes = routes
                self._bin_reservations = reservations
                del self._events[event_count:]
                logger.debug("Transaction rolled back")
                raise

    # --- external collaborator data (read-only for the core) ---

    def put_bin(self, bin_: Bin) -> None:
        with self._lock:
            self._bins[bin_.bin_id] = bin_

    def get_bin(self, bin_id: str) -> Optional[Bin]:
        return self._bins.get(bin_id)

    def list_bins(self) -> List[Bin]:
        with self._lock:
            return list(self._bins.values())

    def put_worker(self, worker: Worker) -> None:
        with self._lock:
            self._workers[worker.worker_id] = worker

    def get_worker(self, worker_id: str) -> Optional[Worker]:
        return self._workers.get(worker_id)

    def list_workers(self) -> List[Worker]:
        with self._lock:
            return list(self._workers.values())

    # --- waste requests ---

    def put_request(self, request: WasteRequest) -> None:
        with self._lock:
            self._requests[request.request_id] = copy.deepcopy(request)

    def get_request(self, request_id: str) -> Optional[WasteRequest]:
        with self._lock:
            found = self._requests.get(request_id)
            return copy.deepcopy(found) if found is not None else None

    def find_requests(self, predicate: Callable[[WasteRequest], bool]) -> List[WasteRequest]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._requests.values() if predicate(r)]

    # --- routes ---

    def add_route(self, route: Route) -> Route:
        with self._lock:
            if route.route_id in self._routes:
                raise ValueError(f"Route {route.route_id} already exists")
            stored = copy.deepcopy(route)
            stored.version = 1
            self._routes[route.route_id] = stored
            return copy.deepcopy(stored)

    def get_route(self, route_id: str) -> Optional[Route]:
        with self._lock:
            found = self._routes.get(route_id)
            return copy.deepcopy(found) if found is not None else None

    def save_route(self, route: Route) -> Route:
        """Persist route if nobody saved it since it was read. Bumps version."""
        with self._lock:
            current = self._routes.get(route.route_id)
            if current is None:
                raise KeyError(route.route_id)
            if current.version != route.version:
                raise ConcurrentModification(route.route_id, route.version, current.version)
            stored = copy.deepcopy(route)
            stored.version = current.version + 1
            self._routes[route.route_id] = stored
            route.version = stored.version
            return copy.deepcopy(stored)

    def list_routes(self, predicate: Callable[[Route], bool] = lambda r: True) -> List[Route]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._routes.values() if predicate(r)]

    def active_route_count(self, worker_id: str, date: str) -> int:
        with self._lock:
            return sum(
                1
                for r in self._routes.values()
                if r.collector_id == worker_id
                and r.assigned_date == date
                and r.status in ACTIVE_ROUTE_STATUSES
            )

    # --- unique (bin, date) index ---

    def bin_holder(self, bin_id: str, date: str) -> Optional[str]:
        return self._bin_reservations.get((bin_id, date))

    def reserve_bin(self, bin_id: str, date: str, route_id: str) -> None:
        with self._lock:
            holder = self._bin_reservations.get((bin_id, date))
            if holder is not None and holder != route_id:
                raise BinAlreadyRouted(bin_id, date, holder)
            self._bin_reservations[(bin_id, date)] = route_id

    def release_bins(self, route_id: str) -> int:
        with self._lock:
            keys = [k for k, v in self._bin_reservations.items() if v == route_id]
            for k in keys:
                del self._bin_reservations[k]
            return len(keys)

    # --- collection events (append-only) ---

    def add_event(self, event: CollectionEvent) -> None:
        with self._lock:
            self._events.append(event)

    def list_events(
        self, predicate: Callable[[CollectionEvent], bool] = lambda e: True
    ) -> List[CollectionEvent]:
        with self._lock:
            return [e for e in self._events if predicate(e)]
