import re

import pytest

from factories import (
    ADMIN,
    AREA,
    COLOMBO_BINS,
    DATE,
    DEHIWALA_BIN,
    WORKER,
    make_bin,
    make_request,
)

from collection_backend.application.events import ROUTE_ASSIGNED
from collection_backend.application.use_cases.create_route import create_route
from collection_backend.domain.errors import (
    BinAlreadyRouted,
    BinNotInArea,
    NoBinsSelected,
    NotAuthorized,
    RequestNoLongerEligible,
    ValidationError,
    WorkerNotFound,
    WorkerUnavailable,
)
from collection_backend.domain.models import StopOverride, Worker

BINS = list(COLOMBO_BINS)


def test_create_route(store):
    result = create_route(store, ADMIN, "w-1", DATE, AREA, BINS)
    route = result.route

    assert re.fullmatch(r"RT-\d+-[A-Z0-9]{6}", route.route_id)
    assert route.status == "assigned"
    assert route.total_bins == 3 and route.completed_bins == 0
    assert route.estimated_duration == 45
    assert route.version == 1
    assert [e.bin_id for e in route.entries] == BINS
    assert [e.sequence for e in route.entries] == [1, 2, 3]
    assert all(e.collection_status == "pending" for e in route.entries)
    assert route.notes == f"Route created for {AREA} area on {DATE}"

    req = store.get_request("WR-1")
    assert req.route_id == route.route_id
    assert req.assigned_worker == "w-1"
    assert req.scheduled_date == DATE
    assert req.assigned_at is not None

    assert [e.kind for e in result.events] == [ROUTE_ASSIGNED]
    assert result.events[0].recipient_id == "w-1"


def test_sequence_follows_caller_order(store):
    route = create_route(store, ADMIN, "w-1", DATE, AREA, list(reversed(BINS))).route
    assert [e.bin_id for e in route.entries] == list(reversed(BINS))
    assert [e.sequence for e in route.entries] == [1, 2, 3]


def test_customer_snapshot_from_oldest_request(store):
    store.put_request(make_request("WR-0", BINS[0], minutes=-30, notes="gate code 1234"))
    route = create_route(store, ADMIN, "w-1", DATE, AREA, BINS[:1]).route
    entry = route.entries[0]
    assert entry.request_id == "WR-0"
    assert entry.customer_info.name == "Customer WR-0"
    assert entry.customer_info.notes == "gate code 1234"
    # the younger request stays routable for another day
    assert store.get_request("WR-1").route_id is None


def test_snapshot_does_not_follow_request_edits(store):
    route = create_route(store, ADMIN, "w-1", DATE, AREA, BINS).route
    req = store.get_request("WR-1")
    req.notes = "edited after routing"
    store.put_request(req)
    assert store.get_route(route.route_id).entries[0].customer_info.notes == ""


def test_overrides_and_urgent_priority(store):
    store.put_request(make_request("WR-U", BINS[1], minutes=-5, urgent=True))
    overrides = {BINS[0]: StopOverride(estimated_time=25, priority="urgent")}
    route = create_route(store, ADMIN, "w-1", DATE, AREA, BINS, overrides=overrides).route
    assert [e.priority for e in route.entries] == ["urgent", "high", "normal"]
    assert [e.estimated_time for e in route.entries] == [25, 15, 15]
    assert route.estimated_duration == 55


@pytest.mark.parametrize(
    "override",
    [StopOverride(estimated_time=0), StopOverride(priority="asap")],
)
def test_invalid_override(store, override):
    with pytest.raises(ValidationError):
        create_route(store, ADMIN, "w-1", DATE, AREA, BINS, overrides={BINS[0]: override})


def test_override_for_unselected_bin(store):
    with pytest.raises(ValidationError):
        create_route(
            store, ADMIN, "w-1", DATE, AREA, BINS[:1], overrides={BINS[1]: StopOverride(priority="high")}
        )


def test_custom_notes(store):
    route = create_route(store, ADMIN, "w-1", DATE, AREA, BINS, notes="  Start from the north end ").route
    assert route.notes == "Start from the north end"


def test_no_bins_selected(store):
    with pytest.raises(NoBinsSelected):
        create_route(store, ADMIN, "w-1", DATE, AREA, [])
    with pytest.raises(NoBinsSelected):
        create_route(store, ADMIN, "w-1", DATE, AREA, ["  "])


def test_duplicate_bins(store):
    with pytest.raises(ValidationError):
        create_route(store, ADMIN, "w-1", DATE, AREA, [BINS[0], BINS[0]])


@pytest.mark.parametrize(
    "field, value",
    [("collector_id", ""), ("assigned_date", ""), ("assigned_date", "2026/10/20"), ("area", " ")],
)
def test_missing_or_bad_fields(store, field, value):
    kwargs = dict(collector_id="w-1", assigned_date=DATE, area=AREA, bin_ids=BINS)
    kwargs[field] = value
    with pytest.raises(ValidationError):
        create_route(store, ADMIN, **kwargs)


def test_notes_too_long(store):
    with pytest.raises(ValidationError):
        create_route(store, ADMIN, "w-1", DATE, AREA, BINS, notes="x" * 501)


def test_only_admins_create_routes(store):
    with pytest.raises(NotAuthorized):
        create_route(store, WORKER, "w-1", DATE, AREA, BINS)


def test_unknown_or_non_worker_collector(store):
    store.put_worker(Worker("a-1", "Admin", "admin@example.com", "admin"))
    with pytest.raises(WorkerNotFound):
        create_route(store, ADMIN, "nobody", DATE, AREA, BINS)
    with pytest.raises(WorkerNotFound):
        create_route(store, ADMIN, "a-1", DATE, AREA, BINS)


def test_worker_at_capacity(store, route):
    store.put_bin(make_bin("BIN-EXTRA"))
    store.put_request(make_request("WR-E", "BIN-EXTRA"))
    with pytest.raises(WorkerUnavailable):
        create_route(store, ADMIN, "w-1", DATE, AREA, ["BIN-EXTRA"])
    # the same worker is free on another day
    store.put_request(make_request("WR-F", "BIN-EXTRA", preferred_date="2026-10-21"))
    assert create_route(store, ADMIN, "w-1", "2026-10-21", AREA, ["BIN-EXTRA"]).route.total_bins == 1


def test_bin_already_routed(store, route):
    store.put_request(make_request("WR-7", BINS[0], minutes=20))
    with pytest.raises(BinAlreadyRouted) as exc:
        create_route(store, ADMIN, "w-2", DATE, AREA, [BINS[0]])
    assert exc.value.route_id == route.route_id


def test_bin_not_in_area(store):
    with pytest.raises(BinNotInArea):
        create_route(store, ADMIN, "w-1", DATE, AREA, [DEHIWALA_BIN])
    with pytest.raises(BinNotInArea):
        create_route(store, ADMIN, "w-1", DATE, AREA, ["BIN-UNKNOWN"])


def test_bin_without_routable_request(store):
    store.put_bin(make_bin("BIN-UNPAID"))
    store.put_request(make_request("WR-U", "BIN-UNPAID", payment_status="pending"))
    with pytest.raises(RequestNoLongerEligible):
        create_route(store, ADMIN, "w-1", DATE, AREA, ["BIN-UNPAID"])


def test_failed_creation_changes_nothing(store):
    with pytest.raises(BinNotInArea):
        create_route(store, ADMIN, "w-1", DATE, AREA, [BINS[0], DEHIWALA_BIN])
    assert store.list_routes() == []
    assert store.bin_holder(BINS[0], DATE) is None
    assert store.get_request("WR-1").route_id is None
    # and the worker is still free
    assert create_route(store, ADMIN, "w-1", DATE, AREA, BINS).route.total_bins == 3
