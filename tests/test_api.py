import pytest
from fastapi.testclient import TestClient

from factories import AREA, COLOMBO_BINS, DATE, DEHIWALA_BIN, build_store

from collection_backend.api.main import create_app
from collection_backend.application.events import (
    BIN_COLLECTED,
    ISSUE_REPORTED,
    ROUTE_ASSIGNED,
    ROUTE_CANCELLED,
    EventBus,
)
from collection_backend.domain.constraints import RoutingPolicy

BINS = list(COLOMBO_BINS)
ADMIN_H = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
WORKER_H = {"X-User-Id": "w-1", "X-User-Role": "wc1"}
OTHER_H = {"X-User-Id": "w-2", "X-User-Role": "wc2"}


class RecordingDispatcher:
    def __init__(self):
        self.events = []

    def dispatch(self, event):
        self.events.append(event)


class FailingIssueDispatcher:
    def dispatch(self, event):
        if event.kind == ISSUE_REPORTED:
            raise RuntimeError("mail relay down")


@pytest.fixture
def recorder():
    return RecordingDispatcher()


@pytest.fixture
def client(recorder):
    return TestClient(create_app(store=build_store(), event_bus=EventBus([recorder])))


def _create(client, collector_id="w-1", bins=None, **extra):
    body = {
        "collector_id": collector_id,
        "assigned_date": DATE,
        "area": AREA,
        "selected_bins": BINS if bins is None else bins,
    }
    body.update(extra)
    return client.post("/routes", json=body, headers=ADMIN_H)


def _code(response):
    return response.json()["detail"]["code"]


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_missing_identity(client):
    assert client.get("/routes").status_code == 401
    assert client.get("/routes", headers={"X-User-Id": "u-1"}).status_code == 401


def test_unknown_role(client):
    response = client.get("/routes", headers={"X-User-Id": "u-1", "X-User-Role": "customer"})
    assert response.status_code == 403


def test_bins_by_area(client):
    response = client.get("/routes/bins-by-area", params={"date": DATE}, headers=ADMIN_H)
    assert response.status_code == 200
    body = response.json()
    assert body["date"] == DATE
    assert [a["area"] for a in body["areas"]] == [AREA, "Dehiwala"]
    colombo = body["areas"][0]
    assert colombo["estimated_duration"] == 45
    assert colombo["bins"][0]["bin"]["location"]["area"] == AREA
    assert colombo["bins"][0]["requests"][0]["request_id"] == "WR-1"


def test_bins_by_area_empty_day(client):
    response = client.get("/routes/bins-by-area", params={"date": "2026-10-01"}, headers=ADMIN_H)
    assert response.status_code == 200
    assert response.json()["areas"] == []
    assert response.json()["message"] == "No approved requests found for the selected date"


def test_planning_endpoints_are_admin_only(client):
    response = client.get("/routes/bins-by-area", headers=WORKER_H)
    assert response.status_code == 403
    assert _code(response) == "not_authorized"
    assert client.get("/routes/available-workers", headers=WORKER_H).status_code == 403


def test_bad_date(client):
    response = client.get("/routes/bins-by-area", params={"date": "tomorrow"}, headers=ADMIN_H)
    assert response.status_code == 400
    assert _code(response) == "validation_error"


def test_available_workers(client):
    _create(client)
    response = client.get("/routes/available-workers", params={"date": DATE}, headers=ADMIN_H)
    body = response.json()
    assert response.status_code == 200
    assert [w["worker"]["worker_id"] for w in body["available"]] == ["w-2"]
    assert body["assigned"][0]["current_load"] == 1
    assert body["total_workers"] == 2


def test_create_route(client, recorder):
    response = _create(client, bin_overrides={BINS[0]: {"priority": "urgent", "estimated_time": 30}})
    assert response.status_code == 201
    route = response.json()["route"]
    assert route["status"] == "assigned"
    assert route["total_bins"] == 3
    assert route["estimated_duration"] == 60
    assert route["entries"][0]["priority"] == "urgent"
    assert route["entries"][0]["customer_info"]["name"] == "Customer WR-1"
    assert response.json()["warnings"] == []
    assert [e.kind for e in recorder.events] == [ROUTE_ASSIGNED]


@pytest.mark.parametrize(
    "kwargs, status, code",
    [
        ({"bins": []}, 400, "no_bins_selected"),
        ({"bins": [DEHIWALA_BIN]}, 400, "bin_not_in_area"),
        ({"collector_id": "ghost"}, 404, "worker_not_found"),
    ],
)
def test_create_route_errors(client, kwargs, status, code):
    response = _create(client, **kwargs)
    assert response.status_code == status
    assert _code(response) == code


def test_create_route_conflicts(client):
    assert _create(client).status_code == 201
    response = _create(client, bins=[BINS[0]])
    assert response.status_code == 409
    assert _code(response) == "worker_unavailable"
    response = _create(client, collector_id="w-2", bins=[BINS[0]])
    assert response.status_code == 409
    assert _code(response) == "bin_already_routed"


def test_create_route_as_worker(client):
    response = client.post(
        "/routes",
        json={"collector_id": "w-1", "assigned_date": DATE, "area": AREA, "selected_bins": BINS},
        headers=WORKER_H,
    )
    assert response.status_code == 403


def test_scan_flow(client, recorder):
    route_id = _create(client).json()["route"]["route_id"]
    body = {
        "route_id": route_id,
        "bin_id": BINS[0],
        "location_data": {"coordinates": {"lat": 6.9003, "lng": 79.8502}, "accuracy": 4.5},
    }
    response = client.post("/collection/scan", json=body, headers=WORKER_H)
    assert response.status_code == 200
    data = response.json()
    assert data["route_progress"] == {"completed": 1, "total": 3, "route_status": "in_progress"}
    assert data["waste_request_status"] == "completed"
    assert data["collection"]["method"] == "scan"
    assert data["collection"]["proximity"]["is_valid"] is True
    assert data["collection"]["location"]["coordinates"]["lat"] == 6.9003
    assert BIN_COLLECTED in [e.kind for e in recorder.events]

    again = client.post("/collection/scan", json=body, headers=WORKER_H)
    assert again.status_code == 409
    assert _code(again) == "already_processed"


def test_scan_invalid_coordinates(client):
    route_id = _create(client).json()["route"]["route_id"]
    body = {
        "route_id": route_id,
        "bin_id": BINS[0],
        "location_data": {"coordinates": {"lat": 91, "lng": 79.85}},
    }
    response = client.post("/collection/scan", json=body, headers=WORKER_H)
    assert response.status_code == 400


def test_scan_by_other_worker(client):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.post(
        "/collection/scan", json={"route_id": route_id, "bin_id": BINS[0]}, headers=OTHER_H
    )
    assert response.status_code == 403


def test_scan_unknown_bin_on_route(client):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.post(
        "/collection/scan", json={"route_id": route_id, "bin_id": DEHIWALA_BIN}, headers=WORKER_H
    )
    assert response.status_code == 404
    assert _code(response) == "entry_not_found"


def test_manual_collection(client):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.post(
        "/collection/manual",
        json={"route_id": route_id, "bin_id": BINS[1], "reason": "QR faded"},
        headers=WORKER_H,
    )
    assert response.status_code == 200
    assert response.json()["collection"]["reason"] == "QR faded"
    assert response.json()["collection"]["method"] == "manual"


def test_report_issue_when_admin_notification_fails():
    store = build_store()
    app = create_app(store=store, event_bus=EventBus([FailingIssueDispatcher()]))
    client = TestClient(app)
    route_id = _create(client).json()["route"]["route_id"]

    response = client.post(
        "/collection/report-issue",
        json={
            "route_id": route_id,
            "bin_id": BINS[2],
            "issue_type": "hazardous_material",
            "description": "Leaking battery",
        },
        headers=WORKER_H,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["admin_notified"] is False
    assert body["warnings"] and "issue_reported" in body["warnings"][0]
    assert body["collection"]["outcome"] == "failed"
    assert body["collection"]["issue"]["issue_type"] == "hazardous_material"
    assert store.get_route(route_id).entry_for(BINS[2]).collection_status == "failed"


def test_report_issue_notifies_admins(client, recorder):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.post(
        "/collection/report-issue",
        json={"route_id": route_id, "bin_id": BINS[2], "issue_type": "blocked_access"},
        headers=WORKER_H,
    )
    assert response.json()["admin_notified"] is True
    assert ISSUE_REPORTED in [e.kind for e in recorder.events]


def test_report_issue_bad_type(client):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.post(
        "/collection/report-issue",
        json={"route_id": route_id, "bin_id": BINS[2], "issue_type": "ghosts"},
        headers=WORKER_H,
    )
    assert response.status_code == 400


def test_get_route(client):
    route_id = _create(client).json()["route"]["route_id"]
    assert client.get(f"/routes/{route_id}", headers=WORKER_H).json()["route_id"] == route_id
    assert client.get(f"/routes/{route_id}", headers=OTHER_H).status_code == 403
    missing = client.get("/routes/RT-0-NOPE00", headers=ADMIN_H)
    assert missing.status_code == 404
    assert _code(missing) == "route_not_found"


def test_list_routes(client):
    _create(client)
    client.post(
        "/routes",
        json={
            "collector_id": "w-2",
            "assigned_date": DATE,
            "area": "Dehiwala",
            "selected_bins": [DEHIWALA_BIN],
        },
        headers=ADMIN_H,
    )
    admin_view = client.get("/routes", headers=ADMIN_H).json()
    assert admin_view["total"] == 2
    assert admin_view["stats"]["assigned"]["count"] == 2
    worker_view = client.get("/routes", headers=WORKER_H).json()
    assert [r["collector_id"] for r in worker_view["routes"]] == ["w-1"]
    assert client.get("/routes", params={"status": "paused"}, headers=ADMIN_H).status_code == 400


def test_update_status(client):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.put(
        f"/routes/{route_id}/status", json={"status": "in_progress"}, headers=WORKER_H
    )
    assert response.status_code == 200
    assert response.json()["route"]["status"] == "in_progress"

    response = client.put(
        f"/routes/{route_id}/status", json={"status": "completed"}, headers=WORKER_H
    )
    assert response.status_code == 409
    assert _code(response) == "invalid_transition"

    response = client.put(f"/routes/{route_id}/status", json={"status": "done"}, headers=ADMIN_H)
    assert response.status_code == 400


def test_reopen_of_assigned_route_is_a_conflict(client):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.put(f"/routes/{route_id}/status", json={"status": "assigned"}, headers=ADMIN_H)
    assert response.status_code == 409
    assert _code(response) == "invalid_transition"
    route = client.get(f"/routes/{route_id}", headers=ADMIN_H).json()
    assert route["status"] == "assigned"
    assert route["version"] == 1


def test_cancel_route(client, recorder):
    route_id = _create(client).json()["route"]["route_id"]
    response = client.request(
        "DELETE", f"/routes/{route_id}", json={"reason": "Vehicle breakdown"}, headers=ADMIN_H
    )
    assert response.status_code == 200
    assert response.json()["route"]["status"] == "cancelled"
    assert ROUTE_CANCELLED in [e.kind for e in recorder.events]

    # still readable, never removed
    assert client.get(f"/routes/{route_id}", headers=ADMIN_H).status_code == 200
    areas = client.get("/routes/bins-by-area", params={"date": DATE}, headers=ADMIN_H).json()
    assert [a["area"] for a in areas["areas"]] == ["Dehiwala"]


def test_cancel_route_needs_reason_and_admin(client):
    route_id = _create(client).json()["route"]["route_id"]
    blank = client.request("DELETE", f"/routes/{route_id}", json={"reason": " "}, headers=ADMIN_H)
    assert blank.status_code == 400
    worker = client.request(
        "DELETE", f"/routes/{route_id}", json={"reason": "Done for today"}, headers=WORKER_H
    )
    assert worker.status_code == 403


def test_route_stats(client):
    _create(client)
    response = client.get("/routes/stats", params={"date": DATE}, headers=ADMIN_H)
    assert response.status_code == 200
    body = response.json()
    assert body["total_routes"] == 1
    assert body["routes_by_status"]["assigned"] == 1
    assert body["worker_types"]["wc1"] == 1
    assert client.get("/routes/stats", headers=WORKER_H).status_code == 403


def test_collector_route(client):
    empty = client.get("/collection/collectors/w-1/route", params={"date": DATE}, headers=WORKER_H)
    assert empty.status_code == 200
    assert empty.json()["assignment"] is None

    _create(client)
    response = client.get(
        "/collection/collectors/w-1/route",
        params={"date": DATE, "lat": 6.9, "lng": 79.85},
        headers=WORKER_H,
    )
    assignment = response.json()["assignment"]
    assert len(assignment["stops"]) == 3
    assert assignment["stops"][0]["distance_km"] == 0.0
    assert assignment["stops"][0]["request_status"] == "approved"
    assert client.get("/collection/collectors/w-1/route", headers=OTHER_H).status_code == 403


def test_collection_history(client):
    route_id = _create(client).json()["route"]["route_id"]
    client.post("/collection/scan", json={"route_id": route_id, "bin_id": BINS[0]}, headers=WORKER_H)
    body = client.get("/collection/history", headers=WORKER_H).json()
    assert body["total"] == 1
    assert body["collections"][0]["bin_id"] == BINS[0]
    assert client.get("/collection/history", headers=OTHER_H).json()["total"] == 0


def test_app_uses_given_policy():
    policy = RoutingPolicy(per_stop_minutes=20, max_routes_per_worker=2)
    client = TestClient(create_app(store=build_store(), event_bus=EventBus(), policy=policy))
    first = _create(client, bins=BINS[:2])
    assert first.json()["route"]["estimated_duration"] == 40
    assert _create(client, bins=BINS[2:]).status_code == 201
