"""
Seed loader. Raw dict -> domain Bin / Worker / WasteRequest.
Accepts both snake_case and the camelCase keys exported by the web app.
"""

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

from collection_backend.domain.models import (
    Bin,
    BinLocation,
    Coordinates,
    WasteRequest,
    Worker,
)
from collection_backend.infrastructure.memory_store import InMemoryStore

logger = logging.getLogger(__name__)


def _get(raw: dict, *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return default


def _parse_date(value: Any) -> str:
    """'YYYY-MM-DD' or ISO datetime -> 'YYYY-MM-DD'."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return date.fromisoformat(text[:10]).isoformat()


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def load_bins(raw_bins: list[dict]) -> list[Bin]:
    result: list[Bin] = []
    for raw in raw_bins:
        loc = raw.get("location") or {}
        coords = loc.get("coordinates") or {}
        result.append(
            Bin(
                bin_id=str(_get(raw, "bin_id", "binId", default="")),
                location=BinLocation(
                    address=str(loc.get("address", "")),
                    coordinates=Coordinates(
                        lat=float(coords.get("lat", 0.0)),
                        lng=float(coords.get("lng", 0.0)),
                    ),
                    area=str(loc.get("area", "")),
                ),
                capacity=int(_get(raw, "capacity", default=100)),
                bin_type=str(_get(raw, "bin_type", "type", default="food")),
                fill_level=float(_get(raw, "fill_level", "fillLevel", default=0.0)),
                battery=float(_get(raw, "battery", default=100.0)),
                status=str(_get(raw, "status", default="Empty")),
                is_active=bool(_get(raw, "is_active", "isActive", default=True)),
            )
        )
    return result


def load_workers(raw_workers: list[dict]) -> list[Worker]:
    return [
        Worker(
            worker_id=str(_get(raw, "worker_id", "id", "_id", default="")),
            name=str(raw.get("name", "")),
            email=str(raw.get("email", "")),
            role=str(raw.get("role", "wc1")),
            is_active=bool(_get(raw, "is_active", "isActive", default=True)),
        )
        for raw in raw_workers
    ]


def load_requests(raw_requests: list[dict]) -> list[WasteRequest]:
    result: list[WasteRequest] = []
    for raw in raw_requests:
        user = raw.get("user") or {}
        scheduled = _get(raw, "scheduled_date", "scheduledDate")
        result.append(
            WasteRequest(
                request_id=str(_get(raw, "request_id", "requestId", default="")),
                bin_id=str(_get(raw, "bin_id", "binId", default="")),
                user_id=str(_get(raw, "user_id", "userId", default=user.get("id", ""))),
                customer_name=str(_get(raw, "customer_name", default=user.get("name", ""))),
                customer_email=str(_get(raw, "customer_email", default=user.get("email", ""))),
                collection_type=str(_get(raw, "collection_type", "collectionType", default="food")),
                preferred_date=_parse_date(_get(raw, "preferred_date", "preferredDate")),
                cost=float(_get(raw, "cost", default=0.0)),
                status=str(_get(raw, "status", default="pending")),
                payment_status=str(_get(raw, "payment_status", "paymentStatus", default="pending")),
                notes=str(_get(raw, "notes", default="")),
                urgent=bool(_get(raw, "urgent", default=False)),
                assigned_worker=_get(raw, "assigned_worker", "assignedWorker"),
                assigned_at=_parse_datetime(_get(raw, "assigned_at", "assignedAt")),
                route_id=_get(raw, "route_id", "routeId"),
                scheduled_date=_parse_date(scheduled) if scheduled else None,
                created_at=_parse_datetime(_get(raw, "created_at", "createdAt")),
            )
        )
    return result


def seed_store(store: InMemoryStore, data: dict) -> None:
    """Load {"bins": [...], "workers": [...], "requests": [...]} into the store."""
    for b in load_bins(data.get("bins", [])):
        store.put_bin(b)
    for w in load_workers(data.get("workers", [])):
        store.put_worker(w)
    for r in load_requests(data.get("requests", [])):
        store.put_request(r)


def load_seed_file(store: InMemoryStore, path: Path) -> None:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    seed_store(store, data)
    logger.info(
        "Seeded store from %s: %d bins, %d workers, %d requests",
        path,
        len(data.get("bins", [])),
        len(data.get("workers", [])),
        len(data.get("requests", [])),
    )
