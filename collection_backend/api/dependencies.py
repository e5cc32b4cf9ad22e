"""
FastAPI dependencies: caller identity (from the auth gateway headers), store and event bus.
"""

from fastapi import Header, HTTPException, Request

from collection_backend.application.events import EventBus
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.domain.models import ADMIN_ROLE, WORKER_ROLES, Caller
from collection_backend.infrastructure.memory_store import InMemoryStore


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Caller:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    if x_user_role != ADMIN_ROLE and x_user_role not in WORKER_ROLES:
        raise HTTPException(status_code=403, detail=f"Role {x_user_role!r} cannot use routing")
    return Caller(user_id=x_user_id, role=x_user_role)


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_policy(request: Request) -> RoutingPolicy:
    return request.app.state.policy
