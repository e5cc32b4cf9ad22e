"""
FastAPI app for the waste-collection routing core.

HTTP layer only: identity comes from the auth gateway headers, notifications
go out through the event bus subscribers.
"""

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collection_backend.api.router import router
from collection_backend.application.config import (
    SEED_FILE_ENV,
    cors_origins_from_env,
    load_policy_from_env,
)
from collection_backend.application.events import EventBus, LoggingDispatcher
from collection_backend.domain.constraints import RoutingPolicy
from collection_backend.infrastructure.memory_store import InMemoryStore
from collection_backend.infrastructure.seed_loader import load_seed_file

logger = logging.getLogger(__name__)


def create_app(
    store: InMemoryStore | None = None,
    event_bus: EventBus | None = None,
    policy: RoutingPolicy | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Waste Collection Routing API",
        description="Route building, route lifecycle and collection events",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins_from_env(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if store is None:
        store = InMemoryStore()
        seed_path = os.getenv(SEED_FILE_ENV)
        if seed_path:
            load_seed_file(store, Path(seed_path))
    app.state.store = store
    app.state.event_bus = event_bus or EventBus([LoggingDispatcher()])
    app.state.policy = policy or load_policy_from_env()

    @app.get("/")
    def root():
        """Health check."""
        return {"message": "Waste Collection Routing API", "status": "ok"}

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
