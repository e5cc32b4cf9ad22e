"""
Default configuration for the routing use cases.
One place so api, use cases and tests share the same values.
"""

import os

from collection_backend.domain.constraints import RoutingPolicy

DEFAULT_ROUTING_POLICY = RoutingPolicy(
    per_stop_minutes=15,
    max_routes_per_worker=1,
    max_collection_distance_km=0.1,  # 100 m
    notes_max_length=500,
    default_page_limit=10,
    max_page_limit=100,
)

DEFAULT_MANUAL_REASON = "QR scan failed"

SEED_FILE_ENV = "WASTE_SEED_FILE"
CORS_ORIGINS_ENV = "WASTE_CORS_ORIGINS"
DEFAULT_CORS_ORIGINS = ["http://localhost:5173"]


def load_policy_from_env(base: RoutingPolicy = DEFAULT_ROUTING_POLICY) -> RoutingPolicy:
    """Override policy values from WASTE_* environment variables, if set."""
    return RoutingPolicy(
        per_stop_minutes=int(os.getenv("WASTE_PER_STOP_MINUTES", base.per_stop_minutes)),
        max_routes_per_worker=int(
            os.getenv("WASTE_MAX_ROUTES_PER_WORKER", base.max_routes_per_worker)
        ),
        max_collection_distance_km=float(
            os.getenv("WASTE_MAX_COLLECTION_DISTANCE_KM", base.max_collection_distance_km)
        ),
        notes_max_length=base.notes_max_length,
        default_page_limit=base.default_page_limit,
        max_page_limit=base.max_page_limit,
    )


def cors_origins_from_env() -> list[str]:
    raw = os.getenv(CORS_ORIGINS_ENV, "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or DEFAULT_CORS_ORIGINS
