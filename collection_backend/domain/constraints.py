"""
Routing policy. Dataclasses only. No FastAPI, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RoutingPolicy:
    per_stop_minutes: int = 15
    max_routes_per_worker: int = 1  # rutas no terminales por trabajador y día
    max_collection_distance_km: float = 0.1
    notes_max_length: int = 500
    default_page_limit: int = 10
    max_page_limit: int = 100
