import pytest

from factories import ADMIN, AREA, COLOMBO_BINS, DATE, build_store

from collection_backend.application.use_cases.create_route import create_route


@pytest.fixture
def store():
    return build_store()


@pytest.fixture
def route(store):
    """Route for w-1 on DATE over the three Colombo 3 bins."""
    return create_route(store, ADMIN, "w-1", DATE, AREA, list(COLOMBO_BINS)).route
