import threading

from factories import ADMIN, AREA, COLOMBO_BINS, DATE, WORKER

from collection_backend.application.use_cases.collection_events import scan_collection
from collection_backend.application.use_cases.create_route import create_route
from collection_backend.domain.errors import AlreadyProcessed, ConsistencyError

BINS = list(COLOMBO_BINS)


def _race(n, fn):
    barrier = threading.Barrier(n)
    outcomes = []
    lock = threading.Lock()

    def run(i):
        barrier.wait()
        try:
            value = fn(i)
        except Exception as e:
            value = e
        with lock:
            outcomes.append(value)

    threads = [threading.Thread(target=run, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_concurrent_scans_record_once(store, route):
    outcomes = _race(8, lambda i: scan_collection(store, WORKER, route.route_id, BINS[0]))

    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(outcomes) - len(errors) == 1
    assert all(isinstance(e, AlreadyProcessed) for e in errors)
    assert len(store.list_events()) == 1
    assert store.get_route(route.route_id).completed_bins == 1


def test_concurrent_route_creation_for_same_bins(store):
    outcomes = _race(2, lambda i: create_route(store, ADMIN, f"w-{i + 1}", DATE, AREA, BINS))

    created = [o for o in outcomes if not isinstance(o, Exception)]
    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(created) == 1
    assert len(errors) == 1 and isinstance(errors[0], ConsistencyError)
    route_id = created[0].route.route_id
    assert {store.bin_holder(b, DATE) for b in BINS} == {route_id}
