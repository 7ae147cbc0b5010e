import json
from datetime import datetime, timezone

from binbird.services.cookies import ACTIVE_RUN_COOKIE_MAX_AGE, ACTIVE_RUN_COOKIE_NAME, CookieJar
from binbird.services.planned_run import PLANNED_RUN_STORAGE_KEY, PlannedRunStore
from binbird.services.storage import MemoryStorage, StorageBackends, StorageError


NOW = datetime(2026, 3, 10, 7, 0, tzinfo=timezone.utc)


class _BrokenStorage:
    def get_item(self, key):
        raise StorageError("storage disabled")

    def set_item(self, key, value):
        raise StorageError("storage disabled")

    def remove_item(self, key):
        raise StorageError("storage disabled")


def _payload(**overrides):
    payload = {
        "start": {"lat": -37.8, "lng": 144.9},
        "end": {"lat": -37.7, "lng": 145.0},
        "jobs": [
            {"id": "a", "address": "1 First St", "lat": -37.81, "lng": 144.91},
            {"id": "b", "address": "2 Second St", "lat": -37.82, "lng": 144.92},
            {"id": "c", "address": "3 Third St", "lat": -37.83, "lng": 144.93},
        ],
        "startAddress": "  Depot  ",
        "endAddress": "",
        "createdAt": "2026-03-10T06:45:00+00:00",
        "hasStarted": False,
        "nextIdx": 0,
    }
    payload.update(overrides)
    return payload


def _store(session=None, local=None, cookies=None):
    session = session if session is not None else MemoryStorage()
    local = local if local is not None else MemoryStorage()
    cookies = cookies if cookies is not None else CookieJar()
    backends = StorageBackends.default(session, local)
    return PlannedRunStore(backends, cookies, clock=lambda: NOW), session, local, cookies


def test_write_normalizes_and_replicates_to_every_backend():
    store, session, local, _ = _store()

    stored = store.write(_payload())

    assert stored is not None
    assert stored.start_address == "Depot"
    assert stored.end_address is None
    assert [job.id for job in stored.jobs] == ["a", "b", "c"]
    assert session.get_item(PLANNED_RUN_STORAGE_KEY) == local.get_item(PLANNED_RUN_STORAGE_KEY)

    loaded = store.read()
    assert loaded == stored


def test_write_with_no_valid_jobs_leaves_prior_plan():
    store, _, _, _ = _store()
    original = store.write(_payload())

    assert store.write(_payload(jobs=[])) is None
    assert store.write(_payload(jobs=["junk", None, {"address": "no id"}])) is None
    assert store.write(_payload(jobs="not a list")) is None

    assert store.read() == original


def test_write_rejects_non_finite_endpoints():
    store, session, _, _ = _store()

    assert store.write(_payload(start={"lat": float("nan"), "lng": 1.0})) is None
    assert store.write(_payload(end={"lat": "1", "lng": 2})) is None
    assert store.write(_payload(end=None)) is None
    assert session.get_item(PLANNED_RUN_STORAGE_KEY) is None


def test_next_idx_is_clamped():
    store, _, _, _ = _store()

    for raw, expected in [
        (-4, 0),
        (1, 1),
        (2.9, 2),
        (10_000, 2),
        (10**400, 2),
        (-(10**400), 0),
        ("7", 2),
        (float("inf"), 0),
        ("banana", 0),
        (None, 0),
    ]:
        stored = store.write(_payload(nextIdx=raw))
        assert stored is not None
        assert stored.next_idx == expected
        assert 0 <= store.read().next_idx <= 2


def test_created_at_defaults_to_now_when_invalid():
    store, _, _, _ = _store()

    stored = store.write(_payload(createdAt="yesterday-ish"))

    assert stored is not None
    assert stored.created_at == NOW.isoformat()


def test_read_back_fills_higher_priority_backend():
    store, session, local, _ = _store()
    local.set_item(PLANNED_RUN_STORAGE_KEY, json.dumps(_payload(nextIdx=1)))

    loaded = store.read()

    assert loaded is not None
    assert loaded.next_idx == 1
    assert session.get_item(PLANNED_RUN_STORAGE_KEY) is not None
    only_session, _, _, _ = _store(session=session, local=MemoryStorage())
    assert only_session.read() == loaded


def test_corrupt_payload_falls_through_to_next_backend():
    store, session, local, _ = _store()
    session.set_item(PLANNED_RUN_STORAGE_KEY, "{not json")
    local.set_item(PLANNED_RUN_STORAGE_KEY, json.dumps(_payload()))

    loaded = store.read()

    assert loaded is not None
    assert [job.id for job in loaded.jobs] == ["a", "b", "c"]


def test_stored_oversized_numbers_are_tolerated():
    store, session, local, _ = _store()
    session.set_item(PLANNED_RUN_STORAGE_KEY, json.dumps(_payload(nextIdx=10**400)))

    loaded = store.read()

    assert loaded is not None
    assert loaded.next_idx == 2

    session.set_item(
        PLANNED_RUN_STORAGE_KEY,
        json.dumps(_payload(start={"lat": 10**400, "lng": 144.9})),
    )
    local.set_item(PLANNED_RUN_STORAGE_KEY, json.dumps(_payload(nextIdx=1)))

    assert store.read().next_idx == 1


def test_corrupt_everywhere_reads_as_absent():
    store, session, local, _ = _store()
    session.set_item(PLANNED_RUN_STORAGE_KEY, "[]")
    local.set_item(PLANNED_RUN_STORAGE_KEY, json.dumps(_payload(jobs=[])))

    assert store.read() is None


def test_unavailable_backend_is_tolerated():
    store, _, local, _ = _store(session=_BrokenStorage())

    stored = store.write(_payload())

    assert stored is not None
    assert local.get_item(PLANNED_RUN_STORAGE_KEY) is not None
    assert store.read() == stored

    missing = PlannedRunStore(StorageBackends.default(None, local), CookieJar())
    assert missing.read() == stored


def test_cookie_tracks_started_flag():
    store, _, _, cookies = _store()

    store.write(_payload())
    cookie = cookies.get(ACTIVE_RUN_COOKIE_NAME)
    assert cookie is not None
    assert cookie.value == ""
    assert cookie.max_age == 0

    started = store.mark_started()
    assert started is not None
    assert started.has_started is True
    assert store.read().has_started is True
    cookie = cookies.get(ACTIVE_RUN_COOKIE_NAME)
    assert cookie.value == "true"
    assert cookie.max_age == ACTIVE_RUN_COOKIE_MAX_AGE


def test_clear_removes_everywhere_and_clears_cookie():
    store, session, local, cookies = _store()
    store.write(_payload(hasStarted=True))

    store.clear()

    assert store.read() is None
    assert session.get_item(PLANNED_RUN_STORAGE_KEY) is None
    assert local.get_item(PLANNED_RUN_STORAGE_KEY) is None
    assert cookies.get(ACTIVE_RUN_COOKIE_NAME).value == ""


def test_mark_started_without_plan_is_a_no_op():
    store, session, _, cookies = _store()

    assert store.mark_started() is None
    assert session.get_item(PLANNED_RUN_STORAGE_KEY) is None
    assert cookies.get(ACTIVE_RUN_COOKIE_NAME) is None
