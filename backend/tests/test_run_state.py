from binbird.domain.run_state import derive_run_menu_state, is_run_session_active
from binbird.schemas.jobs import Job
from binbird.schemas.runs import LatLng, PlannedRunPayload, RunSessionRecord


def _plan(has_started=False):
    return PlannedRunPayload(
        start=LatLng(lat=0, lng=0),
        end=LatLng(lat=1, lng=1),
        jobs=[Job(id="1", address="123 Main St")],
        start_address="Depot",
        end_address="Depot",
        created_at="2026-03-10T06:00:00+00:00",
        has_started=has_started,
    )


def test_end_run_is_hidden_until_the_route_has_started():
    before = derive_run_menu_state(_plan(), None)
    assert before.has_planned_run is True
    assert before.show_end_run is False
    assert before.lock_navigation is False

    after = derive_run_menu_state(_plan(has_started=True), None)
    assert after.show_end_run is True
    assert after.lock_navigation is True


def test_active_session_alone_keeps_the_run_in_progress():
    session = RunSessionRecord(started_at="2026-03-10T06:00:00+00:00", total_jobs=3)

    state = derive_run_menu_state(None, session)

    assert state.has_planned_run is False
    assert state.show_end_run is True
    assert state.lock_navigation is True


def test_ended_session_unlocks_navigation():
    session = RunSessionRecord(
        started_at="2026-03-10T06:00:00+00:00",
        ended_at="2026-03-10T08:00:00+00:00",
        total_jobs=3,
        completed_jobs=3,
    )

    state = derive_run_menu_state(None, session)

    assert state.show_end_run is False
    assert state.lock_navigation is False


def test_malformed_end_timestamp_counts_as_still_running():
    session = RunSessionRecord(
        started_at="2026-03-10T06:00:00+00:00", ended_at="not-a-date", total_jobs=1
    )

    assert is_run_session_active(session) is True
    assert derive_run_menu_state(None, session).lock_navigation is True


def test_session_without_start_is_inactive():
    assert is_run_session_active(None) is False
    assert is_run_session_active(RunSessionRecord(started_at="")) is False


def test_flags_always_move_together():
    sessions = [
        None,
        RunSessionRecord(started_at="2026-03-10T06:00:00"),
        RunSessionRecord(started_at="2026-03-10T06:00:00", ended_at="2026-03-10T07:00:00"),
    ]
    for plan in (None, _plan(), _plan(has_started=True)):
        for session in sessions:
            state = derive_run_menu_state(plan, session)
            assert state.show_end_run == state.lock_navigation
