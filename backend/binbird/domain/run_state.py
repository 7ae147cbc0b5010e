from __future__ import annotations

from dataclasses import dataclass

from binbird.domain.operational_day import parse_timestamp
from binbird.schemas.runs import PlannedRunPayload, RunSessionRecord


@dataclass(frozen=True, slots=True)
class RunMenuState:
    has_planned_run: bool
    show_end_run: bool
    lock_navigation: bool


def is_run_session_active(run_session: RunSessionRecord | None) -> bool:
    """A session is active until it carries an ``endedAt`` that parses."""

    if run_session is None or not run_session.started_at:
        return False
    if not run_session.ended_at:
        return True
    return parse_timestamp(run_session.ended_at) is None


def derive_run_menu_state(
    planned_run: PlannedRunPayload | None,
    run_session: RunSessionRecord | None,
) -> RunMenuState:
    has_plan = planned_run is not None and len(planned_run.jobs) > 0
    in_progress = bool(planned_run is not None and planned_run.has_started)
    in_progress = in_progress or is_run_session_active(run_session)

    return RunMenuState(
        has_planned_run=has_plan,
        show_end_run=in_progress,
        lock_navigation=in_progress,
    )
