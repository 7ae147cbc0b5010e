from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Callable

from binbird.domain.run_state import RunMenuState, derive_run_menu_state
from binbird.services.cookies import CookieSink
from binbird.services.planned_run import PlannedRunStore
from binbird.services.run_session import RunSessionStore
from binbird.services.storage import StorageBackends


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunStateRepository:
    """Both run stores for one device, over a shared set of storage backends."""

    def __init__(
        self,
        backends: StorageBackends,
        cookies: CookieSink,
        *,
        rollover_hour: int,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.backends = backends
        self.clock = clock
        self.tz = tz
        self.rollover_hour = rollover_hour
        self.planned_runs = PlannedRunStore(backends, cookies, clock=clock)
        self.sessions = RunSessionStore(
            backends, rollover_hour=rollover_hour, tz=tz, clock=clock
        )

    def menu_state(self) -> RunMenuState:
        return derive_run_menu_state(self.planned_runs.read(), self.sessions.read())

    def clear(self) -> None:
        self.planned_runs.clear()
        self.sessions.clear()
