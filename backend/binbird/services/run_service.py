from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable, Sequence

from cachetools import LRUCache

from binbird.core.config import Settings
from binbird.core.logging import get_logger
from binbird.domain.geometry import decode_polyline
from binbird.domain.job_status import TERMINAL_STATUSES, build_status_update
from binbird.domain.jobs import normalize_jobs
from binbird.domain.operational_day import operational_iso_date, parse_timestamp
from binbird.domain.run_state import (
    RunMenuState,
    derive_run_menu_state,
    is_run_session_active,
)
from binbird.domain.summary import RunSummary, summarize_run
from binbird.schemas.jobs import Job, JobStatus, JobStatusUpdate
from binbird.schemas.runs import LatLng, PlannedRunPayload, RunSessionRecord
from binbird.services.cookies import CookieSink
from binbird.services.repository import RunStateRepository
from binbird.services.routing import Coordinate, OptimizedRoute, optimize_route
from binbird.services.storage import MemoryStorage, SqliteStorage, StorageBackends


RouteCallable = Callable[[Coordinate, Coordinate, Sequence[Coordinate]], OptimizedRoute]


_logger = get_logger(__name__)


@dataclass(slots=True)
class PlannedRoute:
    planned_run: PlannedRunPayload
    polyline: str
    path: list[tuple[float, float]] = field(default_factory=list)


@dataclass(slots=True)
class RunProgress:
    planned_run: PlannedRunPayload | None
    run_session: RunSessionRecord | None
    status_update: JobStatusUpdate | None = None
    finished: bool = False


@dataclass(slots=True)
class RunState:
    menu: RunMenuState
    planned_run: PlannedRunPayload | None
    run_session: RunSessionRecord | None


@dataclass(frozen=True, slots=True)
class DeviceStorage:
    session: MemoryStorage
    local: SqliteStorage


def _with_job(plan: PlannedRunPayload, index: int, job: Job, **updates: Any) -> PlannedRunPayload:
    jobs = list(plan.jobs)
    jobs[index] = job
    return plan.model_copy(update={"jobs": jobs, **updates})


class RunService:
    """Drives a device's run from planning through the one-time summary."""

    def __init__(
        self,
        repository: RunStateRepository,
        *,
        router: RouteCallable = optimize_route,
    ) -> None:
        self._repository = repository
        self._router = router

    @property
    def repository(self) -> RunStateRepository:
        return self._repository

    def _now_iso(self) -> str:
        return self._repository.clock().isoformat()

    def state(self) -> RunState:
        plan = self._repository.planned_runs.read()
        session = self._repository.sessions.read()
        return RunState(derive_run_menu_state(plan, session), plan, session)

    def plan_run(
        self,
        jobs: Iterable[Any],
        start: LatLng,
        end: LatLng,
        *,
        start_address: str | None = None,
        end_address: str | None = None,
    ) -> PlannedRoute | None:
        candidates = [job for job in normalize_jobs(list(jobs)) if job.id]
        if not candidates:
            _logger.info("Run planning skipped", reason="no jobs")
            return None

        route = self._router(
            (start.lat, start.lng),
            (end.lat, end.lng),
            [(job.lat, job.lng) for job in candidates],
        )
        ordered = [candidates[i] for i in route.order if 0 <= i < len(candidates)]
        if not ordered:
            _logger.warning("Run planning produced no stops", order=route.order)
            return None

        payload = self._repository.planned_runs.write(
            {
                "start": start.model_dump(),
                "end": end.model_dump(),
                "jobs": ordered,
                "startAddress": start_address,
                "endAddress": end_address,
                "createdAt": self._now_iso(),
                "hasStarted": False,
                "nextIdx": 0,
            }
        )
        if payload is None:
            return None

        _logger.info("Run planned", stops=len(payload.jobs), provider=route.provider)
        return PlannedRoute(payload, route.polyline, decode_polyline(route.polyline))

    def start_run(self) -> RunProgress | None:
        plan = self._repository.planned_runs.read()
        if plan is None:
            return None

        existing = self._repository.sessions.read()
        resuming = (
            existing is not None
            and is_run_session_active(existing)
            and parse_timestamp(existing.started_at) is not None
        )
        session = self._repository.sessions.write(
            RunSessionRecord(
                started_at=existing.started_at if resuming else self._now_iso(),
                ended_at=None,
                total_jobs=len(plan.jobs),
                completed_jobs=existing.completed_jobs if resuming else 0,
            )
        )

        plan = self._repository.planned_runs.mark_started() or plan
        plan, update = self._transition_current_job(plan, "en_route")
        _logger.info("Run started", stops=len(plan.jobs), resumed=resuming)
        return RunProgress(plan, session, update)

    def arrive(self) -> RunProgress | None:
        plan = self._repository.planned_runs.read()
        if plan is None or not plan.has_started:
            return None
        plan, update = self._transition_current_job(plan, "on_site")
        return RunProgress(plan, self._repository.sessions.read(), update)

    def complete_current_job(self) -> RunProgress | None:
        repository = self._repository
        plan = repository.planned_runs.read()
        if plan is None or not plan.has_started:
            return None

        now = repository.clock()
        completed_on = operational_iso_date(now, repository.rollover_hour, repository.tz)
        job = plan.current_job.model_copy(
            update={"status": "completed", "last_completed_on": completed_on}
        )
        update = build_status_update(
            [job.id], "completed", {"last_completed_on": completed_on}, now=now
        )

        session = repository.sessions.read() or RunSessionRecord(
            started_at=plan.created_at, total_jobs=len(plan.jobs)
        )
        session = session.model_copy(
            update={
                "total_jobs": max(session.total_jobs, len(plan.jobs)),
                "completed_jobs": session.completed_jobs + 1,
            }
        )

        if plan.next_idx + 1 >= len(plan.jobs):
            session = repository.sessions.write(
                session.model_copy(update={"ended_at": now.isoformat()})
            )
            repository.planned_runs.clear()
            _logger.info(
                "Run finished",
                completed=session.completed_jobs,
                total=session.total_jobs,
            )
            return RunProgress(None, session, update, finished=True)

        session = repository.sessions.write(session)
        plan = repository.planned_runs.write(
            _with_job(plan, plan.next_idx, job, next_idx=plan.next_idx + 1)
        )
        _logger.info(
            "Job completed",
            job_id=job.id,
            next_idx=plan.next_idx if plan else None,
            completed=session.completed_jobs,
        )
        return RunProgress(plan, session, update)

    def end_run(self) -> RunProgress | None:
        repository = self._repository
        plan = repository.planned_runs.read()
        session = repository.sessions.read()
        if plan is None and session is None:
            return None

        now_iso = self._now_iso()
        if session is None and plan is not None:
            session = RunSessionRecord(
                started_at=plan.created_at,
                total_jobs=len(plan.jobs),
                completed_jobs=sum(1 for job in plan.jobs if job.status == "completed"),
            )
        if is_run_session_active(session):
            session = session.model_copy(update={"ended_at": now_iso})
        session = repository.sessions.write(session)
        repository.planned_runs.clear()

        _logger.info(
            "Run ended",
            completed=session.completed_jobs,
            total=session.total_jobs,
        )
        return RunProgress(None, session, finished=True)

    def reset(self) -> None:
        self._repository.planned_runs.clear()

    def consume_summary(self) -> RunSummary | None:
        """Return the finished run's summary once, clearing all run state."""

        record = self._repository.sessions.read()
        self._repository.clear()
        if record is None:
            return None
        return summarize_run(record, self._repository.tz)

    def _transition_current_job(
        self, plan: PlannedRunPayload, status: JobStatus
    ) -> tuple[PlannedRunPayload, JobStatusUpdate | None]:
        job = plan.current_job
        if job.status in TERMINAL_STATUSES:
            stored = self._repository.planned_runs.write(plan)
            return stored or plan, None

        now = self._repository.clock()
        update = build_status_update([job.id], status, now=now)
        updated = _with_job(plan, plan.next_idx, job.model_copy(update={"status": status}))
        stored = self._repository.planned_runs.write(updated)
        return stored or updated, update


class RunServiceRegistry:
    """
    Builds per-device run services.

    The session backend lives in process memory for each device; the local
    backend is a shared SQLite database namespaced by device id. At most
    ``device_cache_size`` devices are held, least recently used first out.
    """

    def __init__(self, settings: Settings, *, router: RouteCallable = optimize_route) -> None:
        self._settings = settings
        self._router = router
        self._local = SqliteStorage(Path(settings.storage_root) / "run-state.db")
        self._devices: LRUCache[str, DeviceStorage] = LRUCache(
            maxsize=settings.device_cache_size
        )
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._devices)

    def storage_for(self, device_id: str) -> DeviceStorage:
        with self._lock:
            storage = self._devices.get(device_id)
            if storage is None:
                storage = DeviceStorage(MemoryStorage(), self._local.scoped(device_id))
                self._devices[device_id] = storage
        return storage

    def service_for(self, device_id: str, cookies: CookieSink) -> RunService:
        storage = self.storage_for(device_id)
        repository = RunStateRepository(
            StorageBackends.default(storage.session, storage.local),
            cookies,
            rollover_hour=self._settings.operational_rollover_hour,
            tz=self._settings.zone,
        )
        return RunService(repository, router=self._router)


_registry: RunServiceRegistry | None = None


def get_run_service_registry(settings: Settings) -> RunServiceRegistry:
    global _registry
    if _registry is None:
        _registry = RunServiceRegistry(settings)
    return _registry
