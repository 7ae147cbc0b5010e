from __future__ import annotations

import json
import math
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Mapping

from binbird.core.logging import get_logger
from binbird.domain.operational_day import is_same_operational_day, parse_timestamp
from binbird.schemas.runs import RunSessionRecord
from binbird.services.storage import ReplicatedItem, StorageBackends


RUN_SESSION_STORAGE_KEY = "binbird:active-run"

_logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_count(value: Any) -> int:
    if not _is_number(value):
        return 0
    try:
        number = float(value)
    except OverflowError:
        return 0
    return int(number) if math.isfinite(number) else 0


def parse_run_session(raw: str) -> RunSessionRecord | None:
    """Decode a stored record, rejecting anything that is not the exact shape."""

    try:
        decoded = json.loads(raw)
    except ValueError as exc:
        _logger.warning("Unable to parse run session data", error=str(exc))
        return None
    if not isinstance(decoded, Mapping):
        return None

    started_at = decoded.get("startedAt")
    ended_at = decoded.get("endedAt")
    total_jobs = decoded.get("totalJobs")
    completed_jobs = decoded.get("completedJobs")
    if (
        not isinstance(started_at, str)
        or not (ended_at is None or isinstance(ended_at, str))
        or not _is_number(total_jobs)
        or not _is_number(completed_jobs)
    ):
        _logger.warning("Discarding malformed run session data")
        return None

    return RunSessionRecord(
        started_at=started_at,
        ended_at=ended_at,
        total_jobs=_coerce_count(total_jobs),
        completed_jobs=_coerce_count(completed_jobs),
    )


class RunSessionStore:
    """Per-device metrics for the active run, evicted once its operational day ends."""

    def __init__(
        self,
        backends: StorageBackends,
        *,
        rollover_hour: int,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._item = ReplicatedItem(backends, RUN_SESSION_STORAGE_KEY)
        self._rollover_hour = rollover_hour
        self._tz = tz
        self._clock = clock

    def is_stale(self, record: RunSessionRecord, now: datetime | None = None) -> bool:
        started_at = parse_timestamp(record.started_at)
        if started_at is None:
            return True
        return not is_same_operational_day(
            started_at, now or self._clock(), self._rollover_hour, self._tz
        )

    def read(self) -> RunSessionRecord | None:
        record = self._item.read(parse_run_session)
        if record is None:
            return None
        if self.is_stale(record):
            _logger.info(
                "Evicting stale run session",
                started_at=record.started_at,
                ended_at=record.ended_at,
            )
            self.clear()
            return None
        return record

    def write(self, record: RunSessionRecord | Mapping[str, Any]) -> RunSessionRecord:
        if isinstance(record, Mapping):
            started_at = record.get("startedAt", record.get("started_at"))
            ended_at = record.get("endedAt", record.get("ended_at"))
            total_jobs = record.get("totalJobs", record.get("total_jobs"))
            completed_jobs = record.get("completedJobs", record.get("completed_jobs"))
        else:
            started_at = record.started_at
            ended_at = record.ended_at
            total_jobs = record.total_jobs
            completed_jobs = record.completed_jobs

        if isinstance(started_at, datetime):
            started_at = started_at.isoformat()
        if isinstance(ended_at, datetime):
            ended_at = ended_at.isoformat()

        normalized = RunSessionRecord(
            started_at=started_at if isinstance(started_at, str) else "",
            ended_at=ended_at if isinstance(ended_at, str) and ended_at else None,
            total_jobs=_coerce_count(total_jobs),
            completed_jobs=_coerce_count(completed_jobs),
        )
        self._item.write(normalized.model_dump_json(by_alias=True))
        return normalized

    def clear(self) -> None:
        self._item.remove()
