from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from binbird.core.logging import get_logger
from binbird.domain.jobs import normalize_job
from binbird.domain.operational_day import parse_timestamp
from binbird.schemas.jobs import Job
from binbird.schemas.runs import LatLng, PlannedRunPayload
from binbird.services.cookies import CookieSink, clear_active_run_cookie, sync_active_run_cookie
from binbird.services.storage import ReplicatedItem, StorageBackends


PLANNED_RUN_STORAGE_KEY = "binbird:planned-run"

Clock = Callable[[], datetime]

_logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_finite_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _normalize_location(value: Any) -> LatLng | None:
    if isinstance(value, LatLng):
        value = value.model_dump()
    if not isinstance(value, Mapping):
        return None
    lat = _as_finite_float(value.get("lat"))
    lng = _as_finite_float(value.get("lng"))
    if lat is None or lng is None:
        return None
    return LatLng(lat=lat, lng=lng)


def _normalize_address(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _normalize_jobs(value: Any) -> list[Job]:
    if not isinstance(value, (list, tuple)):
        return []
    jobs: list[Job] = []
    for item in value:
        if not isinstance(item, (Job, Mapping)):
            continue
        job = normalize_job(item)
        # A stop without an id cannot be tracked through the run.
        if job.id:
            jobs.append(job)
    return jobs


def _clamp_index(value: Any, size: int) -> int:
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    # Integers compare exactly, so one too large for a float still clamps.
    return min(max(int(value), 0), size - 1)


def normalize_planned_run(raw: Any, now: datetime | None = None) -> PlannedRunPayload | None:
    """
    Validate and canonicalize a planned-run payload.

    Returns ``None`` when either endpoint is not a pair of finite numbers or
    when no usable job remains; every other field falls back to a default.
    """
    if isinstance(raw, PlannedRunPayload):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        return None

    start = _normalize_location(raw.get("start"))
    end = _normalize_location(raw.get("end"))
    if start is None or end is None:
        return None

    jobs = _normalize_jobs(raw.get("jobs"))
    if not jobs:
        return None

    created_at = raw.get("createdAt")
    created_moment = parse_timestamp(created_at)
    if created_moment is None:
        created_at = (now or _utc_now()).isoformat()
    elif not isinstance(created_at, str):
        created_at = created_moment.isoformat()

    return PlannedRunPayload(
        start=start,
        end=end,
        jobs=jobs,
        start_address=_normalize_address(raw.get("startAddress")),
        end_address=_normalize_address(raw.get("endAddress")),
        created_at=created_at,
        has_started=raw.get("hasStarted") is True,
        next_idx=_clamp_index(raw.get("nextIdx"), len(jobs)),
    )


class PlannedRunStore:
    """Persists the device's planned run across the session and local backends."""

    def __init__(
        self,
        backends: StorageBackends,
        cookies: CookieSink,
        *,
        clock: Clock = _utc_now,
    ) -> None:
        self._item = ReplicatedItem(backends, PLANNED_RUN_STORAGE_KEY)
        self._cookies = cookies
        self._clock = clock

    def _parse(self, raw: str) -> PlannedRunPayload | None:
        try:
            decoded = json.loads(raw)
        except ValueError as exc:
            _logger.warning("Unable to parse planned run payload", error=str(exc))
            return None
        payload = normalize_planned_run(decoded, self._clock())
        if payload is None:
            _logger.warning("Discarding invalid planned run payload")
        return payload

    def read(self) -> PlannedRunPayload | None:
        return self._item.read(self._parse)

    def write(self, payload: PlannedRunPayload | Mapping[str, Any]) -> PlannedRunPayload | None:
        normalized = normalize_planned_run(payload, self._clock())
        if normalized is None:
            _logger.info("Planned run not persisted", reason="no valid jobs or endpoints")
            return None

        written = self._item.write(normalized.model_dump_json(by_alias=True))
        if written:
            sync_active_run_cookie(self._cookies, normalized.has_started)
        _logger.debug(
            "Planned run persisted",
            jobs=len(normalized.jobs),
            next_idx=normalized.next_idx,
            has_started=normalized.has_started,
            backends=written,
        )
        return normalized

    def clear(self) -> None:
        self._item.remove()
        clear_active_run_cookie(self._cookies)

    def mark_started(self) -> PlannedRunPayload | None:
        current = self.read()
        if current is None:
            return None
        return self.write(current.model_copy(update={"has_started": True}))
