from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, tzinfo

from binbird.domain.operational_day import parse_timestamp
from binbird.schemas.runs import RunSessionRecord


_MISSING_LABEL = "—"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(frozen=True, slots=True)
class RunSummary:
    started_at: datetime | None
    ended_at: datetime | None
    duration_ms: int | None
    duration_label: str
    average_ms: int | None
    average_label: str
    start_label: str | None
    end_label: str | None
    jobs_completed: int
    total_jobs: int
    completion_percent: int | None


def format_duration(ms: float) -> str:
    """Render a duration such as ``1h 5m``, ``7m 12s`` or ``45s``."""

    seconds_total = _round_half_up(ms / 1000) if math.isfinite(ms) else 0
    seconds_total = max(seconds_total, 0)
    hours, remainder = divmod(seconds_total, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if not hours and not minutes:
        parts.append(f"{seconds}s")
    elif not hours and minutes < 10 and seconds:
        parts.append(f"{seconds}s")

    return " ".join(parts) or "0s"


def format_duration_seconds(seconds: float) -> str:
    """Coarse ETA label in hours and minutes; anything shorter is ``<1m``."""

    clamped = max(0, _round_half_up(seconds)) if math.isfinite(seconds) else 0
    hours, remainder = divmod(clamped, 3600)
    minutes = remainder // 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return " ".join(parts) or "<1m"


def format_timestamp(value: str | None, tz: tzinfo | None = None) -> str | None:
    moment = parse_timestamp(value)
    if moment is None:
        return None
    if tz is not None and moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    hour = moment.hour % 12 or 12
    return (
        f"{moment:%a}, {moment:%b} {moment.day} • "
        f"{hour}:{moment:%M} {'AM' if moment.hour < 12 else 'PM'}"
    )


def _duration_ms(started_at: datetime | None, ended_at: datetime | None) -> int | None:
    if started_at is None or ended_at is None:
        return None
    try:
        delta = ended_at - started_at
    except TypeError:
        # Mixed naive/aware timestamps cannot be compared.
        return None
    milliseconds = _round_half_up(delta.total_seconds() * 1000)
    return milliseconds if milliseconds >= 0 else None


def summarize_run(record: RunSessionRecord, tz: tzinfo | None = None) -> RunSummary:
    """Derive the statistics shown once a run has finished."""

    started_at = parse_timestamp(record.started_at)
    ended_at = parse_timestamp(record.ended_at)
    duration_ms = _duration_ms(started_at, ended_at)

    total_jobs = max(record.total_jobs, 0)
    jobs_completed = min(max(record.completed_jobs, 0), total_jobs)

    average_ms = None
    if duration_ms is not None and jobs_completed > 0:
        average_ms = _round_half_up(duration_ms / jobs_completed)

    completion_percent = None
    if total_jobs > 0:
        completion_percent = _round_half_up(jobs_completed * 100 / total_jobs)

    return RunSummary(
        started_at=started_at,
        ended_at=ended_at,
        duration_ms=duration_ms,
        duration_label=(
            format_duration(duration_ms) if duration_ms is not None else _MISSING_LABEL
        ),
        average_ms=average_ms,
        average_label=(
            format_duration(average_ms) if average_ms is not None else _MISSING_LABEL
        ),
        start_label=format_timestamp(record.started_at, tz),
        end_label=format_timestamp(record.ended_at, tz),
        jobs_completed=jobs_completed,
        total_jobs=total_jobs,
        completion_percent=completion_percent,
    )
