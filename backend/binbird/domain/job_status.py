from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from binbird.schemas.jobs import JobStatus, JobStatusUpdate


_STATUS_NORMALISATION: dict[str, JobStatus] = {
    "scheduled": "scheduled",
    "pending": "scheduled",
    "queued": "scheduled",
    "unstarted": "scheduled",
    "en_route": "en_route",
    "enroute": "en_route",
    "travelling": "en_route",
    "transit": "en_route",
    "in_transit": "en_route",
    "inprogress": "en_route",
    "in-progress": "en_route",
    "in_progress": "en_route",
    "started": "en_route",
    "driving": "en_route",
    "on_site": "on_site",
    "onsite": "on_site",
    "arrived": "on_site",
    "arrived_on_site": "on_site",
    "at_location": "on_site",
    "completed": "completed",
    "done": "completed",
    "finished": "completed",
    "wrapped": "completed",
    "skipped": "skipped",
    "cancelled": "skipped",
}

# Column stamped with the transition time for each status.
_STATUS_TIMESTAMP_COLUMN: dict[JobStatus, str] = {
    "en_route": "started_at",
    "on_site": "arrived_at",
    "completed": "completed_at",
}

TERMINAL_STATUSES: frozenset[JobStatus] = frozenset({"completed", "skipped"})


def parse_job_progress_status(
    value: Any,
    *,
    completed: bool = False,
    skipped: bool = False,
) -> JobStatus:
    """Map a free-form status label onto the job progress vocabulary."""

    if skipped:
        return "skipped"
    if completed:
        return "completed"
    if isinstance(value, str):
        key = "_".join(value.strip().lower().split())
        if key in _STATUS_NORMALISATION:
            return _STATUS_NORMALISATION[key]
    return "scheduled"


def unique_job_ids(job_ids: Iterable[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for value in job_ids:
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if trimmed:
            seen.setdefault(trimmed, None)
    return list(seen)


def build_status_update(
    job_ids: Iterable[Any],
    status: JobStatus,
    extra: Mapping[str, str | None] | None = None,
    now: datetime | None = None,
) -> JobStatusUpdate | None:
    """
    Build the column updates for moving jobs to ``status``.

    The transition column (``started_at``, ``arrived_at`` or ``completed_at``)
    is stamped with ``now`` unless ``extra`` already carries it. Returns
    ``None`` when no usable job id remains after trimming.
    """
    ids = unique_job_ids(job_ids)
    if not ids:
        return None

    values: dict[str, str | None] = dict(extra or {})
    column = _STATUS_TIMESTAMP_COLUMN.get(status)
    if column is not None and values.get(column) is None:
        moment = now or datetime.now(timezone.utc)
        values[column] = moment.isoformat()

    return JobStatusUpdate(job_ids=ids, status=status, values=values)
