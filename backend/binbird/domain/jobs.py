from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from binbird.domain.job_status import parse_job_progress_status
from binbird.schemas.jobs import Job, JobStatus, JobType


_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_JOB_TYPE_SEPARATOR_RE = re.compile(r"[-\s]+")
_BRING_IN_TOKENS = frozenset({"bring_in", "bringin", "bring", "in"})


def _normalize_string(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        return str(int(value)) if value.is_integer() else str(value)
    if not value:
        return ""
    return str(value).strip()


def _normalize_optional_string(value: Any) -> str | None:
    normalized = _normalize_string(value)
    return normalized or None


def _normalize_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _normalize_date(value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        match = _DATE_PREFIX_RE.match(trimmed)
        if match:
            return match.group(1)
        # Unknown shapes are kept verbatim rather than dropped.
        return trimmed
    return None


def normalize_job_type(value: Any) -> JobType:
    raw = _normalize_string(value).lower()
    if not raw:
        return "put_out"
    cleaned = _JOB_TYPE_SEPARATOR_RE.sub("_", raw)
    if cleaned in _BRING_IN_TOKENS or cleaned.endswith("_in"):
        return "bring_in"
    return "put_out"


def _normalize_status(value: Any, last_completed_on: str | None) -> JobStatus:
    status = parse_job_progress_status(value)
    if last_completed_on and status not in {"skipped", "completed"}:
        return "completed"
    return status


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, Job):
        return raw.model_dump()
    if isinstance(raw, Mapping):
        return raw
    return {}


def normalize_job(raw: Any) -> Job:
    """
    Canonicalize a loosely typed job row into a :class:`Job`.

    Never raises: unparsable numbers become ``0``, unknown enum tokens fall
    back to their defaults and anything that is not a mapping is read as an
    empty record. A set ``last_completed_on`` forces ``completed`` unless the
    job was explicitly skipped.
    """
    record = _as_mapping(raw)
    last_completed_on = _normalize_date(record.get("last_completed_on"))

    return Job(
        id=_normalize_string(record.get("id")),
        account_id=_normalize_optional_string(record.get("account_id")),
        property_id=_normalize_optional_string(record.get("property_id")),
        address=_normalize_string(record.get("address")),
        lat=_normalize_number(record.get("lat")),
        lng=_normalize_number(record.get("lng")),
        status=_normalize_status(record.get("status"), last_completed_on),
        job_type=normalize_job_type(record.get("job_type")),
        bins=_normalize_optional_string(record.get("bins")),
        notes=_normalize_optional_string(record.get("notes")),
        client_name=_normalize_optional_string(record.get("client_name")),
        photo_path=_normalize_optional_string(record.get("photo_path")),
        last_completed_on=last_completed_on,
        assigned_to=_normalize_optional_string(record.get("assigned_to")),
        day_of_week=_normalize_optional_string(record.get("day_of_week")),
    )


def normalize_jobs(records: Iterable[Any] | None) -> list[Job]:
    if not records:
        return []
    return [normalize_job(record) for record in records]
