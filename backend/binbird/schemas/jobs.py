from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


JobStatus = Literal["scheduled", "en_route", "on_site", "completed", "skipped"]
JobType = Literal["put_out", "bring_in"]


class Job(BaseModel):
    """A single scheduled stop, as produced by the job normalizer."""

    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str | None = None
    property_id: str | None = None
    address: str = ""
    lat: float = 0.0
    lng: float = 0.0
    status: JobStatus = "scheduled"
    job_type: JobType = "put_out"
    bins: str | None = None
    notes: str | None = None
    client_name: str | None = None
    photo_path: str | None = None
    last_completed_on: str | None = None
    assigned_to: str | None = None
    day_of_week: str | None = None


class JobStatusUpdate(BaseModel):
    """Column updates to send to the jobs table for a status transition."""

    job_ids: list[str]
    status: JobStatus
    values: dict[str, str | None]
