from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from binbird.schemas.jobs import Job, JobStatusUpdate


class LatLng(BaseModel):
    lat: float
    lng: float


class PlannedRunPayload(BaseModel):
    """A device's current multi-stop run plan, stored as camelCase JSON."""

    model_config = ConfigDict(populate_by_name=True)

    start: LatLng
    end: LatLng
    jobs: list[Job]
    start_address: str | None = Field(None, alias="startAddress")
    end_address: str | None = Field(None, alias="endAddress")
    created_at: str = Field(alias="createdAt")
    has_started: bool = Field(False, alias="hasStarted")
    next_idx: int = Field(0, alias="nextIdx")

    @property
    def current_job(self) -> Job:
        return self.jobs[self.next_idx]


class RunSessionRecord(BaseModel):
    """Metrics snapshot of the active or most recent run on a device."""

    model_config = ConfigDict(populate_by_name=True)

    started_at: str = Field(alias="startedAt")
    ended_at: str | None = Field(None, alias="endedAt")
    total_jobs: int = Field(0, alias="totalJobs")
    completed_jobs: int = Field(0, alias="completedJobs")


class RunMenuStateResponse(BaseModel):
    has_planned_run: bool
    show_end_run: bool
    lock_navigation: bool


class RunStateResponse(BaseModel):
    menu: RunMenuStateResponse
    planned_run: PlannedRunPayload | None = None
    run_session: RunSessionRecord | None = None


class PlanRunRequest(BaseModel):
    start: LatLng
    end: LatLng
    jobs: list[dict] = Field(default_factory=list)
    start_address: str | None = None
    end_address: str | None = None


class PlanRunResponse(BaseModel):
    planned_run: PlannedRunPayload
    polyline: str
    path: list[LatLng] = Field(default_factory=list)


class RunProgressResponse(BaseModel):
    planned_run: PlannedRunPayload | None = None
    run_session: RunSessionRecord | None = None
    status_update: JobStatusUpdate | None = None
    finished: bool = False


class RunSummaryResponse(BaseModel):
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_ms: int | None = None
    duration_label: str
    average_ms: int | None = None
    average_label: str
    start_label: str | None = None
    end_label: str | None = None
    jobs_completed: int
    total_jobs: int
    completion_percent: int | None = None
