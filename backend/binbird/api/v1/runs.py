from __future__ import annotations

import asyncio
from dataclasses import dataclass

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status

from binbird.core.config import get_settings
from binbird.core.logging import bind_device
from binbird.schemas.runs import (
    LatLng,
    PlanRunRequest,
    PlanRunResponse,
    RunMenuStateResponse,
    RunProgressResponse,
    RunStateResponse,
    RunSummaryResponse,
)
from binbird.services.cookies import CookieJar
from binbird.services.routing import RouteOptimizationError
from binbird.services.run_service import (
    RunProgress,
    RunService,
    RunServiceRegistry,
    get_run_service_registry,
)

router = APIRouter()


@dataclass(slots=True)
class DeviceContext:
    service: RunService
    cookies: CookieJar


def get_registry() -> RunServiceRegistry:
    return get_run_service_registry(get_settings())


async def get_device_context(
    x_device_id: str | None = Header(default=None),
    registry: RunServiceRegistry = Depends(get_registry),
) -> DeviceContext:
    device_id = (x_device_id or "").strip()
    if not device_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "X-Device-Id header is required")
    bind_device(device_id)
    cookies = CookieJar()
    return DeviceContext(registry.service_for(device_id, cookies), cookies)


def _progress_response(progress: RunProgress) -> RunProgressResponse:
    return RunProgressResponse(
        planned_run=progress.planned_run,
        run_session=progress.run_session,
        status_update=progress.status_update,
        finished=progress.finished,
    )


@router.get("/state", response_model=RunStateResponse)
async def get_state(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> RunStateResponse:
    state = await asyncio.to_thread(context.service.state)
    context.cookies.apply(response)
    return RunStateResponse(
        menu=RunMenuStateResponse(
            has_planned_run=state.menu.has_planned_run,
            show_end_run=state.menu.show_end_run,
            lock_navigation=state.menu.lock_navigation,
        ),
        planned_run=state.planned_run,
        run_session=state.run_session,
    )


@router.post("/plan", response_model=PlanRunResponse, status_code=status.HTTP_201_CREATED)
async def plan_run(
    payload: PlanRunRequest,
    response: Response,
    context: DeviceContext = Depends(get_device_context),
) -> PlanRunResponse:
    if not payload.jobs:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "At least one job is required")

    try:
        planned = await asyncio.to_thread(
            context.service.plan_run,
            payload.jobs,
            payload.start,
            payload.end,
            start_address=payload.start_address,
            end_address=payload.end_address,
        )
    except RouteOptimizationError as exc:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    if planned is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Could not build route")

    context.cookies.apply(response)
    return PlanRunResponse(
        planned_run=planned.planned_run,
        polyline=planned.polyline,
        path=[LatLng(lat=lat, lng=lng) for lat, lng in planned.path],
    )


@router.delete("/plan", status_code=status.HTTP_204_NO_CONTENT)
async def reset_plan(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> None:
    await asyncio.to_thread(context.service.reset)
    context.cookies.apply(response)


@router.post("/start", response_model=RunProgressResponse)
async def start_run(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> RunProgressResponse:
    progress = await asyncio.to_thread(context.service.start_run)
    if progress is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No planned run")
    context.cookies.apply(response)
    return _progress_response(progress)


@router.post("/arrive", response_model=RunProgressResponse)
async def arrive(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> RunProgressResponse:
    progress = await asyncio.to_thread(context.service.arrive)
    if progress is None:
        raise HTTPException(status.HTTP_409_CONFLICT, "Run has not started")
    context.cookies.apply(response)
    return _progress_response(progress)


@router.post("/complete", response_model=RunProgressResponse)
async def complete_job(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> RunProgressResponse:
    progress = await asyncio.to_thread(context.service.complete_current_job)
    if progress is None:
        raise HTTPException(status.HTTP_409_CONFLICT, "Run has not started")
    context.cookies.apply(response)
    return _progress_response(progress)


@router.post("/end", response_model=RunProgressResponse)
async def end_run(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> RunProgressResponse:
    progress = await asyncio.to_thread(context.service.end_run)
    if progress is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No run to end")
    context.cookies.apply(response)
    return _progress_response(progress)


@router.get("/summary", response_model=RunSummaryResponse)
async def get_summary(
    response: Response, context: DeviceContext = Depends(get_device_context)
) -> RunSummaryResponse:
    summary = await asyncio.to_thread(context.service.consume_summary)
    context.cookies.apply(response)
    if summary is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No finished run")
    return RunSummaryResponse(
        started_at=summary.started_at,
        ended_at=summary.ended_at,
        duration_ms=summary.duration_ms,
        duration_label=summary.duration_label,
        average_ms=summary.average_ms,
        average_label=summary.average_label,
        start_label=summary.start_label,
        end_label=summary.end_label,
        jobs_completed=summary.jobs_completed,
        total_jobs=summary.total_jobs,
        completion_percent=summary.completion_percent,
    )
