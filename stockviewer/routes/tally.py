"""Live Tally endpoints.

POST /v1/tally/refresh     - run a refresh now (or get the running one's last result)
GET  /v1/tally/status      - scheduler state and last outcome
GET  /v1/tally/preview     - fetch + normalize without saving
GET  /v1/tally/connection  - connection check

In TALLY_SCHEDULER_MODE=api deployments an external cron calls /refresh.
"""

import time

from fastapi import APIRouter, Depends, Query

from stockviewer.schemas import ConnectionTestOut, RefreshResultOut, SchedulerStatusOut, TallyPreviewOut
from stockviewer.routes.deps import get_scheduler
from stockviewer.services.refresh import preview_tally_data
from stockviewer.services.scheduler import RefreshScheduler
from stockviewer.services.tally_client import TallyClient

router = APIRouter()


@router.post("/refresh", response_model=RefreshResultOut)
async def trigger_refresh(scheduler: RefreshScheduler = Depends(get_scheduler)) -> RefreshResultOut:
    return RefreshResultOut.from_result(await scheduler.refresh())


@router.get("/status", response_model=SchedulerStatusOut)
async def refresh_status(scheduler: RefreshScheduler = Depends(get_scheduler)) -> SchedulerStatusOut:
    return SchedulerStatusOut.from_status(scheduler.status())


@router.get("/preview", response_model=TallyPreviewOut)
async def preview(
    company: str | None = Query(default=None),
    godown: str | None = Query(default=None),
) -> TallyPreviewOut:
    return TallyPreviewOut.from_preview(await preview_tally_data(company=company, location=godown))


@router.get("/connection", response_model=ConnectionTestOut)
async def connection_check() -> ConnectionTestOut:
    client = TallyClient()
    started = time.perf_counter()
    try:
        ok = await client.test_connection()
    finally:
        await client.close()
    return ConnectionTestOut(
        ok=ok,
        base_url=client.base_url,
        latency_ms=int((time.perf_counter() - started) * 1000),
    )
