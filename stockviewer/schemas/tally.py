"""Schemas for live Tally endpoints (/v1/tally/*)."""

from datetime import datetime

from pydantic import BaseModel, Field

from stockviewer.services.refresh import RefreshResult, TallyPreview
from stockviewer.services.scheduler import SchedulerStatus


class RefreshResultOut(BaseModel):
    success: bool
    error: str | None = None
    source: str = "tally"
    company: str
    location: str | None = None
    fetched_count: int = Field(alias="fetchedCount")
    parsed_count: int = Field(alias="parsedCount")
    upserted_count: int = Field(alias="upsertedCount")
    invalid_count: int = Field(alias="invalidCount")
    started_at: datetime = Field(alias="startedAt")
    completed_at: datetime = Field(alias="completedAt")
    duration_ms: int = Field(alias="durationMs")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: RefreshResult) -> "RefreshResultOut":
        return cls(
            success=result.success,
            error=result.error,
            source=result.source,
            company=result.company,
            location=result.location,
            fetched_count=result.fetched_count,
            parsed_count=result.parsed_count,
            upserted_count=result.upserted_count,
            invalid_count=result.invalid_count,
            started_at=result.started_at,
            completed_at=result.completed_at,
            duration_ms=result.duration_ms,
        )


class SchedulerStatusOut(BaseModel):
    scheduler_running: bool = Field(alias="schedulerRunning")
    is_refreshing: bool = Field(alias="isRefreshing")
    last_result: RefreshResultOut | None = Field(alias="lastResult", default=None)
    last_error: str | None = Field(alias="lastError", default=None)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_status(cls, status: SchedulerStatus) -> "SchedulerStatusOut":
        return cls(
            scheduler_running=status.scheduler_running,
            is_refreshing=status.is_refreshing,
            last_result=RefreshResultOut.from_result(status.last_result) if status.last_result else None,
            last_error=status.last_error,
        )


class PreviewItem(BaseModel):
    name: str
    brand: str | None = None
    qty: float | None = None
    unit: str | None = None


class TallyPreviewOut(BaseModel):
    success: bool
    error: str | None = None
    total_raw: int = Field(alias="totalRaw")
    total_normalized: int = Field(alias="totalNormalized")
    invalid_count: int = Field(alias="invalidCount")
    by_brand: dict[str, int] = Field(alias="byBrand", default_factory=dict)
    items: list[PreviewItem] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_preview(cls, preview: TallyPreview) -> "TallyPreviewOut":
        return cls(
            success=preview.success,
            error=preview.error,
            total_raw=preview.total_raw,
            total_normalized=preview.total_normalized,
            invalid_count=preview.invalid_count,
            by_brand=preview.by_brand,
            items=[
                PreviewItem(name=i.name, brand=i.brand, qty=i.qty, unit=i.unit) for i in preview.items
            ],
        )


class ConnectionTestOut(BaseModel):
    ok: bool
    base_url: str = Field(alias="baseUrl")
    latency_ms: int = Field(alias="latencyMs")

    model_config = {"populate_by_name": True}
