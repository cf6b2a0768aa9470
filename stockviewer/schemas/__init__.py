"""Pydantic schemas for API request/response validation."""

from stockviewer.schemas.catalog import (
    BrandsResponse,
    ChangeOut,
    ChangesResponse,
    PriceUpdateRequest,
    PriceUpdateResponse,
    ProductOut,
    ProductsResponse,
    SummaryResponse,
)
from stockviewer.schemas.common import ErrorDetail, ErrorResponse
from stockviewer.schemas.imports import DefaultExportInfo, ImportResponse
from stockviewer.schemas.tally import (
    ConnectionTestOut,
    PreviewItem,
    RefreshResultOut,
    SchedulerStatusOut,
    TallyPreviewOut,
)

__all__ = [
    "BrandsResponse",
    "ChangeOut",
    "ChangesResponse",
    "ConnectionTestOut",
    "DefaultExportInfo",
    "ErrorDetail",
    "ErrorResponse",
    "ImportResponse",
    "PreviewItem",
    "PriceUpdateRequest",
    "PriceUpdateResponse",
    "ProductOut",
    "ProductsResponse",
    "RefreshResultOut",
    "SchedulerStatusOut",
    "SummaryResponse",
    "TallyPreviewOut",
]
