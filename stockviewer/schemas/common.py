"""Error envelope shared by every non-2xx response raised by the app's handlers."""

from typing import Any

from pydantic import BaseModel

# Error codes returned in error.code
INGESTION_ERROR = "INGESTION_ERROR"
FILE_NOT_FOUND = "FILE_NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"
BAD_REQUEST = "BAD_REQUEST"
NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
PRICE_UPDATE_FAILED = "PRICE_UPDATE_FAILED"
HTTP_ERROR = "HTTP_ERROR"

HTTP_STATUS_CODES = {400: BAD_REQUEST, 404: NOT_FOUND, 422: VALIDATION_ERROR}


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """{ "error": { "code": str, "message": str, "detail": object | null } }"""

    error: ErrorDetail

    @classmethod
    def build(cls, code: str, message: str, detail: dict[str, Any] | None = None) -> "ErrorResponse":
        return cls(error=ErrorDetail(code=code, message=message, detail=detail))
