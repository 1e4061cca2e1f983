from pydantic import BaseModel, Field
from typing import Generic, TypeVar, Optional, Any, Dict
from datetime import datetime, timezone

DataType = TypeVar("DataType")

class APIResponse(BaseModel, Generic[DataType]):
    """Envelope for every successful response."""
    message: str = Field(..., description="What happened, for display.")
    data: Optional[DataType] = Field(None, description="Payload of the operation, if any.")

class ErrorDetail(BaseModel):
    code: str = Field(..., description="Stable machine-readable code, e.g. LESSON_LOCKED or NO_ACCESS")
    message: str = Field(..., description="Human-readable explanation")
    details: Optional[Dict[str, Any]] = Field(None, description="Rule-specific context such as unlock_date")

class ErrorResponse(BaseModel):
    """Envelope for every failed response."""
    error: ErrorDetail
    timestamp: str = Field(..., description="ISO 8601 UTC time the error was produced")
    path: str = Field(..., description="Request URL")
    request_id: Optional[str] = Field(None, description="Matches the X-Request-ID response header")

    @classmethod
    def build(
        cls, code: str, message: str, path: str,
        request_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ) -> "ErrorResponse":
        return cls(
            error=ErrorDetail(code=code, message=message, details=details),
            timestamp=datetime.now(timezone.utc).isoformat(),
            path=path,
            request_id=request_id,
        )
