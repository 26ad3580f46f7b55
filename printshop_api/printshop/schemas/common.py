from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Plain acknowledgement, optionally with a small payload."""
    message: str
    details: Optional[dict] = Field(default=None, description="Extra data, e.g. computed quantities")


class ErrorInfo(BaseModel):
    type: str = Field(..., description="Stable error code: not_found, invalid_request, deduction_failed, ...")
    message: str
    details: Optional[Any] = Field(default=None, description="Validation issues or deduction reasons")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    status: int
    error: ErrorInfo
    correlation_id: Optional[str] = Field(default=None, description="Matches the X-Correlation-ID header")
    path: Optional[str] = None
    method: Optional[str] = None
    timestamp: datetime = Field(..., description="When the error was produced (UTC)")
