"""Response bodies shared by the auth and health routes."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel

HealthStatus = Literal["healthy", "degraded", "unhealthy"]
CheckResult = Literal["ok", "error", "not_configured"]


class ErrorResponse(BaseModel):
    """Body rendered from AppError.to_dict() by the global handlers."""

    error: str
    code: str
    field: Optional[str] = None
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    checks: dict[str, CheckResult]


class MessageResponse(BaseModel):
    success: bool
    message: Optional[str] = None
