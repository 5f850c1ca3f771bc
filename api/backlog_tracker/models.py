"""Response envelopes shared by every router (catalog DTOs live in schemas)."""

from pydantic import BaseModel, Field


class WelcomeResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = Field(..., examples=["healthy"])
    message: str


class OperationsResponse(BaseModel):
    loading: list[str] = Field(
        default_factory=list, description="Operation keys currently in flight, sorted"
    )


class ErrorDetail(BaseModel):
    field: str = Field(..., description="Dotted path of the offending input")
    message: str


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Machine-readable code, e.g. source_unavailable")
    message: str
    details: list[ErrorDetail] | None = None
    timestamp: str = Field(..., description="UTC, ISO 8601 with a Z suffix")
    request_id: str
