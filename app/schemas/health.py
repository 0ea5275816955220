"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class ReadinessResponse(BaseModel):
    """Response for GET /health/ready."""

    status: str = Field(default="ok", description="Readiness status")
    audit_store: str = Field(..., description="'ok', 'disabled' or 'unavailable'")
    counter_store: str = Field(..., description="'redis' or 'memory'")
