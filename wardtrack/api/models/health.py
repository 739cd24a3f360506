"""Health check models for the ward API."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from wardtrack.infrastructure.settings import APP_VERSION


class DatabaseHealth(BaseModel):
    """Primary store health status.

    Attributes:
        status: Connection status
        type: Database type (duckdb or postgresql)
        response_time_ms: Round-trip time of a trivial query (optional)
    """
    status: Literal["connected", "disconnected"]
    type: str
    response_time_ms: Optional[float] = Field(None, description="Database response time in milliseconds")


class MirrorHealth(BaseModel):
    """Document mirror status as seen by the mirror monitor."""
    status: Literal["ok", "degraded", "disabled"]
    total_writes: int = 0
    total_failures: int = 0
    failure_rate: float = 0.0
    last_error: Optional[str] = None
    last_failure_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    """Health check response model.

    A degraded mirror degrades the overall status; the primary store being
    unreachable makes it unhealthy.
    """
    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(default=APP_VERSION, description="Application version")
    database: DatabaseHealth
    mirror: MirrorHealth
