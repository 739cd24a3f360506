"""Health check endpoint for the ward API."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from wardtrack.api.dependencies import ServiceDep
from wardtrack.api.models.health import DatabaseHealth, HealthResponse, MirrorHealth
from wardtrack.domain.services import RecordService
from wardtrack.infrastructure.settings import APP_VERSION

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def check_database_health(service: RecordService) -> DatabaseHealth:
    """Round-trip a trivial query against the primary store."""
    store = service.store
    db_type = store.db_config.db_type if hasattr(store, "db_config") else "unknown"

    result = store.ping()
    if result.is_success():
        return DatabaseHealth(status="connected", type=db_type, response_time_ms=result.value)

    logger.warning(f"Database ping failed: {result.error}")
    return DatabaseHealth(status="disconnected", type=db_type, response_time_ms=None)


def check_mirror_health(service: RecordService) -> MirrorHealth:
    """Mirror status from the monitor; the mirror itself is never queried."""
    if not service.mirror_enabled:
        return MirrorHealth(status="disabled")

    monitor = service.monitor
    stats = monitor.get_statistics()
    return MirrorHealth(
        status="degraded" if monitor.is_degraded() else "ok",
        total_writes=stats["total_writes"],
        total_failures=stats["total_failures"],
        failure_rate=round(stats["failure_rate"], 2),
        last_error=stats["last_error"],
        last_failure_at=stats["last_failure_at"],
    )


@router.get("/health", response_model=HealthResponse)
def health_check(service: ServiceDep) -> HealthResponse:
    """System health: primary store connectivity and mirror write outcomes.

    Always answers 200; the body carries the verdict.
    """
    db_health = check_database_health(service)
    mirror_health = check_mirror_health(service)

    if db_health.status == "disconnected":
        overall_status = "unhealthy"
    elif mirror_health.status == "degraded":
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        database=db_health,
        mirror=mirror_health,
    )
