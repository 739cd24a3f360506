"""Dependency injection for the ward API.

Stores, the mirror and the mirror monitor are process-wide and cached; the
record service wiring them together is cheap and built per request.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from wardtrack.adapters.mirror import DuckDBDocumentMirror, NullMirror
from wardtrack.adapters.storage import DuckDBRecordStore, PostgreSQLRecordStore
from wardtrack.domain.guardrails import MirrorMonitor, MirrorMonitorConfig
from wardtrack.domain.ports import MirrorPort, RecordStorePort
from wardtrack.domain.services import RecordService
from wardtrack.infrastructure.config_manager import DatabaseConfig, MirrorConfig
from wardtrack.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_record_store(db_config: DatabaseConfig) -> RecordStorePort:
    """Build the primary store matching the configured database type.

    Raises:
        ValueError: If database type is unsupported
    """
    if db_config.db_type == "duckdb":
        logger.debug(f"Creating DuckDB record store with path: {db_config.db_path or ':memory:'}")
        return DuckDBRecordStore(db_config=db_config)
    elif db_config.db_type == "postgresql":
        logger.debug(f"Creating PostgreSQL record store with host: {db_config.host}")
        return PostgreSQLRecordStore(db_config=db_config)
    else:
        raise ValueError(f"Unsupported database type: {db_config.db_type}")


def create_mirror(mirror_config: MirrorConfig) -> MirrorPort:
    if not mirror_config.enabled:
        logger.info("Document mirror disabled")
        return NullMirror()
    return DuckDBDocumentMirror(mirror_config=mirror_config)


@lru_cache()
def get_record_store() -> RecordStorePort:
    """Primary record store (cached)."""
    return create_record_store(settings.db_config)


@lru_cache()
def get_mirror() -> MirrorPort:
    """Document mirror (cached)."""
    return create_mirror(settings.mirror_config)


@lru_cache()
def get_mirror_monitor() -> MirrorMonitor:
    """Mirror outcome monitor shared by all requests (cached)."""
    return MirrorMonitor(MirrorMonitorConfig(
        failure_threshold_percent=settings.mirror_failure_threshold,
        window_size=settings.mirror_window_size,
    ))


def get_record_service(
    store: Annotated[RecordStorePort, Depends(get_record_store)],
    mirror: Annotated[MirrorPort, Depends(get_mirror)],
    monitor: Annotated[MirrorMonitor, Depends(get_mirror_monitor)],
) -> RecordService:
    return RecordService(
        store=store,
        mirror=mirror,
        monitor=monitor,
        system_actor=settings.system_actor,
    )


# Type alias for dependency injection
ServiceDep = Annotated[RecordService, Depends(get_record_service)]
