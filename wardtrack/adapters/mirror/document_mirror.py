"""Document Mirror Adapter.

The secondary store keeps one JSON document per mirrored record, grouped in
collections ("patients", "notes") and addressed by an MRN index. It is a
write-only copy: the application never reads it back.

Architecture:
    - Implements MirrorPort (Hexagonal Architecture)
    - Each collection is a DuckDB table of (ref, mrn, data, written_at)
    - Documents are stored as JSON text exactly as the record service hands
      them over
"""

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb

from wardtrack.domain.ports import (
    DependencyError,
    MirrorPort,
    NotFoundError,
    Result,
    ValidationError,
)
from wardtrack.infrastructure.config_manager import MirrorConfig

logger = logging.getLogger(__name__)

COLLECTIONS = ("patients", "notes")


def _table(collection: str) -> str:
    # Collection names end up in SQL identifiers, so only known ones pass
    if collection not in COLLECTIONS:
        raise ValidationError(f"Unknown mirror collection: {collection}")
    return f"docs_{collection}"


class DuckDBDocumentMirror(MirrorPort):
    """Document mirror backed by DuckDB tables.

    Parameters:
        mirror_config: MirrorConfig from the configuration manager (preferred)
        db_path: Path to the mirror database file (or ':memory:')

    Example Usage:
        ```python
        mirror = DuckDBDocumentMirror(db_path=":memory:")
        ref = mirror.create_document("patients", "MRN001", {"mrn": "MRN001"}).value
        mirror.replace_by_mrn("patients", "MRN001", {"mrn": "MRN001", "status": "Discharged"})
        ```
    """

    def __init__(self, mirror_config: Optional[MirrorConfig] = None, db_path: Optional[str] = None):
        self.mirror_config = mirror_config or MirrorConfig(db_path=db_path or ":memory:")
        self.enabled = self.mirror_config.enabled
        self.db_path = self.mirror_config.db_path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self._initialized = False

        if self.db_path != ":memory:" and not Path(self.db_path).parent.exists():
            raise DependencyError(
                f"Mirror directory does not exist: {Path(self.db_path).parent}",
                operation="__init__"
            )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self.db_path)
            logger.info(f"Connected to document mirror: {self.db_path}")
        return self._connection

    def initialize_schema(self) -> Result[None]:
        """Create one table per collection plus its MRN index."""
        with self._lock:
            if self._initialized:
                return Result.success_result(None)
            try:
                conn = self._get_connection()
                for collection in COLLECTIONS:
                    table = _table(collection)
                    conn.execute(f"""
                        CREATE TABLE IF NOT EXISTS {table} (
                            ref VARCHAR PRIMARY KEY,
                            mrn VARCHAR NOT NULL,
                            data VARCHAR NOT NULL,
                            written_at TIMESTAMP NOT NULL
                        )
                    """)
                    conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_mrn ON {table}(mrn)")
                self._initialized = True
                logger.info("Document mirror collections initialized")
                return Result.success_result(None)
            except Exception as e:
                error_msg = f"Failed to initialize mirror collections: {str(e)}"
                logger.error(error_msg, exc_info=True)
                return Result.failure_result(
                    DependencyError(error_msg, operation="initialize_schema"),
                    error_type="DependencyError"
                )

    def create_document(self, collection: str, mrn: str, data: dict) -> Result[str]:
        with self._lock:
            init_result = self.initialize_schema()
            if not init_result.is_success():
                return init_result
            try:
                table = _table(collection)
                ref = uuid.uuid4().hex
                self._get_connection().execute(
                    f"INSERT INTO {table} (ref, mrn, data, written_at) VALUES (?, ?, ?, ?)",
                    [ref, mrn, json.dumps(data), datetime.now()]
                )
                return Result.success_result(ref)
            except ValidationError as e:
                return Result.failure_result(e, error_details={"operation": "create_document"})
            except Exception as e:
                return Result.failure_result(
                    DependencyError(
                        f"Failed to create {collection} document: {str(e)}",
                        operation="create_document",
                        mrn=mrn
                    ),
                    error_type="DependencyError"
                )

    def replace_by_mrn(self, collection: str, mrn: str, data: dict) -> Result[str]:
        with self._lock:
            init_result = self.initialize_schema()
            if not init_result.is_success():
                return init_result
            try:
                table = _table(collection)
                conn = self._get_connection()
                row = conn.execute(
                    f"SELECT ref FROM {table} WHERE mrn = ? ORDER BY written_at, rowid LIMIT 1",
                    [mrn]
                ).fetchone()
                if row is None:
                    return Result.failure_result(
                        NotFoundError(f"No {collection} document for MRN {mrn}", mrn=mrn),
                        error_details={"operation": "replace_by_mrn"}
                    )
                conn.execute(
                    f"UPDATE {table} SET data = ?, written_at = ? WHERE ref = ?",
                    [json.dumps(data), datetime.now(), row[0]]
                )
                return Result.success_result(row[0])
            except ValidationError as e:
                return Result.failure_result(e, error_details={"operation": "replace_by_mrn"})
            except Exception as e:
                return Result.failure_result(
                    DependencyError(
                        f"Failed to replace {collection} document: {str(e)}",
                        operation="replace_by_mrn",
                        mrn=mrn
                    ),
                    error_type="DependencyError"
                )

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                except duckdb.Error as e:
                    logger.warning(f"Error closing document mirror: {str(e)}")
                finally:
                    self._connection = None
                    self._initialized = False


class NullMirror(MirrorPort):
    """Mirror used when mirroring is switched off. Nothing is written."""

    enabled = False

    def initialize_schema(self) -> Result[None]:
        return Result.success_result(None)

    def create_document(self, collection: str, mrn: str, data: dict) -> Result[str]:
        return Result.success_result("")

    def replace_by_mrn(self, collection: str, mrn: str, data: dict) -> Result[str]:
        return Result.success_result("")
