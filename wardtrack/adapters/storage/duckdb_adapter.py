"""DuckDB Record Store Adapter.

This adapter implements the RecordStorePort contract on DuckDB, an in-process
database used as the primary store for local development, the CLI and tests.

Architecture:
    - Implements RecordStorePort (Hexagonal Architecture)
    - One database connection; each operation runs on its own cursor inside a
      transaction, serialized by a lock (DuckDB is a single-writer store)
    - Note referential integrity is checked inside the insert transaction
      rather than with a FOREIGN KEY, because DuckDB rejects updates to rows
      referenced by a foreign key
"""

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, TypeVar

import duckdb

from wardtrack.domain.enums import PatientStatus
from wardtrack.domain.models import MedicalNote, NoteCreate, Patient, PatientCreate
from wardtrack.domain.ports import (
    ConflictError,
    DependencyError,
    NotFoundError,
    RecordError,
    RecordStorePort,
    Result,
    ValidationError,
)
from wardtrack.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)

T = TypeVar('T')

PATIENT_COLUMNS = (
    "mrn, name, age, gender, diagnosis, admission_date, discharge_date, "
    "status, specialty, assigned_doctor"
)
NOTE_COLUMNS = 'id, patient_mrn, date, note, "user"'

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS patients (
        mrn VARCHAR PRIMARY KEY,
        name VARCHAR NOT NULL,
        age INTEGER NOT NULL CHECK (age >= 0),
        gender VARCHAR NOT NULL CHECK (gender IN ('Male', 'Female', 'Other')),
        diagnosis VARCHAR NOT NULL,
        admission_date TIMESTAMP NOT NULL,
        discharge_date TIMESTAMP,
        status VARCHAR NOT NULL DEFAULT 'Active' CHECK (status IN ('Active', 'Discharged')),
        specialty VARCHAR NOT NULL,
        assigned_doctor VARCHAR
    )
    """,
    "CREATE SEQUENCE IF NOT EXISTS medical_notes_id_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS medical_notes (
        id BIGINT PRIMARY KEY DEFAULT nextval('medical_notes_id_seq'),
        patient_mrn VARCHAR NOT NULL,
        date TIMESTAMP NOT NULL,
        note VARCHAR NOT NULL,
        "user" VARCHAR NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_medical_notes_patient_mrn ON medical_notes(patient_mrn)",
]


def _naive_local(moment: datetime) -> datetime:
    """TIMESTAMP columns hold local wall-clock time."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def _column_value(value):
    if isinstance(value, datetime):
        return _naive_local(value)
    return value.value if hasattr(value, "value") else value


def _fetch_dicts(cursor) -> list[dict]:
    columns = [d[0] for d in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _fetch_dict(cursor) -> Optional[dict]:
    rows = _fetch_dicts(cursor)
    return rows[0] if rows else None


class DuckDBRecordStore(RecordStorePort):
    """DuckDB implementation of RecordStorePort.

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        store = DuckDBRecordStore(db_path=":memory:")
        result = store.insert_patient(patient)
        if result.is_success():
            print(result.value.status)
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        db_path: Optional[str] = None
    ):
        if db_config:
            if db_config.db_type != "duckdb":
                raise DependencyError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_config = db_config
        else:
            self.db_config = DatabaseConfig(db_type="duckdb", db_path=db_path or ":memory:")

        self.db_path = self.db_config.db_path or ":memory:"
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self._initialized = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise DependencyError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection (created lazily)."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except duckdb.Error as e:
                raise DependencyError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )
        return self._connection

    def _execute(
        self,
        operation: str,
        work: Callable[..., T],
        mrn: Optional[str] = None
    ) -> Result[T]:
        """Run work(cursor) in one transaction and map failures to domain errors."""
        with self._lock:
            if not self._initialized:
                init_result = self.initialize_schema()
                if not init_result.is_success():
                    return init_result

            cursor = None
            try:
                cursor = self._get_connection().cursor()
                cursor.begin()
                value = work(cursor)
                cursor.commit()
                return Result.success_result(value)

            except RecordError as e:
                self._rollback(cursor)
                if not isinstance(e, DependencyError):
                    logger.info(f"{operation} rejected: {type(e).__name__}: {str(e)}")
                return Result.failure_result(e, error_details={"operation": operation})

            except duckdb.ConstraintException as e:
                self._rollback(cursor)
                if "duplicate key" in str(e).lower():
                    error = ConflictError(f"Patient with MRN {mrn} already exists", mrn=mrn)
                else:
                    error = ValidationError(f"Rejected by schema constraint: {str(e)}", mrn=mrn)
                return Result.failure_result(error, error_details={"operation": operation})

            except Exception as e:
                self._rollback(cursor)
                error_msg = f"Failed to {operation}: {str(e)}"
                logger.error(error_msg, exc_info=True)
                return Result.failure_result(
                    DependencyError(error_msg, operation=operation, mrn=mrn),
                    error_type="DependencyError"
                )

            finally:
                if cursor is not None:
                    cursor.close()

    def _rollback(self, cursor) -> None:
        if cursor is None:
            return
        try:
            cursor.rollback()
        except duckdb.Error as e:
            logger.warning(f"Rollback failed: {str(e)}")

    def initialize_schema(self) -> Result[None]:
        """Create the patients and medical_notes tables (idempotent)."""
        with self._lock:
            if self._initialized:
                return Result.success_result(None)
            try:
                conn = self._get_connection()
                for statement in SCHEMA_STATEMENTS:
                    conn.execute(statement)
                self._initialized = True
                logger.info("DuckDB ward schema initialized successfully")
                return Result.success_result(None)
            except Exception as e:
                error_msg = f"Failed to initialize schema: {str(e)}"
                logger.error(error_msg, exc_info=True)
                return Result.failure_result(
                    DependencyError(error_msg, operation="initialize_schema"),
                    error_type="DependencyError"
                )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_patient(self, patient: PatientCreate) -> Result[Patient]:
        def work(cursor) -> Patient:
            cursor.execute(
                f"""
                INSERT INTO patients (
                    mrn, name, age, gender, diagnosis, admission_date,
                    status, specialty, assigned_doctor
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING {PATIENT_COLUMNS}
                """,
                [
                    patient.mrn,
                    patient.name,
                    patient.age,
                    patient.gender.value,
                    patient.diagnosis,
                    _naive_local(patient.admission_date),
                    PatientStatus.ACTIVE.value,
                    patient.specialty.value,
                    patient.assigned_doctor,
                ]
            )
            return Patient.model_validate(_fetch_dict(cursor))

        return self._execute("insert_patient", work, mrn=patient.mrn)

    def update_patient(self, mrn: str, fields: dict) -> Result[Patient]:
        def work(cursor) -> Patient:
            if fields:
                # Column names come from MUTABLE_PATIENT_FIELDS, never from the client
                assignments = ", ".join(f"{column} = ?" for column in fields)
                cursor.execute(
                    f"UPDATE patients SET {assignments} WHERE mrn = ? RETURNING {PATIENT_COLUMNS}",
                    [_column_value(v) for v in fields.values()] + [mrn]
                )
            else:
                cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients WHERE mrn = ?", [mrn])

            row = _fetch_dict(cursor)
            if row is None:
                raise NotFoundError(f"Patient with MRN {mrn} not found", mrn=mrn)
            return Patient.model_validate(row)

        return self._execute("update_patient", work, mrn=mrn)

    def _insert_note_row(self, cursor, mrn: str, date: datetime, text: str, user: str) -> dict:
        cursor.execute("SELECT 1 FROM patients WHERE mrn = ?", [mrn])
        if cursor.fetchone() is None:
            raise ValidationError(f"Patient with MRN {mrn} does not exist", mrn=mrn)

        cursor.execute(
            f"""
            INSERT INTO medical_notes (patient_mrn, date, note, "user")
            VALUES (?, ?, ?, ?)
            RETURNING {NOTE_COLUMNS}
            """,
            [mrn, _naive_local(date), text, user]
        )
        return _fetch_dict(cursor)

    def insert_note(self, note: NoteCreate) -> Result[MedicalNote]:
        def work(cursor) -> MedicalNote:
            row = self._insert_note_row(cursor, note.patient_mrn, note.date, note.note, note.user)
            return MedicalNote.model_validate(row)

        return self._execute("insert_note", work, mrn=note.patient_mrn)

    def discharge_patient(self, mrn: str, note_text: str, actor: str) -> Result[Patient]:
        """Discharge in one transaction: conditional status update, then the note."""
        def work(cursor) -> Patient:
            now = datetime.now()
            cursor.execute(
                f"""
                UPDATE patients
                SET status = ?, discharge_date = GREATEST(CAST(? AS TIMESTAMP), admission_date)
                WHERE mrn = ? AND status = ?
                RETURNING {PATIENT_COLUMNS}
                """,
                [PatientStatus.DISCHARGED.value, now, mrn, PatientStatus.ACTIVE.value]
            )
            row = _fetch_dict(cursor)
            if row is None:
                cursor.execute("SELECT status FROM patients WHERE mrn = ?", [mrn])
                if cursor.fetchone() is None:
                    raise NotFoundError(f"Patient with MRN {mrn} not found", mrn=mrn)
                raise ConflictError(f"Patient with MRN {mrn} is already discharged", mrn=mrn)

            self._insert_note_row(cursor, mrn, now, note_text, actor)
            return Patient.model_validate(row)

        return self._execute("discharge_patient", work, mrn=mrn)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_patient(self, mrn: str) -> Result[Patient]:
        def work(cursor) -> Patient:
            cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients WHERE mrn = ?", [mrn])
            row = _fetch_dict(cursor)
            if row is None:
                raise NotFoundError(f"Patient with MRN {mrn} not found", mrn=mrn)
            return Patient.model_validate(row)

        return self._execute("get_patient", work, mrn=mrn)

    def list_patients(self) -> Result[list[Patient]]:
        def work(cursor) -> list[Patient]:
            cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients ORDER BY admission_date, mrn")
            return [Patient.model_validate(row) for row in _fetch_dicts(cursor)]

        return self._execute("list_patients", work)

    def list_notes(self, mrn: str) -> Result[list[MedicalNote]]:
        def work(cursor) -> list[MedicalNote]:
            cursor.execute(
                f"SELECT {NOTE_COLUMNS} FROM medical_notes WHERE patient_mrn = ? ORDER BY date, id",
                [mrn]
            )
            return [MedicalNote.model_validate(row) for row in _fetch_dicts(cursor)]

        return self._execute("list_notes", work, mrn=mrn)

    def list_specialties(self) -> Result[list[str]]:
        def work(cursor) -> list[str]:
            cursor.execute("SELECT DISTINCT specialty FROM patients ORDER BY specialty")
            return [row[0] for row in cursor.fetchall()]

        return self._execute("list_specialties", work)

    def ping(self) -> Result[float]:
        start_time = time.time()

        def work(cursor) -> float:
            cursor.execute("SELECT 1").fetchone()
            return round((time.time() - start_time) * 1000, 2)

        return self._execute("ping", work)

    def close(self) -> None:
        """Close the DuckDB connection."""
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    logger.info("Closed DuckDB connection")
                except duckdb.Error as e:
                    logger.warning(f"Error closing DuckDB connection: {str(e)}")
                finally:
                    self._connection = None
                    self._initialized = False
