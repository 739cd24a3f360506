"""PostgreSQL Record Store Adapter.

This adapter implements the RecordStorePort contract on PostgreSQL, the
production primary store for patients and medical notes.

Security Impact:
    - Connection credentials are managed via configuration and never logged
    - All statements are parameterized
    - Schema enforces MRN uniqueness, note referential integrity and the
      status/discharge_date pairing

Architecture:
    - Implements RecordStorePort (Hexagonal Architecture)
    - Threaded connection pool; one pooled connection per operation
    - Every operation runs in a transaction that is committed on success and
      rolled back on any failure
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional, TypeVar

import psycopg2
from psycopg2 import errors, pool, sql
from psycopg2.extras import RealDictCursor

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
        mrn VARCHAR(50) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        age INTEGER NOT NULL CHECK (age >= 0),
        gender VARCHAR(10) NOT NULL CHECK (gender IN ('Male', 'Female', 'Other')),
        diagnosis TEXT NOT NULL,
        admission_date TIMESTAMP NOT NULL,
        discharge_date TIMESTAMP,
        status VARCHAR(20) NOT NULL DEFAULT 'Active' CHECK (status IN ('Active', 'Discharged')),
        specialty VARCHAR(50) NOT NULL,
        assigned_doctor VARCHAR(255),
        CHECK ((status = 'Discharged') = (discharge_date IS NOT NULL))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS medical_notes (
        id BIGSERIAL PRIMARY KEY,
        patient_mrn VARCHAR(50) NOT NULL REFERENCES patients(mrn),
        date TIMESTAMP NOT NULL,
        note TEXT NOT NULL,
        "user" VARCHAR(255) NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_medical_notes_patient_mrn ON medical_notes(patient_mrn)",
    "CREATE INDEX IF NOT EXISTS idx_patients_specialty ON patients(specialty)",
]


def _column_value(value):
    """Enum members are stored by value."""
    return value.value if hasattr(value, "value") else value


class PostgreSQLRecordStore(RecordStorePort):
    """PostgreSQL implementation of RecordStorePort.

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        connection_string: Full PostgreSQL connection string
        pool_size: Connection pool size (when no db_config is given)
        max_overflow: Maximum connection pool overflow (when no db_config is given)

    Example Usage:
        ```python
        from wardtrack.infrastructure.config_manager import get_database_config

        store = PostgreSQLRecordStore(db_config=get_database_config())
        result = store.initialize_schema()
        if result.is_success():
            result = store.insert_patient(patient)
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        connection_string: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10
    ):
        self._connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()
        self._schema_lock = threading.Lock()
        self._initialized = False

        if db_config:
            if db_config.db_type != "postgresql":
                raise DependencyError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match PostgreSQL adapter",
                    operation="__init__"
                )
            self.db_config = db_config
            self.connection_params = {"dsn": db_config.get_connection_string()}
            if not db_config.ssl_mode:
                self.connection_params["sslmode"] = "prefer"
            self.pool_size = db_config.pool_size
            self.max_overflow = db_config.max_overflow
        elif connection_string:
            self.db_config = DatabaseConfig(db_type="postgresql", connection_string=connection_string)
            self.connection_params = {"dsn": connection_string}
            self.pool_size = pool_size
            self.max_overflow = max_overflow
        else:
            raise DependencyError(
                "PostgreSQL store requires either db_config or connection_string",
                operation="__init__"
            )

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _get_connection_pool(self) -> pool.ThreadedConnectionPool:
        """Get or create the connection pool (created lazily)."""
        with self._pool_lock:
            if self._connection_pool is None:
                try:
                    self._connection_pool = pool.ThreadedConnectionPool(
                        minconn=1,
                        maxconn=self.pool_size + self.max_overflow,
                        **self.connection_params
                    )
                    logger.info("Created PostgreSQL connection pool")
                except Exception as e:
                    raise DependencyError(
                        f"Failed to create PostgreSQL connection pool: {str(e)}",
                        operation="connect",
                        details={"host": self.db_config.host or "N/A"}
                    )
            return self._connection_pool

    def _get_connection(self):
        try:
            return self._get_connection_pool().getconn()
        except DependencyError:
            raise
        except Exception as e:
            raise DependencyError(
                f"Failed to get connection from pool: {str(e)}",
                operation="get_connection"
            )

    def _return_connection(self, conn) -> None:
        try:
            self._get_connection_pool().putconn(conn)
        except Exception as e:
            logger.warning(f"Error returning connection to pool: {str(e)}")

    def _execute(
        self,
        operation: str,
        work: Callable[..., T],
        mrn: Optional[str] = None
    ) -> Result[T]:
        """Run work(cursor) in one transaction and map failures to domain errors.

        Parameters:
            operation: Operation name for logging and error details
            work: Callable receiving a RealDictCursor; its return value is the result
            mrn: Patient MRN for error details
        """
        if not self._initialized:
            init_result = self.initialize_schema()
            if not init_result.is_success():
                return init_result

        conn = None
        try:
            conn = self._get_connection()
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                value = work(cursor)
            conn.commit()
            return Result.success_result(value)

        except RecordError as e:
            self._rollback(conn)
            if not isinstance(e, DependencyError):
                logger.info(f"{operation} rejected: {type(e).__name__}: {str(e)}")
            return Result.failure_result(e, error_details={"operation": operation})

        except errors.UniqueViolation:
            self._rollback(conn)
            return Result.failure_result(
                ConflictError(f"Patient with MRN {mrn} already exists", mrn=mrn),
                error_details={"operation": operation}
            )

        except errors.ForeignKeyViolation:
            self._rollback(conn)
            return Result.failure_result(
                ValidationError(f"Patient with MRN {mrn} does not exist", mrn=mrn),
                error_details={"operation": operation}
            )

        except (errors.CheckViolation, errors.NotNullViolation, errors.InvalidTextRepresentation) as e:
            self._rollback(conn)
            return Result.failure_result(
                ValidationError(f"Rejected by schema constraint: {str(e).strip()}", mrn=mrn),
                error_details={"operation": operation}
            )

        except Exception as e:
            self._rollback(conn)
            error_msg = f"Failed to {operation}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                DependencyError(error_msg, operation=operation, mrn=mrn),
                error_type="DependencyError"
            )

        finally:
            if conn:
                self._return_connection(conn)

    def _rollback(self, conn) -> None:
        if conn is None:
            return
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {str(e)}")

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def initialize_schema(self) -> Result[None]:
        """Create the patients and medical_notes tables and their indexes.

        Note:
            Schema initialization is cached per store instance and guarded by a
            lock (double-checked) so concurrent first requests run it once.
        """
        if self._initialized:
            return Result.success_result(None)

        with self._schema_lock:
            if self._initialized:
                return Result.success_result(None)

            conn = None
            try:
                conn = self._get_connection()
                with conn.cursor() as cursor:
                    for statement in SCHEMA_STATEMENTS:
                        cursor.execute(statement)
                conn.commit()

                self._initialized = True
                logger.info("PostgreSQL ward schema initialized successfully")
                return Result.success_result(None)

            except Exception as e:
                self._rollback(conn)
                error_msg = f"Failed to initialize schema: {str(e)}"
                logger.error(error_msg, exc_info=True)
                return Result.failure_result(
                    DependencyError(error_msg, operation="initialize_schema"),
                    error_type="DependencyError"
                )
            finally:
                if conn:
                    self._return_connection(conn)

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
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {PATIENT_COLUMNS}
                """,
                [
                    patient.mrn,
                    patient.name,
                    patient.age,
                    patient.gender.value,
                    patient.diagnosis,
                    patient.admission_date,
                    PatientStatus.ACTIVE.value,
                    patient.specialty.value,
                    patient.assigned_doctor,
                ]
            )
            return Patient.model_validate(cursor.fetchone())

        return self._execute("insert_patient", work, mrn=patient.mrn)

    def update_patient(self, mrn: str, fields: dict) -> Result[Patient]:
        def work(cursor) -> Patient:
            if fields:
                assignments = sql.SQL(", ").join(
                    sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
                )
                query = sql.SQL("UPDATE patients SET {} WHERE mrn = %s RETURNING " + PATIENT_COLUMNS).format(assignments)
                cursor.execute(query, [_column_value(v) for v in fields.values()] + [mrn])
            else:
                cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients WHERE mrn = %s", [mrn])

            row = cursor.fetchone()
            if row is None:
                raise NotFoundError(f"Patient with MRN {mrn} not found", mrn=mrn)
            return Patient.model_validate(row)

        return self._execute("update_patient", work, mrn=mrn)

    def _insert_note_row(self, cursor, mrn: str, date: datetime, text: str, user: str) -> dict:
        cursor.execute(
            f"""
            INSERT INTO medical_notes (patient_mrn, date, note, "user")
            VALUES (%s, %s, %s, %s)
            RETURNING {NOTE_COLUMNS}
            """,
            [mrn, date, text, user]
        )
        return cursor.fetchone()

    def insert_note(self, note: NoteCreate) -> Result[MedicalNote]:
        def work(cursor) -> MedicalNote:
            row = self._insert_note_row(cursor, note.patient_mrn, note.date, note.note, note.user)
            return MedicalNote.model_validate(row)

        return self._execute("insert_note", work, mrn=note.patient_mrn)

    def discharge_patient(self, mrn: str, note_text: str, actor: str) -> Result[Patient]:
        """Discharge in one transaction: conditional status update, then the note.

        The UPDATE only matches Active rows. A concurrent discharge blocks on
        the row lock and then matches nothing, so the loser sees zero rows and
        gets ConflictError instead of writing a second discharge note.
        """
        def work(cursor) -> Patient:
            now = datetime.now()
            cursor.execute(
                f"""
                UPDATE patients
                SET status = %s, discharge_date = GREATEST(%s, admission_date)
                WHERE mrn = %s AND status = %s
                RETURNING {PATIENT_COLUMNS}
                """,
                [PatientStatus.DISCHARGED.value, now, mrn, PatientStatus.ACTIVE.value]
            )
            row = cursor.fetchone()
            if row is None:
                cursor.execute("SELECT status FROM patients WHERE mrn = %s", [mrn])
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
            cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients WHERE mrn = %s", [mrn])
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError(f"Patient with MRN {mrn} not found", mrn=mrn)
            return Patient.model_validate(row)

        return self._execute("get_patient", work, mrn=mrn)

    def list_patients(self) -> Result[list[Patient]]:
        def work(cursor) -> list[Patient]:
            cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients ORDER BY admission_date, mrn")
            return [Patient.model_validate(row) for row in cursor.fetchall()]

        return self._execute("list_patients", work)

    def list_notes(self, mrn: str) -> Result[list[MedicalNote]]:
        def work(cursor) -> list[MedicalNote]:
            cursor.execute(
                f"SELECT {NOTE_COLUMNS} FROM medical_notes WHERE patient_mrn = %s ORDER BY date, id",
                [mrn]
            )
            return [MedicalNote.model_validate(row) for row in cursor.fetchall()]

        return self._execute("list_notes", work, mrn=mrn)

    def list_specialties(self) -> Result[list[str]]:
        def work(cursor) -> list[str]:
            cursor.execute("SELECT DISTINCT specialty FROM patients ORDER BY specialty")
            return [row["specialty"] for row in cursor.fetchall()]

        return self._execute("list_specialties", work)

    def ping(self) -> Result[float]:
        start_time = time.time()

        def work(cursor) -> float:
            cursor.execute("SELECT 1")
            cursor.fetchone()
            return round((time.time() - start_time) * 1000, 2)

        return self._execute("ping", work)

    def close(self) -> None:
        """Close the connection pool and release resources."""
        if self._connection_pool is not None:
            try:
                self._connection_pool.closeall()
                self._connection_pool = None
                logger.info("Closed PostgreSQL connection pool")
            except Exception as e:
                logger.warning(f"Error closing connection pool: {str(e)}")
