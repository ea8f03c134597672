"""
Column store adapter base class for multi-database support.

Each database (PostgreSQL, Oracle) implements this interface to provide
dialect-specific connection handling, schema reconciliation and flag storage.
The seven column operations are shared and only delegate the statements that
differ between dialects.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import ArgumentError, IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from ..models import DEFAULT_NDMO_CLASSIFICATION, FLAG_FIELDS, NDMO_CLASSIFICATIONS, ColumnRecord, normalize_ndmo
from ..results import ActionResult, ErrorKind, Failure, Success

logger = logging.getLogger(__name__)

TABLE_NAME = "column_classifications"

STORED_COLUMNS = (
    "id",
    "column_name",
    "description",
    "ndmo_classification",
    "reason_ndmo",
) + FLAG_FIELDS


class InvalidConnectionString(ValueError):
    """The connection string cannot be turned into driver arguments."""


def error_text(exc: BaseException) -> str:
    """Return the driver's own message when SQLAlchemy wrapped it."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).strip()


class ColumnStoreAdapter(ABC):
    """Abstract base for column classification stores."""

    label = "database"
    table_name = TABLE_NAME

    @abstractmethod
    def engine_options(self, connection_string: str) -> Tuple[str, Dict[str, Any]]:
        """Return (SQLAlchemy URL, extra create_engine kwargs) for a connection string.

        Raises InvalidConnectionString when the string cannot be parsed.
        """
        pass

    def create_engine(self, connection_string: str) -> Engine:
        """Create a single-use engine; no pool outlives the call."""
        url, kwargs = self.engine_options(connection_string)
        try:
            return create_engine(url, poolclass=NullPool, **kwargs)
        except (ArgumentError, ValueError) as e:
            raise InvalidConnectionString(f"Invalid {self.label} connection string: {e}") from e

    @contextmanager
    def _engine(self, connection_string: str) -> Iterator[Engine]:
        engine = self.create_engine(connection_string)
        try:
            yield engine
        finally:
            engine.dispose()

    @abstractmethod
    def reconcile_schema(self, conn: Connection) -> None:
        """Create the table or bring an existing one up to the current shape."""
        pass

    @abstractmethod
    def flag_to_db(self, value: bool) -> Any:
        """Convert a sensitivity flag to its stored representation."""
        pass

    @abstractmethod
    def flag_from_db(self, value: Any) -> bool:
        """Convert a stored sensitivity flag back to a bool."""
        pass

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def select_all_sql(self) -> str:
        return f"SELECT {', '.join(STORED_COLUMNS)} FROM {self.table_name} ORDER BY column_name ASC"

    def select_by_id_sql(self) -> str:
        return f"SELECT {', '.join(STORED_COLUMNS)} FROM {self.table_name} WHERE id = :id"

    def insert_sql(self) -> str:
        placeholders = ", ".join(f":{c}" for c in STORED_COLUMNS)
        return f"INSERT INTO {self.table_name} ({', '.join(STORED_COLUMNS)}) VALUES ({placeholders})"

    def delete_sql(self) -> str:
        return f"DELETE FROM {self.table_name} WHERE id = :id"

    def truncate_sql(self) -> str:
        return f"TRUNCATE TABLE {self.table_name}"

    @abstractmethod
    def insert_row(self, conn: Connection, params: Dict[str, Any]) -> ColumnRecord:
        """Insert one bound row and return the stored record."""
        pass

    @abstractmethod
    def insert_rows(self, engine: Engine, rows: List[Dict[str, Any]]) -> None:
        """Insert many bound rows; atomicity is dialect-specific."""
        pass

    @abstractmethod
    def update_row(self, conn: Connection, params: Dict[str, Any]) -> Optional[ColumnRecord]:
        """Update the mutable fields of one row; None when the id does not exist."""
        pass

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def bind_params(self, record: ColumnRecord, column_id: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "id": column_id or record.id,
            "column_name": record.column_name,
            "description": record.description,
            "ndmo_classification": record.ndmo_classification,
            "reason_ndmo": record.reason_ndmo,
        }
        for flag in FLAG_FIELDS:
            params[flag] = self.flag_to_db(getattr(record, flag))
        return params

    def row_to_record(self, row: Mapping[str, Any]) -> ColumnRecord:
        """Build a record from a stored row; unknown stored levels read back as the default level."""
        values = {key.lower(): value for key, value in row.items()}
        ndmo = normalize_ndmo(values.get("ndmo_classification"))
        if ndmo not in NDMO_CLASSIFICATIONS:
            logger.warning(
                f"{self.label} column {values.get('id')} has unknown classification {ndmo!r}; "
                f"reading it as {DEFAULT_NDMO_CLASSIFICATION}"
            )
            ndmo = DEFAULT_NDMO_CLASSIFICATION
        record = {
            "id": None if values.get("id") is None else str(values["id"]),
            "column_name": values.get("column_name"),
            "description": values.get("description") or "",
            "ndmo_classification": ndmo,
            "reason_ndmo": values.get("reason_ndmo"),
        }
        for flag in FLAG_FIELDS:
            record[flag] = self.flag_from_db(values.get(flag))
        return ColumnRecord(**record)

    # ------------------------------------------------------------------
    # Failures
    # ------------------------------------------------------------------

    def _failure(self, exc: BaseException, message: str) -> Failure:
        if isinstance(exc, InvalidConnectionString):
            return Failure(ErrorKind.VALIDATION, str(exc), error=str(exc))
        detail = error_text(exc)
        if isinstance(exc, (OperationalError, InterfaceError)):
            logger.error(f"{self.label} connection error: {detail}")
            return Failure(ErrorKind.CONNECTIVITY, f"{message} {detail}".strip(), error=detail)
        logger.error(f"{message} {detail}")
        return Failure(ErrorKind.DATABASE, message, error=detail)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def test_connection(self, connection_string: str) -> ActionResult:
        """Connect, reconcile the table and disconnect."""
        try:
            with self._engine(connection_string) as engine, engine.connect() as conn:
                try:
                    self.reconcile_schema(conn)
                    conn.commit()
                except SQLAlchemyError as e:
                    detail = error_text(e)
                    logger.error(f"{self.label} table setup failed: {detail}")
                    return Failure(
                        ErrorKind.SCHEMA,
                        f"{self.label} connected, but failed to create table: {detail}",
                        error=detail,
                    )
        except InvalidConnectionString as e:
            return self._failure(e, "")
        except SQLAlchemyError as e:
            detail = error_text(e)
            logger.error(f"{self.label} connection failed: {detail}")
            return Failure(ErrorKind.CONNECTIVITY, f"{self.label} connection failed: {detail}", error=detail)
        logger.info(f"{self.label} table '{self.table_name}' is ready")
        return Success(message=f"Successfully connected to {self.label}. Table '{self.table_name}' is ready.")

    def fetch_all(self, connection_string: str) -> ActionResult:
        try:
            with self._engine(connection_string) as engine, engine.connect() as conn:
                rows = conn.execute(text(self.select_all_sql())).mappings().all()
        except (InvalidConnectionString, SQLAlchemyError) as e:
            return self._failure(e, f"Failed to fetch columns from {self.label}.")
        columns = []
        skipped = 0
        for row in rows:
            try:
                columns.append(self.row_to_record(row))
            except ValidationError as e:
                skipped += 1
                logger.warning(f"Skipping unreadable {self.label} column {row.get('id')}: {e}")
        if skipped:
            return Success(
                message=f"Skipped {skipped} stored column(s) that could not be read.",
                data=columns,
            )
        return Success(data=columns)

    def insert_one(self, connection_string: str, record: ColumnRecord) -> ActionResult:
        params = self.bind_params(record, record.id or str(uuid.uuid4()))
        try:
            with self._engine(connection_string) as engine, engine.begin() as conn:
                stored = self.insert_row(conn, params)
        except IntegrityError as e:
            logger.warning(f"Duplicate column rejected by {self.label}: {error_text(e)}")
            return Failure(
                ErrorKind.DUPLICATE,
                f'Column "{record.column_name}" already exists.',
                error=error_text(e),
            )
        except (InvalidConnectionString, SQLAlchemyError) as e:
            return self._failure(e, f"Failed to insert column into {self.label}.")
        return Success(message=f"Column inserted into {self.label}.", data=stored)

    def insert_many(self, connection_string: str, records: List[ColumnRecord]) -> ActionResult:
        if not records:
            return Success(message="No columns to insert.")
        rows = [self.bind_params(r, r.id or str(uuid.uuid4())) for r in records]
        try:
            with self._engine(connection_string) as engine:
                self.insert_rows(engine, rows)
        except (InvalidConnectionString, SQLAlchemyError) as e:
            failure = self._failure(e, f"{self.label} batch insert failed and was rolled back.")
            if isinstance(e, IntegrityError):
                return Failure(ErrorKind.DUPLICATE, failure.message, error=failure.error)
            return failure
        return Success(message=f"{self.label} batch insert of {len(rows)} columns completed.")

    def update_by_id(self, connection_string: str, record: ColumnRecord) -> ActionResult:
        params = self.bind_params(record)
        try:
            with self._engine(connection_string) as engine, engine.begin() as conn:
                updated = self.update_row(conn, params)
        except (InvalidConnectionString, SQLAlchemyError) as e:
            return self._failure(e, f"Failed to update column in {self.label}.")
        if updated is None:
            return Failure(ErrorKind.NOT_FOUND, f"Column not found in {self.label} for update.")
        return Success(message=f"Column updated in {self.label}.", data=updated)

    def delete_by_id(self, connection_string: str, column_id: str) -> ActionResult:
        try:
            with self._engine(connection_string) as engine, engine.begin() as conn:
                result = conn.execute(text(self.delete_sql()), {"id": column_id})
        except (InvalidConnectionString, SQLAlchemyError) as e:
            return self._failure(e, f"Failed to delete column from {self.label}.")
        if not result.rowcount:
            return Failure(ErrorKind.NOT_FOUND, f"Column not found in {self.label} for deletion.")
        return Success(message=f"Column deleted from {self.label}.")

    def delete_all(self, connection_string: str) -> ActionResult:
        try:
            with self._engine(connection_string) as engine, engine.begin() as conn:
                conn.execute(text(self.truncate_sql()))
        except (InvalidConnectionString, SQLAlchemyError) as e:
            return self._failure(e, f"Failed to delete all columns from {self.label}.")
        logger.info(f"All columns deleted from {self.label}")
        return Success(message=f"All columns deleted from {self.label}.")
