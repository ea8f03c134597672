"""
Persistence router: dispatch column operations to the adapter for the
detected database type.

Every function returns an ActionResult and never raises. Input problems are
rejected before any I/O; database types without an adapter get an explicit
``unsupported`` failure.
"""

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .databases import ColumnStoreAdapter, get_adapter
from .detect import detect_db_type
from .models import ColumnRecord
from .results import ActionResult, ErrorKind, Failure

logger = logging.getLogger(__name__)

ColumnInput = Union[ColumnRecord, Mapping[str, Any]]

HIVE_NOT_SUPPORTED = (
    "Connection to Hive is not fully implemented. Hive is detected, but live data "
    "operations are not supported in this version due to Hive's architecture not "
    "supporting transactional row-level updates."
)


def _validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


def coerce_column(column: ColumnInput) -> ColumnRecord:
    if isinstance(column, ColumnRecord):
        return column
    return ColumnRecord.model_validate(dict(column))


def _dispatch(
    connection_string: str,
    verb: str,
    operation: Callable[[ColumnStoreAdapter], ActionResult],
) -> ActionResult:
    if not connection_string or not str(connection_string).strip():
        return Failure(ErrorKind.VALIDATION, "Database URL is required.")
    db_type = detect_db_type(connection_string)
    adapter = get_adapter(db_type)
    if adapter is None:
        logger.warning(f"{verb} requested for unsupported database type: {db_type}")
        return Failure(ErrorKind.UNSUPPORTED, f"{verb} is not supported for database type: {db_type}.")
    return operation(adapter)


def test_connection(connection_string: str, db_type: Optional[str] = None) -> ActionResult:
    """Connect and make sure the classification table exists with the current shape."""
    if not connection_string or not str(connection_string).strip():
        return Failure(ErrorKind.VALIDATION, "Database URL is required.")
    db_type = db_type or detect_db_type(connection_string)
    if db_type == "hive":
        return Failure(ErrorKind.UNSUPPORTED, HIVE_NOT_SUPPORTED)
    adapter = get_adapter(db_type)
    if adapter is None:
        return Failure(ErrorKind.UNSUPPORTED, f"Unknown or unsupported database type: {db_type}")
    return adapter.test_connection(connection_string)


def fetch_columns(connection_string: str) -> ActionResult:
    """Return every stored column ordered by name."""
    return _dispatch(connection_string, "Fetching data", lambda a: a.fetch_all(connection_string))


def insert_column(connection_string: str, column: ColumnInput) -> ActionResult:
    """Insert one column; an id is generated when the record has none."""
    try:
        record = coerce_column(column)
    except ValidationError as e:
        return Failure(ErrorKind.VALIDATION, "Column data is invalid.", error=_validation_error(e))
    return _dispatch(connection_string, "Inserting data", lambda a: a.insert_one(connection_string, record))


def batch_insert_columns(connection_string: str, columns: Sequence[ColumnInput]) -> ActionResult:
    """Insert many columns in one call; see the adapters for atomicity."""
    records: List[ColumnRecord] = []
    for index, column in enumerate(columns or []):
        try:
            records.append(coerce_column(column))
        except ValidationError as e:
            return Failure(
                ErrorKind.VALIDATION,
                f"Column at position {index} is invalid.",
                error=_validation_error(e),
            )
    return _dispatch(
        connection_string, "Batch operations", lambda a: a.insert_many(connection_string, records)
    )


def update_column(connection_string: str, column: ColumnInput) -> ActionResult:
    """Update the mutable fields of an existing column, matched by id."""
    try:
        record = coerce_column(column)
    except ValidationError as e:
        return Failure(ErrorKind.VALIDATION, "Column data is invalid.", error=_validation_error(e))
    if not record.id:
        return Failure(ErrorKind.VALIDATION, "Column id is required for update.")
    return _dispatch(connection_string, "Updating data", lambda a: a.update_by_id(connection_string, record))


def delete_column(connection_string: str, column_id: str) -> ActionResult:
    if not column_id:
        return Failure(ErrorKind.VALIDATION, "Column id is required for deletion.")
    return _dispatch(
        connection_string, "Deleting data", lambda a: a.delete_by_id(connection_string, column_id)
    )


def delete_all_columns(connection_string: str) -> ActionResult:
    """Remove every stored column. Irreversible."""
    return _dispatch(connection_string, "Deleting all data", lambda a: a.delete_all(connection_string))
