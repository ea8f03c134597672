"""API routes: column persistence, AI classification and CSV interchange."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from api.auth import require_bearer_token
from api.envelope import status_for
from column_governance import actions, classifier, csv_io
from column_governance.detect import detect_db_type
from column_governance.models import find_duplicate_names
from column_governance.results import ActionResult, ErrorKind, Failure, Success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["columns"], dependencies=[Depends(require_bearer_token)])


class ConnectionRequest(BaseModel):
    dbUrl: Optional[str] = None
    dbType: Optional[str] = None


class ColumnRequest(BaseModel):
    dbUrl: Optional[str] = None
    column: Optional[Dict[str, Any]] = None


class ColumnsRequest(BaseModel):
    dbUrl: Optional[str] = None
    columns: Optional[List[Dict[str, Any]]] = None


class DeleteColumnRequest(BaseModel):
    dbUrl: Optional[str] = None
    id: Optional[str] = None


class ClassifyRequest(BaseModel):
    columnName: Optional[Any] = None


class ClassifyManyRequest(BaseModel):
    columnNames: Optional[List[str]] = None
    dbUrl: Optional[str] = None


class ExportRequest(BaseModel):
    columns: Optional[List[Dict[str, Any]]] = None


def _respond(result: ActionResult, success_status: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_for(result, success_status), content=result.to_dict())


def _bad_request(message: str) -> JSONResponse:
    return _respond(Failure(ErrorKind.VALIDATION, message))


@router.get("/db/detect")
def detect(dbUrl: str = Query("", description="Connection string to classify.")):
    """Return the database type tag for a connection string."""
    return {"dbType": detect_db_type(dbUrl)}


@router.post("/db/test-connection")
def test_connection(payload: ConnectionRequest = Body(...)):
    """Connect and create or reconcile the classification table."""
    if not payload.dbUrl:
        return _bad_request("Database URL and database type are required in the request body.")
    return _respond(actions.test_connection(payload.dbUrl, payload.dbType or None))


@router.get("/db/columns")
def list_columns(dbUrl: Optional[str] = Query(None, description="Connection string of the target database.")):
    """Return all stored columns ordered by name."""
    if not dbUrl:
        return _bad_request("dbUrl query parameter is required.")
    return _respond(actions.fetch_columns(dbUrl))


@router.post("/db/columns")
def create_column(payload: ColumnRequest = Body(...)):
    if not payload.dbUrl or not payload.column:
        return _bad_request("dbUrl and column data are required in the request body.")
    return _respond(actions.insert_column(payload.dbUrl, payload.column), success_status=201)


@router.post("/db/columns-batch")
def create_columns(payload: ColumnsRequest = Body(...)):
    if not payload.dbUrl or payload.columns is None:
        return _bad_request("dbUrl and columns array are required in the request body.")
    return _respond(actions.batch_insert_columns(payload.dbUrl, payload.columns))


@router.put("/db/update-column")
def update_column(payload: ColumnRequest = Body(...)):
    if not payload.dbUrl or not payload.column or not payload.column.get("id"):
        return _bad_request("dbUrl and column data (including id) are required in the request body.")
    return _respond(actions.update_column(payload.dbUrl, payload.column))


@router.delete("/db/delete-column")
def delete_column(payload: DeleteColumnRequest = Body(...)):
    if not payload.dbUrl or not payload.id:
        return _bad_request("dbUrl and id are required in the request body.")
    return _respond(actions.delete_column(payload.dbUrl, payload.id))


@router.delete("/db/delete-all-columns")
def delete_all_columns(payload: ConnectionRequest = Body(...)):
    if not payload.dbUrl:
        return _bad_request("dbUrl is required in the request body.")
    return _respond(actions.delete_all_columns(payload.dbUrl))


@router.post("/ai/classify-column")
def classify_column(payload: ClassifyRequest = Body(...)):
    """Classify a single column name with the hosted model."""
    if not isinstance(payload.columnName, str) or not payload.columnName.strip():
        return _bad_request("columnName (string) is required in the request body.")
    return _respond(classifier.classify_column(payload.columnName))


@router.post("/ai/classify-columns")
def classify_columns(payload: ClassifyManyRequest = Body(...)):
    """Classify many names concurrently and optionally store the successes."""
    names = [n for n in (payload.columnNames or []) if n and n.strip()]
    if not names:
        return _bad_request("Please provide at least one column name.")
    try:
        outcomes = classifier.classify_columns(names)
    except ValueError as e:
        return _respond(Failure(ErrorKind.CONFIGURATION, str(e)))
    records = classifier.build_classified_records(outcomes)
    failures = [
        {"columnName": name, "message": result.message, "kind": result.kind.value}
        for name, result in outcomes
        if not result.success
    ]
    data: Dict[str, Any] = {"columns": records, "failures": failures}
    if payload.dbUrl and records:
        data["storage"] = actions.batch_insert_columns(payload.dbUrl, records).to_dict()
    message = f"Successfully classified {len(records)} out of {len(outcomes)} columns."
    return _respond(Success(message=message, data=data))


@router.post("/csv/import")
async def import_csv(
    request: Request,
    dbUrl: Optional[str] = Query(None, description="When set, parsed columns are batch-inserted here."),
):
    """Parse a CSV body into columns; store them when a database URL is given."""
    body = (await request.body()).decode("utf-8-sig", errors="replace")
    try:
        records = csv_io.parse_columns_csv(body)
    except csv_io.CsvImportError as e:
        return _respond(Failure(ErrorKind.VALIDATION, f"CSV Parse Error: {e}"))
    if not records:
        return _bad_request(
            "The CSV file seems to be empty or missing 'column_name' or 'Column Name' headers."
        )
    found = f"Found {len(records)} columns."
    duplicates = find_duplicate_names(records)
    if duplicates:
        found += f" Duplicate column names: {', '.join(sorted(duplicates))}."
    if not dbUrl:
        return _respond(Success(message=found, data=records))
    result = await run_in_threadpool(actions.batch_insert_columns, dbUrl, records)
    if not result.success:
        return _respond(result)
    return _respond(Success(message=f"{found} {result.message}", data=records))


@router.post("/csv/export")
def export_csv(payload: ExportRequest = Body(...)):
    """Render columns as a downloadable CSV file."""
    if payload.columns is None:
        return _bad_request("columns array is required in the request body.")
    try:
        records = [actions.coerce_column(c) for c in payload.columns]
    except ValueError as e:
        return _respond(Failure(ErrorKind.VALIDATION, "Column data is invalid.", error=str(e)))
    return Response(
        content=csv_io.columns_to_csv(records),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="data_classification.csv"'},
    )
