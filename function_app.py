"""Azure Functions entrypoint for the column classification API."""

import json
import logging

import azure.functions as func

from api.envelope import status_for
from column_governance import actions, classifier, config
from column_governance.detect import detect_db_type
from column_governance.keyvault_loader import load_env
from column_governance.results import ActionResult, ErrorKind, Failure

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)
logger = logging.getLogger(__name__)
_initialized = False


def _init() -> None:
    global _initialized
    if _initialized:
        return
    load_env()
    config.configure_logging()
    _initialized = True


def _json_response(payload: dict, status: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        body=json.dumps(payload, default=str),
        status_code=status,
        mimetype="application/json",
    )


def _result_response(result: ActionResult, success_status: int = 200) -> func.HttpResponse:
    return _json_response(result.to_dict(), status=status_for(result, success_status))


def _bad_request(message: str) -> func.HttpResponse:
    return _result_response(Failure(ErrorKind.VALIDATION, message))


def _unauthorized() -> func.HttpResponse:
    return _json_response({"detail": "Unauthorized"}, status=401)


def _validate_bearer(req: func.HttpRequest) -> bool:
    token = config.api_auth_token()
    if not token:
        return True
    auth = req.headers.get("authorization", "")
    if not auth.lower().startswith("bearer "):
        return False
    return auth[7:].strip() == token


def _body(req: func.HttpRequest) -> dict:
    try:
        payload = req.get_json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _prepare(req: func.HttpRequest):
    """Initialise and authenticate; returns an error response or None."""
    try:
        _init()
    except Exception as exc:
        logger.exception("Function initialisation failed")
        return _json_response({"detail": str(exc)}, status=503)
    if not _validate_bearer(req):
        return _unauthorized()
    return None


@app.route(route="api/db/detect", methods=["GET"])
def detect(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    return _json_response({"dbType": detect_db_type(req.params.get("dbUrl", ""))})


@app.route(route="api/db/test-connection", methods=["POST"])
def test_connection(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    body = _body(req)
    if not body.get("dbUrl"):
        return _bad_request("Database URL and database type are required in the request body.")
    return _result_response(actions.test_connection(body["dbUrl"], body.get("dbType") or None))


@app.route(route="api/db/columns", methods=["GET", "POST"])
def columns(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    if req.method == "GET":
        db_url = req.params.get("dbUrl")
        if not db_url:
            return _bad_request("dbUrl query parameter is required.")
        return _result_response(actions.fetch_columns(db_url))
    body = _body(req)
    if not body.get("dbUrl") or not body.get("column"):
        return _bad_request("dbUrl and column data are required in the request body.")
    return _result_response(actions.insert_column(body["dbUrl"], body["column"]), success_status=201)


@app.route(route="api/db/columns-batch", methods=["POST"])
def columns_batch(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    body = _body(req)
    if not body.get("dbUrl") or not isinstance(body.get("columns"), list):
        return _bad_request("dbUrl and columns array are required in the request body.")
    return _result_response(actions.batch_insert_columns(body["dbUrl"], body["columns"]))


@app.route(route="api/db/update-column", methods=["PUT"])
def update_column(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    body = _body(req)
    column = body.get("column")
    if not body.get("dbUrl") or not isinstance(column, dict) or not column.get("id"):
        return _bad_request("dbUrl and column data (including id) are required in the request body.")
    return _result_response(actions.update_column(body["dbUrl"], column))


@app.route(route="api/db/delete-column", methods=["DELETE"])
def delete_column(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    body = _body(req)
    if not body.get("dbUrl") or not body.get("id"):
        return _bad_request("dbUrl and id are required in the request body.")
    return _result_response(actions.delete_column(body["dbUrl"], body["id"]))


@app.route(route="api/db/delete-all-columns", methods=["DELETE"])
def delete_all_columns(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    body = _body(req)
    if not body.get("dbUrl"):
        return _bad_request("dbUrl is required in the request body.")
    return _result_response(actions.delete_all_columns(body["dbUrl"]))


@app.route(route="api/ai/classify-column", methods=["POST"])
def classify_column(req: func.HttpRequest) -> func.HttpResponse:
    error = _prepare(req)
    if error:
        return error
    column_name = _body(req).get("columnName")
    if not isinstance(column_name, str) or not column_name.strip():
        return _bad_request("columnName (string) is required in the request body.")
    return _result_response(classifier.classify_column(column_name))
