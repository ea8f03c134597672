"""Map operation results to HTTP status codes."""

from column_governance.results import ActionResult, ErrorKind

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNSUPPORTED: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.CONNECTIVITY: 500,
    ErrorKind.SCHEMA: 500,
    ErrorKind.DATABASE: 500,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.HTTP_STATUS: 502,
    ErrorKind.EMPTY_RESPONSE: 502,
    ErrorKind.PARSE: 502,
    ErrorKind.INVALID_OUTPUT: 502,
    ErrorKind.CONFIGURATION: 503,
}


def status_for(result: ActionResult, success_status: int = 200) -> int:
    if result.success:
        return success_status
    return STATUS_BY_KIND.get(result.kind, 500)
