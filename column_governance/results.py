"""Tagged operation results.

Every operation returns either :class:`Success` or :class:`Failure`; both
serialise to the ``{success, message?, error?, data?}`` envelope used on the
wire. Failures carry an :class:`ErrorKind` so callers can branch on the cause
instead of parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONNECTIVITY = "connectivity"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    SCHEMA = "schema"
    DATABASE = "database"
    CONFIGURATION = "configuration"
    # Classification endpoint failures
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    EMPTY_RESPONSE = "empty_response"
    PARSE = "parse"
    INVALID_OUTPUT = "invalid_output"


def _serialise(data: Any) -> Any:
    if hasattr(data, "to_json"):
        return data.to_json()
    if isinstance(data, dict):
        return {key: _serialise(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [_serialise(item) for item in data]
    return data


@dataclass(frozen=True)
class Success:
    message: Optional[str] = None
    data: Any = None

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": True}
        if self.message is not None:
            payload["message"] = self.message
        if self.data is not None:
            payload["data"] = _serialise(self.data)
        return payload


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    error: Optional[str] = None
    data: Any = None

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "message": self.message, "kind": self.kind.value}
        if self.error is not None:
            payload["error"] = self.error
        if self.data is not None:
            payload["data"] = _serialise(self.data)
        return payload


ActionResult = Union[Success, Failure]
