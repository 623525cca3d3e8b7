"""Response envelopes used by the HTTP handlers."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

INTERNAL_SERVER_ERROR = int(HTTPStatus.INTERNAL_SERVER_ERROR)


@dataclass(frozen=True)
class ErrorInfo:
    """An error message with its HTTP code."""

    message: str
    code: int

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code}


@dataclass
class ApiResponse:
    """A JSON body together with the HTTP status to send it with."""

    body: dict[str, Any]
    status: int = int(HTTPStatus.OK)


def new_output(data: Any, *errors: ErrorInfo) -> dict[str, Any]:
    """Build the ``{"data": ..., "error": ...}`` envelope; no errors gives ``None``."""
    return {
        "data": data,
        "error": [error.to_dict() for error in errors] if errors else None,
    }


def new_error(message: str, code: int) -> ErrorInfo:
    return ErrorInfo(message=message, code=code)


def new_errors(*errors: BaseException) -> list[ErrorInfo]:
    """Turn exceptions into internal-server-error entries."""
    return [ErrorInfo(str(error), INTERNAL_SERVER_ERROR) for error in errors]


def return_error(error: BaseException) -> ApiResponse:
    """Wrap an exception as a 500 response."""
    return ApiResponse(
        body=new_output(None, ErrorInfo(str(error), INTERNAL_SERVER_ERROR)),
        status=INTERNAL_SERVER_ERROR,
    )