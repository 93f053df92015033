from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class ValidationError(ApiError):
    """Malformed overtime input. Surfaced to the caller, never retried."""

    def __init__(self, message: str):
        super().__init__(status_code=422, code="OVERTIME_VALIDATION_ERROR", message=message)


class NotFound(ApiError):
    def __init__(self, message: str = "Mechanic not found", *, code: str = "MECHANIC_NOT_FOUND"):
        super().__init__(status_code=404, code=code, message=message)


class SweepFailure(Exception):
    """Retention sweep failed for a single mechanic.

    Only ever logged by the sweeper; it must not reach a request handler.
    """

    def __init__(self, mechanic_id: int, cause: BaseException):
        super().__init__(f"Overtime sweep failed for mechanic {mechanic_id}: {cause}")
        self.mechanic_id = mechanic_id
        self.cause = cause


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
