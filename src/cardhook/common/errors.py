"""Shared error helpers and codes."""

from __future__ import annotations

from starlette.responses import JSONResponse


class ErrorCode:
    INVALID_SIGNATURE = "invalid_signature"
    SIGNING_FAILED = "signing_failed"
    CREDENTIALS_MISCONFIGURED = "credentials_misconfigured"


def error_response(code: str, message: str, status_code: int) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    return JSONResponse(payload, status_code=status_code)


def rejection_response(status_code: int) -> JSONResponse:
    """Generic rejection for any signature verification failure."""
    return error_response(
        ErrorCode.INVALID_SIGNATURE,
        "Request signature could not be verified",
        status_code,
    )
