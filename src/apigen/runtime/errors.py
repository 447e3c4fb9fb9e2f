"""Structured API errors shared by generated servers and clients."""
from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """An error with an HTTP status, a machine-readable code and a message."""

    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message

    def payload(self) -> dict[str, Any]:
        return error_payload(self.code, self.message)

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


def error_payload(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def bad_request(message: str) -> ApiError:
    return ApiError(400, "bad_request", message)


def unauthorized(message: str) -> ApiError:
    return ApiError(401, "unauthorized", message)


def forbidden(message: str) -> ApiError:
    return ApiError(403, "forbidden", message)


def not_found(message: str) -> ApiError:
    return ApiError(404, "not_found", message)


def method_not_allowed(message: str) -> ApiError:
    return ApiError(405, "method_not_allowed", message)


def conflict(message: str) -> ApiError:
    return ApiError(409, "conflict", message)


def internal_error(message: str) -> ApiError:
    return ApiError(500, "internal_error", message)
