"""Request-wrapping behaviours for :meth:`RouteDispatcher.use`."""
from __future__ import annotations

import itertools
import logging
import time
from typing import Optional, Sequence

from fastapi import Request, Response

from apigen.runtime.server import Endpoint, Middleware, error_response

logger = logging.getLogger("apigen.runtime.access")


def logging_middleware(log: Optional[logging.Logger] = None) -> Middleware:
    """Log method, path, status and duration of every request."""
    log = log or logger

    def middleware(next_: Endpoint) -> Endpoint:
        async def handler(request: Request) -> Response:
            start = time.perf_counter()
            response = await next_(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
            return response

        return handler

    return middleware


def recovery_middleware() -> Middleware:
    """Turn anything raised further down the chain into a 500 JSON error."""

    def middleware(next_: Endpoint) -> Endpoint:
        async def handler(request: Request) -> Response:
            try:
                return await next_(request)
            except Exception as exc:
                return error_response(exc)

        return handler

    return middleware


def cors_middleware(
    allow_origin: str = "*",
    allow_methods: Sequence[str] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"),
    allow_headers: Sequence[str] = ("Content-Type", "Authorization"),
) -> Middleware:
    """
    Add CORS headers to every response and answer OPTIONS preflight requests
    with 204. Routes registered through :meth:`RouteDispatcher.register_preflight`
    get an OPTIONS route so the preflight reaches this middleware.
    """

    def middleware(next_: Endpoint) -> Endpoint:
        async def handler(request: Request) -> Response:
            if request.method == "OPTIONS":
                response = Response(status_code=204)
            else:
                response = await next_(request)
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            response.headers["Access-Control-Allow-Methods"] = ", ".join(allow_methods)
            response.headers["Access-Control-Allow-Headers"] = ", ".join(allow_headers)
            return response

        return handler

    middleware.answers_preflight = True  # type: ignore[attr-defined]
    return middleware


def request_id_middleware(header: str = "X-Request-ID") -> Middleware:
    counter = itertools.count(1)

    def middleware(next_: Endpoint) -> Endpoint:
        async def handler(request: Request) -> Response:
            response = await next_(request)
            response.headers[header] = f"{time.time_ns()}-{next(counter)}"
            return response

        return handler

    return middleware
