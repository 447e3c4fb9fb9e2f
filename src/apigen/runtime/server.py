"""
Support code for generated route dispatchers (``*_server_gen.py``).

Generated handlers decode their inputs with :func:`path_param` and
:func:`read_body`, call the service through :func:`invoke`, and answer with
:func:`json_response`, :func:`no_content` or :func:`error_response`.
"""
from __future__ import annotations

import inspect
import logging
from functools import lru_cache
from typing import Any, Awaitable, Callable, ClassVar

from fastapi import APIRouter, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool

from apigen.ir.pathtemplate import convert
from apigen.runtime.errors import ApiError, bad_request, internal_error, method_not_allowed

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Endpoint], Endpoint]


class RouteDispatcher:
    """
    Base class for generated handlers.

    Middleware attached with :meth:`use` wraps every route registered
    afterwards; the first one attached is the outermost.
    """

    ROUTES: ClassVar[dict[str, tuple[str, str]]] = {}

    def __init__(self) -> None:
        self.middleware: list[Middleware] = []

    def use(self, *middleware: Middleware) -> None:
        self.middleware.extend(middleware)

    def _wrap(self, handler: Endpoint) -> Endpoint:
        chain = handler
        for mw in reversed(self.middleware):
            chain = mw(chain)

        # FastAPI reads the signature, so the route endpoint is always this shape
        async def endpoint(request: Request) -> Response:
            return await chain(request)

        endpoint.__name__ = getattr(handler, "__name__", "endpoint")
        endpoint.__doc__ = getattr(handler, "__doc__", None)
        return endpoint

    def register_preflight(self, router: APIRouter) -> None:
        """
        Add an OPTIONS route per template when an attached middleware answers
        preflight requests (see :func:`cors_middleware`).
        """
        if not any(getattr(mw, "answers_preflight", False) for mw in self.middleware):
            return
        for route in sorted({route for _, route in self.ROUTES.values()}):
            router.add_api_route(
                route,
                self._wrap(_unanswered_preflight),
                methods=["OPTIONS"],
                name=f"{type(self).__name__}.preflight:{route}",
            )


async def _unanswered_preflight(request: Request) -> Response:
    return error_response(method_not_allowed(f"{request.method} not allowed"))


@lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def path_param(request: Request, name: str, kind: str) -> int | str:
    raw = request.path_params.get(name)
    if raw is None:
        raise bad_request(f"missing path parameter {name}")
    try:
        return convert(kind, name, str(raw))
    except ValueError as exc:
        raise bad_request(str(exc)) from None


async def read_body(request: Request, tp: Any) -> Any:
    raw = await request.body()
    if not raw:
        raise bad_request("missing request body")
    try:
        return _adapter(tp).validate_json(raw)
    except ValidationError as exc:
        logger.debug("invalid body for %s %s: %s", request.method, request.url.path, exc)
        raise bad_request("invalid request body") from None


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a service method, running plain functions off the event loop."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    result = await run_in_threadpool(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def json_response(result: Any, status_code: int = 200) -> Response:
    return JSONResponse(content=jsonable_encoder(result), status_code=status_code)


def no_content() -> Response:
    return Response(status_code=204)


def error_response(exc: BaseException) -> Response:
    if not isinstance(exc, ApiError):
        logger.exception("unhandled error in service call", exc_info=exc)
        exc = internal_error(str(exc) or exc.__class__.__name__)
    return JSONResponse(content=exc.payload(), status_code=exc.status)
