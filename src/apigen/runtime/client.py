"""
Support code for generated clients (``*_client_gen.py``).

A client is configured once with option functions and then reused for every
call:

    posts = PostsClient(
        with_base_url("https://api.example.com"),
        with_auth_provider(lambda: f"Bearer {store.token}"),
    )
    post = posts.get_by_id(42)

Every failure (transport, non-2xx status, undecodable body) is raised as a
ClientError subclass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, ClassVar, Mapping, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from apigen.ir.pathtemplate import expand

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ClientError(Exception):
    """Base class for every failure surfaced by a generated client."""


class TransportError(ClientError):
    pass


class DecodeError(ClientError):
    pass


class StatusError(ClientError):
    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(f"unexpected status {status}: {message}")
        self.status = status
        self.code = code
        self.message = message


class NotFoundError(StatusError):
    pass


@dataclass
class ClientConfig:
    base_url: str = ""
    base_path: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    auth_provider: Optional[Callable[[], str]] = None
    timeout: Optional[float] = None
    http_client: Optional[httpx.Client] = None


ClientOption = Callable[[ClientConfig], None]


def with_base_url(url: str) -> ClientOption:
    """Base URL for API calls, e.g. ``https://api.example.com``."""

    def apply(cfg: ClientConfig) -> None:
        cfg.base_url = url.rstrip("/")

    return apply


def with_base_path(path: str) -> ClientOption:
    """Override the contract's ``@basepath`` prefix, e.g. ``/api/v1/posts``."""

    def apply(cfg: ClientConfig) -> None:
        cfg.base_path = path

    return apply


def with_header(key: str, value: str) -> ClientOption:
    def apply(cfg: ClientConfig) -> None:
        cfg.headers[key] = value

    return apply


def with_auth_provider(provider: Callable[[], str]) -> ClientOption:
    """
    Authorization header value computed on each request, so refreshed tokens
    are picked up: ``with_auth_provider(lambda: "Bearer " + auth.token())``.
    """

    def apply(cfg: ClientConfig) -> None:
        cfg.auth_provider = provider

    return apply


def with_timeout(seconds: float) -> ClientOption:
    """Request timeout; applied per request when an http_client was supplied."""

    def apply(cfg: ClientConfig) -> None:
        cfg.timeout = seconds

    return apply


def with_http_client(client: httpx.Client) -> ClientOption:
    """Send requests through an existing httpx.Client (caller keeps ownership)."""

    def apply(cfg: ClientConfig) -> None:
        cfg.http_client = client

    return apply


@lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


class BaseClient:
    default_base_path: ClassVar[str] = ""

    def __init__(self, *options: ClientOption) -> None:
        cfg = ClientConfig(base_path=self.default_base_path)
        for opt in options:
            opt(cfg)
        self.config = cfg
        self._owns_http = cfg.http_client is None
        self._http = cfg.http_client or httpx.Client(
            timeout=cfg.timeout if cfg.timeout is not None else DEFAULT_TIMEOUT
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def url_for(self, path: str, params: Mapping[str, Any]) -> str:
        return f"{self.config.base_url}{self.config.base_path}{expand(path, params)}"

    def _fetch(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any],
        response_type: Any,
        body: Any = None,
        optional: bool = False,
    ) -> Any:
        response = self._exchange(method, path, params, body)

        if response.status_code == 204 or not response.content:
            if optional:
                return None
            raise DecodeError(f"{method} {response.request.url.path}: empty response body")

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(f"decode response: {exc}") from exc
        if data is None and optional:
            return None

        try:
            return _adapter(response_type).validate_python(data)
        except ValidationError as exc:
            raise DecodeError(f"decode response: {exc}") from exc

    def _send(self, method: str, path: str, params: Mapping[str, Any], body: Any = None) -> None:
        self._exchange(method, path, params, body)

    def _exchange(self, method: str, path: str, params: Mapping[str, Any], body: Any) -> httpx.Response:
        try:
            url = self.url_for(path, params)
        except (KeyError, TypeError, ValueError) as exc:
            raise ClientError(f"build path {path}: {exc}") from exc

        headers = dict(self.config.headers)
        if self.config.auth_provider is not None:
            auth = self.config.auth_provider()
            if auth:
                headers["Authorization"] = auth

        content: Optional[bytes] = None
        if body is not None:
            try:
                content = _adapter(type(body)).dump_json(body)
            except (TypeError, ValueError) as exc:
                raise ClientError(f"marshal request: {exc}") from exc
            headers["Content-Type"] = "application/json"

        extra: dict[str, Any] = {}
        if not self._owns_http and self.config.timeout is not None:
            extra["timeout"] = self.config.timeout

        try:
            response = self._http.request(method, url, headers=headers, content=content, **extra)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url}: {exc}") from exc

        logger.debug("%s %s -> %d", method, url, response.status_code)

        if not response.is_success:
            raise _status_error(response)
        return response


def _status_error(response: httpx.Response) -> StatusError:
    code, message = "", response.reason_phrase or ""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = str(body["error"].get("code", ""))
        message = str(body["error"].get("message", message))

    cls = NotFoundError if response.status_code == 404 else StatusError
    return cls(response.status_code, code, message)
