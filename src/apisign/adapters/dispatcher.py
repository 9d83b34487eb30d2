from __future__ import annotations

import logging
from time import monotonic
from urllib.parse import urlsplit

import httpx

from apisign.auth.signing import build_auth_headers
from apisign.errors import TransportError
from apisign.logging_context import request_context
from apisign.models import FORM_CONTENT_TYPE
from apisign.security.redaction import sanitize_text

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def _resolve_timeout(timeout: float | httpx.Timeout) -> httpx.Timeout:
    if isinstance(timeout, httpx.Timeout):
        return timeout
    return httpx.Timeout(timeout=timeout, connect=min(5.0, timeout))


def _endpoint_path(url: str) -> str:
    return urlsplit(url).path or "/"


def _private_headers(api_key: str, signature: str) -> dict[str, str]:
    headers = build_auth_headers(api_key, signature)
    headers["Content-Type"] = FORM_CONTENT_TYPE
    return headers


def _transport_error(exc: httpx.TransportError, *, method: str, url: str) -> TransportError:
    path = _endpoint_path(url)
    logger.warning(
        "request_transport_failed",
        extra={
            "extra": {
                "method": method,
                "path": path,
                "error_type": type(exc).__name__,
            }
        },
    )
    return TransportError(
        f"{method} {path} failed: {type(exc).__name__}: {sanitize_text(str(exc))}",
        url=url,
        method=method,
    )


def _log_response(method: str, url: str, response: httpx.Response, started: float) -> None:
    logger.info(
        "request_completed",
        extra={
            "extra": {
                "method": method,
                "path": _endpoint_path(url),
                "status": response.status_code,
                "elapsed_ms": round((monotonic() - started) * 1000, 3),
            }
        },
    )


class RequestDispatcher:
    """Sends signed requests over a blocking ``httpx.Client``.

    Responses come back untouched whatever their status; only failures below
    HTTP are raised, as ``TransportError``. Nothing is retried.
    """

    def __init__(
        self,
        *,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=_resolve_timeout(timeout), transport=transport)

    def __enter__(self) -> RequestDispatcher:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def dispatch(
        self, endpoint_url: str, encoded_payload: str, api_key: str, signature: str
    ) -> httpx.Response:
        return self._send(
            "POST",
            endpoint_url,
            content=encoded_payload.encode("utf-8"),
            headers=_private_headers(api_key, signature),
        )

    def get(self, url: str) -> httpx.Response:
        return self._send("GET", url)

    def _send(
        self,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        with request_context(_endpoint_path(url)):
            started = monotonic()
            try:
                response = self.client.request(method, url, content=content, headers=headers)
            except httpx.TransportError as exc:
                raise _transport_error(exc, method=method, url=url) from exc
            _log_response(method, url, response, started)
            return response


class AsyncRequestDispatcher:
    """``RequestDispatcher`` counterpart that suspends on ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=_resolve_timeout(timeout), transport=transport
        )

    async def __aenter__(self) -> AsyncRequestDispatcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def dispatch(
        self, endpoint_url: str, encoded_payload: str, api_key: str, signature: str
    ) -> httpx.Response:
        return await self._send(
            "POST",
            endpoint_url,
            content=encoded_payload.encode("utf-8"),
            headers=_private_headers(api_key, signature),
        )

    async def get(self, url: str) -> httpx.Response:
        return await self._send("GET", url)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        with request_context(_endpoint_path(url)):
            started = monotonic()
            try:
                response = await self.client.request(method, url, content=content, headers=headers)
            except httpx.TransportError as exc:
                raise _transport_error(exc, method=method, url=url) from exc
            _log_response(method, url, response, started)
            return response
