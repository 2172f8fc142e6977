"""httpx implementation of the transport contract."""

import time
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from courier.config import BODY_METHODS, ProxyConfig, Settings
from courier.errors import TransportError
from courier.transport.base import TransportResponse, parse_set_cookie
from courier.utils import logger, mask_headers, sanitize_url

RETRYABLE_ERRORS = (httpx.NetworkError, httpx.TimeoutException)


def _decode_body(response: httpx.Response) -> Any:
    """Parsed JSON when the payload is JSON, raw text otherwise."""
    if not response.content:
        return response.text
    try:
        return response.json()
    except ValueError:
        return response.text


def _has_header(headers: Dict[str, str], name: str) -> bool:
    return any(key.lower() == name for key in headers)


class HttpxTransport:
    """Dispatches requests through a shared :class:`httpx.AsyncClient`.

    One client is kept per proxy URL. Pure network errors are retried
    ``settings.retries`` extra times with exponential backoff; HTTP error
    answers are never retried.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or Settings()
        self._transport = transport
        self._clients: Dict[Optional[str], httpx.AsyncClient] = {}

    def _get_client(self, proxy: Optional[ProxyConfig]) -> httpx.AsyncClient:
        key = proxy.to_url() if proxy else None
        client = self._clients.get(key)
        if client is None or client.is_closed:
            kwargs: Dict[str, Any] = {
                "follow_redirects": self.settings.follow_redirects,
                "verify": self.settings.verify_ssl,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif key:
                kwargs["proxy"] = key
            client = httpx.AsyncClient(**kwargs)
            self._clients[key] = client
        return client

    async def close(self) -> None:
        for client in self._clients.values():
            if not client.is_closed:
                await client.aclose()
        self._clients.clear()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _build_kwargs(self, method: str, headers: Dict[str, str], body: Any, timeout: Optional[float]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headers": dict(headers), "timeout": timeout}
        if body is None or body == "" or method.upper() not in BODY_METHODS:
            return kwargs

        if isinstance(body, (dict, list)):
            kwargs["json"] = body
            if not _has_header(kwargs["headers"], "content-type"):
                kwargs["headers"]["Content-Type"] = "application/json"
        elif isinstance(body, bytes):
            kwargs["content"] = body
        else:
            kwargs["content"] = str(body)
        return kwargs

    async def dispatch(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Any = None,
        timeout: Optional[float] = None,
        proxy: Optional[ProxyConfig] = None,
    ) -> TransportResponse:
        client = self._get_client(proxy or self.settings.proxy)
        kwargs = self._build_kwargs(method, headers, body, timeout)

        logger.debug(f"{method.upper()} {sanitize_url(url)} headers={mask_headers(headers)}")
        start = time.monotonic()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.retries + 1),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                reraise=True,
            ):
                with attempt:
                    response = await client.request(method.upper(), url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request timed out: {e}",
                elapsed_ms=int((time.monotonic() - start) * 1000),
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"No response received from server: {e}",
                elapsed_ms=int((time.monotonic() - start) * 1000),
            ) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        data = _decode_body(response)
        response_headers = dict(response.headers)

        if not response.is_success:
            raise TransportError(
                f"HTTP Error {response.status_code}",
                status=response.status_code,
                status_text=response.reason_phrase,
                data=data,
                headers=response_headers,
                elapsed_ms=elapsed_ms,
            )

        return TransportResponse(
            success=True,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=response_headers,
            data=data,
            elapsed_ms=elapsed_ms,
            size=len(response.content),
            cookies=[parse_set_cookie(v) for v in response.headers.get_list("set-cookie")],
        )
