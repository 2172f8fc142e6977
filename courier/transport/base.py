"""Transport contract consumed by the runner."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from courier.config import Cookie, ProxyConfig


@dataclass
class TransportResponse:
    """A completed HTTP exchange."""

    success: bool
    status: int
    status_text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    data: Any = None
    elapsed_ms: int = 0
    size: int = 0
    cookies: List[Cookie] = field(default_factory=list)


class Transport(Protocol):
    """Sends one HTTP request.

    Implementations return a :class:`TransportResponse` for 2xx answers and
    raise :class:`courier.errors.TransportError` otherwise: with
    ``status`` set for an HTTP error answer, ``None`` for network failures.
    ``headers`` may carry an ``Authorization`` value injected by the Digest
    handshake.
    """

    async def dispatch(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Any = None,
        timeout: Optional[float] = None,
        proxy: Optional[ProxyConfig] = None,
    ) -> TransportResponse:
        ...


def parse_set_cookie(value: str) -> Cookie:
    """Parse a single ``Set-Cookie`` header value."""
    name_value, *attributes = [part.strip() for part in value.split(";")]
    name, _, cookie_value = name_value.partition("=")
    cookie = Cookie(name=name.strip(), value=cookie_value.strip())

    for attribute in attributes:
        key, _, attr_value = attribute.partition("=")
        key = key.strip().lower()
        attr_value = attr_value.strip()
        if key == "domain":
            cookie.domain = attr_value
        elif key == "path":
            cookie.path = attr_value
        elif key == "expires":
            cookie.expires = attr_value
        elif key == "max-age":
            cookie.max_age = attr_value
        elif key == "httponly":
            cookie.http_only = True
        elif key == "secure":
            cookie.secure = True
        elif key == "samesite":
            cookie.same_site = attr_value or "None"

    return cookie
