"""HTTP transport layer."""

from courier.transport.base import Transport, TransportResponse, parse_set_cookie
from courier.transport.httpx_transport import HttpxTransport

__all__ = [
    "HttpxTransport",
    "Transport",
    "TransportResponse",
    "parse_set_cookie",
]
