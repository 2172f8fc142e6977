"""Utility functions for the courier runner."""

import logging
import time
from typing import Any, Dict
from urllib.parse import urlparse


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the runner.

    Args:
        verbose: Enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Suppress noisy httpx logging
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.setLevel(level)


logger = logging.getLogger("courier")


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


def sanitize_url(url: str) -> str:
    """Sanitize URL for logging (remove credentials)."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            safe = parsed._replace(
                netloc=f"{parsed.username}:****@{parsed.hostname}"
            )
            if parsed.port:
                safe = safe._replace(
                    netloc=f"{parsed.username}:****@{parsed.hostname}:{parsed.port}"
                )
            return safe.geturl()
        return url
    except ValueError:
        return url


def mask_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of headers with credential-bearing values masked for logging."""
    masked = {}
    for key, value in headers.items():
        if key.lower() in ("authorization", "proxy-authorization", "cookie", "x-api-key"):
            masked[key] = "****"
        else:
            masked[key] = value
    return masked
