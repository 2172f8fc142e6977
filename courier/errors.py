"""Exception types raised across courier."""

from typing import Any, Dict, Optional


class CourierError(Exception):
    """Base class for courier errors."""


class RunnerValidationError(CourierError):
    """Malformed orchestration input (unknown runner, empty request list)."""


class RunnerAlreadyRunningError(CourierError):
    """A run was started while another run is active."""

    def __init__(self, active_run: Optional[str] = None):
        self.active_run = active_run
        message = "A runner is already executing"
        if active_run:
            message += f" ({active_run})"
        super().__init__(message)


class UnsupportedDigestAlgorithm(CourierError):
    """Digest challenge names an algorithm other than MD5 / MD5-sess."""

    def __init__(self, algorithm: str):
        self.algorithm = algorithm
        super().__init__(f"Unsupported algorithm: {algorithm}")


class TransportError(CourierError):
    """Failed dispatch.

    ``status`` is set when the server answered with a non-2xx status and is
    ``None`` for network level failures (DNS, refused connection, timeout).
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        elapsed_ms: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.data = data
        self.headers = headers or {}
        self.elapsed_ms = elapsed_ms


class ScriptAssertionError(CourierError):
    """A matcher inside a test script failed."""


class ScriptTimeoutError(BaseException):
    """Raised inside a running script when its deadline has passed.

    Not an ``Exception`` subclass: ``except Exception`` in script code does
    not catch it.
    """


class WorkspaceError(CourierError):
    """Workspace file is missing or malformed."""
