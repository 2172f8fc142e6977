"""Common enumerations used across courier configuration."""

from enum import Enum


class AuthType(str, Enum):
    """Authentication types."""

    NONE = "none"
    BEARER = "bearer"
    BASIC = "basic"
    API_KEY = "api-key"
    OAUTH2 = "oauth2"
    DIGEST = "digest"


class ApiKeyLocation(str, Enum):
    """Where an API key is sent."""

    HEADER = "header"
    QUERY = "query"


class RequestStatus(str, Enum):
    """Outcome of a single request in a run."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class RunState(str, Enum):
    """Lifecycle of a run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED_FAST = "failed_fast"


class RunEvent(str, Enum):
    """Events delivered to runner listeners."""

    RUN_STARTED = "run-started"
    REQUEST_COMPLETED = "request-completed"
    RUN_COMPLETED = "run-completed"


class LogLevel(str, Enum):
    """Levels captured by the script log sink."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


BODY_METHODS = ("POST", "PUT", "PATCH")
