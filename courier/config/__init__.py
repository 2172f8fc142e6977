"""Configuration models for courier.

This package re-exports all commonly used classes for convenient importing.
"""

# Common enumerations
from courier.config.common import (
    BODY_METHODS,
    ApiKeyLocation,
    AuthType,
    LogLevel,
    RequestStatus,
    RunEvent,
    RunState,
)

# Collection / environment / runner definitions
from courier.config.models import (
    AuthConfig,
    Collection,
    Endpoint,
    EndpointOverrides,
    EndpointParameters,
    Environment,
    Folder,
    KeyValue,
    ParameterSpec,
    RequestBodySpec,
    RunnerDefinition,
    RunnerRequest,
    RunOptions,
)

# Settings
from courier.config.settings import ProxyConfig, Settings

# Run records
from courier.config.results import (
    Cookie,
    LogEntry,
    RequestResult,
    RunRecord,
    TestResult,
)

__all__ = [
    # Enums
    "BODY_METHODS",
    "ApiKeyLocation",
    "AuthType",
    "LogLevel",
    "RequestStatus",
    "RunEvent",
    "RunState",
    # Definitions
    "AuthConfig",
    "Collection",
    "Endpoint",
    "EndpointOverrides",
    "EndpointParameters",
    "Environment",
    "Folder",
    "KeyValue",
    "ParameterSpec",
    "RequestBodySpec",
    "RunnerDefinition",
    "RunnerRequest",
    "RunOptions",
    # Settings
    "ProxyConfig",
    "Settings",
    # Results
    "Cookie",
    "LogEntry",
    "RequestResult",
    "RunRecord",
    "TestResult",
]
