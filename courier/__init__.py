"""courier - HTTP collection runner.

Executes ordered sequences of API requests with support for:
- Template variables and dynamic value generators
- Sandboxed pre-request and test scripts
- Variable chaining between requests
- HTTP Digest authentication
"""

__version__ = "0.2.0"

# Core modules
from courier.config import (
    AuthConfig,
    AuthType,
    Collection,
    Endpoint,
    EndpointOverrides,
    Environment,
    RequestResult,
    RequestStatus,
    RunnerDefinition,
    RunnerRequest,
    RunOptions,
    RunRecord,
    RunState,
    Settings,
)

from courier.errors import (
    CourierError,
    RunnerAlreadyRunningError,
    RunnerValidationError,
    TransportError,
    UnsupportedDigestAlgorithm,
    WorkspaceError,
)

from courier.runner import RunnerService

from courier.variables import DynamicValueGenerator, VariableProcessor

# Collaborators
from courier.auth import Authenticator, handle_digest_auth
from courier.scripting import ScriptExecutor, ScriptResult
from courier.storage import MemoryStore, load_workspace
from courier.transport import HttpxTransport, Transport, TransportResponse

__all__ = [
    # Version
    "__version__",
    # Config
    "AuthConfig",
    "AuthType",
    "Collection",
    "Endpoint",
    "EndpointOverrides",
    "Environment",
    "RequestResult",
    "RequestStatus",
    "RunnerDefinition",
    "RunnerRequest",
    "RunOptions",
    "RunRecord",
    "RunState",
    "Settings",
    # Errors
    "CourierError",
    "RunnerAlreadyRunningError",
    "RunnerValidationError",
    "TransportError",
    "UnsupportedDigestAlgorithm",
    "WorkspaceError",
    # Runner
    "RunnerService",
    # Variables
    "DynamicValueGenerator",
    "VariableProcessor",
    # Auth
    "Authenticator",
    "handle_digest_auth",
    # Scripting
    "ScriptExecutor",
    "ScriptResult",
    # Storage
    "MemoryStore",
    "load_workspace",
    # Transport
    "HttpxTransport",
    "Transport",
    "TransportResponse",
]
