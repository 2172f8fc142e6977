"""Runner orchestration: request building, run state and execution."""

from courier.runner.builder import PreparedRequest, RequestBuilder
from courier.runner.service import SKIPPED_AFTER_ERROR, STOPPED_BY_USER, RunnerService
from courier.runner.state import CancellationToken, RunStateMachine

__all__ = [
    "CancellationToken",
    "PreparedRequest",
    "RequestBuilder",
    "RunStateMachine",
    "RunnerService",
    "SKIPPED_AFTER_ERROR",
    "STOPPED_BY_USER",
]
