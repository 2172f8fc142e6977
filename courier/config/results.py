"""Run record models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from courier.config.common import LogLevel, RequestStatus, RunState


class LogEntry(BaseModel):
    """A line captured from a script's console."""

    level: LogLevel = LogLevel.INFO
    message: str = ""
    timestamp: int = 0  # Unix ms


class TestResult(BaseModel):
    """Outcome of one assertion (or one named ``test`` block) in a script."""

    __test__ = False  # keep pytest from collecting this class

    passed: bool
    message: str


class Cookie(BaseModel):
    """A cookie parsed from a ``Set-Cookie`` response header."""

    name: str = ""
    value: str = ""
    domain: Optional[str] = None
    path: Optional[str] = None
    expires: Optional[str] = None
    max_age: Optional[str] = None
    http_only: bool = False
    secure: bool = False
    same_site: Optional[str] = None


class RequestResult(BaseModel):
    """Result of one request in a run."""

    index: int
    collection_id: Optional[str] = None
    endpoint_id: Optional[str] = None
    name: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None

    status: RequestStatus = RequestStatus.PENDING
    status_code: Optional[int] = None
    status_text: Optional[str] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None

    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)
    cookies: List[Cookie] = Field(default_factory=list)

    variables_set: Dict[str, str] = Field(default_factory=dict)
    logs: List[LogEntry] = Field(default_factory=list)
    test_results: List[TestResult] = Field(default_factory=list)
    script_error: Optional[str] = None


class RunRecord(BaseModel):
    """Complete record of one run.

    Created at run start, appended per request and sealed at the end.
    """

    runner_id: Optional[str] = None
    runner_name: str = "Untitled Runner"
    state: RunState = RunState.RUNNING
    start_time: int = 0
    end_time: Optional[int] = None
    total_time_ms: Optional[int] = None

    total_requests: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    requests: List[RequestResult] = Field(default_factory=list)
    variables_set: Dict[str, str] = Field(default_factory=dict)

    def add(self, result: RequestResult) -> None:
        self.requests.append(result)
        if result.status == RequestStatus.SUCCESS:
            self.passed += 1
        elif result.status == RequestStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def seal(self, state: RunState, end_time: int) -> None:
        self.state = state
        self.end_time = end_time
        self.total_time_ms = end_time - self.start_time

    @property
    def success(self) -> bool:
        return self.failed == 0 and self.skipped == 0
