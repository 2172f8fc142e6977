"""Objects bound into a script's namespace.

A fresh set is built for every script invocation. The executor reads back
logs, assertion results and the environment diff from :class:`ScriptState`
once the script finishes.
"""

import copy
import json
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from courier.config import Cookie, LogEntry, LogLevel, TestResult
from courier.errors import ScriptTimeoutError
from courier.utils import now_ms


@dataclass(frozen=True)
class SetValue:
    """Environment diff entry: the script assigned ``value``."""

    value: str


@dataclass(frozen=True)
class Unset:
    """Environment diff entry: the script removed the variable."""


EnvChange = Union[SetValue, Unset]
EnvironmentDiff = Dict[str, EnvChange]


def applied_values(diff: Mapping[str, EnvChange]) -> Dict[str, str]:
    """Only the assigned values of a diff; unset entries are dropped."""
    return {name: change.value for name, change in diff.items() if isinstance(change, SetValue)}


@dataclass
class RequestContext:
    """Request data handed to a script (already variable-resolved)."""

    url: str = ""
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    query_params: Dict[str, str] = field(default_factory=dict)
    path_params: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResponseContext:
    """Response data handed to a test script."""

    status: Optional[int] = None
    status_text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    timings: Dict[str, Any] = field(default_factory=dict)
    cookies: List[Cookie] = field(default_factory=list)


class ScriptState:
    """Per-invocation record shared by all bindings.

    Once :meth:`expire` is called (script finished or deadline passed) every
    binding refuses further calls, so an abandoned worker cannot keep
    writing into the result.
    """

    def __init__(self):
        self.logs: List[LogEntry] = []
        self.test_results: List[TestResult] = []
        self.changes: EnvironmentDiff = {}
        self._expired = threading.Event()

    def expire(self) -> None:
        self._expired.set()

    def check_alive(self) -> None:
        if self._expired.is_set():
            raise ScriptTimeoutError()

    def record_test(self, passed: bool, message: str) -> None:
        self.check_alive()
        self.test_results.append(TestResult(passed=passed, message=message))


REQUEST_FIELDS = ("url", "method", "headers", "body", "query_params", "path_params")


class RequestView:
    """Mutable ``request`` binding.

    Containers are shallow copies of the request context, so mutation never
    reaches the caller's data until the executor returns it.
    """

    _guarded_writes = True

    def __init__(self, context: RequestContext):
        object.__setattr__(self, "url", context.url)
        object.__setattr__(self, "method", context.method)
        object.__setattr__(self, "headers", dict(context.headers or {}))
        object.__setattr__(self, "body", copy.copy(context.body))
        object.__setattr__(self, "query_params", dict(context.query_params or {}))
        object.__setattr__(self, "path_params", dict(context.path_params or {}))

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in REQUEST_FIELDS:
            raise AttributeError(f"request has no field '{name}'")
        object.__setattr__(self, name, value)

    def to_context(self) -> RequestContext:
        return RequestContext(
            url=str(self.url),
            method=str(self.method).upper(),
            headers={str(k): str(v) for k, v in dict(self.headers).items()},
            body=self.body,
            query_params={str(k): str(v) for k, v in dict(self.query_params).items()},
            path_params={str(k): str(v) for k, v in dict(self.path_params).items()},
        )

    def __repr__(self) -> str:
        return f"<request {self.method} {self.url}>"


class ReadOnlyRequestView(RequestView):
    """``request`` binding for test scripts: the request as it was sent."""

    def __init__(self, context: RequestContext):
        super().__init__(context)
        object.__setattr__(self, "headers", MappingProxyType(self.headers))
        object.__setattr__(self, "body", copy.deepcopy(context.body))
        object.__setattr__(self, "query_params", MappingProxyType(self.query_params))
        object.__setattr__(self, "path_params", MappingProxyType(self.path_params))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("request is read-only in test scripts")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("request is read-only in test scripts")


class ResponseView:
    """Read-only ``response`` binding."""

    __slots__ = ("status", "status_text", "headers", "body", "timings", "cookies")

    def __init__(self, context: ResponseContext):
        object.__setattr__(self, "status", context.status)
        object.__setattr__(self, "status_text", context.status_text)
        object.__setattr__(self, "headers", MappingProxyType(dict(context.headers or {})))
        object.__setattr__(self, "body", copy.deepcopy(context.body))
        object.__setattr__(self, "timings", MappingProxyType(dict(context.timings or {})))
        object.__setattr__(
            self, "cookies", tuple(MappingProxyType(c.model_dump()) for c in context.cookies or [])
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("response is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("response is read-only")

    def json(self) -> Any:
        """Body parsed as JSON (the body itself when already structured)."""
        if isinstance(self.body, (str, bytes)):
            return json.loads(self.body)
        return self.body

    def header(self, name: str, default: Any = None) -> Any:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def __repr__(self) -> str:
        return f"<response {self.status} {self.status_text}>"


class EnvironmentAccessor:
    """``environment`` binding: reads fall through the diff, writes go to it."""

    def __init__(self, variables: Optional[Mapping[str, Any]], state: ScriptState):
        self._variables = dict(variables or {})
        self._state = state

    def get(self, name: str) -> Optional[str]:
        self._state.check_alive()
        change = self._state.changes.get(name)
        if isinstance(change, SetValue):
            return change.value
        if isinstance(change, Unset):
            return None
        value = self._variables.get(name)
        return None if value is None else str(value)

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def set(self, name: str, value: Any) -> None:
        self._state.check_alive()
        if not isinstance(name, str):
            raise TypeError("Environment variable name must be a string")
        if value is None:
            raise ValueError("Environment variable value cannot be None")
        if isinstance(value, bool):
            value = "true" if value else "false"
        self._state.changes[name] = SetValue(str(value))

    def delete(self, name: str) -> None:
        self._state.check_alive()
        self._state.changes[name] = Unset()

    unset = delete

    def to_dict(self) -> Dict[str, str]:
        """Effective variables as the script currently sees them."""
        merged = {k: str(v) for k, v in self._variables.items() if v is not None}
        for name, change in self._state.changes.items():
            if isinstance(change, SetValue):
                merged[name] = change.value
            else:
                merged.pop(name, None)
        return merged


def _render(arg: Any) -> str:
    if isinstance(arg, (dict, list, tuple)):
        try:
            return json.dumps(arg, indent=2, default=str)
        except (TypeError, ValueError):
            return str(arg)
    return str(arg)


class ConsoleSink:
    """``console`` binding capturing output instead of writing it anywhere."""

    def __init__(self, state: ScriptState):
        self._state = state

    def _capture(self, level: LogLevel, args: tuple) -> None:
        self._state.check_alive()
        message = " ".join(_render(arg) for arg in args)
        self._state.logs.append(LogEntry(level=level, message=message, timestamp=now_ms()))

    def log(self, *args: Any) -> None:
        self._capture(LogLevel.INFO, args)

    def info(self, *args: Any) -> None:
        self._capture(LogLevel.INFO, args)

    def warn(self, *args: Any) -> None:
        self._capture(LogLevel.WARN, args)

    warning = warn

    def error(self, *args: Any) -> None:
        self._capture(LogLevel.ERROR, args)

    def debug(self, *args: Any) -> None:
        self._capture(LogLevel.DEBUG, args)
