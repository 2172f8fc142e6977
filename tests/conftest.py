"""Shared fixtures: a scripted transport and a populated in-memory store."""

from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from courier.config import (
    Collection,
    Endpoint,
    EndpointParameters,
    Environment,
    ParameterSpec,
    RequestBodySpec,
    RunnerDefinition,
    RunnerRequest,
    Settings,
)
from courier.errors import TransportError
from courier.storage import MemoryStore
from courier.transport import TransportResponse

Reply = Union[TransportResponse, Exception, Callable[..., Any]]


def ok(data: Any = None, status: int = 200, headers: Optional[Dict[str, str]] = None) -> TransportResponse:
    return TransportResponse(success=True, status=status, status_text="OK", headers=headers or {}, data=data)


def http_error(status: int, data: Any = None, headers: Optional[Dict[str, str]] = None) -> TransportError:
    return TransportError(f"HTTP Error {status}", status=status, status_text="Error", data=data, headers=headers)


class FakeTransport:
    """Replays queued replies and records every dispatch."""

    def __init__(self, *replies: Reply, default: Optional[Reply] = None):
        self.replies: List[Reply] = list(replies)
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def dispatch(self, method, url, headers, body=None, timeout=None, proxy=None):
        call = {"method": method, "url": url, "headers": dict(headers), "body": body, "timeout": timeout}
        self.calls.append(call)
        reply = self.replies.pop(0) if self.replies else self.default
        if reply is None:
            reply = ok()
        if callable(reply) and not isinstance(reply, TransportResponse):
            reply = reply(call)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def collection():
    return Collection(
        id="users",
        name="Users API",
        base_url="https://api.example.com",
        default_headers={"Accept": "application/json"},
        variables={"userId": "42", "token": "collection-token"},
        endpoints=[
            Endpoint(id="login", name="Login", method="POST", path="/login",
                     request_body=RequestBodySpec(example='{"user": "{{username}}"}')),
            Endpoint(id="get-user", name="Get user", method="GET", path="/users/{{userId}}",
                     headers={"Authorization": "Bearer {{token}}"}),
            Endpoint(id="search", name="Search", method="GET", path="/search",
                     parameters=EndpointParameters(query={"q": ParameterSpec(example="{{term}}")})),
        ],
    )


@pytest.fixture
def environment():
    return Environment(id="dev", name="Development", variables={"username": "alice", "token": "env-token"})


@pytest.fixture
def runner_definition():
    return RunnerDefinition(
        id="smoke",
        name="Smoke",
        collection_id="users",
        requests=[
            RunnerRequest(collection_id="users", endpoint_id="login", name="Login"),
            RunnerRequest(collection_id="users", endpoint_id="get-user", name="Get user"),
        ],
    )


@pytest.fixture
def store(collection, environment, runner_definition):
    return MemoryStore(
        collections=[collection],
        environments=[environment],
        active_environment="dev",
        runners=[runner_definition],
    )


@pytest.fixture
def settings():
    return Settings(script_timeout_ms=2000)
