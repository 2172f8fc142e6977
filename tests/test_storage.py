import textwrap

import pytest

from courier.config import EndpointOverrides, KeyValue, RunnerDefinition
from courier.errors import WorkspaceError
from courier.storage import MemoryStore, load_workspace

WORKSPACE = textwrap.dedent(
    """
    settings:
      request_timeout: 5
      retries: 2
    collections:
      - id: users
        name: Users API
        base_url: https://api.example.com
        variables: {userId: "42"}
        endpoints:
          - id: get-user
            method: GET
            path: /users/{{userId}}
        folders:
          - id: admin
            endpoints:
              - id: delete-user
                method: DELETE
                path: /users/{{userId}}
    environments:
      - id: dev
        variables: {token: abc}
      - id: prod
        variables: {token: xyz}
    active_environment: prod
    overrides:
      - collection_id: users
        endpoint_id: get-user
        headers:
          - {key: X-Trace, value: "{{$uuid}}"}
    runners:
      - id: smoke
        name: Smoke test
        options: {stop_on_error: true, delay_ms: 10}
        requests:
          - {collection_id: users, endpoint_id: get-user}
    """
)


@pytest.fixture
def workspace_file(tmp_path):
    path = tmp_path / "workspace.yaml"
    path.write_text(WORKSPACE)
    return path


class TestLoadWorkspace:
    async def test_loads_every_section(self, workspace_file):
        store, settings = load_workspace(workspace_file)

        assert settings.request_timeout == 5
        assert settings.retries == 2

        collection = await store.collections.get_by_id("users")
        assert collection.find_endpoint("delete-user").method == "DELETE"
        assert await store.variables.get_variables_for_collection("users") == {"userId": "42"}
        assert await store.environments.get_active_environment_variables() == {"token": "xyz"}

        overrides = await store.overrides.get_overrides("users", "get-user")
        assert overrides.headers == [KeyValue(key="X-Trace", value="{{$uuid}}")]

        runner = await store.runners.get_by_id("smoke")
        assert runner.name == "Smoke test"
        assert runner.options.stop_on_error is True
        assert runner.options.delay_ms == 10

    def test_missing_file(self, tmp_path):
        with pytest.raises(WorkspaceError, match="Cannot read workspace"):
            load_workspace(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("collections: [unclosed")
        with pytest.raises(WorkspaceError, match="Invalid YAML"):
            load_workspace(path)

    def test_invalid_layout(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("runners:\n  - options: {delay_ms: -1}\n")
        with pytest.raises(WorkspaceError, match="Invalid workspace"):
            load_workspace(path)

    def test_unknown_active_environment(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("environments: []\nactive_environment: ghost\n")
        with pytest.raises(WorkspaceError, match="Active environment not found"):
            load_workspace(path)

    def test_empty_file_is_an_empty_workspace(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        store, settings = load_workspace(path)
        assert settings.request_timeout == 30.0


class TestMemoryStore:
    async def test_no_active_environment(self):
        store = MemoryStore()
        assert await store.environments.get_active() is None
        assert await store.environments.get_active_environment_variables() == {}

    async def test_set_active_environment(self, store):
        store.environments.set_active(None)
        assert await store.environments.get_active_environment_variables() == {}
        with pytest.raises(KeyError):
            store.environments.set_active("ghost")

    async def test_overrides_round_trip(self):
        store = MemoryStore()
        store.overrides.set_overrides("c", "e", EndpointOverrides(body="{}"))
        assert (await store.overrides.get_overrides("c", "e")).body == "{}"
        assert await store.overrides.get_overrides("c", "other") is None


class TestRunnerRepository:
    async def test_add_assigns_id_and_timestamps(self):
        store = MemoryStore()
        runner = await store.runners.add(RunnerDefinition(name="New"))
        assert runner.id.startswith("runner_")
        assert runner.created_at == runner.updated_at
        assert runner.last_run is None
        assert await store.runners.get_by_id(runner.id) == runner

    async def test_update_merges_and_validates(self, store):
        updated = await store.runners.update("smoke", {"name": "Renamed", "options": {"delay_ms": 5}})
        assert updated.name == "Renamed"
        assert updated.options.delay_ms == 5
        assert updated.id == "smoke"
        assert await store.runners.update("ghost", {"name": "x"}) is None

    async def test_returned_copies_are_detached(self, store):
        runner = await store.runners.get_by_id("smoke")
        runner.name = "mutated"
        assert (await store.runners.get_by_id("smoke")).name == "Smoke"

    async def test_delete(self, store):
        assert await store.runners.delete("smoke") is True
        assert await store.runners.delete("smoke") is False
        assert await store.runners.get_all() == []

    async def test_update_last_run(self, store):
        runner = await store.runners.update_last_run("smoke")
        assert runner.last_run is not None

    async def test_by_collection(self, store):
        assert [r.id for r in await store.runners.get_by_collection_id("users")] == ["smoke"]
        assert await store.runners.get_by_collection_id("other") == []
