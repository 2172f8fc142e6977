"""In-memory repositories."""

import secrets
from typing import Any, Dict, Iterable, List, Optional, Tuple

from courier.config import Collection, EndpointOverrides, Environment, RunnerDefinition
from courier.utils import now_ms


class MemoryCollectionRepository:
    def __init__(self, collections: Optional[Iterable[Collection]] = None):
        self._collections: Dict[str, Collection] = {}
        for collection in collections or []:
            self.save(collection)

    def save(self, collection: Collection) -> None:
        self._collections[collection.id] = collection

    async def get_all(self) -> List[Collection]:
        return list(self._collections.values())

    async def get_by_id(self, collection_id: str) -> Optional[Collection]:
        return self._collections.get(collection_id)


class MemoryEnvironmentRepository:
    def __init__(self, environments: Optional[Iterable[Environment]] = None, active_id: Optional[str] = None):
        self._environments: Dict[str, Environment] = {env.id: env for env in environments or []}
        self.active_id = active_id

    def save(self, environment: Environment) -> None:
        self._environments[environment.id] = environment

    def set_active(self, environment_id: Optional[str]) -> None:
        if environment_id is not None and environment_id not in self._environments:
            raise KeyError(f"Environment not found: {environment_id}")
        self.active_id = environment_id

    async def get_all(self) -> List[Environment]:
        return list(self._environments.values())

    async def get_active(self) -> Optional[Environment]:
        if self.active_id is None:
            return None
        return self._environments.get(self.active_id)

    async def get_active_environment_variables(self) -> Dict[str, str]:
        active = await self.get_active()
        return dict(active.variables) if active else {}


class MemoryVariableRepository:
    """Collection-scoped variables, keyed by collection id."""

    def __init__(self, variables: Optional[Dict[str, Dict[str, str]]] = None):
        self._variables: Dict[str, Dict[str, str]] = {k: dict(v) for k, v in (variables or {}).items()}

    def set_variables_for_collection(self, collection_id: str, variables: Dict[str, str]) -> None:
        self._variables[collection_id] = dict(variables)

    def set_variable(self, collection_id: str, name: str, value: str) -> None:
        self._variables.setdefault(collection_id, {})[name] = value

    async def get_variables_for_collection(self, collection_id: str) -> Dict[str, str]:
        return dict(self._variables.get(collection_id, {}))


class MemoryOverridesRepository:
    def __init__(self):
        self._overrides: Dict[Tuple[str, str], EndpointOverrides] = {}

    def set_overrides(self, collection_id: str, endpoint_id: str, overrides: EndpointOverrides) -> None:
        self._overrides[(collection_id, endpoint_id)] = overrides

    async def get_overrides(self, collection_id: str, endpoint_id: str) -> Optional[EndpointOverrides]:
        return self._overrides.get((collection_id, endpoint_id))


def generate_runner_id() -> str:
    return f"runner_{now_ms()}_{secrets.token_hex(4)}"


class MemoryRunnerRepository:
    """Runner definitions with creation, modification and last-run stamps."""

    def __init__(self, runners: Optional[Iterable[RunnerDefinition]] = None):
        self._runners: Dict[str, RunnerDefinition] = {}
        for runner in runners or []:
            if runner.id is None:
                runner = runner.model_copy(update={"id": generate_runner_id()})
            self._runners[runner.id] = runner

    async def get_all(self) -> List[RunnerDefinition]:
        return [runner.model_copy(deep=True) for runner in self._runners.values()]

    async def get_by_id(self, runner_id: str) -> Optional[RunnerDefinition]:
        runner = self._runners.get(runner_id)
        return runner.model_copy(deep=True) if runner else None

    async def get_by_collection_id(self, collection_id: str) -> List[RunnerDefinition]:
        return [r for r in await self.get_all() if r.collection_id == collection_id]

    async def add(self, runner: RunnerDefinition) -> RunnerDefinition:
        timestamp = now_ms()
        stored = runner.model_copy(
            update={
                "id": generate_runner_id(),
                "created_at": timestamp,
                "updated_at": timestamp,
                "last_run": None,
            },
            deep=True,
        )
        self._runners[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update(self, runner_id: str, updates: Dict[str, Any]) -> Optional[RunnerDefinition]:
        """Merge ``updates`` into the stored runner; ``None`` when unknown."""
        current = self._runners.get(runner_id)
        if current is None:
            return None
        data = current.model_dump()
        data.update(updates)
        data["id"] = runner_id
        data["updated_at"] = now_ms()
        updated = RunnerDefinition.model_validate(data)
        self._runners[runner_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, runner_id: str) -> bool:
        return self._runners.pop(runner_id, None) is not None

    async def update_last_run(self, runner_id: str) -> Optional[RunnerDefinition]:
        return await self.update(runner_id, {"last_run": now_ms()})


class MemoryStore:
    """All repositories the runner needs, held in memory.

    Collection variables are seeded from each collection's ``variables``.
    """

    def __init__(
        self,
        collections: Optional[Iterable[Collection]] = None,
        environments: Optional[Iterable[Environment]] = None,
        active_environment: Optional[str] = None,
        runners: Optional[Iterable[RunnerDefinition]] = None,
    ):
        collections = list(collections or [])
        self.collections = MemoryCollectionRepository(collections)
        self.environments = MemoryEnvironmentRepository(environments, active_environment)
        self.variables = MemoryVariableRepository({c.id: c.variables for c in collections})
        self.overrides = MemoryOverridesRepository()
        self.runners = MemoryRunnerRepository(runners)
