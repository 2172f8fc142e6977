"""Persistence contracts consumed by the runner."""

from typing import Dict, List, Optional, Protocol

from courier.config import Collection, EndpointOverrides, Environment, RunnerDefinition


class CollectionRepository(Protocol):
    async def get_all(self) -> List[Collection]:
        ...

    async def get_by_id(self, collection_id: str) -> Optional[Collection]:
        ...


class EnvironmentRepository(Protocol):
    async def get_all(self) -> List[Environment]:
        ...

    async def get_active(self) -> Optional[Environment]:
        ...

    async def get_active_environment_variables(self) -> Dict[str, str]:
        ...


class VariableRepository(Protocol):
    async def get_variables_for_collection(self, collection_id: str) -> Dict[str, str]:
        ...


class OverridesRepository(Protocol):
    """Per-endpoint values persisted by the user."""

    async def get_overrides(self, collection_id: str, endpoint_id: str) -> Optional[EndpointOverrides]:
        ...


class RunnerRepository(Protocol):
    async def get_all(self) -> List[RunnerDefinition]:
        ...

    async def get_by_id(self, runner_id: str) -> Optional[RunnerDefinition]:
        ...

    async def add(self, runner: RunnerDefinition) -> RunnerDefinition:
        ...

    async def update(self, runner_id: str, updates: Dict) -> Optional[RunnerDefinition]:
        ...

    async def delete(self, runner_id: str) -> bool:
        ...

    async def update_last_run(self, runner_id: str) -> Optional[RunnerDefinition]:
        ...
