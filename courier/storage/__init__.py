"""Persistence contracts and implementations."""

from courier.storage.base import (
    CollectionRepository,
    EnvironmentRepository,
    OverridesRepository,
    RunnerRepository,
    VariableRepository,
)
from courier.storage.memory import (
    MemoryCollectionRepository,
    MemoryEnvironmentRepository,
    MemoryOverridesRepository,
    MemoryRunnerRepository,
    MemoryStore,
    MemoryVariableRepository,
)
from courier.storage.yaml_store import load_workspace

__all__ = [
    "CollectionRepository",
    "EnvironmentRepository",
    "MemoryCollectionRepository",
    "MemoryEnvironmentRepository",
    "MemoryOverridesRepository",
    "MemoryRunnerRepository",
    "MemoryStore",
    "MemoryVariableRepository",
    "OverridesRepository",
    "RunnerRepository",
    "VariableRepository",
    "load_workspace",
]
