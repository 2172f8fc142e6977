"""YAML workspace files.

A workspace is a single YAML document::

    settings:
      request_timeout: 10
    collections:
      - id: users
        base_url: https://api.example.com
        variables: {userId: "42"}
        endpoints:
          - id: get-user
            method: GET
            path: /users/{{userId}}
    environments:
      - id: dev
        variables: {token: abc}
    active_environment: dev
    overrides:
      - collection_id: users
        endpoint_id: get-user
        headers: [{key: X-Trace, value: "{{$uuid}}"}]
    runners:
      - id: smoke
        requests:
          - {collection_id: users, endpoint_id: get-user}
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from courier.config import (
    Collection,
    EndpointOverrides,
    Environment,
    RunnerDefinition,
    Settings,
)
from courier.errors import WorkspaceError
from courier.storage.memory import MemoryStore
from courier.utils import logger


class OverridesEntry(EndpointOverrides):
    collection_id: str
    endpoint_id: str


class WorkspaceFile(BaseModel):
    settings: Settings = Field(default_factory=Settings)
    collections: List[Collection] = Field(default_factory=list)
    environments: List[Environment] = Field(default_factory=list)
    active_environment: Optional[str] = None
    overrides: List[OverridesEntry] = Field(default_factory=list)
    runners: List[RunnerDefinition] = Field(default_factory=list)


def load_workspace(path: Union[str, Path]) -> Tuple[MemoryStore, Settings]:
    """Load a workspace file into a :class:`MemoryStore`.

    Raises:
        WorkspaceError: The file is missing, is not valid YAML, or does not
            match the workspace layout.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise WorkspaceError(f"Cannot read workspace {path}: {e}") from e
    except yaml.YAMLError as e:
        raise WorkspaceError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace {path} must be a mapping")

    try:
        workspace = WorkspaceFile(**data)
    except ValidationError as e:
        raise WorkspaceError(f"Invalid workspace {path}: {e}") from e

    environment_ids = {env.id for env in workspace.environments}
    if workspace.active_environment and workspace.active_environment not in environment_ids:
        raise WorkspaceError(f"Active environment not found: {workspace.active_environment}")

    store = MemoryStore(
        collections=workspace.collections,
        environments=workspace.environments,
        active_environment=workspace.active_environment,
        runners=workspace.runners,
    )
    for entry in workspace.overrides:
        overrides = EndpointOverrides(**entry.model_dump(exclude={"collection_id", "endpoint_id"}))
        store.overrides.set_overrides(entry.collection_id, entry.endpoint_id, overrides)

    logger.debug(
        f"Loaded workspace {path.name}: {len(workspace.collections)} collections, "
        f"{len(workspace.environments)} environments, {len(workspace.runners)} runners"
    )
    return store, workspace.settings
