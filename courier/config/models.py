"""Collection, environment and runner definition models."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from courier.config.common import ApiKeyLocation, AuthType


class AuthConfig(BaseModel):
    """Authentication configuration.

    Every string field may contain ``{{ placeholders }}``; they are resolved
    against the request's variable set before the credentials are used.
    """

    type: AuthType = AuthType.NONE
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    key_name: Optional[str] = None
    key_value: Optional[str] = None
    location: ApiKeyLocation = ApiKeyLocation.HEADER
    header_prefix: Optional[str] = None


class KeyValue(BaseModel):
    """A persisted header / query / path parameter row."""

    key: str = ""
    value: str = ""


class ParameterSpec(BaseModel):
    """Declared parameter with an optional example value."""

    example: Optional[str] = None
    required: bool = False
    description: Optional[str] = None


class EndpointParameters(BaseModel):
    path: Dict[str, ParameterSpec] = Field(default_factory=dict)
    query: Dict[str, ParameterSpec] = Field(default_factory=dict)


class RequestBodySpec(BaseModel):
    example: Optional[Union[str, Dict[str, Any], List[Any]]] = None
    content_type: str = "application/json"


class Endpoint(BaseModel):
    """A single request definition inside a collection."""

    id: str
    name: str = ""
    method: str = "GET"
    path: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    parameters: EndpointParameters = Field(default_factory=EndpointParameters)
    request_body: Optional[RequestBodySpec] = None
    security: Optional[AuthConfig] = None


class Folder(BaseModel):
    id: str
    name: str = ""
    endpoints: List[Endpoint] = Field(default_factory=list)


class Collection(BaseModel):
    """Named group of endpoints with shared defaults."""

    id: str
    name: str = ""
    base_url: str = ""
    default_headers: Dict[str, str] = Field(default_factory=dict)
    variables: Dict[str, str] = Field(default_factory=dict)
    endpoints: List[Endpoint] = Field(default_factory=list)
    folders: List[Folder] = Field(default_factory=list)

    def find_endpoint(self, endpoint_id: str) -> Optional[Endpoint]:
        """Find an endpoint at the top level or inside any folder."""
        for endpoint in self.endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        for folder in self.folders:
            for endpoint in folder.endpoints:
                if endpoint.id == endpoint_id:
                    return endpoint
        return None


class EndpointOverrides(BaseModel):
    """Values persisted by the user for one endpoint.

    When present they replace the endpoint's declared defaults.
    """

    headers: List[KeyValue] = Field(default_factory=list)
    query_params: List[KeyValue] = Field(default_factory=list)
    path_params: List[KeyValue] = Field(default_factory=list)
    body: Optional[str] = None
    auth: Optional[AuthConfig] = None


class Environment(BaseModel):
    """Named, switchable variable set."""

    id: str
    name: str = ""
    variables: Dict[str, str] = Field(default_factory=dict)


class RunOptions(BaseModel):
    stop_on_error: bool = False
    delay_ms: int = Field(default=0, ge=0)


class RunnerRequest(BaseModel):
    """One step of a runner: a reference to a collection endpoint plus scripts."""

    collection_id: str
    endpoint_id: str
    name: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    pre_request_script: str = ""
    post_response_script: str = ""


class RunnerDefinition(BaseModel):
    """Ordered list of requests executed by the runner."""

    id: Optional[str] = None
    name: str = "Untitled Runner"
    collection_id: Optional[str] = None
    requests: List[RunnerRequest] = Field(default_factory=list)
    options: RunOptions = Field(default_factory=RunOptions)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    last_run: Optional[int] = None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RunnerDefinition":
        """Load a runner definition from a YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)
        if not data:
            raise ValueError(f"Empty runner definition: {path}")
        return cls(**data)
