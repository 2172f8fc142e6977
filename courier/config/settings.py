"""Runtime settings."""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field


class ProxyConfig(BaseModel):
    """Outbound proxy."""

    url: str
    username: Optional[str] = None
    password: Optional[str] = None

    def to_url(self) -> str:
        """Proxy URL with credentials embedded when configured."""
        if not self.username:
            return self.url
        scheme, sep, rest = self.url.partition("://")
        if not sep:
            scheme, rest = "http", self.url
        return f"{scheme}://{self.username}:{self.password or ''}@{rest}"


class Settings(BaseModel):
    """Runner settings."""

    request_timeout: float = Field(default=30.0, ge=0)  # seconds, 0 disables
    script_timeout_ms: int = Field(default=10_000, gt=0)
    proxy: Optional[ProxyConfig] = None
    retries: int = Field(default=0, ge=0)  # extra attempts on network errors
    verify_ssl: bool = True
    follow_redirects: bool = True

    def effective_timeout(self) -> Optional[float]:
        return self.request_timeout or None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Settings":
        """Load settings from YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)
