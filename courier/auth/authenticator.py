"""Request authentication contributions."""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from courier.auth.digest import DigestCredentials
from courier.config import ApiKeyLocation, AuthConfig, AuthType
from courier.variables import VariableProcessor


@dataclass
class AuthContext:
    """What an auth configuration adds to one request.

    Static schemes contribute headers or query parameters. Digest contributes
    credentials only; the transport layer performs the handshake.
    """

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    digest: Optional[DigestCredentials] = None


class Authenticator:
    """Turns an :class:`AuthConfig` into an :class:`AuthContext`.

    Supports bearer, basic, api-key, oauth2 and digest. Templated credential
    fields are resolved against the request's variables first.
    """

    def __init__(self, processor: Optional[VariableProcessor] = None):
        self.processor = processor or VariableProcessor()

    def authenticate(
        self,
        config: Optional[AuthConfig],
        variables: Optional[Mapping[str, Any]] = None,
    ) -> AuthContext:
        """Build the auth contribution for one request."""
        variables = variables or {}
        if config is None or config.type == AuthType.NONE:
            return AuthContext()

        if config.type == AuthType.BEARER:
            return self._auth_bearer(config, variables)
        if config.type == AuthType.BASIC:
            return self._auth_basic(config, variables)
        if config.type == AuthType.API_KEY:
            return self._auth_api_key(config, variables)
        if config.type == AuthType.OAUTH2:
            return self._auth_oauth2(config, variables)
        if config.type == AuthType.DIGEST:
            return self._auth_digest(config, variables)

        return AuthContext()

    def _resolve(self, value: Optional[str], variables: Mapping[str, Any]) -> str:
        if not value:
            return ""
        return self.processor.process_template(value, variables)

    def _auth_bearer(self, config: AuthConfig, variables: Mapping[str, Any]) -> AuthContext:
        """Bearer token, falling back to a ``bearerToken`` variable."""
        token = config.token or variables.get("bearerToken") or ""
        if not token:
            return AuthContext()
        return AuthContext(headers={"Authorization": f"Bearer {self._resolve(str(token), variables)}"})

    def _auth_basic(self, config: AuthConfig, variables: Mapping[str, Any]) -> AuthContext:
        """HTTP Basic Authentication."""
        if not config.username and not config.password:
            return AuthContext()
        username = self._resolve(config.username, variables)
        password = self._resolve(config.password, variables)
        credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
        return AuthContext(headers={"Authorization": f"Basic {credentials}"})

    def _auth_api_key(self, config: AuthConfig, variables: Mapping[str, Any]) -> AuthContext:
        if not config.key_name or not config.key_value:
            return AuthContext()
        name = self._resolve(config.key_name, variables)
        value = self._resolve(config.key_value, variables)
        if config.location == ApiKeyLocation.QUERY:
            return AuthContext(query_params={name: value})
        return AuthContext(headers={name: value})

    def _auth_oauth2(self, config: AuthConfig, variables: Mapping[str, Any]) -> AuthContext:
        if not config.token:
            return AuthContext()
        prefix = config.header_prefix or "Bearer"
        return AuthContext(headers={"Authorization": f"{prefix} {self._resolve(config.token, variables)}"})

    def _auth_digest(self, config: AuthConfig, variables: Mapping[str, Any]) -> AuthContext:
        if not config.username and not config.password:
            return AuthContext()
        return AuthContext(
            digest=DigestCredentials(
                username=self._resolve(config.username, variables),
                password=self._resolve(config.password, variables),
            )
        )
