"""Turns a collection endpoint into a concrete, resolved request."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from courier.auth import Authenticator, DigestCredentials
from courier.config import (
    BODY_METHODS,
    Collection,
    Endpoint,
    EndpointOverrides,
    ProxyConfig,
    Settings,
)
from courier.scripting import RequestContext
from courier.variables import VariableProcessor

BASE_URL_PLACEHOLDER = re.compile(r"\{\{\s*baseUrl\s*\}\}")
SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def encode_component(value: str) -> str:
    """Percent-encode like ``encodeURIComponent``."""
    return quote(value, safe="-_.!~*'()")


def append_query(url: str, params: Mapping[str, str]) -> str:
    query = "&".join(
        f"{encode_component(key)}={encode_component(value)}" for key, value in params.items() if key and value
    )
    if not query:
        return url
    return url + ("&" if "?" in url else "?") + query


@dataclass
class PreparedRequest:
    """A fully resolved request ready for dispatch."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    query_params: Dict[str, str] = field(default_factory=dict)
    path_params: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    proxy: Optional[ProxyConfig] = None
    digest: Optional[DigestCredentials] = None

    def to_script_context(self) -> RequestContext:
        return RequestContext(
            url=self.url,
            method=self.method,
            headers=dict(self.headers),
            body=self.body,
            query_params=dict(self.query_params),
            path_params=dict(self.path_params),
        )

    def apply(self, context: RequestContext) -> None:
        """Take over the parts a pre-request script may rewrite."""
        self.url = context.url
        self.method = context.method
        self.headers = dict(context.headers)
        self.body = context.body


class RequestBuilder:
    """Resolves URL, headers, body and auth for one endpoint.

    Precedence, lowest first: collection default headers, endpoint headers,
    persisted overrides. Persisted path/query parameters replace the
    endpoint's declared examples wholesale when any are present.
    """

    def __init__(
        self,
        processor: Optional[VariableProcessor] = None,
        authenticator: Optional[Authenticator] = None,
    ):
        self.processor = processor or VariableProcessor()
        self.authenticator = authenticator or Authenticator(self.processor)

    def build(
        self,
        collection: Collection,
        endpoint: Endpoint,
        variables: Mapping[str, Any],
        overrides: Optional[EndpointOverrides] = None,
        settings: Optional[Settings] = None,
    ) -> PreparedRequest:
        settings = settings or Settings()
        overrides = overrides or EndpointOverrides()

        effective: Dict[str, Any] = dict(variables)
        effective["baseUrl"] = variables.get("baseUrl") or collection.base_url or ""

        path_params = self._path_params(endpoint, overrides, effective)
        effective.update(path_params)

        url = endpoint.path
        if not BASE_URL_PLACEHOLDER.search(url):
            url = "{{baseUrl}}" + url
        url = self.processor.process_template(url, effective)

        query_params = self._query_params(endpoint, overrides, effective)
        url = append_query(url, query_params)

        if url and not SCHEME_PATTERN.match(url):
            url = f"https://{url}"

        headers = self._headers(collection, endpoint, overrides, effective)
        method = endpoint.method.upper()
        body = self._body(method, endpoint, overrides, effective)

        auth = self.authenticator.authenticate(overrides.auth or endpoint.security, effective)
        headers.update(auth.headers)
        url = append_query(url, auth.query_params)

        return PreparedRequest(
            method=method,
            url=url,
            headers=headers,
            body=body,
            query_params=query_params,
            path_params=path_params,
            timeout=settings.effective_timeout(),
            proxy=settings.proxy,
            digest=auth.digest,
        )

    def _path_params(
        self, endpoint: Endpoint, overrides: EndpointOverrides, effective: Mapping[str, Any]
    ) -> Dict[str, str]:
        if overrides.path_params:
            return {
                p.key: self.processor.process_template(p.value, effective)
                for p in overrides.path_params
                if p.key and p.value
            }
        return {
            key: self.processor.process_template(spec.example, effective)
            for key, spec in endpoint.parameters.path.items()
            if spec.example and not effective.get(key)
        }

    def _query_params(
        self, endpoint: Endpoint, overrides: EndpointOverrides, effective: Mapping[str, Any]
    ) -> Dict[str, str]:
        if overrides.query_params:
            return {
                p.key: self.processor.process_template(p.value or "", effective)
                for p in overrides.query_params
                if p.key
            }
        return {
            key: self.processor.process_template(spec.example, effective)
            for key, spec in endpoint.parameters.query.items()
            if spec.example
        }

    def _headers(
        self,
        collection: Collection,
        endpoint: Endpoint,
        overrides: EndpointOverrides,
        effective: Mapping[str, Any],
    ) -> Dict[str, str]:
        merged: Dict[str, Any] = dict(collection.default_headers)
        merged.update(endpoint.headers)
        for header in overrides.headers:
            if header.key:
                merged[header.key] = header.value

        return {
            self.processor.process_template(key, effective): self.processor.process_template(str(value), effective)
            for key, value in merged.items()
        }

    def _body(
        self, method: str, endpoint: Endpoint, overrides: EndpointOverrides, effective: Mapping[str, Any]
    ) -> Any:
        if method not in BODY_METHODS:
            return None

        content: Any = overrides.body
        if not content and endpoint.request_body is not None:
            example = endpoint.request_body.example
            if example is not None and example != "null":
                content = example
        if not content:
            return None

        if not isinstance(content, str):
            return self.processor.process_object(content, effective)

        processed = self.processor.process_template(content, effective)
        try:
            return json.loads(processed)
        except ValueError:
            return processed
