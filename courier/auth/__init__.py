"""Authentication for outgoing requests."""

from courier.auth.authenticator import AuthContext, Authenticator
from courier.auth.digest import (
    DigestChallenge,
    DigestCredentials,
    build_authorization_header,
    extract_uri_from_url,
    generate_client_nonce,
    handle_digest_auth,
    parse_digest_challenge,
)

__all__ = [
    "AuthContext",
    "Authenticator",
    "DigestChallenge",
    "DigestCredentials",
    "build_authorization_header",
    "extract_uri_from_url",
    "generate_client_nonce",
    "handle_digest_auth",
    "parse_digest_challenge",
]
