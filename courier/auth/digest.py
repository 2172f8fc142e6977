"""HTTP Digest authentication (RFC 2617).

Stateless codec for ``WWW-Authenticate: Digest ...`` challenges and the
matching ``Authorization`` value, plus the two-phase handshake used by the
runner: send once unauthenticated, answer a single 401 Digest challenge, send
once more.
"""

import hashlib
import re
import secrets
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Mapping, Optional, TypeVar
from urllib.parse import urlsplit

from courier.errors import TransportError, UnsupportedDigestAlgorithm
from courier.utils import logger

T = TypeVar("T")

CHALLENGE_PARAM_PATTERN = re.compile(r"""(\w+)=(?:"([^"]*)"|'([^']*)'|([^\s,"']+))""")

SUPPORTED_ALGORITHMS = ("MD5", "MD5-SESS")
QOP_MODES = ("auth", "auth-int")


@dataclass
class DigestChallenge:
    """Parameters of a Digest challenge."""

    realm: str = ""
    nonce: str = ""
    opaque: Optional[str] = None
    qop: Optional[str] = None
    algorithm: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class DigestCredentials:
    username: str = ""
    password: str = ""


def parse_digest_challenge(header: Optional[str]) -> Optional[DigestChallenge]:
    """Parse a ``WWW-Authenticate`` value.

    Returns ``None`` unless the header contains the literal ``Digest``.
    Every ``key="value"`` / ``key=value`` pair is collected; nothing is
    validated beyond that.
    """
    if not header or "Digest" not in header:
        return None

    params: Dict[str, str] = {}
    for match in CHALLENGE_PARAM_PATTERN.finditer(header):
        key = match.group(1)
        value = next(g for g in match.groups()[1:] if g is not None)
        params[key] = value

    return DigestChallenge(
        realm=params.get("realm", ""),
        nonce=params.get("nonce", ""),
        opaque=params.get("opaque"),
        qop=params.get("qop"),
        algorithm=params.get("algorithm"),
        params=params,
    )


def md5(data: str) -> str:
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def generate_client_nonce() -> str:
    """32 hex characters from 16 random bytes."""
    return secrets.token_hex(16)


def select_qop(offered: Optional[str]) -> Optional[str]:
    """Pick ``auth`` (or ``auth-int``) from a possibly comma separated offer."""
    if not offered:
        return None
    modes = [mode.strip() for mode in offered.split(",") if mode.strip()]
    for mode in QOP_MODES:
        if mode in modes:
            return mode
    return modes[0] if modes else None


def build_authorization_header(
    username: str,
    password: str,
    method: str,
    uri: str,
    challenge: DigestChallenge,
    nc: int = 1,
    cnonce: Optional[str] = None,
) -> str:
    """Build the ``Authorization`` value answering ``challenge``.

    Args:
        username: Account name
        password: Account password
        method: HTTP method of the retried request
        uri: Request URI (path and query) as sent on the request line
        challenge: Parsed challenge
        nc: Nonce count, rendered as 8 hex digits
        cnonce: Client nonce, generated when omitted

    Raises:
        UnsupportedDigestAlgorithm: For anything but MD5 / MD5-sess
    """
    if cnonce is None:
        cnonce = generate_client_nonce()

    realm = challenge.realm or ""
    nonce = challenge.nonce or ""
    qop = select_qop(challenge.qop)
    algorithm = (challenge.algorithm or "MD5").upper()
    opaque = challenge.opaque or ""

    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedDigestAlgorithm(algorithm)

    ha1 = md5(f"{username}:{realm}:{password}")
    if algorithm == "MD5-SESS":
        ha1 = md5(f"{ha1}:{nonce}:{cnonce}")

    ha2 = md5(f"{method}:{uri}")
    nc_hex = f"{nc:08x}"

    if qop in QOP_MODES:
        response = md5(f"{ha1}:{nonce}:{nc_hex}:{cnonce}:{qop}:{ha2}")
    else:
        response = md5(f"{ha1}:{nonce}:{ha2}")

    parts = [
        f'username="{username}"',
        f'realm="{realm}"',
        f'nonce="{nonce}"',
        f'uri="{uri}"',
        f'response="{response}"',
    ]
    if algorithm:
        parts.append(f"algorithm={algorithm}")
    if opaque:
        parts.append(f'opaque="{opaque}"')
    if qop:
        parts.append(f'qop={qop}, nc={nc_hex}, cnonce="{cnonce}"')

    return "Digest " + ", ".join(parts)


def extract_uri_from_url(url: str) -> str:
    """Path plus query string of ``url``; ``/`` when it cannot be parsed."""
    try:
        parts = urlsplit(url)
    except ValueError:
        parts = None
    if parts is None or not parts.scheme or not parts.netloc:
        match = re.match(r"https?://[^/]+(/.*)", url)
        return match.group(1) if match else "/"
    uri = parts.path or "/"
    if parts.query:
        uri += f"?{parts.query}"
    return uri


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


async def handle_digest_auth(
    send: Callable[[Optional[str]], Awaitable[T]],
    credentials: DigestCredentials,
    method: str,
    url: str,
) -> T:
    """Run the two-phase Digest handshake.

    ``send(authorization)`` performs one dispatch, with the given
    ``Authorization`` header value when not ``None``. The first call is
    unauthenticated. Only a 401 carrying a parseable Digest challenge earns
    exactly one more call, whose outcome is final. Every other failure is
    re-raised unchanged.
    """
    try:
        return await send(None)
    except TransportError as error:
        if error.status != 401:
            raise

        www_authenticate = _header(error.headers, "www-authenticate")
        challenge = parse_digest_challenge(www_authenticate)
        if challenge is None:
            logger.debug("401 without a Digest challenge, not retrying")
            raise

        try:
            authorization = build_authorization_header(
                username=credentials.username,
                password=credentials.password,
                method=method.upper(),
                uri=extract_uri_from_url(url),
                challenge=challenge,
            )
        except UnsupportedDigestAlgorithm as exc:
            logger.warning(f"Cannot answer Digest challenge: {exc}")
            raise error
        logger.debug(f"Answering Digest challenge for realm {challenge.realm!r}")
        return await send(authorization)
