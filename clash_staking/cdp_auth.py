"""
Clash Staking — CDP API Authentication
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

CDP REST calls are authorized with a short-lived JWT (2 minutes) signed with
the API key secret and bound to one request method, host and path.

Supported key secrets:
- EC private key in PEM format (ES256)
- base64 encoded Ed25519 key, 64 bytes seed+public or 32 bytes seed (EdDSA)
"""

import base64
import binascii
import logging
import secrets
import time
from typing import Callable, Optional, Tuple

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519

from .errors import AuthenticationError

logger = logging.getLogger(__name__)

CDP_JWT_ISSUER = "cdp"
CDP_JWT_EXPIRES_IN = 120  # 2 minutes as per CDP requirements
TOKEN_REFRESH_MARGIN = 30


def load_signing_key(key_secret: str) -> Tuple[object, str]:
    """
    Load the private key from a CDP key secret

    Returns:
        (private key, JWT algorithm)
    """
    secret = key_secret.strip()

    if "-----BEGIN" in secret:
        # Keys stored in .env usually carry escaped newlines
        pem = secret.replace("\\n", "\n").encode()
        try:
            key = serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise AuthenticationError(f"Invalid PEM key secret: {e}") from e
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise AuthenticationError("PEM key secret must be an EC private key")
        return key, "ES256"

    try:
        raw = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AuthenticationError(f"Key secret is neither PEM nor base64: {e}") from e

    if len(raw) == 64:
        seed = raw[:32]
    elif len(raw) == 32:
        seed = raw
    else:
        raise AuthenticationError(f"Ed25519 key secret must be 32 or 64 bytes, got {len(raw)}")
    return ed25519.Ed25519PrivateKey.from_private_bytes(seed), "EdDSA"


def generate_cdp_jwt(
    key_id: str,
    key_secret: str,
    request_method: str,
    request_host: str,
    request_path: str,
    expires_in: int = CDP_JWT_EXPIRES_IN,
    now: Optional[int] = None,
) -> str:
    """
    Generate a JWT for one CDP REST endpoint

    Args:
        key_id: CDP API key id (JWT subject and key id)
        key_secret: CDP API key secret
        request_method: HTTP method, e.g. "POST"
        request_host: e.g. "api.cdp.coinbase.com"
        request_path: e.g. "/platform/v2/data/query/run"
        expires_in: Token lifetime in seconds
        now: Issue time (epoch seconds), defaults to the current time

    Raises:
        AuthenticationError: key secret unusable or signing failed
    """
    if not key_id or not key_secret:
        raise AuthenticationError("CDP_API_KEY_NAME and CDP_API_KEY_SECRET must be set")

    key, algorithm = load_signing_key(key_secret)
    issued_at = int(time.time()) if now is None else int(now)

    payload = {
        "sub": key_id,
        "iss": CDP_JWT_ISSUER,
        "nbf": issued_at,
        "exp": issued_at + expires_in,
        "uris": [f"{request_method.upper()} {request_host}{request_path}"],
    }
    headers = {
        "kid": key_id,
        "nonce": secrets.token_hex(16),
    }

    try:
        return jwt.encode(payload, key, algorithm=algorithm, headers=headers)
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise AuthenticationError(f"JWT generation failed: {e}") from e


class CdpTokenProvider:
    """Hands out a bearer token for one endpoint, re-signing before it expires"""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        request_method: str,
        request_host: str,
        request_path: str,
        expires_in: int = CDP_JWT_EXPIRES_IN,
        refresh_margin: int = TOKEN_REFRESH_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.request_method = request_method
        self.request_host = request_host
        self.request_path = request_path
        self.expires_in = expires_in
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0

    def get_token(self) -> str:
        now = int(self._clock())
        if self._token is None or now >= self._expires_at - self.refresh_margin:
            self._token = generate_cdp_jwt(
                self.key_id,
                self.key_secret,
                self.request_method,
                self.request_host,
                self.request_path,
                expires_in=self.expires_in,
                now=now,
            )
            self._expires_at = now + self.expires_in
            logger.debug(f"🔑 Generated CDP token for {self.request_method} {self.request_path}, valid until {self._expires_at}")
        return self._token
