"""
Verification of extension identity assertions (HS256 JWTs signed by the platform
with the shared extension secret). Only generic errors leave this module.
"""
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from leaderboard_server.config import EXTENSION_SECRET, EXTENSION_SECRET_BASE64
from leaderboard_server.errors import AuthError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass(frozen=True)
class IdentityClaims:
    channel_id: str | None = None
    # Per-channel pseudonymous viewer id
    opaque_user_id: str | None = None
    # Stable account id; only present once the viewer shared their identity
    user_id: str | None = None
    role: str | None = None


def _signing_key(secret: str | bytes, is_base64: bool) -> bytes:
    if isinstance(secret, bytes):
        return secret
    if is_base64:
        try:
            return base64.b64decode(secret, validate=True)
        except (binascii.Error, ValueError):
            logger.error("EXTENSION_SECRET is not valid base64")
            return b""
    return secret.encode("utf-8")


def _claim(payload: dict, name: str) -> str | None:
    value = payload.get(name)
    if value is None or value == "":
        return None
    return str(value)


def parse_authorization_header(raw_header: str | None) -> str:
    """Extract the token from 'Bearer <token>'. Raises AuthError('missing token')."""
    if not raw_header:
        raise AuthError("missing token")
    scheme, _, token = raw_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("missing token")
    return token.strip()


def verify_identity_token(
    token: str,
    secret: str | bytes | None = None,
    *,
    secret_is_base64: bool | None = None,
) -> IdentityClaims:
    """
    Verify signature (HS256 only) and expiry, then extract identity claims.
    Any failure raises AuthError('invalid token'); the reason is logged at debug.
    """
    if secret is None:
        secret = EXTENSION_SECRET
    if secret_is_base64 is None:
        secret_is_base64 = EXTENSION_SECRET_BASE64
    key = _signing_key(secret, secret_is_base64)
    if not key:
        logger.debug("Identity assertion rejected: no signing secret configured")
        raise AuthError("invalid token")
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[ALGORITHM],
            options={"require": ["exp"], "verify_exp": True, "verify_aud": False},
        )
    except jwt.PyJWTError as e:
        logger.debug("Identity assertion rejected: %s", type(e).__name__)
        raise AuthError("invalid token") from None
    return IdentityClaims(
        channel_id=_claim(payload, "channel_id"),
        opaque_user_id=_claim(payload, "opaque_user_id"),
        user_id=_claim(payload, "user_id"),
        role=_claim(payload, "role"),
    )


def verify(raw_header: str | None) -> IdentityClaims:
    """Authorization header value -> verified identity claims."""
    return verify_identity_token(parse_authorization_header(raw_header))


security = HTTPBearer(auto_error=False)


def get_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> IdentityClaims:
    """Dependency: valid Bearer identity assertion -> claims."""
    if credentials is None or not credentials.credentials:
        raise AuthError("missing token")
    return verify_identity_token(credentials.credentials)
