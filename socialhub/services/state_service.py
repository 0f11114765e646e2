"""
Signed, expiring OAuth `state` parameter.

The state bridges the browser round-trip to the provider: it carries the
tenant and reseller so the callback can attach the credential to the right
account. It is an HS256 JWT with `iat` and `exp` claims.
"""
import os
import time
from typing import Optional

import jwt
from pydantic import BaseModel, Field

from socialhub.utils.errors import StateError

DEFAULT_STATE_TTL = 600
ALGORITHM = "HS256"


class OAuthState(BaseModel):
    tenant_id: str = Field(alias="tenantId")
    reseller_id: Optional[str] = Field(None, alias="resellerId")
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")


def _secret() -> str:
    secret = os.getenv("OAUTH_STATE_SECRET") or os.getenv("JWT_SECRET")
    if not secret:
        raise StateError("OAUTH_STATE_SECRET is not configured")
    return secret


def encode_state(
    tenant_id: str,
    reseller_id: Optional[str] = None,
    ttl: Optional[int] = None,
    now: Optional[float] = None,
) -> str:
    if ttl is None:
        ttl = int(os.getenv("OAUTH_STATE_TTL", DEFAULT_STATE_TTL))
    issued_at = int(now if now is not None else time.time())
    payload = {
        "tenantId": tenant_id,
        "resellerId": reseller_id,
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_state(state: Optional[str]) -> OAuthState:
    if not state:
        raise StateError("Missing state")
    try:
        payload = jwt.decode(state, _secret(), algorithms=[ALGORITHM], options={"require": ["exp", "iat"]})
    except jwt.ExpiredSignatureError as e:
        raise StateError("State expired") from e
    except jwt.InvalidTokenError as e:
        raise StateError(f"Invalid state: {e}") from e

    try:
        return OAuthState(**payload)
    except ValueError as e:
        raise StateError("Malformed state payload") from e
