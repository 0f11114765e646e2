import os
from typing import Optional

import jwt
from fastapi import Cookie, Header, Security
from fastapi.security.api_key import APIKeyHeader
from pydantic import BaseModel, ConfigDict, Field

from socialhub.utils.errors import SocialHubError

JWT_COOKIE_NAME = "automation"

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)
auth_token_header = APIKeyHeader(name="x-auth-token", auto_error=False)


class NotAuthorizedError(SocialHubError):
    """No session could be resolved from headers or the legacy cookie."""


class CurrentUser(BaseModel):
    id: str
    role: Optional[str] = None
    reseller_id: Optional[str] = Field(None, alias="resellerId")

    model_config = ConfigDict(populate_by_name=True)


def _bearer(value: Optional[str]) -> Optional[str]:
    if value and value.startswith("Bearer "):
        return value[len("Bearer "):]
    return None


def decode_session_cookie(token: str) -> Optional[CurrentUser]:
    """Verify the legacy `automation` JWT and map its payload to a CurrentUser."""
    secret = os.getenv("JWT_SECRET")
    if not secret:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None
    user_id = payload.get("_id") or payload.get("id") or payload.get("userId")
    if not user_id:
        return None
    return CurrentUser(
        id=str(user_id),
        role=payload.get("role"),
        resellerId=payload.get("resellerId"),
    )


async def get_current_user(
    authorization: Optional[str] = Security(authorization_header),
    auth_token: Optional[str] = Security(auth_token_header),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_reseller_id: Optional[str] = Header(None),
    automation: Optional[str] = Cookie(None, alias=JWT_COOKIE_NAME),
) -> CurrentUser:
    """
    FastAPI dependency resolving the tenant for this request.

    The upstream gateway sends a bearer (or x-auth-token) together with
    x-user-id. Older clients carry the `automation` JWT cookie instead.
    """
    token = _bearer(authorization) or auth_token
    if token and x_user_id:
        return CurrentUser(id=x_user_id, role=x_user_role, resellerId=x_reseller_id)

    if automation:
        user = decode_session_cookie(automation)
        if user:
            return user

    raise NotAuthorizedError("Not Authorized, Please login")
