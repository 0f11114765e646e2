import os
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pymongo.errors import PyMongoError

from socialhub.platforms.base import PlatformAdapter
from socialhub.platforms.registry import PlatformRegistry
from socialhub.routes.deps import ensure_db, get_registry
from socialhub.services.account_service import connection_status
from socialhub.services.oauth_service import build_authorization_url, handle_callback
from socialhub.utils.auth import CurrentUser, get_current_user
from socialhub.utils.errors import ConfigError, InvalidRequestError, OAuthExchangeError, StateError
from socialhub.utils.logger import logger

router = APIRouter(tags=["OAuth"], dependencies=[Depends(ensure_db)])


def frontend_url() -> str:
    return os.getenv("FRONTEND_URL") or os.getenv("CORS_ORIGINS", "").split(",")[0] or "http://localhost:3000"


def integrations_redirect(adapter: PlatformAdapter, **params: str) -> RedirectResponse:
    return RedirectResponse(url=f"{frontend_url()}/integrations/{adapter.slug}?{urlencode(params)}")


def adapter_for(platform: str, registry: PlatformRegistry) -> PlatformAdapter:
    adapter = registry.get(platform.upper())
    if not adapter:
        raise HTTPException(status_code=404, detail=f"Platform {platform} not supported")
    return adapter


@router.get("/{platform}/auth")
async def start_oauth(
    platform: str,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    """
    Build the provider's OAuth URL for the current tenant.
    """
    adapter = adapter_for(platform, registry)
    try:
        url = await build_authorization_url(adapter, user.id, user.reseller_id)
    except (ConfigError, StateError) as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"authUrl": url}


@router.get("/{platform}/callback")
async def oauth_callback(
    platform: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    registry: PlatformRegistry = Depends(get_registry),
):
    """
    Provider redirect target. Always answers with a redirect to the
    integrations page, carrying either `connected=1` or an `error` code.
    """
    adapter = adapter_for(platform, registry)
    if error:
        logger.warning(f"{adapter.name} OAuth denied: {error}")
        return integrations_redirect(adapter, error="oauth_failed")
    if not state:
        return integrations_redirect(adapter, error="missing_user_id")

    try:
        await handle_callback(adapter, code, state)
    except StateError as e:
        logger.warning(f"{adapter.name} OAuth callback with bad state: {e}")
        return integrations_redirect(adapter, error="invalid_state")
    except InvalidRequestError:
        return integrations_redirect(adapter, error="missing_code")
    except ConfigError as e:
        logger.error(str(e))
        return integrations_redirect(adapter, error="config_error")
    except (OAuthExchangeError, PyMongoError) as e:
        logger.error(f"{adapter.name} OAuth callback failed: {e}")
        return integrations_redirect(adapter, error="oauth_failed")

    return integrations_redirect(adapter, connected="1")


@router.get("/{platform}/status")
async def oauth_status(
    platform: str,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    adapter = adapter_for(platform, registry)
    return await connection_status(registry, user.id, adapter.name)
