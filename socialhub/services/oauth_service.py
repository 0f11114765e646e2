import logging
from typing import Optional

import httpx

from socialhub.models.credential import AppCredential
from socialhub.platforms.base import PlatformAdapter
from socialhub.services.config_service import resolve_app_config
from socialhub.services.credential_service import upsert_credential
from socialhub.services.state_service import decode_state, encode_state
from socialhub.utils.errors import ConfigError, InvalidRequestError, OAuthExchangeError, provider_error_message
from socialhub.utils.logger import log_event


async def build_authorization_url(adapter: PlatformAdapter, tenant_id: str, reseller_id: Optional[str] = None) -> str:
    config = await resolve_app_config(adapter.app_name, reseller_id)
    if not config:
        raise ConfigError(f"{adapter.name.title()} OAuth app is not configured")
    state = encode_state(tenant_id, reseller_id)
    return adapter.authorize(state, config)


async def handle_callback(adapter: PlatformAdapter, code: Optional[str], state: Optional[str]) -> AppCredential:
    """
    Complete the OAuth round-trip and store the resulting credentials.

    Raises StateError, InvalidRequestError (no code), ConfigError or
    OAuthExchangeError; the route turns each into a redirect error code.
    """
    parsed = decode_state(state)
    if not code:
        raise InvalidRequestError("Authorization code missing")

    config = await resolve_app_config(adapter.app_name, parsed.reseller_id)
    if not config:
        raise ConfigError(f"{adapter.name.title()} OAuth app is not configured")

    try:
        credentials = await adapter.exchange_code(code, config)
    except (httpx.HTTPError, KeyError, ValueError) as e:
        # ValueError covers non-JSON bodies and credential validation
        message = f"missing {e} in response" if isinstance(e, KeyError) else provider_error_message(e)
        log_event(
            logging.ERROR,
            f"{adapter.name} OAuth exchange failed: {message}",
            platform=adapter.name,
            userId=parsed.tenant_id,
        )
        raise OAuthExchangeError(message, platform=adapter.name) from e

    return await upsert_credential(parsed.tenant_id, credentials, reseller_id=parsed.reseller_id)
