import os
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from socialhub.models.app_config import AppConfigRecord
from socialhub.utils.logger import logger


@dataclass
class AppConfig:
    client_id: str
    client_secret: str
    redirect_url: str
    source: str


def _env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


# app name -> (client id, client secret, redirect url) env lookups
ENV_APP_CONFIGS: Dict[str, Tuple[Callable[[], Optional[str]], ...]] = {
    "app/instagram": (
        lambda: _env("INSTAGRAM_APP_ID", "META_APP_ID"),
        lambda: _env("INSTAGRAM_APP_SECRET", "META_APP_SECRET"),
        lambda: _env("INSTAGRAM_REDIRECT_URI"),
    ),
    "app/facebook": (
        lambda: _env("FACEBOOK_APP_ID", "META_APP_ID"),
        lambda: _env("FACEBOOK_APP_SECRET", "META_APP_SECRET"),
        lambda: _env("FACEBOOK_REDIRECT_URI", "INSTAGRAM_REDIRECT_URI"),
    ),
    "app/linkedin": (
        lambda: _env("LINKEDIN_CLIENT_ID"),
        lambda: _env("LINKEDIN_CLIENT_SECRET"),
        lambda: _env("LINKEDIN_REDIRECT_URI"),
    ),
    "app/youtube": (
        lambda: _env("GOOGLE_CLIENT_ID"),
        lambda: _env("GOOGLE_CLIENT_SECRET"),
        lambda: _env("GOOGLE_REDIRECT_URI"),
    ),
}


def env_app_config(app_name: str) -> Optional[AppConfig]:
    lookups = ENV_APP_CONFIGS.get(app_name)
    if not lookups:
        return None
    client_id, client_secret, redirect_url = (lookup() for lookup in lookups)
    if not (client_id and client_secret and redirect_url):
        return None
    return AppConfig(client_id, client_secret, redirect_url, source="environment")


async def resolve_app_config(app_name: str, reseller_id: Optional[str] = None) -> Optional[AppConfig]:
    """
    Resolve the OAuth app to use for `app_name` ("app/instagram", ...).

    A reseller-scoped row wins over the environment defaults. Returns None
    when neither source yields a complete client id/secret/redirect triple.
    """
    if reseller_id:
        record = await AppConfigRecord.find_one({"resellerId": reseller_id, "appName": app_name})
        if record and record.app_client_id and record.app_client_secret and record.redirect_url:
            logger.info(f"Using reseller app config for {app_name} (reseller {reseller_id})")
            return AppConfig(
                client_id=record.app_client_id,
                client_secret=record.app_client_secret,
                redirect_url=record.redirect_url,
                source="database",
            )

    config = env_app_config(app_name)
    if not config:
        logger.warning(f"No OAuth app configuration found for {app_name}")
    return config
