from typing import Optional

import httpx


class SocialHubError(Exception):
    """Base class for errors raised by the service layer."""


class ConfigError(SocialHubError):
    """OAuth application is not configured for this tenant/reseller."""


class StateError(SocialHubError):
    """OAuth state is missing, tampered with or expired."""


class NotConnectedError(SocialHubError):
    def __init__(self, platform: str):
        super().__init__(f"{platform.title()} account not connected")
        self.platform = platform


class InvalidRequestError(SocialHubError):
    """Request is missing required fields or media."""


class ProviderError(SocialHubError):
    def __init__(self, message: str, status_code: Optional[int] = None, platform: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.platform = platform


class ContainerError(ProviderError):
    """Instagram media container ended in ERROR or never finished."""


def provider_error_message(exc: Exception) -> str:
    """
    Pull the human readable message out of a provider error body.

    Meta returns {"error": {"message": ...}}, Google {"error": {"message": ...}}
    or {"error": "...", "error_description": ...}, LinkedIn {"message": ...}.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict) and err.get("message"):
                return err["message"]
            if body.get("error_description"):
                return body["error_description"]
            if isinstance(err, str) and err:
                return err
            if body.get("message"):
                return body["message"]
        return f"{exc.response.status_code} error from {exc.request.url.host}"
    return str(exc)


class OAuthExchangeError(ProviderError):
    """Authorization code could not be exchanged for a token."""
