from fastapi import Request

from socialhub.platforms.registry import PlatformRegistry
from socialhub.services.storage_service import MediaStorage


async def ensure_db():
    from main import ensure_beanie_initialized
    await ensure_beanie_initialized()


def get_registry(request: Request) -> PlatformRegistry:
    return request.app.state.registry


def get_storage(request: Request) -> MediaStorage:
    return request.app.state.storage
