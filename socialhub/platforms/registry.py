from typing import Dict, Optional

from socialhub.platforms.base import PlatformAdapter, Sleep
from socialhub.platforms.facebook import FacebookAdapter
from socialhub.platforms.instagram import InstagramAdapter
from socialhub.platforms.linkedin import LinkedInAdapter
from socialhub.platforms.youtube import YouTubeAdapter
from socialhub.services.storage_service import MediaStorage
from socialhub.utils.errors import InvalidRequestError

ADAPTER_CLASSES = (FacebookAdapter, InstagramAdapter, LinkedInAdapter, YouTubeAdapter)

PlatformRegistry = Dict[str, PlatformAdapter]


def build_registry(storage: Optional[MediaStorage] = None, sleep: Optional[Sleep] = None) -> PlatformRegistry:
    registry: PlatformRegistry = {}
    for adapter_cls in ADAPTER_CLASSES:
        adapter = adapter_cls(storage) if sleep is None else adapter_cls(storage, sleep=sleep)
        registry[adapter.name] = adapter
    return registry


def get_adapter(registry: PlatformRegistry, platform: str) -> PlatformAdapter:
    adapter = registry.get((platform or "").upper())
    if not adapter:
        raise InvalidRequestError(f"Unsupported platform: {platform}")
    return adapter
