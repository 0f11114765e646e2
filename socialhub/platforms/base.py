import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from socialhub.models.credential import AppCredential, PlatformCredentials
from socialhub.models.post import Post
from socialhub.services.config_service import AppConfig
from socialhub.services.storage_service import MediaStorage
from socialhub.utils.errors import InvalidRequestError


@dataclass
class MediaFile:
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None


@dataclass
class PublishRequest:
    user_id: str
    post_type: str
    content: str
    page_id: Optional[str] = None
    image: Optional[MediaFile] = None
    video: Optional[MediaFile] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image or self.image_url)

    @property
    def has_video(self) -> bool:
        return bool(self.video or self.video_url)


@dataclass
class PublishResult:
    post_id: str
    account_id: Optional[str] = None
    page_id: Optional[str] = None
    media_url: Optional[str] = None
    caption: Optional[str] = None
    video_id: Optional[str] = None
    channel_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    # type stored on the Post when the provider's differs from the request's
    post_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "postId": self.post_id,
            "accountId": self.account_id,
            "pageId": self.page_id,
            "mediaUrl": self.media_url,
            "videoId": self.video_id,
            "channelId": self.channel_id,
            "title": self.title,
            "thumbnailUrl": self.thumbnail_url,
            "videoUrl": self.video_url,
        }
        return {k: v for k, v in data.items() if v is not None}


Sleep = Callable[[float], Awaitable[Any]]

# Media uploads routinely exceed the httpx default of 5s.
UPLOAD_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


class PlatformAdapter:
    """
    Capability interface implemented once per provider.

    Subclasses set `name`, `app_name` and `scopes`, and implement the OAuth
    handshake (authorize/exchange_code), publishing, analytics and comments.
    """

    name: str = ""
    app_name: str = ""
    scopes: List[str] = []
    authorize_endpoint: str = ""

    def __init__(self, storage: Optional[MediaStorage] = None, sleep: Sleep = asyncio.sleep):
        self.storage = storage
        self.sleep = sleep

    @property
    def slug(self) -> str:
        return self.name.lower()

    def authorization_params(self, state: str, config: AppConfig) -> Dict[str, str]:
        return {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_url,
            "response_type": "code",
            "scope": ",".join(self.scopes),
            "state": state,
        }

    def authorize(self, state: str, config: AppConfig) -> str:
        return f"{self.authorize_endpoint}?{urlencode(self.authorization_params(state, config))}"

    async def exchange_code(self, code: str, config: AppConfig) -> PlatformCredentials:
        raise NotImplementedError

    async def publish(self, credential: AppCredential, request: PublishRequest) -> PublishResult:
        raise NotImplementedError

    async def fetch_analytics(self, credential: AppCredential, post: Post) -> Dict[str, Any]:
        raise NotImplementedError

    async def get_comments(self, credential: AppCredential, post_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def post_comment(
        self, credential: AppCredential, post_id: str, message: str, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def profile_summary(self, credentials: PlatformCredentials) -> Dict[str, Any]:
        raise NotImplementedError

    def follower_count(self, credentials: PlatformCredentials) -> int:
        return 0

    async def store_media(self, media: MediaFile, folder: str) -> str:
        if not self.storage:
            raise InvalidRequestError("Media storage is not configured")
        return await asyncio.to_thread(
            self.storage.upload, media.data, folder, media.filename, media.content_type
        )

    async def resolve_image_url(self, request: PublishRequest) -> Optional[str]:
        if request.image:
            return await self.store_media(request.image, f"{self.slug}/images")
        return request.image_url

    async def resolve_video_url(self, request: PublishRequest) -> Optional[str]:
        if request.video:
            return await self.store_media(request.video, f"{self.slug}/videos")
        return request.video_url


async def download_media(url: str) -> MediaFile:
    """Fetch remote media so it can be pushed to providers that need raw bytes."""
    async with httpx.AsyncClient(timeout=UPLOAD_TIMEOUT, follow_redirects=True) as client:
        res = await client.get(url)
        res.raise_for_status()
        return MediaFile(
            data=res.content,
            filename=url.split("?")[0].rsplit("/", 1)[-1] or None,
            content_type=res.headers.get("content-type"),
        )
