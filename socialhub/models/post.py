from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, get_args

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel

from socialhub.models.credential import Platform
from socialhub.services.analytics_validator import clean_analytics_for_platform

PostType = Literal["post", "video", "reel", "story", "upload", "short", "live", "scheduled"]
AnalyticsStatus = Literal["pending", "synced", "failed"]

POST_TYPES = get_args(PostType)


class Post(Document):
    user_id: str = Field(alias="userId")
    platform: Platform
    post_id: str = Field(alias="postId")

    # YouTube
    video_id: Optional[str] = Field(None, alias="videoId")
    channel_id: Optional[str] = Field(None, alias="channelId")
    title: Optional[str] = None
    description: Optional[str] = None

    content: Optional[str] = None
    caption: Optional[str] = None
    thumbnail_url: Optional[str] = Field(None, alias="thumbnailUrl")
    video_url: Optional[str] = Field(None, alias="videoUrl")
    media_url: Optional[str] = Field(None, alias="mediaUrl")
    post_type: PostType = Field("post", alias="postType")
    page_id: Optional[str] = Field(None, alias="pageId")
    account_id: Optional[str] = Field(None, alias="accountId")
    published_at: datetime = Field(default_factory=datetime.utcnow, alias="publishedAt")

    analytics: Dict[str, Any] = Field(default={})
    analytics_status: AnalyticsStatus = Field("pending", alias="analyticsStatus")
    hashtags: List[str] = Field(default=[])
    created_by: Optional[str] = Field(None, alias="createdBy")

    class Settings:
        name = "posts"
        indexes = [
            IndexModel([("userId", ASCENDING), ("postId", ASCENDING)], unique=True),
            IndexModel([("userId", ASCENDING), ("platform", ASCENDING), ("publishedAt", DESCENDING)]),
        ]

    @before_event(Insert, Replace, Save)
    def clean_analytics(self):
        if self.analytics:
            self.analytics = clean_analytics_for_platform(self.platform, self.analytics, self.post_type)


def default_post_type(platform: str) -> str:
    return "upload" if platform == "YOUTUBE" else "post"


def stored_post_type(platform: str, post_type: str) -> str:
    """YouTube videos are stored as uploads."""
    if platform == "YOUTUBE" and post_type == "video":
        return "upload"
    return post_type
