from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel

Platform = Literal["FACEBOOK", "INSTAGRAM", "LINKEDIN", "YOUTUBE"]


class ManagedPage(BaseModel):
    """A Facebook page, or the member's own LinkedIn profile acting as a page."""
    page_id: str = Field(alias="pageId")
    page_name: Optional[str] = Field(None, alias="pageName")
    page_access_token_enc: str = Field(alias="pageAccessTokenEnc")


class FacebookCredentials(BaseModel):
    platform: Literal["FACEBOOK"] = "FACEBOOK"
    user_access_token_enc: str
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    pages: List[ManagedPage] = Field(default=[])


class InstagramCredentials(BaseModel):
    platform: Literal["INSTAGRAM"] = "INSTAGRAM"
    access_token_enc: str
    token_expires_in: int = 3600
    instagram_user_id: Optional[str] = None
    instagram_account_id: str
    instagram_username: Optional[str] = None
    instagram_name: Optional[str] = None
    instagram_profile_picture: Optional[str] = None
    instagram_account_type: Optional[str] = None
    instagram_followers_count: int = 0
    instagram_media_count: int = 0


class LinkedInCredentials(BaseModel):
    platform: Literal["LINKEDIN"] = "LINKEDIN"
    access_token_enc: str
    id_token: Optional[str] = None
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    profile_picture: Optional[str] = None
    pages: List[ManagedPage] = Field(default=[])


class YouTubeChannel(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    subscriber_count: int = Field(0, alias="subscriberCount")
    video_count: int = Field(0, alias="videoCount")


class YouTubeCredentials(BaseModel):
    platform: Literal["YOUTUBE"] = "YOUTUBE"
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    expires_in: int = 3600
    # epoch milliseconds
    expiry: int = 0
    channel: YouTubeChannel = Field(default_factory=YouTubeChannel)


PlatformCredentials = Annotated[
    Union[FacebookCredentials, InstagramCredentials, LinkedInCredentials, YouTubeCredentials],
    Field(discriminator="platform"),
]


class AppCredential(Document):
    user_id: str = Field(alias="userId")
    platform: Platform
    credentials: PlatformCredentials
    reseller_id: Optional[str] = Field(None, alias="resellerId")
    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.utcnow, alias="updatedAt")

    class Settings:
        name = "appcredentials"
        indexes = [
            IndexModel([("userId", ASCENDING), ("platform", ASCENDING)], unique=True),
        ]
