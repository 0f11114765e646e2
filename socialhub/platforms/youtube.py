import time
from typing import Any, Dict, List, Optional

import httpx

from socialhub.models.credential import AppCredential, YouTubeChannel, YouTubeCredentials
from socialhub.models.post import Post
from socialhub.platforms.base import (
    UPLOAD_TIMEOUT,
    MediaFile,
    PlatformAdapter,
    PublishRequest,
    PublishResult,
    download_media,
)
from socialhub.services.config_service import AppConfig, resolve_app_config
from socialhub.services.token_service import decrypt_token, encrypt_optional, encrypt_token
from socialhub.utils.errors import ConfigError, InvalidRequestError, ProviderError, provider_error_message
from socialhub.utils.logger import logger

TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
API_BASE = "https://www.googleapis.com/youtube/v3"
UPLOAD_ENDPOINT = "https://www.googleapis.com/upload/youtube/v3/videos"

# refresh when the token has less than a minute left
REFRESH_MARGIN_MS = 60_000
TITLE_MAX_LENGTH = 100


def now_ms() -> int:
    return int(time.time() * 1000)


def video_title(content: str) -> str:
    first_line = (content or "").strip().split("\n", 1)[0].strip()
    return first_line[:TITLE_MAX_LENGTH] or "Untitled"


def best_thumbnail(thumbnails: Dict[str, Any]) -> Optional[str]:
    for size in ("maxres", "high", "medium", "default"):
        if thumbnails.get(size, {}).get("url"):
            return thumbnails[size]["url"]
    return None


class YouTubeAdapter(PlatformAdapter):
    name = "YOUTUBE"
    app_name = "app/youtube"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    scopes = [
        "https://www.googleapis.com/auth/youtube.force-ssl",
        "https://www.googleapis.com/auth/youtube.upload",
    ]

    def authorization_params(self, state: str, config: AppConfig) -> Dict[str, str]:
        params = super().authorization_params(state, config)
        params.update({"scope": " ".join(self.scopes), "access_type": "offline", "prompt": "consent"})
        return params

    async def exchange_code(self, code: str, config: AppConfig) -> YouTubeCredentials:
        async with httpx.AsyncClient() as client:
            res = await client.post(
                TOKEN_ENDPOINT,
                data={
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": config.redirect_url,
                },
            )
            res.raise_for_status()
            tokens = res.json()
            access_token = tokens["access_token"]
            expires_in = tokens.get("expires_in", 3600)

            channel_res = await client.get(
                f"{API_BASE}/channels",
                params={"part": "snippet,statistics", "mine": "true"},
                headers={"Authorization": f"Bearer {access_token}"},
            )
            channel_res.raise_for_status()
            items = channel_res.json().get("items") or []

        channel = YouTubeChannel()
        if items:
            snippet = items[0].get("snippet", {})
            statistics = items[0].get("statistics", {})
            channel = YouTubeChannel(
                id=items[0].get("id"),
                title=snippet.get("title"),
                description=snippet.get("description"),
                thumbnail=best_thumbnail(snippet.get("thumbnails", {})),
                subscriberCount=int(statistics.get("subscriberCount", 0)),
                videoCount=int(statistics.get("videoCount", 0)),
            )

        return YouTubeCredentials(
            access_token_enc=encrypt_token(access_token),
            refresh_token_enc=encrypt_optional(tokens.get("refresh_token")),
            expires_in=expires_in,
            expiry=now_ms() + expires_in * 1000,
            channel=channel,
        )

    async def get_valid_access_token(self, credential: AppCredential) -> str:
        """Return a usable access token, refreshing and persisting it when close to expiry."""
        creds: YouTubeCredentials = credential.credentials
        if creds.expiry and now_ms() < creds.expiry - REFRESH_MARGIN_MS:
            return decrypt_token(creds.access_token_enc)

        if not creds.refresh_token_enc:
            raise ProviderError(
                "YouTube refresh token not found. Please reconnect your YouTube account.", platform=self.name
            )
        config = await resolve_app_config(self.app_name, credential.reseller_id)
        if not config:
            raise ConfigError("YouTube app configuration not found")

        async with httpx.AsyncClient() as client:
            res = await client.post(
                TOKEN_ENDPOINT,
                data={
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "refresh_token": decrypt_token(creds.refresh_token_enc),
                    "grant_type": "refresh_token",
                },
            )
            res.raise_for_status()
            tokens = res.json()

        access_token = tokens["access_token"]
        creds.access_token_enc = encrypt_token(access_token)
        creds.expires_in = tokens.get("expires_in", 3600)
        creds.expiry = now_ms() + creds.expires_in * 1000
        await credential.save()
        logger.info(f"Refreshed YouTube token for user {credential.user_id}")
        return access_token

    async def publish(self, credential: AppCredential, request: PublishRequest) -> PublishResult:
        if not request.has_video:
            raise InvalidRequestError("YouTube requires a video")
        video: MediaFile = request.video or await download_media(request.video_url)
        token = await self.get_valid_access_token(credential)
        title = video_title(request.content)
        content_type = video.content_type or "video/mp4"

        async with httpx.AsyncClient(timeout=UPLOAD_TIMEOUT) as client:
            session_res = await client.post(
                UPLOAD_ENDPOINT,
                params={"uploadType": "resumable", "part": "snippet,status"},
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json; charset=UTF-8",
                    "X-Upload-Content-Type": content_type,
                    "X-Upload-Content-Length": str(len(video.data)),
                },
                json={
                    "snippet": {"title": title, "description": request.content, "categoryId": "22"},
                    "status": {"privacyStatus": "public", "selfDeclaredMadeForKids": False},
                },
            )
            session_res.raise_for_status()
            upload_url = session_res.headers.get("location")
            if not upload_url:
                raise ProviderError("YouTube did not return a resumable upload URL", platform=self.name)

            upload_res = await client.put(
                upload_url, content=video.data, headers={"Content-Type": content_type}
            )
            upload_res.raise_for_status()
            video_id = upload_res.json()["id"]

            details_res = await client.get(
                f"{API_BASE}/videos",
                params={"part": "snippet,contentDetails,status", "id": video_id},
                headers={"Authorization": f"Bearer {token}"},
            )
            details_res.raise_for_status()
            items = details_res.json().get("items") or [{}]

        snippet = items[0].get("snippet", {})
        video_url = f"https://www.youtube.com/watch?v={video_id}"
        logger.info(f"Uploaded YouTube video {video_id}")
        return PublishResult(
            post_id=video_id,
            video_id=video_id,
            channel_id=snippet.get("channelId") or credential.credentials.channel.id,
            account_id=credential.credentials.channel.id,
            title=snippet.get("title") or title,
            description=snippet.get("description") or request.content,
            thumbnail_url=best_thumbnail(snippet.get("thumbnails", {})),
            video_url=video_url,
            media_url=video_url,
        )

    async def fetch_analytics(self, credential: AppCredential, post: Post) -> Dict[str, Any]:
        token = await self.get_valid_access_token(credential)
        async with httpx.AsyncClient() as client:
            res = await client.get(
                f"{API_BASE}/videos",
                params={"part": "statistics,contentDetails,snippet", "id": post.video_id or post.post_id},
                headers={"Authorization": f"Bearer {token}"},
            )
            res.raise_for_status()
            items = res.json().get("items") or []
        if not items:
            raise ProviderError(f"YouTube video {post.post_id} not found", status_code=404, platform=self.name)

        statistics = items[0].get("statistics", {})
        views = int(statistics.get("viewCount", 0))
        return {
            "views": views,
            "likes": int(statistics.get("likeCount", 0)),
            "comments": int(statistics.get("commentCount", 0)),
            # Data API has no watch time; the analytics API needs extra scopes.
            "watchTime": views * 60,
        }

    async def get_comments(self, credential: AppCredential, post_id: str) -> List[Dict[str, Any]]:
        token = await self.get_valid_access_token(credential)
        try:
            async with httpx.AsyncClient() as client:
                res = await client.get(
                    f"{API_BASE}/commentThreads",
                    params={"part": "snippet,replies", "videoId": post_id, "maxResults": 50, "order": "time"},
                    headers={"Authorization": f"Bearer {token}"},
                )
                res.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"YouTube comments fetch failed for {post_id}: {provider_error_message(e)}")
            return []

        def _comment(comment_id: str, snippet: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "id": comment_id,
                "message": snippet.get("textDisplay"),
                "createdAt": snippet.get("publishedAt"),
                "author": {
                    "id": (snippet.get("authorChannelId") or {}).get("value"),
                    "name": snippet.get("authorDisplayName"),
                    "avatar": snippet.get("authorProfileImageUrl"),
                },
                "likeCount": snippet.get("likeCount") or 0,
            }

        comments = []
        for thread in res.json().get("items", []):
            top = thread["snippet"]["topLevelComment"]
            reply_count = thread["snippet"].get("totalReplyCount") or 0
            comment = _comment(thread["id"], top["snippet"])
            comment.update({
                "commentId": top["id"],
                "replyCount": reply_count,
                "hasReplies": reply_count > 0,
                "replies": [
                    _comment(reply["id"], reply["snippet"])
                    for reply in (thread.get("replies") or {}).get("comments", [])
                ],
            })
            comments.append(comment)
        return comments

    async def post_comment(
        self, credential: AppCredential, post_id: str, message: str, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        token = await self.get_valid_access_token(credential)
        if parent_id:
            url = f"{API_BASE}/comments"
            body = {"snippet": {"parentId": parent_id, "textOriginal": message}}
        else:
            url = f"{API_BASE}/commentThreads"
            body = {"snippet": {"videoId": post_id, "topLevelComment": {"snippet": {"textOriginal": message}}}}
        async with httpx.AsyncClient() as client:
            res = await client.post(
                url, params={"part": "snippet"}, json=body, headers={"Authorization": f"Bearer {token}"}
            )
            res.raise_for_status()
        return {"id": res.json().get("id"), "message": message}

    def profile_summary(self, credentials: YouTubeCredentials) -> Dict[str, Any]:
        channel = credentials.channel
        return {
            "id": channel.id,
            "name": channel.title,
            "picture": channel.thumbnail,
            "subscribers": channel.subscriber_count,
            "videoCount": channel.video_count,
        }

    def follower_count(self, credentials: YouTubeCredentials) -> int:
        return credentials.channel.subscriber_count
