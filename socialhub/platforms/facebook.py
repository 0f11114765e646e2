from typing import Any, Dict, List, Optional

import httpx

from socialhub.models.credential import AppCredential, FacebookCredentials, ManagedPage
from socialhub.models.post import Post
from socialhub.platforms.base import UPLOAD_TIMEOUT, PlatformAdapter, PublishRequest, PublishResult
from socialhub.services.config_service import AppConfig
from socialhub.services.token_service import decrypt_token, encrypt_token
from socialhub.utils.errors import InvalidRequestError, ProviderError, provider_error_message
from socialhub.utils.logger import logger

GRAPH_API_VERSION = "v20.0"
GRAPH_API_BASE = f"https://graph.facebook.com/{GRAPH_API_VERSION}"
GRAPH_VIDEO_BASE = f"https://graph-video.facebook.com/{GRAPH_API_VERSION}"

POST_INSIGHTS = {
    "post_impressions": "impressions",
    "post_reach": "reach",
    "post_clicks": "clicks",
    "post_engaged_users": "engagedUsers",
}
VIDEO_INSIGHTS = {
    "post_video_views": "views",
    "post_video_complete_views_organic": "videoCompleteViews",
    "post_video_avg_time_watched": "averageWatchTime",
    "post_video_view_time": "totalVideoViewTime",
}


def _summary_count(data: Dict[str, Any], edge: str) -> int:
    return ((data.get(edge) or {}).get("summary") or {}).get("total_count", 0)


class FacebookAdapter(PlatformAdapter):
    name = "FACEBOOK"
    app_name = "app/facebook"
    authorize_endpoint = f"https://www.facebook.com/{GRAPH_API_VERSION}/dialog/oauth"
    scopes = [
        "pages_manage_posts",
        "pages_read_engagement",
        "pages_show_list",
        "pages_read_user_content",
        "publish_video",
        "business_management",
        "read_insights",
        "pages_manage_metadata",
    ]

    async def exchange_code(self, code: str, config: AppConfig) -> FacebookCredentials:
        async with httpx.AsyncClient() as client:
            res = await client.get(
                f"{GRAPH_API_BASE}/oauth/access_token",
                params={
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "redirect_uri": config.redirect_url,
                    "code": code,
                },
            )
            res.raise_for_status()
            token = res.json()["access_token"]

            # Short-lived user tokens expire in ~1h; pages need the long-lived one.
            try:
                long_res = await client.get(
                    f"{GRAPH_API_BASE}/oauth/access_token",
                    params={
                        "grant_type": "fb_exchange_token",
                        "client_id": config.client_id,
                        "client_secret": config.client_secret,
                        "fb_exchange_token": token,
                    },
                )
                long_res.raise_for_status()
                token = long_res.json().get("access_token") or token
            except httpx.HTTPError as e:
                logger.warning(f"Facebook long-lived token exchange failed, keeping short-lived token: {e}")

            me_res = await client.get(
                f"{GRAPH_API_BASE}/me", params={"fields": "id,name,email", "access_token": token}
            )
            me_res.raise_for_status()
            me = me_res.json()

            pages_res = await client.get(f"{GRAPH_API_BASE}/me/accounts", params={"access_token": token})
            pages_res.raise_for_status()
            pages = [
                ManagedPage(
                    pageId=page["id"],
                    pageName=page.get("name"),
                    pageAccessTokenEnc=encrypt_token(page["access_token"]),
                )
                for page in pages_res.json().get("data", [])
                if page.get("access_token")
            ]

        return FacebookCredentials(
            user_access_token_enc=encrypt_token(token),
            user_id=me["id"],
            user_name=me.get("name"),
            user_email=me.get("email"),
            pages=pages,
        )

    def _page(self, credentials: FacebookCredentials, page_id: Optional[str] = None) -> ManagedPage:
        if not credentials.pages:
            raise InvalidRequestError("No Facebook page connected")
        if page_id:
            for page in credentials.pages:
                if page.page_id == page_id:
                    return page
            raise InvalidRequestError(f"Facebook page {page_id} is not connected")
        return credentials.pages[0]

    async def publish(self, credential: AppCredential, request: PublishRequest) -> PublishResult:
        page = self._page(credential.credentials, request.page_id)
        token = decrypt_token(page.page_access_token_enc)
        media_url = None

        async with httpx.AsyncClient(timeout=UPLOAD_TIMEOUT) as client:
            if request.has_video:
                if request.video:
                    if self.storage:
                        media_url = await self.store_media(request.video, f"{self.slug}/videos")
                    res = await client.post(
                        f"{GRAPH_VIDEO_BASE}/{page.page_id}/videos",
                        data={"description": request.content, "access_token": token},
                        files={
                            "source": (
                                request.video.filename or "video.mp4",
                                request.video.data,
                                request.video.content_type or "video/mp4",
                            )
                        },
                    )
                else:
                    media_url = request.video_url
                    res = await client.post(
                        f"{GRAPH_VIDEO_BASE}/{page.page_id}/videos",
                        params={"file_url": media_url, "description": request.content, "access_token": token},
                    )
            elif request.has_image:
                media_url = await self.resolve_image_url(request)
                res = await client.post(
                    f"{GRAPH_API_BASE}/{page.page_id}/photos",
                    params={"url": media_url, "message": request.content, "access_token": token},
                )
            else:
                res = await client.post(
                    f"{GRAPH_API_BASE}/{page.page_id}/feed",
                    params={"message": request.content, "access_token": token},
                )
            res.raise_for_status()
            data = res.json()

        post_id = data.get("post_id") or data.get("id")
        logger.info(f"Published to Facebook page {page.page_id}: {post_id}")
        return PublishResult(
            post_id=post_id,
            account_id=page.page_id,
            page_id=page.page_id,
            media_url=media_url,
            post_type="video" if request.has_video else request.post_type,
        )

    async def fetch_analytics(self, credential: AppCredential, post: Post) -> Dict[str, Any]:
        page = self._page(credential.credentials, post.page_id)
        insights = dict(POST_INSIGHTS)
        if post.post_type == "video":
            insights.update(VIDEO_INSIGHTS)
        fields = (
            "likes.summary(true),comments.summary(true),shares,reactions.summary(true),"
            f"insights.metric({','.join(insights)})"
        )
        async with httpx.AsyncClient() as client:
            res = await client.get(
                f"{GRAPH_API_BASE}/{post.post_id}",
                params={"fields": fields, "access_token": decrypt_token(page.page_access_token_enc)},
            )
            res.raise_for_status()
            data = res.json()

        analytics = {
            "likes": _summary_count(data, "likes"),
            "comments": _summary_count(data, "comments"),
            "reactions": _summary_count(data, "reactions"),
            "shares": (data.get("shares") or {}).get("count", 0),
        }
        for item in (data.get("insights") or {}).get("data", []):
            key = insights.get(item.get("name"))
            values = item.get("values") or [{}]
            if key:
                analytics[key] = values[0].get("value", 0)
        return analytics

    async def get_comments(self, credential: AppCredential, post_id: str) -> List[Dict[str, Any]]:
        page = self._page(credential.credentials)
        try:
            async with httpx.AsyncClient() as client:
                res = await client.get(
                    f"{GRAPH_API_BASE}/{post_id}/comments",
                    params={
                        "access_token": decrypt_token(page.page_access_token_enc),
                        "fields": "id,message,created_time,from{id,name,picture},comment_count,like_count,attachment",
                        "order": "reverse_chronological",
                        "limit": 50,
                    },
                )
                res.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Facebook comments fetch failed for {post_id}: {provider_error_message(e)}")
            return []

        comments = []
        for comment in res.json().get("data", []):
            author = comment.get("from") or {}
            reply_count = comment.get("comment_count") or 0
            comments.append({
                "id": comment["id"],
                "message": comment.get("message"),
                "createdAt": comment.get("created_time"),
                "author": {
                    "id": author.get("id"),
                    "name": author.get("name") or "Facebook User",
                    "avatar": ((author.get("picture") or {}).get("data") or {}).get("url"),
                },
                "likeCount": comment.get("like_count") or 0,
                "replyCount": reply_count,
                "hasReplies": reply_count > 0,
                "attachment": comment.get("attachment"),
            })
        return comments

    async def post_comment(
        self, credential: AppCredential, post_id: str, message: str, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        page = self._page(credential.credentials)
        target_id = parent_id or post_id
        try:
            async with httpx.AsyncClient() as client:
                res = await client.post(
                    f"{GRAPH_API_BASE}/{target_id}/comments",
                    params={"message": message, "access_token": decrypt_token(page.page_access_token_enc)},
                )
                res.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Facebook API Error: {provider_error_message(e)}",
                status_code=e.response.status_code,
                platform=self.name,
            ) from e
        return {"id": res.json().get("id"), "message": message}

    def profile_summary(self, credentials: FacebookCredentials) -> Dict[str, Any]:
        return {
            "id": credentials.user_id,
            "name": credentials.user_name,
            "email": credentials.user_email,
            "pages": [{"pageId": p.page_id, "pageName": p.page_name} for p in credentials.pages],
        }
