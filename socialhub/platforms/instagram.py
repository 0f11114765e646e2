from typing import Any, Dict, List, Optional

import httpx

from socialhub.models.credential import AppCredential, InstagramCredentials
from socialhub.models.post import Post
from socialhub.platforms.base import PlatformAdapter, PublishRequest, PublishResult
from socialhub.services.config_service import AppConfig
from socialhub.services.token_service import decrypt_token, encrypt_token
from socialhub.utils.errors import ContainerError, InvalidRequestError, provider_error_message
from socialhub.utils.logger import logger

INSTAGRAM_API_VERSION = "v24.0"
GRAPH_API_BASE = f"https://graph.instagram.com/{INSTAGRAM_API_VERSION}"
TOKEN_ENDPOINT = "https://api.instagram.com/oauth/access_token"
LONG_LIVED_TOKEN_ENDPOINT = "https://graph.instagram.com/access_token"

SHORT_LIVED_EXPIRES_IN = 3600
LONG_LIVED_EXPIRES_IN = 5184000

CONTAINER_POLL_INTERVAL = 10
CONTAINER_MAX_ATTEMPTS = 30

PROFILE_FIELDS = "id,user_id,username,name,account_type,profile_picture_url,followers_count,follows_count,media_count"


class InstagramAdapter(PlatformAdapter):
    name = "INSTAGRAM"
    app_name = "app/instagram"
    authorize_endpoint = "https://www.instagram.com/oauth/authorize"
    scopes = [
        "instagram_business_basic",
        "instagram_business_manage_messages",
        "instagram_business_manage_comments",
        "instagram_business_content_publish",
        "instagram_business_manage_insights",
    ]

    poll_interval = CONTAINER_POLL_INTERVAL
    max_poll_attempts = CONTAINER_MAX_ATTEMPTS

    def authorization_params(self, state: str, config: AppConfig) -> Dict[str, str]:
        params = super().authorization_params(state, config)
        params["force_reauth"] = "true"
        return params

    async def exchange_code(self, code: str, config: AppConfig) -> InstagramCredentials:
        async with httpx.AsyncClient() as client:
            res = await client.post(
                TOKEN_ENDPOINT,
                data={
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "grant_type": "authorization_code",
                    "redirect_uri": config.redirect_url,
                    "code": code,
                },
            )
            res.raise_for_status()
            body = res.json()
            # Newer API versions wrap the token in {"data": [{...}]}
            if isinstance(body.get("data"), list) and body["data"]:
                body = body["data"][0]
            token = body["access_token"]
            expires_in = SHORT_LIVED_EXPIRES_IN

            try:
                long_res = await client.get(
                    LONG_LIVED_TOKEN_ENDPOINT,
                    params={
                        "grant_type": "ig_exchange_token",
                        "client_secret": config.client_secret,
                        "access_token": token,
                    },
                )
                long_res.raise_for_status()
                long_body = long_res.json()
                token = long_body["access_token"]
                expires_in = long_body.get("expires_in") or LONG_LIVED_EXPIRES_IN
            except (httpx.HTTPError, KeyError) as e:
                logger.warning(f"Instagram long-lived token exchange failed, keeping short-lived token: {e}")

            profile_res = await client.get(
                f"{GRAPH_API_BASE}/me", params={"fields": PROFILE_FIELDS, "access_token": token}
            )
            profile_res.raise_for_status()
            profile = profile_res.json()

        return InstagramCredentials(
            access_token_enc=encrypt_token(token),
            token_expires_in=expires_in,
            instagram_user_id=str(profile.get("user_id") or body.get("user_id") or ""),
            instagram_account_id=str(profile["id"]),
            instagram_username=profile.get("username"),
            instagram_name=profile.get("name"),
            instagram_profile_picture=profile.get("profile_picture_url"),
            instagram_account_type=profile.get("account_type"),
            instagram_followers_count=profile.get("followers_count") or 0,
            instagram_media_count=profile.get("media_count") or 0,
        )

    async def wait_for_container(self, client: httpx.AsyncClient, container_id: str, token: str) -> int:
        """
        Poll a media container until it is FINISHED.

        Returns the number of status checks it took. ERROR, or still not
        FINISHED after `max_poll_attempts` checks, raises ContainerError.
        Transport failures and 5xx responses on a status check use up an
        attempt; 4xx responses fail immediately.
        """
        status = None
        for attempt in range(1, self.max_poll_attempts + 1):
            await self.sleep(self.poll_interval)
            try:
                res = await client.get(
                    f"{GRAPH_API_BASE}/{container_id}",
                    params={"fields": "status_code,status", "access_token": token},
                )
                res.raise_for_status()
            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    raise
                logger.warning(f"Container {container_id} status check {attempt} failed: {provider_error_message(e)}")
                continue
            except httpx.TransportError as e:
                logger.warning(f"Container {container_id} status check {attempt} failed: {e}")
                continue

            body = res.json()
            status_code = body.get("status_code")
            status = body.get("status") or status_code
            if status_code == "FINISHED":
                return attempt
            if status_code == "ERROR":
                raise ContainerError(f"Media container failed. Status: {status}", platform=self.name)

        raise ContainerError(
            f"Media container failed. Not finished after {self.max_poll_attempts} attempts (last status: {status})",
            platform=self.name,
        )

    async def publish(self, credential: AppCredential, request: PublishRequest) -> PublishResult:
        creds: InstagramCredentials = credential.credentials
        token = decrypt_token(creds.access_token_enc)
        ig_user_id = creds.instagram_account_id

        if request.post_type == "reel" and request.has_video:
            media_url = await self.resolve_video_url(request)
            container_params = {"media_type": "REELS", "video_url": media_url}
        elif request.has_image:
            media_url = await self.resolve_image_url(request)
            container_params = {"image_url": media_url}
        else:
            raise InvalidRequestError("Instagram requires an image for posts or a video for reels")

        async with httpx.AsyncClient() as client:
            create_res = await client.post(
                f"{GRAPH_API_BASE}/{ig_user_id}/media",
                params={**container_params, "caption": request.content, "access_token": token},
            )
            create_res.raise_for_status()
            container_id = create_res.json()["id"]

            await self.wait_for_container(client, container_id, token)

            publish_res = await client.post(
                f"{GRAPH_API_BASE}/{ig_user_id}/media_publish",
                params={"creation_id": container_id, "access_token": token},
            )
            publish_res.raise_for_status()
            data = publish_res.json()

        logger.info(f"Published to Instagram {ig_user_id}: {data.get('id')}")
        return PublishResult(
            post_id=data["id"],
            account_id=ig_user_id,
            media_url=media_url,
            caption=request.content,
        )

    async def fetch_analytics(self, credential: AppCredential, post: Post) -> Dict[str, Any]:
        token = decrypt_token(credential.credentials.access_token_enc)
        async with httpx.AsyncClient() as client:
            res = await client.get(
                f"{GRAPH_API_BASE}/{post.post_id}",
                params={"fields": "media_type,media_product_type,like_count,comments_count", "access_token": token},
            )
            res.raise_for_status()
            media = res.json()
            analytics: Dict[str, Any] = {
                "likes": media.get("like_count") or 0,
                "comments": media.get("comments_count") or 0,
            }

            is_reel = media.get("media_product_type") == "REELS"
            metrics = ["reach", "saved", "views", "shares"] if is_reel else ["reach", "saved", "impressions"]
            try:
                insights_res = await client.get(
                    f"{GRAPH_API_BASE}/{post.post_id}/insights",
                    params={"metric": ",".join(metrics), "access_token": token},
                )
                insights_res.raise_for_status()
                for item in insights_res.json().get("data", []):
                    values = item.get("values") or [{}]
                    analytics[item["name"]] = values[0].get("value", 0)
            except httpx.HTTPError as e:
                # Insights are unavailable for some account types and old media.
                logger.warning(f"Instagram insights unavailable for {post.post_id}: {provider_error_message(e)}")
        return analytics

    async def get_comments(self, credential: AppCredential, post_id: str) -> List[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient() as client:
                res = await client.get(
                    f"{GRAPH_API_BASE}/{post_id}/comments",
                    params={
                        "access_token": decrypt_token(credential.credentials.access_token_enc),
                        "fields": "id,text,timestamp,username,like_count,replies{id,text,timestamp,username,like_count}",
                        "limit": 50,
                    },
                )
                res.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Instagram comments fetch failed for {post_id}: {provider_error_message(e)}")
            return []

        def _comment(item: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "id": item["id"],
                "message": item.get("text"),
                "createdAt": item.get("timestamp"),
                "author": {"id": item.get("username"), "name": item.get("username"), "avatar": None},
                "likeCount": item.get("like_count") or 0,
            }

        comments = []
        for item in res.json().get("data", []):
            replies = (item.get("replies") or {}).get("data", [])
            comment = _comment(item)
            comment.update({
                "replyCount": len(replies),
                "hasReplies": bool(replies),
                "replies": [_comment(reply) for reply in replies],
            })
            comments.append(comment)
        return comments

    async def post_comment(
        self, credential: AppCredential, post_id: str, message: str, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        if parent_id:
            endpoint = f"{GRAPH_API_BASE}/{parent_id}/replies"
        else:
            endpoint = f"{GRAPH_API_BASE}/{post_id}/comments"
        async with httpx.AsyncClient() as client:
            res = await client.post(
                endpoint,
                params={"message": message, "access_token": decrypt_token(credential.credentials.access_token_enc)},
            )
            res.raise_for_status()
        return {"id": res.json().get("id"), "message": message}

    def profile_summary(self, credentials: InstagramCredentials) -> Dict[str, Any]:
        return {
            "id": credentials.instagram_account_id,
            "username": credentials.instagram_username,
            "name": credentials.instagram_name,
            "picture": credentials.instagram_profile_picture,
            "accountType": credentials.instagram_account_type,
            "followers": credentials.instagram_followers_count,
            "mediaCount": credentials.instagram_media_count,
        }

    def follower_count(self, credentials: InstagramCredentials) -> int:
        return credentials.instagram_followers_count
