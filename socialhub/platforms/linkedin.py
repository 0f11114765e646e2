from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import jwt

from socialhub.models.credential import AppCredential, LinkedInCredentials, ManagedPage
from socialhub.models.post import Post
from socialhub.platforms.base import UPLOAD_TIMEOUT, PlatformAdapter, PublishRequest, PublishResult, download_media
from socialhub.services.config_service import AppConfig
from socialhub.services.token_service import decrypt_token, encrypt_token
from socialhub.utils.errors import provider_error_message
from socialhub.utils.logger import logger

API_BASE = "https://api.linkedin.com/v2"
TOKEN_ENDPOINT = "https://www.linkedin.com/oauth/v2/accessToken"
RESTLI_HEADERS = {"X-Restli-Protocol-Version": "2.0.0", "Content-Type": "application/json"}
UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"


def post_urn(post_id: str) -> str:
    return post_id if post_id.startswith("urn:") else f"urn:li:share:{post_id}"


class LinkedInAdapter(PlatformAdapter):
    name = "LINKEDIN"
    app_name = "app/linkedin"
    authorize_endpoint = "https://www.linkedin.com/oauth/v2/authorization"
    scopes = ["openid", "profile", "email", "w_member_social"]

    def authorization_params(self, state: str, config: AppConfig) -> Dict[str, str]:
        params = super().authorization_params(state, config)
        params["scope"] = " ".join(self.scopes)
        return params

    async def exchange_code(self, code: str, config: AppConfig) -> LinkedInCredentials:
        async with httpx.AsyncClient() as client:
            res = await client.post(
                TOKEN_ENDPOINT,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": config.redirect_url,
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            res.raise_for_status()
            tokens = res.json()
            token = tokens["access_token"]
            id_token = tokens.get("id_token")

            try:
                profile_res = await client.get(
                    f"{API_BASE}/userinfo", headers={"Authorization": f"Bearer {token}"}
                )
                profile_res.raise_for_status()
                profile = profile_res.json()
            except httpx.HTTPError as e:
                if not id_token:
                    raise
                logger.warning(f"LinkedIn userinfo failed, reading profile from id_token: {e}")
                profile = jwt.decode(id_token, options={"verify_signature": False})

        sub = profile["sub"]
        encrypted = encrypt_token(token)
        return LinkedInCredentials(
            access_token_enc=encrypted,
            id_token=id_token,
            user_id=sub,
            user_name=profile.get("name"),
            user_email=profile.get("email"),
            profile_picture=profile.get("picture"),
            pages=[ManagedPage(pageId=sub, pageName=profile.get("name"), pageAccessTokenEnc=encrypted)],
        )

    async def register_image_upload(self, client: httpx.AsyncClient, token: str, author: str) -> Dict[str, str]:
        res = await client.post(
            f"{API_BASE}/assets?action=registerUpload",
            headers={"Authorization": f"Bearer {token}", **RESTLI_HEADERS},
            json={
                "registerUploadRequest": {
                    "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                    "owner": author,
                    "serviceRelationships": [
                        {"relationshipType": "OWNER", "identifier": "urn:li:userGeneratedContent"}
                    ],
                }
            },
        )
        res.raise_for_status()
        value = res.json()["value"]
        return {
            "asset": value["asset"],
            "upload_url": value["uploadMechanism"][UPLOAD_MECHANISM]["uploadUrl"],
        }

    async def publish(self, credential: AppCredential, request: PublishRequest) -> PublishResult:
        creds: LinkedInCredentials = credential.credentials
        token = decrypt_token(creds.access_token_enc)
        author = f"urn:li:person:{creds.user_id}"
        media_url = None
        share_content: Dict[str, Any] = {
            "shareCommentary": {"text": request.content},
            "shareMediaCategory": "NONE",
        }

        async with httpx.AsyncClient(timeout=UPLOAD_TIMEOUT) as client:
            if request.has_image:
                image = request.image or await download_media(request.image_url)
                media_url = await self.resolve_image_url(request)
                upload = await self.register_image_upload(client, token, author)
                put_res = await client.put(
                    upload["upload_url"],
                    content=image.data,
                    headers={"Authorization": f"Bearer {token}"},
                )
                put_res.raise_for_status()
                share_content["shareMediaCategory"] = "IMAGE"
                share_content["media"] = [{"status": "READY", "media": upload["asset"]}]

            res = await client.post(
                f"{API_BASE}/ugcPosts",
                headers={"Authorization": f"Bearer {token}", **RESTLI_HEADERS},
                json={
                    "author": author,
                    "lifecycleState": "PUBLISHED",
                    "specificContent": {"com.linkedin.ugc.ShareContent": share_content},
                    "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
                },
            )
            res.raise_for_status()
            data = res.json()

        post_id = data.get("id") or res.headers.get("x-restli-id")
        logger.info(f"Published to LinkedIn {author}: {post_id}")
        return PublishResult(post_id=post_id, account_id=creds.user_id, media_url=media_url)

    async def fetch_analytics(self, credential: AppCredential, post: Post) -> Dict[str, Any]:
        token = decrypt_token(credential.credentials.access_token_enc)
        async with httpx.AsyncClient() as client:
            res = await client.get(
                f"{API_BASE}/socialActions/{quote(post_urn(post.post_id), safe='')}",
                headers={"Authorization": f"Bearer {token}", **RESTLI_HEADERS},
            )
            res.raise_for_status()
            data = res.json()
        return {
            "likes": (data.get("likesSummary") or {}).get("totalLikes", 0),
            "comments": (data.get("commentsSummary") or {}).get("totalFirstLevelComments", 0),
        }

    async def get_comments(self, credential: AppCredential, post_id: str) -> List[Dict[str, Any]]:
        token = decrypt_token(credential.credentials.access_token_enc)
        try:
            async with httpx.AsyncClient() as client:
                res = await client.get(
                    f"{API_BASE}/socialActions/{quote(post_urn(post_id), safe='')}/comments",
                    headers={"Authorization": f"Bearer {token}", **RESTLI_HEADERS},
                    params={"count": 50},
                )
                res.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"LinkedIn comments fetch failed for {post_id}: {provider_error_message(e)}")
            return []

        comments = []
        for comment in res.json().get("elements", []):
            created = (comment.get("created") or {}).get("time")
            replies = (comment.get("commentsSummary") or {}).get("totalFirstLevelComments", 0)
            comments.append({
                "id": comment.get("$URN") or comment.get("id"),
                "message": (comment.get("message") or {}).get("text"),
                "createdAt": created,
                "author": {"id": comment.get("actor"), "name": "LinkedIn User", "avatar": None},
                "likeCount": (comment.get("likesSummary") or {}).get("totalLikes", 0),
                "replyCount": replies,
                "hasReplies": replies > 0,
            })
        return comments

    async def post_comment(
        self, credential: AppCredential, post_id: str, message: str, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        creds: LinkedInCredentials = credential.credentials
        body: Dict[str, Any] = {"actor": f"urn:li:person:{creds.user_id}", "message": {"text": message}}
        if parent_id:
            body["parentComment"] = parent_id
        async with httpx.AsyncClient() as client:
            res = await client.post(
                f"{API_BASE}/socialActions/{quote(post_urn(post_id), safe='')}/comments",
                headers={"Authorization": f"Bearer {decrypt_token(creds.access_token_enc)}", **RESTLI_HEADERS},
                json=body,
            )
            res.raise_for_status()
            data = res.json()
        return {"id": data.get("$URN") or data.get("id"), "message": message}

    def profile_summary(self, credentials: LinkedInCredentials) -> Dict[str, Any]:
        return {
            "id": credentials.user_id,
            "name": credentials.user_name,
            "email": credentials.user_email,
            "picture": credentials.profile_picture,
        }
