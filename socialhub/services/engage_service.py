from typing import Any, Dict, List, Optional

from socialhub.models.post import Post
from socialhub.platforms.registry import PlatformRegistry, get_adapter
from socialhub.services.credential_service import require_credential
from socialhub.utils.errors import InvalidRequestError
from socialhub.utils.logger import logger


def engage_post(post: Post) -> Dict[str, Any]:
    analytics = post.analytics or {}
    return {
        "id": str(post.id),
        "postId": post.post_id,
        "platform": post.platform,
        "content": post.content or post.caption or post.description or "",
        "title": post.title or "",
        "mediaUrl": post.media_url or post.thumbnail_url or post.video_url or "",
        "postType": post.post_type,
        "publishedAt": post.published_at,
        "analytics": {
            "likes": analytics.get("likes") or 0,
            "comments": analytics.get("comments") or 0,
            "shares": analytics.get("shares") or 0,
            "views": analytics.get("views") or analytics.get("plays") or 0,
        },
    }


async def list_posts(user_id: str, platform: Optional[str] = None, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
    query: Dict[str, Any] = {"userId": user_id}
    if platform and platform.lower() != "all":
        query["platform"] = platform.upper()

    posts = await Post.find(query).sort("-publishedAt").skip(offset).limit(limit).to_list()
    total = await Post.find(query).count()
    return {
        "data": [engage_post(p) for p in posts],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(posts) < total,
        },
    }


async def get_comments(registry: PlatformRegistry, user_id: str, platform: str, post_id: str) -> List[Dict[str, Any]]:
    if not platform or not post_id:
        raise InvalidRequestError("postId and platform are required")
    adapter = get_adapter(registry, platform)
    credential = await require_credential(user_id, adapter.name)
    return await adapter.get_comments(credential, post_id)


async def post_comment(
    registry: PlatformRegistry,
    user_id: str,
    platform: str,
    post_id: str,
    message: str,
    parent_id: Optional[str] = None,
) -> Dict[str, Any]:
    if not post_id or not platform or not message:
        raise InvalidRequestError("postId, platform, and message are required")
    adapter = get_adapter(registry, platform)
    credential = await require_credential(user_id, adapter.name)
    result = await adapter.post_comment(credential, post_id, message, parent_id)
    logger.info(f"Posted {'reply' if parent_id else 'comment'} on {adapter.name} {post_id} for user {user_id}")
    return result
