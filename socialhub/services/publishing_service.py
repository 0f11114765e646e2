import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from socialhub.models.post import POST_TYPES, Post, default_post_type, stored_post_type
from socialhub.platforms.base import MediaFile, PublishRequest, PublishResult
from socialhub.platforms.registry import PlatformRegistry, get_adapter
from socialhub.services.credential_service import require_credential
from socialhub.services.storage_service import MediaStorage
from socialhub.utils.errors import InvalidRequestError, provider_error_message

logger = logging.getLogger("publishing")

HASHTAG_PATTERN = re.compile(r"#(\w+)")


def extract_hashtags(content: Optional[str]) -> List[str]:
    return HASHTAG_PATTERN.findall(content or "")


async def record_post(user_id: str, platform: str, post_type: str, content: str, result: PublishResult) -> Optional[Post]:
    """Persist a Post for analytics tracking. Failure here never fails the publish."""
    post = Post(
        userId=user_id,
        platform=platform,
        postId=result.post_id,
        videoId=result.video_id,
        channelId=result.channel_id,
        title=result.title,
        description=result.description,
        content=content,
        caption=result.caption,
        thumbnailUrl=result.thumbnail_url,
        videoUrl=result.video_url,
        mediaUrl=result.media_url,
        postType=result.post_type or stored_post_type(platform, post_type),
        pageId=result.page_id,
        accountId=result.account_id,
        analyticsStatus="pending",
        hashtags=extract_hashtags(content),
        createdBy=user_id,
    )
    try:
        await post.insert()
        return post
    except PyMongoError as e:
        logger.error(f"Published {platform} post {result.post_id} but could not save it: {e}")
        return None


async def post_to_single_platform(
    registry: PlatformRegistry,
    user_id: str,
    platform: Optional[str],
    post_type: Optional[str],
    content: Optional[str],
    page_id: Optional[str] = None,
    image: Optional[MediaFile] = None,
    video: Optional[MediaFile] = None,
    image_url: Optional[str] = None,
    video_url: Optional[str] = None,
) -> Dict[str, Any]:
    if not platform:
        raise InvalidRequestError("Platform is required")
    if not post_type:
        raise InvalidRequestError("Post type is required")
    if not content:
        raise InvalidRequestError("Content is required")
    if post_type not in POST_TYPES:
        raise InvalidRequestError(f"Invalid post type: {post_type}")

    adapter = get_adapter(registry, platform)
    credential = await require_credential(user_id, adapter.name)
    request = PublishRequest(
        user_id=user_id,
        post_type=post_type,
        content=content,
        page_id=page_id,
        image=image,
        video=video,
        image_url=image_url,
        video_url=video_url,
    )

    logger.info(f"Publishing {request.post_type} to {adapter.name} (user {user_id})")
    result = await adapter.publish(credential, request)
    post = await record_post(user_id, adapter.name, request.post_type, content, result)

    response = {"platform": adapter.name, **result.to_dict()}
    if post:
        response["id"] = str(post.id)
    return response


async def post_to_all_platforms(
    registry: PlatformRegistry,
    user_id: str,
    platform_configs: List[Dict[str, Any]],
    content: str,
    image_url: Optional[str] = None,
    video_url: Optional[str] = None,
    storage: Optional[MediaStorage] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Publish the same content to each configured platform in turn.

    Every target gets its own entry in `success` or `failed`; one platform
    failing never stops the others.
    """
    results: Dict[str, List[Dict[str, Any]]] = {"success": [], "failed": []}

    if image_url and image_url.startswith("data:"):
        try:
            if not storage:
                raise InvalidRequestError("Media storage is not configured")
            image_url = await asyncio.to_thread(storage.upload_base64, image_url, "posts/images")
        except Exception as e:
            # publish without the image
            logger.error(f"Image upload failed for user {user_id}: {e}")
            image_url = None

    for config in platform_configs:
        platform = (config.get("platform") or "").upper()
        try:
            result = await post_to_single_platform(
                registry,
                user_id,
                platform,
                config.get("postType") or default_post_type(platform),
                content,
                page_id=config.get("pageId"),
                image_url=image_url,
                video_url=video_url,
            )
            results["success"].append(result)
        except Exception as e:
            message = provider_error_message(e)
            logger.error(f"Publishing to {platform} failed for user {user_id}: {message}")
            results["failed"].append({"platform": platform, "error": message})

    logger.info(
        f"Multi-platform publish for user {user_id}: "
        f"{len(results['success'])} succeeded, {len(results['failed'])} failed"
    )
    return results
