import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from socialhub.models.post import Post
from socialhub.platforms.registry import PlatformRegistry, get_adapter
from socialhub.services.analytics_validator import calculate_engagement, clean_analytics_for_platform
from socialhub.services.credential_service import list_credentials, require_credential
from socialhub.utils.errors import ProviderError, SocialHubError, provider_error_message
from socialhub.utils.logger import log_event

DEFAULT_RANGE_DAYS = 30
METRIC_COLUMNS = ["reach", "impressions", "likes", "comments", "shares", "engagement"]


def serialize_post(post: Post, with_engagement: bool = False) -> Dict[str, Any]:
    data = post.model_dump(by_alias=True, mode="json")
    data["id"] = str(post.id)
    data.pop("_id", None)
    if with_engagement:
        data["analytics"] = {**data.get("analytics", {}), "engagement": calculate_engagement(post.platform, post.analytics)}
    return data


def date_range(start: Optional[datetime], end: Optional[datetime]):
    end = (end or datetime.utcnow()).replace(hour=23, minute=59, second=59, microsecond=999000)
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    return start, end


async def refresh_post_analytics(registry: PlatformRegistry, post: Post) -> Post:
    """
    Pull fresh metrics for one post and store the cleaned result.

    pending/failed -> synced on success, -> failed on any provider error.
    A failed post can be refreshed again.
    """
    adapter = get_adapter(registry, post.platform)
    try:
        credential = await require_credential(post.user_id, post.platform)
        fresh = await adapter.fetch_analytics(credential, post)
    except Exception as e:
        message = provider_error_message(e)
        log_event(
            logging.ERROR,
            f"Analytics refresh failed for {post.platform} post {post.post_id}: {message}",
            platform=post.platform,
            postId=post.post_id,
            userId=post.user_id,
        )
        post.analytics_status = "failed"
        await post.save()
        if isinstance(e, SocialHubError):
            raise
        raise ProviderError(message, platform=post.platform) from e

    post.analytics = clean_analytics_for_platform(
        post.platform,
        {**post.analytics, **fresh, "lastUpdated": datetime.utcnow()},
        post.post_type,
    )
    post.analytics_status = "synced"
    await post.save()
    return post


async def find_post(user_id: str, post_id: str) -> Optional[Post]:
    return await Post.find_one({"userId": user_id, "postId": post_id})


def hashtag_performance(post: Post, related: List[Post]) -> List[Dict[str, Any]]:
    current = calculate_engagement(post.platform, post.analytics)
    performance = []
    for hashtag in post.hashtags:
        tagged = [p for p in related if hashtag in p.hashtags]
        total = current + sum(calculate_engagement(p.platform, p.analytics) for p in tagged)
        count = len(tagged) + 1
        performance.append({
            "hashtag": f"#{hashtag}",
            "posts": count,
            "totalEngagement": total,
            "avgEngagement": round(total / count),
        })
    return performance


async def get_post_analytics(registry: PlatformRegistry, user_id: str, post: Post) -> Dict[str, Any]:
    try:
        post = await refresh_post_analytics(registry, post)
    except SocialHubError:
        # serve the stored numbers; status is now "failed"
        pass

    related: List[Post] = []
    if post.hashtags:
        related = await Post.find({
            "userId": user_id,
            "hashtags": {"$in": post.hashtags},
            "_id": {"$ne": post.id},
        }).to_list()

    return {
        "post": serialize_post(post, with_engagement=True),
        "hashtagPerformance": hashtag_performance(post, related),
    }


def posts_frame(posts: List[Post]) -> pd.DataFrame:
    rows = []
    for post in posts:
        analytics = post.analytics or {}
        rows.append({
            "platform": post.platform,
            "date": post.published_at.date().isoformat(),
            "reach": analytics.get("reach") or 0,
            "impressions": analytics.get("impressions") or 0,
            "likes": analytics.get("likes") or 0,
            "comments": analytics.get("comments") or 0,
            "shares": analytics.get("shares") or 0,
            "engagement": calculate_engagement(post.platform, analytics),
        })
    return pd.DataFrame(rows, columns=["platform", "date"] + METRIC_COLUMNS)


async def get_overview(
    registry: PlatformRegistry,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Aggregate stored post analytics. Providers are not queried here."""
    start, end = date_range(start, end)
    posts = await Post.find({"userId": user_id, "publishedAt": {"$gte": start, "$lte": end}}).to_list()
    df = posts_frame(posts)

    followers = {}
    for credential in await list_credentials(user_id):
        adapter = registry.get(credential.platform)
        if adapter and adapter.follower_count(credential.credentials):
            followers[credential.platform.lower()] = adapter.follower_count(credential.credentials)

    ranked = sorted(posts, key=lambda p: calculate_engagement(p.platform, p.analytics), reverse=True)
    best_posts = [serialize_post(p, with_engagement=True) for p in ranked[:10]]

    platform_stats: Dict[str, Any] = {}
    growth_data: List[Dict[str, Any]] = []
    if not df.empty:
        by_platform = df.groupby("platform")[METRIC_COLUMNS].sum()
        by_platform["posts"] = df.groupby("platform").size()
        platform_stats = {
            platform: {k: int(v) for k, v in row.items()} for platform, row in by_platform.iterrows()
        }
        daily = df.groupby("date")[["reach", "impressions", "engagement"]].sum()
        daily["posts"] = df.groupby("date").size()
        growth_data = [
            {"date": date, **{k: int(v) for k, v in row.items()}}
            for date, row in daily.sort_index().iterrows()
        ]

    return {
        "overview": {
            "totalReach": int(df["reach"].sum()),
            "totalImpressions": int(df["impressions"].sum()),
            "totalEngagement": int(df["engagement"].sum()),
            "totalPosts": len(posts),
            "followers": followers,
        },
        "bestPosts": best_posts,
        "platformStats": platform_stats,
        "growthData": growth_data,
        "period": {"start": start.isoformat(), "end": end.isoformat()},
    }


async def list_posts(
    user_id: str,
    platform: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {"userId": user_id}
    if platform and platform.lower() != "all":
        query["platform"] = platform.upper()
    if start or end:
        query["publishedAt"] = {}
        if start:
            query["publishedAt"]["$gte"] = start.replace(hour=0, minute=0, second=0, microsecond=0)
        if end:
            query["publishedAt"]["$lte"] = end.replace(hour=23, minute=59, second=59, microsecond=999000)

    page = max(page, 1)
    posts = await Post.find(query).sort("-publishedAt").skip((page - 1) * limit).limit(limit).to_list()
    total = await Post.find(query).count()
    return {
        "posts": [serialize_post(p, with_engagement=True) for p in posts],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }
