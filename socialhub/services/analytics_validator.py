"""
Per-platform analytics allowlist.

Stored Post.analytics documents only ever contain the metrics a platform can
actually produce. Engagement is derived on read via calculate_engagement.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

PLATFORM_ANALYTICS_FIELDS: Dict[str, frozenset] = {
    "INSTAGRAM": frozenset([
        "likes", "comments", "saves", "impressions", "reach", "plays", "shares",
    ]),
    "FACEBOOK": frozenset([
        "likes", "comments", "shares", "reactions", "impressions", "reach", "clicks",
        "engagedUsers", "views", "videoCompleteViews", "averageWatchTime", "totalVideoViewTime",
    ]),
    "YOUTUBE": frozenset([
        "views", "likes", "comments", "shares", "estimatedMinutesWatched",
        "averageViewDuration", "averageViewPercentage", "subscribersGained",
        "subscribersLost", "watchTime", "trafficSources", "deviceTypes", "countries",
    ]),
    "LINKEDIN": frozenset([
        "likes", "comments", "shares", "impressions", "clicks",
    ]),
}

FACEBOOK_VIDEO_FIELDS = frozenset(["views", "videoCompleteViews", "averageWatchTime", "totalVideoViewTime"])


def _instagram_key(key: str, post_type: Optional[str]) -> Optional[str]:
    # Instagram reports `saved` and `views`; we store `saves` and reel `plays`.
    if key == "saved":
        return "saves"
    if key == "views":
        return "plays" if post_type == "reel" else None
    if key == "shares" and post_type != "reel":
        return None
    return key


def clean_analytics_for_platform(platform: str, analytics: Any, post_type: Optional[str] = None) -> Dict[str, Any]:
    if not isinstance(analytics, dict):
        return {}
    platform = (platform or "").upper()
    allowed = PLATFORM_ANALYTICS_FIELDS.get(platform)
    if allowed is None:
        return {}

    cleaned: Dict[str, Any] = {}
    for key, value in analytics.items():
        if key in ("engagement", "lastUpdated"):
            continue
        if platform == "INSTAGRAM":
            key = _instagram_key(key, post_type)
            if key is None:
                continue
        elif platform == "FACEBOOK" and post_type != "video" and key in FACEBOOK_VIDEO_FIELDS:
            continue
        if key in allowed:
            cleaned[key] = value

    cleaned["lastUpdated"] = analytics.get("lastUpdated") or datetime.utcnow()
    return cleaned


def calculate_engagement(platform: str, analytics: Optional[Dict[str, Any]]) -> int:
    analytics = analytics or {}
    likes = analytics.get("likes") or 0
    comments = analytics.get("comments") or 0
    shares = analytics.get("shares") or 0
    if (platform or "").upper() == "INSTAGRAM":
        # shares is only ever stored for reels
        return likes + comments + (analytics.get("saves") or 0) + shares
    return likes + comments + shares


def validate_analytics(platform: str, analytics: Any) -> Dict[str, Any]:
    allowed = PLATFORM_ANALYTICS_FIELDS.get((platform or "").upper())
    if allowed is None:
        return {"valid": False, "errors": [f"Unknown platform: {platform}"]}
    if not isinstance(analytics, dict):
        return {"valid": False, "errors": ["Analytics must be an object"]}

    errors = [
        f"Invalid field '{key}' for platform '{platform}'"
        for key in analytics
        if key != "lastUpdated" and key not in allowed
    ]
    return {"valid": not errors, "errors": errors}


def get_allowed_analytics_fields(platform: str) -> List[str]:
    return sorted(PLATFORM_ANALYTICS_FIELDS.get((platform or "").upper(), ()))
