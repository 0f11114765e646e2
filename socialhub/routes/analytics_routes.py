from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from socialhub.platforms.registry import PlatformRegistry
from socialhub.routes.deps import ensure_db, get_registry
from socialhub.services import analytics_service
from socialhub.services.analytics_service import serialize_post
from socialhub.utils.auth import CurrentUser, get_current_user
from socialhub.utils.errors import SocialHubError

router = APIRouter(prefix="/analytics", tags=["Analytics"], dependencies=[Depends(ensure_db)])


@router.get("/overview")
async def get_overview(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    data = await analytics_service.get_overview(registry, user.id, start_date, end_date)
    return {"success": True, "data": data}


@router.get("/posts")
async def get_posts(
    platform: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
):
    data = await analytics_service.list_posts(user.id, platform, start_date, end_date, page, limit)
    return {"success": True, "data": data}


@router.get("/posts/{post_id}")
async def get_post_analytics(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    post = await analytics_service.find_post(user.id, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    data = await analytics_service.get_post_analytics(registry, user.id, post)
    return {"success": True, "data": data}


@router.post("/posts/{post_id}/refresh")
async def refresh_post_analytics(
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    post = await analytics_service.find_post(user.id, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    try:
        post = await analytics_service.refresh_post_analytics(registry, post)
    except SocialHubError as e:
        return JSONResponse(
            status_code=502,
            content={
                "success": False,
                "message": "Failed to fetch fresh analytics",
                "error": str(e),
                "data": {"post": serialize_post(post)},
            },
        )
    return {
        "success": True,
        "message": "Analytics refreshed successfully",
        "data": {"post": serialize_post(post, with_engagement=True)},
    }
