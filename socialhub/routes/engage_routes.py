from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from socialhub.platforms.registry import PlatformRegistry
from socialhub.routes.deps import ensure_db, get_registry
from socialhub.services import engage_service
from socialhub.utils.auth import CurrentUser, get_current_user
from socialhub.utils.errors import InvalidRequestError, NotConnectedError, provider_error_message
from socialhub.utils.logger import logger

router = APIRouter(prefix="/engage", tags=["Engage"], dependencies=[Depends(ensure_db)])


class CommentRequest(BaseModel):
    post_id: Optional[str] = Field(None, alias="postId")
    platform: Optional[str] = None
    message: Optional[str] = None
    parent_id: Optional[str] = Field(None, alias="parentId")


def engage_error(e: Exception) -> JSONResponse:
    if isinstance(e, NotConnectedError):
        return JSONResponse(status_code=404, content={"message": "Platform not connected", "status": False})
    if isinstance(e, InvalidRequestError):
        return JSONResponse(status_code=400, content={"message": str(e), "status": False})
    message = provider_error_message(e)
    logger.error(f"Engage request failed: {message}")
    return JSONResponse(status_code=500, content={"message": message, "status": False})


@router.get("/posts")
async def get_posts(
    platform: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
):
    result = await engage_service.list_posts(user.id, platform, limit, offset)
    return {"status": True, **result}


@router.get("/comments/{platform}/{post_id}")
async def get_post_comments(
    platform: str,
    post_id: str,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    try:
        comments = await engage_service.get_comments(registry, user.id, platform, post_id)
    except Exception as e:
        return engage_error(e)
    return {"status": True, "data": comments}


@router.post("/comment")
async def post_comment(
    body: CommentRequest,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    try:
        result = await engage_service.post_comment(
            registry, user.id, body.platform, body.post_id, body.message, body.parent_id
        )
    except Exception as e:
        return engage_error(e)
    return {"status": True, "data": result, "message": "Comment posted successfully"}
