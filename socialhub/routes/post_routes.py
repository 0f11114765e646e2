from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from socialhub.platforms.base import MediaFile
from socialhub.platforms.registry import PlatformRegistry
from socialhub.routes.deps import ensure_db, get_registry, get_storage
from socialhub.services.publishing_service import post_to_all_platforms, post_to_single_platform
from socialhub.services.storage_service import MediaStorage
from socialhub.utils.auth import CurrentUser, get_current_user
from socialhub.utils.errors import InvalidRequestError, NotConnectedError, provider_error_message
from socialhub.utils.logger import logger

router = APIRouter(prefix="/social-media", tags=["Publishing"], dependencies=[Depends(ensure_db)])


class PlatformTarget(BaseModel):
    platform: str
    post_type: Optional[str] = Field(None, alias="postType")
    page_id: Optional[str] = Field(None, alias="pageId")


class MultiPostRequest(BaseModel):
    platforms: List[PlatformTarget]
    content: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    video_url: Optional[str] = Field(None, alias="videoUrl")


async def to_media(upload: Optional[UploadFile]) -> Optional[MediaFile]:
    if not upload or not upload.filename:
        return None
    return MediaFile(data=await upload.read(), filename=upload.filename, content_type=upload.content_type)


@router.post("/post")
async def publish_post(
    platform: Optional[str] = Form(None),
    post_type: Optional[str] = Form(None, alias="postType"),
    content: Optional[str] = Form(None),
    page_id: Optional[str] = Form(None, alias="pageId"),
    image: Optional[UploadFile] = File(None),
    video: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    try:
        result = await post_to_single_platform(
            registry,
            user.id,
            platform,
            post_type,
            content,
            page_id=page_id,
            image=await to_media(image),
            video=await to_media(video),
        )
    except (InvalidRequestError, NotConnectedError) as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    except Exception as e:
        message = provider_error_message(e)
        logger.error(f"Publishing to {platform} failed for user {user.id}: {message}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": message, "error": message},
        )

    return {"success": True, "message": "Post published successfully", "result": result}


@router.post("/post-all")
async def publish_to_all(
    body: MultiPostRequest,
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
    storage: MediaStorage = Depends(get_storage),
):
    if not body.platforms:
        return JSONResponse(status_code=400, content={"success": False, "message": "At least one platform is required"})
    return await post_to_all_platforms(
        registry,
        user.id,
        [target.model_dump(by_alias=True) for target in body.platforms],
        body.content,
        image_url=body.image_url,
        video_url=body.video_url,
        storage=storage,
    )
