from fastapi import APIRouter, Depends, HTTPException

from socialhub.platforms.registry import PlatformRegistry
from socialhub.routes.deps import ensure_db, get_registry
from socialhub.services.account_service import connected_accounts, disconnect
from socialhub.utils.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/social-media", tags=["Accounts"], dependencies=[Depends(ensure_db)])


@router.get("/connected")
async def get_connected_accounts(
    user: CurrentUser = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    accounts = await connected_accounts(registry, user.id)
    return {"accounts": accounts, "platforms": [a["platform"] for a in accounts]}


@router.delete("/disconnect/{platform}")
async def disconnect_account(platform: str, user: CurrentUser = Depends(get_current_user)):
    if not await disconnect(user.id, platform):
        raise HTTPException(status_code=404, detail="Account not found")
    return {"message": "Disconnected successfully", "platform": platform.upper()}
