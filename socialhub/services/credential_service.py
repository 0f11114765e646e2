from datetime import datetime
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from socialhub.models.credential import AppCredential, PlatformCredentials
from socialhub.utils.errors import NotConnectedError
from socialhub.utils.logger import logger


async def get_credential(user_id: str, platform: str) -> Optional[AppCredential]:
    return await AppCredential.find_one({"userId": user_id, "platform": platform.upper()})


async def require_credential(user_id: str, platform: str) -> AppCredential:
    credential = await get_credential(user_id, platform)
    if not credential:
        raise NotConnectedError(platform)
    return credential


async def upsert_credential(
    user_id: str,
    credentials: PlatformCredentials,
    created_by: Optional[str] = None,
    reseller_id: Optional[str] = None,
) -> AppCredential:
    """
    Store the credentials for (user, platform), replacing any previous ones.

    Concurrent callbacks for the same pair race on the unique index; the
    loser retries as an update.
    """
    platform = credentials.platform
    existing = await get_credential(user_id, platform)
    if existing is None:
        credential = AppCredential(
            userId=user_id,
            platform=platform,
            credentials=credentials,
            createdBy=created_by or user_id,
            resellerId=reseller_id,
        )
        try:
            await credential.insert()
            logger.info(f"Connected {platform} for user {user_id}")
            return credential
        except DuplicateKeyError:
            existing = await get_credential(user_id, platform)
            if existing is None:
                raise

    existing.credentials = credentials
    existing.reseller_id = reseller_id or existing.reseller_id
    existing.updated_at = datetime.utcnow()
    await existing.save()
    logger.info(f"Reconnected {platform} for user {user_id}")
    return existing


async def list_credentials(user_id: str) -> List[AppCredential]:
    return await AppCredential.find({"userId": user_id}).to_list()


async def delete_credential(user_id: str, platform: str) -> bool:
    credential = await get_credential(user_id, platform)
    if not credential:
        return False
    await credential.delete()
    logger.info(f"Disconnected {platform.upper()} for user {user_id}")
    return True
