from typing import Any, Dict, List

from socialhub.platforms.registry import PlatformRegistry
from socialhub.services.credential_service import delete_credential, get_credential, list_credentials


async def connected_accounts(registry: PlatformRegistry, user_id: str) -> List[Dict[str, Any]]:
    accounts = []
    for credential in await list_credentials(user_id):
        adapter = registry.get(credential.platform)
        if not adapter:
            continue
        accounts.append({
            "platform": credential.platform,
            "connectedAt": credential.created_at,
            "updatedAt": credential.updated_at,
            "profile": adapter.profile_summary(credential.credentials),
        })
    return accounts


async def connection_status(registry: PlatformRegistry, user_id: str, platform: str) -> Dict[str, Any]:
    credential = await get_credential(user_id, platform)
    if not credential:
        return {"connected": False}
    adapter = registry[credential.platform]
    return {"connected": True, "profile": adapter.profile_summary(credential.credentials)}


async def disconnect(user_id: str, platform: str) -> bool:
    return await delete_credential(user_id, platform)
