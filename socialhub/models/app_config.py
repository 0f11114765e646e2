from datetime import datetime
from typing import Optional

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel


class AppConfigRecord(Document):
    """OAuth application override stored by a reseller (or a single tenant)."""
    app_name: str = Field(alias="appName")
    user_id: Optional[str] = Field(None, alias="userId")
    reseller_id: Optional[str] = Field(None, alias="resellerId")
    app_client_id: str = Field(alias="appClientId")
    app_client_secret: str = Field(alias="appClientSecret")
    redirect_url: str = Field(alias="redirectUrl")
    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")

    class Settings:
        name = "appconfigs"
        indexes = [
            IndexModel([("userId", ASCENDING), ("appName", ASCENDING)], unique=True, sparse=True),
            IndexModel([("resellerId", ASCENDING), ("appName", ASCENDING)], unique=True, sparse=True),
        ]
