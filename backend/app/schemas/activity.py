from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ActivityLogOut(BaseModel):
    id: int
    admin_user_id: int | None = Field(alias="adminUserId")
    action: str
    resource_type: str | None = Field(default=None, alias="resourceType")
    resource_id: str | None = Field(default=None, alias="resourceId")
    details: dict
    ip_address: str | None = Field(default=None, alias="ipAddress")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
