"""
Sync Pydantic schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storesync.models import EntityType, SyncStatus


class SyncLogResponse(BaseModel):
    """Latest attempt for one entity type, error message verbatim."""

    entity_type: EntityType = Field(alias="entityType")
    sync_type: str = Field(alias="syncType")
    status: SyncStatus
    records_processed: int = Field(alias="recordsProcessed")
    records_total: Optional[int] = Field(None, alias="recordsTotal")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    started_at: datetime = Field(alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class SyncStatusResponse(BaseModel):
    shop_domain: str = Field(alias="shopDomain")
    sync_running: bool = Field(alias="syncRunning")
    last_sync_at: Optional[datetime] = Field(None, alias="lastSyncAt")
    logs: list[SyncLogResponse]

    model_config = ConfigDict(populate_by_name=True)


class SyncTriggerResponse(BaseModel):
    """Schema for sync operation response."""

    message: str
    shop_domain: str = Field(alias="shopDomain")
    sync_started: bool = Field(alias="syncStarted")

    model_config = ConfigDict(populate_by_name=True)
