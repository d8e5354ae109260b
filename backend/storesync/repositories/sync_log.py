"""
SyncLog repository - owns the started -> completed | failed lifecycle.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select

from storesync.models.sync_log import EntityType, SyncLog, SyncStatus
from storesync.repositories.base import BaseRepository


class SyncLogRepository(BaseRepository[SyncLog]):
    """
    Repository for SyncLog rows.

    Every mutation loads the row by id so callers can keep using it after a
    session rollback has expired their instances.
    """

    model = SyncLog

    async def start(
        self,
        shop_id: int,
        entity_type: EntityType,
        sync_type: str = "initial",
    ) -> SyncLog:
        """Open a new attempt in the `started` state."""
        sync_log = SyncLog(
            shop_id=shop_id,
            sync_type=sync_type,
            entity_type=entity_type.value,
            status=SyncStatus.STARTED.value,
            records_processed=0,
            started_at=datetime.now(timezone.utc),
        )
        self.session.add(sync_log)
        await self.session.flush()
        return sync_log

    async def update_progress(self, log_id: int, records_processed: int) -> SyncLog:
        sync_log = await self._get_open(log_id)
        sync_log.records_processed = max(sync_log.records_processed, records_processed)
        await self.session.flush()
        return sync_log

    async def complete(
        self,
        log_id: int,
        records_processed: int,
        records_total: int,
    ) -> SyncLog:
        sync_log = await self._get_open(log_id)
        sync_log.status = SyncStatus.COMPLETED.value
        sync_log.records_processed = max(sync_log.records_processed, records_processed)
        sync_log.records_total = records_total
        sync_log.completed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return sync_log

    async def fail(
        self,
        log_id: int,
        error_message: str,
        records_processed: Optional[int] = None,
    ) -> SyncLog:
        sync_log = await self._get_open(log_id)
        sync_log.status = SyncStatus.FAILED.value
        sync_log.error_message = error_message
        if records_processed is not None:
            sync_log.records_processed = max(sync_log.records_processed, records_processed)
        sync_log.completed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return sync_log

    async def latest_by_entity(
        self,
        shop_id: int,
        sync_type: str = "initial",
    ) -> dict[str, SyncLog]:
        """Most recent attempt per entity type, keyed by entity type value."""
        stmt = (
            select(SyncLog)
            .where(SyncLog.shop_id == shop_id, SyncLog.sync_type == sync_type)
            .order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
        )
        result = await self.session.execute(stmt)

        latest: dict[str, SyncLog] = {}
        for sync_log in result.scalars():
            latest.setdefault(sync_log.entity_type, sync_log)
        return latest

    async def has_active_run(self, shop_id: int, started_after: datetime) -> bool:
        """
        True if an attempt newer than `started_after` is still `started`.

        Older open rows are treated as abandoned (crashed worker) so they
        cannot block future runs forever.
        """
        stmt = (
            select(SyncLog.id)
            .where(
                SyncLog.shop_id == shop_id,
                SyncLog.status == SyncStatus.STARTED.value,
                SyncLog.started_at > started_after,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def _get_open(self, log_id: int) -> SyncLog:
        sync_log = await self.session.get(SyncLog, log_id)
        if sync_log is None:
            raise LookupError(f"SyncLog {log_id} does not exist")
        if SyncStatus(sync_log.status).is_terminal:
            raise ValueError(f"SyncLog {log_id} is already {sync_log.status}")
        return sync_log
