"""
Initial sync service - imports a shop's catalog from the Shopify GraphQL API.

The shop itself is synced first (it provides the local shop id), then each
entity type runs as its own task with its own session and SyncLog row, so
a failure in one type never rolls back or cancels another.
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storesync.core.config import settings
from storesync.core.database import async_session_factory
from storesync.core.exceptions import (
    MappingError,
    PersistenceError,
    ShopSyncError,
    StoreSyncError,
    SyncInProgressError,
)
from storesync.core.logging import bind_sync_context, clear_sync_context, get_logger
from storesync.models import EntityType, SyncStatus
from storesync.repositories.shop import ShopRepository
from storesync.repositories.sync_log import SyncLogRepository
from storesync.repositories.upsert import UpsertRepository
from storesync.services.mappers import map_shop
from storesync.services.paginator import RemotePaginator
from storesync.services.shopify_client import ShopifyAPIError, ShopifyGraphQLClient
from storesync.services.sync_entities import ENTITY_SYNCS, EntitySync, SyncContext

logger = get_logger(__name__)

# One in-process lock per shop domain while a run is active; the SyncLog guard
# covers other processes
_shop_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def is_sync_running(shop_domain: str) -> bool:
    """True while this process is running a sync for the shop."""
    lock = _shop_locks.get(shop_domain)
    return lock is not None and lock.locked()


def _release_shop_lock(shop_domain: str, lock: asyncio.Lock) -> None:
    if not lock.locked() and _shop_locks.get(shop_domain) is lock:
        del _shop_locks[shop_domain]


@dataclass
class EntityOutcome:
    """Result of one entity-type sync inside a run."""

    entity_type: EntityType
    status: SyncStatus = SyncStatus.STARTED
    records_processed: int = 0
    records_skipped: int = 0
    error: Optional[str] = None


@dataclass
class SyncRunResult:
    success: bool
    message: str
    outcomes: dict[EntityType, EntityOutcome] = field(default_factory=dict)

    @property
    def failed(self) -> list[EntityType]:
        return [
            entity_type
            for entity_type, outcome in self.outcomes.items()
            if outcome.status is SyncStatus.FAILED
        ]


class InitialSyncService:
    """
    Orchestrates a full import for one shop.

    Products and collections (and customers, when enabled) run concurrently;
    orders, when enabled, run afterwards because they link to customers and
    variants. Customer and order reads need protected customer data access
    from Shopify, so both are off unless configured.
    """

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        shop_domain: str,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        *,
        page_size: Optional[int] = None,
        sync_customers: Optional[bool] = None,
        sync_orders: Optional[bool] = None,
        isolate_record_errors: Optional[Iterable[str]] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self.client = client
        self.shop_domain = shop_domain
        self.session_factory = session_factory
        self.page_size = page_size or settings.sync_page_size
        self.sync_customers = (
            settings.sync_customers_enabled if sync_customers is None else sync_customers
        )
        self.sync_orders = settings.sync_orders_enabled if sync_orders is None else sync_orders
        self.isolate_record_errors = frozenset(
            settings.sync_isolate_record_errors
            if isolate_record_errors is None
            else isolate_record_errors
        )
        self.base_url = base_url

    async def sync_all_data(self) -> SyncRunResult:
        """
        Run shop sync, then every enabled entity type.

        Raises:
            SyncInProgressError: another run for this shop is active
            ShopSyncError: the shop itself could not be synced
        """
        lock = _shop_locks[self.shop_domain]
        if lock.locked():
            raise SyncInProgressError(self.shop_domain)

        try:
            async with lock:
                bind_sync_context(self.shop_domain, uuid4().hex[:12])
                try:
                    await self._guard_active_run()
                    return await self._run()
                finally:
                    clear_sync_context()
        finally:
            _release_shop_lock(self.shop_domain, lock)

    async def _guard_active_run(self) -> None:
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.sync_stale_after_minutes)
        async with self.session_factory() as session:
            shop = await ShopRepository(session).get_by_domain(self.shop_domain)
            if shop and await SyncLogRepository(session).has_active_run(shop.id, cutoff):
                raise SyncInProgressError(self.shop_domain)

    async def _run(self) -> SyncRunResult:
        logger.info("Starting initial sync")

        ctx = await self.sync_shop()
        outcomes = {
            EntityType.SHOP: EntityOutcome(
                EntityType.SHOP,
                status=SyncStatus.COMPLETED,
                records_processed=1,
            )
        }

        concurrent_types = [EntityType.PRODUCTS, EntityType.COLLECTIONS]
        if self.sync_customers:
            concurrent_types.append(EntityType.CUSTOMERS)
        outcomes.update(await self._run_group(ctx, concurrent_types))

        if self.sync_orders:
            outcomes.update(await self._run_group(ctx, [EntityType.ORDERS]))

        # Stamped even when some entity types failed; their SyncLogs say which
        await self._mark_synced(ctx)

        result = SyncRunResult(success=True, message="", outcomes=outcomes)
        synced = ", ".join(t.value for t in outcomes if t not in result.failed)
        if result.failed:
            result.success = False
            result.message = (
                f"Initial sync finished with failures in "
                f"{', '.join(t.value for t in result.failed)} (synced: {synced})"
            )
            logger.warning("Initial sync finished with failures", failed=[t.value for t in result.failed])
        else:
            result.message = f"Initial sync completed successfully ({synced})"
            logger.info("Initial sync completed", entity_types=list(o.value for o in outcomes))
        return result

    async def sync_shop(self) -> SyncContext:
        """Read the shop from Shopify and upsert it; failure is fatal to the run."""
        async with self.session_factory() as session:
            shops = ShopRepository(session)
            logs = SyncLogRepository(session)

            existing = await shops.get_by_domain(self.shop_domain)
            existing_id = existing.id if existing else None

            try:
                fields = map_shop(await self.client.get_shop_info())
                shop = await shops.upsert_from_remote(self.shop_domain, fields)
                sync_log = await logs.start(shop.id, EntityType.SHOP)
                await logs.complete(sync_log.id, 1, 1)
                await session.commit()
            except (ShopifyAPIError, StoreSyncError, SQLAlchemyError) as e:
                logger.error("Shop sync failed", error=str(e))
                await session.rollback()
                if existing_id is not None:
                    sync_log = await logs.start(existing_id, EntityType.SHOP)
                    await logs.fail(sync_log.id, str(e), 0)
                    await session.commit()
                raise ShopSyncError(f"Shop sync failed for {self.shop_domain}: {e}") from e

            logger.info("Shop data synced", shop_id=shop.id)
            return SyncContext(
                shop_id=shop.id,
                shop_domain=self.shop_domain,
                started_at=datetime.now(timezone.utc),
                base_url=self.base_url,
            )

    async def _run_group(
        self,
        ctx: SyncContext,
        entity_types: list[EntityType],
    ) -> dict[EntityType, EntityOutcome]:
        """Run entity types concurrently; a failure is recorded, never propagated."""
        outcomes = {entity_type: EntityOutcome(entity_type) for entity_type in entity_types}
        results = await asyncio.gather(
            *(
                self.sync_entity(ctx, ENTITY_SYNCS[entity_type], outcomes[entity_type])
                for entity_type in entity_types
            ),
            return_exceptions=True,
        )

        for entity_type, result in zip(entity_types, results):
            if isinstance(result, BaseException):
                outcome = outcomes[entity_type]
                outcome.status = SyncStatus.FAILED
                outcome.error = outcome.error or str(result)
        return outcomes

    async def sync_entity(
        self,
        ctx: SyncContext,
        strategy: EntitySync,
        outcome: Optional[EntityOutcome] = None,
    ) -> EntityOutcome:
        """
        Page through one entity type, writing each record in its own savepoint.

        Progress is committed after every page. On an unhandled error the
        SyncLog is marked failed with the error message and the error is
        re-raised.
        """
        entity_type = strategy.entity_type
        outcome = outcome or EntityOutcome(entity_type)
        isolate = entity_type.value in self.isolate_record_errors
        paginator = RemotePaginator(self.client, self.page_size)
        log = logger.bind(entity_type=entity_type.value)

        async with self.session_factory() as session:
            logs = SyncLogRepository(session)
            repo = UpsertRepository(session)

            sync_log = await logs.start(ctx.shop_id, entity_type)
            await session.commit()
            log_id = sync_log.id

            try:
                async for page in paginator.pages(strategy.query):
                    for node in page.nodes:
                        try:
                            async with session.begin_nested():
                                await strategy.sync_node(repo, ctx, node)
                        except (MappingError, PersistenceError) as e:
                            if not isolate:
                                raise
                            outcome.records_skipped += 1
                            log.warning("Skipped record", record=node.get("id"), error=str(e))
                            continue
                        outcome.records_processed += 1

                    await logs.update_progress(log_id, outcome.records_processed)
                    await session.commit()
                    log.info("Page synced", count=outcome.records_processed)

            except Exception as e:
                log.error(
                    "Entity sync failed",
                    error=str(e),
                    processed=outcome.records_processed,
                )
                if not session.is_active:
                    await session.rollback()
                await logs.fail(log_id, str(e), outcome.records_processed)
                await session.commit()
                outcome.status = SyncStatus.FAILED
                outcome.error = str(e)
                raise

            await logs.complete(log_id, outcome.records_processed, outcome.records_processed)
            await session.commit()

        outcome.status = SyncStatus.COMPLETED
        log.info(
            "Entity sync completed",
            count=outcome.records_processed,
            skipped=outcome.records_skipped,
        )
        return outcome

    async def _mark_synced(self, ctx: SyncContext) -> None:
        async with self.session_factory() as session:
            await ShopRepository(session).mark_synced(ctx.shop_id)
            await session.commit()


ClientFactory = Callable[[str, str], ShopifyGraphQLClient]


async def run_initial_sync(
    shop_domain: str,
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    client_factory: ClientFactory = ShopifyGraphQLClient,
) -> Optional[SyncRunResult]:
    """
    Background-task entry point: load the shop's token and run a full sync.

    Errors are logged rather than raised since nothing awaits the task; the
    SyncLog rows hold the durable outcome.
    """
    async with session_factory() as session:
        shop = await ShopRepository(session).get_by_domain(shop_domain)
        token = shop.access_token_encrypted if shop else None

    if not token:
        logger.error("Cannot sync shop without an access token", shop=shop_domain)
        return None

    service = InitialSyncService(
        client_factory(token, shop_domain),
        shop_domain,
        session_factory,
    )
    try:
        return await service.sync_all_data()
    except SyncInProgressError:
        logger.warning("Sync already in progress, skipping", shop=shop_domain)
    except ShopSyncError as e:
        logger.error("Initial sync aborted", shop=shop_domain, error=str(e))
    return None
