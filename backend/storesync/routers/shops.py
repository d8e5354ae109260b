"""
Shop session bootstrap and sync API routes.
"""
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storesync.core.config import settings
from storesync.core.database import get_db_session, get_session_factory
from storesync.core.logging import get_logger
from storesync.models import Shop
from storesync.repositories.shop import ShopRepository
from storesync.repositories.sync_log import SyncLogRepository
from storesync.schemas.shop import ShopBootstrapResponse, ShopResponse, ShopSessionCreate
from storesync.schemas.sync import SyncLogResponse, SyncStatusResponse, SyncTriggerResponse
from storesync.schemas.webhook import ReconciliationResponse
from storesync.services.initial_sync import is_sync_running, run_initial_sync
from storesync.services.shop_bootstrap import ClientFactory, bootstrap_session
from storesync.services.shopify_client import ShopifyGraphQLClient

logger = get_logger(__name__)

router = APIRouter(prefix="/shops", tags=["shops"])


def get_client_factory() -> ClientFactory:
    """Dependency building Shopify clients from (encrypted token, domain)."""
    return ShopifyGraphQLClient


async def get_shop_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ShopRepository:
    """Dependency to get shop repository."""
    return ShopRepository(session)


async def _get_shop_or_404(repo: ShopRepository, shop_domain: str) -> Shop:
    shop = await repo.get_by_domain(shop_domain)
    if not shop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shop not found",
        )
    return shop


@router.post("", response_model=ShopBootstrapResponse)
async def bootstrap_shop_session(
    shop_data: ShopSessionCreate,
    background_tasks: BackgroundTasks,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> ShopBootstrapResponse:
    """
    Record an authenticated session for a shop.

    Called after OAuth and on every app load. Stores the encrypted token,
    converges webhooks and schedules the initial sync if the shop has never
    completed one.
    """
    result = await bootstrap_session(
        session,
        shop_domain=shop_data.domain,
        access_token=shop_data.access_token,
        scopes=shop_data.scopes,
        email=shop_data.email,
        client_factory=client_factory,
    )

    scheduled = result.needs_initial_sync and not is_sync_running(shop_data.domain)
    if scheduled:
        background_tasks.add_task(
            run_initial_sync,
            shop_data.domain,
            session_factory,
            client_factory,
        )
        logger.info("Initial sync scheduled", shop=shop_data.domain)

    return ShopBootstrapResponse(
        shop=ShopResponse.model_validate(result.shop),
        created=result.created,
        initial_sync_scheduled=scheduled,
        webhooks=(
            ReconciliationResponse.model_validate(result.webhooks)
            if result.webhooks
            else None
        ),
        webhook_error=result.webhook_error,
    )


@router.get("/{shop_domain}", response_model=ShopResponse)
async def get_shop(
    shop_domain: str,
    repo: Annotated[ShopRepository, Depends(get_shop_repository)],
) -> ShopResponse:
    """Get shop details by domain."""
    shop = await _get_shop_or_404(repo, shop_domain)
    return ShopResponse.model_validate(shop)


@router.post(
    "/{shop_domain}/sync",
    response_model=SyncTriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_sync(
    shop_domain: str,
    background_tasks: BackgroundTasks,
    repo: Annotated[ShopRepository, Depends(get_shop_repository)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> SyncTriggerResponse:
    """Run the full initial sync again for a shop."""
    shop = await _get_shop_or_404(repo, shop_domain)

    cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.sync_stale_after_minutes)
    if is_sync_running(shop_domain) or await SyncLogRepository(repo.session).has_active_run(
        shop.id, cutoff
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sync is already running for this shop",
        )

    # The run opens its own sessions; release this one's transaction first
    await repo.session.commit()
    background_tasks.add_task(run_initial_sync, shop_domain, session_factory, client_factory)
    logger.info("Sync triggered", shop=shop_domain)

    return SyncTriggerResponse(
        message="Sync started",
        shop_domain=shop_domain,
        sync_started=True,
    )


@router.get("/{shop_domain}/sync-logs", response_model=SyncStatusResponse)
async def get_sync_logs(
    shop_domain: str,
    repo: Annotated[ShopRepository, Depends(get_shop_repository)],
) -> SyncStatusResponse:
    """Latest initial-sync attempt per entity type."""
    shop = await _get_shop_or_404(repo, shop_domain)
    latest = await SyncLogRepository(repo.session).latest_by_entity(shop.id)

    return SyncStatusResponse(
        shop_domain=shop_domain,
        sync_running=is_sync_running(shop_domain),
        last_sync_at=shop.last_sync_at,
        logs=[SyncLogResponse.model_validate(log) for log in latest.values()],
    )
