"""
Session bootstrap and webhook re-pointing.

Bootstrap runs on every authenticated session: it records the shop and its
token, converges webhooks and tells the caller whether the initial sync
still has to run. Re-pointing moves every shop's webhooks to a new base URL.
"""
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storesync.core.app_url import persist_app_url, resolve_app_url, validate_app_url
from storesync.core.exceptions import StoreSyncError
from storesync.core.logging import get_logger
from storesync.core.security import encrypt_token
from storesync.models import Shop
from storesync.repositories.shop import ShopRepository
from storesync.services.shopify_client import ShopifyAPIError, ShopifyGraphQLClient
from storesync.services.webhook_registration import ReconciliationResult, WebhookReconciler

logger = get_logger(__name__)

ClientFactory = Callable[[str, str], ShopifyGraphQLClient]


@dataclass
class BootstrapResult:
    shop: Shop
    created: bool
    needs_initial_sync: bool
    webhooks: Optional[ReconciliationResult] = None
    webhook_error: Optional[str] = None


@dataclass
class ShopWebhookUpdate:
    shop_domain: str
    result: Optional[ReconciliationResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and (self.result is None or self.result.failed == 0)


@dataclass
class WebhookUrlUpdate:
    url: str
    shops: list[ShopWebhookUpdate] = field(default_factory=list)


async def bootstrap_session(
    session: AsyncSession,
    shop_domain: str,
    access_token: str,
    scopes: Optional[str],
    email: Optional[str] = None,
    client_factory: ClientFactory = ShopifyGraphQLClient,
) -> BootstrapResult:
    """
    Upsert the shop for an authenticated session and reconcile its webhooks.

    Webhook failures are logged and reported, never raised: a broken webhook
    setup must not block the merchant's session.
    """
    repo = ShopRepository(session)
    shop, created = await repo.ensure_for_session(
        domain=shop_domain,
        access_token_encrypted=encrypt_token(access_token),
        scopes=scopes,
        email=email,
    )
    # Visible to the background sync, which uses its own sessions
    await session.commit()
    logger.info("Created shop" if created else "Updated shop", shop=shop_domain)

    result = BootstrapResult(
        shop=shop,
        created=created,
        needs_initial_sync=shop.last_sync_at is None,
    )

    try:
        base_url = resolve_app_url()
        client = client_factory(shop.access_token_encrypted, shop_domain)
        result.webhooks = await WebhookReconciler(client).reconcile(base_url)
    except (StoreSyncError, ShopifyAPIError, ValueError) as e:
        logger.error("Webhook reconciliation failed", shop=shop_domain, error=str(e))
        result.webhook_error = str(e)

    return result


async def update_webhook_url(
    session: AsyncSession,
    url: str,
    client_factory: ClientFactory = ShopifyGraphQLClient,
) -> WebhookUrlUpdate:
    """
    Persist a new base URL and reconcile every shop that has a token.

    Raises:
        ValueError: the URL is not an absolute https URL
    """
    url = validate_app_url(url)
    persist_app_url(url)

    update = WebhookUrlUpdate(url=url)
    for shop in await ShopRepository(session).get_with_tokens():
        shop_update = ShopWebhookUpdate(shop_domain=shop.domain)
        try:
            client = client_factory(shop.access_token_encrypted, shop.domain)
            shop_update.result = await WebhookReconciler(client).reconcile(url)
        except (StoreSyncError, ShopifyAPIError, ValueError) as e:
            # Revoked tokens and API errors are reported per shop
            logger.error("Failed to update webhooks", shop=shop.domain, error=str(e))
            shop_update.error = str(e)
        update.shops.append(shop_update)

    logger.info(
        "Webhook URL update completed",
        url=url,
        shops=len(update.shops),
        failed=sum(1 for s in update.shops if not s.success),
    )
    return update
