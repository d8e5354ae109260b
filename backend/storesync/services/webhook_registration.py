"""
Webhook reconciliation - converges a shop's Shopify webhook subscriptions
onto the desired topic/URL set.

Nothing is stored locally: every pass lists the remote subscriptions,
deletes the ones pointing at another base URL and creates what is missing.
Running it twice in a row makes no changes on the second pass.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from storesync.core.exceptions import ReconciliationPartialFailure
from storesync.core.logging import get_logger
from storesync.services.shopify_client import ShopifyAPIError

logger = get_logger(__name__)


class WebhookAPI(Protocol):
    async def list_webhook_subscriptions(self) -> list[dict[str, Any]]:
        ...

    async def create_webhook_subscription(self, topic: str, callback_url: str) -> dict[str, Any]:
        ...

    async def delete_webhook_subscription(self, subscription_id: str) -> str:
        ...


def to_graphql_topic(topic: str) -> str:
    """products/create -> PRODUCTS_CREATE"""
    return topic.upper().replace("/", "_")


@dataclass(frozen=True)
class WebhookTopic:
    topic: str
    path: str

    @property
    def graphql_topic(self) -> str:
        return to_graphql_topic(self.topic)


# Topics that need no protected customer data approval
DEFAULT_WEBHOOK_TOPICS: tuple[WebhookTopic, ...] = (
    WebhookTopic("products/create", "/webhooks/products/create"),
    WebhookTopic("products/update", "/webhooks/products/update"),
    WebhookTopic("app/uninstalled", "/webhooks/app/uninstalled"),
    WebhookTopic("app/scopes_update", "/webhooks/app/scopes_update"),
)


@dataclass(frozen=True)
class WebhookSubscription:
    id: str
    topic: str
    callback_url: Optional[str]

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "WebhookSubscription":
        endpoint = node.get("endpoint") or {}
        return cls(
            id=node["id"],
            topic=node.get("topic") or "",
            # Only HTTP endpoints carry a callbackUrl (EventBridge/PubSub do not)
            callback_url=endpoint.get("callbackUrl"),
        )

    def points_at(self, base_url: str) -> bool:
        return bool(self.callback_url) and base_url in self.callback_url


class TopicStatus(str, Enum):
    CREATED = "created"
    EXISTS = "exists"
    FAILED = "failed"


@dataclass
class TopicResult:
    topic: str
    status: TopicStatus
    callback_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ReconciliationResult:
    topics: list[TopicResult] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    delete_failures: list[str] = field(default_factory=list)

    def count(self, status: TopicStatus) -> int:
        return sum(1 for result in self.topics if result.status is status)

    @property
    def created(self) -> int:
        return self.count(TopicStatus.CREATED)

    @property
    def failed(self) -> int:
        return self.count(TopicStatus.FAILED) + len(self.delete_failures)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.deleted)


class WebhookReconciler:
    """Diffs desired topics against a shop's actual subscriptions."""

    def __init__(
        self,
        client: WebhookAPI,
        topics: tuple[WebhookTopic, ...] = DEFAULT_WEBHOOK_TOPICS,
    ) -> None:
        self.client = client
        self.topics = topics

    async def reconcile(self, base_url: str) -> ReconciliationResult:
        """
        Converge subscriptions onto `base_url`.

        Listing failures propagate (nothing can be diffed without the actual
        set). Individual deletes and creates fail independently and are
        reported in the result.
        """
        base_url = base_url.rstrip("/")
        actual = [
            WebhookSubscription.from_node(node)
            for node in await self.client.list_webhook_subscriptions()
        ]
        result = ReconciliationResult()

        stale = [sub for sub in actual if sub.callback_url and not sub.points_at(base_url)]
        for subscription in stale:
            try:
                await self._delete(subscription)
                result.deleted.append(subscription.id)
            except ReconciliationPartialFailure as e:
                logger.error("Failed to delete stale webhook", error=str(e), id=subscription.id)
                result.delete_failures.append(subscription.id)

        current = {sub.topic for sub in actual if sub.points_at(base_url)}
        for webhook in self.topics:
            if webhook.graphql_topic in current:
                result.topics.append(TopicResult(webhook.topic, TopicStatus.EXISTS))
                continue

            callback_url = f"{base_url}{webhook.path}"
            try:
                await self._create(webhook, callback_url)
            except ReconciliationPartialFailure as e:
                logger.error("Failed to register webhook", error=str(e))
                result.topics.append(
                    TopicResult(webhook.topic, TopicStatus.FAILED, callback_url, error=str(e))
                )
                continue
            result.topics.append(TopicResult(webhook.topic, TopicStatus.CREATED, callback_url))

        logger.info(
            "Webhooks reconciled",
            base_url=base_url,
            created=result.created,
            deleted=len(result.deleted),
            failed=result.failed,
        )
        return result

    async def _delete(self, subscription: WebhookSubscription) -> None:
        try:
            await self.client.delete_webhook_subscription(subscription.id)
        except ShopifyAPIError as e:
            raise ReconciliationPartialFailure(subscription.topic, str(e)) from e
        logger.info(
            "Deleted stale webhook",
            topic=subscription.topic,
            callback_url=subscription.callback_url,
        )

    async def _create(self, webhook: WebhookTopic, callback_url: str) -> None:
        try:
            await self.client.create_webhook_subscription(webhook.graphql_topic, callback_url)
        except ShopifyAPIError as e:
            raise ReconciliationPartialFailure(webhook.topic, str(e)) from e
        logger.info("Registered webhook", topic=webhook.topic, callback_url=callback_url)
