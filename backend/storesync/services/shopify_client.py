"""
Shopify GraphQL client for API interactions.
Handles token management, GraphQL error surfacing and the webhook API.
"""
from typing import Any, Optional

import httpx

from storesync.core.config import settings
from storesync.core.logging import get_logger
from storesync.core.security import decrypt_token

logger = get_logger(__name__)


class ShopifyGraphQLClient:
    """
    Async Shopify Admin GraphQL API client.

    Errors are never retried here: rate limits, auth expiry and transport
    failures surface as ShopifyAPIError and the caller decides what to do.
    """

    GRAPHQL_ENDPOINT = "https://{domain}/admin/api/{version}/graphql.json"

    def __init__(
        self,
        access_token_encrypted: str,
        shop_domain: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.access_token = decrypt_token(access_token_encrypted)
        self.shop_domain = shop_domain
        self.endpoint = self.GRAPHQL_ENDPOINT.format(
            domain=shop_domain,
            version=api_version or settings.shopify_api_version,
        )
        self.timeout = timeout or settings.shopify_request_timeout

    async def execute_query(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Execute a GraphQL query against Shopify API.

        Args:
            query: GraphQL query string
            variables: Optional query variables

        Returns:
            Query result data

        Raises:
            ShopifyAPIError: On transport, HTTP or GraphQL errors
        """
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }

        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.endpoint,
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                logger.warning(
                    "Shopify HTTP error",
                    status_code=status_code,
                    shop=self.shop_domain,
                )
                raise ShopifyAPIError(
                    f"HTTP error: {status_code}",
                    status_code=status_code,
                ) from e
            except httpx.RequestError as e:
                raise ShopifyAPIError(f"Request failed: {str(e)}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ShopifyAPIError(
                f"Invalid JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e

        if "errors" in data:
            logger.error(
                "Shopify GraphQL errors",
                errors=data["errors"],
                shop=self.shop_domain,
            )
            raise ShopifyAPIError(data["errors"])

        return data.get("data") or {}

    async def get_shop_info(self) -> dict[str, Any]:
        """Get basic shop information."""
        query = """
        query GetShop {
            shop {
                id
                name
                email
                myshopifyDomain
                currencyCode
                ianaTimezone
                plan {
                    displayName
                }
            }
        }
        """
        data = await self.execute_query(query)
        shop = data.get("shop")
        if not shop:
            raise ShopifyAPIError("Shop query returned no shop")
        return shop

    async def list_webhook_subscriptions(self, first: int = 100) -> list[dict[str, Any]]:
        """Fetch every webhook subscription registered by this app."""
        query = """
        query GetWebhookSubscriptions($first: Int!, $after: String) {
            webhookSubscriptions(first: $first, after: $after) {
                pageInfo {
                    hasNextPage
                    endCursor
                }
                edges {
                    node {
                        id
                        topic
                        endpoint {
                            __typename
                            ... on WebhookHttpEndpoint {
                                callbackUrl
                            }
                        }
                    }
                }
            }
        }
        """
        subscriptions: list[dict[str, Any]] = []
        cursor = None
        while True:
            data = await self.execute_query(query, {"first": first, "after": cursor})
            connection = data.get("webhookSubscriptions") or {}
            subscriptions.extend(edge["node"] for edge in connection.get("edges", []))

            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return subscriptions
            cursor = page_info.get("endCursor")
            if not cursor:
                raise ShopifyAPIError("webhookSubscriptions reported more pages without a cursor")

    async def create_webhook_subscription(
        self,
        topic: str,
        callback_url: str,
    ) -> dict[str, Any]:
        """Register a JSON webhook for a GraphQL topic enum such as PRODUCTS_CREATE."""
        mutation = """
        mutation WebhookSubscriptionCreate($topic: WebhookSubscriptionTopic!, $webhookSubscription: WebhookSubscriptionInput!) {
            webhookSubscriptionCreate(topic: $topic, webhookSubscription: $webhookSubscription) {
                webhookSubscription {
                    id
                    topic
                    endpoint {
                        __typename
                        ... on WebhookHttpEndpoint {
                            callbackUrl
                        }
                    }
                }
                userErrors {
                    field
                    message
                }
            }
        }
        """
        data = await self.execute_query(
            mutation,
            {
                "topic": topic,
                "webhookSubscription": {"callbackUrl": callback_url, "format": "JSON"},
            },
        )
        result = data.get("webhookSubscriptionCreate") or {}
        _raise_user_errors(result)
        return result.get("webhookSubscription") or {}

    async def delete_webhook_subscription(self, subscription_id: str) -> str:
        """Delete a webhook subscription by GID; returns the deleted id."""
        mutation = """
        mutation WebhookSubscriptionDelete($id: ID!) {
            webhookSubscriptionDelete(id: $id) {
                deletedWebhookSubscriptionId
                userErrors {
                    field
                    message
                }
            }
        }
        """
        data = await self.execute_query(mutation, {"id": subscription_id})
        result = data.get("webhookSubscriptionDelete") or {}
        _raise_user_errors(result)
        return result.get("deletedWebhookSubscriptionId") or subscription_id


def _raise_user_errors(result: dict[str, Any]) -> None:
    user_errors = result.get("userErrors") or []
    if user_errors:
        raise ShopifyAPIError(user_errors)


class ShopifyAPIError(Exception):
    """Network, HTTP, GraphQL or userErrors failure reported by Shopify."""

    def __init__(self, message: str | list, status_code: Optional[int] = None) -> None:
        if isinstance(message, list):
            message = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in message
            )
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429
