"""
Cursor paginator over Shopify GraphQL connections.
"""
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from storesync.core.config import settings
from storesync.core.logging import get_logger
from storesync.services.shopify_client import ShopifyAPIError
from storesync.services.shopify_queries import EntityQuery

logger = get_logger(__name__)


class GraphQLExecutor(Protocol):
    async def execute_query(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class PageInfo:
    has_next: bool
    cursor: Optional[str]


@dataclass(frozen=True)
class Page:
    nodes: list[dict[str, Any]]
    page_info: PageInfo


class RemotePaginator:
    """
    Walks one paginated connection from the first page to the last.

    Pages are fetched strictly one after another since each request needs
    the previous response's cursor. There is no resume token: a new call to
    pages() always starts from the beginning.
    """

    def __init__(self, client: GraphQLExecutor, page_size: Optional[int] = None) -> None:
        self.client = client
        self.page_size = page_size or settings.sync_page_size

    async def pages(
        self,
        query: EntityQuery,
        page_size: Optional[int] = None,
    ) -> AsyncIterator[Page]:
        """Yield pages until Shopify reports hasNextPage = false."""
        document = query.build()
        first = page_size or self.page_size
        cursor: Optional[str] = None
        page_number = 0

        while True:
            data = await self.client.execute_query(document, query.variables(first, cursor))
            page = _parse_page(data, query.root)
            page_number += 1

            logger.debug(
                "Fetched page",
                connection=query.root,
                page=page_number,
                nodes=len(page.nodes),
                has_next=page.page_info.has_next,
            )
            yield page

            if not page.page_info.has_next:
                return
            if not page.page_info.cursor:
                raise ShopifyAPIError(
                    f"{query.root} reported another page without an endCursor"
                )
            cursor = page.page_info.cursor


def _parse_page(data: dict[str, Any], root: str) -> Page:
    connection = data.get(root)
    if connection is None:
        raise ShopifyAPIError(f"Response is missing the {root} connection")

    page_info = connection.get("pageInfo") or {}
    return Page(
        nodes=[edge["node"] for edge in connection.get("edges") or []],
        page_info=PageInfo(
            has_next=bool(page_info.get("hasNextPage")),
            cursor=page_info.get("endCursor"),
        ),
    )
