"""
Webhook base URL management routes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from storesync.core.app_url import resolve_app_url
from storesync.core.database import DbSession
from storesync.core.exceptions import AppUrlNotConfiguredError
from storesync.core.logging import get_logger
from storesync.routers.shops import get_client_factory
from storesync.schemas.webhook import WebhookUrlUpdateRequest, WebhookUrlUpdateResponse
from storesync.services.shop_bootstrap import ClientFactory, update_webhook_url

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/url")
async def get_webhook_url() -> dict:
    """The base URL webhook callbacks currently point at."""
    try:
        return {"url": resolve_app_url()}
    except AppUrlNotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e


@router.post("/url", response_model=WebhookUrlUpdateResponse)
async def set_webhook_url(
    request: WebhookUrlUpdateRequest,
    session: DbSession,
    client_factory: Annotated[ClientFactory, Depends(get_client_factory)],
) -> WebhookUrlUpdateResponse:
    """
    Point every shop's webhooks at a new base URL.

    Used when the public tunnel or deployment URL changes. Per-shop failures
    are reported in the response rather than failing the request.
    """
    try:
        update = await update_webhook_url(session, request.url, client_factory)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    return WebhookUrlUpdateResponse.model_validate(update)
