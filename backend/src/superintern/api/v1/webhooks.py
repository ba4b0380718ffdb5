"""Webhook endpoints for external services."""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from superintern.auth.webhooks import (
    WebhookNotConfiguredError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from superintern.logging_config import get_logger
from superintern.services import Services, get_services

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/clerk")
async def clerk_webhook(request: Request, services: Services = Depends(get_services)):
    """Handle identity provider (Clerk) webhook events.

    Verifies the Svix signature and mirrors user records into profiles.
    Uses database-backed idempotency to prevent duplicate processing.
    """
    payload = await request.body()
    headers = {name.lower(): value for name, value in request.headers.items()}
    webhooks = services.webhooks

    try:
        event = webhooks.verify(payload, headers)
    except WebhookNotConfiguredError:
        logger.error("clerk_webhook_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhooks not configured",
        )
    except (WebhookSignatureError, WebhookPayloadError) as e:
        logger.warning("clerk_webhook_rejected", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    event_id = headers["svix-id"]
    event_type = event.get("type", "")

    if webhooks.is_event_processed(event_id):
        logger.info("clerk_webhook_duplicate", event_id=event_id, event_type=event_type)
        return {"received": True, "duplicate": True}

    try:
        handled = webhooks.handle_event(event)
    except WebhookPayloadError as e:
        logger.warning("clerk_webhook_invalid_payload", event_id=event_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    webhooks.mark_event_processed(event_id, event_type)
    logger.info("clerk_webhook_processed", event_id=event_id, event_type=event_type, handled=handled)

    return {"received": True, "duplicate": False, "handled": handled}
