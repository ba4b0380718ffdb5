"""Identity provider (Clerk) webhook verification and profile sync."""

import json
from datetime import datetime, timedelta
from typing import Any

from svix.webhooks import Webhook, WebhookVerificationError

from superintern.auth.models import ProcessedWebhookEvent
from superintern.auth.profiles import ProfileService
from superintern.logging_config import get_logger
from superintern.settings import settings
from superintern.storage.db import Database
from superintern.storage.retry import store_retry

logger = get_logger(__name__)

SIGNATURE_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")
USER_EVENTS = {"user.created", "user.updated"}
SOURCE = "clerk"


class WebhookNotConfiguredError(Exception):
    """No signing secret is configured."""
    pass


class WebhookSignatureError(ValueError):
    """Signature headers missing or signature invalid."""
    pass


class WebhookPayloadError(ValueError):
    """Event payload lacks required data."""
    pass


class IdentityWebhookService:
    """Verifies signed identity events and mirrors users into profiles."""

    def __init__(self, db: Database, profile_service: ProfileService, secret: str | None = None):
        self.db = db
        self.profiles = profile_service
        self.secret = secret if secret is not None else settings.clerk_webhook_secret
        self.logger = get_logger(__name__)

    def verify(self, payload: bytes, headers: dict[str, str]) -> dict[str, Any]:
        """Verify the Svix signature of a webhook request.

        Args:
            payload: Raw request body
            headers: Request headers (lower-case names)

        Returns:
            Parsed event

        Raises:
            WebhookNotConfiguredError: If no signing secret is configured
            WebhookSignatureError: If headers are missing or the signature is invalid
            WebhookPayloadError: If the signed body is not a JSON object
        """
        missing = [name for name in SIGNATURE_HEADERS if not headers.get(name)]
        if missing:
            raise WebhookSignatureError("Missing svix headers")

        if not self.secret:
            raise WebhookNotConfiguredError("Webhook signing secret not configured")

        # Only the exception matters; newer svix releases return None here
        try:
            Webhook(self.secret).verify(
                payload,
                {name: headers[name] for name in SIGNATURE_HEADERS},
            )
        except WebhookVerificationError as e:
            raise WebhookSignatureError("Invalid webhook signature") from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookPayloadError("Invalid JSON payload") from e

        if not isinstance(event, dict):
            raise WebhookPayloadError("Invalid JSON payload")
        return event

    def is_event_processed(self, event_id: str) -> bool:
        """Check if a webhook event has already been processed."""
        with self.db.session() as session:
            existing = session.query(ProcessedWebhookEvent).filter(
                ProcessedWebhookEvent.event_id == event_id,
                ProcessedWebhookEvent.source == SOURCE,
            ).first()
            return existing is not None

    @store_retry("webhook_mark_processed")
    def mark_event_processed(self, event_id: str, event_type: str) -> None:
        """Mark a webhook event as processed."""
        with self.db.session() as session:
            session.add(ProcessedWebhookEvent(
                event_id=event_id,
                event_type=event_type,
                source=SOURCE,
                processed_at=datetime.utcnow(),
            ))
            session.commit()

    @store_retry("webhook_cleanup")
    def cleanup_old_events(self, days: int = 30) -> int:
        """Remove processed-event records older than ``days``.

        Returns:
            Number of deleted records
        """
        cutoff = datetime.utcnow() - timedelta(days=days)
        with self.db.session() as session:
            deleted = session.query(ProcessedWebhookEvent).filter(
                ProcessedWebhookEvent.processed_at < cutoff
            ).delete(synchronize_session=False)
            session.commit()
            return deleted

    def handle_event(self, event: dict[str, Any]) -> bool:
        """Apply a verified event.

        Args:
            event: Verified event body

        Returns:
            True if the event changed a profile, False if it was ignored

        Raises:
            WebhookPayloadError: If a user event lacks an id or e-mail
        """
        event_type = event.get("type", "")
        if event_type not in USER_EVENTS:
            self.logger.info("identity_webhook_unhandled", event_type=event_type)
            return False

        data = event.get("data") or {}
        user_id = data.get("id")
        addresses = data.get("email_addresses") or []
        if not user_id or not addresses or not addresses[0].get("email_address"):
            raise WebhookPayloadError("Missing required user data")

        email = self._primary_email(data)
        self.profiles.upsert_profile(
            user_id,
            email,
            {
                "first_name": data.get("first_name") or "",
                "last_name": data.get("last_name") or "",
            },
        )
        self.logger.info("identity_user_synced", user_id=user_id, event_type=event_type)
        return True

    def _primary_email(self, data: dict[str, Any]) -> str:
        addresses = data.get("email_addresses") or []
        primary_id = data.get("primary_email_address_id")
        for address in addresses:
            if primary_id and address.get("id") == primary_id:
                return address["email_address"]
        return addresses[0]["email_address"]
