"""Identity provider webhook: signature verification, sync and idempotency."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from svix.webhooks import Webhook

from superintern.auth.models import ProcessedWebhookEvent

SECRET = "whsec_" + base64.b64encode(b"superintern-webhook-test-secret").decode()


def _user_event(user_id="user_hook", email="hook@example.com", event_type="user.created"):
    return {
        "type": event_type,
        "data": {
            "id": user_id,
            "first_name": "Hedy",
            "last_name": "Lamarr",
            "email_addresses": [{"id": "idn_1", "email_address": email}],
            "primary_email_address_id": "idn_1",
        },
    }


def _signed(event, msg_id="msg_1", secret=SECRET):
    body = json.dumps(event)
    timestamp = datetime.now(timezone.utc)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": Webhook(secret).sign(msg_id, timestamp, body),
        "content-type": "application/json",
    }
    return body, headers


@pytest.fixture
def configured(services):
    services.webhooks.secret = SECRET
    return services


def test_user_created_upserts_profile(client, configured):
    body, headers = _signed(_user_event())

    response = client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "duplicate": False, "handled": True}
    profile = configured.profiles.get_profile("user_hook")
    assert profile.email == "hook@example.com"
    assert profile.full_name == "Hedy Lamarr"


def test_replayed_event_is_acknowledged_once(client, configured):
    body, headers = _signed(_user_event())
    client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    replay = client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    assert replay.status_code == 200
    assert replay.json()["duplicate"] is True


def test_invalid_signature_rejected(client, configured):
    other = "whsec_" + base64.b64encode(b"some-other-secret-entirely").decode()
    body, headers = _signed(_user_event(), secret=other)

    response = client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    assert response.status_code == 400
    assert configured.profiles.get_profile("user_hook") is None


def test_tampered_body_rejected(client, configured):
    body, headers = _signed(_user_event())
    tampered = body.replace("hook@example.com", "evil@example.com")

    assert client.post("/api/v1/webhooks/clerk", content=tampered, headers=headers).status_code == 400


def test_missing_headers_rejected(client, configured):
    response = client.post("/api/v1/webhooks/clerk", content=json.dumps(_user_event()))

    assert response.status_code == 400


def test_unconfigured_secret_is_503(client, services):
    services.webhooks.secret = None
    body, headers = _signed(_user_event())

    assert client.post("/api/v1/webhooks/clerk", content=body, headers=headers).status_code == 503


def test_user_event_without_email_rejected(client, configured):
    event = _user_event()
    event["data"]["email_addresses"] = []
    body, headers = _signed(event)

    assert client.post("/api/v1/webhooks/clerk", content=body, headers=headers).status_code == 400


def test_other_events_are_acknowledged(client, configured):
    body, headers = _signed({"type": "session.created", "data": {"id": "sess_1"}}, msg_id="msg_2")

    response = client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["handled"] is False


def test_user_updated_keeps_intern_fields(client, configured, make_profile):
    make_profile("user_hook", email="hook@example.com", university="MIT")
    body, headers = _signed(_user_event(email="new@example.com", event_type="user.updated"))

    client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    profile = configured.profiles.get_profile("user_hook")
    assert profile.email == "new@example.com"
    assert profile.university == "MIT"


def test_cleanup_old_events(configured, db):
    configured.webhooks.mark_event_processed("msg_old", "user.created")
    configured.webhooks.mark_event_processed("msg_new", "user.created")
    with db.session() as session:
        session.query(ProcessedWebhookEvent).filter(
            ProcessedWebhookEvent.event_id == "msg_old"
        ).update({ProcessedWebhookEvent.processed_at: datetime.utcnow() - timedelta(days=45)})
        session.commit()

    assert configured.webhooks.cleanup_old_events(days=30) == 1
    assert configured.webhooks.is_event_processed("msg_new")
    assert not configured.webhooks.is_event_processed("msg_old")


def test_verify_parses_body_itself(configured, monkeypatch):
    body, headers = _signed(_user_event())
    monkeypatch.setattr(Webhook, "verify", lambda self, payload, headers: None)

    event = configured.webhooks.verify(body.encode(), headers)

    assert event["type"] == "user.created"
    assert event["data"]["id"] == "user_hook"


def test_signed_non_json_body_rejected(client, configured):
    msg_id = "msg_3"
    timestamp = datetime.now(timezone.utc)
    body = "not json"
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": Webhook(SECRET).sign(msg_id, timestamp, body),
    }

    response = client.post("/api/v1/webhooks/clerk", content=body, headers=headers)

    assert response.status_code == 400
    assert not configured.webhooks.is_event_processed(msg_id)
