"""Log processors and request context."""

import structlog

from superintern.logging_config import add_app_context, bind_request_context, redact_secrets


def test_secrets_are_masked():
    event = redact_secrets(None, "info", {"event": "x", "token": "abc", "user_id": "u1"})

    assert event == {"event": "x", "token": "***", "user_id": "u1"}


def test_events_carry_app_context():
    event = add_app_context(None, "info", {"event": "x"})

    assert event["app"] == "superintern"
    assert "env" in event


def test_request_context_replaces_previous_request():
    bind_request_context("first", "GET", "/a")
    bind_request_context("second", "POST", "/b")

    context = structlog.contextvars.get_contextvars()
    structlog.contextvars.clear_contextvars()

    assert context == {"request_id": "second", "method": "POST", "path": "/b"}


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


def test_request_id_is_generated(client):
    assert client.get("/health").headers["x-request-id"]
