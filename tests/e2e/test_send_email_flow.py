"""End-to-end tests for the contact form relay."""
import logging
from unittest.mock import MagicMock

import pytest
import redis

from gx_backend.core import rate_limiter
from gx_backend.core.config import settings
from gx_backend.core.rate_limiter import _RedisBackend

VALID_PAYLOAD = {"name": "Jo Doe", "email": "jo@example.com", "message": "Hello, I need help."}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "GX Services Backend API is running"
    assert payload["environment"] == settings.ENVIRONMENT
    assert payload["timestamp"].endswith("Z")


def test_send_minimal_payload(client, fake_transport):
    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == (
        "Your message has been sent successfully! We will get back to you soon."
    )
    assert payload["messageId"]
    assert len(fake_transport.sent) == 1
    message = fake_transport.sent[0]
    assert message["Message-ID"] == payload["messageId"]
    assert message["Reply-To"] == "jo@example.com"
    assert message["Subject"] == "New Contact Form Submission - Jo Doe"


def test_send_normalizes_email_for_reply_to(client, fake_transport):
    response = client.post(
        "/send-email",
        json={**VALID_PAYLOAD, "email": "  Jo@Example.COM ", "service": "procurement"},
    )

    assert response.status_code == 200
    message = fake_transport.sent[0]
    assert message["Reply-To"] == "jo@example.com"
    assert "Service Interest: Procurement Services" in message.get_body(
        preferencelist=("plain",)
    ).get_content()


def test_send_accepts_urlencoded_form(client, fake_transport):
    response = client.post("/send-email", data=VALID_PAYLOAD)

    assert response.status_code == 200
    assert len(fake_transport.sent) == 1


def test_validation_errors_in_declaration_order(client, fake_transport):
    response = client.post(
        "/send-email", json={"name": "J", "email": "bad", "message": "short"}
    )

    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Validation error"
    assert [error["field"] for error in payload["errors"]] == ["name", "email", "message"]
    assert all(error["message"] for error in payload["errors"])
    assert fake_transport.verify_calls == 0


def test_empty_body_reports_required_fields(client):
    response = client.post("/send-email")

    assert response.status_code == 400
    assert [e["field"] for e in response.json()["errors"]] == ["name", "email", "message"]


def test_malformed_json(client, fake_transport):
    response = client.post(
        "/send-email",
        content=b'{"name": "Jo Doe",',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid JSON in request body"}
    assert fake_transport.sent == []


def test_body_too_large(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_BODY_BYTES", 64)

    response = client.post(
        "/send-email", json={**VALID_PAYLOAD, "message": "x" * 200}
    )

    assert response.status_code == 413
    assert response.json() == {"success": False, "message": "Request body too large"}


def test_verification_failure(client, fake_transport):
    fake_transport.verify_error = ConnectionRefusedError("relay down")

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 500
    payload = response.json()
    assert payload == {
        "success": False,
        "message": "Email service temporarily unavailable. Please try again later.",
    }
    assert "messageId" not in payload
    assert fake_transport.sent == []


def test_send_failure_echoes_detail_outside_production(client, fake_transport, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    fake_transport.send_error = OSError("550 mailbox unavailable")

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 500
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == (
        "Failed to send message. Please try again later or contact us directly."
    )
    assert payload["error"] == "550 mailbox unavailable"


def test_send_failure_hides_detail_in_production(client, fake_transport, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    fake_transport.send_error = OSError("550 mailbox unavailable")

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 500
    assert "error" not in response.json()


def test_unexpected_failure_is_classified_as_dispatch_failure(client, monkeypatch):
    def _boom(form):
        raise ValueError("template exploded")

    monkeypatch.setattr("gx_backend.api.routes.contact.render_contact_email", _boom)

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 500
    assert response.json()["message"] == (
        "Failed to send message. Please try again later or contact us directly."
    )


def test_process_keeps_serving_after_failure(client, fake_transport):
    fake_transport.verify_error = ConnectionRefusedError("relay down")
    assert client.post("/send-email", json=VALID_PAYLOAD).status_code == 500

    fake_transport.verify_error = None
    assert client.post("/send-email", json=VALID_PAYLOAD).status_code == 200


def test_success_is_logged_with_submitter(client, caplog):
    caplog.set_level(logging.INFO, logger="gx_backend.api.routes.contact")

    response = client.post("/send-email", json=VALID_PAYLOAD)

    records = [r for r in caplog.records if getattr(r, "event_type", None) == "contact_email_sent"]
    assert len(records) == 1
    record = records[0]
    assert record.message_id == response.json()["messageId"]
    assert record.submitter_email == "jo@example.com"
    assert record.submitter_name == "Jo Doe"
    assert record.submitted_at.endswith("Z")


def test_failure_is_logged_with_cause(client, fake_transport, caplog):
    caplog.set_level(logging.INFO, logger="gx_backend.api.routes.contact")
    fake_transport.verify_error = ConnectionRefusedError("relay down")

    client.post("/send-email", json=VALID_PAYLOAD)

    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert errors
    assert "relay down" in errors[0].getMessage()
    assert errors[0].exc_info is not None


def test_validation_failure_not_logged_as_error(client, caplog):
    caplog.set_level(logging.INFO, logger="gx_backend.api.routes.contact")

    client.post("/send-email", json={"name": "J", "email": "bad", "message": "short"})

    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


@pytest.mark.parametrize(
    "method, path",
    [("GET", "/nope"), ("POST", "/api/send-email"), ("GET", "/send-email"), ("DELETE", "/health")],
)
def test_unknown_routes(client, method, path):
    response = client.request(method, path)

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Endpoint not found"}


def test_rate_limit_blocks_excess_requests(client, fake_transport, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 3)

    for _ in range(3):
        assert client.post("/send-email", json=VALID_PAYLOAD).status_code == 200

    blocked = client.post("/send-email", json=VALID_PAYLOAD)

    assert blocked.status_code == 429
    assert blocked.json() == {
        "success": False,
        "message": "Too many requests from this IP, please try again later.",
    }
    assert "retry-after" in blocked.headers
    assert len(fake_transport.sent) == 3


def test_rate_limit_does_not_apply_to_health(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 1)

    for _ in range(3):
        assert client.get("/health").status_code == 200


def test_line_breaks_in_name_are_flattened_in_subject(client, fake_transport):
    response = client.post(
        "/send-email",
        json={**VALID_PAYLOAD, "name": "Jo\nDoe"},
    )

    assert response.status_code == 200
    message = fake_transport.sent[0]
    assert message["Subject"] == "New Contact Form Submission - Jo Doe"
    assert "Name: Jo\nDoe" in message.get_body(preferencelist=("plain",)).get_content()


def test_streamed_body_over_limit_is_rejected(client, fake_transport, monkeypatch):
    monkeypatch.setattr(settings, "MAX_BODY_BYTES", 64)

    def chunks():
        yield b'{"name": "Jo Doe", "email": "jo@example.com",'
        yield b'"message": "' + b"x" * 200 + b'"}'

    response = client.post(
        "/send-email",
        content=chunks(),
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 413
    assert response.json() == {"success": False, "message": "Request body too large"}
    assert fake_transport.sent == []


def test_declared_length_over_limit_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_BODY_BYTES", 16)

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 413


def test_non_json_content_type_is_not_parsed(client, fake_transport):
    response = client.post(
        "/send-email",
        content=b'{"name": "Jo Doe", "email": "jo@example.com", "message": "Hello there!"}',
        headers={"Content-Type": "text/plain"},
    )

    assert response.status_code == 400
    assert [e["field"] for e in response.json()["errors"]] == ["name", "email", "message"]
    assert fake_transport.sent == []


def test_json_content_type_with_charset(client):
    response = client.post(
        "/send-email",
        content=b'{"name": "Jo Doe", "email": "jo@example.com", "message": "Hello there!"}',
        headers={"Content-Type": "application/json; charset=utf-8"},
    )

    assert response.status_code == 200


def test_rate_limit_headers_on_success(client):
    limit = settings.RATE_LIMIT_MAX_REQUESTS

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.headers["ratelimit-limit"] == str(limit)
    assert response.headers["ratelimit-remaining"] == str(limit - 1)
    assert int(response.headers["ratelimit-reset"]) > 0


def test_rate_limit_headers_on_validation_error(client):
    limit = settings.RATE_LIMIT_MAX_REQUESTS

    response = client.post("/send-email", json={"name": "J"})

    assert response.status_code == 400
    assert response.headers["ratelimit-remaining"] == str(limit - 1)


def test_rate_limit_headers_on_blocked_request(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 1)
    client.post("/send-email", json=VALID_PAYLOAD)

    blocked = client.post("/send-email", json=VALID_PAYLOAD)

    assert blocked.status_code == 429
    assert blocked.headers["ratelimit-remaining"] == "0"
    assert blocked.headers["retry-after"] == blocked.headers["ratelimit-reset"]


def test_unreachable_redis_does_not_break_endpoint(client, fake_transport, monkeypatch):
    redis_client = MagicMock()
    redis_client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
    redis_client.scan.return_value = (0, [])
    monkeypatch.setattr(rate_limiter, "_backend", _RedisBackend(redis_client))

    response = client.post("/send-email", json=VALID_PAYLOAD)

    assert response.status_code == 200
    assert len(fake_transport.sent) == 1


def test_startup_is_logged_by_app_module(client, caplog):
    startup = [
        r for r in caplog.get_records("setup") if r.getMessage().startswith("Starting ")
    ]

    assert startup
    assert {r.name for r in startup} == {"gx_backend.main"}
