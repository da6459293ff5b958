from email.message import EmailMessage
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from gx_backend.api.deps import get_contact_service
from gx_backend.core.rate_limiter import reset_rate_limiter_state
from gx_backend.main import app
from gx_backend.services.contact_service import ContactService

SENDER = "noreply@gxservices.co.za"
SENDER_NAME = "GX Services Contact Form"
RECIPIENTS = ["info@gxservices.co.za", "sales@gxservices.co.za"]


class FakeTransport:
    """In-memory stand-in for SmtpTransport."""

    def __init__(
        self,
        verify_error: Optional[Exception] = None,
        send_error: Optional[Exception] = None,
    ):
        self.verify_error = verify_error
        self.send_error = send_error
        self.verify_calls = 0
        self.sent: List[EmailMessage] = []

    async def verify(self) -> None:
        self.verify_calls += 1
        if self.verify_error:
            raise self.verify_error

    async def send_message(self, message: EmailMessage) -> None:
        if self.send_error:
            raise self.send_error
        self.sent.append(message)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    reset_rate_limiter_state()
    yield
    reset_rate_limiter_state()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def contact_service(fake_transport) -> ContactService:
    return ContactService(
        transport=fake_transport,
        sender_address=SENDER,
        sender_name=SENDER_NAME,
        recipients=RECIPIENTS,
    )


@pytest.fixture
def client(contact_service):
    """
    TestClient with the contact service swapped for one backed by
    FakeTransport. The 'with' block runs the app lifespan.
    """
    app.dependency_overrides[get_contact_service] = lambda: contact_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
