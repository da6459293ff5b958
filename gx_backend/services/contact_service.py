from __future__ import annotations

import logging
import re
from email.headerregistry import Address
from email.message import EmailMessage
from email.utils import make_msgid
from typing import List

from gx_backend.core.config import Settings, settings
from gx_backend.core.email import MailTransport, build_transport
from gx_backend.core.errors import DispatchFailedError, ServiceUnavailableError
from gx_backend.schemas.contact import DispatchResult, EmailRenderOutput

logger = logging.getLogger(__name__)

PRIORITY_HEADERS = {
    "X-Priority": "1",
    "X-MSMail-Priority": "High",
    "Importance": "high",
}

LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


def single_line(value: str) -> str:
    """Collapse line breaks so a value is safe to use as a header."""
    return LINE_BREAKS.sub(" ", value)


class ContactService:
    """Deliver rendered contact emails to the configured recipients."""

    def __init__(
        self,
        transport: MailTransport,
        sender_address: str,
        sender_name: str,
        recipients: List[str],
    ) -> None:
        self.transport = transport
        self.sender_address = sender_address
        self.sender_name = sender_name
        self.recipients = list(recipients)

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ContactService":
        return cls(
            transport=build_transport(config),
            sender_address=config.EMAIL_FROM,
            sender_name=config.EMAIL_FROM_NAME,
            recipients=config.email_recipients,
        )

    def _message_id_domain(self) -> str:
        if "@" in self.sender_address:
            return self.sender_address.rsplit("@", 1)[1]
        return "localhost"

    def build_email_message(
        self, rendered: EmailRenderOutput, reply_to: str
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = Address(display_name=self.sender_name, addr_spec=self.sender_address)
        msg["To"] = ", ".join(self.recipients)
        msg["Reply-To"] = reply_to
        msg["Subject"] = single_line(rendered.subject)
        msg["Message-ID"] = make_msgid(domain=self._message_id_domain())
        for header, value in PRIORITY_HEADERS.items():
            msg[header] = value

        msg.set_content(rendered.text)
        msg.add_alternative(rendered.html, subtype="html")
        return msg

    async def send(self, rendered: EmailRenderOutput, reply_to: str) -> DispatchResult:
        """Verify the relay, then make a single delivery attempt.

        Raises ServiceUnavailableError when verification fails (nothing is
        sent) and DispatchFailedError when the send itself fails.
        """
        try:
            await self.transport.verify()
        except Exception as exc:
            raise ServiceUnavailableError(cause=exc) from exc

        try:
            if not self.recipients:
                raise RuntimeError("EMAIL_TO is not configured")
            message = self.build_email_message(rendered, reply_to)
            await self.transport.send_message(message)
        except Exception as exc:
            raise DispatchFailedError(cause=exc) from exc

        return DispatchResult(message_id=message["Message-ID"])
