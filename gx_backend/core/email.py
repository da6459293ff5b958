from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional, Protocol

from gx_backend.core.config import Settings, settings

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    """Anything that can check a relay and hand it a message."""

    async def verify(self) -> None:
        ...

    async def send_message(self, message: EmailMessage) -> None:
        ...


class SmtpTransport:
    """SMTP relay client.

    Configuration is fixed at construction and every call opens its own
    connection, so one instance can be shared by concurrent requests. The
    blocking smtplib work runs in a worker thread.

    ``reject_unauthorized=False`` disables certificate and hostname checks
    so relays behind self-signed intermediates are accepted. This is a
    deliberate trade-off exposed through SMTP_TLS_REJECT_UNAUTHORIZED.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int,
        secure: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        reject_unauthorized: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.secure = secure
        self.username = username
        self._password = password
        self.reject_unauthorized = reject_unauthorized
        self.timeout = timeout

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.reject_unauthorized:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _open(self) -> smtplib.SMTP:
        if not self.host:
            raise RuntimeError("SMTP_HOST is not configured")

        if self.secure:
            return smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=self._tls_context()
            )

        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls(context=self._tls_context())
                server.ehlo()
        except Exception:
            server.close()
            raise
        return server

    def _connect(self) -> smtplib.SMTP:
        server = self._open()
        try:
            if self.username and self._password:
                server.login(self.username, self._password)
        except Exception:
            server.close()
            raise
        return server

    def _verify_sync(self) -> None:
        with self._connect() as server:
            server.noop()

    def _send_sync(self, message: EmailMessage) -> None:
        with self._connect() as server:
            server.send_message(message)

    async def verify(self) -> None:
        """Connect, negotiate TLS and authenticate without sending anything."""
        await asyncio.to_thread(self._verify_sync)

    async def send_message(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)
        logger.debug("SMTP relay %s:%s accepted message", self.host, self.port)


def build_transport(config: Settings = settings) -> SmtpTransport:
    """Build the process-wide SMTP transport from settings."""
    return SmtpTransport(
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
        secure=config.SMTP_SECURE,
        username=config.SMTP_USER,
        password=config.SMTP_PASS.get_secret_value() if config.SMTP_PASS else None,
        reject_unauthorized=config.SMTP_TLS_REJECT_UNAUTHORIZED,
        timeout=config.SMTP_TIMEOUT,
    )
