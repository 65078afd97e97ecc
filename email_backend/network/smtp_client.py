"""
SMTP relay for locally stored mail.

When an SMTP host is configured, mail sent through the local provider is also
handed to this relay so that recipients outside the local mailbox receive it.
"""
import logging
import smtplib
from typing import List, Optional, Sequence

from email_backend import config
from email_backend.models import OutgoingAttachment
from email_backend.network.mime import build_mime_message
from email_backend.utils.errors import UnavailableError, UpstreamError


logger = logging.getLogger(__name__)


class SmtpRelay:
    """
    Outbound SMTP transport with password authentication.

    Connection settings default to the module-level config values and are
    read at call time.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._timeout = timeout

    @property
    def host(self) -> Optional[str]:
        return self._host or config.SMTP_HOST

    @property
    def port(self) -> int:
        return self._port or config.SMTP_PORT

    def is_available(self) -> bool:
        """True when an SMTP host is configured."""
        return bool(self.host)

    def _connect(self) -> smtplib.SMTP:
        """Open a connection and log in when credentials are configured."""
        host = self.host
        port = self.port
        timeout = self._timeout or config.SMTP_TIMEOUT
        user = self._user or config.SMTP_USER
        password = self._password or config.SMTP_PASSWORD

        logger.info(f"Connecting to SMTP server {host}:{port}")

        # Port 465 uses SSL from the start, other ports use STARTTLS
        if port == 465:
            connection = smtplib.SMTP_SSL(host, port, timeout=timeout)
        else:
            connection = smtplib.SMTP(host, port, timeout=timeout)
            connection.starttls()

        if user and password:
            connection.login(user, password)
        return connection

    def send(
        self,
        from_address: str,
        to: Sequence[str],
        subject: str,
        body: str,
        html_body: Optional[str] = None,
        cc: Optional[Sequence[str]] = None,
        bcc: Optional[Sequence[str]] = None,
        attachments: Optional[List[OutgoingAttachment]] = None,
    ) -> None:
        """
        Send a message through the configured SMTP server.

        Raises:
            UnavailableError: If no SMTP host is configured.
            UpstreamError: If the server refuses the message or cannot be reached.
        """
        if not self.is_available():
            raise UnavailableError("No SMTP transport is configured")

        mime_msg = build_mime_message(
            from_address, to, subject, body,
            html_body=html_body, cc=cc, attachments=attachments,
        )
        envelope = list(to) + list(cc or []) + list(bcc or [])

        try:
            connection = self._connect()
        except (smtplib.SMTPException, OSError) as e:
            raise UpstreamError(f"Failed to connect to SMTP server {self.host}:{self.port}: {str(e)}") from e

        try:
            logger.info(f"Relaying email to {len(envelope)} recipient(s)")
            refused = connection.sendmail(from_address, envelope, mime_msg.as_string())
            if refused:
                raise UpstreamError(f"Failed to send to recipients: {', '.join(refused.keys())}")
        except smtplib.SMTPRecipientsRefused as e:
            raise UpstreamError(f"Recipients refused: {str(e)}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise UpstreamError(f"SMTP error: {str(e)}") from e
        finally:
            try:
                connection.quit()
            except (smtplib.SMTPException, OSError):
                connection.close()
