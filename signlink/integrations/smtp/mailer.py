import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from signlink.core.logging_config import configure_logging

logger = configure_logging("signlink.integrations.smtp", "signlink.log")


class EmailTransport:
    """
    Sends multipart (text + html) email through an SMTP relay.

    A new connection is opened per message; every socket operation is bound
    by ``timeout`` seconds so a stalled relay surfaces as an exception.
    """

    def __init__(self, host="", port=587, user="", password="", from_address="", secure=False, timeout=10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.secure = secure
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings):
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_address=settings.smtp_from,
            secure=settings.smtp_secure,
            timeout=settings.delivery_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_address)

    def _connect(self):
        if self.secure:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
        if self.user and self.password:
            server.login(self.user, self.password)
        return server

    def send(self, to: str, subject: str, text: str, html: str) -> None:
        if not self.is_configured:
            raise RuntimeError("Email delivery is not configured.")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        server = self._connect()
        try:
            server.send_message(msg)
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                logger.warning("SMTP quit failed after sending", exc_info=True)
        logger.info(f"Email sent to {to}")
