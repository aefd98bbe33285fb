"""
Email channel: SMTP with STARTTLS (Gmail or any relay).
Set SMTP_USER, SMTP_PASSWORD (and optionally EMAIL_FROM, EMAIL_REPLY_TO) in .env.
Use a Gmail App Password (not your normal password).
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

from grant_notify.config import settings
from grant_notify.core.constants import CHANNEL_EMAIL
from grant_notify.core.errors import truncate_error_message
from grant_notify.services.channels.base import RenderedMessage, SendResult

logger = logging.getLogger(__name__)


def _from_address() -> str:
    if settings.email_from:
        return settings.email_from
    if settings.smtp_user:
        return f"{settings.organization_name} <{settings.smtp_user}>"
    return f"{settings.organization_name} <noreply@localhost>"


def _is_permanent_code(code: int | None) -> bool:
    return code is not None and 500 <= code < 600


def classify_smtp_error(exc: Exception, recipient: str) -> SendResult:
    """
    Normalize an smtplib failure into permanent / transient.
    5xx replies about the recipient or the message are permanent; 4xx replies,
    connection problems, timeouts and our own auth/sender problems are transient.
    """
    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        code, reply = exc.recipients.get(recipient, (None, b""))
        text = reply.decode("utf-8", "replace") if isinstance(reply, bytes) else str(reply)
        message = truncate_error_message(f"SMTP {code}: {text}")
        if _is_permanent_code(code):
            return SendResult.permanent_failure(message, status_code=code)
        return SendResult.transient(message, status_code=code)
    if isinstance(exc, (smtplib.SMTPAuthenticationError, smtplib.SMTPSenderRefused, smtplib.SMTPConnectError)):
        return SendResult.transient(truncate_error_message(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}"), status_code=exc.smtp_code)
    if isinstance(exc, smtplib.SMTPResponseException):
        message = truncate_error_message(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}")
        if _is_permanent_code(exc.smtp_code):
            return SendResult.permanent_failure(message, status_code=exc.smtp_code)
        return SendResult.transient(message, status_code=exc.smtp_code)
    return SendResult.transient(truncate_error_message(f"SMTP error: {exc}"))


class SmtpEmailAdapter:
    """Sends one multipart (text + HTML) email per recipient address."""

    channel = CHANNEL_EMAIL

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.adapter_timeout_seconds

    def is_configured(self) -> bool:
        return bool(settings.smtp_user and settings.smtp_password)

    def build_mime(self, endpoint: str, message: RenderedMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.title
        msg["From"] = _from_address()
        msg["To"] = endpoint
        msg["Message-ID"] = make_msgid(domain="notifications.local")
        if settings.email_reply_to:
            msg["Reply-To"] = settings.email_reply_to
        msg.attach(MIMEText(message.body, "plain", "utf-8"))
        msg.attach(MIMEText(message.html_body or f"<pre style='font-family:sans-serif'>{message.body}</pre>", "html", "utf-8"))
        return msg

    def send(self, endpoint: str, message: RenderedMessage) -> SendResult:
        msg = self.build_mime(endpoint, message)
        bcc = [b for b in message.bcc if b.lower() != endpoint.lower()]
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                server.login(settings.smtp_user, settings.smtp_password)
                refused = server.sendmail(settings.smtp_user, [endpoint, *bcc], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            result = classify_smtp_error(e, endpoint)
            logger.warning("Email to %s failed (permanent=%s): %s", endpoint, result.permanent, result.error_message)
            return result
        if endpoint in (refused or {}):
            return classify_smtp_error(smtplib.SMTPRecipientsRefused({endpoint: refused[endpoint]}), endpoint)
        return SendResult.success(provider_message_id=msg["Message-ID"], status_code=250)
