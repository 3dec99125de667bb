"""SMTP transport for the daily email."""

import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from tenacity import RetryError, retry, stop_after_attempt, wait_exponential, retry_if_exception_type

import config
from vocabmail.logger import get_logger

AUDIO_MIME_TYPES = {
    ".mp3": ("audio", "mpeg"),
    ".wav": ("audio", "wav"),
}


class MailDeliveryError(Exception):
    """Raised when the email could not be sent after all retries."""

    pass


def build_message(
    sender: str,
    recipient: str,
    subject: str,
    html_body: str,
    audio_path: Optional[str] = None,
) -> EmailMessage:
    """Build an HTML email, attaching the audio file when it exists."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = recipient
    msg["Subject"] = subject
    msg.set_content("This email requires an HTML-capable client.")
    msg.add_alternative(html_body, subtype="html")

    if audio_path and Path(audio_path).is_file():
        path = Path(audio_path)
        maintype, subtype = AUDIO_MIME_TYPES.get(path.suffix.lower(), ("application", "octet-stream"))
        msg.add_attachment(path.read_bytes(), maintype=maintype, subtype=subtype, filename=path.name)

    return msg


@retry(
    stop=stop_after_attempt(config.MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=config.RETRY_MIN_WAIT, max=config.RETRY_MAX_WAIT),
    retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
)
def _send(host: str, port: int, user: str, password: str, msg: EmailMessage) -> None:
    logger = get_logger()
    try:
        with smtplib.SMTP(host, port, timeout=config.SMTP_TIMEOUT) as smtp:
            smtp.starttls()
            smtp.login(user, password)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"  Email send attempt failed: {e}")
        raise


def send_email(
    host: str,
    port: int,
    user: str,
    password: str,
    recipient: str,
    subject: str,
    html_body: str,
    audio_path: Optional[str] = None,
) -> None:
    """
    Send the daily email with retries and exponential backoff.

    Args:
        host: SMTP host
        port: SMTP port (STARTTLS)
        user: SMTP login, also used as the sender address
        password: SMTP password (app password)
        recipient: Destination address
        subject: Email subject
        html_body: Rendered HTML body
        audio_path: Optional audio attachment

    Raises:
        MailDeliveryError: If every attempt failed
    """
    msg = build_message(user, recipient, subject, html_body, audio_path)
    try:
        _send(host, port, user, password, msg)
    except RetryError as e:
        raise MailDeliveryError(
            f"Email not sent after {config.MAX_RETRIES} attempts: {e.last_attempt.exception()}"
        ) from e
