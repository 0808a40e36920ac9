# core/notifications.py
import requests
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional

from core.config import settings
from core.logging_config import logger


EXPO_TOKEN_PREFIX = "ExponentPushToken"


# -----------------------------------------------------
# 📱 Send Expo push messages
# -----------------------------------------------------
def send_push_messages(tokens: List[str], title: str, body: str, data: Optional[dict] = None) -> int:
    """
    Deliver a push notification to every Expo token in `tokens`.
    Non-Expo tokens (web push registrations) are skipped.

    Returns the number of messages handed to Expo. Failures are logged, not raised.
    """
    expo_tokens = [t for t in tokens if t and t.startswith(EXPO_TOKEN_PREFIX)]
    if not expo_tokens:
        return 0

    messages = [
        {
            "to": token,
            "title": title,
            "body": body,
            "data": data or {},
            "sound": "default",
        }
        for token in expo_tokens
    ]

    try:
        response = requests.post(
            settings.EXPO_PUSH_URL,
            json=messages,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=10,
        )
        logger.info(f"Expo push sent to {len(messages)} device(s) (status {response.status_code})")
        return len(messages)
    except Exception as e:
        logger.warning(f"Expo push failed: {e}")
        return 0


# -----------------------------------------------------
# 📧 Send email (SMTP)
# -----------------------------------------------------
def send_email(
    subject: str,
    body: str,
    to: str = None,
    recipients: Optional[List[str]] = None,
    reply_to: Optional[str] = None,
):
    """
    Send a plain-text email via SMTP.

    Args:
        subject: Email subject
        body: Plain text email body
        to: Single recipient email
        recipients: List of recipient email addresses
        reply_to: Optional Reply-To header
    """
    smtp_host = settings.SMTP_HOST
    smtp_port = settings.SMTP_PORT
    smtp_user = settings.SMTP_USER
    smtp_pass = settings.SMTP_PASS

    if recipients:
        recipient_list = recipients
    elif to:
        recipient_list = [to]
    else:
        recipient_list = []

    if not recipient_list:
        logger.warning("No recipients specified, skipping email.")
        return

    if not all([smtp_host, smtp_port, smtp_user, smtp_pass]):
        logger.info(f"[Email Preview] to={recipient_list} subject={subject!r}")
        return

    try:
        msg = MIMEMultipart("alternative")
        msg["From"] = settings.EMAIL_FROM or smtp_user
        msg["To"] = ", ".join(recipient_list)
        msg["Subject"] = subject
        if reply_to:
            msg["Reply-To"] = reply_to

        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP_SSL(smtp_host, smtp_port) as server:
            server.login(smtp_user, smtp_pass)
            server.send_message(msg)

        logger.info(f"Email sent to {', '.join(recipient_list)}")

    except Exception as e:
        logger.error(f"Email failed: {e}")
        raise
