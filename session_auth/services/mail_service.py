import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage

from session_auth import config

logger = logging.getLogger("session_auth.mail")


def build_login_notification(email: str, logged_in_at: datetime) -> EmailMessage:
    """Compose the 'new login' mail sent after a successful login."""
    msg = EmailMessage()
    msg["From"] = config.SMTP_FROM
    msg["To"] = email
    msg["Subject"] = "Login notification"
    when = logged_in_at.strftime("%Y-%m-%d %H:%M:%S %Z")
    msg.set_content(
        "A login to your account was detected.\n\n"
        f"Login time: {when}\n\n"
        "If this wasn't you, change your password right away.\n\n"
        "This message was sent automatically. Replies are not monitored.\n"
    )
    msg.add_alternative(
        f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>Login notification</h2>
  <p>A login to your account was detected.</p>
  <p><strong>Login time:</strong> {when}</p>
  <p>If this wasn't you, change your password right away.</p>
  <hr>
  <p style="font-size: 12px; color: #666;">This message was sent automatically. Replies are not monitored.</p>
</div>
""",
        subtype="html",
    )
    return msg


def _send(msg: EmailMessage) -> None:
    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT) as smtp:
        smtp.starttls()
        if config.SMTP_USER:
            smtp.login(config.SMTP_USER, config.SMTP_PASS)
        smtp.send_message(msg)


async def send_login_notification(email: str) -> None:
    if not config.SMTP_HOST:
        logger.info("SMTP_HOST not set; skipping login notification.")
        return
    msg = build_login_notification(email, datetime.now(timezone.utc))
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _send, msg)
    logger.info(f"Login notification sent to {email}")
