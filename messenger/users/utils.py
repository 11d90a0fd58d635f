import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..core.config import get_settings

logger = logging.getLogger(__name__)


def send_email(
    to_email: str,
    subject: str,
    content: str,
    html_content: Optional[str] = None,
) -> bool:
    """
    Send an email using the configured SMTP settings.

    Args:
        to_email: Recipient email address
        subject: Email subject
        content: Plain text content
        html_content: Optional HTML content

    Returns:
        bool: True if email was sent successfully, False otherwise
    """
    settings = get_settings()

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f'"{settings.APP_NAME}" <{settings.SMTP_USER}>'
    msg["To"] = to_email

    msg.set_content(content)
    if html_content:
        msg.add_alternative(html_content, subtype="html")

    try:
        # Port 465 is implicit TLS, anything else starts TLS on 587
        smtp_class = smtplib.SMTP_SSL if settings.SMTP_PORT == 465 else smtplib.SMTP

        with smtp_class(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
            if smtp_class is smtplib.SMTP and settings.SMTP_PORT == 587:
                smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(
                    settings.SMTP_USER,
                    settings.SMTP_PASSWORD.get_secret_value(),
                )
            smtp.send_message(msg)

        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error sending email to {to_email}: {e}")
        return False


def send_reset_email(
    to_email: str, username: str, reset_url: str, expire_minutes: int = 60
) -> bool:
    subject = "Password Reset Request"
    plain_content = (
        f"Hi {username},\n\n"
        f"Click the link to reset your password: {reset_url}\n"
        f"This link expires in {expire_minutes} minutes."
    )
    html_content = f"""
    <html>
        <body>
            <p>Hi {username},</p>
            <p>Click this link to reset your password:
               <a href="{reset_url}">{reset_url}</a></p>
            <p>This link expires in {expire_minutes} minutes.</p>
        </body>
    </html>
    """

    return send_email(to_email, subject, plain_content, html_content)
