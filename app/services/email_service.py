# backend/app/services/email_service.py
# SMTP email service for verification and password reset codes

import logging
import secrets
import smtplib
import ssl
import string
from email.message import EmailMessage

from app.config import get_settings
from app.utils.constants import OTP_LENGTH

logger = logging.getLogger(__name__)

CODE_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #dc2626; text-align: center;">{title}</h1>
  <p>{intro}</p>
  <div style="text-align: center; margin: 20px 0;">
    <span style="font-size: 32px; font-weight: bold; color: #dc2626; letter-spacing: 5px;">{code}</span>
  </div>
  <p>This code will expire in {minutes} minutes.</p>
  <p>{footer}</p>
  <hr style="margin: 30px 0;">
  <p style="color: #666; font-size: 12px;">SHARPERLY - The Dispatch Giant of Africa</p>
</div>
"""


def send_email(to_email: str, subject: str, html: str) -> bool:
    """Send an HTML email via SMTP. Returns False instead of raising on failure."""
    settings = get_settings()
    if not settings.SMTP_HOST:
        logger.error("SMTP_HOST not configured. Email sending is disabled.")
        return False

    try:
        msg = EmailMessage()
        msg["From"] = f"SHARPERLY <{settings.EMAIL_SENDER}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable email client.")
        msg.add_alternative(html, subtype="html")

        context = ssl.create_default_context()
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.starttls(context=context)
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASS)
            server.send_message(msg)
        logger.info(f"Email '{subject}' sent to {to_email}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def generate_otp() -> str:
    """Generate a 6-digit OTP."""
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))


def send_verification_code_email(to_email: str, code: str, welcome: bool = True) -> bool:
    """Send the email verification code issued at registration or on resend."""
    minutes = get_settings().OTP_EXPIRE_MINUTES
    if welcome:
        subject = "SHARPERLY - Verify Your Email Address"
        html = CODE_TEMPLATE.format(
            title="Welcome to SHARPERLY!",
            intro="Thank you for registering with SHARPERLY. Your email verification code is:",
            code=code,
            minutes=minutes,
            footer="If you didn't create an account, please ignore this email.",
        )
    else:
        subject = "SHARPERLY - New Verification Code"
        html = CODE_TEMPLATE.format(
            title="Email Verification",
            intro="Your new email verification code is:",
            code=code,
            minutes=minutes,
            footer="If you didn't request this code, please ignore this email.",
        )
    return send_email(to_email, subject, html.strip())


def send_password_reset_email(to_email: str, code: str) -> bool:
    """Send a password reset code."""
    html = CODE_TEMPLATE.format(
        title="Password Reset Request",
        intro="You have requested a password reset for your SHARPERLY account. Your reset code is:",
        code=code,
        minutes=get_settings().OTP_EXPIRE_MINUTES,
        footer="If you didn't request this, please ignore this email.",
    )
    return send_email(to_email, "SHARPERLY - Password Reset Code", html.strip())
