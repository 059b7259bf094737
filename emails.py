import logging
from typing import Dict, Optional, Tuple

import resend

from config import EMAIL_FROM, FRONTEND_URL, RESEND_API_KEY, STORE_NAME

logger = logging.getLogger("storefront.email")


def build_email_html(message: str) -> str:
    return f"""<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background-color: #f8f9fa; padding: 20px; text-align: center;">
    <h1 style="color: #333; margin: 0;">{STORE_NAME}</h1>
  </div>
  <div style="padding: 20px; background-color: #fff;">
    <p style="color: #666; line-height: 1.6;">{message}</p>
    <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
    <p style="color: #999; font-size: 12px;">
      This is an automated email from {STORE_NAME}. Please do not reply to this email.
    </p>
  </div>
</div>"""


def send_email(recipient: str, subject: str, message: str) -> Tuple[bool, Optional[str]]:
    """Send a plain notification through Resend. Returns ``(sent, error)``."""
    if not RESEND_API_KEY:
        logger.warning("Email to %s not sent: RESEND_API_KEY is not configured", recipient)
        return False, "Resend API key is not configured."

    payload: Dict[str, object] = {
        "from": EMAIL_FROM,
        "to": [recipient],
        "subject": subject,
        "html": build_email_html(message),
        "text": message,
    }
    resend.api_key = RESEND_API_KEY
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("Email sending to %s failed: %s", recipient, exc)
        return False, str(exc)

    if not isinstance(response, dict) or not response.get("id"):
        logger.error("Unexpected Resend response for %s: %s", recipient, response)
        return False, str(response)

    logger.info("Email '%s' sent to %s", subject, recipient)
    return True, None


def send_verification_email(recipient: str, token: str) -> Tuple[bool, Optional[str]]:
    url = f"{FRONTEND_URL}/verify-email/{token}"
    return send_email(recipient, "Email Verification",
                      f"Please click the following link to verify your email: {url}")


def send_password_reset_email(recipient: str, token: str) -> Tuple[bool, Optional[str]]:
    url = f"{FRONTEND_URL}/reset-password/{token}"
    return send_email(recipient, "Password Reset",
                      f"You requested a password reset. Please click the following link to reset your password: {url}")
