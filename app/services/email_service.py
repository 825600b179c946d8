"""Email service using Resend."""
import html as html_lib
import logging
from typing import List, Optional

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


async def send_email(
    to: str | List[str],
    subject: str,
    html: str,
) -> bool:
    """
    Send an email using Resend.

    Returns:
        True if email was sent successfully
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured, email not sent")
        return False

    resend.api_key = settings.RESEND_API_KEY
    try:
        resend.Emails.send({
            "from": settings.FROM_EMAIL,
            "to": [to] if isinstance(to, str) else to,
            "subject": subject,
            "html": html,
        })
        return True
    except Exception as e:
        logger.error(f"Error sending email: {e}")
        return False


async def send_payment_request_email(
    artist_name: str,
    artist_email: Optional[str],
    amount: str,
    invoice_number: str,
    available_balance: str,
) -> bool:
    """
    Notify the admin of a new withdrawal request.

    Args:
        artist_name: Name of the artist
        artist_email: Artist's email, shown for reply
        amount: Requested amount, formatted for display
        invoice_number: Invoice created for the request
        available_balance: Balance before the request, formatted for display
    """
    name = html_lib.escape(artist_name)
    email = html_lib.escape(artist_email or "Not provided")

    body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">New payment request</h2>
        <p><strong>{name}</strong> has requested a royalty withdrawal.</p>
        <table style="border-collapse: collapse; width: 100%;">
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Amount:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">&euro;{amount}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Available balance:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">&euro;{available_balance}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Invoice:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{invoice_number}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Artist email:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{email}</td></tr>
        </table>
    </div>
    """

    return await send_email(
        to=settings.ADMIN_EMAIL,
        subject=f"Payment request from {artist_name} - {invoice_number}",
        html=body,
    )
