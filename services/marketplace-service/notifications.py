"""Order confirmation emails sent through Resend."""

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import Settings
from packages.shared.errors import NotificationError

logger = logging.getLogger(__name__)

_templates = Environment(
    loader=FileSystemLoader(str(Path(__file__).resolve().parent / "templates" / "emails")),
    autoescape=select_autoescape(["html"]),
)

CURRENCY_SYMBOLS = {"inr": "₹", "usd": "$", "eur": "€", "gbp": "£"}

BUYER_SUBJECT = "Order Confirmation - Farmer Marketplace"
SELLER_SUBJECT = "New Order Received - Farmer Marketplace"


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str


def render_order_emails(
    *,
    product_name: str,
    quantity: int,
    total: float,
    currency: str,
    buyer_email: str,
    buyer_name: Optional[str],
    address_lines: List[str],
    seller_email: str,
    order_date: Optional[date] = None,
) -> List[EmailMessage]:
    """Buyer confirmation first, seller notification second."""
    context: Dict[str, object] = {
        "product_name": product_name,
        "quantity": quantity,
        "total": total,
        "currency_symbol": CURRENCY_SYMBOLS.get(currency.lower(), currency.upper() + " "),
        "order_date": (order_date or date.today()).isoformat(),
        "buyer_name": buyer_name,
        "buyer_email": buyer_email,
        "address_lines": address_lines,
    }
    return [
        EmailMessage(
            to=buyer_email,
            subject=BUYER_SUBJECT,
            html=_templates.get_template("buyer_confirmation.html").render(**context),
        ),
        EmailMessage(
            to=seller_email,
            subject=SELLER_SUBJECT,
            html=_templates.get_template("seller_notification.html").render(**context),
        ),
    ]


class EmailNotifier:
    """Sends transactional email. Callers treat failures as best-effort."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def sender(self) -> str:
        return f"{self.settings.mail_from_name} <{self.settings.mail_from_email}>"

    async def send(self, to: str, subject: str, html: str) -> None:
        """Send one email. Raises NotificationError on any delivery problem."""
        if not self.settings.resend_configured:
            raise NotificationError(
                "Email not configured (RESEND_API_KEY)",
                details={"to": to, "subject": subject},
            )
        resend.api_key = self.settings.resend_api_key
        try:
            response = resend.Emails.send({
                "from": self.sender,
                "to": [to],
                "subject": subject,
                "html": html,
            })
        except Exception as e:
            raise NotificationError(
                f"Email delivery failed: {e}",
                details={"to": to, "subject": subject},
            ) from e
        if not response or not response.get("id"):
            raise NotificationError(
                f"Unexpected Resend response: {response}",
                details={"to": to, "subject": subject},
            )
        logger.info("Email sent: %s to %s", subject, to)
