"""Stripe Checkout adapter - sessions, webhook verification and retrieval."""

import logging
from typing import Any, Dict

import stripe

from config import Settings
from models import CheckoutSessionLink, Product, to_minor_units
from packages.shared.errors import (
    NotFoundError,
    ServiceUnavailableError,
    SignatureInvalidError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/marketplace/success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/marketplace"


class StripeGateway:
    """
    Payment gateway backed by Stripe Checkout.

    Only ``productId``, ``quantity`` and ``sellerId`` travel in session
    metadata; buyer identity and address are collected by Stripe and read back
    from the completed session.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.currency = settings.stripe_currency

    def _ensure_configured(self) -> None:
        if not self.settings.stripe_configured:
            raise ServiceUnavailableError("Stripe not configured (STRIPE_SECRET_KEY)")
        stripe.api_key = self.settings.stripe_secret_key
        stripe.max_network_retries = self.settings.stripe_max_network_retries

    def create_checkout_session(
        self,
        product: Product,
        quantity: int,
        unit_price: float,
        origin: str,
    ) -> CheckoutSessionLink:
        """Create a hosted payment page for a single product line item."""
        self._ensure_configured()
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": product.name,
                            "description": f"Sold by: {product.email}",
                        },
                        "unit_amount": to_minor_units(unit_price, self.currency),
                    },
                    "quantity": quantity,
                }],
                billing_address_collection="required",
                success_url=f"{origin}{SUCCESS_PATH}",
                cancel_url=f"{origin}{CANCEL_PATH}",
                metadata={
                    "productId": product.id,
                    "quantity": str(quantity),
                    "sellerId": product.email,
                },
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe session create failed: %s",
                e,
                extra={"context": {"product_id": product.id, "quantity": quantity}},
            )
            raise UpstreamError(
                "Failed to create checkout session",
                details={"product_id": product.id},
            ) from e

        if not session.url:
            raise UpstreamError(
                "Failed to create checkout session URL",
                details={"product_id": product.id, "session_id": session.id},
            )
        return CheckoutSessionLink(url=session.url, session_id=session.id)

    def verify_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header against the exact raw body.
        Returns the event as a plain dict.
        """
        secret = self.settings.stripe_webhook_secret
        if not secret:
            raise ServiceUnavailableError("Stripe webhook secret not configured (STRIPE_WEBHOOK_SECRET)")
        if not sig_header:
            raise SignatureInvalidError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, sig_header, secret)
        except ValueError as e:
            raise SignatureInvalidError(f"Invalid payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalidError(f"Invalid signature: {e}") from e
        return event.to_dict()

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        """Fetch a checkout session (pull variant of the webhook)."""
        self._ensure_configured()
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                raise NotFoundError(
                    "Checkout session not found",
                    details={"session_id": session_id},
                ) from e
            raise UpstreamError(
                "Failed to retrieve checkout session",
                details={"session_id": session_id},
            ) from e
        except stripe.StripeError as e:
            logger.warning("Stripe retrieve failed: %s", e)
            raise UpstreamError(
                "Failed to retrieve checkout session",
                details={"session_id": session_id},
            ) from e
        return session.to_dict()
