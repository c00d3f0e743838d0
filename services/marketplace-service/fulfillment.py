"""
Checkout fulfillment: turns a paid Stripe checkout session into stock,
earnings and a purchase record, exactly once per session.

Session lifecycle as seen locally::

    PENDING --(paid)--------------------> FULFILLED
    PENDING --(expired / payment failed)-> ABANDONED

FULFILLED effects (buyer account, stock decrement, seller credit, purchase
row) are applied by the store in one transaction. Emails go out afterwards
and never undo a fulfillment.
"""

import logging
import secrets
from typing import Any, Dict, Optional

from db import MarketplaceStore
from models import CompletedPayment, FulfillmentResult, SessionState
from notifications import EmailNotifier, render_order_emails
from packages.shared.errors import MarketplaceException
from packages.shared.monitoring import log_with_context

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"
SESSION_EXPIRED = "checkout.session.expired"

# payment_status values for which the money has been collected
PAID_STATUSES = frozenset({"paid", "no_payment_required"})


def placeholder_password() -> str:
    """Unusable credential for accounts created on a guest's first purchase."""
    return "!" + secrets.token_urlsafe(24)


class FulfillmentProcessor:
    def __init__(self, store: MarketplaceStore, notifier: EmailNotifier):
        self.store = store
        self.notifier = notifier

    async def handle_event(
        self,
        event: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> FulfillmentResult:
        """Dispatch a verified Stripe event."""
        event_type = event.get("type") or ""
        session = (event.get("data") or {}).get("object") or {}
        session_id = session.get("id")

        if event_type in (SESSION_COMPLETED, ASYNC_PAYMENT_SUCCEEDED):
            if session.get("payment_status") not in PAID_STATUSES:
                log_with_context(
                    logger,
                    logging.INFO,
                    "Checkout completed but payment still pending",
                    request_id=request_id,
                    session_id=session_id,
                    payment_status=session.get("payment_status"),
                )
                return FulfillmentResult(
                    event_type=event_type,
                    session_id=session_id,
                    state=SessionState.PENDING,
                )
            result = await self.apply_completed_payment(session, request_id=request_id)
            result.event_type = event_type
            return result

        if event_type in (ASYNC_PAYMENT_FAILED, SESSION_EXPIRED):
            log_with_context(
                logger,
                logging.INFO,
                "Checkout session abandoned",
                request_id=request_id,
                session_id=session_id,
                event_type=event_type,
                product_id=(session.get("metadata") or {}).get("productId"),
            )
            return FulfillmentResult(
                event_type=event_type,
                session_id=session_id,
                state=SessionState.ABANDONED,
            )

        logger.debug("Ignoring Stripe event %s", event_type)
        return FulfillmentResult(event_type=event_type, session_id=session_id)

    async def apply_completed_payment(
        self,
        session: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> FulfillmentResult:
        """
        Fulfil a paid checkout session.

        Only session metadata (productId, quantity, sellerId), Stripe's
        customer_details and amount_total are trusted. Redelivery of an
        already fulfilled session is a no-op. Errors propagate after being
        logged with the session and product ids for manual reconciliation.
        """
        payment = CompletedPayment.from_session(session)
        result = FulfillmentResult(
            event_type=SESSION_COMPLETED,
            session_id=payment.session_id,
            state=SessionState.FULFILLED,
        )

        existing = await self.store.get_purchase_by_session(payment.session_id)
        if existing:
            log_with_context(
                logger,
                logging.INFO,
                "Duplicate delivery ignored",
                request_id=request_id,
                session_id=payment.session_id,
                purchase_id=existing.id,
            )
            result.purchase_id = existing.id
            return result

        try:
            record = await self.store.apply_fulfillment(payment, placeholder_password())
        except MarketplaceException as e:
            log_with_context(
                logger,
                logging.ERROR,
                "Fulfillment failed, nothing applied",
                request_id=request_id,
                session_id=payment.session_id,
                product_id=payment.product_id,
                seller_email=payment.seller_email,
                buyer_email=payment.buyer.email,
                quantity=payment.quantity,
                amount=payment.amount,
                error=e.message,
            )
            raise

        result.purchase_id = record.purchase_id
        if not record.applied:
            # Lost a race with a concurrent delivery of the same session.
            log_with_context(
                logger,
                logging.INFO,
                "Duplicate delivery ignored",
                request_id=request_id,
                session_id=payment.session_id,
                purchase_id=record.purchase_id,
            )
            return result

        result.applied = True
        log_with_context(
            logger,
            logging.INFO,
            "Checkout session fulfilled",
            request_id=request_id,
            session_id=payment.session_id,
            product_id=payment.product_id,
            purchase_id=record.purchase_id,
            quantity=payment.quantity,
            amount=payment.amount,
            buyer_created=record.buyer_created,
        )
        if record.oversold:
            log_with_context(
                logger,
                logging.WARNING,
                "Oversold: stock clamped at zero",
                request_id=request_id,
                session_id=payment.session_id,
                product_id=payment.product_id,
                quantity=payment.quantity,
            )

        result.notifications_sent = await self._notify(payment, record.product_name, request_id)
        return result

    async def _notify(
        self,
        payment: CompletedPayment,
        product_name: Optional[str],
        request_id: Optional[str],
    ) -> int:
        address = payment.buyer.address
        messages = render_order_emails(
            product_name=product_name or payment.product_id,
            quantity=payment.quantity,
            total=payment.amount,
            currency=payment.currency,
            buyer_email=payment.buyer.email,
            buyer_name=payment.buyer.name,
            address_lines=address.lines() if address else [],
            seller_email=payment.seller_email,
        )
        sent = 0
        for message in messages:
            try:
                await self.notifier.send(message.to, message.subject, message.html)
                sent += 1
            except Exception:
                log_with_context(
                    logger,
                    logging.WARNING,
                    "Order email not sent",
                    request_id=request_id,
                    exc_info=True,
                    session_id=payment.session_id,
                    to=message.to,
                    subject=message.subject,
                )
        return sent
