"""Stripe webhook handler - checkout session lifecycle events."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from deps import get_gateway, get_processor
from packages.shared.errors import MarketplaceException, SignatureInvalidError
from packages.shared.errors.middleware import get_request_id
from packages.shared.monitoring import log_with_context
from stripe_adapter import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_gateway),
):
    """
    Handle Stripe checkout webhooks.
    The body is read raw: the signature covers the exact bytes sent.
    """
    request_id = get_request_id(request)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = gateway.verify_event(payload, sig_header)
    except SignatureInvalidError as e:
        logger.warning("Rejected Stripe webhook: %s", e.message, extra={"request_id": request_id})
        raise

    processor = get_processor(request)
    session = (event.get("data") or {}).get("object") or {}
    try:
        result = await processor.handle_event(event, request_id=request_id)
    except MarketplaceException as e:
        log_with_context(
            logger,
            logging.ERROR,
            "Webhook handler failed",
            request_id=request_id,
            event_id=event.get("id"),
            event_type=event.get("type"),
            session_id=session.get("id"),
            product_id=(session.get("metadata") or {}).get("productId"),
            error=e.message,
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Webhook handler failed", "code": e.code, "request_id": request_id},
            headers={"X-Request-ID": request_id},
        )

    return {"received": True, "applied": result.applied}
