"""Pull verification of a checkout session, for environments without webhooks."""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from config import Settings
from deps import get_gateway, get_processor, get_settings
from fulfillment import PAID_STATUSES, FulfillmentProcessor
from packages.shared.errors import ForbiddenError, ValidationError
from packages.shared.errors.middleware import get_request_id
from stripe_adapter import StripeGateway

router = APIRouter(prefix="/api/v1", tags=["Checkout"])


@router.get("/verify-session")
async def verify_session(
    request: Request,
    session_id: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    gateway: StripeGateway = Depends(get_gateway),
):
    """
    Retrieve a checkout session from Stripe and fulfil it if complete.
    Only available when TEST_MODE=true; shares the webhook's idempotency key.
    """
    if not settings.test_mode:
        raise ForbiddenError("This endpoint is only available in TEST_MODE")
    if not session_id:
        raise ValidationError("Session ID is required")

    session = gateway.retrieve_session(session_id)
    if session.get("status") != "complete" or session.get("payment_status") not in PAID_STATUSES:
        raise ValidationError(
            "Payment not completed",
            details={"session_id": session_id, "status": session.get("status")},
        )

    processor: FulfillmentProcessor = get_processor(request)
    result = await processor.apply_completed_payment(session, request_id=get_request_id(request))
    return {
        "success": True,
        "applied": result.applied,
        "purchaseId": result.purchase_id,
    }
