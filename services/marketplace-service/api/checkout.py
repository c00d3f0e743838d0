"""Checkout initiation - validate stock, then create a Stripe Checkout Session."""

import logging
import math

from fastapi import APIRouter, Depends, Request

from config import Settings
from db import MarketplaceStore
from deps import get_gateway, get_settings, get_store
from models import CheckoutRequest
from packages.shared.errors import InsufficientStockError, NotFoundError, ValidationError
from stripe_adapter import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Checkout"])


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    request: Request,
    store: MarketplaceStore = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """
    Create a Stripe Checkout Session for one product.
    Returns the hosted payment page url. Stock is read-then-checked here and
    decremented only when payment completes.
    """
    product = await store.get_product(body.product_id)
    if not product:
        raise NotFoundError("Product not found", details={"product_id": body.product_id})
    if body.quantity > product.quantity:
        raise InsufficientStockError(
            available=product.quantity,
            details={"product_id": product.id, "requested": body.quantity},
        )
    if body.unit_price is not None and not math.isclose(body.unit_price, product.price, abs_tol=0.005):
        raise ValidationError(
            "Unit price does not match the current product price",
            details={"product_id": product.id, "price": product.price},
        )

    origin = (request.headers.get("origin") or settings.public_base_url).rstrip("/")
    link = gateway.create_checkout_session(product, body.quantity, product.price, origin)
    logger.info(
        "Checkout session created",
        extra={"context": {"session_id": link.session_id, "product_id": product.id, "quantity": body.quantity}},
    )
    return {"url": link.url, "sessionId": link.session_id}
