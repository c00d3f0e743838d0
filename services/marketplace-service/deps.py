"""FastAPI dependency providers. Instances are built in the app lifespan."""

from fastapi import Request

from config import Settings
from db import MarketplaceStore
from fulfillment import FulfillmentProcessor
from packages.shared.errors import ServiceUnavailableError
from stripe_adapter import StripeGateway


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> MarketplaceStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ServiceUnavailableError("Store not configured (SUPABASE_URL, SUPABASE_SECRET_KEY)")
    return store


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.gateway


def get_processor(request: Request) -> FulfillmentProcessor:
    return FulfillmentProcessor(get_store(request), request.app.state.notifier)
