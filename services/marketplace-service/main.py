"""Marketplace Service - farmer product checkout with Stripe and webhook fulfillment."""

import sys
from pathlib import Path

_root = Path(__file__).resolve().parents[2]
_svc = Path(__file__).resolve().parent
sys.path.insert(0, str(_root))
sys.path.insert(0, str(_svc))

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from api.checkout import router as checkout_router
from api.products import router as products_router
from api.profile import router as profile_router
from api.verify_session import router as verify_session_router
from config import settings
from db import create_store
from notifications import EmailNotifier
from stripe_adapter import StripeGateway
from webhooks.stripe_webhook import router as stripe_webhook_router

from packages.shared.errors import MarketplaceException
from packages.shared.errors.middleware import (
    generic_exception_handler,
    marketplace_exception_handler,
    request_id_middleware,
    request_validation_handler,
)
from packages.shared.monitoring import (
    DependencyCheck,
    DependencyStatus,
    HealthChecker,
    configure_logging,
    health_router,
)

SERVICE_NAME = "marketplace-service"
VERSION = "0.1.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store, gateway and notifier once for the process."""
    configure_logging(
        service_name=SERVICE_NAME,
        level=settings.log_level,
        json_format=settings.is_production,
    )
    app.state.settings = settings
    app.state.store = create_store(settings)
    app.state.gateway = StripeGateway(settings)
    app.state.notifier = EmailNotifier(settings)
    if app.state.store is None:
        logger.warning("Supabase not configured; store-backed endpoints will return 503")
    if settings.test_mode:
        logger.warning("TEST_MODE enabled: /api/v1/verify-session is active")
    yield


app = FastAPI(
    title="Marketplace Service",
    description="Farmer marketplace checkout, Stripe webhook fulfillment and listings",
    version=VERSION,
    lifespan=lifespan,
)

app.middleware("http")(request_id_middleware)
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(MarketplaceException, marketplace_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(checkout_router)
app.include_router(verify_session_router)
app.include_router(stripe_webhook_router)
app.include_router(products_router)
app.include_router(profile_router)

health_checker = HealthChecker(SERVICE_NAME, VERSION)


async def check_database(request: Request) -> DependencyCheck:
    store = getattr(request.app.state, "store", None)
    if store is None:
        return DependencyCheck(
            name="supabase",
            status=DependencyStatus.UNHEALTHY,
            message="Supabase not configured (SUPABASE_URL, SUPABASE_SECRET_KEY)",
        )
    ok = await store.check_connection()
    return DependencyCheck(
        name="supabase",
        status=DependencyStatus.HEALTHY if ok else DependencyStatus.UNHEALTHY,
        message=None if ok else "Supabase query failed",
    )


async def check_stripe(request: Request) -> DependencyCheck:
    cfg = request.app.state.settings
    if not cfg.stripe_configured or not cfg.stripe_webhook_secret:
        return DependencyCheck(
            name="stripe",
            status=DependencyStatus.UNHEALTHY,
            message="Stripe not configured (STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET)",
        )
    return DependencyCheck(name="stripe", status=DependencyStatus.HEALTHY)


async def check_email(request: Request) -> DependencyCheck:
    if not request.app.state.settings.resend_configured:
        return DependencyCheck(
            name="email",
            status=DependencyStatus.DEGRADED,
            message="RESEND_API_KEY not set; order emails are skipped",
        )
    return DependencyCheck(name="email", status=DependencyStatus.HEALTHY)


health_checker.add_check("supabase", check_database)
health_checker.add_check("stripe", check_stripe)
health_checker.add_check("email", check_email)
app.include_router(health_router(health_checker))


@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "endpoints": {
            "checkout": "POST /api/v1/checkout - Create Stripe Checkout Session",
            "stripe_webhook": "POST /webhooks/stripe - Stripe webhook",
            "verify_session": "GET /api/v1/verify-session?session_id= - TEST_MODE only",
            "products": "GET|POST|PUT|DELETE /api/v1/products",
            "profile": "GET /api/v1/profile?email=",
        },
    }
