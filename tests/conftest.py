"""Pytest configuration: service on sys.path, in-memory store, signed Stripe payloads."""

import hashlib
import hmac
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

_root = Path(__file__).resolve().parents[1]
_svc = _root / "services" / "marketplace-service"
sys.path.insert(0, str(_root))
sys.path.insert(0, str(_svc))

from fastapi.testclient import TestClient  # noqa: E402

from config import Settings  # noqa: E402
from fakes import InMemoryStore, RecordingNotifier  # noqa: E402
from stripe_adapter import StripeGateway  # noqa: E402

WEBHOOK_SECRET = "whsec_test_marketplace"
FARMER = "farmer@x.com"
BUYER = "buyer@y.com"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for payload."""
    ts = timestamp or int(time.time())
    sig = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def make_session(
    session_id: str = "cs_test_1",
    product_id: str = "p1",
    quantity: Any = "3",
    seller: str = FARMER,
    amount_total: Optional[int] = 1500,
    buyer_email: Optional[str] = BUYER,
    status: str = "complete",
    payment_status: str = "paid",
) -> Dict[str, Any]:
    """A checkout.session object as Stripe returns it."""
    return {
        "id": session_id,
        "object": "checkout.session",
        "status": status,
        "payment_status": payment_status,
        "amount_total": amount_total,
        "currency": "inr",
        "metadata": {"productId": product_id, "quantity": quantity, "sellerId": seller},
        "customer_details": {
            "email": buyer_email,
            "name": "Asha Buyer",
            "address": {
                "line1": "12 Market Road",
                "line2": None,
                "city": "Pune",
                "state": "MH",
                "postal_code": "411001",
                "country": "IN",
            },
        },
    }


def make_event(session: Dict[str, Any], event_type: str = "checkout.session.completed") -> Dict[str, Any]:
    return {
        "id": f"evt_{session['id']}",
        "object": "event",
        "type": event_type,
        "data": {"object": session},
    }


@pytest.fixture
def settings() -> Settings:
    s = Settings()
    s.stripe_secret_key = "sk_test_marketplace"
    s.stripe_webhook_secret = WEBHOOK_SECRET
    s.stripe_currency = "inr"
    s.test_mode = False
    s.resend_api_key = ""
    s.public_base_url = "http://localhost:3000"
    return s


@pytest.fixture
def store() -> InMemoryStore:
    st = InMemoryStore()
    st.add_user(FARMER, "Farmer", 0)
    st.add_user("other-farmer@x.com", "Farmer", 40)
    st.add_product("p1", "Tomatoes", 10, 5, FARMER)
    st.add_product("p2", "Onions", 4, 2.5, "other-farmer@x.com")
    return st


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(settings, store, notifier):
    """TestClient with app state injected directly (lifespan not run)."""
    from main import app

    app.state.settings = settings
    app.state.store = store
    app.state.gateway = StripeGateway(settings)
    app.state.notifier = notifier
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def post_webhook(client):
    """POST a signed (or deliberately mis-signed) event to /webhooks/stripe."""

    def _post(event: Dict[str, Any], signature: Optional[str] = None):
        payload = json.dumps(event)
        header = signature if signature is not None else sign_payload(payload)
        return client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"},
        )

    return _post
