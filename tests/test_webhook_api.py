"""Tests for POST /webhooks/stripe with real signature verification."""

import json
import time

from conftest import FARMER, make_event, make_session, sign_payload


def test_completed_event_fulfils(post_webhook, store, notifier):
    r = post_webhook(make_event(make_session()))

    assert r.status_code == 200
    assert r.json() == {"received": True, "applied": True}
    assert store.products["p1"]["quantity"] == 7
    assert store.users[FARMER]["earning"] == 15
    assert len(store.purchases) == 1
    assert store.purchases[0]["quantity"] == 3
    assert store.purchases[0]["total_price"] == 15
    assert len(notifier.sent) == 2


def test_redelivery_leaves_state_unchanged(post_webhook, store):
    event = make_event(make_session())
    post_webhook(event)
    after_first = store.snapshot()

    r = post_webhook(event)

    assert r.status_code == 200
    assert r.json() == {"received": True, "applied": False}
    assert store.snapshot() == after_first
    assert store.products["p1"]["quantity"] == 7
    assert len(store.purchases) == 1


def test_invalid_signature_rejected_without_mutation(post_webhook, store, notifier):
    before = store.snapshot()
    event = make_event(make_session())
    payload = json.dumps(event)

    r = post_webhook(event, signature=sign_payload(payload, secret="whsec_wrong"))

    assert r.status_code == 400
    assert "signature" in r.json()["error"].lower()
    assert store.snapshot() == before
    assert store.fulfillment_calls == 0
    assert notifier.sent == []


def test_missing_signature_rejected(post_webhook, store):
    r = post_webhook(make_event(make_session()), signature="")
    assert r.status_code == 400
    assert store.purchases == []


def test_stale_signature_rejected(post_webhook, store):
    event = make_event(make_session())
    stale = sign_payload(json.dumps(event), timestamp=int(time.time()) - 3600)
    r = post_webhook(event, signature=stale)
    assert r.status_code == 400
    assert store.purchases == []


def test_tampered_body_rejected(client, store):
    original = json.dumps(make_event(make_session()))
    header = sign_payload(original)
    tampered = original.replace('"3"', '"1"')

    r = client.post("/webhooks/stripe", content=tampered, headers={"Stripe-Signature": header})

    assert r.status_code == 400
    assert store.purchases == []


def test_processing_failure_returns_400(post_webhook, store):
    before = store.snapshot()
    r = post_webhook(make_event(make_session(product_id="nope")))

    assert r.status_code == 400
    assert r.json()["error"] == "Webhook handler failed"
    assert store.snapshot() == before


def test_malformed_metadata_returns_400(post_webhook, store):
    r = post_webhook(make_event(make_session(quantity="lots")))
    assert r.status_code == 400
    assert store.purchases == []


def test_expired_session_acknowledged(post_webhook, store):
    r = post_webhook(make_event(make_session(status="expired"), event_type="checkout.session.expired"))
    assert r.status_code == 200
    assert r.json() == {"received": True, "applied": False}
    assert store.purchases == []


def test_other_events_acknowledged(post_webhook):
    event = {"id": "evt_x", "object": "event", "type": "charge.refunded", "data": {"object": {"id": "ch_1", "object": "charge"}}}
    r = post_webhook(event)
    assert r.status_code == 200
    assert r.json()["received"] is True


def test_notification_outage_still_acknowledged(post_webhook, store, notifier):
    notifier.fail = True
    r = post_webhook(make_event(make_session()))
    assert r.status_code == 200
    assert r.json()["applied"] is True
    assert len(store.purchases) == 1


def test_webhook_secret_not_configured(post_webhook, settings, store):
    settings.stripe_webhook_secret = ""
    r = post_webhook(make_event(make_session()))
    assert r.status_code == 503
    assert store.purchases == []


def test_store_not_configured_returns_503(client, post_webhook, notifier):
    client.app.state.store = None
    r = post_webhook(make_event(make_session()))
    assert r.status_code == 503
    assert "Store not configured" in r.json()["error"]
    assert notifier.sent == []
