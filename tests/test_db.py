"""Tests for the Supabase-backed store against a scripted PostgREST client."""

from types import SimpleNamespace

import httpx
import pytest
from postgrest.exceptions import APIError

from conftest import BUYER, FARMER, make_session
from db import SupabaseStore, create_store
from models import CompletedPayment, FulfillmentRecord, ProductBody
from packages.shared.errors import ConflictError, NotFoundError, UpstreamError


class FakeQuery:
    """Chainable query builder; records each call and returns canned data."""

    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.calls = []

    def __getattr__(self, name):
        def chain(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return chain

    def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data)


class FakeClient:
    def __init__(self, query: FakeQuery):
        self.query = query
        self.tables = []
        self.rpcs = []

    def table(self, name):
        self.tables.append(name)
        return self.query

    def rpc(self, fn, params):
        self.rpcs.append((fn, params))
        return self.query


def api_error(code: str, message: str = "db error") -> APIError:
    return APIError({"code": code, "message": message, "details": None, "hint": None})


def make_store(data=None, error=None):
    query = FakeQuery(data=data, error=error)
    client = FakeClient(query)
    return SupabaseStore(client), client, query


@pytest.fixture
def payment() -> CompletedPayment:
    return CompletedPayment.from_session(make_session(session_id="cs_db_1", quantity="3"))


class TestApplyFulfillment:
    @pytest.mark.asyncio
    async def test_calls_fulfillment_function_with_all_params(self, payment):
        store, client, _ = make_store(data={
            "applied": True,
            "purchase_id": "u1",
            "product_name": "Tomatoes",
            "remaining_quantity": 7,
            "oversold": False,
            "buyer_created": True,
        })

        record = await store.apply_fulfillment(payment, "!placeholder")

        assert client.rpcs == [(
            "fulfill_checkout_session",
            {
                "p_session_id": "cs_db_1",
                "p_product_id": "p1",
                "p_quantity": 3,
                "p_seller_email": FARMER,
                "p_buyer_email": BUYER,
                "p_total_price": 15,
                "p_placeholder_password": "!placeholder",
            },
        )]
        assert record == FulfillmentRecord(
            applied=True,
            purchase_id="u1",
            product_name="Tomatoes",
            remaining_quantity=7,
            buyer_created=True,
        )

    @pytest.mark.asyncio
    async def test_already_fulfilled_session(self, payment):
        store, _, _ = make_store(data={"applied": False, "purchase_id": "u1"})
        record = await store.apply_fulfillment(payment, "!x")
        assert record.applied is False
        assert record.purchase_id == "u1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["P0002", "23503"])
    async def test_missing_row_maps_to_not_found(self, payment, code):
        store, _, _ = make_store(error=api_error(code, "Seller farmer@x.com not found"))
        with pytest.raises(NotFoundError) as exc:
            await store.apply_fulfillment(payment, "!x")
        assert exc.value.message == "Seller farmer@x.com not found"
        assert exc.value.details["session_id"] == "cs_db_1"

    @pytest.mark.asyncio
    async def test_unique_violation_maps_to_conflict(self, payment):
        store, _, _ = make_store(error=api_error("23505"))
        with pytest.raises(ConflictError):
            await store.apply_fulfillment(payment, "!x")

    @pytest.mark.asyncio
    async def test_other_database_error_maps_to_upstream(self, payment):
        store, _, _ = make_store(error=api_error("40001", "could not serialize access"))
        with pytest.raises(UpstreamError) as exc:
            await store.apply_fulfillment(payment, "!x")
        assert exc.value.details["product_id"] == "p1"

    @pytest.mark.asyncio
    async def test_unreachable_store_maps_to_upstream(self, payment):
        store, _, _ = make_store(error=httpx.ConnectError("connection refused"))
        with pytest.raises(UpstreamError):
            await store.apply_fulfillment(payment, "!x")


class TestProducts:
    @pytest.mark.asyncio
    async def test_get_product(self):
        row = {"id": "p1", "name": "Tomatoes", "quantity": 10, "price": 5, "email": FARMER}
        store, client, query = make_store(data=[row])
        product = await store.get_product("p1")
        assert product.name == "Tomatoes"
        assert client.tables == ["products"]
        assert ("eq", ("id", "p1"), {}) in query.calls

    @pytest.mark.asyncio
    async def test_get_missing_product_returns_none(self):
        store, _, _ = make_store(data=[])
        assert await store.get_product("nope") is None

    @pytest.mark.asyncio
    async def test_public_listing_hides_sold_out(self):
        store, _, query = make_store(data=[])
        await store.list_products()
        assert ("gt", ("quantity", 0), {}) in query.calls

    @pytest.mark.asyncio
    async def test_seller_listing_filters_by_email(self):
        store, _, query = make_store(data=[])
        await store.list_products(seller_email=FARMER)
        assert ("eq", ("email", FARMER), {}) in query.calls
        assert not any(name == "gt" for name, _, _ in query.calls)

    @pytest.mark.asyncio
    async def test_update_with_no_matching_row_is_not_found(self):
        store, _, _ = make_store(data=[])
        body = ProductBody(id="p1", name="Tomatoes", quantity=5, price=5, email="intruder@x.com")
        with pytest.raises(NotFoundError):
            await store.update_product(body)

    @pytest.mark.asyncio
    async def test_update_scoped_to_owner(self):
        row = {"id": "p1", "name": "Tomatoes", "quantity": 5, "price": 6, "email": FARMER}
        store, _, query = make_store(data=[row])
        body = ProductBody(id="p1", name="Tomatoes", quantity=5, price=6, email=FARMER)
        product = await store.update_product(body)
        assert product.price == 6
        assert ("eq", ("id", "p1"), {}) in query.calls
        assert ("eq", ("email", FARMER), {}) in query.calls

    @pytest.mark.asyncio
    async def test_delete_with_no_matching_row_is_not_found(self):
        store, _, _ = make_store(data=[])
        with pytest.raises(NotFoundError):
            await store.delete_product("p1", "intruder@x.com")

    @pytest.mark.asyncio
    async def test_duplicate_product_id_is_conflict(self):
        store, _, _ = make_store(error=api_error("23505"))
        body = ProductBody(id="p1", name="Tomatoes", quantity=5, price=5, email=FARMER)
        with pytest.raises(ConflictError):
            await store.create_product(body)


class TestPurchasesAndHealth:
    @pytest.mark.asyncio
    async def test_purchase_by_session(self):
        row = {
            "id": "u1",
            "product_id": "p1",
            "product_name": "Tomatoes",
            "buyer_email": BUYER,
            "seller_email": FARMER,
            "quantity": 3,
            "total_price": 15,
            "purchase_date": "2025-03-01T10:00:00+00:00",
            "checkout_session_id": "cs_db_1",
        }
        store, client, query = make_store(data=[row])
        purchase = await store.get_purchase_by_session("cs_db_1")
        assert purchase.id == "u1"
        assert client.tables == ["purchases"]
        assert ("eq", ("checkout_session_id", "cs_db_1"), {}) in query.calls

    @pytest.mark.asyncio
    async def test_check_connection_false_when_unreachable(self):
        store, _, _ = make_store(error=httpx.ConnectError("connection refused"))
        assert await store.check_connection() is False

    @pytest.mark.asyncio
    async def test_check_connection_true(self):
        store, _, _ = make_store(data=[])
        assert await store.check_connection() is True

    def test_create_store_unconfigured(self, settings):
        settings.supabase_url = ""
        settings.supabase_key = ""
        assert create_store(settings) is None
