"""
Persistence store for users, products and purchases.

The store handle is built once by the application lifespan and injected into
routes and the fulfillment processor; nothing here keeps a global client.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from config import Settings
from models import CompletedPayment, FulfillmentRecord, Product, ProductBody, Purchase, User
from packages.shared.errors import ConflictError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, name, quantity, price, email"
PURCHASE_COLUMNS = (
    "id, product_id, product_name, buyer_email, seller_email, "
    "quantity, total_price, purchase_date, checkout_session_id"
)

# PostgreSQL SQLSTATEs surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
NO_DATA_FOUND = "P0002"


class MarketplaceStore(ABC):
    """Operations the marketplace needs from its relational store."""

    @abstractmethod
    async def check_connection(self) -> bool: ...

    @abstractmethod
    async def get_user(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[Product]: ...

    @abstractmethod
    async def list_products(self, seller_email: Optional[str] = None) -> List[Product]: ...

    @abstractmethod
    async def create_product(self, body: ProductBody) -> Product: ...

    @abstractmethod
    async def update_product(self, body: ProductBody) -> Product: ...

    @abstractmethod
    async def delete_product(self, product_id: str, seller_email: str) -> None: ...

    @abstractmethod
    async def list_purchases_by_buyer(self, buyer_email: str) -> List[Purchase]: ...

    @abstractmethod
    async def get_purchase_by_session(self, session_id: str) -> Optional[Purchase]: ...

    @abstractmethod
    async def apply_fulfillment(
        self,
        payment: CompletedPayment,
        placeholder_password: str,
    ) -> FulfillmentRecord:
        """
        Apply one paid checkout session as a single unit of work.

        Creates the buyer when missing, decrements stock (clamped at zero),
        credits the seller and inserts the purchase keyed by session id.
        Returns ``applied=False`` when the session was already fulfilled.
        Raises NotFoundError for a missing product or seller, UpstreamError
        when the store fails; either way nothing is persisted.
        """


class SupabaseStore(MarketplaceStore):
    """Supabase/PostgREST implementation. Fulfillment runs as one SQL function."""

    def __init__(self, client: Client):
        self._client = client

    def _execute(self, query, action: str, **context: Any):
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError(f"{action}: already exists", details=context) from e
            if e.code in (NO_DATA_FOUND, FOREIGN_KEY_VIOLATION):
                raise NotFoundError(e.message or f"{action}: not found", details=context) from e
            logger.error("Supabase %s failed: %s", action, e.message, extra={"context": context})
            raise UpstreamError(f"Store error during {action}", details=context) from e
        except httpx.HTTPError as e:
            logger.error("Supabase %s unreachable: %s", action, e, extra={"context": context})
            raise UpstreamError(f"Store unreachable during {action}", details=context) from e

    async def check_connection(self) -> bool:
        try:
            result = self._client.table("products").select("id").limit(1).execute()
            return result.data is not None
        except (APIError, httpx.HTTPError):
            return False

    async def get_user(self, email: str) -> Optional[User]:
        result = self._execute(
            self._client.table("users").select("email, type, earning").eq("email", email).limit(1),
            "get_user",
            email=email,
        )
        return User(**result.data[0]) if result.data else None

    async def get_product(self, product_id: str) -> Optional[Product]:
        result = self._execute(
            self._client.table("products").select(PRODUCT_COLUMNS).eq("id", product_id).limit(1),
            "get_product",
            product_id=product_id,
        )
        return Product(**result.data[0]) if result.data else None

    async def list_products(self, seller_email: Optional[str] = None) -> List[Product]:
        q = self._client.table("products").select(PRODUCT_COLUMNS)
        if seller_email:
            q = q.eq("email", seller_email)
        else:
            q = q.gt("quantity", 0)
        result = self._execute(q.order("name"), "list_products", seller_email=seller_email)
        return [Product(**row) for row in result.data or []]

    async def create_product(self, body: ProductBody) -> Product:
        row = body.model_dump()
        result = self._execute(
            self._client.table("products").insert(row),
            "create_product",
            product_id=body.id,
        )
        return Product(**result.data[0])

    async def update_product(self, body: ProductBody) -> Product:
        result = self._execute(
            self._client.table("products")
            .update({"name": body.name, "quantity": body.quantity, "price": body.price})
            .eq("id", body.id)
            .eq("email", body.email),
            "update_product",
            product_id=body.id,
        )
        if not result.data:
            raise NotFoundError("Product not found", details={"product_id": body.id})
        return Product(**result.data[0])

    async def delete_product(self, product_id: str, seller_email: str) -> None:
        result = self._execute(
            self._client.table("products").delete().eq("id", product_id).eq("email", seller_email),
            "delete_product",
            product_id=product_id,
        )
        if not result.data:
            raise NotFoundError("Product not found", details={"product_id": product_id})

    async def list_purchases_by_buyer(self, buyer_email: str) -> List[Purchase]:
        result = self._execute(
            self._client.table("purchases")
            .select(PURCHASE_COLUMNS)
            .eq("buyer_email", buyer_email)
            .order("purchase_date", desc=True),
            "list_purchases",
            buyer_email=buyer_email,
        )
        return [Purchase(**row) for row in result.data or []]

    async def get_purchase_by_session(self, session_id: str) -> Optional[Purchase]:
        result = self._execute(
            self._client.table("purchases")
            .select(PURCHASE_COLUMNS)
            .eq("checkout_session_id", session_id)
            .limit(1),
            "get_purchase_by_session",
            session_id=session_id,
        )
        return Purchase(**result.data[0]) if result.data else None

    async def apply_fulfillment(
        self,
        payment: CompletedPayment,
        placeholder_password: str,
    ) -> FulfillmentRecord:
        params: Dict[str, Any] = {
            "p_session_id": payment.session_id,
            "p_product_id": payment.product_id,
            "p_quantity": payment.quantity,
            "p_seller_email": payment.seller_email,
            "p_buyer_email": payment.buyer.email,
            "p_total_price": payment.amount,
            "p_placeholder_password": placeholder_password,
        }
        result = self._execute(
            self._client.rpc("fulfill_checkout_session", params),
            "fulfill_checkout_session",
            session_id=payment.session_id,
            product_id=payment.product_id,
        )
        return FulfillmentRecord(**(result.data or {}))


def create_store(settings: Settings) -> Optional[SupabaseStore]:
    """Build the Supabase-backed store, or None when not configured."""
    if not settings.supabase_configured:
        return None
    return SupabaseStore(create_client(settings.supabase_url, settings.supabase_key))
