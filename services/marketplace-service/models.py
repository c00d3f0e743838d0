"""Domain models for products, purchases and checkout sessions."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from packages.shared.errors import ValidationError

# Stripe charges these in whole units; amounts are not scaled by 100.
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})


def to_minor_units(amount: float, currency: str) -> int:
    """Major units (rupees, dollars) to Stripe minor units (paise, cents)."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(round(amount))
    return int(round(amount * 100))


def to_major_units(amount: int, currency: str) -> float:
    """Stripe minor units back to major units, rounded to 2 places."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return float(amount)
    return round(amount / 100, 2)


class UserType(str, Enum):
    FARMER = "Farmer"
    CUSTOMER = "Customer"


class SessionState(str, Enum):
    """Local view of a checkout session. FULFILLED and ABANDONED are terminal."""

    PENDING = "pending"
    FULFILLED = "fulfilled"
    ABANDONED = "abandoned"


class User(BaseModel):
    email: str
    type: UserType
    earning: float = 0


class Product(BaseModel):
    id: str
    name: str
    quantity: int = Field(ge=0)
    price: float = Field(gt=0)
    email: str


class ProductBody(BaseModel):
    """Create/update payload for a farmer's listing."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)
    price: float = Field(..., gt=0)
    email: str = Field(..., min_length=3)


class Purchase(BaseModel):
    id: str
    product_id: Optional[str] = None
    product_name: str
    buyer_email: str
    seller_email: str
    quantity: int
    total_price: float
    purchase_date: datetime
    checkout_session_id: Optional[str] = None


class CheckoutRequest(BaseModel):
    """Body of POST /api/v1/checkout."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId", min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: Optional[float] = Field(default=None, alias="unitPrice", gt=0)


class CheckoutSessionLink(BaseModel):
    url: str
    session_id: str


class ShippingAddress(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    def lines(self) -> List[str]:
        """Non-empty printable address lines."""
        locality = ", ".join(p for p in (self.city, self.state) if p)
        return [p for p in (self.line1, self.line2, locality, self.postal_code, self.country) if p]


class BuyerDetails(BaseModel):
    email: str = Field(..., min_length=3)
    name: Optional[str] = None
    address: Optional[ShippingAddress] = None


class CompletedPayment(BaseModel):
    """
    Facts about a paid checkout session, taken only from Stripe's own record.

    Metadata arrives as strings; quantity and amounts are coerced here so
    nothing downstream does arithmetic on untrusted text.
    """

    session_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    seller_email: str = Field(..., min_length=3)
    amount_total: int = Field(..., ge=0)
    currency: str = "inr"
    buyer: BuyerDetails

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, v: str) -> str:
        return v.lower()

    @property
    def amount(self) -> float:
        """Total paid in major units."""
        return to_major_units(self.amount_total, self.currency)

    @classmethod
    def from_session(cls, session: Dict[str, Any]) -> "CompletedPayment":
        """Build from a Stripe checkout session dict. Raises ValidationError."""
        meta = session.get("metadata") or {}
        details = session.get("customer_details") or {}
        try:
            return cls(
                session_id=session.get("id") or "",
                product_id=meta.get("productId") or "",
                quantity=meta.get("quantity"),
                seller_email=meta.get("sellerId") or "",
                amount_total=session.get("amount_total"),
                currency=session.get("currency") or "inr",
                buyer=BuyerDetails(
                    email=details.get("email") or session.get("customer_email") or "",
                    name=details.get("name"),
                    address=details.get("address"),
                ),
            )
        except PydanticValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ValidationError(
                "Checkout session is missing or has malformed fulfillment data",
                details={"session_id": session.get("id"), "fields": fields},
            ) from e


class FulfillmentRecord(BaseModel):
    """What the store reports back after the fulfillment unit of work."""

    applied: bool
    purchase_id: Optional[str] = None
    product_name: Optional[str] = None
    remaining_quantity: Optional[int] = None
    oversold: bool = False
    buyer_created: bool = False


class FulfillmentResult(BaseModel):
    """Outcome of handling one gateway event."""

    event_type: str
    session_id: Optional[str] = None
    state: Optional[SessionState] = None
    applied: bool = False
    purchase_id: Optional[str] = None
    notifications_sent: int = 0
