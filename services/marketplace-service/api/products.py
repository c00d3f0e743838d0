"""Farmer product listings."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends

from db import MarketplaceStore
from deps import get_store
from models import Product, ProductBody, UserType
from packages.shared.errors import ForbiddenError, NotFoundError, ValidationError

router = APIRouter(prefix="/api/v1", tags=["Products"])


async def _require_farmer(store: MarketplaceStore, email: str) -> None:
    user = await store.get_user(email)
    if not user:
        raise NotFoundError("User not found", details={"email": email})
    if user.type != UserType.FARMER:
        raise ForbiddenError("Only farmers can manage products", details={"email": email})


@router.get("/products", response_model=List[Product])
async def list_products(email: Optional[str] = None, store: MarketplaceStore = Depends(get_store)):
    """A farmer's own listings when email is given, otherwise everything in stock."""
    return await store.list_products(seller_email=email)


@router.post("/products", status_code=201, response_model=Product)
async def create_product(body: ProductBody, store: MarketplaceStore = Depends(get_store)):
    await _require_farmer(store, body.email)
    if not body.id:
        body = body.model_copy(update={"id": str(uuid.uuid4())})
    return await store.create_product(body)


@router.put("/products", response_model=Product)
async def update_product(body: ProductBody, store: MarketplaceStore = Depends(get_store)):
    if not body.id:
        raise ValidationError("Product ID is required")
    return await store.update_product(body)


@router.delete("/products")
async def delete_product(
    id: Optional[str] = None,
    email: Optional[str] = None,
    store: MarketplaceStore = Depends(get_store),
):
    if not id:
        raise ValidationError("Product ID is required")
    if not email:
        raise ValidationError("Seller email is required")
    await store.delete_product(id, email)
    return {"success": True}
