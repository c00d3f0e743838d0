"""Profile view: purchase history, total spent and seller earning."""

from fastapi import APIRouter, Depends

from db import MarketplaceStore
from deps import get_store
from packages.shared.errors import NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Profile"])


@router.get("/profile")
async def get_profile(email: str, store: MarketplaceStore = Depends(get_store)):
    user = await store.get_user(email)
    if not user:
        raise NotFoundError("User not found", details={"email": email})
    purchases = await store.list_purchases_by_buyer(email)
    return {
        "email": user.email,
        "type": user.type.value,
        "earning": user.earning,
        "purchases": [p.model_dump(mode="json") for p in purchases],
        "totalSpent": round(sum(p.total_price for p in purchases), 2),
    }
