"""
Mandi price endpoints.

WHAT: Post, browse, trend, verify and vote on crowd-posted prices
WHY: Vendors need a shared view of what produce costs at the mandi
HOW: FastAPI endpoints wrapping PriceService
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...dependencies import get_price_service
from ....models.api_schemas import (
    PriceListResult,
    PricePostRequest,
    PricePostResult,
    PriceTrendResult,
    PriceVerifyRequest,
    PriceVoteRequest,
)
from ....models.entities import PriceEntry
from ....services.price_service import PriceService

router = APIRouter()


@router.post("/prices/add", response_model=PricePostResult, status_code=status.HTTP_201_CREATED)
async def post_price(
    payload: PricePostRequest,
    service: PriceService = Depends(get_price_service)
):
    """
    Post a price with a proof photo URL.

    Returns:
        The stored entry and the proof reading; confident readings verify it

    Raises:
        ValidationException: Missing fields or non-positive price (400)
        VendorNotFoundException: Unknown vendorId (404)
    """
    return await service.post(payload)


@router.get("/prices", response_model=PriceListResult)
async def list_prices(
    item: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    vendor_id: Optional[str] = Query(None, alias="vendorId"),
    verified: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = Query(None),
    service: PriceService = Depends(get_price_service)
):
    """Browse price entries, grouped by item in `pricesByItem`."""
    params = {
        "item": item,
        "city": city,
        "vendorId": vendor_id,
        "verified": verified,
        "limit": limit,
        "sortBy": sort_by,
        "order": order,
    }
    return await service.list({key: value for key, value in params.items() if value is not None})


@router.get("/prices/trends/{item}", response_model=PriceTrendResult)
async def price_trends(
    item: str,
    days: Optional[str] = Query(None),
    service: PriceService = Depends(get_price_service)
):
    """Verified prices for an item over the last `days` (default 30)."""
    return await service.trends(item, {"days": days} if days is not None else None)


@router.get("/prices/{price_id}", response_model=PriceEntry)
async def get_price(
    price_id: str,
    service: PriceService = Depends(get_price_service)
):
    """
    Raises:
        PriceEntryNotFoundException: Unknown id (404)
    """
    return await service.get(price_id)


@router.put("/prices/{price_id}/verify")
async def verify_price(
    price_id: str,
    payload: PriceVerifyRequest,
    service: PriceService = Depends(get_price_service)
):
    """Verify or reject a price entry."""
    entry = await service.verify(price_id, payload)
    decision = "verified" if entry.verified else "rejected"
    return {"success": True, "message": f"Price entry {decision} successfully", "price": entry}


@router.post("/prices/{price_id}/vote")
async def vote_on_price(
    price_id: str,
    payload: PriceVoteRequest,
    service: PriceService = Depends(get_price_service)
):
    """
    Upvote or downvote a price entry.

    Raises:
        ValidationException: vote is not "up" or "down" (400)
    """
    votes = await service.vote(price_id, payload)
    return {"success": True, "message": f"Price entry {payload.vote}voted successfully", "votes": votes}
