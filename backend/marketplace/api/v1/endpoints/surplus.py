"""
Surplus listing endpoints.

WHAT: List, browse, claim, complete and remove discounted surplus stock
WHY: Reduce waste by moving excess stock between vendors
HOW: FastAPI endpoints wrapping SurplusListingService
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...dependencies import get_surplus_service
from ....models.api_schemas import (
    SurplusClaimRequest,
    SurplusClaimResult,
    SurplusCompleteRequest,
    SurplusCreateRequest,
    SurplusListResult,
    SurplusRemoveRequest,
)
from ....models.entities import SurplusListingView
from ....services.surplus_service import SurplusListingService
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/surplus", response_model=SurplusListingView, status_code=status.HTTP_201_CREATED)
async def create_surplus_listing(
    payload: SurplusCreateRequest,
    service: SurplusListingService = Depends(get_surplus_service)
):
    """
    List surplus stock at a discount.

    Returns:
        The stored listing with discountedPrice, savings and priority

    Raises:
        ValidationException: Invalid payload (400)
        VendorNotFoundException: Unknown vendorId (404)
    """
    return await service.create(payload)


@router.get("/surplus", response_model=SurplusListResult)
async def list_surplus_listings(
    item: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    vendor_id: Optional[str] = Query(None, alias="vendorId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    condition: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = Query(None),
    service: SurplusListingService = Depends(get_surplus_service)
):
    """Browse surplus listings; available only unless `status` says otherwise."""
    params = {
        "item": item,
        "city": city,
        "vendorId": vendor_id,
        "status": status_filter,
        "priority": priority,
        "condition": condition,
        "limit": limit,
        "sortBy": sort_by,
        "order": order,
    }
    return await service.list({key: value for key, value in params.items() if value is not None})


@router.get("/surplus/{listing_id}", response_model=SurplusListingView)
async def get_surplus_listing(
    listing_id: str,
    service: SurplusListingService = Depends(get_surplus_service)
):
    """
    Get one listing, including removed ones.

    Raises:
        SurplusListingNotFoundException: Unknown id (404)
    """
    return await service.get(listing_id)


@router.put("/surplus/{listing_id}/claim", response_model=SurplusClaimResult)
async def claim_surplus_listing(
    listing_id: str,
    payload: SurplusClaimRequest,
    service: SurplusListingService = Depends(get_surplus_service)
):
    """
    Claim an available listing.

    Raises:
        SurplusListingNotFoundException / VendorNotFoundException (404)
        InvalidStateException: Already claimed or no longer available (409)
    """
    return await service.claim(listing_id, payload)


@router.put("/surplus/{listing_id}/complete")
async def complete_surplus_listing(
    listing_id: str,
    payload: SurplusCompleteRequest,
    service: SurplusListingService = Depends(get_surplus_service)
):
    """
    Mark a claimed listing as completed.

    Raises:
        ForbiddenException: Caller is neither owner nor claimer (403)
        InvalidStateException: Listing is not claimed (409)
    """
    listing = await service.complete(listing_id, payload)
    return {"success": True, "message": "Transaction marked as completed", "listing": listing}


@router.delete("/surplus/{listing_id}")
async def remove_surplus_listing(
    listing_id: str,
    payload: SurplusRemoveRequest,
    service: SurplusListingService = Depends(get_surplus_service)
):
    """
    Soft-delete a listing (owner only). Takes a JSON body.

    Raises:
        ForbiddenException: Caller is not the owner (403)
        InvalidStateException: Already completed or removed (409)
    """
    listing = await service.remove(listing_id, payload)
    return {"success": True, "message": "Surplus listing removed successfully", "listing": listing}
