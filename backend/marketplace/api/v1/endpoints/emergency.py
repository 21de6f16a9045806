"""
Emergency request endpoints.

WHAT: Broadcast, browse, respond to and close emergency supply requests
WHY: Vendors who run out of stock need nearby vendors to answer fast
HOW: FastAPI endpoints wrapping EmergencyRequestService; business
     exceptions are turned into HTTP errors by the global handlers
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...dependencies import get_emergency_service
from ....models.api_schemas import (
    EmergencyCancelRequest,
    EmergencyCreateRequest,
    EmergencyCreateResult,
    EmergencyFulfillRequest,
    EmergencyListResult,
    EmergencyRespondRequest,
    EmergencyRespondResult,
)
from ....models.entities import EmergencyRequestView
from ....services.emergency_service import EmergencyRequestService
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/emergency", response_model=EmergencyCreateResult, status_code=status.HTTP_201_CREATED)
async def create_emergency_request(
    payload: EmergencyCreateRequest,
    service: EmergencyRequestService = Depends(get_emergency_service)
):
    """
    Broadcast a new emergency request.

    WHAT: Store an active request with its priority and expiry
    WHY: Nearby vendors see the most urgent requests first
    HOW: EmergencyRequestService.create

    Returns:
        EmergencyCreateResult with the request and broadcast info

    Raises:
        ValidationException: Invalid payload (400)
        VendorNotFoundException: Unknown vendorId (404)
    """
    return await service.create(payload)


@router.get("/emergency", response_model=EmergencyListResult)
async def list_emergency_requests(
    item: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    urgency_level: Optional[str] = Query(None, alias="urgencyLevel"),
    status_filter: Optional[str] = Query(None, alias="status"),
    vendor_id: Optional[str] = Query(None, alias="vendorId"),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = Query(None),
    service: EmergencyRequestService = Depends(get_emergency_service)
):
    """
    Browse emergency requests.

    Only parameters actually sent are forwarded, so omitting `status`
    keeps the active-only default while `status=` (empty) lists every status.
    """
    params = {
        "item": item,
        "city": city,
        "urgencyLevel": urgency_level,
        "status": status_filter,
        "vendorId": vendor_id,
        "limit": limit,
        "sortBy": sort_by,
        "order": order,
    }
    return await service.list({key: value for key, value in params.items() if value is not None})


@router.post("/emergency/expire")
async def expire_overdue_requests(service: EmergencyRequestService = Depends(get_emergency_service)):
    """
    Expire every active request past its expiresAt.

    Operator endpoint; nothing expires unless this runs.
    """
    expired = await service.expire_overdue()
    return {"success": True, "count": len(expired), "expired": expired}


@router.get("/emergency/{request_id}", response_model=EmergencyRequestView)
async def get_emergency_request(
    request_id: str,
    service: EmergencyRequestService = Depends(get_emergency_service)
):
    """
    Get one emergency request with timeRemaining and expiryInfo.

    Raises:
        EmergencyRequestNotFoundException: Unknown id (404)
    """
    return await service.get(request_id)


@router.put("/emergency/{request_id}/respond", response_model=EmergencyRespondResult)
async def respond_to_emergency_request(
    request_id: str,
    payload: EmergencyRespondRequest,
    service: EmergencyRequestService = Depends(get_emergency_service)
):
    """
    Offer stock against an active emergency request.

    Raises:
        EmergencyRequestNotFoundException / VendorNotFoundException (404)
        InvalidStateException: Request is no longer active (409)
    """
    return await service.respond(request_id, payload)


@router.put("/emergency/{request_id}/fulfill")
async def fulfill_emergency_request(
    request_id: str,
    payload: EmergencyFulfillRequest,
    service: EmergencyRequestService = Depends(get_emergency_service)
):
    """
    Mark an emergency request fulfilled or partially fulfilled.

    Raises:
        ForbiddenException: Caller is not the requester (403)
        InvalidStateException: Request is no longer active (409)
    """
    request = await service.fulfill(request_id, payload)
    return {
        "success": True,
        "message": f"Emergency request marked as {request.status}",
        "emergency": request
    }


@router.put("/emergency/{request_id}/cancel")
async def cancel_emergency_request(
    request_id: str,
    payload: EmergencyCancelRequest,
    service: EmergencyRequestService = Depends(get_emergency_service)
):
    """
    Cancel an active emergency request.

    Raises:
        ForbiddenException: Caller is not the requester (403)
        InvalidStateException: Request is no longer active (409)
    """
    request = await service.cancel(request_id, payload)
    return {
        "success": True,
        "message": "Emergency request cancelled successfully",
        "emergency": request
    }
