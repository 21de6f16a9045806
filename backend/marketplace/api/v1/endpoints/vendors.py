"""
Vendor endpoints.

WHAT: Register, fetch, update and list vendors
WHY: Lifecycle operations reference vendors by id
HOW: Thin FastAPI wrappers over VendorDirectory
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...dependencies import get_vendor_directory
from ....models.api_schemas import VendorRegisterRequest, VendorUpdateRequest
from ....services.vendor_directory import VendorDirectory
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/vendors/register", status_code=status.HTTP_201_CREATED)
async def register_vendor(
    payload: VendorRegisterRequest,
    vendors: VendorDirectory = Depends(get_vendor_directory)
):
    """
    Register a new vendor with their shop details.

    Returns:
        201 with the stored vendor

    Raises:
        ValidationException: Missing name, shopName or location (400)
    """
    vendor = await vendors.register(payload)
    return {"success": True, "message": "Vendor registered successfully", "vendor": vendor}


@router.get("/vendors")
async def list_vendors(
    city: Optional[str] = Query(None),
    verified: Optional[str] = Query(None),
    active: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    vendors: VendorDirectory = Depends(get_vendor_directory)
):
    """List vendors filtered by city, verified and active flags."""
    items = await vendors.list({"city": city, "verified": verified, "active": active, "limit": limit})
    return {"success": True, "count": len(items), "vendors": items}


@router.get("/vendors/{vendor_id}")
async def get_vendor(vendor_id: str, vendors: VendorDirectory = Depends(get_vendor_directory)):
    """
    Get vendor profile by id.

    Raises:
        VendorNotFoundException: Unknown id (404)
    """
    return {"success": True, "vendor": await vendors.require(vendor_id)}


@router.put("/vendors/{vendor_id}")
async def update_vendor(
    vendor_id: str,
    payload: VendorUpdateRequest,
    vendors: VendorDirectory = Depends(get_vendor_directory)
):
    """
    Update vendor profile fields.

    Raises:
        VendorNotFoundException: Unknown id (404)
    """
    vendor = await vendors.update(vendor_id, payload)
    return {"success": True, "message": "Vendor updated successfully", "vendor": vendor}
