"""
Vendor directory.

WHAT: Register, look up, update and list vendors
WHY: Emergency requests and surplus listings denormalize vendor details at
     write time and reject unknown vendor ids
HOW: CollectionService over the `vendors` collection
"""

from typing import Any, Mapping, List, Optional, Union

from .common import CollectionService, new_id
from ..core.config import Settings
from ..models.api_schemas import (
    VendorListFilters,
    VendorLocationInput,
    VendorRegisterRequest,
    VendorUpdateRequest,
    parse_payload,
)
from ..models.entities import Timings, Vendor, VendorLocation
from ..storage.base import DocumentStore, Query
from ..utils.clock import Clock, to_iso
from ..utils.exceptions import VendorNotFoundException
from ..utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_VENDOR_ID = "vendor-1"


def _vendor_location(supplied: Optional[VendorLocationInput]) -> VendorLocation:
    supplied = supplied or VendorLocationInput()
    return VendorLocation(
        address=supplied.address or "",
        city=supplied.city or "",
        state=supplied.state or "",
        pincode=supplied.pincode or "",
        coordinates=supplied.coordinates,
    )


class VendorDirectory(CollectionService):
    """
    Vendor lookups for the lifecycle services plus the vendor profile API.

    Verification (VPT) is not handled here; `verified` and `vptStatus` are
    only ever set at registration.
    """

    not_found = VendorNotFoundException

    def __init__(self, store: DocumentStore, clock: Clock, settings: Settings):
        super().__init__(store.vendors, clock, settings)

    async def get(self, vendor_id: str) -> Optional[Vendor]:
        document = await self._fetch(vendor_id)
        return Vendor.model_validate(document) if document else None

    async def require(self, vendor_id: str) -> Vendor:
        """
        Resolve a vendor id.

        Raises:
            VendorNotFoundException: If no vendor has this id
        """
        return Vendor.model_validate(await self._require(vendor_id))

    async def register(self, payload: Union[VendorRegisterRequest, Mapping[str, Any]]) -> Vendor:
        """
        Register a new vendor.

        Args:
            payload: VendorRegisterRequest or its camelCase dict form

        Returns:
            The stored vendor (unverified, vptStatus pending)

        Raises:
            ValidationException: Missing name, shop name or location
        """
        data = parse_payload(VendorRegisterRequest, payload)
        now = self.clock.now()

        vendor = Vendor(
            id=new_id(),
            name=data.name,
            shop_name=data.shop_name,
            location=_vendor_location(data.location),
            timings=data.timings or Timings(),
            raw_materials=data.raw_materials,
            shop_photo_url=data.shop_photo_url,
            phone=data.phone,
            email=data.email,
            created_at=now,
            updated_at=now,
        )
        await self._insert(vendor.id, vendor.to_document())

        logger.info(f"New vendor registered: {vendor.name} ({vendor.id})")
        return vendor

    async def update(self, vendor_id: str, payload: Union[VendorUpdateRequest, Mapping[str, Any]]) -> Vendor:
        """
        Update profile fields; anything not supplied is left untouched.

        The merged record is validated before anything is written, so a
        rejected update leaves the stored vendor as it was.

        Raises:
            ValidationException: Malformed payload (explicit nulls included)
            VendorNotFoundException: Unknown vendor id
        """
        data = parse_payload(VendorUpdateRequest, payload)
        current = await self._require(vendor_id)

        changes = data.model_dump(by_alias=True, exclude_unset=True, exclude={"location"})
        if "location" in data.model_fields_set:
            changes["location"] = _vendor_location(data.location).to_document()
        changes["updatedAt"] = to_iso(self.clock.now())

        parse_payload(Vendor, {**current, **changes})
        updated = await self._write(vendor_id, changes)

        logger.info(f"Vendor updated: {vendor_id} ({', '.join(sorted(changes))})")
        return Vendor.model_validate(updated)

    async def list(self, filters: Union[VendorListFilters, Mapping[str, Any], None] = None) -> List[Vendor]:
        """List vendors, newest first, optionally by city, verified and active flags."""
        f = parse_payload(VendorListFilters, filters)

        query = Query()
        if f.city:
            query.where("location.city", "==", f.city)
        if f.verified is not None:
            query.where("verified", "==", f.verified)
        if f.active is not None:
            query.where("isActive", "==", f.active)
        query.order("createdAt", "desc").take(self._limit(f.limit))

        return [Vendor.model_validate(doc) for doc in await self._find(query)]

    async def seed_sample_vendor(self) -> Vendor:
        """Insert the demo vendor used for local development (idempotent)."""
        existing = await self.get(SAMPLE_VENDOR_ID)
        if existing:
            return existing

        now = self.clock.now()
        vendor = Vendor(
            id=SAMPLE_VENDOR_ID,
            name="Ram Kumar",
            shop_name="Fresh Vegetables Store",
            location=VendorLocation(address="123 Market Street", city="Mumbai", state="Maharashtra"),
            verified=True,
            created_at=now,
            updated_at=now,
        )
        await self._insert(vendor.id, vendor.to_document())

        logger.info("Sample vendor added to store")
        return vendor
