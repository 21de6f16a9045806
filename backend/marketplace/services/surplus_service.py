"""
Surplus listing lifecycle.

WHAT: Create, list, claim, complete and remove discounted surplus stock
WHY: Vendors with excess or near-expiry stock sell it to other vendors
     instead of wasting it
HOW: State machine over the `surplus` collection with conditional writes

State machine:
    available -> claimed -> completed
    available | claimed -> removed   (soft delete, claim is released)
"""

from typing import Any, Dict, List, Mapping, Union

from .common import CollectionService, merge_location, new_id
from .scoring import shelf_window, surplus_priority
from .vendor_directory import VendorDirectory
from ..core.config import Settings
from ..models.api_schemas import (
    ClaimContactInfo,
    SurplusClaimRequest,
    SurplusClaimResult,
    SurplusCompleteRequest,
    SurplusCreateRequest,
    SurplusListFilters,
    SurplusListResult,
    SurplusRemoveRequest,
    parse_payload,
)
from ..models.entities import (
    SURPLUS_PRIORITIES,
    ClaimRecord,
    PartyContact,
    SurplusListing,
    SurplusListingView,
    SurplusStatus,
)
from ..storage.base import DocumentStore, Query
from ..utils.clock import Clock, to_iso
from ..utils.exceptions import (
    ForbiddenException,
    InvalidStateException,
    SurplusListingNotFoundException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_REMOVAL_REASON = "Removed by vendor"
TERMINAL_STATUSES = (SurplusStatus.COMPLETED, SurplusStatus.REMOVED)

Payload = Mapping[str, Any]


class SurplusListingService(CollectionService):
    """
    Surplus listing state machine.

    WHAT: All operations on surplus listings
    WHY: Prevent double claims and keep ownership rules in one place
    HOW: Checks run in order existence, ownership, state, then a write
         conditional on the status that was read
    """

    not_found = SurplusListingNotFoundException

    def __init__(self, store: DocumentStore, vendors: VendorDirectory, clock: Clock, settings: Settings):
        super().__init__(store.surplus, clock, settings)
        self.vendors = vendors

    def _view(self, document: Mapping[str, Any], now) -> SurplusListingView:
        view = SurplusListingView.model_validate(document)
        view.time_remaining = shelf_window(view.expiry_date, now)
        return view

    async def _load(self, listing_id: str) -> SurplusListing:
        return SurplusListing.model_validate(await self._require(listing_id))

    async def create(self, payload: Union[SurplusCreateRequest, Payload]) -> SurplusListingView:
        """
        List surplus stock.

        WHAT: Validate, price, score and store a new listing
        WHY: Near-expiry stock must surface as urgent
        HOW: Default discount from settings; surplus_priority may force the
             condition to needs_quick_sale

        Raises:
            ValidationException: Missing/invalid fields
            VendorNotFoundException: Unknown vendorId
        """
        data = parse_payload(SurplusCreateRequest, payload)
        vendor = await self.vendors.require(data.vendor_id)
        now = self.clock.now()

        if data.discounted_price is not None:
            discounted = data.discounted_price
        else:
            discounted = data.original_price * self.settings.DEFAULT_DISCOUNT_RATE
        discounted = round(discounted, 2)
        priority, condition = surplus_priority(data.condition, data.expiry_date, now)

        listing = SurplusListing(
            id=new_id(),
            vendor_id=vendor.id,
            vendor_name=vendor.name,
            vendor_shop=vendor.shop_name,
            vendor_contact=vendor.phone,
            item=data.item,
            item_key=data.item.lower(),
            quantity=data.quantity,
            unit=data.unit or self.settings.DEFAULT_UNIT,
            original_price=data.original_price,
            discounted_price=discounted,
            savings=round(data.original_price - discounted, 2),
            expiry_date=data.expiry_date,
            condition=condition,
            description=data.description,
            photo_url=data.photo_url,
            location=merge_location(data.location, vendor.location),
            status=SurplusStatus.AVAILABLE.value,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        document = listing.to_document()
        await self._insert(listing.id, document)

        logger.info(
            f"Surplus listing created: {listing.id} - {listing.item} "
            f"({listing.quantity} {listing.unit}, {listing.priority}) by {vendor.id}"
        )
        return self._view(document, now)

    async def get(self, listing_id: str) -> SurplusListingView:
        """
        Fetch one listing with read-time timeRemaining. Removed listings
        are still returned.

        Raises:
            SurplusListingNotFoundException: Unknown id
        """
        return self._view(await self._require(listing_id), self.clock.now())

    async def list(self, filters: Union[SurplusListFilters, Payload, None] = None) -> SurplusListResult:
        """List listings matching filters, bucketed by priority."""
        f = parse_payload(SurplusListFilters, filters)

        query = Query()
        if f.item:
            query.where_prefix("itemKey", f.item.strip().lower())
        if f.city:
            query.where("location.city", "==", f.city)
        if f.vendor_id:
            query.where("vendorId", "==", f.vendor_id)
        if f.status:
            query.where("status", "==", f.status)
        if f.priority:
            query.where("priority", "==", f.priority)
        if f.condition:
            query.where("condition", "==", f.condition)
        query.order(f.sort_by, f.order).take(self._limit(f.limit))

        now = self.clock.now()
        items = [self._view(doc, now) for doc in await self._find(query)]

        categorized: Dict[str, List[SurplusListingView]] = {level: [] for level in SURPLUS_PRIORITIES}
        for item in items:
            categorized[item.priority].append(item)

        return SurplusListResult(
            count=len(items),
            items=items,
            categorized=categorized,
            summary={level: len(bucket) for level, bucket in categorized.items()},
            timestamp=now,
        )

    async def claim(self, listing_id: str, payload: Union[SurplusClaimRequest, Payload]) -> SurplusClaimResult:
        """
        Claim an available listing.

        Returns:
            The claimed listing, the claim record and contacts for both sides

        Raises:
            ValidationException: Missing claimedByVendorId
            SurplusListingNotFoundException: Unknown listing
            InvalidStateException: Listing is not available (already claimed,
                completed or removed)
            VendorNotFoundException: Unknown claimer
        """
        data = parse_payload(SurplusClaimRequest, payload)
        listing = await self._load(listing_id)

        if listing.status != SurplusStatus.AVAILABLE:
            logger.info(f"Rejected claim on {listing_id}: status is {listing.status}")
            raise InvalidStateException(
                listing_id,
                listing.status,
                message="This surplus stock has already been claimed or is no longer available"
            )

        claimer = await self.vendors.require(data.claimed_by_vendor_id)
        now = self.clock.now()
        claim = ClaimRecord(
            vendor_id=claimer.id,
            vendor_name=claimer.name,
            vendor_shop=claimer.shop_name,
            vendor_contact=claimer.phone,
        )

        updated = await self._write(
            listing_id,
            {
                "status": SurplusStatus.CLAIMED.value,
                "claimedBy": claim.to_document(),
                "claimedAt": to_iso(now),
                "claimMessage": data.message,
                "expectedPickupTime": to_iso(data.expected_pickup_time) if data.expected_pickup_time else None,
                "updatedAt": to_iso(now),
            },
            expect={"status": listing.status},
        )

        logger.info(f"Surplus listing {listing_id} claimed by {claimer.id}")
        return SurplusClaimResult(
            listing=SurplusListing.model_validate(updated),
            claimed_by=claim,
            contact_info=ClaimContactInfo(
                original_vendor=PartyContact(name=listing.vendor_name, contact=listing.vendor_contact),
                claimer=PartyContact(name=claimer.name, contact=claimer.phone),
            ),
        )

    async def complete(self, listing_id: str, payload: Union[SurplusCompleteRequest, Payload]) -> SurplusListing:
        """
        Mark a claimed listing as handed over.

        Either the listing's creator or its current claimer may complete it.

        Raises:
            ValidationException: Missing completedByVendorId or rating outside 1-5
            SurplusListingNotFoundException: Unknown listing
            ForbiddenException: Caller is neither creator nor claimer
            InvalidStateException: Listing is not claimed
        """
        data = parse_payload(SurplusCompleteRequest, payload)
        listing = await self._load(listing_id)

        allowed = {listing.vendor_id}
        if listing.claimed_by:
            allowed.add(listing.claimed_by.vendor_id)
        if data.completed_by_vendor_id not in allowed:
            logger.warning(f"Vendor {data.completed_by_vendor_id} tried to complete surplus listing {listing_id}")
            raise ForbiddenException(
                "Only the listing owner or the claimer can mark this as completed",
                vendor_id=data.completed_by_vendor_id
            )

        if listing.status != SurplusStatus.CLAIMED:
            raise InvalidStateException(
                listing_id,
                listing.status,
                message=f"Only claimed listings can be completed; {listing_id} is {listing.status}"
            )

        now = self.clock.now()
        updated = await self._write(
            listing_id,
            {
                "status": SurplusStatus.COMPLETED.value,
                "completedAt": to_iso(now),
                "completedBy": data.completed_by_vendor_id,
                "rating": data.rating,
                "feedback": data.feedback,
                "updatedAt": to_iso(now),
            },
            expect={"status": listing.status},
        )

        logger.info(f"Surplus listing {listing_id} completed by {data.completed_by_vendor_id}")
        return SurplusListing.model_validate(updated)

    async def remove(self, listing_id: str, payload: Union[SurplusRemoveRequest, Payload]) -> SurplusListing:
        """
        Soft-delete a listing. Creator only.

        A claimed listing can still be removed; its claim moves to
        releasedClaim so the claimer's record is not lost.

        Raises:
            ValidationException: Missing vendorId
            SurplusListingNotFoundException: Unknown listing
            ForbiddenException: Caller is not the creator
            InvalidStateException: Listing is already completed or removed
        """
        data = parse_payload(SurplusRemoveRequest, payload)
        listing = await self._load(listing_id)

        if listing.vendor_id != data.vendor_id:
            logger.warning(f"Vendor {data.vendor_id} tried to remove surplus listing {listing_id}")
            raise ForbiddenException("Only the listing owner can remove this listing", vendor_id=data.vendor_id)

        if listing.status in TERMINAL_STATUSES:
            raise InvalidStateException(
                listing_id,
                listing.status,
                message=f"Surplus listing {listing_id} is already {listing.status}"
            )

        now = self.clock.now()
        changes = {
            "isActive": False,
            "status": SurplusStatus.REMOVED.value,
            "removedAt": to_iso(now),
            "removalReason": data.reason or DEFAULT_REMOVAL_REASON,
            "updatedAt": to_iso(now),
        }
        if listing.claimed_by:
            changes["releasedClaim"] = listing.claimed_by.to_document()
            changes["claimedBy"] = None

        updated = await self._write(listing_id, changes, expect={"status": listing.status})

        logger.info(f"Surplus listing removed: {listing_id}")
        return SurplusListing.model_validate(updated)
