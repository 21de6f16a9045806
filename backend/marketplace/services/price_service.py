"""
Crowd-verified mandi prices.

WHAT: Post, browse, verify and vote on prices vendors saw at their mandi
WHY: Vendors price their own stock and surplus off what the market pays
HOW: CollectionService over the `prices` collection; a ProofReader scores
     the proof photo and a confident reading verifies the entry on post
"""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from .common import CollectionService, new_id
from .proof_reader import ProofReadError, ProofReader
from .scoring import price_trend
from .vendor_directory import SAMPLE_VENDOR_ID, VendorDirectory
from ..core.config import Settings
from ..models.api_schemas import (
    LocationInput,
    PriceListFilters,
    PriceListResult,
    PricePostRequest,
    PricePostResult,
    PriceTrendDirection,
    PriceTrendFilters,
    PriceTrendResult,
    PriceVerifyRequest,
    PriceVoteRequest,
    PriceVoteResult,
    parse_payload,
)
from ..models.entities import Location, PriceEntry, ProofCheck
from ..storage.base import DocumentStore, Query
from ..utils.clock import Clock, to_iso
from ..utils.exceptions import InvalidStateException, PriceEntryNotFoundException
from ..utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_PRICE_ID = "price-1"
VOTE_ATTEMPTS = 3

Payload = Mapping[str, Any]


def _price_location(supplied: Optional[LocationInput]) -> Location:
    supplied = supplied or LocationInput()
    return Location(
        address=supplied.address or "",
        city=supplied.city or "",
        state=supplied.state or "",
        coordinates=supplied.coordinates,
    )


class PriceService(CollectionService):
    """
    Price entries and their verification.

    An entry is verified on post when the proof reading is confident, and an
    operator can verify or reject it later. Votes only move counters.
    """

    not_found = PriceEntryNotFoundException

    def __init__(
        self,
        store: DocumentStore,
        vendors: VendorDirectory,
        clock: Clock,
        settings: Settings,
        reader: ProofReader
    ):
        super().__init__(store.prices, clock, settings)
        self.vendors = vendors
        self.reader = reader

    async def _read_proof(self, data: PricePostRequest) -> ProofCheck:
        try:
            return await self.reader.read(data.proof_photo_url, data.item, data.price)
        except ProofReadError as e:
            # Entry is still stored, just left pending
            logger.warning(f"Proof reading failed for {data.proof_photo_url}: {e}")
            return ProofCheck(success=False, confidence=0, error=str(e))

    async def post(self, payload: Union[PricePostRequest, Payload]) -> PricePostResult:
        """
        Post a price with its proof photo.

        WHAT: Validate, read the proof, store the entry
        WHY: Only prices backed by a readable proof count as verified
        HOW: Confidence strictly above PRICE_AUTO_VERIFY_CONFIDENCE verifies;
             anything else stays pending

        Raises:
            ValidationException: Missing vendorId, item, price or proof photo
            VendorNotFoundException: Unknown vendorId
        """
        data = parse_payload(PricePostRequest, payload)
        vendor = await self.vendors.require(data.vendor_id)
        check = await self._read_proof(data)
        verified = check.confidence > self.settings.PRICE_AUTO_VERIFY_CONFIDENCE
        now = self.clock.now()

        entry = PriceEntry(
            id=new_id(),
            vendor_id=vendor.id,
            vendor_name=vendor.name,
            item=data.item,
            price=data.price,
            unit=data.unit or self.settings.DEFAULT_UNIT,
            market_name=data.market_name or self.settings.DEFAULT_MARKET_NAME,
            proof_photo_url=data.proof_photo_url,
            location=_price_location(data.location),
            notes=data.notes,
            ocr_validation=check,
            verified=verified,
            verification_status="verified" if verified else "pending",
            timestamp=now,
            created_at=now,
            updated_at=now,
        )
        await self._insert(entry.id, entry.to_document())

        logger.info(
            f"Price posted: {entry.item} - {entry.price}/{entry.unit} by {vendor.id} "
            f"(confidence {check.confidence}, {entry.verification_status})"
        )
        return PricePostResult(price=entry, ocr_validation=check)

    async def get(self, price_id: str) -> PriceEntry:
        """
        Raises:
            PriceEntryNotFoundException: Unknown id
        """
        return PriceEntry.model_validate(await self._require(price_id))

    async def list(self, filters: Union[PriceListFilters, Payload, None] = None) -> PriceListResult:
        """List entries, newest first by default, grouped by item."""
        f = parse_payload(PriceListFilters, filters)

        query = Query()
        if f.item:
            query.where("item", "==", f.item.strip().lower())
        if f.city:
            query.where("location.city", "==", f.city)
        if f.vendor_id:
            query.where("vendorId", "==", f.vendor_id)
        if f.verified is not None:
            query.where("verified", "==", f.verified)
        query.order(f.sort_by, f.order).take(self._limit(f.limit))

        prices = [PriceEntry.model_validate(doc) for doc in await self._find(query)]

        by_item: Dict[str, List[PriceEntry]] = {}
        for entry in prices:
            by_item.setdefault(entry.item, []).append(entry)

        return PriceListResult(
            count=len(prices),
            prices=prices,
            prices_by_item=by_item,
            timestamp=self.clock.now(),
        )

    async def trends(self, item: str, filters: Union[PriceTrendFilters, Payload, None] = None) -> PriceTrendResult:
        """
        Verified prices for item over the last `days`, oldest first, with
        average, range and the first-to-last change.
        """
        f = parse_payload(PriceTrendFilters, filters)
        days = f.days or self.settings.PRICE_TREND_DAYS
        item_key = item.strip().lower()
        since = self.clock.now() - timedelta(days=days)

        query = (
            Query()
            .where("item", "==", item_key)
            .where("verified", "==", True)
            .where("timestamp", ">=", to_iso(since))
            .order("timestamp", "asc")
        )
        prices = [PriceEntry.model_validate(doc) for doc in await self._find(query)]
        stats = price_trend([entry.price for entry in prices])

        return PriceTrendResult(
            item=item_key,
            period=f"{days} days",
            count=len(prices),
            average_price=stats["average_price"],
            min_price=stats["min_price"],
            max_price=stats["max_price"],
            prices=prices,
            trends=PriceTrendDirection(
                is_increasing=stats["is_increasing"],
                percent_change=stats["percent_change"],
            ),
        )

    async def verify(self, price_id: str, payload: Union[PriceVerifyRequest, Payload]) -> PriceEntry:
        """
        Verify or reject an entry. Either decision can be reversed later.

        Raises:
            ValidationException: Missing `verified`
            PriceEntryNotFoundException: Unknown id
        """
        data = parse_payload(PriceVerifyRequest, payload)
        now = self.clock.now()

        updated = await self._write(price_id, {
            "verified": data.verified,
            "verificationStatus": "verified" if data.verified else "rejected",
            "verificationReason": data.reason,
            "verifiedAt": to_iso(now),
            "updatedAt": to_iso(now),
        })

        logger.info(f"Price entry {price_id} {'verified' if data.verified else 'rejected'}")
        return PriceEntry.model_validate(updated)

    async def vote(self, price_id: str, payload: Union[PriceVoteRequest, Payload]) -> PriceVoteResult:
        """
        Up- or downvote an entry.

        The counter write is conditional on the count that was read and is
        retried a few times, so concurrent votes are never lost silently.

        Raises:
            ValidationException: Vote is not "up" or "down"
            PriceEntryNotFoundException: Unknown id
            InvalidStateException: Still contended after VOTE_ATTEMPTS tries
        """
        data = parse_payload(PriceVoteRequest, payload)
        counter = "upvotes" if data.vote == "up" else "downvotes"

        for attempt in range(1, VOTE_ATTEMPTS + 1):
            current = await self._require(price_id)
            count = current.get(counter, 0)
            try:
                updated = await self._write(
                    price_id,
                    {counter: count + 1, "updatedAt": to_iso(self.clock.now())},
                    expect={counter: current.get(counter)},
                )
            except InvalidStateException:
                if attempt == VOTE_ATTEMPTS:
                    raise
                continue

            voter = f" by {data.vendor_id}" if data.vendor_id else ""
            logger.info(f"Price entry {price_id} {data.vote}voted{voter}")
            return PriceVoteResult(upvotes=updated.get("upvotes", 0), downvotes=updated.get("downvotes", 0))

    async def seed_sample_price(self) -> PriceEntry:
        """Insert the demo tomato price for the sample vendor (idempotent)."""
        existing = await self._fetch(SAMPLE_PRICE_ID)
        if existing:
            return PriceEntry.model_validate(existing)

        vendor = await self.vendors.seed_sample_vendor()
        now = self.clock.now()
        entry = PriceEntry(
            id=SAMPLE_PRICE_ID,
            vendor_id=SAMPLE_VENDOR_ID,
            vendor_name=vendor.name,
            item="tomatoes",
            price=25,
            unit="kg",
            market_name=self.settings.DEFAULT_MARKET_NAME,
            proof_photo_url="",
            location=Location(city=vendor.location.city, state=vendor.location.state),
            verified=True,
            verification_status="verified",
            timestamp=now,
            created_at=now,
            updated_at=now,
        )
        await self._insert(entry.id, entry.to_document())

        logger.info("Sample price added to store")
        return entry
