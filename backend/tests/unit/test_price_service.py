"""
Unit tests for crowd-posted mandi prices.

WHAT: Test post/get/list/trends/verify/vote and sample seeding
WHY: Only confidently-read proofs may verify a price, and trends must only
     count verified entries
HOW: PriceService over both stores with a fixed clock and a fixed proof reader
"""

import pytest

from marketplace.services.price_service import SAMPLE_PRICE_ID, VOTE_ATTEMPTS
from marketplace.services.vendor_directory import SAMPLE_VENDOR_ID
from marketplace.storage import Query
from marketplace.utils.exceptions import (
    InvalidStateException,
    PriceEntryNotFoundException,
    ValidationException,
    VendorNotFoundException,
)
from tests.fixtures.sample_data import START, price_payload


@pytest.mark.unit
class TestPost:
    """Test posting a price."""

    @pytest.mark.asyncio
    async def test_confident_reading_verifies(self, price_service, requester, proof_reader):
        result = await price_service.post(price_payload(requester.id))
        entry = result.price

        assert entry.item == "tomatoes"
        assert entry.price == 25
        assert entry.unit == "kg"
        assert entry.market_name == "Vashi APMC"
        assert entry.vendor_name == "Asha Patil"
        assert entry.location.city == "Mumbai"
        assert entry.verified is True
        assert entry.verification_status == "verified"
        assert entry.upvotes == entry.downvotes == 0
        assert entry.timestamp == START
        assert result.ocr_validation.confidence == 0.9
        assert proof_reader.calls == [("https://photos.example.com/board.jpg", "tomatoes", 25.0)]

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self, price_service, requester, proof_reader):
        proof_reader.confidence = 0.7

        entry = (await price_service.post(price_payload(requester.id))).price

        assert entry.verified is False
        assert entry.verification_status == "pending"

    @pytest.mark.asyncio
    async def test_failed_reading_leaves_entry_pending(self, price_service, requester, proof_reader, store):
        proof_reader.fail = True

        result = await price_service.post(price_payload(requester.id))

        assert result.ocr_validation.success is False
        assert result.ocr_validation.confidence == 0
        assert result.ocr_validation.error == "image could not be decoded"
        assert result.price.verification_status == "pending"
        assert (await store.prices.get(result.price.id))["ocrValidation"]["success"] is False

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, price_service, requester):
        payload = price_payload(requester.id)
        del payload["marketName"]
        del payload["location"]

        entry = (await price_service.post(payload)).price

        assert entry.market_name == "Local Market"
        assert entry.location.city == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [
        ("proofPhotoURL", ""),
        ("price", 0),
        ("item", "   "),
    ])
    async def test_invalid_payload_rejected_before_reading(self, price_service, requester, proof_reader, field, value):
        with pytest.raises(ValidationException) as exc_info:
            await price_service.post(price_payload(requester.id, **{field: value}))

        fields = [error["field"] for error in exc_info.value.details["field_errors"]]
        assert field in fields
        assert proof_reader.calls == []

    @pytest.mark.asyncio
    async def test_unknown_vendor(self, price_service, proof_reader, store):
        with pytest.raises(VendorNotFoundException):
            await price_service.post(price_payload("ghost"))

        assert proof_reader.calls == []
        assert await store.prices.query(Query()) == []


@pytest.mark.unit
class TestList:
    """Test price browsing."""

    @pytest.mark.asyncio
    async def test_filters_and_grouping(self, price_service, requester, bystander, proof_reader, clock):
        await price_service.post(price_payload(requester.id, price=24))
        clock.advance(minutes=5)
        await price_service.post(price_payload(requester.id, item="Onions", price=30))
        clock.advance(minutes=5)
        proof_reader.confidence = 0.5
        await price_service.post(price_payload(bystander.id, price=28, location={"city": "Pune"}))

        everything = await price_service.list()
        tomatoes = await price_service.list({"item": "TOMATOES"})
        verified = await price_service.list({"verified": "true"})
        pune = await price_service.list({"city": "Pune"})

        assert everything.count == 3
        assert [p.price for p in everything.prices] == [28, 30, 24]
        assert {item: len(entries) for item, entries in everything.prices_by_item.items()} == {"tomatoes": 2, "onions": 1}
        assert [p.price for p in tomatoes.prices] == [28, 24]
        assert {p.price for p in verified.prices} == {24, 30}
        assert [p.vendor_id for p in pune.prices] == [bystander.id]

    @pytest.mark.asyncio
    async def test_sort_by_price(self, price_service, requester):
        for price in (30, 20, 25):
            await price_service.post(price_payload(requester.id, price=price))

        result = await price_service.list({"sortBy": "price", "order": "asc", "limit": 2})

        assert [p.price for p in result.prices] == [20, 25]

    @pytest.mark.asyncio
    async def test_unknown_sort_field_rejected(self, price_service):
        with pytest.raises(ValidationException):
            await price_service.list({"sortBy": "vendorName"})


@pytest.mark.unit
class TestTrends:
    """Test price trend statistics."""

    @pytest.mark.asyncio
    async def test_window_and_verified_only(self, price_service, requester, proof_reader, clock):
        await price_service.post(price_payload(requester.id, price=10))
        clock.advance(days=40)
        await price_service.post(price_payload(requester.id, price=20))
        clock.advance(days=1)
        await price_service.post(price_payload(requester.id, price=25))
        proof_reader.confidence = 0.2
        await price_service.post(price_payload(requester.id, price=99))
        clock.advance(days=1)
        proof_reader.confidence = 0.9
        await price_service.post(price_payload(requester.id, price=30))

        trend = await price_service.trends(" Tomatoes ")

        assert trend.item == "tomatoes"
        assert trend.period == "30 days"
        assert [p.price for p in trend.prices] == [20, 25, 30]
        assert trend.average_price == 25
        assert trend.min_price == 20
        assert trend.max_price == 30
        assert trend.trends.is_increasing is True
        assert trend.trends.percent_change == 50.0

    @pytest.mark.asyncio
    async def test_custom_days(self, price_service, requester, clock):
        await price_service.post(price_payload(requester.id, price=20))
        clock.advance(days=1)
        await price_service.post(price_payload(requester.id, price=25))
        clock.advance(days=1)
        await price_service.post(price_payload(requester.id, price=30))

        trend = await price_service.trends("tomatoes", {"days": 1})

        assert trend.period == "1 days"
        assert [p.price for p in trend.prices] == [25, 30]
        assert trend.trends.percent_change == 20.0

    @pytest.mark.asyncio
    async def test_no_prices(self, price_service):
        trend = await price_service.trends("saffron")

        assert trend.count == 0
        assert trend.average_price == 0
        assert trend.trends.is_increasing is False

    @pytest.mark.asyncio
    async def test_days_out_of_range(self, price_service):
        with pytest.raises(ValidationException):
            await price_service.trends("tomatoes", {"days": 0})


@pytest.mark.unit
class TestVerify:
    """Test manual verification."""

    @pytest.mark.asyncio
    async def test_reject_then_verify(self, price_service, requester, clock):
        entry = (await price_service.post(price_payload(requester.id))).price
        clock.advance(hours=2)

        rejected = await price_service.verify(entry.id, {"verified": False, "reason": "Photo is of a different mandi"})

        assert rejected.verified is False
        assert rejected.verification_status == "rejected"
        assert rejected.verification_reason == "Photo is of a different mandi"
        assert rejected.verified_at == clock.now()

        restored = await price_service.verify(entry.id, {"verified": True})

        assert restored.verification_status == "verified"
        assert restored.verification_reason == ""

    @pytest.mark.asyncio
    async def test_verify_requires_decision(self, price_service, requester):
        entry = (await price_service.post(price_payload(requester.id))).price

        with pytest.raises(ValidationException):
            await price_service.verify(entry.id, {"reason": "looks fine"})

    @pytest.mark.asyncio
    async def test_verify_unknown(self, price_service):
        with pytest.raises(PriceEntryNotFoundException) as exc_info:
            await price_service.verify("missing", {"verified": True})

        assert exc_info.value.code == "PRICE_ENTRY_NOT_FOUND"


@pytest.mark.unit
class TestVote:
    """Test up/down votes."""

    @pytest.mark.asyncio
    async def test_votes_accumulate(self, price_service, requester, responder):
        entry = (await price_service.post(price_payload(requester.id))).price

        await price_service.vote(entry.id, {"vote": "up", "vendorId": responder.id})
        await price_service.vote(entry.id, {"vote": "up"})
        votes = await price_service.vote(entry.id, {"vote": "down"})

        assert votes.upvotes == 2
        assert votes.downvotes == 1
        assert (await price_service.get(entry.id)).upvotes == 2

    @pytest.mark.asyncio
    async def test_invalid_vote(self, price_service, requester):
        entry = (await price_service.post(price_payload(requester.id))).price

        with pytest.raises(ValidationException):
            await price_service.vote(entry.id, {"vote": "sideways"})

    @pytest.mark.asyncio
    async def test_vote_unknown(self, price_service):
        with pytest.raises(PriceEntryNotFoundException):
            await price_service.vote("missing", {"vote": "up"})

    @pytest.mark.asyncio
    async def test_concurrent_vote_is_retried(self, price_service, requester, store):
        entry = (await price_service.post(price_payload(requester.id))).price
        original_update = store.prices.update
        interfered = []

        async def other_vote_first(doc_id, fields, expect=None):
            if not interfered:
                interfered.append(doc_id)
                current = await store.prices.get(doc_id)
                await original_update(doc_id, {"upvotes": current["upvotes"] + 1})
            return await original_update(doc_id, fields, expect=expect)

        store.prices.update = other_vote_first
        try:
            votes = await price_service.vote(entry.id, {"vote": "up"})
        finally:
            del store.prices.update

        assert votes.upvotes == 2

    @pytest.mark.asyncio
    async def test_vote_gives_up_under_contention(self, price_service, requester, store):
        entry = (await price_service.post(price_payload(requester.id))).price
        original_update = store.prices.update

        async def always_beaten(doc_id, fields, expect=None):
            current = await store.prices.get(doc_id)
            await original_update(doc_id, {"downvotes": current["downvotes"] + 1})
            return await original_update(doc_id, fields, expect=expect)

        store.prices.update = always_beaten
        try:
            with pytest.raises(InvalidStateException):
                await price_service.vote(entry.id, {"vote": "down"})
        finally:
            del store.prices.update

        assert (await store.prices.get(entry.id))["downvotes"] == VOTE_ATTEMPTS


@pytest.mark.unit
class TestSamplePrice:
    """Test development seed data."""

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, price_service, vendors):
        first = await price_service.seed_sample_price()
        second = await price_service.seed_sample_price()

        assert first.id == second.id == SAMPLE_PRICE_ID
        assert first.vendor_id == SAMPLE_VENDOR_ID
        assert first.verified is True
        assert (await vendors.require(SAMPLE_VENDOR_ID)).name == "Ram Kumar"
        assert (await price_service.list()).count == 1
