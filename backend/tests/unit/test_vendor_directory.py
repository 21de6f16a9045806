"""
Unit tests for the vendor directory.

WHAT: Test register, require, update, list and sample seeding
WHY: Lifecycle services rely on vendor lookups and denormalized details
HOW: VendorDirectory over both store backends
"""

import pytest

from marketplace.services.vendor_directory import SAMPLE_VENDOR_ID
from marketplace.utils.exceptions import ValidationException, VendorNotFoundException
from tests.fixtures.sample_data import START, vendor_payload


@pytest.mark.unit
class TestRegister:
    """Test vendor registration."""

    @pytest.mark.asyncio
    async def test_register_applies_defaults(self, vendors):
        vendor = await vendors.register(vendor_payload("Asha Patil", "Patil Provisions"))

        assert vendor.id
        assert vendor.name == "Asha Patil"
        assert vendor.location.city == "Mumbai"
        assert vendor.location.pincode == ""
        assert vendor.timings.open_time == "09:00"
        assert vendor.timings.days_open[0] == "monday"
        assert vendor.verified is False
        assert vendor.vpt_status == "pending"
        assert vendor.is_active is True
        assert vendor.created_at == START

    @pytest.mark.asyncio
    async def test_register_trims_names(self, vendors):
        vendor = await vendors.register({**vendor_payload("x", "y"), "name": "  Asha  ", "shopName": " Shop "})

        assert vendor.name == "Asha"
        assert vendor.shop_name == "Shop"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["name", "shopName", "location"])
    async def test_register_requires_fields(self, vendors, missing):
        payload = vendor_payload("Asha Patil", "Patil Provisions")
        del payload[missing]

        with pytest.raises(ValidationException) as exc_info:
            await vendors.register(payload)

        fields = [error["field"] for error in exc_info.value.details["field_errors"]]
        assert missing in fields

    @pytest.mark.asyncio
    async def test_register_stores_camel_case_document(self, vendors, store):
        vendor = await vendors.register(vendor_payload("Asha Patil", "Patil Provisions"))

        document = await store.vendors.get(vendor.id)

        assert document["shopName"] == "Patil Provisions"
        assert document["shopPhotoURL"] == ""
        assert document["createdAt"] == "2026-10-18T09:00:00.000000+00:00"


@pytest.mark.unit
class TestLookupAndUpdate:
    """Test require/get/update."""

    @pytest.mark.asyncio
    async def test_require_unknown_raises(self, vendors):
        with pytest.raises(VendorNotFoundException) as exc_info:
            await vendors.require("missing")

        assert exc_info.value.code == "VENDOR_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self, vendors):
        assert await vendors.get("missing") is None

    @pytest.mark.asyncio
    async def test_update_changes_only_supplied_fields(self, vendors, requester, clock):
        clock.advance(hours=1)

        updated = await vendors.update(requester.id, {"phone": "+91-9999999999", "rawMaterials": ["rice", "dal"]})

        assert updated.phone == "+91-9999999999"
        assert updated.raw_materials == ["rice", "dal"]
        assert updated.name == requester.name
        assert updated.location == requester.location
        assert updated.updated_at > requester.updated_at

    @pytest.mark.asyncio
    async def test_update_location_normalizes(self, vendors, requester):
        updated = await vendors.update(requester.id, {"location": {"city": "Pune"}})

        assert updated.location.city == "Pune"
        assert updated.location.address == ""
        assert updated.location.pincode == ""

    @pytest.mark.asyncio
    async def test_update_unknown_raises(self, vendors):
        with pytest.raises(VendorNotFoundException):
            await vendors.update("missing", {"phone": "1"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", [
        "name", "shopName", "location", "timings", "rawMaterials", "shopPhotoURL", "phone", "email",
    ])
    async def test_update_rejects_null_without_writing(self, vendors, requester, store, field):
        before = await store.vendors.get(requester.id)

        with pytest.raises(ValidationException) as exc_info:
            await vendors.update(requester.id, {field: None})

        fields = [error["field"] for error in exc_info.value.details["field_errors"]]
        assert field in fields
        assert await store.vendors.get(requester.id) == before
        assert (await vendors.require(requester.id)).name == requester.name

    @pytest.mark.asyncio
    async def test_update_rejects_blank_name(self, vendors, requester, store):
        before = await store.vendors.get(requester.id)

        with pytest.raises(ValidationException):
            await vendors.update(requester.id, {"name": "   "})

        assert await store.vendors.get(requester.id) == before

    @pytest.mark.asyncio
    async def test_update_cannot_verify(self, vendors, requester):
        updated = await vendors.update(requester.id, {"verified": True, "vptStatus": "approved"})

        assert updated.verified is False
        assert updated.vpt_status == "pending"


@pytest.mark.unit
class TestList:
    """Test vendor listing filters."""

    @pytest.mark.asyncio
    async def test_list_by_city(self, vendors, requester, responder, bystander):
        mumbai = await vendors.list({"city": "Mumbai"})
        pune = await vendors.list({"city": "Pune"})

        assert {v.id for v in mumbai} == {requester.id, responder.id}
        assert [v.id for v in pune] == [bystander.id]

    @pytest.mark.asyncio
    async def test_list_by_flags(self, vendors, requester):
        await vendors.seed_sample_vendor()

        verified = await vendors.list({"verified": "true"})
        unverified = await vendors.list({"verified": False, "active": True})

        assert [v.id for v in verified] == [SAMPLE_VENDOR_ID]
        assert [v.id for v in unverified] == [requester.id]

    @pytest.mark.asyncio
    async def test_list_limit(self, vendors, requester, responder, bystander):
        assert len(await vendors.list({"limit": 2})) == 2

    @pytest.mark.asyncio
    async def test_list_rejects_bad_limit(self, vendors):
        with pytest.raises(ValidationException):
            await vendors.list({"limit": 0})


@pytest.mark.unit
class TestSampleVendor:
    """Test development seed data."""

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, vendors):
        first = await vendors.seed_sample_vendor()
        second = await vendors.seed_sample_vendor()

        assert first.id == second.id == SAMPLE_VENDOR_ID
        assert first.name == "Ram Kumar"
        assert first.location.city == "Mumbai"
        assert len(await vendors.list()) == 1
