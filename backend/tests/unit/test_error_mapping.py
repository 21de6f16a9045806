"""
Error mapping unit tests.

WHAT: Test exception codes, HTTP status mapping and payload validation errors
WHY: Callers branch on the error kind, so every kind must map consistently
HOW: Call status_code_for and parse_payload directly
"""

import pytest

from marketplace.middleware.error_handler import status_code_for
from marketplace.models.api_schemas import (
    EmergencyCreateRequest,
    SurplusCreateRequest,
    VendorListFilters,
    parse_payload,
)
from marketplace.utils.exceptions import (
    BusinessException,
    EmergencyRequestNotFoundException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    SurplusListingNotFoundException,
    UnavailableException,
    ValidationException,
    VendorNotFoundException,
)


@pytest.mark.unit
@pytest.mark.parametrize("exc,status_code", [
    (ValidationException("bad"), 400),
    (VendorNotFoundException("v"), 404),
    (EmergencyRequestNotFoundException("e"), 404),
    (SurplusListingNotFoundException("s"), 404),
    (ForbiddenException("no"), 403),
    (InvalidStateException("e", "fulfilled"), 409),
    (UnavailableException(), 503),
    (BusinessException("other", "OTHER"), 400),
])
def test_status_code_for(exc, status_code):
    assert status_code_for(exc) == status_code


@pytest.mark.unit
def test_not_found_message_and_details():
    exc = EmergencyRequestNotFoundException("abc")

    assert isinstance(exc, NotFoundException)
    assert exc.message == "Emergency request not found: abc"
    assert exc.details == {"id": "abc"}


@pytest.mark.unit
def test_invalid_state_default_message():
    exc = InvalidStateException("abc", "cancelled")

    assert exc.code == "INVALID_STATE"
    assert "cancelled" in exc.message
    assert exc.details == {"id": "abc", "current_status": "cancelled"}


@pytest.mark.unit
def test_validation_without_field_errors_has_no_details():
    assert ValidationException("bad").details is None


@pytest.mark.unit
class TestParsePayload:
    """Test payload validation."""

    def test_field_errors_use_camel_case_names(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_payload(EmergencyCreateRequest, {"item": "rice"})

        fields = {error["field"] for error in exc_info.value.details["field_errors"]}
        assert {"vendorId", "quantity", "urgencyLevel"} <= fields
        assert "maxPrice" not in fields

    def test_nested_field_path(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_payload(EmergencyCreateRequest, {
                "vendorId": "v", "item": "rice", "quantity": 1, "maxPrice": 1,
                "urgencyLevel": "high", "location": {"coordinates": {"lat": "north"}},
            })

        fields = [error["field"] for error in exc_info.value.details["field_errors"]]
        assert any(field.startswith("location.coordinates") for field in fields)

    def test_none_payload_reports_required_fields(self):
        with pytest.raises(ValidationException):
            parse_payload(SurplusCreateRequest, None)

    def test_model_instance_passes_through(self):
        filters = VendorListFilters(city="Mumbai")

        assert parse_payload(VendorListFilters, filters) is filters

    def test_snake_case_names_accepted(self):
        filters = parse_payload(VendorListFilters, {"city": "Pune", "limit": 3})

        assert filters.city == "Pune"
        assert filters.limit == 3

    def test_cross_field_rule(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_payload(SurplusCreateRequest, {
                "vendorId": "v", "item": "tomatoes", "quantity": 1,
                "originalPrice": 10, "discountedPrice": 12,
            })

        messages = [error["message"] for error in exc_info.value.details["field_errors"]]
        assert any("discountedPrice cannot exceed originalPrice" in m for m in messages)
