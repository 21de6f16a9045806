"""
Request payloads, list filters and operation results.

WHAT: Input and output shapes of every lifecycle operation
WHY: Validate payloads once, the same way for HTTP and direct callers
HOW: Pydantic v2 models sharing the camelCase base of the entity models;
     `parse_payload` turns pydantic errors into ValidationException
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Type, TypeVar, Union

from pydantic import AfterValidator, Field, ValidationError, field_validator, model_validator

from .entities import (
    CamelModel,
    ClaimRecord,
    Condition,
    Coordinates,
    EmergencyRequestView,
    EmergencyResponse,
    EmergencyStatus,
    PartyContact,
    PreferredContact,
    PriceEntry,
    ProofCheck,
    SurplusListing,
    SurplusListingView,
    SurplusPriority,
    SurplusStatus,
    Timestamp,
    Timings,
    UrgencyLevel,
)
from ..utils.clock import ensure_utc
from ..utils.exceptions import ValidationException

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
SortOrder = Literal["asc", "desc"]

PayloadT = TypeVar("PayloadT", bound=CamelModel)


def parse_payload(model_cls: Type[PayloadT], payload: Union[PayloadT, Mapping[str, Any], None]) -> PayloadT:
    """
    Validate a payload into model_cls.

    Already-validated models pass through untouched.

    Raises:
        ValidationException: With one field error per pydantic error
    """
    if isinstance(payload, model_cls):
        return payload

    try:
        return model_cls.model_validate(dict(payload or {}))
    except ValidationError as e:
        field_errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "body",
                "message": error["msg"],
            }
            for error in e.errors()
        ]
        raise ValidationException(
            f"Invalid {model_cls.__name__} payload",
            field_errors=field_errors
        ) from e


def _blank_to_none(value: Any) -> Any:
    """Query strings send '' for 'no filter'."""
    if isinstance(value, str) and value.strip() in ("", "all"):
        return None
    return value


def _clean_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ========== Embedded inputs ==========

class LocationInput(CamelModel):
    """Partial location; missing fields fall back to the vendor's."""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class VendorLocationInput(LocationInput):
    pincode: Optional[str] = None


class ContactInput(CamelModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    preferred_contact: Optional[PreferredContact] = None


# ========== Vendors ==========

class VendorRegisterRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    shop_name: str = Field(..., min_length=1, max_length=100)
    location: VendorLocationInput
    timings: Optional[Timings] = None
    raw_materials: List[str] = Field(default_factory=list)
    shop_photo_url: str = Field(default="", alias="shopPhotoURL")
    phone: str = ""
    email: str = ""

    @field_validator("name", "shop_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _clean_text(v)


class VendorUpdateRequest(CamelModel):
    """Profile fields a vendor may change; omitted fields stay as they are."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    shop_name: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[VendorLocationInput] = None
    timings: Optional[Timings] = None
    raw_materials: Optional[List[str]] = None
    shop_photo_url: Optional[str] = Field(None, alias="shopPhotoURL")
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator(
        "name", "shop_name", "location", "timings",
        "raw_materials", "shop_photo_url", "phone", "email",
    )
    @classmethod
    def not_null(cls, v: Any) -> Any:
        # Omitting a field leaves it alone; sending null is an error
        if v is None:
            raise ValueError("must not be null")
        return v

    @field_validator("name", "shop_name")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v) if v is not None else v


class VendorListFilters(CamelModel):
    city: Optional[str] = None
    verified: Optional[bool] = None
    active: Optional[bool] = None
    limit: Optional[int] = Field(None, ge=1)

    @field_validator("city", "verified", "active", mode="before")
    @classmethod
    def blank_means_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


# ========== Emergency requests ==========

class EmergencyCreateRequest(CamelModel):
    vendor_id: str = Field(..., min_length=1)
    item: str = Field(..., min_length=1, max_length=100)
    quantity: float = Field(..., gt=0)
    unit: Optional[str] = None
    max_price: Optional[float] = Field(None, gt=0)
    urgency_level: UrgencyLevel
    needed_by: Optional[UtcDatetime] = None
    reason: str = ""
    message: str = ""
    location: Optional[LocationInput] = None
    contact_info: Optional[ContactInput] = None

    @field_validator("item")
    @classmethod
    def item_not_blank(cls, v: str) -> str:
        return _clean_text(v)


class EmergencyRespondRequest(CamelModel):
    responder_vendor_id: str = Field(..., min_length=1)
    available_quantity: float = Field(..., gt=0)
    price_per_unit: Optional[float] = Field(None, ge=0)
    available_by: Optional[UtcDatetime] = None
    message: str = ""
    can_partial_fulfill: bool = False


class EmergencyFulfillRequest(CamelModel):
    requester_vendor_id: str = Field(..., min_length=1)
    fulfilled_by_vendor_id: str = Field(..., min_length=1)
    quantity_fulfilled: float = Field(..., gt=0)
    final_price: Optional[float] = Field(None, ge=0)
    response_id: Optional[str] = None
    is_partial_fulfillment: bool = False
    notes: str = ""


class EmergencyCancelRequest(CamelModel):
    vendor_id: str = Field(..., min_length=1)
    reason: Optional[str] = None


class EmergencyListFilters(CamelModel):
    """
    Emergency list filters.

    `status` defaults to active; '' or 'all' disables the status filter.
    """
    item: Optional[str] = None
    city: Optional[str] = None
    urgency_level: Optional[UrgencyLevel] = None
    status: Optional[EmergencyStatus] = EmergencyStatus.ACTIVE.value
    vendor_id: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1)
    sort_by: Literal["priority", "createdAt", "neededBy", "expiresAt", "quantity"] = "priority"
    order: SortOrder = "desc"

    @field_validator("item", "city", "urgency_level", "status", "vendor_id", mode="before")
    @classmethod
    def blank_means_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class BroadcastInfo(CamelModel):
    priority: int
    expires_in_hours: int
    estimated_reach: int


class EmergencyCreateResult(CamelModel):
    emergency: EmergencyRequestView
    broadcast_info: BroadcastInfo


class RespondContactInfo(CamelModel):
    requester: PartyContact


class EmergencyRespondResult(CamelModel):
    response: EmergencyResponse
    contact_info: RespondContactInfo


class EmergencyListResult(CamelModel):
    count: int
    items: List[EmergencyRequestView]
    categorized: Dict[str, List[EmergencyRequestView]]
    summary: Dict[str, int]
    timestamp: Timestamp


# ========== Surplus listings ==========

class SurplusCreateRequest(CamelModel):
    vendor_id: str = Field(..., min_length=1)
    item: str = Field(..., min_length=1, max_length=100)
    quantity: float = Field(..., gt=0)
    unit: Optional[str] = None
    original_price: float = Field(..., gt=0)
    discounted_price: Optional[float] = Field(None, gt=0)
    expiry_date: Optional[UtcDatetime] = None
    condition: Condition = "good"
    description: str = ""
    photo_url: str = Field(default="", alias="photoURL")
    location: Optional[LocationInput] = None

    @field_validator("item")
    @classmethod
    def item_not_blank(cls, v: str) -> str:
        return _clean_text(v)

    @model_validator(mode="after")
    def discount_not_above_original(self):
        if self.discounted_price is not None and self.discounted_price > self.original_price:
            raise ValueError("discountedPrice cannot exceed originalPrice")
        return self


class SurplusClaimRequest(CamelModel):
    claimed_by_vendor_id: str = Field(..., min_length=1)
    message: str = ""
    expected_pickup_time: Optional[UtcDatetime] = None


class SurplusCompleteRequest(CamelModel):
    completed_by_vendor_id: str = Field(..., min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: str = ""


class SurplusRemoveRequest(CamelModel):
    vendor_id: str = Field(..., min_length=1)
    reason: Optional[str] = None


class SurplusListFilters(CamelModel):
    """Surplus list filters. `status` defaults to available; '' or 'all' disables it."""
    item: Optional[str] = None
    city: Optional[str] = None
    vendor_id: Optional[str] = None
    status: Optional[SurplusStatus] = SurplusStatus.AVAILABLE.value
    priority: Optional[SurplusPriority] = None
    condition: Optional[Condition] = None
    limit: Optional[int] = Field(None, ge=1)
    sort_by: Literal["createdAt", "expiryDate", "discountedPrice", "savings", "quantity"] = "createdAt"
    order: SortOrder = "desc"

    @field_validator("item", "city", "vendor_id", "status", "priority", "condition", mode="before")
    @classmethod
    def blank_means_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class ClaimContactInfo(CamelModel):
    original_vendor: PartyContact
    claimer: PartyContact


class SurplusClaimResult(CamelModel):
    listing: SurplusListing
    claimed_by: ClaimRecord
    contact_info: ClaimContactInfo


class SurplusListResult(CamelModel):
    count: int
    items: List[SurplusListingView]
    categorized: Dict[str, List[SurplusListingView]]
    summary: Dict[str, int]
    timestamp: Timestamp


# ========== Prices ==========

class PricePostRequest(CamelModel):
    vendor_id: str = Field(..., min_length=1)
    item: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., gt=0)
    unit: Optional[str] = None
    market_name: Optional[str] = None
    proof_photo_url: str = Field(..., min_length=1, alias="proofPhotoURL")
    location: Optional[LocationInput] = None
    notes: str = ""

    @field_validator("item")
    @classmethod
    def normalize_item(cls, v: str) -> str:
        return _clean_text(v).lower()


class PriceListFilters(CamelModel):
    item: Optional[str] = None
    city: Optional[str] = None
    vendor_id: Optional[str] = None
    verified: Optional[bool] = None
    limit: Optional[int] = Field(None, ge=1)
    sort_by: Literal["timestamp", "price", "upvotes"] = "timestamp"
    order: SortOrder = "desc"

    @field_validator("item", "city", "vendor_id", "verified", mode="before")
    @classmethod
    def blank_means_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class PriceTrendFilters(CamelModel):
    """`days` falls back to PRICE_TREND_DAYS."""
    days: Optional[int] = Field(None, ge=1, le=365)

    @field_validator("days", mode="before")
    @classmethod
    def blank_means_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)


class PriceVerifyRequest(CamelModel):
    verified: bool
    reason: str = ""


class PriceVoteRequest(CamelModel):
    vote: Literal["up", "down"]
    vendor_id: Optional[str] = None


class PricePostResult(CamelModel):
    price: PriceEntry
    ocr_validation: ProofCheck


class PriceListResult(CamelModel):
    count: int
    prices: List[PriceEntry]
    prices_by_item: Dict[str, List[PriceEntry]]
    timestamp: Timestamp


class PriceTrendDirection(CamelModel):
    is_increasing: bool
    percent_change: float


class PriceTrendResult(CamelModel):
    item: str
    period: str
    count: int
    average_price: float
    min_price: float
    max_price: float
    prices: List[PriceEntry]
    trends: PriceTrendDirection


class PriceVoteResult(CamelModel):
    upvotes: int
    downvotes: int
