"""
Stored entity models.

WHAT: Vendors, emergency requests (with responses), surplus listings and
      posted mandi prices
WHY: One typed shape for what the store holds and what the API returns
HOW: Pydantic v2 models with camelCase aliases; timestamps serialize to
     fixed-width UTC ISO strings so documents stay JSON and sortable
"""

import enum
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from ..utils.clock import ensure_utc, to_iso

Timestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(to_iso, return_type=str),
]

UrgencyLevel = Literal["low", "medium", "high", "critical"]
SurplusPriority = Literal["urgent", "high", "normal"]
Condition = Literal["good", "fair", "needs_quick_sale"]
PreferredContact = Literal["phone", "email", "whatsapp"]
VerificationStatus = Literal["pending", "verified", "rejected"]

URGENCY_LEVELS = ("critical", "high", "medium", "low")
SURPLUS_PRIORITIES = ("urgent", "high", "normal")


class EmergencyStatus(str, enum.Enum):
    """Emergency request status values."""
    ACTIVE = "active"
    PARTIAL = "partial"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ResponseStatus(str, enum.Enum):
    """Vendor response status values (only PENDING is ever assigned)."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SurplusStatus(str, enum.Enum):
    """Surplus listing status values."""
    AVAILABLE = "available"
    CLAIMED = "claimed"
    COMPLETED = "completed"
    REMOVED = "removed"


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase in documents and JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize for the document store."""
        return self.model_dump(by_alias=True)


# ========== Embedded values ==========

class Coordinates(CamelModel):
    lat: float
    lng: float


class Location(CamelModel):
    """Where a listing or request is."""
    address: str = ""
    city: str = ""
    state: str = ""
    coordinates: Optional[Coordinates] = None


class VendorLocation(Location):
    pincode: str = ""


class Timings(CamelModel):
    open_time: str = "09:00"
    close_time: str = "18:00"
    days_open: List[str] = Field(
        default_factory=lambda: ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
    )


class ContactInfo(CamelModel):
    phone: str = ""
    email: str = ""
    whatsapp: str = ""
    preferred_contact: PreferredContact = "phone"


class PartyContact(CamelModel):
    """Name and phone handed to the other side of an exchange."""
    name: str
    contact: str
    preferred_contact: Optional[str] = None


# ========== Vendor ==========

class Vendor(CamelModel):
    """Registered vendor. Referenced by id from requests and listings."""
    id: str
    name: str
    shop_name: str
    location: VendorLocation = Field(default_factory=VendorLocation)
    timings: Timings = Field(default_factory=Timings)
    raw_materials: List[str] = Field(default_factory=list)
    shop_photo_url: str = Field(default="", alias="shopPhotoURL")
    phone: str = ""
    email: str = ""
    verified: bool = False
    vpt_status: str = "pending"
    rating: float = 0
    total_orders: int = 0
    is_active: bool = True
    created_at: Timestamp
    updated_at: Timestamp


# ========== Emergency requests ==========

class EmergencyResponse(CamelModel):
    """A vendor's offer to cover (part of) an emergency request."""
    id: str
    vendor_id: str
    vendor_name: str
    vendor_shop: str
    vendor_contact: str
    available_quantity: float
    price_per_unit: Optional[float] = None
    available_by: Optional[Timestamp] = None
    message: str = ""
    can_partial_fulfill: bool = False
    status: ResponseStatus = ResponseStatus.PENDING.value
    responded_at: Timestamp


class FulfillmentRecord(CamelModel):
    vendor_id: str
    quantity_fulfilled: float
    final_price: Optional[float] = None
    response_id: Optional[str] = None


class EmergencyRequest(CamelModel):
    """
    Urgent supply request broadcast by a vendor.

    `priority` and `expires_at` are fixed at creation. `fulfilled_by` is set
    exactly when status is partial or fulfilled.
    """
    id: str
    vendor_id: str
    vendor_name: str
    vendor_shop: str
    vendor_contact: str
    item: str
    item_key: str
    quantity: float
    unit: str
    max_price: Optional[float] = None
    urgency_level: UrgencyLevel
    needed_by: Optional[Timestamp] = None
    reason: str = ""
    message: str = ""
    location: Location = Field(default_factory=Location)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    status: EmergencyStatus = EmergencyStatus.ACTIVE.value
    priority: int
    responses: List[EmergencyResponse] = Field(default_factory=list)
    response_count: int = 0
    fulfilled_by: Optional[FulfillmentRecord] = None
    fulfilled_at: Optional[Timestamp] = None
    fulfillment_notes: str = ""
    cancelled_at: Optional[Timestamp] = None
    cancellation_reason: Optional[str] = None
    expired_at: Optional[Timestamp] = None
    expires_at: Timestamp
    created_at: Timestamp
    updated_at: Timestamp
    is_active: bool = True


class EmergencyRequestView(EmergencyRequest):
    """Emergency request plus values computed at read time (never stored)."""
    time_remaining: Optional[Dict[str, Any]] = None
    expiry_info: Optional[Dict[str, Any]] = None


# ========== Surplus listings ==========

class ClaimRecord(CamelModel):
    vendor_id: str
    vendor_name: str
    vendor_shop: str
    vendor_contact: str


class SurplusListing(CamelModel):
    """
    Excess stock offered to other vendors at a discount.

    Prices, savings and priority are fixed at creation. `claimed_by` is set
    exactly when status is claimed or completed; removing a claimed listing
    moves the claim to `released_claim`.
    """
    id: str
    vendor_id: str
    vendor_name: str
    vendor_shop: str
    vendor_contact: str
    item: str
    item_key: str
    quantity: float
    unit: str
    original_price: float
    discounted_price: float
    savings: float
    expiry_date: Optional[Timestamp] = None
    condition: Condition = "good"
    description: str = ""
    photo_url: str = Field(default="", alias="photoURL")
    location: Location = Field(default_factory=Location)
    status: SurplusStatus = SurplusStatus.AVAILABLE.value
    priority: SurplusPriority = "normal"
    claimed_by: Optional[ClaimRecord] = None
    claimed_at: Optional[Timestamp] = None
    claim_message: str = ""
    expected_pickup_time: Optional[Timestamp] = None
    completed_at: Optional[Timestamp] = None
    completed_by: Optional[str] = None
    rating: Optional[int] = None
    feedback: str = ""
    removed_at: Optional[Timestamp] = None
    removal_reason: Optional[str] = None
    released_claim: Optional[ClaimRecord] = None
    created_at: Timestamp
    updated_at: Timestamp
    is_active: bool = True


class SurplusListingView(SurplusListing):
    """Surplus listing plus shelf-life time remaining computed at read time."""
    time_remaining: Optional[Dict[str, Any]] = None


# ========== Prices ==========

class ProofCheck(CamelModel):
    """What the proof reader made of a price photo."""
    success: bool = True
    confidence: float = Field(..., ge=0, le=1)
    extracted_text: str = ""
    item_match: bool = False
    price_match: bool = False
    error: Optional[str] = None


class PriceEntry(CamelModel):
    """
    Crowd-posted mandi price backed by a proof photo.

    `verified` is true exactly when verification_status is verified. The
    price itself is never edited; vendors post a new entry instead.
    """
    id: str
    vendor_id: str
    vendor_name: str
    item: str
    price: float
    unit: str
    market_name: str
    proof_photo_url: str = Field(alias="proofPhotoURL")
    location: Location = Field(default_factory=Location)
    notes: str = ""
    ocr_validation: Optional[ProofCheck] = None
    verified: bool = False
    verification_status: VerificationStatus = "pending"
    verification_reason: str = ""
    verified_at: Optional[Timestamp] = None
    upvotes: int = 0
    downvotes: int = 0
    report_count: int = 0
    timestamp: Timestamp
    created_at: Timestamp
    updated_at: Timestamp
    is_active: bool = True
