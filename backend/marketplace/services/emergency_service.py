"""
Emergency request lifecycle.

WHAT: Create, list, respond to, fulfill, cancel and expire emergency requests
WHY: Vendors who run out of stock broadcast urgent requests that nearby
     vendors answer; the requester closes the request when covered
HOW: State machine over the `emergency` collection. Every transition checks
     existence, ownership and state before writing, then writes
     conditionally on the status it read

State machine:
    active -> partial | fulfilled | cancelled | expired
    Every non-active state is terminal.
"""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from .common import CollectionService, merge_location, new_id
from .scoring import (
    auto_expire_hours,
    compute_priority,
    deadline_window,
    estimated_reach,
    expiry_window,
)
from .vendor_directory import VendorDirectory
from ..core.config import Settings
from ..models.api_schemas import (
    BroadcastInfo,
    ContactInput,
    EmergencyCancelRequest,
    EmergencyCreateRequest,
    EmergencyCreateResult,
    EmergencyFulfillRequest,
    EmergencyListFilters,
    EmergencyListResult,
    EmergencyRespondRequest,
    EmergencyRespondResult,
    RespondContactInfo,
    parse_payload,
)
from ..models.entities import (
    URGENCY_LEVELS,
    ContactInfo,
    EmergencyRequest,
    EmergencyRequestView,
    EmergencyResponse,
    EmergencyStatus,
    FulfillmentRecord,
    PartyContact,
    ResponseStatus,
    Vendor,
)
from ..storage.base import DocumentStore, Query
from ..utils.clock import Clock, to_iso
from ..utils.exceptions import (
    EmergencyRequestNotFoundException,
    ForbiddenException,
    InvalidStateException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CANCEL_REASON = "Cancelled by requester"

Payload = Mapping[str, Any]


def _contact_info(supplied: Optional[ContactInput], vendor: Vendor) -> ContactInfo:
    supplied = supplied or ContactInput()
    return ContactInfo(
        phone=supplied.phone or vendor.phone,
        email=supplied.email or vendor.email,
        whatsapp=supplied.whatsapp or vendor.phone,
        preferred_contact=supplied.preferred_contact or "phone",
    )


class EmergencyRequestService(CollectionService):
    """
    Emergency request state machine.

    WHAT: All operations on emergency requests
    WHY: Keep status rules (who may move a request where) in one place
    HOW: Async methods over the collection facade; vendors resolved through
         VendorDirectory; time from the injected clock
    """

    not_found = EmergencyRequestNotFoundException

    def __init__(self, store: DocumentStore, vendors: VendorDirectory, clock: Clock, settings: Settings):
        super().__init__(store.emergency, clock, settings)
        self.vendors = vendors

    def _view(self, document: Mapping[str, Any], now) -> EmergencyRequestView:
        view = EmergencyRequestView.model_validate(document)
        view.time_remaining = deadline_window(view.needed_by, now)
        view.expiry_info = expiry_window(view.expires_at, now)
        return view

    def _require_active(self, request: EmergencyRequest, action: str):
        if request.status != EmergencyStatus.ACTIVE:
            logger.info(f"Rejected {action} on {request.id}: status is {request.status}")
            raise InvalidStateException(
                request.id,
                request.status,
                message=f"Cannot {action} emergency request {request.id}: it is {request.status}, not active"
            )

    def _require_requester(self, request: EmergencyRequest, vendor_id: str, action: str):
        if request.vendor_id != vendor_id:
            logger.warning(f"Vendor {vendor_id} tried to {action} emergency request {request.id} owned by {request.vendor_id}")
            raise ForbiddenException(
                f"Only the original requester can {action} this emergency request",
                vendor_id=vendor_id
            )

    async def _load(self, request_id: str) -> EmergencyRequest:
        return EmergencyRequest.model_validate(await self._require(request_id))

    async def create(self, payload: Union[EmergencyCreateRequest, Payload]) -> EmergencyCreateResult:
        """
        Broadcast a new emergency request.

        WHAT: Validate, resolve the requesting vendor, score and store
        WHY: Priority and expiry are fixed here for the request's whole life
        HOW: compute_priority + auto_expire_hours relative to clock.now()

        Args:
            payload: EmergencyCreateRequest or its camelCase dict form

        Returns:
            EmergencyCreateResult with the stored request and broadcast info

        Raises:
            ValidationException: Missing/invalid fields
            VendorNotFoundException: Unknown vendorId
        """
        data = parse_payload(EmergencyCreateRequest, payload)
        vendor = await self.vendors.require(data.vendor_id)
        now = self.clock.now()

        expires_in = auto_expire_hours(data.urgency_level)
        request = EmergencyRequest(
            id=new_id(),
            vendor_id=vendor.id,
            vendor_name=vendor.name,
            vendor_shop=vendor.shop_name,
            vendor_contact=vendor.phone,
            item=data.item,
            item_key=data.item.lower(),
            quantity=data.quantity,
            unit=data.unit or self.settings.DEFAULT_UNIT,
            max_price=data.max_price,
            urgency_level=data.urgency_level,
            needed_by=data.needed_by,
            reason=data.reason,
            message=data.message,
            location=merge_location(data.location, vendor.location),
            contact_info=_contact_info(data.contact_info, vendor),
            status=EmergencyStatus.ACTIVE.value,
            priority=compute_priority(data.urgency_level, data.needed_by, now),
            expires_at=now + timedelta(hours=expires_in),
            created_at=now,
            updated_at=now,
        )
        document = request.to_document()
        await self._insert(request.id, document)

        logger.info(
            f"Emergency request created: {request.id} - {request.item} "
            f"({request.urgency_level}, priority {request.priority}) by {vendor.id}"
        )
        return EmergencyCreateResult(
            emergency=self._view(document, now),
            broadcast_info=BroadcastInfo(
                priority=request.priority,
                expires_in_hours=expires_in,
                estimated_reach=estimated_reach(request.location.city, request.urgency_level),
            ),
        )

    async def get(self, request_id: str) -> EmergencyRequestView:
        """
        Fetch one request with read-time timeRemaining/expiryInfo.

        Raises:
            EmergencyRequestNotFoundException: Unknown id
        """
        return self._view(await self._require(request_id), self.clock.now())

    async def list(self, filters: Union[EmergencyListFilters, Payload, None] = None) -> EmergencyListResult:
        """
        List requests matching filters, bucketed by urgency level.

        Sorting by priority breaks ties newest first. An empty result is not
        an error.

        Raises:
            ValidationException: Unknown urgency/status/sortBy or bad limit
        """
        f = parse_payload(EmergencyListFilters, filters)

        query = Query()
        if f.item:
            query.where_prefix("itemKey", f.item.strip().lower())
        if f.city:
            query.where("location.city", "==", f.city)
        if f.urgency_level:
            query.where("urgencyLevel", "==", f.urgency_level)
        if f.status:
            query.where("status", "==", f.status)
        if f.vendor_id:
            query.where("vendorId", "==", f.vendor_id)
        query.order(f.sort_by, f.order)
        if f.sort_by == "priority":
            query.order("createdAt", "desc")
        query.take(self._limit(f.limit))

        now = self.clock.now()
        items = [self._view(doc, now) for doc in await self._find(query)]

        categorized: Dict[str, List[EmergencyRequestView]] = {level: [] for level in URGENCY_LEVELS}
        for item in items:
            categorized[item.urgency_level].append(item)

        return EmergencyListResult(
            count=len(items),
            items=items,
            categorized=categorized,
            summary={level: len(bucket) for level, bucket in categorized.items()},
            timestamp=now,
        )

    async def respond(self, request_id: str, payload: Union[EmergencyRespondRequest, Payload]) -> EmergencyRespondResult:
        """
        Append a vendor's offer to an active request.

        Args:
            request_id: Emergency request id
            payload: EmergencyRespondRequest or its camelCase dict form

        Returns:
            The new response plus the requester's contact details

        Raises:
            ValidationException: Missing responder or non-positive quantity
            EmergencyRequestNotFoundException: Unknown request
            InvalidStateException: Request is not active (or changed underneath us)
            VendorNotFoundException: Unknown responder
        """
        data = parse_payload(EmergencyRespondRequest, payload)
        request = await self._load(request_id)
        self._require_active(request, "respond to")
        responder = await self.vendors.require(data.responder_vendor_id)
        now = self.clock.now()

        response = EmergencyResponse(
            id=new_id(),
            vendor_id=responder.id,
            vendor_name=responder.name,
            vendor_shop=responder.shop_name,
            vendor_contact=responder.phone,
            available_quantity=data.available_quantity,
            price_per_unit=data.price_per_unit,
            available_by=data.available_by,
            message=data.message,
            can_partial_fulfill=data.can_partial_fulfill,
            status=ResponseStatus.PENDING.value,
            responded_at=now,
        )
        responses = [r.to_document() for r in request.responses] + [response.to_document()]

        await self._write(
            request_id,
            {
                "responses": responses,
                "responseCount": len(responses),
                "updatedAt": to_iso(now),
            },
            expect={"status": request.status, "responseCount": request.response_count},
        )

        logger.info(f"Response {response.id} from {responder.id} added to emergency request {request_id}")
        return EmergencyRespondResult(
            response=response,
            contact_info=RespondContactInfo(
                requester=PartyContact(
                    name=request.vendor_name,
                    contact=request.vendor_contact,
                    preferred_contact=request.contact_info.preferred_contact,
                )
            ),
        )

    async def fulfill(self, request_id: str, payload: Union[EmergencyFulfillRequest, Payload]) -> EmergencyRequest:
        """
        Close a request as fulfilled (or partially fulfilled).

        Only the requester may do this, and only while the request is active.
        A responseId, when given, must name a response on this request.

        Raises:
            ValidationException: Bad payload or unknown responseId
            EmergencyRequestNotFoundException: Unknown request
            ForbiddenException: Caller is not the requester
            InvalidStateException: Request is not active
        """
        data = parse_payload(EmergencyFulfillRequest, payload)
        request = await self._load(request_id)
        self._require_requester(request, data.requester_vendor_id, "fulfill")
        self._require_active(request, "fulfill")

        if data.response_id and not any(r.id == data.response_id for r in request.responses):
            raise ValidationException(
                f"Response {data.response_id} does not belong to emergency request {request_id}",
                field_errors=[{"field": "responseId", "message": "unknown response"}]
            )

        now = self.clock.now()
        status = EmergencyStatus.PARTIAL if data.is_partial_fulfillment else EmergencyStatus.FULFILLED
        record = FulfillmentRecord(
            vendor_id=data.fulfilled_by_vendor_id,
            quantity_fulfilled=data.quantity_fulfilled,
            final_price=data.final_price,
            response_id=data.response_id,
        )

        updated = await self._write(
            request_id,
            {
                "status": status.value,
                "fulfilledBy": record.to_document(),
                "fulfilledAt": to_iso(now),
                "fulfillmentNotes": data.notes,
                "updatedAt": to_iso(now),
            },
            expect={"status": request.status},
        )

        logger.info(f"Emergency request {request_id} marked {status.value} by {data.fulfilled_by_vendor_id}")
        return EmergencyRequest.model_validate(updated)

    async def cancel(self, request_id: str, payload: Union[EmergencyCancelRequest, Payload]) -> EmergencyRequest:
        """
        Cancel an active request. Requester only.

        Raises:
            ValidationException: Missing vendorId
            EmergencyRequestNotFoundException: Unknown request
            ForbiddenException: Caller is not the requester
            InvalidStateException: Request is not active
        """
        data = parse_payload(EmergencyCancelRequest, payload)
        request = await self._load(request_id)
        self._require_requester(request, data.vendor_id, "cancel")
        self._require_active(request, "cancel")

        now = self.clock.now()
        updated = await self._write(
            request_id,
            {
                "status": EmergencyStatus.CANCELLED.value,
                "cancelledAt": to_iso(now),
                "cancellationReason": data.reason or DEFAULT_CANCEL_REASON,
                "updatedAt": to_iso(now),
            },
            expect={"status": request.status},
        )

        logger.info(f"Emergency request cancelled: {request_id}")
        return EmergencyRequest.model_validate(updated)

    async def expire_overdue(self) -> List[str]:
        """
        Move every active request past its expiresAt to expired.

        Requests that changed state between the scan and the write are
        skipped.

        Returns:
            Ids of the requests that were expired
        """
        now = self.clock.now()
        stamp = to_iso(now)
        query = (
            Query()
            .where("status", "==", EmergencyStatus.ACTIVE.value)
            .where("expiresAt", "<=", stamp)
            .order("expiresAt", "asc")
        )

        expired = []
        for document in await self._find(query):
            try:
                await self._write(
                    document["id"],
                    {"status": EmergencyStatus.EXPIRED.value, "expiredAt": stamp, "updatedAt": stamp},
                    expect={"status": EmergencyStatus.ACTIVE.value},
                )
            except InvalidStateException:
                logger.info(f"Skipped expiring {document['id']}: no longer active")
                continue
            expired.append(document["id"])

        if expired:
            logger.info(f"Expired {len(expired)} overdue emergency requests")
        return expired
