"""
Custom business exceptions for the listing lifecycle.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Callers must tell validation, missing entities, auth and state errors apart
HOW: Custom exception classes with error codes, messages and details
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ValidationException(BusinessException):
    """Raised for missing or malformed input."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )


class NotFoundException(BusinessException):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str, code: str = "NOT_FOUND"):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code=code,
            details={"id": entity_id}
        )


class VendorNotFoundException(NotFoundException):
    """Raised when a vendor id does not resolve."""

    def __init__(self, vendor_id: str):
        super().__init__("Vendor", vendor_id, code="VENDOR_NOT_FOUND")


class EmergencyRequestNotFoundException(NotFoundException):
    """Raised when an emergency request is not found."""

    def __init__(self, request_id: str):
        super().__init__("Emergency request", request_id, code="EMERGENCY_REQUEST_NOT_FOUND")


class SurplusListingNotFoundException(NotFoundException):
    """Raised when a surplus listing is not found."""

    def __init__(self, listing_id: str):
        super().__init__("Surplus listing", listing_id, code="SURPLUS_LISTING_NOT_FOUND")


class PriceEntryNotFoundException(NotFoundException):
    """Raised when a price entry is not found."""

    def __init__(self, price_id: str):
        super().__init__("Price entry", price_id, code="PRICE_ENTRY_NOT_FOUND")


class ForbiddenException(BusinessException):
    """Raised when the caller is not the vendor allowed to make this change."""

    def __init__(self, message: str, vendor_id: Optional[str] = None):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            details={"vendor_id": vendor_id} if vendor_id else None
        )


class InvalidStateException(BusinessException):
    """Raised when an operation is not legal in the entity's current status."""

    def __init__(self, entity_id: str, current_status: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Operation not allowed for {entity_id} in status '{current_status}'",
            code="INVALID_STATE",
            details={"id": entity_id, "current_status": current_status}
        )


class UnavailableException(BusinessException):
    """Raised when the backing store cannot be reached. Retryable by the caller."""

    def __init__(self, message: str = "Backing store unavailable"):
        super().__init__(message=message, code="STORE_UNAVAILABLE")
