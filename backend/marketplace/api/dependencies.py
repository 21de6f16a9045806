"""
FastAPI dependencies.

WHAT: Resolve the services wired into the running app
WHY: Each app instance (and each test) owns its own store and services
HOW: Read them from request.app.state, set up by create_app
"""

from fastapi import Request

from ..services.emergency_service import EmergencyRequestService
from ..services.price_service import PriceService
from ..services.surplus_service import SurplusListingService
from ..services.vendor_directory import VendorDirectory


def get_vendor_directory(request: Request) -> VendorDirectory:
    return request.app.state.vendor_directory


def get_emergency_service(request: Request) -> EmergencyRequestService:
    return request.app.state.emergency_service


def get_surplus_service(request: Request) -> SurplusListingService:
    return request.app.state.surplus_service


def get_price_service(request: Request) -> PriceService:
    return request.app.state.price_service
