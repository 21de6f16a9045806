"""
API v1 router aggregation.

WHAT: Mount the status, vendor, emergency, surplus and price routers under /api/v1
WHY: main.py includes one router and stays unaware of individual endpoints
HOW: Each endpoint module is tagged with its own name in the OpenAPI docs
"""

from fastapi import APIRouter

from .endpoints import status, vendors, emergency, surplus, prices

API_PREFIX = "/api/v1"

api_router = APIRouter(prefix=API_PREFIX)

for module, tag in (
    (status, "status"),
    (vendors, "vendors"),
    (emergency, "emergency"),
    (surplus, "surplus"),
    (prices, "prices"),
):
    api_router.include_router(module.router, tags=[tag])
