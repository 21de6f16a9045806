"""
Status and health check endpoints.

WHAT: Health monitoring for the document store
WHY: Quick diagnostics for frontend and ops
HOW: FastAPI endpoint calling store.ping() plus app metadata
"""

from fastapi import APIRouter, Request

from ....utils.clock import to_iso
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Overall application health check.

    WHAT: Store availability plus version
    WHY: Ops and monitoring tools need simple health endpoint
    HOW: Aggregate store ping with app metadata

    Returns:
        JSON with overall health status ("healthy" or "degraded")
    """
    state = request.app.state

    try:
        store_status = state.store.ping()
    except Exception as e:
        logger.error(f"Health check store ping failed: {e}")
        store_status = {"available": False, "backend": "unknown", "error": str(e)}

    if not store_status["available"]:
        logger.warning(f"Store unavailable: {store_status['error']}")

    return {
        "status": "healthy" if store_status["available"] else "degraded",
        "version": state.settings.APP_VERSION,
        "app_name": state.settings.APP_NAME,
        "timestamp": to_iso(state.clock.now()),
        "components": {
            "store": store_status
        }
    }
