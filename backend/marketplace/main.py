"""
FastAPI application entry point.

WHAT: Main application setup and wiring
WHY: Initialize the store, services and routes
HOW: App factory creating the FastAPI app, middleware, routers, handlers;
     the store and clock can be injected so each test gets its own
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .core.config import Settings, settings as default_settings
from .services.emergency_service import EmergencyRequestService
from .services.price_service import PriceService
from .services.proof_reader import ProofReader, SimulatedProofReader
from .services.surplus_service import SurplusListingService
from .services.vendor_directory import VendorDirectory
from .storage import DocumentStore, build_store
from .utils.clock import Clock, SystemClock
from .utils.logger import setup_logging, get_logger
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    clock: Optional[Clock] = None,
    proof_reader: Optional[ProofReader] = None
) -> FastAPI:
    """
    Build a fully wired application.

    WHAT: FastAPI app with services on app.state
    WHY: No module-level store; callers decide which store and clock to use
    HOW: Build the store from settings unless given, construct services,
         register middleware, handlers and routers

    Args:
        settings: App settings (module settings if omitted)
        store: Document store (built from settings if omitted)
        clock: Time source (system clock if omitted)
        proof_reader: Scores price proof photos (simulated reader if omitted)

    Returns:
        FastAPI application
    """
    settings = settings or default_settings
    store = store or build_store(settings)
    clock = clock or SystemClock()
    proof_reader = proof_reader or SimulatedProofReader()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        WHAT: Startup and shutdown logic
        WHY: Initialize the store, close connections cleanly
        HOW: Async context manager for FastAPI lifespan
        """
        # Startup
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        store.initialize()
        if settings.SEED_SAMPLE_DATA:
            await app.state.vendor_directory.seed_sample_vendor()
            await app.state.price_service.seed_sample_price()
        logger.info("Application startup complete")

        yield

        # Shutdown
        logger.info("Shutting down application")
        store.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )

    vendors = VendorDirectory(store, clock, settings)
    app.state.settings = settings
    app.state.store = store
    app.state.clock = clock
    app.state.vendor_directory = vendors
    app.state.emergency_service = EmergencyRequestService(store, vendors, clock, settings)
    app.state.surplus_service = SurplusListingService(store, vendors, clock, settings)
    app.state.price_service = PriceService(store, vendors, clock, settings, proof_reader)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Include API router
    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    return app


# Setup logging
setup_logging()

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "marketplace.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG
    )
