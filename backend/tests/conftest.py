"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers, stores, services, clients
WHY: Every test gets its own isolated store and a clock it controls
HOW: Define pytest markers, store/service fixtures and an app client factory
"""

import pytest
from fastapi.testclient import TestClient

from marketplace.core.config import Settings
from marketplace.main import create_app
from marketplace.services.emergency_service import EmergencyRequestService
from marketplace.services.price_service import PriceService
from marketplace.services.surplus_service import SurplusListingService
from marketplace.services.vendor_directory import VendorDirectory
from marketplace.storage import InMemoryDocumentStore
from marketplace.storage.sql import SqlDocumentStore
from marketplace.utils.clock import FixedClock
from tests.fixtures.proof_reader import FixedProofReader
from tests.fixtures.sample_data import START, vendor_payload


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components, HTTP)"
    )
    config.addinivalue_line(
        "markers", "storage: Document store contract tests (memory + SQLite)"
    )
    config.addinivalue_line(
        "markers", "lifecycle: Emergency / surplus state machine tests"
    )
    config.addinivalue_line(
        "markers", "api: FastAPI endpoint tests"
    )


@pytest.fixture
def clock():
    """Clock frozen at START; tests move it with clock.advance(hours=...)."""
    return FixedClock(START)


@pytest.fixture
def test_settings(tmp_path):
    """
    Settings isolated from the environment.

    WHAT: Memory backend, sample data off, logs under tmp_path
    WHY: Tests must not depend on a developer's .env
    HOW: Explicit constructor arguments override env values
    """
    return Settings(
        APP_NAME="Test Marketplace",
        APP_VERSION="0.1.0-test",
        DEBUG=False,
        STORAGE_BACKEND="memory",
        DATABASE_URL=f"sqlite:///{tmp_path}/marketplace.db",
        SEED_SAMPLE_DATA=False,
        LOG_LEVEL="DEBUG",
        LOG_FILE=str(tmp_path / "logs" / "app.log"),
    )


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def sql_store(tmp_path):
    """SQLite file store in tmp_path, tables created."""
    store = SqlDocumentStore(f"sqlite:///{tmp_path}/documents.db")
    store.initialize()
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    """Each test using this runs once per backend."""
    if request.param == "memory":
        yield InMemoryDocumentStore()
        return

    sql = SqlDocumentStore(f"sqlite:///{tmp_path}/documents.db")
    sql.initialize()
    yield sql
    sql.close()


@pytest.fixture
def vendors(store, clock, test_settings):
    return VendorDirectory(store, clock, test_settings)


@pytest.fixture
def emergency_service(store, vendors, clock, test_settings):
    return EmergencyRequestService(store, vendors, clock, test_settings)


@pytest.fixture
def surplus_service(store, vendors, clock, test_settings):
    return SurplusListingService(store, vendors, clock, test_settings)


@pytest.fixture
def proof_reader():
    """Confident reader: posted prices verify unless a test swaps it."""
    return FixedProofReader(confidence=0.9)


@pytest.fixture
def price_service(store, vendors, clock, test_settings, proof_reader):
    return PriceService(store, vendors, clock, test_settings, proof_reader)


@pytest.fixture
async def requester(vendors):
    """Vendor V1: raises emergency requests and lists surplus."""
    return await vendors.register(vendor_payload("Asha Patil", "Patil Provisions", phone="+91-9000000001"))


@pytest.fixture
async def responder(vendors):
    """Vendor V2: answers requests and claims surplus."""
    return await vendors.register(vendor_payload("Vikram Rao", "Rao Traders", phone="+91-9000000002"))


@pytest.fixture
async def bystander(vendors):
    """Vendor V3: unrelated to the exchange."""
    return await vendors.register(vendor_payload("Meena Shah", "Shah Stores", city="Pune"))


@pytest.fixture
def app(memory_store, clock, test_settings, proof_reader):
    """App wired to an isolated memory store, the fixed clock and a fixed proof reader."""
    return create_app(settings=test_settings, store=memory_store, clock=clock, proof_reader=proof_reader)


@pytest.fixture
def client(app):
    """FastAPI test client (runs the lifespan)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_vendor(client):
    """Register a vendor over HTTP and return its id."""
    def _register(name: str, shop: str, city: str = "Mumbai", phone: str = "") -> str:
        response = client.post("/api/v1/vendors/register", json=vendor_payload(name, shop, city, phone))
        assert response.status_code == 201
        return response.json()["vendor"]["id"]
    return _register
