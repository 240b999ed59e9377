# backend/tests/routers/conftest.py
"""
API test client.

Every service dependency is overridden with the fixture graph from the root
conftest, so route tests share the mock provider and the test session.
"""

import pytest
from fastapi.testclient import TestClient

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import (
    get_dividend_service,
    get_gateway,
    get_ledger_service,
    get_rate_cache,
    get_valuation_service,
)
from portfolio_tracker.main import app


@pytest.fixture
def client(db, gateway, rate_cache, ledger, valuation_service, dividend_service) -> TestClient:
    """TestClient with the database and every service overridden."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_rate_cache] = lambda: rate_cache
    app.dependency_overrides[get_ledger_service] = lambda: ledger
    app.dependency_overrides[get_valuation_service] = lambda: valuation_service
    app.dependency_overrides[get_dividend_service] = lambda: dividend_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
