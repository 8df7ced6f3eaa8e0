"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "")

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.plans import build_catalog
from app.crud.subscription import InMemorySubscriptionStore
from app.main import app
from app.schemas.subscription import ProviderName
from app.services.account_service import AccountService, get_account_service
from app.services.billing_service import BillingService, get_billing_service
from app.services.paypal_service import PAYPAL_STATUSES
from app.services.provider_client import normalize_with
from app.services.simulated_provider import SimulatedProvider
from app.services.stripe_service import STRIPE_STATUSES

FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_stub_provider(name: ProviderName = ProviderName.PAYPAL) -> MagicMock:
    """Provider double with AsyncMock operations and the real status vocabulary"""
    stub = MagicMock()
    stub.name = name
    mapping = STRIPE_STATUSES if name == ProviderName.STRIPE else PAYPAL_STATUSES
    stub.normalize_status.side_effect = lambda raw: normalize_with(mapping, raw)
    stub.create_subscription = AsyncMock()
    stub.fetch_subscription = AsyncMock()
    stub.cancel_subscription = AsyncMock()
    stub.suspend_subscription = AsyncMock()
    stub.activate_subscription = AsyncMock()
    stub.create_portal_session = AsyncMock()
    stub.diagnostics = AsyncMock(return_value={"initialized": True, "apiWorking": True})
    return stub


@pytest.fixture
def catalog():
    return build_catalog(Settings())


@pytest.fixture
def store():
    return InMemorySubscriptionStore()


@pytest.fixture
def paypal_stub():
    return make_stub_provider(ProviderName.PAYPAL)


@pytest.fixture
def stripe_stub():
    return make_stub_provider(ProviderName.STRIPE)


@pytest.fixture
def billing(store, catalog, paypal_stub, stripe_stub):
    providers = {ProviderName.PAYPAL: paypal_stub, ProviderName.STRIPE: stripe_stub}
    return BillingService(
        store=store,
        providers=providers.__getitem__,
        catalog=catalog,
        default_provider=ProviderName.PAYPAL,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def simulated_billing(store, catalog):
    providers = {name: SimulatedProvider(name=name) for name in ProviderName}
    return BillingService(
        store=store,
        providers=providers.__getitem__,
        catalog=catalog,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def fake_supabase():
    supabase = MagicMock()
    supabase.delete_rows = AsyncMock(return_value={"success": True, "data": []})
    supabase.delete_user = AsyncMock(return_value={"success": True})
    return supabase


@pytest.fixture
def client(billing, store, fake_supabase):
    app.dependency_overrides[get_billing_service] = lambda: billing
    app.dependency_overrides[get_account_service] = lambda: AccountService(fake_supabase, store)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
