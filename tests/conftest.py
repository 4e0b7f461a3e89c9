"""
Pytest configuration and fixtures.
"""
from typing import Any, AsyncGenerator, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from license_bridge.api.dependencies import Services
from license_bridge.api.main import create_app
from license_bridge.config import Settings
from license_bridge.core.dedup import InMemoryEventStore
from license_bridge.core.errors import DeliveryError
from license_bridge.core.fulfillment import FulfillmentEngine
from license_bridge.core.issuer import LicenseIssuer
from license_bridge.integrations.paypal_client import PayPalClient
from license_bridge.integrations.stripe_client import StripeCheckoutClient


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "race: concurrency tests")
    config.addinivalue_line("markers", "integration: tests through the HTTP API")


class RecordingTransport:
    """Email transport that keeps every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append((to, subject, body))


class FailingTransport:
    """Email transport whose SMTP server is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, to: str, subject: str, body: str) -> None:
        self.attempts += 1
        raise DeliveryError("SMTP delivery failed: connection refused")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_fake_key_for_testing",
        stripe_webhook_secret="whsec_test_fake_secret",
        paypal_client_id="paypal-client-id",
        paypal_client_secret="paypal-client-secret",
        paypal_webhook_id="WH-TEST-123",
        email_user="mailer@example.com",
        email_pass="secret",
        frontend_url="https://shop.example.com",
        app_name="license-bridge-test",
        app_env="test",
        log_level="DEBUG",
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def failing_transport() -> FailingTransport:
    return FailingTransport()


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def engine(event_store: InMemoryEventStore, transport: RecordingTransport) -> FulfillmentEngine:
    return FulfillmentEngine(event_store, LicenseIssuer(transport))


@pytest.fixture
def mock_stripe_client(test_settings: Settings) -> MagicMock:
    """Stripe adapter with a mocked network side and real event parsing."""
    client = MagicMock(spec=StripeCheckoutClient)
    client.settings = test_settings
    client.create_intent = AsyncMock()
    client.to_payment_event.side_effect = StripeCheckoutClient.to_payment_event
    return client


@pytest.fixture
def mock_paypal_client(test_settings: Settings) -> MagicMock:
    """PayPal adapter with a mocked network side and real event parsing."""
    client = MagicMock(spec=PayPalClient)
    client.settings = test_settings
    client.create_intent = AsyncMock()
    client.capture = AsyncMock()
    client.verify_webhook = AsyncMock(return_value=True)
    client.close = AsyncMock()
    client.to_payment_event.side_effect = PayPalClient.to_payment_event
    return client


@pytest.fixture
def services(
    test_settings: Settings,
    event_store: InMemoryEventStore,
    transport: RecordingTransport,
    mock_stripe_client: MagicMock,
    mock_paypal_client: MagicMock,
) -> Services:
    return Services.from_settings(
        test_settings,
        event_store=event_store,
        transport=transport,
        stripe_client=mock_stripe_client,
        paypal_client=mock_paypal_client,
    )


@pytest_asyncio.fixture
async def client(
    test_settings: Settings, services: Services
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """Create test HTTP client."""
    app = create_app(test_settings, services)
    transport = httpx.ASGITransport(app=app, client=("203.0.113.7", 50000))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _checkout_completed_event(
    event_id: str = "evt_test_123",
    session_id: str = "cs_test_123",
    email: Optional[str] = "buyer@example.com",
    details_email: Optional[str] = None,
    items: str = '[{"name": "Workflow Yaml Fixer Pro", "licenseType": "commercial"}]',
) -> dict:
    """A ``checkout.session.completed`` event as Stripe delivers it."""
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "customer_email": email,
                "customer_details": {"email": details_email} if details_email else None,
                "metadata": {"items": items},
            }
        },
    }


def _paypal_capture_result(
    order_id: str = "5O190127TN364715T",
    payer_email: Optional[str] = "buyer@example.com",
    payee_email: Optional[str] = None,
    item_names: Tuple[str, ...] = ("Workflow Yaml Fixer Pro - Commercial License",),
) -> dict:
    """An Orders v2 capture response."""
    unit: dict = {
        "reference_id": "default",
        "items": [
            {"name": name, "unit_amount": {"currency_code": "USD", "value": "4.99"}, "quantity": "1"}
            for name in item_names
        ],
    }
    if payee_email:
        unit["payee"] = {"email_address": payee_email}
    result: dict = {"id": order_id, "status": "COMPLETED", "purchase_units": [unit]}
    if payer_email:
        result["payer"] = {"email_address": payer_email, "payer_id": "QYR5Z8XDVJNXQ"}
    return result


@pytest.fixture
def checkout_event() -> Any:
    return _checkout_completed_event


@pytest.fixture
def capture_result() -> Any:
    return _paypal_capture_result
