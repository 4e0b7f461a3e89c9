"""
Service wiring for the API.

All cross-request state (event store, rate limiters) is owned by one
``Services`` instance per application and reached through ``Depends``.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from license_bridge.config import Settings
from license_bridge.core.dedup import EventStore, InMemoryEventStore
from license_bridge.core.fulfillment import FulfillmentEngine
from license_bridge.core.issuer import Branding, EmailTransport, LicenseIssuer, SmtpTransport
from license_bridge.core.pricing import CartValidator
from license_bridge.core.rate_limiter import InMemoryRateLimiter, RateLimiter
from license_bridge.integrations.paypal_client import PayPalClient
from license_bridge.integrations.stripe_client import StripeCheckoutClient
from license_bridge.integrations.webhook_handler import (
    WebhookHandler,
    build_paypal_webhook_handler,
    build_stripe_webhook_handler,
)
from license_bridge.monitoring.health import HealthCheck


@dataclass
class Services:
    settings: Settings
    validator: CartValidator
    checkout_limiter: RateLimiter
    webhook_limiter: RateLimiter
    engine: FulfillmentEngine
    stripe: StripeCheckoutClient
    paypal: PayPalClient
    stripe_webhooks: WebhookHandler
    paypal_webhooks: WebhookHandler
    health: HealthCheck

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        event_store: Optional[EventStore] = None,
        transport: Optional[EmailTransport] = None,
        stripe_client: Optional[StripeCheckoutClient] = None,
        paypal_client: Optional[PayPalClient] = None,
    ) -> "Services":
        """Build the default in-memory wiring; any collaborator can be swapped."""
        if event_store is None:
            event_store = InMemoryEventStore()
        if transport is None:
            transport = SmtpTransport.from_settings(settings)
        if stripe_client is None:
            stripe_client = StripeCheckoutClient(settings)
        if paypal_client is None:
            paypal_client = PayPalClient(settings)

        issuer = LicenseIssuer(
            transport,
            Branding.from_settings(settings),
        )
        engine = FulfillmentEngine(event_store, issuer)

        return cls(
            settings=settings,
            validator=CartValidator(),
            checkout_limiter=InMemoryRateLimiter(
                window_seconds=settings.checkout_rate_limit_window_seconds,
                max_requests=settings.checkout_rate_limit_max,
                name="checkout",
            ),
            webhook_limiter=InMemoryRateLimiter(
                window_seconds=settings.webhook_rate_limit_window_seconds,
                max_requests=settings.webhook_rate_limit_max,
                name="webhook",
            ),
            engine=engine,
            stripe=stripe_client,
            paypal=paypal_client,
            stripe_webhooks=build_stripe_webhook_handler(engine, stripe_client),
            paypal_webhooks=build_paypal_webhook_handler(engine),
            health=HealthCheck(settings),
        )

    async def close(self) -> None:
        await self.paypal.close()


def get_services(request: Request) -> Services:
    return request.app.state.services


def client_key(request: Request) -> str:
    """First ``x-forwarded-for`` hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client:
        return request.client.host
    return "unknown"
