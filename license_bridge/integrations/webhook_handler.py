"""
Webhook event routing with deduplication.

Implements:
- Event deduplication through the fulfillment engine's event store
- Event type routing to registered handlers
- Acknowledgement of event types nobody handles

Signature verification happens before an event reaches this module.
"""
from typing import Any, Awaitable, Callable, Dict

import structlog

from license_bridge.core.fulfillment import FulfillmentEngine
from license_bridge.core.models import Provider, dedup_key
from license_bridge.monitoring.metrics import metrics

from .stripe_client import CHECKOUT_COMPLETED, StripeCheckoutClient

logger = structlog.get_logger(__name__)

EventHandler = Callable[[Any], Awaitable[Any]]


class WebhookHandler:
    """
    Handles verified provider webhook events.

    Every event id is consumed on first sight, before its handler runs. A
    replay is acknowledged with ``duplicate: True`` and never reaches a
    handler again, even if the first run failed.
    """

    def __init__(self, provider: Provider, engine: FulfillmentEngine):
        self.provider = provider
        self.engine = engine
        self.event_handlers: Dict[str, EventHandler] = {}

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """
        Register a handler for a specific event type.

        Example:
            handler.register_handler("checkout.session.completed", fulfill_session)
        """
        self.event_handlers[event_type] = handler
        logger.info(
            "webhook_handler_registered",
            provider=self.provider.value,
            event_type=event_type,
        )

    async def process_event(self, event_id: str, event_type: str, event: Any) -> Dict[str, Any]:
        """
        Deduplicate and dispatch a verified event.

        Returns:
            Dict[str, Any]: Acknowledgement body for the provider
        """
        if not self.engine.event_store.should_process(dedup_key(self.provider, event_id)):
            logger.info(
                "webhook_duplicate_event",
                provider=self.provider.value,
                event_id=event_id,
                event_type=event_type,
            )
            metrics.record_webhook_event(self.provider.value, "duplicate")
            return {"received": True, "duplicate": True}

        handler = self.event_handlers.get(event_type)
        if handler is None:
            logger.info(
                "webhook_event_ignored",
                provider=self.provider.value,
                event_id=event_id,
                event_type=event_type,
            )
            metrics.record_webhook_event(self.provider.value, "ignored")
            return {"received": True}

        await handler(event)
        metrics.record_webhook_event(self.provider.value, "processed")
        logger.info(
            "webhook_event_processed",
            provider=self.provider.value,
            event_id=event_id,
            event_type=event_type,
        )
        return {"received": True}


def build_stripe_webhook_handler(
    engine: FulfillmentEngine, stripe_client: StripeCheckoutClient
) -> WebhookHandler:
    """Stripe handler with checkout completion wired to fulfillment."""
    handler = WebhookHandler(Provider.STRIPE, engine)

    async def handle_checkout_completed(event: Any) -> None:
        payment_event = stripe_client.to_payment_event(event)
        await engine.fulfill(payment_event)
        logger.info("stripe_payment_processed", session_id=event["data"]["object"]["id"])

    handler.register_handler(CHECKOUT_COMPLETED, handle_checkout_completed)
    return handler


def build_paypal_webhook_handler(engine: FulfillmentEngine) -> WebhookHandler:
    """PayPal handler; fulfillment for PayPal happens on capture, not here."""
    return WebhookHandler(Provider.PAYPAL, engine)
