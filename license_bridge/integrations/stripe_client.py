"""
Stripe Checkout integration.

Implements:
- Checkout session creation from server-priced items
- Webhook signature verification (fails closed)
- Translation of completed sessions into provider-neutral payment events

The Stripe SDK is blocking; every call runs in a worker thread and is bounded
by the provider timeout.
"""
import asyncio
import json
import time
from typing import Any, Callable, List, Optional, Sequence, TypeVar

import stripe
import structlog

from license_bridge.config import Settings, get_settings
from license_bridge.core.errors import (
    MissingPayerEmail,
    ProviderError,
    ProviderTimeout,
    SignatureError,
)
from license_bridge.core.models import (
    LicenseType,
    PaymentEvent,
    PaymentIntentRef,
    PricedItem,
    Provider,
    PurchasedItem,
)
from license_bridge.monitoring.metrics import metrics

from .extraction import STRIPE_SESSION_EMAIL, first_present

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CHECKOUT_COMPLETED = "checkout.session.completed"


class StripeCheckoutClient:
    """Wrapper for the Stripe Checkout API."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        if settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key
        stripe.api_version = settings.stripe_api_version
        self.settings = settings

        logger.info(
            "stripe_client_initialized",
            api_version=stripe.api_version,
            configured=settings.stripe_configured,
        )

    async def _call(self, operation: str, func: Callable[[], T]) -> T:
        start = time.time()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func), self.settings.provider_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            metrics.record_provider_error("stripe", operation, "timeout")
            logger.error("stripe_api_timeout", operation=operation)
            raise ProviderTimeout(f"Stripe {operation} timed out, please retry") from e
        except stripe.StripeError as e:
            metrics.record_provider_error("stripe", operation, "error")
            logger.error(
                "stripe_api_error",
                operation=operation,
                error_code=getattr(e, "code", None),
                error_message=str(e),
            )
            raise ProviderError(
                getattr(e, "user_message", None) or str(e), original_error=e
            ) from e
        finally:
            metrics.record_provider_call("stripe", operation, time.time() - start)

    @staticmethod
    def build_line_items(priced_items: Sequence[PricedItem], currency: str) -> List[dict]:
        return [
            {
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {
                        "name": item.display_name,
                        "description": f"{item.license_type.title()} license for {item.name}",
                    },
                    "unit_amount": item.price_minor_units,
                },
                "quantity": 1,
            }
            for item in priced_items
        ]

    async def create_intent(
        self,
        priced_items: Sequence[PricedItem],
        customer_email: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> PaymentIntentRef:
        """
        Create a Checkout Session for already-priced items.

        Args:
            priced_items: Output of the cart validator
            customer_email: Optional email to prefill
            base_url: Request origin, used when no frontend URL is configured

        Returns:
            PaymentIntentRef: Reference to the created session

        Raises:
            ProviderError: If Stripe rejects the request
            ProviderTimeout: If Stripe does not answer in time
        """
        if not self.settings.stripe_configured:
            raise ProviderError("Stripe is not configured")

        root = (self.settings.frontend_url or base_url or "").rstrip("/")
        params: dict = {
            "payment_method_types": ["card"],
            "line_items": self.build_line_items(priced_items, self.settings.currency),
            "mode": "payment",
            "success_url": f"{root}/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{root}/cancel",
            "metadata": {
                "items": json.dumps(
                    [{"name": i.name, "licenseType": i.license_type} for i in priced_items]
                )
            },
        }
        if customer_email:
            params["customer_email"] = customer_email

        session = await self._call(
            "create_session", lambda: stripe.checkout.Session.create(**params)
        )

        logger.info(
            "stripe_session_created",
            session_id=session["id"],
            items=[item.name for item in priced_items],
        )
        return PaymentIntentRef(provider=Provider.STRIPE, intent_id=session["id"])

    def verify_and_parse(
        self, payload: bytes, signature: Optional[str], secret: Optional[str] = None
    ) -> Any:
        """
        Verify webhook signature and construct event.

        Raises:
            SignatureError: On a missing header, missing secret or bad signature
        """
        webhook_secret = secret or self.settings.stripe_webhook_secret
        if not signature:
            logger.error("webhook_signature_missing")
            raise SignatureError("Webhook Error: missing stripe-signature header")
        if not webhook_secret:
            logger.error("webhook_secret_not_configured")
            raise SignatureError("Webhook Error: webhook secret not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            logger.error("webhook_signature_verification_failed", error=str(e))
            raise SignatureError(f"Webhook Error: {e}") from e
        except ValueError as e:
            logger.error("webhook_payload_invalid", error=str(e))
            raise SignatureError(f"Webhook Error: {e}") from e

        logger.info("webhook_signature_verified", event_id=event["id"], event_type=event["type"])
        return event

    @staticmethod
    def to_payment_event(event: Any) -> PaymentEvent:
        """
        Build a payment event from a verified ``checkout.session.completed``.

        Raises:
            MissingPayerEmail: If the session carries no customer email
        """
        session = event["data"]["object"]
        session_id = session["id"]

        email = first_present(session, STRIPE_SESSION_EMAIL)
        if email is None:
            logger.error("stripe_session_missing_email", session_id=session_id)
            raise MissingPayerEmail(session_id)

        return PaymentEvent(
            event_id=event["id"],
            provider=Provider.STRIPE,
            payer_email=email,
            items=tuple(_session_items(session)),
        )


def _session_items(session: Any) -> List[PurchasedItem]:
    try:
        raw = session["metadata"]["items"]
    except (KeyError, TypeError):
        return []
    if not raw:
        return []

    try:
        entries = json.loads(raw)
    except ValueError:
        logger.warning("stripe_metadata_items_unreadable", session_id=session["id"])
        return []
    if not isinstance(entries, list):
        logger.warning("stripe_metadata_items_unreadable", session_id=session["id"])
        return []

    items = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name") or entry.get("project")
        if not name:
            continue
        items.append(PurchasedItem(name=name, license_type=_parse_tier(entry.get("licenseType"))))
    return items


def _parse_tier(value: Any) -> Optional[LicenseType]:
    try:
        return LicenseType(value)
    except ValueError:
        return None
