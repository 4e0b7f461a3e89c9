"""
API routes for checkout, webhooks and fulfillment.
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from license_bridge.core.errors import (
    ProviderError,
    ProviderTimeout,
    RateLimited,
    SignatureError,
    ValidationError,
)
from license_bridge.core.models import Provider
from license_bridge.core.rate_limiter import RateLimiter
from license_bridge.monitoring.metrics import metrics

from .dependencies import Services, client_key, get_services
from .schemas import (
    CreateCheckoutSessionRequest,
    CreatePayPalOrderRequest,
    HealthResponse,
    IntentResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
checkout_router = APIRouter(tags=["checkout"])
webhook_router = APIRouter(prefix="/webhook", tags=["webhooks"])
paypal_router = APIRouter(prefix="/api/paypal", tags=["paypal"])
monitoring_router = APIRouter(tags=["monitoring"])


def _admit(limiter: RateLimiter, request: Request, scope: str) -> None:
    if not limiter.admit(client_key(request)):
        metrics.record_rate_limit_rejection(scope)
        if scope == "checkout":
            raise RateLimited()
        raise RateLimited("Too many requests. Please try again later.")


@checkout_router.post(
    "/create-checkout-session",
    response_model=IntentResponse,
    summary="Create a Stripe checkout session",
)
async def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Price the cart server-side and open a Stripe Checkout Session."""
    _admit(services.checkout_limiter, request, "checkout")

    try:
        priced = services.validator.validate(body.items)
        intent = await services.stripe.create_intent(
            priced, customer_email=body.email, base_url=request.headers.get("origin")
        )
    except ValidationError as e:
        metrics.record_checkout_intent("stripe", "rejected")
        logger.warning("stripe_session_validation_error", error=e.message)
        raise
    except ProviderTimeout:
        metrics.record_checkout_intent("stripe", "failed")
        raise
    except ProviderError as e:
        metrics.record_checkout_intent("stripe", "failed")
        logger.error("stripe_session_creation_failed", error=e.message)
        raise ProviderError(e.message, status_code=400, original_error=e.original_error) from e

    metrics.record_checkout_intent("stripe", "created")
    return {"id": intent.intent_id}


@webhook_router.post(
    "/stripe",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    summary="Stripe webhook endpoint",
)
async def stripe_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Handle Stripe webhook events.

    Verifies the signature against the raw body, then deduplicates and
    dispatches the event.
    """
    _admit(services.webhook_limiter, request, "webhook")
    payload = await request.body()

    try:
        event = services.stripe.verify_and_parse(payload, request.headers.get("stripe-signature"))
    except SignatureError:
        metrics.record_webhook_event("stripe", "rejected")
        raise

    return await services.stripe_webhooks.process_event(event["id"], event["type"], event)


@webhook_router.post(
    "/paypal",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    summary="PayPal webhook endpoint",
)
async def paypal_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Handle PayPal webhook events.

    Deliveries are only accepted after PayPal confirms the signature.
    """
    _admit(services.webhook_limiter, request, "webhook")

    try:
        body = await request.json()
    except ValueError as e:
        metrics.record_webhook_event("paypal", "rejected")
        raise SignatureError("Webhook Error: payload is not valid JSON") from e
    if not isinstance(body, dict) or not body.get("id"):
        metrics.record_webhook_event("paypal", "rejected")
        raise SignatureError("Webhook Error: payload is not a PayPal event")

    if not await services.paypal.verify_webhook(request.headers, body):
        metrics.record_webhook_event("paypal", "rejected")
        logger.error("paypal_webhook_verification_failed", event_id=body.get("id"))
        raise SignatureError("Webhook Error: PayPal signature verification failed")

    logger.info("paypal_webhook_received", event_type=body.get("event_type"))
    return await services.paypal_webhooks.process_event(
        body["id"], body.get("event_type") or "", body
    )


@paypal_router.post(
    "/create-order",
    response_model=IntentResponse,
    summary="Create a PayPal order",
)
async def create_paypal_order(
    body: CreatePayPalOrderRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Price the cart server-side and create a PayPal order."""
    _admit(services.checkout_limiter, request, "checkout")

    try:
        priced = services.validator.validate(body.cart)
        intent = await services.paypal.create_intent(priced, base_url=request.headers.get("origin"))
    except ValidationError as e:
        metrics.record_checkout_intent("paypal", "rejected")
        logger.warning("paypal_order_validation_error", error=e.message)
        raise
    except ProviderError as e:
        metrics.record_checkout_intent("paypal", "failed")
        logger.error("paypal_order_creation_failed", error=e.message)
        raise

    metrics.record_checkout_intent("paypal", "created")
    return {"id": intent.intent_id}


@paypal_router.post(
    "/orders/{order_id}/capture",
    summary="Capture a PayPal order",
)
async def capture_paypal_order(
    order_id: str,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Capture an approved order and fulfill it.

    Returns PayPal's capture result unchanged. Email delivery problems never
    turn a captured payment into an error response.
    """
    try:
        result = await services.paypal.capture(order_id)
    except ProviderError as e:
        logger.error("paypal_capture_failed", order_id=order_id, error=e.message)
        raise

    if not services.engine.admit(Provider.PAYPAL, order_id):
        logger.info("paypal_capture_duplicate", order_id=order_id)
        return result

    # Consumed before extraction: a capture without an email is recovered by hand.
    payment_event = services.paypal.to_payment_event(order_id, result)
    records = await services.engine.fulfill(payment_event)
    logger.info("paypal_payment_processed", order_id=order_id, licenses=len(records))
    return result


@monitoring_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Reports configuration presence, not live connectivity",
)
async def health(services: Services = Depends(get_services)) -> Dict[str, Any]:
    return services.health.report()


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
