"""
PayPal Orders v2 integration over httpx.

Implements:
- OAuth client-credentials token with in-process caching
- Order creation with a total that always equals its item breakdown
- Order capture and translation into provider-neutral payment events
- Webhook signature verification through PayPal's verification endpoint
"""
import time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
import structlog

from license_bridge.config import Settings, get_settings
from license_bridge.core.errors import MissingPayerEmail, ProviderError, ProviderTimeout
from license_bridge.core.models import (
    PaymentEvent,
    PaymentIntentRef,
    PricedItem,
    Provider,
    PurchasedItem,
)
from license_bridge.monitoring.metrics import metrics

from .extraction import PAYPAL_CAPTURE_EMAIL, first_present

logger = structlog.get_logger(__name__)

WEBHOOK_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


def format_minor_units(amount: int) -> str:
    """Render minor units as a two-decimal string, e.g. ``499 -> "4.99"``."""
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    return f"{sign}{amount // 100}.{amount % 100:02d}"


class PayPalClient:
    """Thin async client for the PayPal REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._http = http_client or httpx.AsyncClient(
            base_url=self.settings.paypal_base_url,
            timeout=self.settings.provider_timeout_seconds,
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

        logger.info(
            "paypal_client_initialized",
            base_url=self.settings.paypal_base_url,
            configured=self.settings.paypal_configured,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        headers = dict(kwargs.pop("headers", {}) or {})
        if authenticated:
            headers["Authorization"] = f"Bearer {await self._access_token()}"

        start = time.time()
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            metrics.record_provider_error("paypal", operation, "timeout")
            logger.error("paypal_api_timeout", operation=operation)
            raise ProviderTimeout(f"PayPal {operation} timed out, please retry") from e
        except httpx.HTTPStatusError as e:
            metrics.record_provider_error("paypal", operation, "error")
            detail = _error_detail(e.response)
            logger.error(
                "paypal_api_error",
                operation=operation,
                status_code=e.response.status_code,
                error_message=detail,
            )
            raise ProviderError(f"PayPal {operation} failed: {detail}", original_error=e) from e
        except httpx.HTTPError as e:
            metrics.record_provider_error("paypal", operation, "error")
            logger.error("paypal_api_unreachable", operation=operation, error=str(e))
            raise ProviderError(f"PayPal {operation} failed: {e}", original_error=e) from e
        finally:
            metrics.record_provider_call("paypal", operation, time.time() - start)

        return response.json() if response.content else {}

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        if not self.settings.paypal_client_id or not self.settings.paypal_client_secret:
            raise ProviderError("PayPal is not configured")

        payload = await self._request(
            "oauth_token",
            "POST",
            "/v1/oauth2/token",
            authenticated=False,
            data={"grant_type": "client_credentials"},
            auth=(self.settings.paypal_client_id, self.settings.paypal_client_secret),
        )
        self._token = payload["access_token"]
        # Refresh a minute early.
        self._token_expires_at = time.monotonic() + max(
            int(payload.get("expires_in", 0)) - 60, 0
        )
        return self._token

    def build_order(
        self, priced_items: Sequence[PricedItem], base_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build the order request body.

        Raises:
            ProviderError: If the amount does not equal the item breakdown
        """
        currency = self.settings.currency.upper()
        total = sum(item.price_minor_units for item in priced_items)

        items = [
            {
                "name": item.display_name,
                "sku": item.sku,
                "unit_amount": {
                    "currency_code": currency,
                    "value": format_minor_units(item.price_minor_units),
                },
                "quantity": "1",
            }
            for item in priced_items
        ]

        root = (self.settings.frontend_url or base_url or "").rstrip("/")
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {
                        "currency_code": currency,
                        "value": format_minor_units(total),
                        "breakdown": {
                            "item_total": {
                                "currency_code": currency,
                                "value": f"{_line_total(items):.2f}",
                            }
                        },
                    },
                    "items": items,
                }
            ],
            "application_context": {
                "brand_name": self.settings.brand_name,
                "landing_page": "BILLING",
                "user_action": "PAY_NOW",
                "return_url": f"{root}/success",
                "cancel_url": f"{root}/cancel",
            },
        }
        check_order_totals(body)
        return body

    async def create_intent(
        self, priced_items: Sequence[PricedItem], base_url: Optional[str] = None
    ) -> PaymentIntentRef:
        """
        Create a PayPal order for already-priced items.

        Returns:
            PaymentIntentRef: Reference to the created order
        """
        body = self.build_order(priced_items, base_url)
        order = await self._request("create_order", "POST", "/v2/checkout/orders", json=body)

        logger.info(
            "paypal_order_created",
            order_id=order["id"],
            total=body["purchase_units"][0]["amount"]["value"],
        )
        return PaymentIntentRef(provider=Provider.PAYPAL, intent_id=order["id"])

    async def capture(self, order_id: str) -> Dict[str, Any]:
        """Capture an approved order and return PayPal's raw result."""
        result = await self._request(
            "capture_order",
            "POST",
            f"/v2/checkout/orders/{order_id}/capture",
            json={},
        )
        logger.info("paypal_order_captured", order_id=order_id, status=result.get("status"))
        return result

    @staticmethod
    def to_payment_event(order_id: str, capture_result: Mapping[str, Any]) -> PaymentEvent:
        """
        Build a payment event from a capture result.

        Raises:
            MissingPayerEmail: If neither payer nor payee carries an email
        """
        email = first_present(capture_result, PAYPAL_CAPTURE_EMAIL)
        if email is None:
            logger.error("paypal_order_missing_email", order_id=order_id)
            raise MissingPayerEmail(order_id)

        return PaymentEvent(
            event_id=order_id,
            provider=Provider.PAYPAL,
            payer_email=email,
            items=tuple(_capture_items(capture_result)),
        )

    async def verify_webhook(self, headers: Mapping[str, str], event_body: Dict[str, Any]) -> bool:
        """
        Ask PayPal whether a webhook delivery is authentic.

        Returns False without calling PayPal when the webhook id is not
        configured or a transmission header is missing.
        """
        webhook_id = self.settings.paypal_webhook_id
        if not webhook_id:
            logger.error("paypal_webhook_id_not_configured")
            return False

        lowered = {key.lower(): value for key, value in headers.items()}
        fields = {field: lowered.get(header) for field, header in WEBHOOK_HEADERS.items()}
        missing = [header for field, header in WEBHOOK_HEADERS.items() if not fields[field]]
        if missing:
            logger.warning("paypal_webhook_headers_missing", missing=missing)
            return False

        result = await self._request(
            "verify_webhook",
            "POST",
            "/v1/notifications/verify-webhook-signature",
            json={**fields, "webhook_id": webhook_id, "webhook_event": event_body},
        )
        return result.get("verification_status") == "SUCCESS"


def _capture_items(capture_result: Mapping[str, Any]) -> List[PurchasedItem]:
    units = capture_result.get("purchase_units") or []
    if not units:
        return []
    return [
        PurchasedItem(name=item["name"])
        for item in units[0].get("items") or []
        if isinstance(item, Mapping) and item.get("name")
    ]


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if not isinstance(body, dict):
        return str(body)
    return body.get("message") or body.get("error_description") or body.get("name") or str(body)


def _line_total(items: Sequence[Mapping[str, Any]]) -> Decimal:
    return sum(
        (Decimal(item["unit_amount"]["value"]) * int(item["quantity"]) for item in items),
        Decimal("0"),
    )


def check_order_totals(body: Mapping[str, Any]) -> None:
    """
    Check each purchase unit of an order body before it is sent.

    ``amount.value``, ``breakdown.item_total.value`` and the sum of the item
    lines must all be equal; PayPal rejects the order otherwise.

    Raises:
        ProviderError: On any mismatch
    """
    for unit in body["purchase_units"]:
        amount = Decimal(unit["amount"]["value"])
        item_total = Decimal(unit["amount"]["breakdown"]["item_total"]["value"])
        lines = _line_total(unit["items"])
        if not amount == item_total == lines:
            raise ProviderError(
                f"Order total {amount} does not match item breakdown "
                f"{item_total} (lines {lines})"
            )
