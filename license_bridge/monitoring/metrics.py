"""
Prometheus metrics for checkout and fulfillment monitoring.

Tracks:
- Checkout intents created per provider
- Rate limiter rejections
- Webhook events by outcome
- Licenses issued and delivery failures
- Provider API call duration
"""
from prometheus_client import Counter, Histogram

# Checkout metrics
checkout_intents_total = Counter(
    "license_bridge_checkout_intents_total",
    "Total checkout intents requested",
    ["provider", "status"],  # status: created, rejected, failed
)

rate_limit_rejections_total = Counter(
    "license_bridge_rate_limit_rejections_total",
    "Requests rejected by a rate limiter",
    ["scope"],  # checkout, webhook
)

# Provider API metrics
provider_api_duration_seconds = Histogram(
    "license_bridge_provider_api_duration_seconds",
    "Payment provider call duration in seconds",
    ["provider", "operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

provider_api_errors_total = Counter(
    "license_bridge_provider_api_errors_total",
    "Payment provider call failures",
    ["provider", "operation", "error_type"],  # error_type: timeout, error
)

# Webhook metrics
webhook_events_total = Counter(
    "license_bridge_webhook_events_total",
    "Webhook events received",
    ["provider", "status"],  # processed, duplicate, ignored, rejected
)

# Fulfillment metrics
licenses_issued_total = Counter(
    "license_bridge_licenses_issued_total",
    "License keys generated",
    ["provider", "license_type"],
)

license_delivery_failures_total = Counter(
    "license_bridge_license_delivery_failures_total",
    "License emails that could not be delivered",
    ["provider"],
)

duplicate_fulfillments_total = Counter(
    "license_bridge_duplicate_fulfillments_total",
    "Fulfillment attempts suppressed by the deduplicator",
    ["provider"],
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_checkout_intent(provider: str, status: str) -> None:
        """Record a checkout intent request."""
        checkout_intents_total.labels(provider=provider, status=status).inc()

    @staticmethod
    def record_rate_limit_rejection(scope: str) -> None:
        rate_limit_rejections_total.labels(scope=scope).inc()

    @staticmethod
    def record_provider_call(provider: str, operation: str, duration_seconds: float) -> None:
        """Record a provider API call duration."""
        provider_api_duration_seconds.labels(provider=provider, operation=operation).observe(
            duration_seconds
        )

    @staticmethod
    def record_provider_error(provider: str, operation: str, error_type: str) -> None:
        provider_api_errors_total.labels(
            provider=provider, operation=operation, error_type=error_type
        ).inc()

    @staticmethod
    def record_webhook_event(provider: str, status: str) -> None:
        """Record webhook event outcome."""
        webhook_events_total.labels(provider=provider, status=status).inc()

    @staticmethod
    def record_license_issued(provider: str, license_type: str) -> None:
        licenses_issued_total.labels(provider=provider, license_type=license_type).inc()

    @staticmethod
    def record_delivery_failure(provider: str) -> None:
        license_delivery_failures_total.labels(provider=provider).inc()

    @staticmethod
    def record_duplicate(provider: str) -> None:
        duplicate_fulfillments_total.labels(provider=provider).inc()


# Export singleton instance
metrics = MetricsCollector()
