"""Core checkout and fulfillment logic."""
from .dedup import EventStore, InMemoryEventStore
from .fulfillment import FulfillmentEngine, FulfillmentOutcome, infer_tier
from .issuer import Branding, LicenseIssuer, SmtpTransport
from .pricing import CartValidator, PriceAuthority, make_sku
from .rate_limiter import InMemoryRateLimiter, RateLimiter

__all__ = [
    "Branding",
    "CartValidator",
    "EventStore",
    "FulfillmentEngine",
    "FulfillmentOutcome",
    "InMemoryEventStore",
    "InMemoryRateLimiter",
    "LicenseIssuer",
    "PriceAuthority",
    "RateLimiter",
    "SmtpTransport",
    "infer_tier",
    "make_sku",
]
