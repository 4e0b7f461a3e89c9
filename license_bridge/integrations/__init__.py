"""External payment provider integrations."""
from .paypal_client import PayPalClient
from .stripe_client import StripeCheckoutClient
from .webhook_handler import WebhookHandler

__all__ = ["PayPalClient", "StripeCheckoutClient", "WebhookHandler"]
