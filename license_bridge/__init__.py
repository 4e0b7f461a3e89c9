"""Payment-to-license fulfillment bridge for Stripe and PayPal."""

__version__ = "1.0.0"
