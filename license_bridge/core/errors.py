"""
Error taxonomy for the fulfillment pipeline.

Every error carries the HTTP status it maps to so the API layer can render it
without knowing where it was raised. ``DeliveryError`` is the exception: it is
logged by the fulfillment engine and never reaches a client.
"""
from typing import Any, Dict, Optional


class LicenseBridgeError(Exception):
    """Base exception for license bridge errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> Dict[str, Any]:
        """Body returned to the client."""
        return {"error": self.message}


class ValidationError(LicenseBridgeError):
    """Raised when a submitted cart cannot be priced."""

    status_code = 400


class EmptyCart(ValidationError):
    """Cart was missing or had no items."""

    def __init__(self, message: str = "Invalid or empty items array"):
        super().__init__(message)


class MissingField(ValidationError):
    """A cart item lacked name or licenseType."""

    def __init__(self, message: str = "Missing required fields: name, licenseType"):
        super().__init__(message)


class InvalidSku(ValidationError):
    """Neither the SKU nor the tier default has a price."""

    def __init__(self, sku: str):
        super().__init__(f"Invalid SKU: {sku}")
        self.sku = sku


class RateLimited(LicenseBridgeError):
    """Client exceeded the admission window."""

    status_code = 429

    def __init__(self, message: str = "Too many checkout attempts. Please try again later."):
        super().__init__(message)


class SignatureError(LicenseBridgeError):
    """Webhook payload failed verification."""

    status_code = 400


class ProviderError(LicenseBridgeError):
    """Payment provider rejected or failed a call."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, status_code)
        self.original_error = original_error


class ProviderTimeout(ProviderError):
    """Provider call exceeded its deadline; safe for the client to retry."""

    status_code = 504

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "retryable": True}


class MissingPayerEmail(LicenseBridgeError):
    """
    Payment succeeded but no payer email could be found.

    Money has already moved, so the message names the provider reference for
    manual recovery.
    """

    status_code = 500

    def __init__(self, reference: str):
        super().__init__(
            "Payment processed but email delivery failed. "
            f"Contact support with order ID: {reference}"
        )
        self.reference = reference


class DeliveryError(LicenseBridgeError):
    """Email transport failed to send the license message."""
