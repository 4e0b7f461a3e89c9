"""
Domain models for checkout and fulfillment.

All models are immutable: a priced item or a payment event never changes after
it has been derived from the price list or from a verified provider payload.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LicenseType(str, Enum):
    COMMERCIAL = "commercial"
    ENTERPRISE = "enterprise"


class Provider(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"


class CartItem(BaseModel):
    """
    Item as submitted by the browser.

    Untrusted: fields may be missing and any extra keys (a client ``price``
    for instance) are kept but never read.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    name: Optional[str] = None
    license_type: Optional[str] = Field(default=None, alias="licenseType")


class PricedItem(BaseModel):
    """Cart item priced by the server-side price list."""

    model_config = ConfigDict(frozen=True)

    name: str
    license_type: str
    price_minor_units: int = Field(..., gt=0)
    sku: str

    @property
    def display_name(self) -> str:
        """Line item label sent to providers, e.g. ``Tool - Enterprise License``."""
        return f"{self.name} - {self.license_type.title()} License"


class PaymentIntentRef(BaseModel):
    """Provider-side pending payment (Stripe session or PayPal order)."""

    model_config = ConfigDict(frozen=True)

    provider: Provider
    intent_id: str


class PurchasedItem(BaseModel):
    """Line item as reported back by the provider after payment."""

    model_config = ConfigDict(frozen=True)

    name: str
    license_type: Optional[LicenseType] = None


def dedup_key(provider: Provider, event_id: str) -> str:
    # Provider ids are only unique within their provider.
    return f"{provider.value}:{event_id}"


class PaymentEvent(BaseModel):
    """A confirmed payment, independent of which provider produced it."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    provider: Provider
    payer_email: Optional[str] = None
    items: Tuple[PurchasedItem, ...] = ()

    @property
    def dedup_key(self) -> str:
        return dedup_key(self.provider, self.event_id)


class LicenseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: str
    license_type: LicenseType
    license_key: UUID
