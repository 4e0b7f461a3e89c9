"""
Fulfillment engine: confirmed payment in, license records out.

Orchestrates the reconciliation flow for either provider:
1. Check-and-mark the event in the event store
2. Require a payer email
3. Derive one license record per purchased item
4. Hand the records to the issuer

Once an event is marked it stays marked. A failed email is logged for manual
follow-up and never retried, so a replayed event can never issue a second set
of keys.
"""
import uuid
from dataclasses import dataclass, field
from typing import Callable, List

import structlog

from license_bridge.monitoring.metrics import metrics

from .dedup import EventStore
from .errors import DeliveryError, MissingPayerEmail
from .issuer import LicenseIssuer
from .models import (
    LicenseRecord,
    LicenseType,
    PaymentEvent,
    Provider,
    PurchasedItem,
    dedup_key,
)

logger = structlog.get_logger(__name__)

TierPolicy = Callable[[str], LicenseType]


def infer_tier(name: str) -> LicenseType:
    """Map a free-text item name to a license tier."""
    if "enterprise" in name.lower():
        return LicenseType.ENTERPRISE
    return LicenseType.COMMERCIAL


def project_name(name: str) -> str:
    """``"Tool - Enterprise License"`` -> ``"Tool"``."""
    return name.split(" - ")[0].strip() or name


@dataclass
class FulfillmentOutcome:
    """Result of processing one payment event."""

    event_id: str
    duplicate: bool = False
    records: List[LicenseRecord] = field(default_factory=list)
    delivered: bool = False


class FulfillmentEngine:
    """
    Converts payment events into license records and a delivery attempt.

    Provider-agnostic: adapters build the ``PaymentEvent``, this class never
    looks at provider payloads.
    """

    def __init__(
        self,
        event_store: EventStore,
        issuer: LicenseIssuer,
        tier_policy: TierPolicy = infer_tier,
    ):
        self.event_store = event_store
        self.issuer = issuer
        self.tier_policy = tier_policy

    def admit(self, provider: Provider, event_id: str) -> bool:
        """
        Consume an event id.

        Returns:
            bool: False when the event was seen before
        """
        if self.event_store.should_process(dedup_key(provider, event_id)):
            return True
        logger.info("duplicate_payment_event", event_id=event_id, provider=provider.value)
        metrics.record_duplicate(provider.value)
        return False

    async def process(self, event: PaymentEvent) -> FulfillmentOutcome:
        """
        Fulfill an event unless it was already consumed.

        Returns:
            FulfillmentOutcome: ``duplicate=True`` when the event was seen before
        """
        if not self.admit(event.provider, event.event_id):
            return FulfillmentOutcome(event_id=event.event_id, duplicate=True)

        outcome = FulfillmentOutcome(event_id=event.event_id)
        outcome.records = await self._fulfill(event, outcome)
        return outcome

    async def fulfill(self, event: PaymentEvent) -> List[LicenseRecord]:
        """
        Issue licenses for an event the caller has already admitted.

        Raises:
            MissingPayerEmail: If the event has no usable payer email
        """
        return await self._fulfill(event, FulfillmentOutcome(event_id=event.event_id))

    def derive_record(self, item: PurchasedItem) -> LicenseRecord:
        tier = item.license_type or self.tier_policy(item.name)
        return LicenseRecord(
            project=project_name(item.name),
            license_type=tier,
            license_key=uuid.uuid4(),
        )

    async def _fulfill(
        self, event: PaymentEvent, outcome: FulfillmentOutcome
    ) -> List[LicenseRecord]:
        payer_email = (event.payer_email or "").strip()
        if not payer_email:
            logger.error(
                "payment_event_missing_email",
                event_id=event.event_id,
                provider=event.provider.value,
            )
            raise MissingPayerEmail(event.event_id)

        records = [self.derive_record(item) for item in event.items]
        if not records:
            logger.warning(
                "payment_event_without_items",
                event_id=event.event_id,
                provider=event.provider.value,
            )
            return records

        for record in records:
            metrics.record_license_issued(event.provider.value, record.license_type.value)

        try:
            await self.issuer.deliver(payer_email, records)
            outcome.delivered = True
        except DeliveryError as e:
            # Event stays consumed; recovery is manual.
            metrics.record_delivery_failure(event.provider.value)
            logger.error(
                "license_delivery_failed",
                event_id=event.event_id,
                provider=event.provider.value,
                email=payer_email,
                error=str(e),
            )
        else:
            logger.info(
                "payment_fulfilled",
                event_id=event.event_id,
                provider=event.provider.value,
                email=payer_email,
                licenses=len(records),
            )

        return records
