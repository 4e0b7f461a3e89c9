"""
Unit tests for the fulfillment engine.
"""
import uuid

import pytest

from license_bridge.core.dedup import InMemoryEventStore
from license_bridge.core.errors import MissingPayerEmail
from license_bridge.core.fulfillment import FulfillmentEngine, infer_tier, project_name
from license_bridge.core.issuer import LicenseIssuer
from license_bridge.core.models import LicenseType, PaymentEvent, Provider, PurchasedItem


def make_event(
    event_id: str = "5O190127TN364715T",
    provider: Provider = Provider.PAYPAL,
    email: str = "buyer@example.com",
    names: tuple = ("Workflow Fixer Pro - Enterprise",),
) -> PaymentEvent:
    return PaymentEvent(
        event_id=event_id,
        provider=provider,
        payer_email=email,
        items=tuple(PurchasedItem(name=name) for name in names),
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    "name,expected",
    [
        ("Workflow Fixer Pro - Enterprise", LicenseType.ENTERPRISE),
        ("Workflow Fixer Pro - enterprise License", LicenseType.ENTERPRISE),
        ("Workflow Fixer Pro - Commercial License", LicenseType.COMMERCIAL),
        ("Workflow Fixer Pro", LicenseType.COMMERCIAL),
    ],
)
def test_infer_tier(name: str, expected: LicenseType) -> None:
    assert infer_tier(name) is expected


@pytest.mark.unit
def test_project_name_strips_license_suffix() -> None:
    assert project_name("Workflow Yaml Fixer Pro - Commercial License") == "Workflow Yaml Fixer Pro"
    assert project_name("Standalone") == "Standalone"


class TestFulfillmentEngine:
    """Test suite for FulfillmentEngine."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_enterprise_item_yields_one_enterprise_record(self, engine, transport) -> None:
        records = await engine.fulfill(make_event())

        assert len(records) == 1
        record = records[0]
        assert record.project == "Workflow Fixer Pro"
        assert record.license_type is LicenseType.ENTERPRISE
        assert uuid.UUID(str(record.license_key)).version == 4
        assert len(transport.sent) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_keys_are_unique_across_fulfillments(self, engine) -> None:
        first = await engine.fulfill(make_event(event_id="A"))
        second = await engine.fulfill(make_event(event_id="B"))

        assert first[0].license_key != second[0].license_key

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_record_per_item(self, engine, transport) -> None:
        event = make_event(
            names=(
                "Workflow Yaml Fixer Pro - Commercial License",
                "Spiral Toolkit - Enterprise License",
            )
        )

        records = await engine.fulfill(event)

        assert [(r.project, r.license_type) for r in records] == [
            ("Workflow Yaml Fixer Pro", LicenseType.COMMERCIAL),
            ("Spiral Toolkit", LicenseType.ENTERPRISE),
        ]
        assert len({r.license_key for r in records}) == 2
        to, _subject, body = transport.sent[0]
        assert to == "buyer@example.com"
        for record in records:
            assert str(record.license_key) in body

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_structured_tier_beats_inference(self, engine) -> None:
        event = PaymentEvent(
            event_id="evt_1",
            provider=Provider.STRIPE,
            payer_email="buyer@example.com",
            items=(PurchasedItem(name="Enterprise Suite", license_type=LicenseType.COMMERCIAL),),
        )

        records = await engine.fulfill(event)

        assert records[0].license_type is LicenseType.COMMERCIAL

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_custom_tier_policy(self, event_store, transport) -> None:
        engine = FulfillmentEngine(
            event_store, LicenseIssuer(transport), tier_policy=lambda _: LicenseType.ENTERPRISE
        )

        records = await engine.fulfill(make_event(names=("Plain Tool",)))

        assert records[0].license_type is LicenseType.ENTERPRISE

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["", "   "])
    async def test_missing_payer_email(self, engine, transport, email: str) -> None:
        with pytest.raises(MissingPayerEmail, match="5O190127TN364715T"):
            await engine.fulfill(make_event(email=email))
        assert transport.sent == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_items_skips_delivery(self, engine, transport) -> None:
        records = await engine.fulfill(make_event(names=()))

        assert records == []
        assert transport.sent == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_process_suppresses_replays(self, engine, transport) -> None:
        event = make_event()

        first = await engine.process(event)
        second = await engine.process(event)

        assert first.duplicate is False
        assert first.delivered is True
        assert len(first.records) == 1
        assert second.duplicate is True
        assert second.records == []
        assert len(transport.sent) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_id_different_providers_both_fulfill(self, engine, transport) -> None:
        await engine.process(make_event(event_id="X1", provider=Provider.STRIPE))
        await engine.process(make_event(event_id="X1", provider=Provider.PAYPAL))

        assert len(transport.sent) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delivery_failure_still_consumes_event(self, failing_transport) -> None:
        store = InMemoryEventStore()
        engine = FulfillmentEngine(store, LicenseIssuer(failing_transport))
        event = make_event()

        outcome = await engine.process(event)

        assert outcome.duplicate is False
        assert outcome.delivered is False
        assert len(outcome.records) == 1
        assert store.should_process(event.dedup_key) is False

        replay = await engine.process(event)
        assert replay.duplicate is True
        assert failing_transport.attempts == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_email_during_process_keeps_mark(self, engine, event_store) -> None:
        event = make_event(email="")

        with pytest.raises(MissingPayerEmail):
            await engine.process(event)

        assert event_store.has(event.dedup_key)

    @pytest.mark.unit
    def test_admit_consumes_once_per_provider(self, engine, event_store) -> None:
        assert engine.admit(Provider.PAYPAL, "ORDER-9") is True
        assert engine.admit(Provider.PAYPAL, "ORDER-9") is False
        assert engine.admit(Provider.STRIPE, "ORDER-9") is True
        assert event_store.has("paypal:ORDER-9")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_admitted_event_is_not_processed_again(self, engine, transport) -> None:
        event = make_event()
        assert engine.admit(event.provider, event.event_id)

        outcome = await engine.process(event)

        assert outcome.duplicate is True
        assert transport.sent == []
