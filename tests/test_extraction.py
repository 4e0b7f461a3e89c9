"""
Tests for ordered field extraction from provider payloads.
"""
import pytest

from license_bridge.integrations.extraction import (
    PAYPAL_CAPTURE_EMAIL,
    STRIPE_SESSION_EMAIL,
    first_present,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "session,expected",
    [
        ({"customer_email": "a@example.com", "customer_details": {"email": "b@example.com"}}, "a@example.com"),
        ({"customer_email": None, "customer_details": {"email": "b@example.com"}}, "b@example.com"),
        ({"customer_email": "  ", "customer_details": {"email": "b@example.com"}}, "b@example.com"),
        ({"customer_details": {"email": "b@example.com"}}, "b@example.com"),
        ({"customer_email": None, "customer_details": None}, None),
        ({}, None),
    ],
)
def test_stripe_session_email(session: dict, expected: str) -> None:
    assert first_present(session, STRIPE_SESSION_EMAIL) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "result,expected",
    [
        (
            {
                "payer": {"email_address": "payer@example.com"},
                "purchase_units": [{"payee": {"email_address": "payee@example.com"}}],
            },
            "payer@example.com",
        ),
        (
            {"payer": {}, "purchase_units": [{"payee": {"email_address": "payee@example.com"}}]},
            "payee@example.com",
        ),
        ({"purchase_units": []}, None),
        ({"purchase_units": [{"items": []}]}, None),
        ({"payer": "unexpected-shape"}, None),
    ],
)
def test_paypal_capture_email(result: dict, expected: str) -> None:
    assert first_present(result, PAYPAL_CAPTURE_EMAIL) == expected


@pytest.mark.unit
def test_value_is_stripped() -> None:
    assert first_present({"customer_email": " buyer@example.com\n"}, STRIPE_SESSION_EMAIL) == (
        "buyer@example.com"
    )


@pytest.mark.unit
def test_non_string_values_are_skipped() -> None:
    strategies = (
        ("number", lambda payload: payload["n"]),
        ("text", lambda payload: payload["s"]),
    )
    assert first_present({"n": 42, "s": "found"}, strategies) == "found"
