"""
Ordered field extraction from provider payloads.

Provider JSON carries some values in more than one place. Each location is a
named strategy; strategies run in order and the first non-empty string wins.
"""
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

Strategy = Tuple[str, Callable[[Mapping[str, Any]], Any]]


def first_present(payload: Mapping[str, Any], strategies: Sequence[Strategy]) -> Optional[str]:
    """Return the first non-blank string produced by ``strategies``."""
    for _name, strategy in strategies:
        try:
            value = strategy(payload)
        except (KeyError, IndexError, TypeError, AttributeError):
            continue
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _dig(payload: Any, *path: Any) -> Any:
    node = payload
    for key in path:
        if node is None:
            return None
        node = node[key]
    return node


STRIPE_SESSION_EMAIL: Sequence[Strategy] = (
    ("customer_email", lambda session: _dig(session, "customer_email")),
    ("customer_details.email", lambda session: _dig(session, "customer_details", "email")),
)

PAYPAL_CAPTURE_EMAIL: Sequence[Strategy] = (
    ("payer.email_address", lambda result: _dig(result, "payer", "email_address")),
    (
        "purchase_units[0].payee.email_address",
        lambda result: _dig(result, "purchase_units", 0, "payee", "email_address"),
    ),
)
