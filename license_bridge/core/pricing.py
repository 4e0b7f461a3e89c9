"""
Server-side price authority and cart validation.

Amounts are always resolved here, in minor currency units. Whatever price a
client sends along with its cart is ignored.
"""
import re
from typing import Any, Iterable, List, Mapping, Optional, Union

import structlog

from .errors import EmptyCart, InvalidSku, MissingField
from .models import CartItem, PricedItem

logger = structlog.get_logger(__name__)

# Minor units (USD cents)
DEFAULT_PRICE_MAP: Mapping[str, int] = {
    "workflow-yaml-fixer-pro-commercial": 499,
    "workflow-yaml-fixer-pro-enterprise": 999,
    "default-commercial": 299,
    "default-enterprise": 799,
}

_WHITESPACE = re.compile(r"\s+")


def make_sku(name: str, license_type: str) -> str:
    """Lowercase the name, dash out whitespace runs and append the tier."""
    return f"{_WHITESPACE.sub('-', name.lower())}-{license_type}"


class PriceAuthority:
    """Single source of truth for amounts."""

    def __init__(self, price_map: Optional[Mapping[str, int]] = None):
        self._prices = dict(DEFAULT_PRICE_MAP if price_map is None else price_map)

    def resolve_price(self, sku: str, license_type: str) -> int:
        """
        Resolve the price for a SKU.

        Exact SKU first, then ``default-<license_type>``.

        Raises:
            InvalidSku: If neither entry exists
        """
        price = self._prices.get(sku) or self._prices.get(f"default-{license_type}")
        if not price:
            raise InvalidSku(sku)
        return price


class CartValidator:
    """Turns an untrusted cart into priced, SKU-tagged items."""

    def __init__(self, price_authority: Optional[PriceAuthority] = None):
        self.price_authority = price_authority or PriceAuthority()

    def validate(
        self, items: Optional[Iterable[Union[CartItem, Mapping[str, Any]]]]
    ) -> List[PricedItem]:
        """
        Validate and price a cart.

        Args:
            items: Cart items as dicts or CartItem models

        Returns:
            List[PricedItem]: Priced items in input order

        Raises:
            EmptyCart: If items is missing or empty
            MissingField: If an item lacks name or licenseType
            InvalidSku: If an item cannot be priced
        """
        if items is None or isinstance(items, (str, bytes, Mapping)):
            raise EmptyCart()
        cart = [self._coerce(item) for item in items]
        if not cart:
            raise EmptyCart()

        priced: List[PricedItem] = []
        for item in cart:
            if not item.name or not item.license_type:
                raise MissingField()
            sku = make_sku(item.name, item.license_type)
            price = self.price_authority.resolve_price(sku, item.license_type)
            priced.append(
                PricedItem(
                    name=item.name,
                    license_type=item.license_type,
                    price_minor_units=price,
                    sku=sku,
                )
            )

        logger.debug("cart_validated", skus=[p.sku for p in priced])
        return priced

    @staticmethod
    def _coerce(item: Union[CartItem, Mapping[str, Any]]) -> CartItem:
        if isinstance(item, CartItem):
            return item
        if not isinstance(item, Mapping):
            raise MissingField()
        name = item.get("name")
        license_type = item.get("licenseType", item.get("license_type"))
        return CartItem(
            name=name if isinstance(name, str) else None,
            licenseType=license_type if isinstance(license_type, str) else None,
        )
