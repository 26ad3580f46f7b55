"""Pricing resolver contract. Tier tables live outside this service."""

from __future__ import annotations

from typing import Optional, Protocol

from printshop.schemas.orders import LineItemCreate


class PricingResolver(Protocol):
    def __call__(
        self, format: str, price_type: str, quantity: float, density: Optional[float]
    ) -> float:
        ...


# PUBLIC_INTERFACE
def resolve_unit_price(item: LineItemCreate, resolver: Optional[PricingResolver]) -> float:
    """
    Unit price for a new line item.

    An explicit price on the item wins; otherwise the resolver is asked when the
    item carries pricing inputs. Items with neither are priced at 0.
    """
    if item.price is not None:
        return float(item.price)
    if item.pricing is not None and resolver is not None:
        return float(
            resolver(item.pricing.format, item.pricing.price_type, item.quantity, item.pricing.density)
        )
    return 0.0
