"""Price model for catalog items, repairs and services.

Pure functions over Decimal amounts. Cost is the raw amount plus tax and
inbound shipping; price adds the markup, labour or fee that applies to
the item kind. Negative inputs are caller errors and are rejected rather
than clamped.
"""

from decimal import Decimal
from enum import Enum

from shopcore.domain.exceptions import InvalidPriceInputError


class PricedKind(str, Enum):
    """Kinds of sellable work the price model knows how to price."""

    PRODUCTS = "products"
    REPAIR = "repair"
    SERVICES = "services"


def _require_non_negative(field_name: str, value: Decimal | int) -> Decimal:
    amount = Decimal(value)
    if amount < 0:
        raise InvalidPriceInputError(field_name, value)
    return amount


def compute_cost(
    raw: Decimal | int,
    tax_percent: Decimal | int = 0,
    shipping: Decimal | int = 0,
    kind: PricedKind | None = None,
) -> Decimal:
    """Compute the landed cost of an item.

    ``raw + raw * tax_percent / 100 + shipping``. Services carry no
    goods, so their cost is the raw amount alone.

    Args:
        raw: Raw material or service cost.
        tax_percent: Tax percentage paid on the raw cost.
        shipping: Inbound shipping cost.
        kind: Item kind; only SERVICES changes the formula.

    Raises:
        InvalidPriceInputError: If any input is negative.
    """
    raw_amount = _require_non_negative("raw", raw)
    tax = _require_non_negative("tax_percent", tax_percent)
    ship = _require_non_negative("shipping", shipping)

    if kind is PricedKind.SERVICES:
        return raw_amount
    return raw_amount + raw_amount * tax / 100 + ship


def compute_price(cost: Decimal | int, kind: PricedKind, amount: Decimal | int = 0) -> Decimal:
    """Compute the selling price from a cost.

    ``amount`` means the service fee for SERVICES, the markup percent for
    PRODUCTS and the labour charge for REPAIR.

    Raises:
        InvalidPriceInputError: If cost or amount is negative.
    """
    base = _require_non_negative("cost", cost)

    if kind is PricedKind.SERVICES:
        return base + _require_non_negative("fee", amount)
    if kind is PricedKind.PRODUCTS:
        return base + base * _require_non_negative("markup", amount) / 100
    if kind is PricedKind.REPAIR:
        return base + _require_non_negative("labour", amount)
    raise ValueError(f"Unknown priced kind: {kind!r}")


def quote_price(
    kind: PricedKind,
    raw: Decimal | int,
    tax_percent: Decimal | int = 0,
    shipping: Decimal | int = 0,
    labour: Decimal | int = 0,
    markup: Decimal | int = 0,
    fee: Decimal | int = 0,
) -> Decimal:
    """Estimate the selling price of an item from its raw inputs.

    Used by the price checker and repair quotes; only the amount that
    applies to ``kind`` is read.
    """
    cost = compute_cost(raw, tax_percent, shipping, kind=kind)
    amount = {
        PricedKind.SERVICES: fee,
        PricedKind.PRODUCTS: markup,
        PricedKind.REPAIR: labour,
    }[kind]
    return compute_price(cost, kind, amount)


def line_tax(line_total: Decimal, tax_percent: Decimal | int) -> Decimal:
    """Tax owed on a line total at ``tax_percent``."""
    return _require_non_negative("line_total", line_total) * _require_non_negative(
        "tax_percent", tax_percent
    ) / 100
