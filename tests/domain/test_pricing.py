"""Tests for the price model."""

from decimal import Decimal

import pytest

from shopcore.domain.exceptions import InvalidPriceInputError
from shopcore.domain.pricing import (
    PricedKind,
    compute_cost,
    compute_price,
    line_tax,
    quote_price,
)


class TestComputeCost:
    """Tests for landed cost."""

    def test_cost_adds_tax_and_shipping(self):
        """raw + raw * tax / 100 + shipping."""
        assert compute_cost(Decimal("100"), Decimal("8"), Decimal("5")) == Decimal("113")

    def test_fractional_tax(self):
        assert compute_cost(Decimal("19.99"), Decimal("8.25"), 0) == Decimal("19.99") + Decimal(
            "19.99"
        ) * Decimal("8.25") / 100

    def test_services_cost_is_raw_only(self):
        cost = compute_cost(Decimal("50"), Decimal("10"), Decimal("7"), kind=PricedKind.SERVICES)
        assert cost == Decimal("50")

    @pytest.mark.parametrize("field", ["raw", "tax_percent", "shipping"])
    def test_negative_input_rejected(self, field):
        kwargs = {"raw": Decimal("10"), "tax_percent": 0, "shipping": 0}
        kwargs[field] = Decimal("-1")

        with pytest.raises(InvalidPriceInputError) as exc_info:
            compute_cost(**kwargs)

        assert exc_info.value.details["field"] == field


class TestComputePrice:
    """Tests for selling price per kind."""

    def test_products_apply_markup_percent(self):
        assert compute_price(Decimal("100"), PricedKind.PRODUCTS, Decimal("20")) == Decimal("120")

    def test_repair_adds_labour(self):
        assert compute_price(Decimal("40"), PricedKind.REPAIR, Decimal("35")) == Decimal("75")

    def test_services_add_fee(self):
        assert compute_price(Decimal("50"), PricedKind.SERVICES, Decimal("15")) == Decimal("65")

    def test_zero_amount_keeps_cost(self):
        assert compute_price(Decimal("12.50"), PricedKind.PRODUCTS) == Decimal("12.50")

    def test_negative_cost_rejected(self):
        with pytest.raises(InvalidPriceInputError):
            compute_price(Decimal("-1"), PricedKind.REPAIR, 10)

    def test_negative_markup_rejected(self):
        with pytest.raises(InvalidPriceInputError):
            compute_price(Decimal("10"), PricedKind.PRODUCTS, Decimal("-5"))


class TestQuotePrice:
    """Tests for the combined estimate."""

    def test_product_quote(self):
        price = quote_price(
            PricedKind.PRODUCTS,
            raw=Decimal("100"),
            tax_percent=Decimal("10"),
            shipping=Decimal("10"),
            markup=Decimal("50"),
            labour=Decimal("999"),
        )
        # cost 120, +50% markup; labour is ignored for products
        assert price == Decimal("180")

    def test_repair_quote(self):
        price = quote_price(
            PricedKind.REPAIR, raw=Decimal("30"), shipping=Decimal("5"), labour=Decimal("45")
        )
        assert price == Decimal("80")

    def test_service_quote_ignores_tax_and_shipping(self):
        price = quote_price(
            PricedKind.SERVICES,
            raw=Decimal("60"),
            tax_percent=Decimal("8"),
            shipping=Decimal("10"),
            fee=Decimal("20"),
        )
        assert price == Decimal("80")


def test_line_tax():
    assert line_tax(Decimal("40"), Decimal("8")) == Decimal("3.2")
