"""Cart discounts.

A cart carries exactly one Discount value. The variants form a tagged
union, so "bundle discount and manual discount at once" cannot be
represented. The DiscountLedger adds the first-writer-wins policy: once a
source is active, other sources are ignored until the ledger is cleared.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union

from shopcore.domain.exceptions import InvalidDiscountError


class DiscountSource(str, Enum):
    """Origin of a cart discount."""

    NONE = "none"
    BUNDLE = "bundle"
    MANUAL = "manual"
    AUTOMATIC = "automatic"


@dataclass(frozen=True)
class NoDiscount:
    """No discount applied."""

    source = DiscountSource.NONE
    percent_off = Decimal("0")

    def describe(self) -> str:
        return "none"


@dataclass(frozen=True)
class BundleDiscount:
    """Discount implied by buying a bundle."""

    bundle_id: str
    percent_off: Decimal
    source = DiscountSource.BUNDLE

    def describe(self) -> str:
        return f"bundle:{self.bundle_id}"


@dataclass(frozen=True)
class ManualDiscount:
    """Discount entered by staff at the counter."""

    percent_off: Decimal
    source = DiscountSource.MANUAL

    def describe(self) -> str:
        return "manual"


@dataclass(frozen=True)
class AutomaticDiscount:
    """Discount applied by a promotion rule."""

    rule: str
    percent_off: Decimal
    source = DiscountSource.AUTOMATIC

    def describe(self) -> str:
        return f"automatic:{self.rule}"


Discount = Union[NoDiscount, BundleDiscount, ManualDiscount, AutomaticDiscount]

NO_DISCOUNT = NoDiscount()


def validate_percent_off(percent_off: Decimal | int | float | str) -> Decimal:
    """Normalize a percentage and check it lies in [0, 100].

    Raises:
        InvalidDiscountError: If the value is not a number in range.
    """
    try:
        value = Decimal(str(percent_off))
    except ArithmeticError as e:
        raise InvalidDiscountError(percent_off) from e
    if not value.is_finite() or value < 0 or value > 100:
        raise InvalidDiscountError(percent_off)
    return value


class DiscountLedger:
    """Holds the single active discount of a cart.

    Every ``apply_*`` call is a no-op when a different source is already
    active and returns the discount that stays in force. Re-applying the
    active source replaces its value. Callers switch sources with
    ``clear()`` first.
    """

    def __init__(self, active: Discount = NO_DISCOUNT) -> None:
        self._active: Discount = active

    @property
    def active(self) -> Discount:
        return self._active

    @property
    def is_active(self) -> bool:
        return not isinstance(self._active, NoDiscount)

    def _apply(self, candidate: Discount) -> Discount:
        if self.is_active and self._active.source is not candidate.source:
            return self._active
        self._active = candidate
        return self._active

    def apply_bundle(self, bundle_id: str, percent_off: Decimal | int | float | str) -> Discount:
        percent = validate_percent_off(percent_off)
        return self._apply(BundleDiscount(bundle_id=bundle_id, percent_off=percent))

    def apply_manual(self, percent_off: Decimal | int | float | str) -> Discount:
        percent = validate_percent_off(percent_off)
        return self._apply(ManualDiscount(percent_off=percent))

    def apply_automatic(self, rule: str, percent_off: Decimal | int | float | str) -> Discount:
        percent = validate_percent_off(percent_off)
        return self._apply(AutomaticDiscount(rule=rule, percent_off=percent))

    def clear(self) -> Discount:
        """Drop the active discount and return the one that was removed."""
        previous = self._active
        self._active = NO_DISCOUNT
        return previous
