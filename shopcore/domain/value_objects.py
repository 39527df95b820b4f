"""Value objects for the domain layer.

Value objects are immutable and interchangeable when their values are
equal: typed identifiers, money and the payment confirmation handed to
checkout.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Self
from uuid import UUID, uuid4

from shopcore.domain.base import ValueObject
from shopcore.domain.exceptions import CurrencyMismatchError, NegativeMoneyError

CENT = Decimal("0.01")


# ============================================================================
# Typed Identifiers
# ============================================================================


@dataclass(frozen=True)
class _UuidId(ValueObject):
    """UUID-backed identifier shared by carts, lines and orders."""

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        """Generate a new random identifier."""
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Parse an identifier from its string form.

        Raises:
            ValueError: If value is not a valid UUID.
        """
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CartId(_UuidId):
    """Strongly-typed cart identifier."""


@dataclass(frozen=True)
class LineId(_UuidId):
    """Identifier of a line inside a cart; carried over to the order line."""


@dataclass(frozen=True)
class OrderId(_UuidId):
    """Strongly-typed order identifier."""


@dataclass(frozen=True)
class AdjustmentId(_UuidId):
    """Identifier of a stock ledger row."""


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Monetary value stored in cents to avoid float rounding.

    Attributes:
        amount_cents: Amount in smallest currency unit, never negative.
        currency: ISO 4217 currency code.
    """

    amount_cents: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = "USD") -> Self:
        """Create a zero amount."""
        return cls(amount_cents=0, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal, currency: str = "USD") -> Self:
        """Create money from an amount in major units, rounding half up.

        Args:
            amount: Decimal amount (e.g., dollars).
            currency: Currency code.

        Returns:
            Money instance.
        """
        cents = int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_cents=cents, currency=currency)

    @classmethod
    def from_float(cls, amount: float, currency: str = "USD") -> Self:
        """Create money from a float. Prefer from_decimal."""
        return cls.from_decimal(Decimal(str(amount)), currency)

    def to_decimal(self) -> Decimal:
        """Amount in major units, two decimal places."""
        return (Decimal(self.amount_cents) / 100).quantize(CENT)

    def percent(self, percent: Decimal | int) -> "Money":
        """Return ``percent`` percent of this amount, rounded half up to the cent."""
        cents = (Decimal(self.amount_cents) * Decimal(percent) / 100).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return Money(amount_cents=int(cents), currency=self.currency)

    def __add__(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents + other.amount_cents,
            currency=self.currency,
        )

    def __sub__(self, other: "Money") -> "Money":
        """Subtract money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
            NegativeMoneyError: If the result would be negative.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents - other.amount_cents,
            currency=self.currency,
        )

    def __mul__(self, quantity: int) -> "Money":
        return Money(
            amount_cents=self.amount_cents * quantity,
            currency=self.currency,
        )

    def __rmul__(self, quantity: int) -> "Money":
        return self.__mul__(quantity)

    def __str__(self) -> str:
        symbol = {"USD": "$", "EUR": "€", "GBP": "£"}.get(self.currency, "")
        return f"{symbol}{self.to_decimal():.2f} {self.currency}"

    def is_zero(self) -> bool:
        return self.amount_cents == 0


# ============================================================================
# Payment Confirmation
# ============================================================================


@dataclass(frozen=True)
class PaymentConfirmation(ValueObject):
    """Opaque proof from the payment gateway that funds were captured.

    The checkout core never talks to the gateway; it only refuses to
    commit without a captured confirmation and keys idempotent retries
    on ``payment_id``.

    Attributes:
        payment_id: Gateway payment identifier.
        captured: Whether the gateway reported the funds as captured.
        method: Payment method label (card, cash, ...), informational.
    """

    payment_id: str
    captured: bool = True
    method: str | None = None

    @property
    def is_valid(self) -> bool:
        return bool(self.payment_id and self.payment_id.strip()) and self.captured
