"""Money, Decimal context, and refined numeric/string types.

Cash arithmetic uses CPNET_DECIMAL_CONTEXT: prec=28, ROUND_HALF_EVEN,
traps for InvalidOperation/DivisionByZero/Overflow. Settled amounts are
quantised to the currency's ISO 4217 minor unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN as _ROUND_HALF_EVEN
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import final

from cpnet.core.result import Err, Ok

CPNET_DECIMAL_CONTEXT = Context(
    prec=28,
    rounding=_ROUND_HALF_EVEN,
    Emin=-999999,
    Emax=999999,
    capitals=1,
    clamp=0,
    flags=[],
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


@final
@dataclass(frozen=True, slots=True)
class PositiveDecimal:
    """Decimal constrained to be > 0."""

    value: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal) or not self.value.is_finite() or self.value <= 0:
            raise TypeError(f"PositiveDecimal requires finite Decimal > 0, got {self.value!r}")

    @staticmethod
    def parse(raw: Decimal) -> Ok[PositiveDecimal] | Err[str]:
        if not isinstance(raw, Decimal):
            return Err(f"PositiveDecimal requires Decimal, got {type(raw).__name__}")
        if not raw.is_finite():
            return Err(f"PositiveDecimal requires finite value, got {raw}")
        if raw <= 0:
            return Err(f"PositiveDecimal requires > 0, got {raw}")
        return Ok(PositiveDecimal(value=raw))


@final
@dataclass(frozen=True, slots=True)
class NonNegativeDecimal:
    """Decimal constrained to be >= 0."""

    value: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal) or not self.value.is_finite() or self.value < 0:
            raise TypeError(f"NonNegativeDecimal requires finite Decimal >= 0, got {self.value!r}")

    @staticmethod
    def parse(raw: Decimal) -> Ok[NonNegativeDecimal] | Err[str]:
        if not isinstance(raw, Decimal):
            return Err(f"NonNegativeDecimal requires Decimal, got {type(raw).__name__}")
        if not raw.is_finite():
            return Err(f"NonNegativeDecimal requires finite value, got {raw}")
        if raw < 0:
            return Err(f"NonNegativeDecimal requires >= 0, got {raw}")
        return Ok(NonNegativeDecimal(value=raw))


@final
@dataclass(frozen=True, slots=True)
class NonEmptyStr:
    """String constrained to be non-empty."""

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise TypeError("NonEmptyStr requires non-empty string")

    @staticmethod
    def parse(raw: str) -> Ok[NonEmptyStr] | Err[str]:
        if not raw:
            return Err("NonEmptyStr requires non-empty string")
        return Ok(NonEmptyStr(value=raw))


_ISO4217_MINOR_UNITS: dict[str, int] = {
    "USD": 2, "EUR": 2, "GBP": 2, "CHF": 2, "CAD": 2, "AUD": 2, "SEK": 2,
    "HKD": 2, "SGD": 2, "NZD": 2, "NOK": 2, "DKK": 2,
    "JPY": 0, "KRW": 0,
    "BHD": 3, "KWD": 3, "OMR": 3,
}

VALID_CURRENCIES: frozenset[str] = frozenset(_ISO4217_MINOR_UNITS)


def validate_currency(code: str) -> bool:
    """Check if a currency code is in the known set."""
    return code in VALID_CURRENCIES


def minor_units(currency: str) -> int:
    return _ISO4217_MINOR_UNITS.get(currency, 2)


@final
@dataclass(frozen=True, slots=True)
class Money:
    """Immutable monetary amount with currency."""

    amount: Decimal
    currency: NonEmptyStr

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal) or not self.amount.is_finite():
            raise TypeError(f"Money.amount must be finite Decimal, got {self.amount!r}")

    @staticmethod
    def create(amount: Decimal, currency: str) -> Ok[Money] | Err[str]:
        if not isinstance(amount, Decimal):
            return Err(f"Money.amount must be Decimal, got {type(amount).__name__}")
        if not amount.is_finite():
            return Err(f"Money.amount must be finite, got {amount}")
        match NonEmptyStr.parse(currency):
            case Err(e):
                return Err(f"Money.currency: {e}")
            case Ok(c):
                return Ok(Money(amount=amount, currency=c))

    @staticmethod
    def of(amount: Decimal | str | int, currency: str) -> Money:
        """Trusted constructor for literals. Raises TypeError on bad input."""
        return Money(amount=Decimal(amount), currency=NonEmptyStr(value=currency))

    def add(self, other: Money) -> Ok[Money] | Err[str]:
        if self.currency != other.currency:
            return Err(f"Currency mismatch: {self.currency.value} vs {other.currency.value}")
        with localcontext(CPNET_DECIMAL_CONTEXT):
            return Ok(Money(amount=self.amount + other.amount, currency=self.currency))

    def sub(self, other: Money) -> Ok[Money] | Err[str]:
        if self.currency != other.currency:
            return Err(f"Currency mismatch: {self.currency.value} vs {other.currency.value}")
        with localcontext(CPNET_DECIMAL_CONTEXT):
            return Ok(Money(amount=self.amount - other.amount, currency=self.currency))

    def mul(self, factor: Decimal) -> Money:
        with localcontext(CPNET_DECIMAL_CONTEXT):
            return Money(amount=self.amount * factor, currency=self.currency)

    def round_to_minor_unit(self) -> Money:
        """Quantize to the ISO 4217 minor unit (2 places if unknown)."""
        quantizer = Decimal(10) ** -minor_units(self.currency.value)
        with localcontext(CPNET_DECIMAL_CONTEXT):
            rounded = self.amount.quantize(quantizer)
        return Money(amount=rounded, currency=self.currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.value}"
