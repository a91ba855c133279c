"""Tests for cpnet.core.money -- decimals, currencies, Money."""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given

from cpnet.core.money import (
    Money,
    NonEmptyStr,
    NonNegativeDecimal,
    PositiveDecimal,
    minor_units,
    validate_currency,
)
from cpnet.core.result import Err, Ok, unwrap
from conftest import money_amounts


class TestRefinedTypes:
    def test_positive_rejects_zero(self) -> None:
        assert isinstance(PositiveDecimal.parse(Decimal("0")), Err)

    def test_positive_rejects_nan(self) -> None:
        assert isinstance(PositiveDecimal.parse(Decimal("NaN")), Err)

    def test_non_negative_accepts_zero(self) -> None:
        assert unwrap(NonNegativeDecimal.parse(Decimal("0"))).value == 0

    def test_non_negative_rejects_negative(self) -> None:
        assert isinstance(NonNegativeDecimal.parse(Decimal("-0.01")), Err)

    def test_constructor_enforces_invariant(self) -> None:
        with pytest.raises(TypeError):
            PositiveDecimal(value=Decimal("-1"))

    def test_non_empty_str(self) -> None:
        assert isinstance(NonEmptyStr.parse(""), Err)
        assert isinstance(NonEmptyStr.parse("USD"), Ok)


class TestCurrencies:
    def test_known_codes(self) -> None:
        assert validate_currency("USD")
        assert validate_currency("JPY")
        assert not validate_currency("XXQ")

    def test_minor_units(self) -> None:
        assert minor_units("USD") == 2
        assert minor_units("JPY") == 0


class TestMoney:
    def test_add_same_currency(self) -> None:
        total = unwrap(Money.of("1.10", "USD").add(Money.of("2.20", "USD")))
        assert total == Money.of("3.30", "USD")

    def test_add_currency_mismatch(self) -> None:
        assert isinstance(Money.of("1", "USD").add(Money.of("1", "EUR")), Err)

    def test_round_half_even_to_cents(self) -> None:
        assert Money.of("0.125", "USD").round_to_minor_unit().amount == Decimal("0.12")
        assert Money.of("0.135", "USD").round_to_minor_unit().amount == Decimal("0.14")

    def test_round_jpy_to_units(self) -> None:
        assert Money.of("100.5", "JPY").round_to_minor_unit().amount == Decimal("100")

    def test_str(self) -> None:
        assert str(Money.of("950000.00", "USD")) == "950000.00 USD"

    @given(money_amounts(), money_amounts())
    def test_sub_inverts_add(self, a: Decimal, b: Decimal) -> None:
        x, y = Money.of(a, "USD"), Money.of(b, "USD")
        assert unwrap(unwrap(x.add(y)).sub(y)) == x
