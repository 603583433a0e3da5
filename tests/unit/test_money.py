"""
Unit tests for Money and exact arithmetic.

Verifies:
- Minor-unit construction and float prohibition
- Rounding modes of percentage_of / multiply_by_fraction
- Largest-remainder allocation: conservation and deterministic tie-break
- Currency mismatch protection
"""

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_UP, Decimal
from fractions import Fraction

import pytest

from waqf_kernel.domain.values import Currency, Money, round_ratio, to_fraction
from waqf_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError


class TestMoneyConstruction:
    """Money is an integer count of minor units."""

    def test_of_converts_major_to_minor(self):
        assert Money.of("1000.50", "SAR").minor_units == 100050

    def test_of_three_decimal_currency(self):
        assert Money.of("1.234", "KWD").minor_units == 1234

    def test_of_zero_decimal_currency(self):
        assert Money.of("1500", "JPY").minor_units == 1500

    def test_of_rejects_excess_precision(self):
        with pytest.raises(ValueError, match="more precision"):
            Money.of("10.005", "SAR")

    def test_of_rejects_float(self):
        with pytest.raises(TypeError):
            Money.of(10.5, "SAR")

    def test_minor_units_must_be_int(self):
        with pytest.raises(TypeError):
            Money(Decimal("100"), Currency("SAR"))

    def test_bool_is_not_an_amount(self):
        with pytest.raises(TypeError):
            Money(True, Currency("SAR"))

    def test_currency_string_is_normalized(self):
        assert Money(100, "sar").currency == Currency("SAR")

    def test_unknown_currency_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            Money.of("1", "XYZ")

    def test_amount_view_is_exact(self):
        assert Money(100050, "SAR").amount == Decimal("1000.50")

    def test_str(self):
        assert str(Money.of("12.30", "SAR")) == "12.30 SAR"


class TestMoneyArithmetic:
    def test_add_and_subtract(self):
        a = Money.of("10.00", "SAR")
        b = Money.of("2.50", "SAR")
        assert a + b == Money.of("12.50", "SAR")
        assert a - b == Money.of("7.50", "SAR")

    def test_mixed_currency_rejected(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "SAR") + Money.of("1", "USD")

    def test_comparison_requires_same_currency(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "SAR") < Money.of("2", "USD")

    def test_total_of_empty_is_zero(self):
        assert Money.total([], "SAR") == Money.zero("SAR")

    def test_sign_properties(self):
        assert Money(0, "SAR").is_zero
        assert Money(1, "SAR").is_positive
        assert (-Money(1, "SAR")).is_negative


class TestRounding:
    """Rounding happens only where a mode is named."""

    @pytest.mark.parametrize(
        "num, den, mode, expected",
        [
            (5, 2, ROUND_HALF_UP, 3),
            (5, 2, ROUND_HALF_EVEN, 2),
            (7, 2, ROUND_HALF_EVEN, 4),
            (9, 4, ROUND_DOWN, 2),
            (9, 4, ROUND_UP, 3),
            (-5, 2, ROUND_HALF_UP, -3),
            (-9, 4, ROUND_DOWN, -2),
        ],
    )
    def test_round_ratio(self, num, den, mode, expected):
        assert round_ratio(num, den, mode) == expected

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            round_ratio(1, 3, "ROUND_SIDEWAYS")

    def test_percentage_of_rounds_down_when_asked(self):
        # 10% of 0.99 SAR is 9.9 halalas
        assert Money(99, "SAR").percentage_of(Decimal("10"), ROUND_DOWN).minor_units == 9

    def test_percentage_of_half_up_default(self):
        assert Money(105, "SAR").percentage_of(Decimal("10")).minor_units == 11

    def test_multiply_by_fraction(self):
        assert Money(1000, "SAR").multiply_by_fraction(Fraction(1, 8)).minor_units == 125

    def test_to_fraction_rejects_float(self):
        with pytest.raises(TypeError):
            to_fraction(0.1)

    def test_to_fraction_parses_ratio_strings(self):
        assert to_fraction("1/8") == Fraction(1, 8)
        assert to_fraction("12.5") == Fraction(25, 2)


class TestAllocateProportionally:
    """Largest remainder: parts always sum to the whole."""

    def test_even_split(self):
        parts = Money(300, "SAR").allocate_proportionally([1, 1, 1])
        assert [p.minor_units for p in parts] == [100, 100, 100]

    def test_remainder_goes_to_largest_fractions(self):
        # 100 * 1/3 = 33.33 each; one halala left over
        parts = Money(100, "SAR").allocate_proportionally([1, 1, 1])
        assert sum(p.minor_units for p in parts) == 100
        assert [p.minor_units for p in parts] == [34, 33, 33]

    def test_tie_break_by_ascending_key(self):
        parts = Money(100, "SAR").allocate_proportionally(
            [1, 1, 1], keys=["c", "a", "b"]
        )
        # "a" has the smallest key and receives the extra unit
        assert [p.minor_units for p in parts] == [33, 34, 33]

    def test_weights_may_be_fractions_and_decimals(self):
        parts = Money(1000, "SAR").allocate_proportionally(
            [Fraction(1, 3), Decimal("0.5"), "1/6"]
        )
        assert [p.minor_units for p in parts] == [333, 500, 167]

    def test_zero_weight_receives_nothing(self):
        parts = Money(10, "SAR").allocate_proportionally([0, 1])
        assert [p.minor_units for p in parts] == [0, 10]

    def test_all_zero_weights_rejected(self):
        with pytest.raises(ValueError):
            Money(10, "SAR").allocate_proportionally([0, 0])

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            Money(10, "SAR").allocate_proportionally([1, -1])

    def test_float_weight_rejected(self):
        with pytest.raises(TypeError):
            Money(10, "SAR").allocate_proportionally([0.5, 0.5])

    def test_empty_weights_rejected(self):
        with pytest.raises(ValueError):
            Money(10, "SAR").allocate_proportionally([])

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            Money(-10, "SAR").allocate_proportionally([1])

    def test_key_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            Money(10, "SAR").allocate_proportionally([1, 1], keys=["a"])

    def test_zero_amount_allocates_zeros(self):
        parts = Money(0, "SAR").allocate_proportionally([1, 2])
        assert all(p.is_zero for p in parts)
