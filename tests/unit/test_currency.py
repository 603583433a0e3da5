"""
Tests for the ISO 4217 registry and Currency value object.

Minor-unit precision comes from the registry, never from a fixed
tolerance: SAR has two decimal places, KWD three, JPY none.
"""

import pytest

from waqf_kernel.domain.currency import CurrencyRegistry
from waqf_kernel.domain.values import Currency
from waqf_kernel.exceptions import InvalidCurrencyError


class TestCurrencyRegistry:
    def test_gulf_currencies_registered(self):
        for code in ("SAR", "AED", "QAR", "KWD", "BHD", "OMR"):
            assert CurrencyRegistry.is_valid(code)

    def test_unknown_codes_rejected(self):
        for code in ("XXY", "ABC", "", "SA", "SARR"):
            assert not CurrencyRegistry.is_valid(code)

    @pytest.mark.parametrize("code, places", [("SAR", 2), ("KWD", 3), ("JPY", 0)])
    def test_decimal_places(self, code, places):
        assert CurrencyRegistry.get_decimal_places(code) == places

    def test_info_minor_per_major(self):
        assert CurrencyRegistry.get_info("BHD").minor_per_major == 1000

    def test_unknown_info_is_none(self):
        assert CurrencyRegistry.get_info("XYZ") is None


class TestCurrency:
    def test_lowercase_normalized(self):
        assert Currency("sar").code == "SAR"

    def test_whitespace_trimmed(self):
        assert Currency(" SAR ").code == "SAR"

    def test_invalid_code_raises(self):
        with pytest.raises(InvalidCurrencyError):
            Currency("ZZZ")

    def test_non_string_raises(self):
        with pytest.raises(InvalidCurrencyError):
            Currency(840)

    def test_hashable_and_equal(self):
        assert {Currency("SAR"), Currency("sar")} == {Currency("SAR")}

    def test_minor_per_major(self):
        assert Currency("SAR").minor_per_major == 100
        assert Currency("JPY").minor_per_major == 1
