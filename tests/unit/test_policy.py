"""
Tests for DeductionRates and DistributionPolicy validation.

A policy is validated at construction; an invalid one never exists.
"""

from decimal import Decimal
from fractions import Fraction

import pytest

from waqf_kernel.domain.policy import DeductionRates, DistributionPolicy, PolicyKind
from waqf_kernel.exceptions import PolicyError


class TestDeductionRates:
    def test_defaults_are_zero(self):
        assert DeductionRates().total == Decimal("0")

    def test_strings_become_decimals(self):
        rates = DeductionRates(custodian_pct="10", charity_pct="5.5")
        assert rates.custodian_pct == Decimal("10")
        assert rates.charity_pct == Decimal("5.5")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            DeductionRates(custodian_pct=10.0)

    def test_negative_rate_rejected(self):
        with pytest.raises(PolicyError) as exc:
            DeductionRates(charity_pct=Decimal("-1"))
        assert exc.value.code == "POLICY_ERROR"
        assert exc.value.details()["field"] == "charity_pct"

    def test_rate_over_hundred_rejected(self):
        with pytest.raises(PolicyError):
            DeductionRates(custodian_pct=Decimal("101"))

    def test_total_over_hundred_rejected(self):
        with pytest.raises(PolicyError):
            DeductionRates(
                custodian_pct=Decimal("60"),
                charity_pct=Decimal("30"),
                corpus_pct=Decimal("20"),
            )

    def test_total_exactly_hundred_allowed(self):
        rates = DeductionRates(custodian_pct=Decimal("50"), reserve_pct=Decimal("50"))
        assert rates.total == Decimal("100")

    def test_round_trip_dict(self):
        rates = DeductionRates(custodian_pct=Decimal("10"), corpus_pct=Decimal("5"))
        assert DeductionRates.from_dict(rates.to_dict()) == rates

    def test_unknown_rate_rejected(self):
        with pytest.raises(PolicyError):
            DeductionRates.from_dict({"zakat_pct": "2.5"})


class TestDistributionPolicy:
    def test_kind_from_string(self):
        assert DistributionPolicy(kind="equal").kind == PolicyKind.EQUAL

    def test_default_spouse_fraction_is_one_eighth(self):
        assert DistributionPolicy(kind=PolicyKind.SHARIAH).spouse_fraction == Fraction(1, 8)

    def test_spouse_fraction_out_of_range(self):
        with pytest.raises(PolicyError):
            DistributionPolicy(kind=PolicyKind.SHARIAH, spouse_fraction=Fraction(9, 8))

    def test_hybrid_weights_must_sum_to_one(self):
        with pytest.raises(PolicyError):
            DistributionPolicy(
                kind=PolicyKind.HYBRID,
                hybrid_shariah_weight=Decimal("0.5"),
                hybrid_need_weight=Decimal("0.6"),
            )

    def test_hybrid_weights_non_negative(self):
        with pytest.raises(PolicyError):
            DistributionPolicy(
                kind=PolicyKind.HYBRID,
                hybrid_shariah_weight=Decimal("1.5"),
                hybrid_need_weight=Decimal("-0.5"),
            )

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            DistributionPolicy(kind="lottery")

    def test_serialization_is_json_native(self):
        policy = DistributionPolicy(
            kind=PolicyKind.HYBRID,
            rates=DeductionRates(custodian_pct=Decimal("10")),
            spouse_fraction=Fraction(1, 4),
        )
        data = policy.to_dict()
        assert data["spouse_fraction"] == "1/4"
        assert data["rates"]["custodian_pct"] == "10"
        assert DistributionPolicy.from_dict(data) == policy
