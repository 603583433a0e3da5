"""
Tests for the deduction pipeline.

Covers:
- Deductions computed against the original gross, rounded down
- Conservation: deductions + heirs pool == gross
- Zero rates omitted, order fixed
- Invalid inputs
"""

from decimal import Decimal

import pytest

from waqf_engines.deductions import DEDUCTION_ORDER, DeductionPipeline
from waqf_kernel.domain.policy import DeductionRates, DistributionPolicy, PolicyKind
from waqf_kernel.domain.values import Money


def _policy(**rates) -> DistributionPolicy:
    return DistributionPolicy(
        kind=PolicyKind.SHARIAH,
        rates=DeductionRates(**{k: Decimal(v) for k, v in rates.items()}),
    )


STANDARD = dict(custodian_pct="10", charity_pct="5", corpus_pct="5", development_pct="5")


class TestDeductionPipeline:
    def setup_method(self):
        self.pipeline = DeductionPipeline()

    def test_standard_rates_on_one_million(self):
        """10/5/5/5 on 1,000,000 SAR leaves 750,000 for heirs."""
        result = self.pipeline.apply(gross=Money.of("1000000", "SAR"), policy=_policy(**STANDARD))

        assert [line.label for line in result.lines] == [
            "custodian", "charity", "corpus", "development",
        ]
        assert result.amount_for("custodian") == Money.of("100000", "SAR")
        assert result.amount_for("charity") == Money.of("50000", "SAR")
        assert result.amount_for("corpus") == Money.of("50000", "SAR")
        assert result.amount_for("development") == Money.of("50000", "SAR")
        assert result.heirs_pool == Money.of("750000", "SAR")
        assert result.total_deducted + result.heirs_pool == result.gross

    def test_rates_apply_to_original_gross(self):
        """Two 50% deductions consume everything instead of compounding."""
        result = self.pipeline.apply(
            gross=Money.of("100", "SAR"),
            policy=_policy(custodian_pct="50", reserve_pct="50"),
        )
        assert result.amount_for("custodian") == Money.of("50", "SAR")
        assert result.amount_for("reserve") == Money.of("50", "SAR")
        assert result.heirs_pool.is_zero

    def test_deductions_round_down_and_pool_takes_remainder(self):
        # 10% of 0.99 = 9.9 halalas -> 9; pool absorbs the fraction
        result = self.pipeline.apply(
            gross=Money(99, "SAR"), policy=_policy(custodian_pct="10", charity_pct="10")
        )
        assert result.amount_for("custodian").minor_units == 9
        assert result.amount_for("charity").minor_units == 9
        assert result.heirs_pool.minor_units == 81

    def test_zero_rates_are_omitted(self):
        result = self.pipeline.apply(
            gross=Money.of("1000", "SAR"), policy=_policy(custodian_pct="10")
        )
        assert [line.label for line in result.lines] == ["custodian"]
        assert result.amount_for("reserve") == Money.zero("SAR")

    def test_no_rates_means_whole_gross_to_heirs(self):
        result = self.pipeline.apply(gross=Money.of("1234.56", "SAR"), policy=_policy())
        assert result.lines == ()
        assert result.heirs_pool == Money.of("1234.56", "SAR")

    def test_zero_gross(self):
        result = self.pipeline.apply(gross=Money.zero("SAR"), policy=_policy(**STANDARD))
        assert result.heirs_pool.is_zero
        assert all(line.amount.is_zero for line in result.lines)

    def test_negative_gross_rejected(self):
        with pytest.raises(ValueError):
            self.pipeline.apply(gross=Money(-1, "SAR"), policy=_policy(**STANDARD))

    def test_fractional_rate(self):
        result = self.pipeline.apply(
            gross=Money.of("1000", "SAR"), policy=_policy(maintenance_pct="2.5")
        )
        assert result.amount_for("maintenance") == Money.of("25", "SAR")

    def test_order_matches_declared_order(self):
        result = self.pipeline.apply(
            gross=Money.of("1000", "SAR"),
            policy=_policy(
                reserve_pct="1", maintenance_pct="1", development_pct="1",
                corpus_pct="1", charity_pct="1", custodian_pct="1",
            ),
        )
        assert [line.label for line in result.lines] == [label for label, _ in DEDUCTION_ORDER]

    def test_to_dict_is_json_native(self):
        result = self.pipeline.apply(
            gross=Money.of("100", "SAR"), policy=_policy(custodian_pct="12.5")
        )
        assert result.to_dict() == {
            "gross_minor": 10000,
            "lines": [{"label": "custodian", "percentage": "12.5", "amount_minor": 1250}],
            "heirs_pool_minor": 8750,
        }

    def test_trace_is_logged(self, captured_logs):
        self.pipeline.apply(gross=Money.of("100", "SAR"), policy=_policy(**STANDARD))
        traces = [r for r in captured_logs() if r["message"] == "WAQF_ENGINE_TRACE"]
        assert traces and traces[0]["engine_name"] == "deductions"
        assert len(traces[0]["input_fingerprint"]) == 16
