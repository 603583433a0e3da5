"""Tests for loading and validating the waqf configuration set."""

from __future__ import annotations

import copy
from decimal import Decimal
from fractions import Fraction
from pathlib import Path

import pytest
import yaml

import waqf_config
from waqf_config import get_active_config
from waqf_config.loader import load_yaml_file
from waqf_kernel.exceptions import ConfigurationError

DEFAULT_PATH = Path(waqf_config.__file__).parent / "sets" / "default.yaml"


@pytest.fixture
def raw_config() -> dict:
    return copy.deepcopy(load_yaml_file(DEFAULT_PATH))


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict) -> Path:
        path = tmp_path / "waqf.yaml"
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return _write


class TestDefaultConfig:
    def test_loads(self, config):
        assert config.config_id == "waqf-default"
        assert len(config.accounts) == 22
        assert config.distribution.currency == "SAR"
        assert config.distribution.spouse_fraction == Fraction(1, 8)
        assert config.distribution.default_rates["custodian_pct"] == Decimal("10")
        assert config.bank_identifier.prefix == "SA"
        assert config.bank_identifier.length == 24

    def test_rent_template_splits(self, config):
        template = config.templates["rental_payment.received"]
        assert [(s.account, s.percentage) for s in template.credits] == [
            ("4.1.1", Decimal("86.9565")),
            ("2.2.1", Decimal("13.0435")),
        ]
        assert template.debits[0].percentage == Decimal("100")

    def test_checksum_stable(self, config):
        assert get_active_config().checksum == config.checksum
        assert len(config.checksum) == 64

    def test_checksum_tracks_content(self, raw_config, write_config, config):
        raw_config["distribution"]["fallback_recipient_id"] = "orphans_fund"
        changed = get_active_config(write_config(raw_config))
        assert changed.checksum != config.checksum
        assert changed.distribution.fallback_recipient_id == "orphans_fund"

    def test_trace_logged(self, captured_logs):
        config = get_active_config()
        [trace] = [r for r in captured_logs() if r["message"] == "WAQF_CONFIG_TRACE"]
        assert trace["checksum"] == config.checksum
        assert trace["account_count"] == 22

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidation:
    def _errors(self, data, write_config) -> list[str]:
        with pytest.raises(ConfigurationError) as exc:
            get_active_config(write_config(data))
        return exc.value.errors

    def test_duplicate_account(self, raw_config, write_config):
        raw_config["accounts"].append({"code": "1.1.1", "name": "Again", "type": "asset"})
        assert "Duplicate account code: 1.1.1" in self._errors(raw_config, write_config)

    def test_unknown_account_type(self, raw_config, write_config):
        raw_config["accounts"].append({"code": "9.1.1", "name": "Odd", "type": "suspense"})
        [error] = self._errors(raw_config, write_config)
        assert "unknown type" in error

    def test_template_split_total(self, raw_config, write_config):
        raw_config["templates"]["rental_payment.received"]["credit"][1]["percentage"] = "13"
        errors = self._errors(raw_config, write_config)
        assert any("credit splits sum to 99.9565" in e for e in errors)

    def test_template_unknown_account(self, raw_config, write_config):
        raw_config["templates"]["maintenance_expense.paid"]["credit"] = [{"account": "1.9.9"}]
        errors = self._errors(raw_config, write_config)
        assert errors == ["Template maintenance_expense.paid: unknown account 1.9.9"]

    def test_distribution_template_required(self, raw_config, write_config):
        del raw_config["templates"]["distribution.heir_payment"]
        errors = self._errors(raw_config, write_config)
        assert "Missing template for distribution event distribution.heir_payment" in errors

    def test_unknown_rate_name(self, raw_config, write_config):
        raw_config["distribution"]["default_rates"]["zakat_pct"] = "2.5"
        errors = self._errors(raw_config, write_config)
        assert any(e.startswith("distribution.default_rates") for e in errors)

    def test_corpus_account_must_be_equity(self, raw_config, write_config):
        raw_config["distribution"]["corpus_account"] = "1.1.1"
        errors = self._errors(raw_config, write_config)
        assert errors == ["Corpus account 1.1.1 must be equity"]

    def test_bank_identifier_format(self, raw_config, write_config):
        raw_config["bank_identifier"] = {"prefix": "S1", "length": 40}
        errors = self._errors(raw_config, write_config)
        assert len(errors) == 2

    def test_inactive_template_account_is_warning(self, raw_config, write_config, captured_logs):
        for account in raw_config["accounts"]:
            if account["code"] == "5.3.1":
                account["active"] = False
        config = get_active_config(write_config(raw_config))
        assert config.account("5.3.1").is_active is False
        warnings = [r for r in captured_logs() if r["message"] == "config_validation_warning"]
        assert warnings[0]["warning"] == "Template maintenance_expense.paid: account 5.3.1 is inactive"
