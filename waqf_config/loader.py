"""
Configuration Loader (``waqf_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into typed
``waqf_config.schema`` dataclass instances.  Runtime callers go through
``waqf_config.get_active_config()``; this module is the parsing layer
underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Rates and percentages are parsed as ``Decimal`` from their string form,
  never through float.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from fractions import Fraction
from pathlib import Path
from typing import Any

import yaml

from waqf_config.schema import (
    AccountDef,
    BankIdentifierFormat,
    DistributionSettings,
    JournalTemplate,
    TemplateSplit,
    WaqfConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """Parse an exact decimal from YAML.  Floats go through ``str``."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_account(data: dict[str, Any]) -> AccountDef:
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=data["type"],
        is_active=bool(data.get("active", True)),
    )


def parse_split(data: dict[str, Any]) -> TemplateSplit:
    return TemplateSplit(
        account=str(data["account"]),
        percentage=parse_decimal(data.get("percentage", "100")),
        memo=data.get("memo"),
    )


def parse_template(event_name: str, data: dict[str, Any]) -> JournalTemplate:
    """Parse one journal template keyed by its event name."""
    return JournalTemplate(
        event_name=event_name,
        version=int(data.get("version", 1)),
        debits=tuple(parse_split(s) for s in data["debit"]),
        credits=tuple(parse_split(s) for s in data["credit"]),
        description=data.get("description"),
    )


def parse_distribution(data: dict[str, Any]) -> DistributionSettings:
    return DistributionSettings(
        currency=data.get("currency", "SAR"),
        default_rates={
            name: parse_decimal(rate)
            for name, rate in (data.get("default_rates") or {}).items()
        },
        spouse_fraction=Fraction(str(data.get("spouse_fraction", "1/8"))),
        fallback_recipient_id=str(data.get("fallback_recipient_id", "charity")),
        lock_timeout_seconds=float(data.get("lock_timeout_seconds", 5)),
        closing_event=data.get("closing_event", "fiscal_period.closing"),
        corpus_account=str(data.get("corpus_account", "3.1.1")),
    )


def parse_bank_identifier(data: dict[str, Any]) -> BankIdentifierFormat:
    return BankIdentifierFormat(
        prefix=str(data.get("prefix", "SA")).upper(),
        length=int(data.get("length", 24)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the raw configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> WaqfConfig:
    """Parse a complete configuration document."""
    return WaqfConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        accounts=tuple(parse_account(a) for a in data["accounts"]),
        templates={
            name: parse_template(name, body)
            for name, body in (data.get("templates") or {}).items()
        },
        distribution=parse_distribution(data.get("distribution") or {}),
        bank_identifier=parse_bank_identifier(data.get("bank_identifier") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> WaqfConfig:
    return parse_config(load_yaml_file(path))
