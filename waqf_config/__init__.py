"""
waqf_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a validated, frozen ``WaqfConfig``.

Architecture position:
    Configuration -- YAML-driven, validated on load.  This package sits
    above ``waqf_kernel`` and below ``waqf_services``.  The kernel MUST
    NEVER import from ``waqf_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - A configuration that fails validation is never returned.
    - Same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ConfigurationError`` -- validation failures, listed in ``errors``.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``WAQF_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every posted entry to the configuration that shaped it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from waqf_config.loader import load_config
from waqf_config.schema import (
    AccountDef,
    BankIdentifierFormat,
    DistributionSettings,
    JournalTemplate,
    TemplateSplit,
    WaqfConfig,
)
from waqf_config.validator import ConfigValidationResult, validate_configuration
from waqf_kernel.exceptions import ConfigurationError

_logger = logging.getLogger("waqf_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> WaqfConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a configuration YAML file.  Defaults to
            waqf_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If validation fails.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    validation = validate_configuration(config)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})
    if not validation.is_valid:
        raise ConfigurationError(validation.errors)

    _logger.info(
        "WAQF_CONFIG_TRACE",
        extra={
            "trace_type": "WAQF_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "account_count": len(config.accounts),
            "template_count": len(config.templates),
        },
    )
    return config


__all__ = [
    "AccountDef",
    "BankIdentifierFormat",
    "ConfigValidationResult",
    "DistributionSettings",
    "JournalTemplate",
    "TemplateSplit",
    "WaqfConfig",
    "get_active_config",
    "validate_configuration",
]
