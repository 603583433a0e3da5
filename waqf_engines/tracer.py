"""
waqf_engines.tracer -- WAQF_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` logs one record per engine call with the engine
    name and version, a fingerprint of the selected keyword arguments,
    the duration and whether the call returned or raised.

Invariants enforced:
    - The fingerprint is the first 16 hex digits of the SHA-256 of the
      canonical JSON of the selected arguments.  Domain objects enter it
      through ``to_dict()``, Money as ``{"minor_units", "currency"}``.
    - Exceptions are logged with ``outcome="error"`` and re-raised
      unchanged.

Audit relevance:
    A simulation and the execution that follows it fingerprint the same
    inputs identically, so the two trace records can be paired.
"""

from __future__ import annotations

import dataclasses
import functools
import time
from collections.abc import Callable
from typing import Any

from waqf_kernel.domain.values import Money
from waqf_kernel.logging_config import get_logger
from waqf_kernel.utils.hashing import canonicalize_json, hash_payload

_logger = get_logger("engines.tracer")


def _plain(value: Any) -> Any:
    """Reduce domain objects to JSON-friendly structures."""
    if isinstance(value, Money):
        return {"minor_units": value.minor_units, "currency": value.currency.code}
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        canonicalize_json(value)
    except TypeError:
        return repr(value)
    return value


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    selected = {name: _plain(kwargs.get(name)) for name in fingerprint_fields}
    return hash_payload(selected)[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Trace a keyword-argument engine entry point.

    Usage::

        @traced_engine("deductions", "1.0", fingerprint_fields=("gross", "policy"))
        def apply(self, *, gross, policy): ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            started = time.monotonic()
            outcome = "error"
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.info(
                    "WAQF_ENGINE_TRACE",
                    extra={
                        "trace_type": "WAQF_ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fingerprint,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                        "outcome": outcome,
                        "function": func.__qualname__,
                    },
                )

        return wrapper

    return decorator
