"""
Canonical JSON and SHA-256 digests.

Approval fingerprints, engine trace fingerprints and the audit chain all
compare digests computed at different times, so the encoding here must
not depend on dict order, whitespace or float formatting.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _encode_scalar(obj: Any) -> Any:
    match obj:
        case Decimal():
            return str(obj.normalize())
        case Fraction():
            return f"{obj.numerator}/{obj.denominator}"
        case date():
            return obj.isoformat()
        case UUID():
            return str(obj)
        case Enum():
            return obj.value
    raise TypeError(f"cannot canonicalize {type(obj).__name__}")


def canonicalize_json(data: Any) -> str:
    return json.dumps(
        data, sort_keys=True, separators=(",", ":"), default=_encode_scalar
    )


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: Any) -> str:
    """SHA-256 hex digest of ``canonicalize_json(payload)``."""
    return _sha256(canonicalize_json(payload))


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Chain link for one audit event.

    The first event of a chain links to ``GENESIS``; every later event
    links to its predecessor's hash, so editing any stored event changes
    every hash after it.
    """
    link = prev_hash if prev_hash else GENESIS
    return _sha256("|".join((entity_type, str(entity_id), action, payload_hash, link)))
