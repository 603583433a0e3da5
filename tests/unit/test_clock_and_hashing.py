"""
Unit tests for the deterministic clock, canonical hashing and engine
input fingerprints.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from fractions import Fraction
from uuid import UUID

import pytest

from waqf_engines import compute_input_fingerprint
from waqf_kernel.domain.clock import DeterministicClock, SystemClock
from waqf_kernel.domain.values import Money
from waqf_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_event,
    hash_payload,
)


class TestDeterministicClock:
    def test_frozen_until_moved(self):
        clock = DeterministicClock(datetime(2025, 6, 15, 10, 0, tzinfo=UTC))
        assert clock.now() == clock.now()
        assert clock.today() == date(2025, 6, 15)

    def test_advance(self):
        clock = DeterministicClock(datetime(2025, 12, 31, 23, 59, 30, tzinfo=UTC))
        clock.advance(45)
        assert clock.today() == date(2026, 1, 1)

    def test_set_time_requires_aware(self):
        clock = DeterministicClock()
        with pytest.raises(ValueError):
            clock.set_time(datetime(2025, 3, 1))
        clock.set_time(datetime(2025, 3, 1, tzinfo=UTC))
        assert clock.today() == date(2025, 3, 1)

    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo is UTC


class TestCanonicalJson:
    def test_key_order_irrelevant(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})

    def test_typed_scalars(self):
        text = canonicalize_json(
            {
                "amount": Decimal("12.50"),
                "share": Fraction(1, 8),
                "on": date(2025, 6, 15),
                "id": UUID(int=1),
            }
        )
        assert '"amount":"12.5"' in text
        assert '"share":"1/8"' in text
        assert '"on":"2025-06-15"' in text
        assert '"id":"00000000-0000-0000-0000-000000000001"' in text

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError):
            canonicalize_json({"x": object()})


class TestAuditHash:
    def test_none_and_genesis_agree(self):
        payload_hash = hash_payload({"k": "v"})
        first = hash_audit_event("distribution", "d-1", "created", payload_hash, None)
        assert first == hash_audit_event(
            "distribution", "d-1", "created", payload_hash, "GENESIS"
        )

    def test_prev_hash_changes_link(self):
        payload_hash = hash_payload({})
        a = hash_audit_event("journal", "j-1", "posted", payload_hash, "a" * 64)
        b = hash_audit_event("journal", "j-1", "posted", payload_hash, "b" * 64)
        assert a != b


class TestInputFingerprint:
    def test_sixteen_hex_digits(self):
        fp = compute_input_fingerprint(("gross",), {"gross": Money.of("100", "SAR")})
        assert len(fp) == 16
        int(fp, 16)

    def test_only_selected_fields_count(self):
        gross = Money.of("100", "SAR")
        assert compute_input_fingerprint(
            ("gross",), {"gross": gross, "noise": 1}
        ) == compute_input_fingerprint(("gross",), {"gross": gross, "noise": 2})

    def test_amount_changes_fingerprint(self):
        assert compute_input_fingerprint(
            ("gross",), {"gross": Money.of("100", "SAR")}
        ) != compute_input_fingerprint(("gross",), {"gross": Money.of("101", "SAR")})
