"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Provides Currency and Money, the only representation of monetary values
    in the engine.  Money holds an integer count of minor units (halalas,
    fils, cents) so that every sum, split and comparison is exact.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine and service. No outward dependencies except
    waqf_kernel.domain.currency and waqf_kernel.exceptions.

Invariants enforced:
    - Amounts are integers in minor units; float is rejected at every
      entry point (construction, percentages, fractions, weights).
    - Currency codes are validated against the ISO 4217 registry.
    - Arithmetic never mixes currencies (CurrencyMismatchError).
    - allocate_proportionally conserves the amount exactly: the parts
      always sum to the whole, checked after every allocation.

Failure modes:
    - TypeError when a float (or other non-exact number) is supplied.
    - ValueError on amounts with more precision than the currency allows,
      negative weights, or all-zero weights.
    - InvalidCurrencyError / CurrencyMismatchError on currency problems.

Audit relevance:
    Every figure that reaches the ledger passes through these types.
    Largest-remainder allocation with a deterministic tie-break means the
    same inputs always produce the same minor-unit split.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import (
    ROUND_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
    Decimal,
    InvalidOperation,
)
from fractions import Fraction
from typing import Any

from waqf_kernel.domain.currency import CurrencyRegistry
from waqf_kernel.exceptions import (
    AllocationConservationError,
    CurrencyMismatchError,
    InvalidCurrencyError,
)

ExactNumber = int | Decimal | Fraction | str


def to_fraction(value: Any) -> Fraction:
    """Convert an exact number to a Fraction. Floats are rejected.

    Raises:
        TypeError: value is a float, bool, or unsupported type.
        ValueError: value is a string that does not parse as a number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Exact number required, got {type(value).__name__}: {value!r}")
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Non-finite number: {value}")
        return Fraction(value)
    if isinstance(value, str):
        text = value.strip()
        if "/" in text:
            return Fraction(text)
        try:
            return to_fraction(Decimal(text))
        except InvalidOperation as e:
            raise ValueError(f"Invalid number: {value!r}") from e
    raise TypeError(f"Exact number required, got {type(value).__name__}")


def round_ratio(numerator: int, denominator: int, rounding: str = ROUND_HALF_UP) -> int:
    """Round numerator/denominator to an integer with a decimal rounding mode.

    Supports ROUND_HALF_UP, ROUND_HALF_EVEN, ROUND_DOWN and ROUND_UP
    (half/up/down measured away from or toward zero).
    """
    if denominator == 0:
        raise ZeroDivisionError("denominator is zero")
    if denominator < 0:
        numerator, denominator = -numerator, -denominator
    sign = -1 if numerator < 0 else 1
    q, r = divmod(abs(numerator), denominator)
    if rounding == ROUND_DOWN:
        pass
    elif rounding == ROUND_UP:
        if r:
            q += 1
    elif rounding == ROUND_HALF_UP:
        if 2 * r >= denominator:
            q += 1
    elif rounding == ROUND_HALF_EVEN:
        if 2 * r > denominator or (2 * r == denominator and q % 2 == 1):
            q += 1
    else:
        raise ValueError(f"Unsupported rounding mode: {rounding}")
    return sign * q


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter ISO 4217 code, uppercased and validated on
        construction.

    Guarantees:
        - Immutable and hashable.
        - decimal_places comes from the registry (SAR -> 2, KWD -> 3).
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def minor_per_major(self) -> int:
        return 10 ** self.decimal_places

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount in integer minor units.

    Contract:
        Pairs an integer minor-unit count with its Currency -- they are
        NEVER separated.  ``Money.of("1000.50", "SAR")`` is 100050 halalas.

    Guarantees:
        - minor_units is always an int (never float, never Decimal).
        - Arithmetic enforces same currency.
        - Rounding only happens inside percentage_of / multiply_by_fraction
          with an explicit rounding mode, and inside allocate_proportionally
          by largest remainder.

    Non-goals:
        - No currency conversion.
    """

    minor_units: int
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise TypeError(
                f"minor_units must be int, got {type(self.minor_units).__name__}"
            )
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(
                f"currency must be Currency or str, got {type(self.currency).__name__}"
            )

    # -- Factories ---------------------------------------------------------

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Create Money from a major-unit amount ("1000.50" SAR).

        Raises:
            TypeError: amount is a float.
            ValueError: amount has more decimal places than the currency.
        """
        if isinstance(currency, str):
            currency = Currency(currency)
        exact = to_fraction(amount) * currency.minor_per_major
        if exact.denominator != 1:
            raise ValueError(
                f"Amount {amount} has more precision than {currency.code} allows "
                f"({currency.decimal_places} decimal places)"
            )
        return cls(minor_units=int(exact), currency=currency)

    @classmethod
    def from_minor(cls, minor_units: int, currency: str | Currency) -> Money:
        return cls(minor_units=minor_units, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(minor_units=0, currency=currency)

    @classmethod
    def total(cls, items: Iterable[Money], currency: str | Currency) -> Money:
        """Sum Money values; an empty iterable totals zero in ``currency``."""
        result = cls.zero(currency)
        for item in items:
            result = result.add(item)
        return result

    # -- Properties --------------------------------------------------------

    @property
    def amount(self) -> Decimal:
        """Major-unit Decimal view, exact at the currency's precision."""
        return Decimal(self.minor_units).scaleb(-self.currency.decimal_places)

    @property
    def is_zero(self) -> bool:
        return self.minor_units == 0

    @property
    def is_positive(self) -> bool:
        return self.minor_units > 0

    @property
    def is_negative(self) -> bool:
        return self.minor_units < 0

    # -- Arithmetic --------------------------------------------------------

    def _require_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def add(self, other: Money) -> Money:
        self._require_same_currency(other)
        return Money(self.minor_units + other.minor_units, self.currency)

    def subtract(self, other: Money) -> Money:
        self._require_same_currency(other)
        return Money(self.minor_units - other.minor_units, self.currency)

    def percentage_of(
        self,
        pct: Decimal | int | str,
        rounding: str = ROUND_HALF_UP,
    ) -> Money:
        """Return ``pct`` percent of this amount, rounded to a whole minor unit."""
        ratio = to_fraction(pct) / 100
        return self.multiply_by_fraction(ratio, rounding=rounding)

    def multiply_by_fraction(
        self,
        fraction: Fraction | Decimal | int | str,
        rounding: str = ROUND_HALF_UP,
    ) -> Money:
        """Multiply by an exact fraction, rounded to a whole minor unit."""
        frac = to_fraction(fraction)
        units = round_ratio(self.minor_units * frac.numerator, frac.denominator, rounding)
        return Money(units, self.currency)

    def allocate_proportionally(
        self,
        weights: Sequence[ExactNumber],
        keys: Sequence[Any] | None = None,
    ) -> list[Money]:
        """Split this amount in proportion to ``weights`` by largest remainder.

        Each part first receives the floor of its exact share; the leftover
        minor units go one each to the parts with the largest fractional
        remainders.  Equal remainders are ordered by ascending key (the
        list position when ``keys`` is omitted).

        Raises:
            TypeError: a weight is a float.
            ValueError: no weights, a negative weight, all weights zero,
                a negative amount, or keys of a different length.
            AllocationConservationError: the parts do not sum to the whole.
        """
        if not weights:
            raise ValueError("At least one weight is required")
        if self.minor_units < 0:
            raise ValueError("Cannot allocate a negative amount")
        if keys is None:
            keys = list(range(len(weights)))
        elif len(keys) != len(weights):
            raise ValueError(
                f"keys ({len(keys)}) and weights ({len(weights)}) differ in length"
            )

        exact_weights = [to_fraction(w) for w in weights]
        if any(w < 0 for w in exact_weights):
            raise ValueError("Weights must be non-negative")
        weight_total = sum(exact_weights, Fraction(0))
        if weight_total == 0:
            raise ValueError("At least one weight must be positive")

        shares = [self.minor_units * w / weight_total for w in exact_weights]
        units = [s.numerator // s.denominator for s in shares]
        leftover = self.minor_units - sum(units)

        order = sorted(
            range(len(shares)),
            key=lambda i: (-(shares[i] - units[i]), keys[i]),
        )
        for i in order[:leftover]:
            units[i] += 1

        allocated = sum(units)
        if allocated != self.minor_units:
            raise AllocationConservationError(
                self.minor_units, allocated, self.currency.code
            )
        return [Money(u, self.currency) for u in units]

    # -- Operators ---------------------------------------------------------

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> Money:
        return Money(-self.minor_units, self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.minor_units!r}, {self.currency.code!r})"
