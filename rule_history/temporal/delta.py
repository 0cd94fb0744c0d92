"""
Delta Calculator
================

Numeric difference between consecutive values of a field.

Values are fixed to three decimal places before subtracting, which is
the precision margins and rates are stored with. Anything that cannot
be computed exactly yields None (arithmetic skipped), never an error.
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import FrozenSet, Iterable, Optional

from ..config import DEFAULT_NUMERIC_SUFFIXES


PRECISION = Decimal("0.001")


def parse_fixed(literal: Optional[str]) -> Optional[Decimal]:
    """Parse a literal into a 3-place Decimal, or None."""
    if literal is None:
        return None
    try:
        number = Decimal(literal.strip())
    except (InvalidOperation, AttributeError):
        return None
    if not number.is_finite():
        return None
    try:
        return number.quantize(PRECISION, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


class DeltaCalculator:
    """Computes deltas for numeric-eligible fields only."""

    def __init__(self, numeric_suffixes: Iterable[str] = DEFAULT_NUMERIC_SUFFIXES):
        self._suffixes: FrozenSet[str] = frozenset(s.lower() for s in numeric_suffixes)

    def is_numeric_field(self, field_name: str) -> bool:
        name = field_name.lower()
        return any(name.endswith(suffix) for suffix in self._suffixes)

    def delta(
        self,
        field_name: str,
        old_value: Optional[str],
        new_value: Optional[str]
    ) -> Optional[Decimal]:
        if not self.is_numeric_field(field_name):
            return None
        old = parse_fixed(old_value)
        new = parse_fixed(new_value)
        if old is None or new is None:
            return None
        try:
            return (new - old).quantize(PRECISION)
        except InvalidOperation:
            # Difference needs more digits than the decimal context holds
            return None


def format_delta(delta: Optional[Decimal]) -> Optional[str]:
    """Signed text form used by reports: +0.250, -0.125, 0.000."""
    if delta is None:
        return None
    if delta > 0:
        return f"+{delta}"
    return str(delta)
