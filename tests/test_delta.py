"""
Delta Calculator Tests
======================

Deltas are fixed-point to three places and only computed for fields
whose name ends with a numeric suffix. Anything else is skipped (None).
"""

from decimal import Decimal

import pytest

from rule_history.temporal import DeltaCalculator, format_delta
from rule_history.temporal.delta import parse_fixed


class TestNumericEligibility:

    @pytest.mark.parametrize("name", [
        "marginPoints", "passThroughPoints", "PassThroughRate",
        "MarginMultiplier", "Rate", "baseRATE",
    ])
    def test_numeric_suffixes(self, name):
        assert DeltaCalculator().is_numeric_field(name)

    @pytest.mark.parametrize("name", ["description", "NoteRateCap", "DollarMarginTarget"])
    def test_non_numeric_fields(self, name):
        assert not DeltaCalculator().is_numeric_field(name)

    def test_custom_suffixes(self):
        calculator = DeltaCalculator({"Cap"})
        assert calculator.is_numeric_field("NoteRateCap")
        assert not calculator.is_numeric_field("marginPoints")


class TestDelta:

    def test_positive_delta(self):
        assert DeltaCalculator().delta("marginPoints", "1.250", "1.500") == Decimal("0.250")

    def test_negative_delta(self):
        assert DeltaCalculator().delta("Rate", "2.5", "2.375") == Decimal("-0.125")

    def test_zero_delta(self):
        assert DeltaCalculator().delta("Rate", "1", "1.000") == Decimal("0.000")

    def test_quantized_half_up_before_subtracting(self):
        # 1.0005 -> 1.001, 1.0004 -> 1.000
        assert DeltaCalculator().delta("marginPoints", "1.0004", "1.0005") == Decimal("0.001")

    def test_missing_old_value_is_skipped(self):
        assert DeltaCalculator().delta("marginPoints", None, "1.500") is None

    def test_non_numeric_literal_is_skipped(self):
        assert DeltaCalculator().delta("marginPoints", "n/a", "1.500") is None

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-inf"])
    def test_non_finite_literal_is_skipped(self, literal):
        assert DeltaCalculator().delta("marginPoints", literal, "1.500") is None

    def test_non_numeric_field_is_skipped(self):
        assert DeltaCalculator().delta("description", "1", "2") is None

    def test_whitespace_is_tolerated(self):
        assert DeltaCalculator().delta("Rate", " 1.000 ", "1.100\n") == Decimal("0.100")

    def test_difference_beyond_context_precision_is_skipped(self):
        # Each operand fits in 28 digits once fixed, their difference does not
        low = "-9999999999999999999999999"
        high = "9999999999999999999999999"
        assert DeltaCalculator().delta("marginPoints", low, high) is None
        assert DeltaCalculator().delta("marginPoints", high, low) is None


class TestFormatting:

    def test_parse_fixed(self):
        assert parse_fixed("0.1") == Decimal("0.100")
        assert parse_fixed("") is None
        assert parse_fixed(None) is None

    @pytest.mark.parametrize("delta,expected", [
        (Decimal("0.250"), "+0.250"),
        (Decimal("-0.125"), "-0.125"),
        (Decimal("0.000"), "0.000"),
        (None, None),
    ])
    def test_format_delta(self, delta, expected):
        assert format_delta(delta) == expected
