"""
Previous-Value Resolver Tests
=============================

INVARIANTS TESTED:
1. Predecessor is the latest value strictly earlier on the same chain
2. Chains are keyed by (field_value_set_id, field_name)
3. First values have no predecessor
"""

from rule_history.temporal import PreviousValueResolver

from tests.fixtures import (
    MARGIN_1000, MARGIN_1250, MARGIN_1500, ROUNDING_DOWN, ROUNDING_HALF_UP,
    V1_MARGIN, base_field_values, make_value, ts
)


class TestResolve:

    def test_first_value_has_no_predecessor(self):
        resolver = PreviousValueResolver(base_field_values())
        assert resolver.resolve(MARGIN_1000) is None

    def test_predecessor_on_same_chain(self):
        resolver = PreviousValueResolver(base_field_values())
        assert resolver.resolve(MARGIN_1250) == MARGIN_1000
        assert resolver.resolve(MARGIN_1500) == MARGIN_1250

    def test_chains_do_not_cross_fields(self):
        resolver = PreviousValueResolver(base_field_values())
        assert resolver.resolve(ROUNDING_DOWN) == ROUNDING_HALF_UP

    def test_chains_do_not_cross_sets(self):
        # V1's set has an earlier-or-equal marginPoints value that must not leak
        resolver = PreviousValueResolver(base_field_values())
        assert resolver.resolve(MARGIN_1000) is None
        assert resolver.resolve(V1_MARGIN) is None

    def test_input_order_is_irrelevant(self):
        forward = PreviousValueResolver(base_field_values())
        backward = PreviousValueResolver(tuple(reversed(base_field_values())))
        for value in base_field_values():
            assert forward.resolve(value) == backward.resolve(value)

    def test_equal_timestamps_are_not_predecessors(self):
        at = ts(2025, 5, 1)
        a = make_value(1, at, "1.0")
        b = make_value(2, at, "2.0")
        resolver = PreviousValueResolver((a, b))
        assert resolver.resolve(a) is None
        assert resolver.resolve(b) is None

    def test_latest_of_tied_predecessors_wins(self):
        at = ts(2025, 5, 1)
        a = make_value(1, at, "1.0")
        b = make_value(2, at, "2.0")
        later = make_value(3, ts(2025, 6, 1), "3.0")
        resolver = PreviousValueResolver((later, b, a))
        assert resolver.resolve(later) == b

    def test_values_missing_timestamp_are_not_indexed(self):
        broken = make_value(1, None, "1.0")
        later = make_value(2, ts(2025, 6, 1), "2.0")
        resolver = PreviousValueResolver((broken, later))
        assert resolver.resolve(later) is None
        assert resolver.resolve(broken) is None


class TestChains:

    def test_chain_is_oldest_first(self):
        resolver = PreviousValueResolver(base_field_values())
        chain = resolver.chain(502, "marginPoints")
        assert [v.field_value_id for v in chain] == [9001, 9002, 9003]

    def test_unknown_chain_is_empty(self):
        resolver = PreviousValueResolver(base_field_values())
        assert resolver.chain(1, "nothing") == ()

    def test_chain_keys(self):
        resolver = PreviousValueResolver(base_field_values())
        assert resolver.chain_keys() == (
            (501, "marginPoints"),
            (502, "marginPoints"),
            (502, "roundingMode"),
        )
