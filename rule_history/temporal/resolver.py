"""
Previous-Value Resolver
=======================

Finds the value a field held immediately before a given FieldValue.

INVARIANT: Value chains are keyed by (field_value_set_id, field_name).
Within a chain, order is (updated_at, field_value_id); equal update
times are broken by the higher identifier being later.

The index is built once per snapshot and never mutated afterwards,
so repeated lookups return the same answer.
"""

from __future__ import annotations
from bisect import bisect_left
from typing import Dict, Iterable, List, Optional, Tuple

from ..contracts.base import Timestamp
from ..contracts.records import FieldValue


ChainKey = Tuple[int, str]


def _order_key(value: FieldValue) -> Tuple[Timestamp, int]:
    return (value.updated_at, value.field_value_id)


class PreviousValueResolver:
    """
    Read-only index over every FieldValue of a snapshot.

    GUARANTEES:
    - Pure lookup, no mutation after construction
    - Values without updated_at or field_value_id never act as predecessors
    """

    def __init__(self, values: Iterable[FieldValue]):
        chains: Dict[ChainKey, List[FieldValue]] = {}
        for value in values:
            if value.updated_at is None or value.field_value_id is None:
                continue
            chains.setdefault(value.chain_key, []).append(value)

        self._chains: Dict[ChainKey, Tuple[FieldValue, ...]] = {}
        self._times: Dict[ChainKey, Tuple[Timestamp, ...]] = {}
        for key, chain in chains.items():
            ordered = tuple(sorted(chain, key=_order_key))
            self._chains[key] = ordered
            self._times[key] = tuple(v.updated_at for v in ordered)

    def resolve(self, value: FieldValue) -> Optional[FieldValue]:
        """
        Return the predecessor of `value`, or None for the first value.

        Candidates have updated_at strictly earlier than value.updated_at;
        the latest of them (highest identifier on a tie) wins.
        """
        if value.updated_at is None:
            return None
        times = self._times.get(value.chain_key)
        if not times:
            return None
        position = bisect_left(times, value.updated_at)
        if position == 0:
            return None
        return self._chains[value.chain_key][position - 1]

    def chain(self, field_value_set_id: int, field_name: str) -> Tuple[FieldValue, ...]:
        """Full value chain for one field, oldest first."""
        return self._chains.get((field_value_set_id, field_name), ())

    def chain_keys(self) -> Tuple[ChainKey, ...]:
        return tuple(sorted(self._chains))
