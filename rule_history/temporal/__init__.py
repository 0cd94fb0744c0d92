"""
Temporal Reconciliation Layer
=============================

Pure functions over an immutable snapshot of versions and field values.

INVARIANTS:
- No mutation of input records
- Same snapshot -> same timeline, same state (deterministic)
- Soft-deletes are validity intervals, never booleans

Modules:
- resolver: previous value of a field on the same value chain
- delta: fixed-point numeric deltas
- timeline: chronological merge of both mutation pathways
- state: active version and current field values
"""

from .resolver import PreviousValueResolver
from .delta import DeltaCalculator, format_delta
from .timeline import TimelineMerger, lifecycle_events, window
from .state import CurrentStateProjector, select_current, select_as_of

__all__ = [
    'PreviousValueResolver',
    'DeltaCalculator',
    'format_delta',
    'TimelineMerger',
    'lifecycle_events',
    'window',
    'CurrentStateProjector',
    'select_current',
    'select_as_of',
]
