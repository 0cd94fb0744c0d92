"""
Timeline Merger
===============

Unions version-level and field-level change records into one
chronological sequence.

ORDERING (total, deterministic):
1. timestamp descending
2. VersionChange before FieldChange on an exact tie
   (the version fork is the container event)
3. owner version id descending
4. field value id descending

Input order never influences output order.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Tuple

from ..contracts.base import InvariantViolation, Timestamp, TimeRange
from ..contracts.records import (
    ChangeRecord, CHANGE_RECORD_TYPES, EntityVersion, FieldChange,
    LifecycleEvent, LifecycleEventType
)


def _sort_key(record: ChangeRecord) -> Tuple[Timestamp, int, int, int]:
    # Sorted with reverse=True, so kind order is negated to keep versions first
    field_value_id = getattr(record, 'field_value_id', 0)
    return (record.timestamp, -record.kind.value, record.owner_id, field_value_id)


class TimelineMerger:
    """
    Merges change records from both mutation pathways.

    GUARANTEES:
    - Output length equals input length (no dedup, no drop)
    - Same multiset of inputs -> same output sequence
    - Empty inputs are valid
    """

    def merge(self, *record_sets: Iterable[ChangeRecord]) -> Tuple[ChangeRecord, ...]:
        records: List[ChangeRecord] = []
        for record_set in record_sets:
            for record in record_set:
                if not isinstance(record, CHANGE_RECORD_TYPES):
                    raise InvariantViolation(
                        f"Cannot merge {type(record).__name__}: not a change record",
                        record_type=type(record).__name__
                    )
                records.append(record)
        records.sort(key=_sort_key, reverse=True)
        return tuple(records)


def window(timeline: Sequence[ChangeRecord], time_range: TimeRange) -> Tuple[ChangeRecord, ...]:
    """Restrict a merged timeline to a time range, order preserved."""
    return tuple(r for r in timeline if time_range.contains(r.timestamp))


# =============================================================================
# LIFECYCLE EVENTS
# =============================================================================

def _version_events(version: EntityVersion) -> List[LifecycleEvent]:
    events = []
    if version.created_at is not None:
        events.append(LifecycleEvent(
            event_type=LifecycleEventType.RULE_CREATED,
            timestamp=version.created_at,
            actor=version.created_by,
            method=version.creation_method.value,
            details=f"RuleId: {version.version_id}",
            version_id=version.version_id
        ))
    if version.inactive_from is not None:
        events.append(LifecycleEvent(
            event_type=LifecycleEventType.RULE_INACTIVATED,
            timestamp=version.inactive_from,
            actor=version.created_by,
            method=None,
            details=f"RuleId: {version.version_id} marked inactive",
            version_id=version.version_id
        ))
    if version.verified_at is not None:
        events.append(LifecycleEvent(
            event_type=LifecycleEventType.RULE_VERIFIED,
            timestamp=version.verified_at,
            actor=version.verified_by,
            method=None,
            details=f"RuleId: {version.version_id} verified",
            version_id=version.version_id
        ))
    return events


def _field_event(change: FieldChange) -> LifecycleEvent:
    return LifecycleEvent(
        event_type=LifecycleEventType.PARAMETER_UPDATED,
        timestamp=change.timestamp,
        actor=change.actor,
        method=change.method,
        details=f"{change.field_name} changed to: {change.new_value}",
        version_id=change.owner_version_id
    )


def _event_key(event: LifecycleEvent) -> Tuple[Timestamp, int, int, str]:
    version_id = event.version_id if event.version_id is not None else -1
    return (event.timestamp, -event.event_type.value, version_id, event.details)


def lifecycle_events(
    versions: Iterable[EntityVersion],
    field_changes: Iterable[FieldChange]
) -> Tuple[LifecycleEvent, ...]:
    """
    Chronological lifecycle of a rule: creations, inactivations,
    verifications and parameter updates, newest first.

    days_since_previous is measured against the chronologically
    preceding event; the earliest event has None.
    """
    events: List[LifecycleEvent] = []
    for version in versions:
        events.extend(_version_events(version))
    events.extend(_field_event(c) for c in field_changes)

    events.sort(key=_event_key, reverse=True)

    annotated: List[LifecycleEvent] = []
    previous: Optional[LifecycleEvent] = None
    for event in reversed(events):
        days = previous.timestamp.days_until(event.timestamp) if previous else None
        annotated.append(LifecycleEvent(
            event_type=event.event_type,
            timestamp=event.timestamp,
            actor=event.actor,
            method=event.method,
            details=event.details,
            version_id=event.version_id,
            days_since_previous=days
        ))
        previous = event
    annotated.reverse()
    return tuple(annotated)
