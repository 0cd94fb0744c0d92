"""
Current-State Projector
=======================

Reconstructs the effective state of a logical entity at an evaluation
time: the active version and the current value of each of its fields.

SELECTION RULE (versions and field values alike):
1. Records never soft-deleted (inactive_from is None)
2. If none, records whose inactive_from is still in the future and
   whose effective_from has passed
3. Several candidates: the unique latest effective_from wins,
   otherwise the selection is ambiguous

The projector never mutates its inputs.
"""

from __future__ import annotations
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from ..contracts.base import (
    Timestamp, NoActiveVersion, InvariantViolation
)
from ..contracts.records import (
    EntityVersion, FieldValue, CurrentFieldValue, CurrentStateSnapshot
)


Versioned = TypeVar('Versioned', EntityVersion, FieldValue)


def _effective(record: Union[EntityVersion, FieldValue]) -> Optional[Timestamp]:
    return record.validity.effective_from


def _break_tie(candidates: Sequence[Versioned]) -> Optional[Versioned]:
    """Unique latest effective_from, or None when it cannot decide."""
    if len(candidates) == 1:
        return candidates[0]
    if any(_effective(c) is None for c in candidates):
        return None
    latest = max(_effective(c) for c in candidates)
    winners = [c for c in candidates if _effective(c) == latest]
    return winners[0] if len(winners) == 1 else None


def select_current(records: Sequence[Versioned], now: Timestamp) -> Tuple[Optional[Versioned], int]:
    """
    Apply the selection rule.

    Returns (winner, candidate_count). A None winner with a non-zero
    count means the candidates were ambiguous.
    """
    open_ended = [r for r in records if r.inactive_from is None]
    if open_ended:
        return _break_tie(open_ended), len(open_ended)

    scheduled = [
        r for r in records
        if r.validity.inactive_after(now)
        and (_effective(r) is None or _effective(r) <= now)
    ]
    if scheduled:
        return _break_tie(scheduled), len(scheduled)
    return None, 0


def select_as_of(records: Sequence[Versioned], at: Timestamp) -> Tuple[Optional[Versioned], int]:
    """Selection by validity-interval containment at a point in time."""
    candidates = [r for r in records if r.validity.contains(at)]
    if not candidates:
        return None, 0
    return _break_tie(candidates), len(candidates)


Selector = Callable[[Sequence[Versioned], Timestamp], Tuple[Optional[Versioned], int]]


class CurrentStateProjector:
    """
    Read-only snapshot computation.

    EXPLICIT FAILURE STATES:
    - NoActiveVersion: zero or ambiguous active version
    - InvariantViolation: one field with several current values
    """

    def project(
        self,
        versions: Iterable[EntityVersion],
        field_values: Iterable[FieldValue],
        now: Optional[Timestamp] = None
    ) -> CurrentStateSnapshot:
        """Effective state at `now` (defaults to the current instant)."""
        return self._project(
            versions, field_values, now or Timestamp.now(), select_current, strict_fields=True
        )

    def project_as_of(
        self,
        versions: Iterable[EntityVersion],
        field_values: Iterable[FieldValue],
        at: Timestamp
    ) -> CurrentStateSnapshot:
        """Effective state at a past (or future) instant."""
        return self._project(versions, field_values, at, select_as_of, strict_fields=False)

    def _project(
        self,
        versions: Iterable[EntityVersion],
        field_values: Iterable[FieldValue],
        now: Timestamp,
        selector: Selector,
        strict_fields: bool
    ) -> CurrentStateSnapshot:
        versions = tuple(versions)
        logical_name = versions[0].logical_name if versions else ""

        active, count = selector(versions, now)
        if active is None:
            reason = "ambiguous" if count else "no"
            raise NoActiveVersion(
                f"{reason} active version for '{logical_name}' at {now.to_iso()}",
                logical_name=logical_name,
                candidates=count
            )

        fields = self._current_fields(active, field_values, now, selector, strict_fields)
        return CurrentStateSnapshot(
            logical_name=logical_name,
            evaluated_at=now,
            active_version=active,
            status=active.status_at(now),
            fields=fields
        )

    def _current_fields(
        self,
        active: EntityVersion,
        field_values: Iterable[FieldValue],
        now: Timestamp,
        selector: Selector,
        strict: bool
    ) -> Tuple[CurrentFieldValue, ...]:
        by_field = {}
        for value in field_values:
            if value.field_value_set_id != active.field_value_set_id:
                continue
            by_field.setdefault(value.field_name, []).append(value)

        fields: List[CurrentFieldValue] = []
        for field_name in sorted(by_field):
            current, count = selector(by_field[field_name], now)
            if current is None or (strict and count > 1):
                if count:
                    raise InvariantViolation(
                        f"field '{field_name}' has {count} current values",
                        field_name=field_name,
                        field_value_set_id=active.field_value_set_id
                    )
                continue
            days = None
            if current.updated_at is not None:
                days = current.updated_at.whole_days_until(now)
            fields.append(CurrentFieldValue(
                field_name=field_name,
                value=current,
                days_since_last_update=days
            ))
        return tuple(fields)

