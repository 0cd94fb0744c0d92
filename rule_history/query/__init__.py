"""
Query & Analysis Interfaces

RESPONSIBILITY: Read-only statistics and report views
ALLOWED INPUTS: Merged timelines, versions, field values
OUTPUTS: SummaryStatistics, VersionSummary, VersionComparison, FieldHistoryEntry

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate any record
- Fetch data
- Filter by time window implicitly (callers pass the window they want)
"""

from __future__ import annotations
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import ReconciliationConfig
from ..contracts.base import (
    Timestamp, CreationMethod, RecordKind, VersionStatus, EntityNotFound, BULK_UPLOAD_METHOD
)
from ..contracts.records import (
    ChangeRecord, EntityVersion, FieldValue,
    SummaryStatistics, VersionSummary, VersionDetail, VersionComparison, FieldHistoryEntry
)
from ..temporal.delta import DeltaCalculator
from ..temporal.resolver import PreviousValueResolver
from ..temporal.state import select_current


METHOD_ORDER: Tuple[CreationMethod, ...] = (
    CreationMethod.MANUAL,
    CreationMethod.COPY,
    CreationMethod.BULK,
    CreationMethod.UNKNOWN,
)


def collapse_method(method: Optional[str]) -> CreationMethod:
    """Map a record's method label onto the closed method set."""
    if method == BULK_UPLOAD_METHOD:
        return CreationMethod.BULK
    for candidate in METHOD_ORDER:
        if candidate.value == method:
            return candidate
    return CreationMethod.UNKNOWN


def _method_counts(methods: Iterable[CreationMethod]) -> Tuple[Tuple[str, int], ...]:
    counts = Counter(methods)
    return tuple((m.value, counts.get(m, 0)) for m in METHOD_ORDER)


# =============================================================================
# SUMMARY AGGREGATOR
# =============================================================================

class SummaryAggregator:
    """
    Statistics over a full merged timeline.

    elapsed_days counts calendar-day boundaries between the first and
    last change. avg_per_day is 0 when elapsed_days is 0.
    """

    def summarize(self, timeline: Sequence[ChangeRecord]) -> SummaryStatistics:
        total = len(timeline)
        kinds = Counter(r.kind for r in timeline)

        if timeline:
            first = min(r.timestamp for r in timeline)
            last = max(r.timestamp for r in timeline)
            elapsed = first.days_until(last)
        else:
            first = last = None
            elapsed = 0

        actors = {r.actor for r in timeline if r.actor is not None}

        return SummaryStatistics(
            total=total,
            version_changes=kinds.get(RecordKind.VERSION_CHANGE, 0),
            field_changes=kinds.get(RecordKind.FIELD_CHANGE, 0),
            by_method=_method_counts(collapse_method(r.method) for r in timeline),
            first_change=first,
            last_change=last,
            elapsed_days=elapsed,
            distinct_actors=len(actors),
            avg_per_day=(total / elapsed) if elapsed > 0 else 0.0
        )


# =============================================================================
# VERSION SUMMARY
# =============================================================================

def summarize_versions(
    versions: Sequence[EntityVersion],
    now: Optional[Timestamp] = None
) -> VersionSummary:
    """Version counts, creation-method breakdown, origin audit and per-version detail."""
    now = now or Timestamp.now()
    logical_name = versions[0].logical_name if versions else ""

    statuses = Counter(v.status_at(now) for v in versions)
    inactive = statuses[VersionStatus.INACTIVE]
    verified = sum(1 for v in versions if v.verified_at is not None)
    created = [v.created_at for v in versions if v.created_at is not None]
    first = min(created) if created else None
    latest = max(created) if created else None

    details = version_details(versions, now)
    current = next((d.version_id for d in details if d.status.is_active), None)

    return VersionSummary(
        logical_name=logical_name,
        total_versions=len(versions),
        active_versions=len(versions) - inactive,
        inactive_versions=inactive,
        future_inactive_versions=statuses[VersionStatus.ACTIVE_FUTURE_INACTIVE],
        verified_versions=verified,
        unverified_versions=len(versions) - verified,
        current_active_version_id=current,
        first_created=first,
        latest_created=latest,
        days_between=first.days_until(latest) if first is not None else 0,
        by_method=_method_counts(v.creation_method for v in versions),
        missing_origin=missing_origin(versions),
        details=details
    )


def _newest_first(version: EntityVersion) -> Tuple[float, int]:
    created = version.created_at
    instant = created.value.timestamp() if created is not None else float('-inf')
    return (instant, version.version_id or 0)


def version_details(
    versions: Iterable[EntityVersion],
    now: Optional[Timestamp] = None
) -> Tuple[VersionDetail, ...]:
    """
    Every version, newest creation first (highest id on a tie).

    days_active counts calendar days from creation to inactive_from,
    or to now for a version never soft-deleted.
    """
    now = now or Timestamp.now()
    details: List[VersionDetail] = []
    for version in sorted(versions, key=_newest_first, reverse=True):
        days = None
        if version.created_at is not None:
            days = version.created_at.days_until(version.inactive_from or now)
        details.append(VersionDetail(
            version=version,
            status=version.status_at(now),
            days_active=days
        ))
    return tuple(details)


def missing_origin(versions: Iterable[EntityVersion]) -> Tuple[int, ...]:
    """Versions with no recorded creation origin, newest id first."""
    return tuple(sorted(
        (v.version_id for v in versions if v.creation_code is None and v.version_id is not None),
        reverse=True
    ))


# =============================================================================
# VERSION COMPARISON
# =============================================================================

def _current_values(
    version: EntityVersion,
    field_values: Iterable[FieldValue],
    now: Timestamp
) -> Tuple[Tuple[str, Optional[str]], ...]:
    by_field: Dict[str, List[FieldValue]] = {}
    for value in field_values:
        if value.field_value_set_id == version.field_value_set_id:
            by_field.setdefault(value.field_name, []).append(value)

    current = []
    for field_name in sorted(by_field):
        # Fields without a decidable current value are left out
        winner, _ = select_current(by_field[field_name], now)
        if winner is not None:
            current.append((field_name, winner.literal_value))
    return tuple(current)


def compare_versions(
    versions: Sequence[EntityVersion],
    field_values: Iterable[FieldValue],
    first_id: int,
    second_id: int,
    now: Optional[Timestamp] = None
) -> VersionComparison:
    """
    Two versions side by side with the current values of their value sets.

    Raises EntityNotFound when either id is not a version of the entity.
    """
    now = now or Timestamp.now()
    by_id = {v.version_id: v for v in versions}
    logical_name = versions[0].logical_name if versions else ""
    for version_id in (first_id, second_id):
        if version_id not in by_id:
            raise EntityNotFound(
                f"'{logical_name}' has no version {version_id}",
                logical_name=logical_name,
                version_id=version_id
            )

    values = tuple(field_values)
    return VersionComparison(
        logical_name=logical_name,
        evaluated_at=now,
        first=by_id[first_id],
        second=by_id[second_id],
        first_fields=_current_values(by_id[first_id], values, now),
        second_fields=_current_values(by_id[second_id], values, now)
    )


# =============================================================================
# PARAMETER HISTORY
# =============================================================================

def parameter_history(
    field_values: Iterable[FieldValue],
    config: Optional[ReconciliationConfig] = None,
    now: Optional[Timestamp] = None
) -> Tuple[FieldHistoryEntry, ...]:
    """
    Every tracked value with its predecessor and delta.

    Ordered by field name, then newest update first. First values are
    included with previous_value None.
    """
    config = config or ReconciliationConfig()
    now = now or Timestamp.now()
    values = tuple(field_values)
    resolver = PreviousValueResolver(values)
    calculator = DeltaCalculator(config.numeric_suffixes)

    entries: List[FieldHistoryEntry] = []
    for value in values:
        if not config.is_tracked(value.field_name) or value.updated_at is None:
            continue
        previous = resolver.resolve(value)
        previous_literal = previous.literal_value if previous is not None else None
        entries.append(FieldHistoryEntry(
            field_name=value.field_name,
            value=value,
            previous_value=previous_literal,
            delta=calculator.delta(value.field_name, previous_literal, value.literal_value),
            status=value.status_at(now)
        ))

    entries.sort(key=lambda e: (e.value.updated_at, e.value.field_value_id or 0), reverse=True)
    entries.sort(key=lambda e: e.field_name)
    return tuple(entries)
