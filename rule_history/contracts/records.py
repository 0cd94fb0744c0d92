"""
Record Contracts

Input records (as fetched from the data source) and the derived
records every layer exchanges.

TWO MUTATION PATHWAYS:
======================
1. Version fork: a new EntityVersion row, the previous one soft-deleted
2. In-place mutation: a new FieldValue supersedes the previous one on
   the same field-value-set, no new version

Both are normalized into one closed type, ChangeRecord, so that the
merger and aggregators never branch on table of origin.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from .base import (
    Timestamp, ValidityInterval, CreationMethod, VersionStatus, RecordKind,
    Error, BULK_UPLOAD_METHOD
)


# =============================================================================
# SOURCE RECORDS (as fetched, may be incomplete)
# =============================================================================

@dataclass(frozen=True)
class EntityVersion:
    """
    One concrete row representing a full fork of a logical entity.

    Timestamps are Optional because sources may deliver incomplete
    rows; the normalizer rejects those explicitly.
    """
    version_id: Optional[int]
    logical_name: str
    created_at: Optional[Timestamp]
    created_by: Optional[str] = None
    effective_from: Optional[Timestamp] = None
    inactive_from: Optional[Timestamp] = None
    verified_at: Optional[Timestamp] = None
    verified_by: Optional[str] = None
    creation_code: Optional[int] = None
    field_value_set_id: Optional[int] = None
    source_logical_name: Optional[str] = None

    @property
    def creation_method(self) -> CreationMethod:
        return CreationMethod.from_code(self.creation_code)

    @property
    def validity(self) -> ValidityInterval:
        return ValidityInterval(self.effective_from, self.inactive_from)

    def status_at(self, at: Timestamp) -> VersionStatus:
        return VersionStatus.evaluate(self.inactive_from, at)


@dataclass(frozen=True)
class FieldValue:
    """
    A value of one named field attached to a field-value-set.

    Append-only: a superseded value gets inactive_from set, it is
    never overwritten or removed.
    """
    field_value_id: Optional[int]
    field_value_set_id: int
    field_name: str
    literal_value: Optional[str]
    updated_at: Optional[Timestamp]
    updated_by: Optional[str] = None
    effective_from: Optional[Timestamp] = None
    inactive_from: Optional[Timestamp] = None

    @property
    def validity(self) -> ValidityInterval:
        return ValidityInterval(self.effective_from or self.updated_at, self.inactive_from)

    @property
    def chain_key(self) -> Tuple[int, str]:
        """Identity of the value chain this value belongs to."""
        return (self.field_value_set_id, self.field_name)

    def status_at(self, at: Timestamp) -> VersionStatus:
        return VersionStatus.evaluate(self.inactive_from, at)


@dataclass(frozen=True)
class SourceSnapshot:
    """
    Immutable snapshot of everything fetched for one logical entity.

    rejected holds one MALFORMED_RECORD error per source row that could
    not be read into a record at all.
    """
    logical_name: str
    versions: Tuple[EntityVersion, ...]
    field_values: Tuple[FieldValue, ...]
    fetched_at: Timestamp = field(default_factory=Timestamp.now)
    rejected: Tuple[Error, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.versions and not self.rejected


# =============================================================================
# CHANGE RECORDS (derived, never persisted)
# =============================================================================

@dataclass(frozen=True)
class VersionChange:
    """A version-fork event."""
    version_id: int
    logical_name: str
    timestamp: Timestamp
    actor: Optional[str]
    method: str
    status: VersionStatus

    kind = RecordKind.VERSION_CHANGE

    @property
    def owner_id(self) -> int:
        return self.version_id

    @property
    def description(self) -> str:
        suffix = {
            CreationMethod.BULK.value: " via bulk upload",
            CreationMethod.COPY.value: " via copy",
        }.get(self.method, " manually")
        return "New rule version created" + suffix


@dataclass(frozen=True)
class FieldChange:
    """An in-place field mutation event."""
    logical_name: str
    field_name: str
    timestamp: Timestamp
    actor: Optional[str]
    old_value: Optional[str]
    new_value: Optional[str]
    owner_version_id: Optional[int]
    field_value_id: int = 0
    delta: Optional[Decimal] = None
    method: str = BULK_UPLOAD_METHOD

    kind = RecordKind.FIELD_CHANGE

    @property
    def owner_id(self) -> int:
        return self.owner_version_id if self.owner_version_id is not None else -1

    @property
    def description(self) -> str:
        old = self.old_value if self.old_value is not None else "NULL"
        new = self.new_value if self.new_value is not None else "NULL"
        return f"Bulk update: {self.field_name} changed from {old} to {new}"


ChangeRecord = Union[VersionChange, FieldChange]

CHANGE_RECORD_TYPES = (VersionChange, FieldChange)


@dataclass(frozen=True)
class NormalizationResult:
    """
    Normalizer output with partial-failure semantics.
    Skipped records are listed, never silently dropped.
    """
    records: Tuple[ChangeRecord, ...]
    skipped: Tuple[Error, ...] = field(default_factory=tuple)

    @property
    def has_warnings(self) -> bool:
        return bool(self.skipped)


# =============================================================================
# DERIVED VIEWS
# =============================================================================

@dataclass(frozen=True)
class SummaryStatistics:
    """Statistics over a merged timeline."""
    total: int
    version_changes: int
    field_changes: int
    by_method: Tuple[Tuple[str, int], ...]
    first_change: Optional[Timestamp]
    last_change: Optional[Timestamp]
    elapsed_days: int
    distinct_actors: int
    avg_per_day: float

    def method_count(self, method: CreationMethod) -> int:
        return dict(self.by_method).get(method.value, 0)


@dataclass(frozen=True)
class CurrentFieldValue:
    """Current value of one field in the active field-value-set."""
    field_name: str
    value: FieldValue
    days_since_last_update: Optional[int]

    @property
    def literal_value(self) -> Optional[str]:
        return self.value.literal_value


@dataclass(frozen=True)
class CurrentStateSnapshot:
    """Point-in-time effective state of a logical entity."""
    logical_name: str
    evaluated_at: Timestamp
    active_version: EntityVersion
    status: VersionStatus
    fields: Tuple[CurrentFieldValue, ...]

    @property
    def current_version_id(self) -> Optional[int]:
        return self.active_version.version_id

    def field_map(self) -> Dict[str, Optional[str]]:
        return {f.field_name: f.literal_value for f in self.fields}

    def get(self, field_name: str) -> Optional[CurrentFieldValue]:
        for f in self.fields:
            if f.field_name == field_name:
                return f
        return None


class LifecycleEventType(Enum):
    """Lifecycle event types. Value is the same-instant priority."""
    RULE_CREATED = 1
    RULE_INACTIVATED = 2
    RULE_VERIFIED = 3
    PARAMETER_UPDATED = 4

    @property
    def label(self) -> str:
        return _EVENT_LABELS[self]


_EVENT_LABELS = {
    LifecycleEventType.RULE_CREATED: "Rule Created",
    LifecycleEventType.RULE_INACTIVATED: "Rule Inactivated",
    LifecycleEventType.RULE_VERIFIED: "Rule Verified",
    LifecycleEventType.PARAMETER_UPDATED: "Parameter Updated",
}


@dataclass(frozen=True)
class LifecycleEvent:
    """One point on the chronological lifecycle of a rule."""
    event_type: LifecycleEventType
    timestamp: Timestamp
    actor: Optional[str]
    method: Optional[str]
    details: str
    version_id: Optional[int]
    days_since_previous: Optional[int] = None


@dataclass(frozen=True)
class VersionDetail:
    """
    One version as listed in a version report.
    days_active runs from creation to soft-delete, or to now while open.
    """
    version: EntityVersion
    status: VersionStatus
    days_active: Optional[int]

    @property
    def version_id(self) -> Optional[int]:
        return self.version.version_id

    @property
    def is_verified(self) -> bool:
        return self.version.verified_at is not None


@dataclass(frozen=True)
class VersionSummary:
    """
    Version-level counts for a logical entity.

    active_versions includes future-inactive ones; future_inactive_versions
    counts that subset on its own.
    """
    logical_name: str
    total_versions: int
    active_versions: int
    inactive_versions: int
    future_inactive_versions: int
    verified_versions: int
    unverified_versions: int
    current_active_version_id: Optional[int]
    first_created: Optional[Timestamp]
    latest_created: Optional[Timestamp]
    days_between: int
    by_method: Tuple[Tuple[str, int], ...]
    missing_origin: Tuple[int, ...]
    details: Tuple[VersionDetail, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VersionComparison:
    """Two versions of one entity side by side, with their current field values."""
    logical_name: str
    evaluated_at: Timestamp
    first: EntityVersion
    second: EntityVersion
    first_fields: Tuple[Tuple[str, Optional[str]], ...]
    second_fields: Tuple[Tuple[str, Optional[str]], ...]

    @property
    def changed_fields(self) -> Tuple[str, ...]:
        """Field names whose current value differs, or that only one side has."""
        first = dict(self.first_fields)
        second = dict(self.second_fields)
        return tuple(
            name for name in sorted(set(first) | set(second))
            if name not in first or name not in second or first[name] != second[name]
        )


@dataclass(frozen=True)
class FieldHistoryEntry:
    """One value in the history of a field, with its predecessor."""
    field_name: str
    value: FieldValue
    previous_value: Optional[str]
    delta: Optional[Decimal]
    status: VersionStatus

    @property
    def is_current(self) -> bool:
        return self.value.inactive_from is None
