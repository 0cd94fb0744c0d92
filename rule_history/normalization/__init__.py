"""
Normalization Layer

RESPONSIBILITY: Turn raw versions and field values into ChangeRecords
ALLOWED INPUTS: EntityVersion, FieldValue (one logical entity)
OUTPUTS: NormalizationResult (records + skipped-record errors)

WHAT THIS LAYER MUST NOT DO:
============================
- Fetch or store data
- Order records (the timeline merger owns ordering)
- Decide which version is active
- Drop a malformed record silently

BOUNDARY ENFORCEMENT:
=====================
A malformed record aborts only its own normalization. The error is
collected and returned next to every record that did normalize.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Mapping, Optional

from ..config import ReconciliationConfig
from ..contracts.base import (
    Error, Timestamp, MalformedRecord, BULK_UPLOAD_METHOD
)
from ..contracts.records import (
    EntityVersion, FieldValue, VersionChange, FieldChange,
    ChangeRecord, NormalizationResult
)
from ..temporal.resolver import PreviousValueResolver
from ..temporal.delta import DeltaCalculator


def _owner_index(versions: Iterable[EntityVersion]) -> Dict[int, int]:
    """field_value_set_id -> highest owning version id."""
    owners: Dict[int, int] = {}
    for version in versions:
        if version.field_value_set_id is None or version.version_id is None:
            continue
        current = owners.get(version.field_value_set_id)
        if current is None or version.version_id > current:
            owners[version.field_value_set_id] = version.version_id
    return owners


class ChangeRecordNormalizer:
    """
    Converts both mutation pathways into the closed ChangeRecord type.

    Field changes are emitted only for tracked fields, and only when a
    predecessor exists (unless include_initial_values is configured).
    """

    def __init__(self, config: Optional[ReconciliationConfig] = None):
        self._config = config or ReconciliationConfig()
        self._delta = DeltaCalculator(self._config.numeric_suffixes)

    def normalize(
        self,
        versions: Iterable[EntityVersion],
        field_values: Iterable[FieldValue],
        pathways: Optional[Mapping[int, str]] = None,
        now: Optional[Timestamp] = None
    ) -> NormalizationResult:
        """
        Normalize one logical entity.

        Args:
            versions: every version of the entity
            field_values: field values in scope (tracked or not)
            pathways: optional field_value_id -> method label
            now: evaluation time for version status
        """
        versions = tuple(versions)
        field_values = tuple(field_values)
        now = now or Timestamp.now()
        pathways = pathways or {}
        logical_name = versions[0].logical_name if versions else ""

        records: List[ChangeRecord] = []
        skipped: List[Error] = []

        for version in versions:
            try:
                records.append(self.normalize_version(version, now))
            except MalformedRecord as e:
                skipped.append(e.error)

        resolver = PreviousValueResolver(field_values)
        owners = _owner_index(versions)

        for value in field_values:
            if not self._config.is_tracked(value.field_name):
                continue
            try:
                change = self.normalize_field_value(
                    value, resolver, owners, pathways, logical_name
                )
            except MalformedRecord as e:
                skipped.append(e.error)
                continue
            if change is not None:
                records.append(change)

        return NormalizationResult(records=tuple(records), skipped=tuple(skipped))

    def normalize_version(self, version: EntityVersion, now: Timestamp) -> VersionChange:
        if version.version_id is None:
            raise MalformedRecord(
                "version has no identifier",
                logical_name=version.logical_name
            )
        if version.created_at is None:
            raise MalformedRecord(
                f"version {version.version_id} has no creation timestamp",
                logical_name=version.logical_name,
                version_id=version.version_id
            )
        return VersionChange(
            version_id=version.version_id,
            logical_name=version.logical_name,
            timestamp=version.created_at,
            actor=version.created_by,
            method=version.creation_method.value,
            status=version.status_at(now)
        )

    def normalize_field_value(
        self,
        value: FieldValue,
        resolver: PreviousValueResolver,
        owners: Mapping[int, int],
        pathways: Mapping[int, str],
        logical_name: str = ""
    ) -> Optional[FieldChange]:
        """FieldChange for one value, or None for a first value."""
        if value.field_value_id is None:
            raise MalformedRecord(
                f"field value for '{value.field_name}' has no identifier",
                field_name=value.field_name,
                field_value_set_id=value.field_value_set_id
            )
        if value.updated_at is None:
            raise MalformedRecord(
                f"field value {value.field_value_id} has no update timestamp",
                field_name=value.field_name,
                field_value_id=value.field_value_id
            )

        previous = resolver.resolve(value)
        if previous is None and not self._config.include_initial_values:
            return None

        owner = owners.get(value.field_value_set_id)
        old_value = previous.literal_value if previous is not None else None
        return FieldChange(
            logical_name=logical_name,
            field_name=value.field_name,
            timestamp=value.updated_at,
            actor=value.updated_by,
            old_value=old_value,
            new_value=value.literal_value,
            owner_version_id=owner,
            field_value_id=value.field_value_id,
            delta=self._delta.delta(value.field_name, old_value, value.literal_value),
            method=pathways.get(value.field_value_id, BULK_UPLOAD_METHOD)
        )
