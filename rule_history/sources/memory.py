"""
In-memory record source, for fixtures and callers that already hold
their records.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple

from ..contracts.base import Timestamp
from ..contracts.records import EntityVersion, FieldValue, SourceSnapshot
from . import RecordSource


class InMemoryRecordSource(RecordSource):
    """
    Holds versions grouped by logical name and field values grouped by
    field-value-set. Never times out.
    """

    def __init__(
        self,
        versions: Iterable[EntityVersion] = (),
        field_values: Iterable[FieldValue] = ()
    ):
        self._versions: Dict[str, List[EntityVersion]] = {}
        self._values: Dict[int, List[FieldValue]] = {}
        self.add(versions, field_values)

    def add(
        self,
        versions: Iterable[EntityVersion] = (),
        field_values: Iterable[FieldValue] = ()
    ) -> None:
        for version in versions:
            self._versions.setdefault(version.logical_name, []).append(version)
        for value in field_values:
            self._values.setdefault(value.field_value_set_id, []).append(value)

    def logical_names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._versions))

    def fetch(self, logical_name: str, timeout: Optional[float] = None) -> SourceSnapshot:
        versions = tuple(self._versions.get(logical_name, ()))
        set_ids = {v.field_value_set_id for v in versions if v.field_value_set_id is not None}
        values = tuple(
            value
            for set_id in sorted(set_ids)
            for value in self._values.get(set_id, ())
        )
        return SourceSnapshot(
            logical_name=logical_name,
            versions=versions,
            field_values=values,
            fetched_at=Timestamp.now()
        )
