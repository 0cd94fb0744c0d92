"""
Engine Orchestration Module

Coordinates one reconciliation: fetch, normalize, merge, summarize,
project. Layers communicate only through contracts.

LAYER FLOW:
===========
1. Source: logical name -> SourceSnapshot (bounded by a timeout)
2. Scope: field values restricted to the configured FieldScope
3. Normalization: versions + field values -> ChangeRecords
4. Temporal: ChangeRecords -> timeline; versions -> current state
5. Query: timeline -> SummaryStatistics; versions -> VersionSummary

Version comparison reads the unscoped snapshot: both value sets are
needed whichever version is active.

FAILURE SEMANTICS:
==================
- SourceTimeout / SourceUnavailable / EntityNotFound propagate
- Malformed records and projector failures become report warnings;
  the rest of the report is still produced
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple
import logging

from .config import ReconciliationConfig
from .contracts.base import (
    Error, Result, Timestamp, FieldScope,
    ReconciliationError, NoActiveVersion, InvariantViolation, EntityNotFound
)
from .contracts.records import (
    ChangeRecord, CurrentStateSnapshot, FieldChange, FieldHistoryEntry,
    FieldValue, LifecycleEvent, SourceSnapshot, SummaryStatistics, VersionComparison,
    VersionSummary
)
from .normalization import ChangeRecordNormalizer
from .query import SummaryAggregator, compare_versions, parameter_history, summarize_versions
from .sources import RecordSource
from .temporal import CurrentStateProjector, TimelineMerger, lifecycle_events

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationReport:
    """Everything one reconciliation produces for a logical entity."""
    logical_name: str
    evaluated_at: Timestamp
    timeline: Tuple[ChangeRecord, ...]
    summary: SummaryStatistics
    current_state: Optional[CurrentStateSnapshot]
    lifecycle: Tuple[LifecycleEvent, ...]
    versions: VersionSummary
    parameters: Tuple[FieldHistoryEntry, ...]
    warnings: Tuple[Error, ...] = field(default_factory=tuple)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def scope_field_values(
    snapshot: SourceSnapshot,
    scope: FieldScope
) -> Tuple[FieldValue, ...]:
    """
    Field values feeding field-level history.

    ACTIVE_VERSION keeps the value sets of versions never soft-deleted;
    ALL_VERSIONS keeps every fetched value.
    """
    if scope is FieldScope.ALL_VERSIONS:
        return snapshot.field_values
    active_sets = {
        v.field_value_set_id for v in snapshot.versions
        if v.inactive_from is None and v.field_value_set_id is not None
    }
    return tuple(fv for fv in snapshot.field_values if fv.field_value_set_id in active_sets)


class ReconciliationEngine:
    """
    Rule history reconciliation over a record source.

    Each call works on its own immutable snapshot; the engine holds no
    mutable state, so calls may run concurrently.
    """

    def __init__(self, source: RecordSource, config: Optional[ReconciliationConfig] = None):
        self._source = source
        self._config = config or ReconciliationConfig()
        self._normalizer = ChangeRecordNormalizer(self._config)
        self._merger = TimelineMerger()
        self._aggregator = SummaryAggregator()
        self._projector = CurrentStateProjector()

    @property
    def config(self) -> ReconciliationConfig:
        return self._config

    @property
    def source(self) -> RecordSource:
        return self._source

    # =========================================================================
    # FETCH
    # =========================================================================

    def fetch(self, logical_name: str) -> SourceSnapshot:
        """Bounded fetch. Raises EntityNotFound for an unknown name."""
        snapshot = self._source.fetch(logical_name, timeout=self._config.source_timeout_seconds)
        if snapshot.is_empty:
            raise EntityNotFound(
                f"no versions found for '{logical_name}'", logical_name=logical_name
            )
        return snapshot

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def reconcile(
        self,
        logical_name: str,
        now: Optional[Timestamp] = None,
        as_of: Optional[Timestamp] = None,
        pathways: Optional[Mapping[int, str]] = None
    ) -> ReconciliationReport:
        """
        Fetch and reconcile one logical entity.

        Args:
            logical_name: stable business name
            now: evaluation time (defaults to the current instant)
            as_of: project the state at this instant instead of `now`
            pathways: optional field_value_id -> method label
        """
        snapshot = self.fetch(logical_name)
        return self.reconcile_snapshot(snapshot, now=now, as_of=as_of, pathways=pathways)

    def reconcile_snapshot(
        self,
        snapshot: SourceSnapshot,
        now: Optional[Timestamp] = None,
        as_of: Optional[Timestamp] = None,
        pathways: Optional[Mapping[int, str]] = None
    ) -> ReconciliationReport:
        """Reconcile an already-fetched snapshot. No I/O."""
        now = now or Timestamp.now()
        versions = snapshot.versions
        scoped = scope_field_values(snapshot, self._config.field_scope)

        normalized = self._normalizer.normalize(versions, scoped, pathways=pathways, now=now)
        warnings = list(snapshot.rejected) + list(normalized.skipped)
        for error in normalized.skipped:
            logger.warning("skipped record for '%s': %s", snapshot.logical_name, error.message)

        timeline = self._merger.merge(normalized.records)
        field_changes = [r for r in timeline if isinstance(r, FieldChange)]

        current = None
        try:
            if as_of is not None:
                current = self._projector.project_as_of(versions, snapshot.field_values, as_of)
            else:
                current = self._projector.project(versions, snapshot.field_values, now)
        except (NoActiveVersion, InvariantViolation) as e:
            logger.warning("no current state for '%s': %s", snapshot.logical_name, e)
            warnings.append(e.error)

        report = ReconciliationReport(
            logical_name=snapshot.logical_name,
            evaluated_at=as_of or now,
            timeline=timeline,
            summary=self._aggregator.summarize(timeline),
            current_state=current,
            lifecycle=lifecycle_events(versions, field_changes),
            versions=summarize_versions(versions, now),
            parameters=parameter_history(scoped, self._config, now),
            warnings=tuple(warnings)
        )
        logger.info(
            "reconciled '%s': %d changes, %d warnings",
            snapshot.logical_name, len(timeline), len(report.warnings)
        )
        return report

    def compare(
        self,
        logical_name: str,
        first_id: int,
        second_id: int,
        now: Optional[Timestamp] = None
    ) -> VersionComparison:
        """Two versions of one entity side by side. Field scope does not apply."""
        snapshot = self.fetch(logical_name)
        return compare_versions(
            snapshot.versions, snapshot.field_values, first_id, second_id, now or Timestamp.now()
        )

    def reconcile_many(
        self,
        logical_names: Iterable[str],
        now: Optional[Timestamp] = None
    ) -> Dict[str, Result]:
        """
        Reconcile independent entities in parallel.

        Every name maps to a Result: the report on success, the Error
        of the ReconciliationError that stopped it otherwise. All
        workers are joined before returning.
        """
        names: Sequence[str] = list(dict.fromkeys(logical_names))
        now = now or Timestamp.now()

        def run(name: str) -> Result:
            try:
                return Result.success(self.reconcile(name, now=now))
            except ReconciliationError as e:
                logger.warning("reconciliation of '%s' failed: %s", name, e)
                return Result.failure(e.error)

        with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
            results = list(executor.map(run, names))
        return dict(zip(names, results))
