"""
Configuration

Frozen configuration objects. Changing configuration means building
a new instance; nothing reads configuration after construction.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Mapping, Optional
import os

from .contracts.base import FieldScope


# Parameters that bulk uploads are known to rewrite in place
DEFAULT_TRACKED_FIELDS: FrozenSet[str] = frozenset({
    'marginPoints', 'passThroughPoints', 'description',
    'PassThroughRate', 'MarginMultiplier', 'Rate',
    'NoteRateCap', 'DollarMarginTarget',
})

DEFAULT_NUMERIC_SUFFIXES: FrozenSet[str] = frozenset({'Points', 'Rate', 'Multiplier'})

ENV_PREFIX = "RULE_HISTORY_"


def _split(raw: str) -> FrozenSet[str]:
    return frozenset(part.strip() for part in raw.split(',') if part.strip())


@dataclass(frozen=True)
class ReconciliationConfig:
    """
    Configuration for one reconciliation run.

    tracked_fields: field names that produce FieldChange records
    numeric_suffixes: field-name suffixes eligible for numeric deltas
    field_scope: which field-value-sets feed field-level history
    include_initial_values: also emit first values (old_value None)
    source_timeout_seconds: bound on the data-source fetch
    max_workers: parallelism for multi-entity reconciliation
    """
    tracked_fields: FrozenSet[str] = DEFAULT_TRACKED_FIELDS
    numeric_suffixes: FrozenSet[str] = DEFAULT_NUMERIC_SUFFIXES
    field_scope: FieldScope = FieldScope.ACTIVE_VERSION
    include_initial_values: bool = False
    source_timeout_seconds: float = 30.0
    max_workers: int = 4

    def __post_init__(self):
        if self.source_timeout_seconds <= 0:
            raise ValueError("source_timeout_seconds must be positive")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    def is_tracked(self, field_name: str) -> bool:
        return field_name in self.tracked_fields

    def with_overrides(self, **changes) -> ReconciliationConfig:
        return replace(self, **changes)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> ReconciliationConfig:
        """Build configuration from RULE_HISTORY_* environment variables."""
        env = os.environ if environ is None else environ
        changes = {}

        tracked = env.get(ENV_PREFIX + "TRACKED_FIELDS")
        if tracked:
            changes['tracked_fields'] = _split(tracked)

        suffixes = env.get(ENV_PREFIX + "NUMERIC_SUFFIXES")
        if suffixes:
            changes['numeric_suffixes'] = _split(suffixes)

        scope = env.get(ENV_PREFIX + "FIELD_SCOPE")
        if scope:
            changes['field_scope'] = FieldScope(scope.strip().lower())

        initial = env.get(ENV_PREFIX + "INCLUDE_INITIAL_VALUES")
        if initial:
            changes['include_initial_values'] = initial.strip().lower() in ("1", "true", "yes")

        timeout = env.get(ENV_PREFIX + "SOURCE_TIMEOUT")
        if timeout:
            changes['source_timeout_seconds'] = float(timeout)

        workers = env.get(ENV_PREFIX + "MAX_WORKERS")
        if workers:
            changes['max_workers'] = int(workers)

        return ReconciliationConfig(**changes)


@dataclass(frozen=True)
class SourceConfig:
    """Where records come from."""
    database_path: Optional[str] = None
    base_url: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> SourceConfig:
        env = os.environ if environ is None else environ
        return SourceConfig(
            database_path=env.get(ENV_PREFIX + "DB"),
            base_url=env.get(ENV_PREFIX + "BASE_URL"),
        )
