"""
Contracts shared by every layer.

Layers import types from here, never from each other's implementations.
"""

from .base import (
    ErrorCode, Error, Result,
    ReconciliationError, MalformedRecord, NoActiveVersion, InvariantViolation,
    SourceTimeout, SourceUnavailable, EntityNotFound,
    Timestamp, TimeRange, ValidityInterval,
    CreationMethod, VersionStatus, RecordKind, FieldScope, BULK_UPLOAD_METHOD,
)
from .records import (
    EntityVersion, FieldValue, SourceSnapshot,
    VersionChange, FieldChange, ChangeRecord, NormalizationResult,
    SummaryStatistics, CurrentFieldValue, CurrentStateSnapshot,
    LifecycleEventType, LifecycleEvent, VersionSummary, FieldHistoryEntry,
    VersionDetail, VersionComparison,
)

__all__ = [
    'ErrorCode', 'Error', 'Result',
    'ReconciliationError', 'MalformedRecord', 'NoActiveVersion', 'InvariantViolation',
    'SourceTimeout', 'SourceUnavailable', 'EntityNotFound',
    'Timestamp', 'TimeRange', 'ValidityInterval',
    'CreationMethod', 'VersionStatus', 'RecordKind', 'FieldScope', 'BULK_UPLOAD_METHOD',
    'EntityVersion', 'FieldValue', 'SourceSnapshot',
    'VersionChange', 'FieldChange', 'ChangeRecord', 'NormalizationResult',
    'SummaryStatistics', 'CurrentFieldValue', 'CurrentStateSnapshot',
    'LifecycleEventType', 'LifecycleEvent', 'VersionSummary', 'FieldHistoryEntry',
    'VersionDetail', 'VersionComparison',
]
