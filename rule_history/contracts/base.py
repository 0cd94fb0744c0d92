"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Normalization errors
    MALFORMED_RECORD = auto()

    # Projection errors
    NO_ACTIVE_VERSION = auto()
    INVARIANT_VIOLATION = auto()

    # Source errors
    SOURCE_TIMEOUT = auto()
    SOURCE_UNAVAILABLE = auto()
    ENTITY_NOT_FOUND = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: object) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple((k, str(v)) for k, v in sorted(context.items()))
        )

    def context_value(self, key: str) -> Optional[str]:
        for k, v in self.context:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


# =============================================================================
# EXCEPTIONS (carry an Error record)
# =============================================================================

class ReconciliationError(Exception):
    """Base exception. The attached Error is the queryable form."""

    code: ErrorCode = ErrorCode.INVARIANT_VIOLATION

    def __init__(self, message: str, **context: object):
        super().__init__(message)
        self.error = Error.create(self.code, message, **context)


class MalformedRecord(ReconciliationError):
    """Input record is missing a required timestamp or identifier."""
    code = ErrorCode.MALFORMED_RECORD


class NoActiveVersion(ReconciliationError):
    """Zero or ambiguous active version for a logical entity."""
    code = ErrorCode.NO_ACTIVE_VERSION


class InvariantViolation(ReconciliationError):
    """Input to a pure component breaks a data-model invariant."""
    code = ErrorCode.INVARIANT_VIOLATION


class SourceTimeout(ReconciliationError):
    """External fetch exceeded its bound. Safe to retry."""
    code = ErrorCode.SOURCE_TIMEOUT


class SourceUnavailable(ReconciliationError):
    """External fetch failed for a reason other than a timeout."""
    code = ErrorCode.SOURCE_UNAVAILABLE


class EntityNotFound(ReconciliationError):
    """Source holds no version for the requested logical name."""
    code = ErrorCode.ENTITY_NOT_FOUND


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True, order=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Naive datetimes are taken as UTC, aware ones converted
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))
        else:
            object.__setattr__(self, 'value', self.value.astimezone(timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.strip().replace('Z', '+00:00'))
        return Timestamp(value=dt)

    @staticmethod
    def parse(raw: object) -> Optional[Timestamp]:
        """Lenient parse for source rows: None/blank stay None."""
        if raw is None:
            return None
        if isinstance(raw, Timestamp):
            return raw
        if isinstance(raw, datetime):
            return Timestamp(value=raw)
        text = str(raw).strip()
        if not text:
            return None
        return Timestamp.from_iso(text)

    def to_iso(self) -> str:
        return self.value.isoformat()

    def days_until(self, other: Timestamp) -> int:
        """Calendar-day boundaries crossed from self to other."""
        return (other.value.date() - self.value.date()).days

    def whole_days_until(self, other: Timestamp) -> int:
        """floor((other - self) / 1 day)."""
        return (other.value - self.value).days


@dataclass(frozen=True)
class TimeRange:
    """
    Immutable time range for queries (inclusive on both ends).
    A missing bound leaves that side open.
    """
    start: Optional[Timestamp] = None
    end: Optional[Timestamp] = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start.value > self.end.value:
            raise ValueError("TimeRange start must be before or equal to end")

    def contains(self, timestamp: Timestamp) -> bool:
        if self.start is not None and timestamp.value < self.start.value:
            return False
        return self.end is None or timestamp.value <= self.end.value


@dataclass(frozen=True)
class ValidityInterval:
    """
    Temporal validity [effective_from, inactive_from).

    An open start means "valid since forever", an open end means
    the record has not been soft-deleted.
    """
    effective_from: Optional[Timestamp]
    inactive_from: Optional[Timestamp]

    def contains(self, at: Timestamp) -> bool:
        if self.effective_from is not None and at < self.effective_from:
            return False
        return self.inactive_from is None or at < self.inactive_from

    def inactive_after(self, at: Timestamp) -> bool:
        """Soft-delete is scheduled but has not happened yet at `at`."""
        return self.inactive_from is not None and self.inactive_from > at


# =============================================================================
# LIFECYCLE STATES (Explicit, no implicit transitions)
# =============================================================================

class CreationMethod(Enum):
    """
    How a rule version came into existence.

    Built from the integer creation-process code. Missing or unmapped
    codes map to UNKNOWN explicitly.
    """
    MANUAL = "Manual"
    COPY = "Copy"
    BULK = "Bulk"
    UNKNOWN = "Unknown"

    @staticmethod
    def from_code(code: Optional[int]) -> CreationMethod:
        return _CREATION_CODES.get(code, CreationMethod.UNKNOWN)


_CREATION_CODES = {
    1: CreationMethod.MANUAL,
    2: CreationMethod.COPY,
    3: CreationMethod.BULK,
}

# Method label carried by field-level changes when no pathway metadata exists
BULK_UPLOAD_METHOD = "Bulk Upload"


class VersionStatus(Enum):
    """
    Derived status of a versioned record at an evaluation time.
    ACTIVE -> INACTIVE is one-way; ACTIVE_FUTURE_INACTIVE is a view state.
    """
    ACTIVE = "Active"
    ACTIVE_FUTURE_INACTIVE = "Active (Future Inactive)"
    INACTIVE = "Inactive"

    @staticmethod
    def evaluate(inactive_from: Optional[Timestamp], at: Timestamp) -> VersionStatus:
        if inactive_from is None:
            return VersionStatus.ACTIVE
        if inactive_from > at:
            return VersionStatus.ACTIVE_FUTURE_INACTIVE
        return VersionStatus.INACTIVE

    @property
    def is_active(self) -> bool:
        return self is not VersionStatus.INACTIVE


class RecordKind(Enum):
    """ChangeRecord variant tag. Value is the tie-break order."""
    VERSION_CHANGE = 0
    FIELD_CHANGE = 1


class FieldScope(Enum):
    """Which field-value-sets feed field-level history."""
    ACTIVE_VERSION = "active_version"
    ALL_VERSIONS = "all_versions"
