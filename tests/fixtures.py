"""
Test Fixtures

Deterministic rule histories for every test module.
All fixtures are explicit - no random generation.

BASE SCENARIO: BaseMargin_Conv30
================================
- V1 (101) created 2025-10-01 manually, soft-deleted 2025-11-15
- V2 (102) created 2025-11-15 by copy, active, verified 2025-11-16
- V2's value set (502): marginPoints 1.000 -> 1.250 (2025-10-30) -> 1.500 (2025-12-01)
- V2's value set also carries an untracked field (roundingMode)
- V1's value set (501) holds one marginPoints value and a bulk rewrite
"""

from datetime import datetime, timezone
from typing import Tuple

from rule_history.contracts import EntityVersion, FieldValue, Timestamp


def ts(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> Timestamp:
    return Timestamp(value=datetime(year, month, day, hour, minute, tzinfo=timezone.utc))


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

RULE_NAME = "BaseMargin_Conv30"

V1_CREATED = ts(2025, 10, 1, 9)
FIRST_BULK = ts(2025, 10, 30, 8)
FORK = ts(2025, 11, 15, 10)
V2_VERIFIED = ts(2025, 11, 16, 12)
SECOND_BULK = ts(2025, 12, 1, 8)
NOW = ts(2026, 1, 15)


# =============================================================================
# VERSIONS
# =============================================================================

V1 = EntityVersion(
    version_id=101,
    logical_name=RULE_NAME,
    created_at=V1_CREATED,
    created_by="alice",
    effective_from=V1_CREATED,
    inactive_from=FORK,
    creation_code=1,
    field_value_set_id=501,
)

V2 = EntityVersion(
    version_id=102,
    logical_name=RULE_NAME,
    created_at=FORK,
    created_by="bob",
    effective_from=FORK,
    inactive_from=None,
    verified_at=V2_VERIFIED,
    verified_by="carol",
    creation_code=2,
    field_value_set_id=502,
    source_logical_name=RULE_NAME,
)


# =============================================================================
# FIELD VALUES
# =============================================================================

MARGIN_1000 = FieldValue(
    field_value_id=9001,
    field_value_set_id=502,
    field_name="marginPoints",
    literal_value="1.000",
    updated_at=V1_CREATED,
    updated_by="alice",
    effective_from=V1_CREATED,
    inactive_from=FIRST_BULK,
)

MARGIN_1250 = FieldValue(
    field_value_id=9002,
    field_value_set_id=502,
    field_name="marginPoints",
    literal_value="1.250",
    updated_at=FIRST_BULK,
    updated_by="bulk_loader",
    effective_from=FIRST_BULK,
    inactive_from=SECOND_BULK,
)

MARGIN_1500 = FieldValue(
    field_value_id=9003,
    field_value_set_id=502,
    field_name="marginPoints",
    literal_value="1.500",
    updated_at=SECOND_BULK,
    updated_by="bulk_loader",
    effective_from=SECOND_BULK,
    inactive_from=None,
)

ROUNDING_HALF_UP = FieldValue(
    field_value_id=9004,
    field_value_set_id=502,
    field_name="roundingMode",
    literal_value="HALF_UP",
    updated_at=V1_CREATED,
    updated_by="alice",
    inactive_from=ts(2025, 11, 1),
)

ROUNDING_DOWN = FieldValue(
    field_value_id=9005,
    field_value_set_id=502,
    field_name="roundingMode",
    literal_value="DOWN",
    updated_at=ts(2025, 11, 1),
    updated_by="alice",
)

V1_MARGIN = FieldValue(
    field_value_id=8001,
    field_value_set_id=501,
    field_name="marginPoints",
    literal_value="0.750",
    updated_at=V1_CREATED,
    updated_by="alice",
    inactive_from=ts(2025, 10, 20),
)

V1_MARGIN_BULK = FieldValue(
    field_value_id=8002,
    field_value_set_id=501,
    field_name="marginPoints",
    literal_value="0.875",
    updated_at=ts(2025, 10, 20),
    updated_by="bulk_loader",
)


def base_versions() -> Tuple[EntityVersion, ...]:
    return (V1, V2)


def base_field_values() -> Tuple[FieldValue, ...]:
    return (
        MARGIN_1000, MARGIN_1250, MARGIN_1500,
        ROUNDING_HALF_UP, ROUNDING_DOWN,
        V1_MARGIN, V1_MARGIN_BULK,
    )


def active_set_values() -> Tuple[FieldValue, ...]:
    """Field values of V2's set only."""
    return tuple(v for v in base_field_values() if v.field_value_set_id == 502)


def make_version(
    version_id: int,
    created_at: Timestamp,
    inactive_from: Timestamp = None,
    effective_from: Timestamp = None,
    creation_code: int = 1,
    field_value_set_id: int = None,
    logical_name: str = RULE_NAME,
    created_by: str = "tester",
) -> EntityVersion:
    """Factory for ad-hoc versions."""
    return EntityVersion(
        version_id=version_id,
        logical_name=logical_name,
        created_at=created_at,
        created_by=created_by,
        effective_from=effective_from or created_at,
        inactive_from=inactive_from,
        creation_code=creation_code,
        field_value_set_id=field_value_set_id if field_value_set_id is not None else version_id * 10,
    )


def make_value(
    field_value_id: int,
    updated_at: Timestamp,
    literal_value: str,
    field_name: str = "marginPoints",
    field_value_set_id: int = 502,
    inactive_from: Timestamp = None,
    updated_by: str = "tester",
) -> FieldValue:
    """Factory for ad-hoc field values."""
    return FieldValue(
        field_value_id=field_value_id,
        field_value_set_id=field_value_set_id,
        field_name=field_name,
        literal_value=literal_value,
        updated_at=updated_at,
        updated_by=updated_by,
        effective_from=updated_at,
        inactive_from=inactive_from,
    )
