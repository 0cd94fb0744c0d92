"""
API Mapper
==========

Transforms reconciliation contracts into JSON-ready dicts.
Timestamps are ISO-8601 UTC strings, deltas are fixed-point strings.
"""
from typing import Any, Dict, List, Optional

from ..contracts.base import Error, Timestamp
from ..contracts.records import (
    ChangeRecord, VersionChange, CurrentStateSnapshot, SummaryStatistics,
    LifecycleEvent, VersionSummary, FieldHistoryEntry, EntityVersion,
    VersionComparison, VersionDetail
)
from ..temporal.delta import format_delta


def _ts(ts: Optional[Timestamp]) -> Optional[str]:
    return ts.to_iso() if ts is not None else None


def map_change(record: ChangeRecord) -> Dict[str, Any]:
    """Map one ChangeRecord, tagged by `change_type`."""
    if isinstance(record, VersionChange):
        return {
            "change_type": "version",
            "timestamp": _ts(record.timestamp),
            "version_id": record.version_id,
            "actor": record.actor,
            "method": record.method,
            "status": record.status.value,
            "description": record.description,
        }
    return {
        "change_type": "field",
        "timestamp": _ts(record.timestamp),
        "version_id": record.owner_version_id,
        "actor": record.actor,
        "method": record.method,
        "field_name": record.field_name,
        "old_value": record.old_value,
        "new_value": record.new_value,
        "delta": format_delta(record.delta),
        "description": record.description,
    }


def map_timeline(records) -> List[Dict[str, Any]]:
    return [map_change(r) for r in records]


def map_summary(summary: SummaryStatistics) -> Dict[str, Any]:
    return {
        "total_changes": summary.total,
        "version_changes": summary.version_changes,
        "field_changes": summary.field_changes,
        "by_method": dict(summary.by_method),
        "first_change": _ts(summary.first_change),
        "last_change": _ts(summary.last_change),
        "elapsed_days": summary.elapsed_days,
        "distinct_actors": summary.distinct_actors,
        "avg_changes_per_day": round(summary.avg_per_day, 2),
    }


def map_current_state(state: CurrentStateSnapshot) -> Dict[str, Any]:
    version = state.active_version
    return {
        "logical_name": state.logical_name,
        "evaluated_at": _ts(state.evaluated_at),
        "version_id": version.version_id,
        "status": state.status.value,
        "created_at": _ts(version.created_at),
        "created_by": version.created_by,
        "effective_from": _ts(version.effective_from),
        "inactive_from": _ts(version.inactive_from),
        "creation_method": version.creation_method.value,
        "fields": [
            {
                "field_name": f.field_name,
                "value": f.literal_value,
                "updated_at": _ts(f.value.updated_at),
                "updated_by": f.value.updated_by,
                "days_since_last_update": f.days_since_last_update,
            }
            for f in state.fields
        ],
    }


def map_lifecycle(events) -> List[Dict[str, Any]]:
    return [_map_event(e) for e in events]


def _map_event(event: LifecycleEvent) -> Dict[str, Any]:
    return {
        "event_type": event.event_type.label,
        "timestamp": _ts(event.timestamp),
        "actor": event.actor,
        "method": event.method,
        "details": event.details,
        "version_id": event.version_id,
        "days_since_previous": event.days_since_previous,
    }


def map_parameters(entries) -> List[Dict[str, Any]]:
    return [_map_parameter(e) for e in entries]


def _map_parameter(entry: FieldHistoryEntry) -> Dict[str, Any]:
    value = entry.value
    return {
        "field_name": entry.field_name,
        "value": value.literal_value,
        "previous_value": entry.previous_value,
        "delta": format_delta(entry.delta),
        "status": entry.status.value,
        "updated_at": _ts(value.updated_at),
        "updated_by": value.updated_by,
        "effective_from": _ts(value.effective_from),
        "inactive_from": _ts(value.inactive_from),
        "field_value_set_id": value.field_value_set_id,
    }


def map_version_detail(detail: VersionDetail) -> Dict[str, Any]:
    version = detail.version
    return {
        "version_id": version.version_id,
        "created_at": _ts(version.created_at),
        "created_by": version.created_by,
        "effective_from": _ts(version.effective_from),
        "inactive_from": _ts(version.inactive_from),
        "status": detail.status.value,
        "verified": detail.is_verified,
        "verified_by": version.verified_by,
        "creation_method": version.creation_method.value,
        "source_logical_name": version.source_logical_name,
        "days_active": detail.days_active,
    }


def map_versions(summary: VersionSummary) -> Dict[str, Any]:
    return {
        "logical_name": summary.logical_name,
        "total_versions": summary.total_versions,
        "active_versions": summary.active_versions,
        "inactive_versions": summary.inactive_versions,
        "future_inactive_versions": summary.future_inactive_versions,
        "verified_versions": summary.verified_versions,
        "unverified_versions": summary.unverified_versions,
        "current_active_version_id": summary.current_active_version_id,
        "first_created": _ts(summary.first_created),
        "latest_created": _ts(summary.latest_created),
        "days_between": summary.days_between,
        "by_method": dict(summary.by_method),
        "missing_origin": list(summary.missing_origin),
        "versions": [map_version_detail(d) for d in summary.details],
    }


def _side(version: EntityVersion, fields) -> Dict[str, Any]:
    return {
        "version_id": version.version_id,
        "created_at": _ts(version.created_at),
        "effective_from": _ts(version.effective_from),
        "created_by": version.created_by,
        "creation_method": version.creation_method.value,
        "fields": dict(fields),
    }


def map_comparison(comparison: VersionComparison) -> Dict[str, Any]:
    return {
        "logical_name": comparison.logical_name,
        "evaluated_at": _ts(comparison.evaluated_at),
        "first": _side(comparison.first, comparison.first_fields),
        "second": _side(comparison.second, comparison.second_fields),
        "changed_fields": list(comparison.changed_fields),
    }


def map_error(error: Error) -> Dict[str, Any]:
    return {
        "code": error.code.name,
        "message": error.message,
        "timestamp": error.timestamp.isoformat(),
        "context": dict(error.context),
    }
