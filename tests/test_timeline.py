"""
Timeline Merger Tests
=====================

INVARIANTS TESTED:
1. Output is a permutation of the input (length preserved)
2. Newest first, VersionChange before FieldChange on an exact tie
3. Input order never changes the output
4. Lifecycle events carry calendar days since the previous event
"""

import random

import pytest

from rule_history.contracts import (
    FieldChange, InvariantViolation, LifecycleEventType, TimeRange,
    VersionChange, VersionStatus
)
from rule_history.normalization import ChangeRecordNormalizer
from rule_history.temporal import TimelineMerger, lifecycle_events, window

from tests.fixtures import (
    FIRST_BULK, FORK, NOW, SECOND_BULK, V1_CREATED, V2_VERIFIED,
    active_set_values, base_versions, ts
)


def _base_records():
    result = ChangeRecordNormalizer().normalize(base_versions(), active_set_values(), now=NOW)
    return result.records


def _vc(version_id, at):
    return VersionChange(
        version_id=version_id, logical_name="r", timestamp=at,
        actor=None, method="Manual", status=VersionStatus.ACTIVE
    )


def _fc(field_value_id, at, owner=1):
    return FieldChange(
        logical_name="r", field_name="Rate", timestamp=at, actor=None,
        old_value="1", new_value="2", owner_version_id=owner, field_value_id=field_value_id
    )


class TestMerge:

    def test_base_scenario_order(self):
        timeline = TimelineMerger().merge(_base_records())
        summary = [
            (type(r).__name__, r.timestamp) for r in timeline
        ]
        assert summary == [
            ("FieldChange", SECOND_BULK),
            ("VersionChange", FORK),
            ("FieldChange", FIRST_BULK),
            ("VersionChange", V1_CREATED),
        ]

    def test_length_preserved(self):
        records = _base_records()
        assert len(TimelineMerger().merge(records)) == len(records)

    def test_empty_input(self):
        assert TimelineMerger().merge([]) == ()
        assert TimelineMerger().merge() == ()

    def test_several_record_sets(self):
        records = _base_records()
        versions = [r for r in records if isinstance(r, VersionChange)]
        fields = [r for r in records if isinstance(r, FieldChange)]
        assert TimelineMerger().merge(versions, fields) == TimelineMerger().merge(records)

    def test_version_before_field_on_tie(self):
        at = ts(2025, 3, 1)
        timeline = TimelineMerger().merge([_fc(1, at), _vc(5, at)])
        assert isinstance(timeline[0], VersionChange)
        assert isinstance(timeline[1], FieldChange)

    def test_owner_id_descending_on_tie(self):
        at = ts(2025, 3, 1)
        timeline = TimelineMerger().merge([_vc(5, at), _vc(9, at), _vc(7, at)])
        assert [r.version_id for r in timeline] == [9, 7, 5]

    def test_field_value_id_descending_on_full_tie(self):
        at = ts(2025, 3, 1)
        timeline = TimelineMerger().merge([_fc(1, at), _fc(3, at), _fc(2, at)])
        assert [r.field_value_id for r in timeline] == [3, 2, 1]

    def test_duplicates_are_kept(self):
        at = ts(2025, 3, 1)
        record = _fc(1, at)
        assert len(TimelineMerger().merge([record, record])) == 2

    def test_input_order_is_irrelevant(self):
        records = list(_base_records())
        expected = TimelineMerger().merge(records)
        shuffler = random.Random(7)
        for _ in range(10):
            shuffler.shuffle(records)
            assert TimelineMerger().merge(records) == expected

    def test_rejects_non_change_records(self):
        with pytest.raises(InvariantViolation):
            TimelineMerger().merge(["not a record"])


class TestWindow:

    def test_window_is_inclusive(self):
        timeline = TimelineMerger().merge(_base_records())
        selected = window(timeline, TimeRange(start=FIRST_BULK, end=FORK))
        assert [r.timestamp for r in selected] == [FORK, FIRST_BULK]

    def test_window_outside_history(self):
        timeline = TimelineMerger().merge(_base_records())
        assert window(timeline, TimeRange(start=ts(2030, 1, 1), end=ts(2030, 2, 1))) == ()

    def test_open_bounds(self):
        timeline = TimelineMerger().merge(_base_records())
        assert [r.timestamp for r in window(timeline, TimeRange(start=FORK))] == [SECOND_BULK, FORK]
        assert [r.timestamp for r in window(timeline, TimeRange(end=FIRST_BULK))] == [FIRST_BULK, V1_CREATED]
        assert window(timeline, TimeRange()) == timeline

    def test_reversed_bounds_rejected(self):
        with pytest.raises(ValueError):
            TimeRange(start=FORK, end=FIRST_BULK)


class TestLifecycleEvents:

    def _events(self):
        fields = [r for r in _base_records() if isinstance(r, FieldChange)]
        return lifecycle_events(base_versions(), fields)

    def test_event_sequence_newest_first(self):
        events = self._events()
        assert [(e.event_type, e.timestamp) for e in events] == [
            (LifecycleEventType.PARAMETER_UPDATED, SECOND_BULK),
            (LifecycleEventType.RULE_VERIFIED, V2_VERIFIED),
            (LifecycleEventType.RULE_CREATED, FORK),
            (LifecycleEventType.RULE_INACTIVATED, FORK),
            (LifecycleEventType.PARAMETER_UPDATED, FIRST_BULK),
            (LifecycleEventType.RULE_CREATED, V1_CREATED),
        ]

    def test_days_since_previous(self):
        assert [e.days_since_previous for e in self._events()] == [15, 1, 0, 16, 29, None]

    def test_event_labels_and_details(self):
        events = self._events()
        assert events[0].event_type.label == "Parameter Updated"
        assert events[0].details == "marginPoints changed to: 1.500"
        assert events[1].actor == "carol"
        assert events[3].details == "RuleId: 101 marked inactive"
        assert events[-1].method == "Manual"

    def test_no_events(self):
        assert lifecycle_events((), ()) == ()
