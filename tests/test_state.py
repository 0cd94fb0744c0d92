"""
Current-State Projector Tests
=============================

INVARIANTS TESTED:
1. Open-ended versions beat future-inactive ones
2. A unique latest effective_from breaks ties, otherwise NoActiveVersion
3. Only the active version's value set feeds current fields
4. A field with several current values fails fast
5. As-of projection uses validity-interval containment
"""

import pytest

from rule_history.contracts import (
    ErrorCode, InvariantViolation, NoActiveVersion, VersionStatus
)
from rule_history.temporal import CurrentStateProjector, select_current

from tests.fixtures import (
    FORK, NOW, V1, V2, base_field_values, base_versions, make_value,
    make_version, ts
)


class TestProject:

    def test_base_scenario(self):
        snapshot = CurrentStateProjector().project(base_versions(), base_field_values(), NOW)

        assert snapshot.current_version_id == 102
        assert snapshot.status == VersionStatus.ACTIVE
        assert snapshot.evaluated_at == NOW
        assert snapshot.field_map() == {"marginPoints": "1.500", "roundingMode": "DOWN"}

    def test_days_since_last_update(self):
        snapshot = CurrentStateProjector().project(base_versions(), base_field_values(), NOW)
        # 2025-12-01 08:00 -> 2026-01-15 00:00 is 44 whole days
        assert snapshot.get("marginPoints").days_since_last_update == 44
        assert snapshot.get("missing") is None

    def test_other_sets_do_not_leak(self):
        snapshot = CurrentStateProjector().project(base_versions(), base_field_values(), NOW)
        assert all(f.value.field_value_set_id == 502 for f in snapshot.fields)

    def test_future_inactive_version_is_active(self):
        version = make_version(1, ts(2025, 1, 1), inactive_from=ts(2026, 6, 1))
        snapshot = CurrentStateProjector().project((version,), (), NOW)
        assert snapshot.current_version_id == 1
        assert snapshot.status == VersionStatus.ACTIVE_FUTURE_INACTIVE

    def test_open_ended_beats_future_inactive(self):
        scheduled = make_version(1, ts(2025, 1, 1), inactive_from=ts(2026, 6, 1))
        open_ended = make_version(2, ts(2025, 6, 1))
        snapshot = CurrentStateProjector().project((scheduled, open_ended), (), NOW)
        assert snapshot.current_version_id == 2

    def test_not_yet_effective_future_inactive_is_skipped(self):
        early = make_version(1, ts(2025, 1, 1), inactive_from=ts(2026, 6, 1))
        pending = make_version(
            2, ts(2025, 6, 1), effective_from=ts(2026, 3, 1), inactive_from=ts(2026, 9, 1)
        )
        snapshot = CurrentStateProjector().project((early, pending), (), NOW)
        assert snapshot.current_version_id == 1

    def test_tie_broken_by_latest_effective_from(self):
        older = make_version(1, ts(2025, 1, 1))
        newer = make_version(2, ts(2025, 6, 1))
        snapshot = CurrentStateProjector().project((older, newer), (), NOW)
        assert snapshot.current_version_id == 2

    def test_ambiguous_versions_raise(self):
        same = ts(2025, 1, 1)
        versions = (make_version(1, same), make_version(2, same))
        with pytest.raises(NoActiveVersion) as excinfo:
            CurrentStateProjector().project(versions, (), NOW)
        assert excinfo.value.error.code == ErrorCode.NO_ACTIVE_VERSION
        assert excinfo.value.error.context_value("candidates") == "2"

    def test_all_inactive_raises(self):
        versions = (make_version(1, ts(2025, 1, 1), inactive_from=ts(2025, 2, 1)),)
        with pytest.raises(NoActiveVersion) as excinfo:
            CurrentStateProjector().project(versions, (), NOW)
        assert excinfo.value.error.context_value("candidates") == "0"

    def test_no_versions_raise(self):
        with pytest.raises(NoActiveVersion):
            CurrentStateProjector().project((), (), NOW)

    def test_two_current_values_fail_fast(self):
        values = (
            make_value(1, ts(2025, 1, 1), "1.0"),
            make_value(2, ts(2025, 2, 1), "2.0"),
        )
        with pytest.raises(InvariantViolation) as excinfo:
            CurrentStateProjector().project((V2,), values, NOW)
        assert excinfo.value.error.context_value("field_name") == "marginPoints"

    def test_field_with_no_current_value_is_omitted(self):
        values = (make_value(1, ts(2025, 1, 1), "1.0", inactive_from=ts(2025, 2, 1)),)
        snapshot = CurrentStateProjector().project((V2,), values, NOW)
        assert snapshot.fields == ()

    def test_inputs_not_mutated(self):
        versions = base_versions()
        values = base_field_values()
        CurrentStateProjector().project(versions, values, NOW)
        assert versions == base_versions()
        assert values == base_field_values()


class TestProjectAsOf:

    def test_before_the_fork(self):
        snapshot = CurrentStateProjector().project_as_of(
            base_versions(), base_field_values(), ts(2025, 11, 1)
        )
        assert snapshot.current_version_id == 101
        assert snapshot.status == VersionStatus.ACTIVE_FUTURE_INACTIVE
        assert snapshot.field_map() == {"marginPoints": "0.875"}

    def test_at_the_fork_instant(self):
        snapshot = CurrentStateProjector().project_as_of(base_versions(), base_field_values(), FORK)
        assert snapshot.current_version_id == 102
        assert snapshot.get("marginPoints").literal_value == "1.250"

    def test_between_bulk_updates(self):
        snapshot = CurrentStateProjector().project_as_of(
            base_versions(), base_field_values(), ts(2025, 11, 20)
        )
        assert snapshot.get("marginPoints").literal_value == "1.250"

    def test_before_any_version(self):
        with pytest.raises(NoActiveVersion):
            CurrentStateProjector().project_as_of(base_versions(), (), ts(2024, 1, 1))


class TestSelectCurrent:

    def test_returns_candidate_count(self):
        winner, count = select_current((V1, V2), NOW)
        assert winner == V2
        assert count == 1

    def test_nothing_selected(self):
        winner, count = select_current((V1,), NOW)
        assert winner is None
        assert count == 0
