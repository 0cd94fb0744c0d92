"""
Rule History Reporter CLI
=========================

Reconciles one rule straight from a rules database and prints a report.

COMMANDS:
- history:    merged change timeline, newest first
- summary:    change statistics
- current:    active version and current parameter values
- timeline:   lifecycle events with days between them
- parameters: every parameter value with previous value and delta
- versions:   version counts, per-version detail and creation-origin audit
- compare:    two versions side by side with their current parameters

USAGE:
    python -m rule_history.report --db rules.db [--json] COMMAND NAME
    python -m rule_history.report --db rules.db compare NAME FIRST_ID SECOND_ID
"""
import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config import ENV_PREFIX, ReconciliationConfig
from .contracts.base import FieldScope, ReconciliationError, Timestamp
from .contracts.records import VersionComparison
from .engine import ReconciliationEngine, ReconciliationReport
from .sources import SqliteRecordSource
from .temporal.delta import format_delta
from .api.mapper import (
    map_comparison, map_current_state, map_error, map_lifecycle, map_parameters,
    map_summary, map_timeline, map_versions
)

COMMANDS = ("history", "summary", "current", "timeline", "parameters", "versions", "compare")


def _fmt(ts: Optional[Timestamp]) -> str:
    return ts.value.strftime("%Y-%m-%d %H:%M:%S") if ts is not None else "-"


def _text(value: Optional[object]) -> str:
    return "NULL" if value is None else str(value)


# =============================================================================
# TEXT REPORTS
# =============================================================================

def print_history(report: ReconciliationReport):
    if not report.timeline:
        print("[!] No changes recorded.")
        return
    print("TIME                | VERSION | METHOD      | ACTOR        | CHANGE")
    print("-" * 100)
    for record in report.timeline:
        print(
            f"{_fmt(record.timestamp)} | {record.owner_id:<7} | {record.method:<11} | "
            f"{_text(record.actor)[:12]:<12} | {record.description}"
        )


def print_summary(report: ReconciliationReport):
    s = report.summary
    print(f"SUMMARY: {report.logical_name}")
    print("=" * 40)
    print(f"Total changes:        {s.total}")
    print(f"  Version changes:    {s.version_changes}")
    print(f"  Field changes:      {s.field_changes}")
    for method, count in s.by_method:
        print(f"  {method + ':':<20}{count}")
    print(f"First change:         {_fmt(s.first_change)}")
    print(f"Last change:          {_fmt(s.last_change)}")
    print(f"Days of history:      {s.elapsed_days}")
    print(f"Distinct actors:      {s.distinct_actors}")
    print(f"Avg changes per day:  {s.avg_per_day:.2f}")


def print_current(report: ReconciliationReport) -> bool:
    state = report.current_state
    if state is None:
        for warning in report.warnings:
            print(f"[FAIL] {warning.message}")
        return False
    version = state.active_version
    print(f"CURRENT: {state.logical_name} at {_fmt(state.evaluated_at)}")
    print("=" * 40)
    print(f"RuleId:     {version.version_id} ({state.status.value})")
    print(f"Created:    {_fmt(version.created_at)} by {_text(version.created_by)}")
    print(f"Method:     {version.creation_method.value}")
    print(f"Effective:  {_fmt(version.effective_from)}")
    print(f"Inactive:   {_fmt(version.inactive_from)}")
    for f in state.fields:
        days = f.days_since_last_update
        age = f"{days}d ago" if days is not None else "never updated"
        print(f"  {f.field_name:<20} = {_text(f.literal_value):<12} ({age})")
    return True


def print_timeline(report: ReconciliationReport):
    for event in report.lifecycle:
        gap = f"+{event.days_since_previous}d" if event.days_since_previous is not None else ""
        print(
            f"{_fmt(event.timestamp)} | {event.event_type.label:<17} | "
            f"{_text(event.actor)[:12]:<12} | {event.details} {gap}".rstrip()
        )


def print_parameters(report: ReconciliationReport):
    current = None
    for entry in report.parameters:
        if entry.field_name != current:
            current = entry.field_name
            print(f"\n{current}")
            print("-" * len(current))
        delta = format_delta(entry.delta) or ""
        print(
            f"  {_fmt(entry.value.updated_at)} | {_text(entry.previous_value):>10} -> "
            f"{_text(entry.value.literal_value):<10} {delta:>8} | {entry.status.value}"
        )


def print_versions(report: ReconciliationReport):
    v = report.versions
    print(f"VERSIONS: {v.logical_name}")
    print("=" * 40)
    print(f"Total:     {v.total_versions}")
    print(f"Active:    {v.active_versions} ({v.future_inactive_versions} future inactive)")
    print(f"Inactive:  {v.inactive_versions}")
    print(f"Verified:  {v.verified_versions} (unverified {v.unverified_versions})")
    print(f"Current:   {_text(v.current_active_version_id)}")
    print(f"First:     {_fmt(v.first_created)}")
    print(f"Latest:    {_fmt(v.latest_created)} ({v.days_between} days later)")
    for method, count in v.by_method:
        print(f"  {method + ':':<10}{count}")
    if v.details:
        print()
        print("RULEID | CREATED             | METHOD  | STATUS                   | VERIFIED | DAYS")
        print("-" * 90)
        for d in v.details:
            print(
                f"{_text(d.version_id):<6} | {_fmt(d.version.created_at):<19} | "
                f"{d.version.creation_method.value:<7} | {d.status.value:<24} | "
                f"{'yes' if d.is_verified else 'no':<8} | {_text(d.days_active)}"
            )
    if v.missing_origin:
        ids = ", ".join(str(i) for i in v.missing_origin)
        print(f"[WARN] No creation origin recorded for RuleId {ids}")


def print_comparison(comparison: VersionComparison):
    first, second = comparison.first, comparison.second
    print(f"COMPARE: {comparison.logical_name} RuleId {first.version_id} vs {second.version_id}")
    print("=" * 60)
    print(f"{'':<20} {_text(first.version_id):<18} {_text(second.version_id):<18}")
    print(f"{'Created':<20} {_fmt(first.created_at):<18.10} {_fmt(second.created_at):<18.10}")
    print(f"{'Created by':<20} {_text(first.created_by):<18} {_text(second.created_by):<18}")
    print(
        f"{'Method':<20} {first.creation_method.value:<18} "
        f"{second.creation_method.value:<18}"
    )
    left = dict(comparison.first_fields)
    right = dict(comparison.second_fields)
    changed = set(comparison.changed_fields)
    for name in sorted(set(left) | set(right)):
        marker = "  <- changed" if name in changed else ""
        shown = [_text(side[name]) if name in side else "-" for side in (left, right)]
        print(f"{name:<20} {shown[0]:<18} {shown[1]:<18}{marker}")


def to_json(command: str, report: ReconciliationReport) -> dict:
    if command == "history":
        return {"logical_name": report.logical_name, "changes": map_timeline(report.timeline)}
    if command == "summary":
        return {"logical_name": report.logical_name, **map_summary(report.summary)}
    if command == "current":
        if report.current_state is None:
            return {"logical_name": report.logical_name, "errors": [map_error(w) for w in report.warnings]}
        return map_current_state(report.current_state)
    if command == "timeline":
        return {"logical_name": report.logical_name, "events": map_lifecycle(report.lifecycle)}
    if command == "parameters":
        return {"logical_name": report.logical_name, "parameters": map_parameters(report.parameters)}
    return map_versions(report.versions)


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rule History Reporter")
    parser.add_argument(
        "--db", default=os.environ.get(ENV_PREFIX + "DB"),
        help="Path to the rules database (default: $RULE_HISTORY_DB)"
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument("--as-of", help="Evaluate state at this ISO-8601 instant")
    parser.add_argument(
        "--field-scope", choices=[s.value for s in FieldScope],
        help="Field values of the active version only, or of all versions"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")
    for command in COMMANDS:
        sub = subparsers.add_parser(command, help=f"Show {command}")
        sub.add_argument("name", help="Rule friendly name")
        if command == "compare":
            sub.add_argument("first", type=int, help="First RuleId")
            sub.add_argument("second", type=int, help="Second RuleId")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )

    if args.command not in COMMANDS:
        parser.print_help()
        return 2
    if not args.db:
        print("[!] No database: pass --db or set RULE_HISTORY_DB", file=sys.stderr)
        return 2

    try:
        config = ReconciliationConfig.from_env()
    except ValueError as e:
        print(f"[!] Invalid RULE_HISTORY_* setting: {e}", file=sys.stderr)
        return 2
    if args.field_scope:
        config = config.with_overrides(field_scope=FieldScope(args.field_scope))

    try:
        as_of = Timestamp.from_iso(args.as_of) if args.as_of else None
    except ValueError:
        print(f"[!] --as-of is not an ISO-8601 timestamp: {args.as_of}", file=sys.stderr)
        return 2

    try:
        engine = ReconciliationEngine(SqliteRecordSource(args.db), config)
        if args.command == "compare":
            comparison = engine.compare(args.name, args.first, args.second)
        else:
            report = engine.reconcile(args.name, as_of=as_of)
    except ReconciliationError as e:
        print(f"[FAIL] {e}", file=sys.stderr)
        return 1

    if args.command == "compare":
        if args.json:
            print(json.dumps(map_comparison(comparison), indent=2))
        else:
            print_comparison(comparison)
        return 0

    if args.json:
        print(json.dumps(to_json(args.command, report), indent=2))
        return 0 if args.command != "current" or report.current_state else 1

    if args.command != "current":
        for warning in report.warnings:
            print(f"[WARN] {warning.message}", file=sys.stderr)

    if args.command == "history":
        print_history(report)
    elif args.command == "summary":
        print_summary(report)
    elif args.command == "current":
        return 0 if print_current(report) else 1
    elif args.command == "timeline":
        print_timeline(report)
    elif args.command == "parameters":
        print_parameters(report)
    elif args.command == "versions":
        print_versions(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
