"""
Rule History Reconciliation

Reconstructs the complete, chronologically ordered change history of a
logical rule whose state changes through two pathways: version forks
(a new rule row, the previous one soft-deleted) and in-place parameter
mutations (bulk uploads rewriting function parameter values).

LAYER STRUCTURE:
================

1. SOURCES (sources/)
   - Responsibility: Fetch versions and field values for one rule
   - Allowed inputs: Logical name, fetch timeout
   - Outputs: SourceSnapshot (immutable)
   - MUST NOT: Normalize, order, or decide what is active

2. NORMALIZATION (normalization/)
   - Responsibility: Versions and field values -> ChangeRecords
   - Allowed inputs: EntityVersion, FieldValue
   - Outputs: NormalizationResult (records + skipped-record errors)
   - MUST NOT: Order records, fetch data, drop records silently

3. TEMPORAL (temporal/)
   - Responsibility: Previous values, deltas, timeline merge, current state
   - Allowed inputs: ChangeRecords, versions, field values
   - Outputs: Ordered timeline, CurrentStateSnapshot, LifecycleEvents
   - MUST NOT: Mutate inputs, perform I/O

4. QUERY (query/)
   - Responsibility: Summary statistics and report views
   - Allowed inputs: Timelines, versions, field values
   - Outputs: SummaryStatistics, VersionSummary, FieldHistoryEntry
   - MUST NOT: Mutate records, fetch data

5. ENGINE (engine.py)
   - Responsibility: One reconciliation end to end, or many in parallel
   - Outputs: ReconciliationReport

6. INTERFACES (api/, report.py)
   - Read-only HTTP API and command-line reporter

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: All records are frozen dataclasses
- Deterministic: Same snapshot always yields the same timeline and state
- Explicit errors: Skipped records and projector failures are reported
- Soft deletes are validity intervals, never booleans
"""

__version__ = "0.1.0"
