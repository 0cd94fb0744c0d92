"""
Read-only HTTP interface.

RESPONSIBILITY: Expose reconciliation reports as JSON over GET
MUST NOT: write to any source, or compute anything the engine does not
"""
