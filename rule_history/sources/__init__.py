"""
Record Sources

RESPONSIBILITY: Fetch versions and field values for one logical entity
ALLOWED INPUTS: A logical name and a fetch deadline
OUTPUTS: SourceSnapshot

WHAT THIS LAYER MUST NOT DO:
============================
- Normalize, order or filter records by validity
- Decide which version is active
- Retry on its own (SourceTimeout is safe to retry, the caller decides)

Every source raises SourceTimeout when its deadline expires and
SourceUnavailable for any other I/O failure.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from ..contracts.records import SourceSnapshot


class RecordSource(ABC):
    """A read-only supplier of source records."""

    @abstractmethod
    def fetch(self, logical_name: str, timeout: Optional[float] = None) -> SourceSnapshot:
        """
        Fetch every version of a logical entity and the field values of
        every field-value-set those versions reference.

        Args:
            logical_name: stable business name of the entity
            timeout: seconds before SourceTimeout (None = no bound)
        """

    def close(self) -> None:
        """Release held resources. Default: nothing to release."""


from .memory import InMemoryRecordSource  # noqa: E402
from .sqlite import SqliteRecordSource  # noqa: E402
from .http import HttpRecordSource  # noqa: E402

__all__ = [
    'RecordSource',
    'InMemoryRecordSource',
    'SqliteRecordSource',
    'HttpRecordSource',
]
