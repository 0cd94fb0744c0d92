"""
HTTP Record Source

Fetches records as JSON from a rules service:

    GET {base_url}/rules/{logical_name}/records

    {
      "versions":     [{"version_id": 2, "logical_name": "...", "created_at": "...", ...}],
      "field_values": [{"field_value_id": 7, "field_value_set_id": 20, ...}]
    }

A 404 is an entity with no versions. Any other non-2xx status, a
transport failure or a payload that does not validate is
SourceUnavailable. A timeout is SourceTimeout; the bound covers the
whole fetch, body included, not each read separately.
"""

from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Mapping, Optional
from urllib.parse import quote
import logging
import time

import httpx
from pydantic import BaseModel, ValidationError

from ..contracts.base import Timestamp, SourceTimeout, SourceUnavailable
from ..contracts.records import EntityVersion, FieldValue, SourceSnapshot
from . import RecordSource

logger = logging.getLogger(__name__)


# =============================================================================
# WIRE MODELS
# =============================================================================

class VersionPayload(BaseModel):
    version_id: Optional[int] = None
    logical_name: str
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    effective_from: Optional[datetime] = None
    inactive_from: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    creation_code: Optional[int] = None
    field_value_set_id: Optional[int] = None
    source_logical_name: Optional[str] = None

    def to_record(self) -> EntityVersion:
        return EntityVersion(
            version_id=self.version_id,
            logical_name=self.logical_name,
            created_at=Timestamp.parse(self.created_at),
            created_by=self.created_by,
            effective_from=Timestamp.parse(self.effective_from),
            inactive_from=Timestamp.parse(self.inactive_from),
            verified_at=Timestamp.parse(self.verified_at),
            verified_by=self.verified_by,
            creation_code=self.creation_code,
            field_value_set_id=self.field_value_set_id,
            source_logical_name=self.source_logical_name
        )


class FieldValuePayload(BaseModel):
    field_value_id: Optional[int] = None
    field_value_set_id: int
    field_name: str
    literal_value: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    effective_from: Optional[datetime] = None
    inactive_from: Optional[datetime] = None

    def to_record(self) -> FieldValue:
        return FieldValue(
            field_value_id=self.field_value_id,
            field_value_set_id=self.field_value_set_id,
            field_name=self.field_name,
            literal_value=self.literal_value,
            updated_at=Timestamp.parse(self.updated_at),
            updated_by=self.updated_by,
            effective_from=Timestamp.parse(self.effective_from),
            inactive_from=Timestamp.parse(self.inactive_from)
        )


class RecordsPayload(BaseModel):
    versions: List[VersionPayload] = []
    field_values: List[FieldValuePayload] = []


# =============================================================================
# SOURCE
# =============================================================================

class HttpRecordSource(RecordSource):
    """
    Record source over a JSON HTTP endpoint.

    `transport` is passed straight to httpx.Client (tests use
    httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._headers: Dict[str, str] = dict(headers or {})
        self._transport = transport

    def fetch(self, logical_name: str, timeout: Optional[float] = None) -> SourceSnapshot:
        url = f"{self._base_url}/rules/{quote(logical_name, safe='')}/records"
        bound = timeout if timeout is not None else self._timeout
        deadline = time.monotonic() + bound

        try:
            with httpx.Client(timeout=bound, transport=self._transport) as client:
                with client.stream(
                    "GET", url, headers=self._headers, follow_redirects=True
                ) as response:
                    chunks: List[bytes] = []
                    for chunk in response.iter_bytes():
                        chunks.append(chunk)
                        if time.monotonic() > deadline:
                            raise self._timed_out(logical_name, bound)
        except httpx.TimeoutException as e:
            raise self._timed_out(logical_name, bound) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(
                f"fetch of '{logical_name}' failed: {e}", logical_name=logical_name, url=url
            ) from e

        # httpx bounds each read, not the whole exchange
        if time.monotonic() > deadline:
            raise self._timed_out(logical_name, bound)

        if response.status_code == 404:
            logger.info("rules service has no records for '%s'", logical_name)
            return SourceSnapshot(logical_name=logical_name, versions=(), field_values=())

        if response.status_code != 200:
            raise SourceUnavailable(
                f"HTTP {response.status_code} fetching '{logical_name}'",
                logical_name=logical_name,
                http_status=response.status_code
            )

        try:
            payload = RecordsPayload.model_validate_json(b"".join(chunks))
        except ValidationError as e:
            raise SourceUnavailable(
                f"invalid records payload for '{logical_name}': {e}",
                logical_name=logical_name
            ) from e

        logger.debug(
            "fetched '%s': %d versions, %d field values",
            logical_name, len(payload.versions), len(payload.field_values)
        )
        return SourceSnapshot(
            logical_name=logical_name,
            versions=tuple(v.to_record() for v in payload.versions),
            field_values=tuple(f.to_record() for f in payload.field_values),
            fetched_at=Timestamp.now()
        )

    @staticmethod
    def _timed_out(logical_name: str, bound: float) -> SourceTimeout:
        logger.warning("fetch of '%s' timed out after %.2fs", logical_name, bound)
        return SourceTimeout(
            f"fetch of '{logical_name}' exceeded {bound}s",
            logical_name=logical_name,
            timeout_seconds=bound
        )
