"""
SQLite Record Source

Reads the rules-engine tables:

    rule                       one row per rule version
    rule_creation_origin       how a version was created (1 Manual, 2 Copy, 3 Bulk)
    function_parameter         parameter names
    expression_term            literal values
    function_parameter_value   append-only parameter values per value set

PRINCIPLES:
===========
1. Read-only on fetch, one connection per call
2. The fetch deadline is enforced inside SQLite (progress handler)
3. Timestamps stored as ISO-8601 text, UTC
"""

from __future__ import annotations
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar, Union
import logging
import sqlite3
import time

from ..contracts.base import Error, ErrorCode, Timestamp, SourceTimeout, SourceUnavailable
from ..contracts.records import EntityVersion, FieldValue, SourceSnapshot
from . import RecordSource

logger = logging.getLogger(__name__)

# SQLite VM instructions between deadline checks
PROGRESS_INTERVAL = 1000

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS rule (
        rule_id INTEGER PRIMARY KEY,
        friendly_name TEXT NOT NULL,
        creation_date TEXT,
        updated_by TEXT,
        effective_date TEXT,
        inactive_date TEXT,
        verified_date TEXT,
        verified_by TEXT,
        function_parameter_value_set_id INTEGER,
        source_friendly_name TEXT
    );

    CREATE TABLE IF NOT EXISTS rule_creation_origin (
        rule_id INTEGER PRIMARY KEY,
        creation_process_type_id INTEGER NOT NULL,
        FOREIGN KEY (rule_id) REFERENCES rule(rule_id)
    );

    CREATE TABLE IF NOT EXISTS function_parameter (
        function_parameter_id INTEGER PRIMARY KEY,
        parameter_name TEXT NOT NULL UNIQUE
    );

    CREATE TABLE IF NOT EXISTS expression_term (
        expression_term_id INTEGER PRIMARY KEY,
        literal_value TEXT
    );

    CREATE TABLE IF NOT EXISTS function_parameter_value (
        function_parameter_value_id INTEGER PRIMARY KEY,
        function_parameter_value_set_id INTEGER NOT NULL,
        function_parameter_id INTEGER NOT NULL,
        expression_term_id INTEGER NOT NULL,
        update_date TEXT,
        updated_by TEXT,
        effective_date TEXT,
        inactive_date TEXT,
        FOREIGN KEY (function_parameter_id) REFERENCES function_parameter(function_parameter_id),
        FOREIGN KEY (expression_term_id) REFERENCES expression_term(expression_term_id)
    );

    CREATE INDEX IF NOT EXISTS idx_rule_friendly_name ON rule(friendly_name);
    CREATE INDEX IF NOT EXISTS idx_fpv_set ON function_parameter_value(function_parameter_value_set_id);
'''

VERSIONS_QUERY = '''
    SELECT r.rule_id, r.friendly_name, r.creation_date, r.updated_by,
           r.effective_date, r.inactive_date, r.verified_date, r.verified_by,
           r.function_parameter_value_set_id, r.source_friendly_name,
           rco.creation_process_type_id
    FROM rule r
    LEFT JOIN rule_creation_origin rco ON r.rule_id = rco.rule_id
    WHERE r.friendly_name = ?
    ORDER BY r.rule_id
'''

FIELD_VALUES_QUERY = '''
    SELECT fpv.function_parameter_value_id, fpv.function_parameter_value_set_id,
           fp.parameter_name, et.literal_value, fpv.update_date, fpv.updated_by,
           fpv.effective_date, fpv.inactive_date
    FROM function_parameter_value fpv
    INNER JOIN function_parameter fp ON fpv.function_parameter_id = fp.function_parameter_id
    INNER JOIN expression_term et ON fpv.expression_term_id = et.expression_term_id
    WHERE fpv.function_parameter_value_set_id IN (
        SELECT function_parameter_value_set_id FROM rule
        WHERE friendly_name = ? AND function_parameter_value_set_id IS NOT NULL
    )
    ORDER BY fpv.function_parameter_value_id
'''


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() > deadline


def _iso(ts: Optional[Timestamp]) -> Optional[str]:
    return ts.to_iso() if ts is not None else None


Record = TypeVar('Record', EntityVersion, FieldValue)


def _map_rows(
    rows: Iterable[sqlite3.Row],
    mapper: Callable[[sqlite3.Row], Record],
    id_column: str,
    logical_name: str
) -> Tuple[Tuple[Record, ...], List[Error]]:
    """Map rows to records; a row with unreadable dates is rejected alone."""
    records: List[Record] = []
    rejected: List[Error] = []
    for row in rows:
        try:
            records.append(mapper(row))
        except ValueError as e:
            logger.warning("rejected %s %s of '%s': %s", id_column, row[id_column], logical_name, e)
            rejected.append(Error.create(
                ErrorCode.MALFORMED_RECORD,
                f"{id_column} {row[id_column]} is unreadable: {e}",
                logical_name=logical_name,
                record_id=row[id_column]
            ))
    return tuple(records), rejected


class SqliteRecordSource(RecordSource):
    """
    Record source over a SQLite database file.

    The schema is created on construction if missing, so a fresh path
    is a valid, empty source.
    """

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = Path(db_path)
        self._init_db()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _init_db(self):
        """Initialize database schema."""
        try:
            with self._get_conn() as conn:
                conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise SourceUnavailable(
                f"cannot open rule database: {e}", db_path=str(self._db_path)
            ) from e

    @contextmanager
    def _get_conn(self, deadline: Optional[float] = None) -> Iterator[sqlite3.Connection]:
        """Get database connection, interrupted once `deadline` passes."""
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        if deadline is not None:
            conn.set_progress_handler(
                lambda: 1 if time.monotonic() > deadline else 0, PROGRESS_INTERVAL
            )
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # FETCH
    # =========================================================================

    def fetch(self, logical_name: str, timeout: Optional[float] = None) -> SourceSnapshot:
        deadline = time.monotonic() + timeout if timeout is not None else None
        started = time.monotonic()

        try:
            with self._get_conn(deadline) as conn:
                version_rows = conn.execute(VERSIONS_QUERY, (logical_name,)).fetchall()
                value_rows = conn.execute(FIELD_VALUES_QUERY, (logical_name,)).fetchall()
        except sqlite3.OperationalError as e:
            if _expired(deadline):
                raise self._timeout(logical_name, timeout) from e
            raise SourceUnavailable(
                f"fetch of '{logical_name}' failed: {e}", logical_name=logical_name
            ) from e
        except sqlite3.Error as e:
            raise SourceUnavailable(
                f"fetch of '{logical_name}' failed: {e}", logical_name=logical_name
            ) from e

        # Small queries can finish between two progress-handler checks
        if _expired(deadline):
            raise self._timeout(logical_name, timeout)

        logger.debug(
            "fetched '%s': %d versions, %d field values in %.3fs",
            logical_name, len(version_rows), len(value_rows), time.monotonic() - started
        )
        versions, rejected_versions = _map_rows(
            version_rows, self._row_to_version, 'rule_id', logical_name
        )
        values, rejected_values = _map_rows(
            value_rows, self._row_to_value, 'function_parameter_value_id', logical_name
        )
        return SourceSnapshot(
            logical_name=logical_name,
            versions=versions,
            field_values=values,
            fetched_at=Timestamp.now(),
            rejected=tuple(rejected_versions + rejected_values)
        )

    @staticmethod
    def _timeout(logical_name: str, timeout: Optional[float]) -> SourceTimeout:
        logger.warning("fetch of '%s' timed out after %.2fs", logical_name, timeout)
        return SourceTimeout(
            f"fetch of '{logical_name}' exceeded {timeout}s",
            logical_name=logical_name,
            timeout_seconds=timeout
        )

    def logical_names(self) -> Tuple[str, ...]:
        with self._get_conn() as conn:
            rows = conn.execute(
                'SELECT DISTINCT friendly_name FROM rule ORDER BY friendly_name'
            ).fetchall()
        return tuple(r['friendly_name'] for r in rows)

    @staticmethod
    def _row_to_version(row: sqlite3.Row) -> EntityVersion:
        return EntityVersion(
            version_id=row['rule_id'],
            logical_name=row['friendly_name'],
            created_at=Timestamp.parse(row['creation_date']),
            created_by=row['updated_by'],
            effective_from=Timestamp.parse(row['effective_date']),
            inactive_from=Timestamp.parse(row['inactive_date']),
            verified_at=Timestamp.parse(row['verified_date']),
            verified_by=row['verified_by'],
            creation_code=row['creation_process_type_id'],
            field_value_set_id=row['function_parameter_value_set_id'],
            source_logical_name=row['source_friendly_name']
        )

    @staticmethod
    def _row_to_value(row: sqlite3.Row) -> FieldValue:
        return FieldValue(
            field_value_id=row['function_parameter_value_id'],
            field_value_set_id=row['function_parameter_value_set_id'],
            field_name=row['parameter_name'],
            literal_value=row['literal_value'],
            updated_at=Timestamp.parse(row['update_date']),
            updated_by=row['updated_by'],
            effective_from=Timestamp.parse(row['effective_date']),
            inactive_from=Timestamp.parse(row['inactive_date'])
        )

    # =========================================================================
    # LOADING
    # =========================================================================

    def store(
        self,
        versions: Iterable[EntityVersion] = (),
        field_values: Iterable[FieldValue] = ()
    ) -> None:
        """
        Write records into the rules tables (fixtures, imports).
        Rows with an existing primary key are replaced.
        """
        with self._get_conn() as conn:
            for version in versions:
                self._store_version(conn, version)
            parameter_ids: Dict[str, int] = {}
            for value in field_values:
                self._store_value(conn, value, parameter_ids)

    @staticmethod
    def _store_version(conn: sqlite3.Connection, version: EntityVersion):
        cursor = conn.execute('''
            INSERT OR REPLACE INTO rule
            (rule_id, friendly_name, creation_date, updated_by, effective_date,
             inactive_date, verified_date, verified_by,
             function_parameter_value_set_id, source_friendly_name)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            version.version_id,
            version.logical_name,
            _iso(version.created_at),
            version.created_by,
            _iso(version.effective_from),
            _iso(version.inactive_from),
            _iso(version.verified_at),
            version.verified_by,
            version.field_value_set_id,
            version.source_logical_name
        ))
        if version.creation_code is not None:
            conn.execute('''
                INSERT OR REPLACE INTO rule_creation_origin
                (rule_id, creation_process_type_id) VALUES (?, ?)
            ''', (cursor.lastrowid, version.creation_code))

    @staticmethod
    def _store_value(conn: sqlite3.Connection, value: FieldValue, parameter_ids: Dict[str, int]):
        parameter_id = parameter_ids.get(value.field_name)
        if parameter_id is None:
            conn.execute(
                'INSERT OR IGNORE INTO function_parameter (parameter_name) VALUES (?)',
                (value.field_name,)
            )
            parameter_id = conn.execute(
                'SELECT function_parameter_id FROM function_parameter WHERE parameter_name = ?',
                (value.field_name,)
            ).fetchone()[0]
            parameter_ids[value.field_name] = parameter_id

        term_id = conn.execute(
            'INSERT INTO expression_term (literal_value) VALUES (?)',
            (value.literal_value,)
        ).lastrowid

        conn.execute('''
            INSERT OR REPLACE INTO function_parameter_value
            (function_parameter_value_id, function_parameter_value_set_id,
             function_parameter_id, expression_term_id, update_date, updated_by,
             effective_date, inactive_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            value.field_value_id,
            value.field_value_set_id,
            parameter_id,
            term_id,
            _iso(value.updated_at),
            value.updated_by,
            _iso(value.effective_from),
            _iso(value.inactive_from)
        ))
