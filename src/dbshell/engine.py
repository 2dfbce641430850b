"""Embedded database engine contract used by the shell.

The shell talks to the engine through a small prepare/step/finalize API
that reports result columns as integer type tags. This module provides the
default implementation of that API on top of the ``sqlite3`` module.
"""

from __future__ import annotations

import itertools
import logging
import sqlite3
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class Status(IntEnum):
    """Status codes returned by engine operations."""

    OK = 0
    EINVALIDSQL = 1
    ENOMEM = 2
    ECANTOPEN = 3
    ECORRUPT = 4
    ECONSTRAINT = 5
    EMISMATCH = 6
    EIO = 7
    EMISUSE = 8
    ROW = 100
    DONE = 101


class ColumnType(IntEnum):
    """Fixed column type tags. Text columns use ``text_type(length)``."""

    NOTVALID = -1
    NULL = 0
    INTEGER_1BYTE = 1
    INTEGER_2BYTE = 2
    INTEGER_4BYTE = 4


INTEGER_TYPES = frozenset(
    {ColumnType.INTEGER_1BYTE, ColumnType.INTEGER_2BYTE, ColumnType.INTEGER_4BYTE}
)

TEXT_TYPE_BASE = 13


def text_type(length: int) -> int:
    """Return the type tag of a text value of ``length`` bytes."""
    return TEXT_TYPE_BASE + 2 * length


def text_length(tag: int) -> int | None:
    """Decode the byte length carried by a text type tag.

    Returns None when ``tag`` is not a well-formed text tag.
    """
    offset = tag - TEXT_TYPE_BASE
    if offset < 0 or offset % 2 != 0:
        return None
    return offset // 2


# (tag, min, max) for the integer widths the record format can hold
_INTEGER_RANGES = (
    (ColumnType.INTEGER_1BYTE, -(1 << 7), (1 << 7) - 1),
    (ColumnType.INTEGER_2BYTE, -(1 << 15), (1 << 15) - 1),
    (ColumnType.INTEGER_4BYTE, -(1 << 31), (1 << 31) - 1),
)


def type_of(value: Any) -> int:
    """Return the type tag describing a stored value."""
    if value is None:
        return ColumnType.NULL
    if isinstance(value, bool):
        return ColumnType.NOTVALID
    if isinstance(value, int):
        for tag, low, high in _INTEGER_RANGES:
            if low <= value <= high:
                return tag
        return ColumnType.NOTVALID
    if isinstance(value, str):
        return text_type(len(value.encode("utf-8")))
    return ColumnType.NOTVALID


class EngineError(Exception):
    """An engine failure carrying the status code to report."""

    def __init__(self, status: Status, message: str) -> None:
        super().__init__(message)
        self.status = status


def _status_for(error: BaseException) -> Status:
    """Translate a sqlite3 exception into an engine status."""
    if isinstance(error, MemoryError):
        return Status.ENOMEM
    name = getattr(error, "sqlite_errorname", "") or ""
    message = str(error).lower()
    if name in ("SQLITE_MISMATCH", "SQLITE_CONSTRAINT_DATATYPE") or "datatype mismatch" in message:
        return Status.EMISMATCH
    if isinstance(error, sqlite3.IntegrityError):
        return Status.ECONSTRAINT
    if isinstance(error, (sqlite3.ProgrammingError, sqlite3.Warning)):
        return Status.EMISUSE
    if name.startswith("SQLITE_NOMEM"):
        return Status.ENOMEM
    if name.startswith(("SQLITE_IOERR", "SQLITE_CORRUPT", "SQLITE_FULL", "SQLITE_READONLY")):
        return Status.EIO
    if "disk i/o" in message or "not a database" in message or "malformed" in message:
        return Status.EIO
    if isinstance(error, sqlite3.OperationalError):
        return Status.EINVALIDSQL
    return Status.EIO


@dataclass
class ColumnInfo:
    """Metadata for a single table column."""

    name: str
    type_name: str
    not_null: bool = False
    primary_key: bool = False


@dataclass
class TableInfo:
    """Metadata for a table."""

    name: str
    columns: list[ColumnInfo] = field(default_factory=list)

    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> ColumnInfo | None:
        """Look up a column by name (case-insensitive)."""
        lower = name.lower()
        for column in self.columns:
            if column.name.lower() == lower:
                return column
        return None


_transaction_ids = itertools.count(1)


@dataclass
class Transaction:
    """The transaction context metadata lookups run in."""

    connection: sqlite3.Connection
    id: int = field(default_factory=lambda: next(_transaction_ids))

    @property
    def active(self) -> bool:
        """Whether an explicit transaction is open on the connection."""
        return self.connection.in_transaction


class TableManager:
    """Reads table metadata from the database catalog."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def list_tables(self, transaction: Transaction) -> list[str]:
        """Return the names of all user tables."""
        rows = transaction.connection.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        return [row[0] for row in rows]

    def get_table_info(self, name: str, transaction: Transaction) -> TableInfo | None:
        """Return the metadata for table ``name``, or None if it does not exist.

        Raises:
            EngineError: If ``transaction`` belongs to another database, or the
                catalog cannot be read.
        """
        if transaction.connection is not self.database.connection:
            raise EngineError(Status.EMISUSE, "Transaction does not belong to this database")

        try:
            match = transaction.connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ? COLLATE NOCASE",
                (name,),
            ).fetchone()
            if match is None:
                return None
            table_name = match[0]
            quoted = table_name.replace('"', '""')
            rows = transaction.connection.execute(f'PRAGMA table_info("{quoted}")').fetchall()
        except sqlite3.Error as e:
            raise EngineError(_status_for(e), str(e)) from e

        # PRAGMA table_info rows: (cid, name, type, notnull, default, pk)
        columns = [
            ColumnInfo(name=row[1], type_name=row[2] or "", not_null=bool(row[3]), primary_key=bool(row[5]))
            for row in rows
        ]
        return TableInfo(name=table_name, columns=columns)


class Statement:
    """A prepared statement producing rows one at a time."""

    def __init__(self, database: Database, sql: str, cursor: sqlite3.Cursor, pending: Status | None = None) -> None:
        self.database = database
        self.sql = sql
        self._cursor = cursor
        self._columns = [d[0] for d in (cursor.description or ())]
        self._pending = pending  # Failure raised while executing, reported by the first step
        self._row: tuple[Any, ...] | None = None
        self._done = False
        self._finalized = False

    def column_count(self) -> int:
        return len(self._columns)

    def column_name(self, i: int) -> str:
        return self._columns[i]

    def step(self) -> Status:
        """Advance to the next row.

        Returns ROW when a row is available, DONE at the end of the results,
        or the error status that stopped the statement.
        """
        if self._finalized:
            return Status.EMISUSE
        if self._pending is not None:
            status, self._pending = self._pending, None
            self._done = True
            return status
        if self._done:
            return Status.DONE

        try:
            row = self._cursor.fetchone()
        except (sqlite3.Error, MemoryError) as e:
            self._row = None
            self._done = True
            logger.debug("step failed for %r: %s", self.sql, e)
            return _status_for(e)

        if row is None:
            self._row = None
            self._done = True
            return Status.DONE
        self._row = tuple(row)
        return Status.ROW

    def _value(self, i: int) -> Any:
        if self._row is None:
            raise EngineError(Status.EMISUSE, "No row available")
        return self._row[i]

    def column_type(self, i: int) -> int:
        if self._row is None or not 0 <= i < len(self._row):
            return ColumnType.NOTVALID
        return type_of(self._row[i])

    def column_int(self, i: int) -> int:
        value = self._value(i)
        return value if isinstance(value, int) else 0

    def column_text(self, i: int) -> str:
        value = self._value(i)
        return value if isinstance(value, str) else ""

    def finalize(self) -> Status:
        """Release the statement. Finalizing twice is a misuse."""
        if self._finalized:
            return Status.EMISUSE
        self._finalized = True
        self._row = None
        try:
            self._cursor.close()
        except sqlite3.Error as e:
            return _status_for(e)
        return Status.OK


class Database:
    """An open database file."""

    def __init__(self, path: Path, connection: sqlite3.Connection) -> None:
        self.path = path
        self.connection: sqlite3.Connection | None = connection
        self.table_manager = TableManager(self)
        self._transaction: Transaction | None = None

    @property
    def closed(self) -> bool:
        return self.connection is None

    @property
    def transaction(self) -> Transaction:
        """The transaction context for catalog reads."""
        if self.connection is None:
            raise EngineError(Status.EMISUSE, "Database is closed")
        if self._transaction is None:
            self._transaction = Transaction(self.connection)
        return self._transaction

    def prepare(self, sql: str) -> tuple[Status, Statement | None]:
        """Compile ``sql`` into a statement ready to be stepped."""
        if self.connection is None:
            return Status.EMISUSE, None

        cursor = self.connection.cursor()
        try:
            cursor.execute(sql)
        except (sqlite3.IntegrityError, sqlite3.DataError) as e:
            # The statement compiled but failed while running: report it from step()
            logger.debug("execution of %r failed: %s", sql, e)
            return Status.OK, Statement(self, sql, cursor, pending=_status_for(e))
        except (sqlite3.Error, sqlite3.Warning, MemoryError) as e:
            cursor.close()
            status = _status_for(e)
            logger.debug("prepare of %r failed (%s): %s", sql, status.name, e)
            return status, None
        return Status.OK, Statement(self, sql, cursor)

    def close(self) -> None:
        """Close the database. Closing twice is a no-op."""
        if self.connection is None:
            return
        try:
            self.connection.close()
        finally:
            self.connection = None
            self._transaction = None
            logger.info("Closed database %s", self.path)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def open_database(path: str | Path) -> tuple[Status, Database | None]:
    """Open the database file at ``path``, creating it if it does not exist.

    Returns:
        ``(Status.OK, database)`` on success, otherwise ``(status, None)`` with
        ECANTOPEN for paths that cannot be opened and ECORRUPT for files that
        are not databases.
    """
    path = Path(path)
    try:
        connection = sqlite3.connect(str(path), isolation_level=None)
    except sqlite3.Error as e:
        logger.debug("could not open %s: %s", path, e)
        return Status.ECANTOPEN, None

    try:
        # Reading the schema forces the file header to be validated
        connection.execute("SELECT count(*) FROM sqlite_master").fetchone()
    except sqlite3.DatabaseError as e:
        connection.close()
        logger.debug("could not read %s: %s", path, e)
        if isinstance(e, sqlite3.OperationalError):
            return Status.ECANTOPEN, None
        return Status.ECORRUPT, None

    logger.info("Opened database %s", path)
    return Status.OK, Database(path, connection)
