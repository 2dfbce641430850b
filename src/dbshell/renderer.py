"""Runs SQL statements and prints their results."""

from __future__ import annotations

import logging
from typing import Any

from dbshell.engine import INTEGER_TYPES, ColumnInfo, ColumnType, Status, TableInfo, text_length, type_of
from dbshell.session import DisplayMode, Session

logger = logging.getLogger(__name__)

COL_SEPARATOR = "|"
COLUMN_WIDTH = 10

# Messages for the terminal status of a statement that ran
STEP_ERRORS = {
    Status.ECONSTRAINT: "ERROR: SQL statement failed because of a constraint violation.",
    Status.EMISMATCH: "ERROR: Data type mismatch.",
    Status.EMISUSE: "ERROR: API used incorrectly.",
    Status.EIO: "ERROR: An I/O error has occurred when accessing the file.",
}


def separator(mode: DisplayMode, i: int) -> str:
    """Return the text printed before column ``i``."""
    if i == 0:
        return ""
    return COL_SEPARATOR if mode is DisplayMode.LIST else " "


def format_text(mode: DisplayMode, text: str) -> str:
    if mode is DisplayMode.COLUMN:
        return text[:COLUMN_WIDTH].ljust(COLUMN_WIDTH)
    return text


def format_int(mode: DisplayMode, value: int) -> str:
    if mode is DisplayMode.COLUMN:
        return str(value).rjust(COLUMN_WIDTH)
    return str(value)


def format_null(mode: DisplayMode) -> str:
    return " " * COLUMN_WIDTH if mode is DisplayMode.COLUMN else ""


def format_header(mode: DisplayMode, names: list[str]) -> list[str]:
    """Return the header line(s) for a result with columns ``names``."""
    header = "".join(separator(mode, i) + format_text(mode, name) for i, name in enumerate(names))
    lines = [header]
    if mode is DisplayMode.COLUMN:
        lines.append(" ".join("-" * COLUMN_WIDTH for _ in names))
    return lines


def format_row(mode: DisplayMode, stmt: Any, numcol: int) -> str:
    """Decode and format the current row of ``stmt``.

    A column with a bad type tag ends the row early with an inline error.
    """
    parts = []
    for i in range(numcol):
        parts.append(separator(mode, i))
        coltype = stmt.column_type(i)

        if coltype == ColumnType.NOTVALID:
            parts.append(f"ERROR: Column {i} returned an invalid type.\n")
            break
        elif coltype in INTEGER_TYPES:
            parts.append(format_int(mode, stmt.column_int(i)))
        elif coltype == ColumnType.NULL:
            parts.append(format_null(mode))
        else:
            length = text_length(coltype)
            if length is None:
                parts.append(f"ERROR: Column {i} returned an invalid type.\n")
                break
            text = stmt.column_text(i)
            actual = len(text.encode("utf-8"))
            if actual != length:
                parts.append(
                    f"ERROR: The length ({actual}) of the text in column {i} does not match its type ({coltype}).\n"
                )
                break
            parts.append(format_text(mode, text))
    return "".join(parts)


def run_sql(session: Session, sql: str) -> int:
    """Prepare, step and finalize ``sql`` against the session's database.

    Returns the status of the failed prepare, the error that ended the rows,
    or the finalize status when every row was produced.
    """
    database = session.database
    if database is None:
        raise RuntimeError("run_sql needs an open database")
    mode = session.display_mode

    rc, stmt = database.prepare(sql)
    if rc != Status.OK:
        if rc == Status.EINVALIDSQL:
            print("SQL syntax error.")
        elif rc == Status.ENOMEM:
            print("ERROR: Could not allocate memory.")
        else:
            print(f"ERROR: Could not prepare statement (status {int(rc)}).")
        return rc

    numcol = stmt.column_count()
    if session.header_visible and numcol > 0:
        for line in format_header(mode, [stmt.column_name(i) for i in range(numcol)]):
            print(line)

    rows = 0
    rc = stmt.step()
    while rc == Status.ROW:
        print(format_row(mode, stmt, numcol))
        rows += 1
        rc = stmt.step()

    message = STEP_ERRORS.get(rc)
    if message:
        print(message)
    logger.debug("statement produced %d row(s), ended with status %d", rows, rc)

    final = stmt.finalize()
    if final == Status.EMISUSE:
        print("API used incorrectly.")

    if rc != Status.DONE:
        return rc
    return final


class _TableInfoRows:
    """Presents table metadata through the statement row interface."""

    names = ["name", "type", "notnull", "pk"]

    def __init__(self, columns: list[ColumnInfo]) -> None:
        self._rows = [(c.name, c.type_name, int(c.not_null), int(c.primary_key)) for c in columns]
        self._row: tuple[Any, ...] = ()

    def load(self, index: int) -> None:
        self._row = self._rows[index]

    def column_type(self, i: int) -> int:
        return type_of(self._row[i])

    def column_int(self, i: int) -> int:
        return self._row[i]

    def column_text(self, i: int) -> str:
        return self._row[i]

    def __len__(self) -> int:
        return len(self._rows)


def render_table_info(session: Session, info: TableInfo) -> None:
    """Print table metadata as a result set in the session's display mode."""
    mode = session.display_mode
    rows = _TableInfoRows(info.columns)
    if session.header_visible:
        for line in format_header(mode, rows.names):
            print(line)
    for index in range(len(rows)):
        rows.load(index)
        print(format_row(mode, rows, len(rows.names)))
