"""Tests for the embedded engine adapter."""

import pytest

from dbshell.engine import (
    ColumnType,
    EngineError,
    Status,
    open_database,
    text_length,
    text_type,
    type_of,
)


@pytest.fixture
def db(tmp_path):
    rc, database = open_database(tmp_path / "test.db")
    assert rc == Status.OK
    yield database
    database.close()


def run(database, sql):
    """Prepare and fully step a statement, returning (rows, final status)."""
    rc, stmt = database.prepare(sql)
    assert rc == Status.OK, sql
    rows = []
    status = stmt.step()
    while status == Status.ROW:
        rows.append([stmt.column_type(i) for i in range(stmt.column_count())])
        status = stmt.step()
    stmt.finalize()
    return rows, status


class TestTypeTags:
    """Tests for type tag helpers."""

    def test_text_type(self):
        assert text_type(0) == 13
        assert text_type(5) == 23

    @pytest.mark.parametrize("tag, length", [(13, 0), (15, 1), (23, 5)])
    def test_text_length(self, tag, length):
        assert text_length(tag) == length

    @pytest.mark.parametrize("tag", [14, 16, 12, 0, -1])
    def test_text_length_invalid(self, tag):
        """Tags below 13 or with odd (tag - 13) are not text tags."""
        assert text_length(tag) is None

    @pytest.mark.parametrize("value, tag", [
        (None, ColumnType.NULL),
        (0, ColumnType.INTEGER_1BYTE),
        (-128, ColumnType.INTEGER_1BYTE),
        (127, ColumnType.INTEGER_1BYTE),
        (128, ColumnType.INTEGER_2BYTE),
        (-32768, ColumnType.INTEGER_2BYTE),
        (40000, ColumnType.INTEGER_4BYTE),
        (-(1 << 31), ColumnType.INTEGER_4BYTE),
        (1 << 31, ColumnType.NOTVALID),
        (1.5, ColumnType.NOTVALID),
        (b"blob", ColumnType.NOTVALID),
        ("abc", 19),
        ("é", 17),
    ])
    def test_type_of(self, value, tag):
        assert type_of(value) == tag


class TestOpen:
    """Tests for opening databases."""

    def test_open_creates_file(self, tmp_path):
        path = tmp_path / "new.db"
        rc, database = open_database(path)
        assert rc == Status.OK
        assert database.path == path
        database.close()

    def test_open_directory_fails(self, tmp_path):
        rc, database = open_database(tmp_path)
        assert rc == Status.ECANTOPEN
        assert database is None

    def test_open_malformed_file(self, tmp_path):
        path = tmp_path / "garbage.db"
        path.write_bytes(b"this is definitely not a database file" * 100)
        rc, database = open_database(path)
        assert rc == Status.ECORRUPT
        assert database is None

    def test_close_twice(self, db):
        db.close()
        db.close()
        assert db.closed


class TestStatements:
    """Tests for prepare/step/finalize."""

    def test_select_rows(self, db):
        run(db, "CREATE TABLE t (id INTEGER, name TEXT)")
        run(db, "INSERT INTO t VALUES (1, 'Alice'), (300, NULL)")

        rc, stmt = db.prepare("SELECT id, name FROM t ORDER BY id")
        assert rc == Status.OK
        assert stmt.column_count() == 2
        assert [stmt.column_name(0), stmt.column_name(1)] == ["id", "name"]

        assert stmt.step() == Status.ROW
        assert stmt.column_type(0) == ColumnType.INTEGER_1BYTE
        assert stmt.column_int(0) == 1
        assert stmt.column_type(1) == text_type(5)
        assert stmt.column_text(1) == "Alice"

        assert stmt.step() == Status.ROW
        assert stmt.column_type(0) == ColumnType.INTEGER_2BYTE
        assert stmt.column_type(1) == ColumnType.NULL

        assert stmt.step() == Status.DONE
        assert stmt.finalize() == Status.OK

    def test_syntax_error(self, db):
        rc, stmt = db.prepare("SELEC * FROM t")
        assert rc == Status.EINVALIDSQL
        assert stmt is None

    def test_unknown_table(self, db):
        rc, _ = db.prepare("SELECT * FROM missing")
        assert rc == Status.EINVALIDSQL

    def test_constraint_reported_by_step(self, db):
        """Constraint violations surface from step, not prepare."""
        run(db, "CREATE TABLE t (id INTEGER PRIMARY KEY)")
        run(db, "INSERT INTO t VALUES (1)")

        rc, stmt = db.prepare("INSERT INTO t VALUES (1)")
        assert rc == Status.OK
        assert stmt.step() == Status.ECONSTRAINT
        assert stmt.finalize() == Status.OK

    def test_not_null_constraint(self, db):
        run(db, "CREATE TABLE t (id INTEGER NOT NULL)")
        _, status = run(db, "INSERT INTO t VALUES (NULL)")
        assert status == Status.ECONSTRAINT

    def test_finalize_twice_is_misuse(self, db):
        rc, stmt = db.prepare("SELECT 1")
        assert rc == Status.OK
        assert stmt.finalize() == Status.OK
        assert stmt.finalize() == Status.EMISUSE

    def test_step_after_finalize_is_misuse(self, db):
        _, stmt = db.prepare("SELECT 1")
        stmt.finalize()
        assert stmt.step() == Status.EMISUSE

    def test_multiple_statements_rejected(self, db):
        rc, stmt = db.prepare("SELECT 1; SELECT 2")
        assert rc == Status.EMISUSE
        assert stmt is None

    def test_prepare_on_closed_database(self, db):
        db.close()
        rc, stmt = db.prepare("SELECT 1")
        assert rc == Status.EMISUSE
        assert stmt is None

    def test_unsupported_values_are_not_valid(self, db):
        rows, status = run(db, "SELECT 1.5, x'00', 5000000000")
        assert status == Status.DONE
        assert rows == [[ColumnType.NOTVALID] * 3]

    def test_statement_without_columns(self, db):
        rc, stmt = db.prepare("CREATE TABLE t (a INTEGER)")
        assert rc == Status.OK
        assert stmt.column_count() == 0
        assert stmt.step() == Status.DONE
        stmt.finalize()


class TestTableManager:
    """Tests for table metadata lookups."""

    def test_get_table_info(self, db):
        run(db, "CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")

        info = db.table_manager.get_table_info("people", db.transaction)

        assert info is not None
        assert info.name == "people"
        assert info.column_names() == ["id", "name"]
        assert info.columns[0].primary_key
        assert info.columns[1].not_null
        assert info.get_column("NAME") is info.columns[1]

    def test_lookup_is_case_insensitive(self, db):
        run(db, "CREATE TABLE People (id INTEGER)")
        info = db.table_manager.get_table_info("people", db.transaction)
        assert info.name == "People"

    def test_missing_table(self, db):
        assert db.table_manager.get_table_info("missing", db.transaction) is None

    def test_list_tables(self, db):
        run(db, "CREATE TABLE b (x INTEGER)")
        run(db, "CREATE TABLE a (x INTEGER)")
        assert db.table_manager.list_tables(db.transaction) == ["a", "b"]

    def test_foreign_transaction(self, db, tmp_path):
        """Lookups must run in the database's own transaction context."""
        _, other = open_database(tmp_path / "other.db")
        try:
            with pytest.raises(EngineError) as exc_info:
                db.table_manager.get_table_info("t", other.transaction)
            assert exc_info.value.status == Status.EMISUSE
        finally:
            other.close()

    def test_transaction_on_closed_database(self, db):
        db.close()
        with pytest.raises(EngineError):
            db.transaction
