"""Tests for the SQL lexer, parser and statement printing."""

import pytest

from dbshell.engine import Status
from dbshell.parsing import SqlParser, format_statement, parse_sql, to_algebra
from dbshell.parsing.algebra import Product, Project, Select, Table
from dbshell.parsing.sql_lexer import SqlLexer
from dbshell.parsing.sql_parser import (
    BoolOp,
    ColumnRef,
    Comparison,
    CreateIndexStatement,
    CreateTableStatement,
    DeleteStatement,
    InsertStatement,
    IsNull,
    Literal,
    Not,
    SelectStatement,
    Star,
)


class TestSqlLexer:
    """Tests for the SQL lexer."""

    def test_tokenize_select(self):
        lexer = SqlLexer()
        lexer.build()

        tokens = lexer.tokenize("SELECT a, t.b FROM t WHERE a >= 10")
        token_types = [t.type for t in tokens]

        assert token_types == [
            "SELECT", "IDENTIFIER", "COMMA", "IDENTIFIER", "DOT", "IDENTIFIER",
            "FROM", "IDENTIFIER", "WHERE", "IDENTIFIER", "GTE", "INTEGER",
        ]

    def test_keywords_case_insensitive(self):
        lexer = SqlLexer()
        lexer.build()

        tokens = lexer.tokenize("select From wHeRe")
        assert [t.type for t in tokens] == ["SELECT", "FROM", "WHERE"]

    def test_string_escapes(self):
        lexer = SqlLexer()
        lexer.build()

        tokens = lexer.tokenize("'it''s'")
        assert tokens[0].type == "STRING"
        assert tokens[0].value == "it's"

    def test_quoted_identifier(self):
        """Double quotes make an identifier even out of a keyword."""
        lexer = SqlLexer()
        lexer.build()

        tokens = lexer.tokenize('"select"')
        assert tokens[0].type == "IDENTIFIER"
        assert tokens[0].value == "select"

    def test_not_equal_spellings(self):
        lexer = SqlLexer()
        lexer.build()

        assert [t.type for t in lexer.tokenize("<> !=")] == ["NEQ", "NEQ"]

    def test_illegal_character(self):
        lexer = SqlLexer()
        lexer.build()

        with pytest.raises(SyntaxError):
            lexer.tokenize("SELECT # FROM t")


class TestSqlParser:
    """Tests for the SQL parser."""

    def test_select_star(self):
        query = SqlParser().parse("SELECT * FROM t")

        assert isinstance(query, SelectStatement)
        assert isinstance(query.items[0].expr, Star)
        assert query.tables[0].name == "t"
        assert query.where is None

    def test_select_columns_and_aliases(self):
        query = SqlParser().parse("SELECT a, t.b AS bee FROM t AS x, u y")

        assert query.items[0].expr == ColumnRef("a")
        assert query.items[1].expr == ColumnRef("b", table="t")
        assert query.items[1].alias == "bee"
        assert [(r.name, r.alias) for r in query.tables] == [("t", "x"), ("u", "y")]

    def test_where_precedence(self):
        """AND binds tighter than OR."""
        query = SqlParser().parse("SELECT * FROM t WHERE a = 1 OR b = 2 AND c = 3")

        assert isinstance(query.where, BoolOp)
        assert query.where.operator == "or"
        assert isinstance(query.where.right, BoolOp)
        assert query.where.right.operator == "and"

    def test_where_parentheses_and_not(self):
        query = SqlParser().parse("SELECT * FROM t WHERE NOT (a < 1 OR a > 5)")

        assert isinstance(query.where, Not)
        assert query.where.operand.operator == "or"

    def test_is_null(self):
        query = SqlParser().parse("SELECT * FROM t WHERE a IS NOT NULL AND b IS NULL")

        assert query.where.left == IsNull(ColumnRef("a"), negate=True)
        assert query.where.right == IsNull(ColumnRef("b"))

    def test_comparison_literals(self):
        query = SqlParser().parse("SELECT * FROM t WHERE a <> -5 AND 'x' = b")

        assert query.where.left == Comparison(ColumnRef("a"), "!=", Literal(-5))
        assert query.where.right == Comparison(Literal("x"), "=", ColumnRef("b"))

    def test_trailing_semicolon(self):
        assert isinstance(SqlParser().parse("SELECT a FROM t;"), SelectStatement)

    def test_insert(self):
        query = SqlParser().parse("INSERT INTO t VALUES (1, 'a', NULL)")

        assert query == InsertStatement(table="t", values=[Literal(1), Literal("a"), Literal(None)])

    def test_insert_with_columns(self):
        query = SqlParser().parse("INSERT INTO t (a, b) VALUES (1, 2)")

        assert query.columns == ["a", "b"]
        assert query.values == [Literal(1), Literal(2)]

    def test_create_table(self):
        query = SqlParser().parse("CREATE TABLE t (id integer PRIMARY KEY, name varchar(20) NOT NULL, note TEXT)")

        assert isinstance(query, CreateTableStatement)
        assert [(c.name, c.type_name, c.primary_key, c.not_null) for c in query.columns] == [
            ("id", "INTEGER", True, False),
            ("name", "VARCHAR(20)", False, True),
            ("note", "TEXT", False, False),
        ]

    def test_create_index(self):
        query = SqlParser().parse("CREATE INDEX idx ON t (a)")

        assert query == CreateIndexStatement(name="idx", table="t", column="a")

    def test_delete(self):
        query = SqlParser().parse("DELETE FROM t WHERE a = 1")

        assert isinstance(query, DeleteStatement)
        assert query.where == Comparison(ColumnRef("a"), "=", Literal(1))

    @pytest.mark.parametrize("sql", [
        "",
        "SELECT",
        "SELECT * FROM",
        "SELECT a FROM t WHERE",
        "INSERT INTO t VALUES ()",
        "UPDATE t SET a = 1",
    ])
    def test_syntax_errors(self, sql):
        with pytest.raises(SyntaxError):
            SqlParser().parse(sql)

    def test_parser_reusable(self):
        """A parser can parse several statements in a row."""
        parser = SqlParser()
        parser.parse("SELECT a FROM t")
        with pytest.raises(SyntaxError):
            parser.parse("SELECT FROM")
        assert isinstance(parser.parse("DELETE FROM t"), DeleteStatement)


class TestParseSql:
    """Tests for the status-returning parse entry point."""

    def test_ok(self):
        rc, tree = parse_sql("SELECT a FROM t")
        assert rc == Status.OK
        assert isinstance(tree, SelectStatement)

    def test_error(self, capsys):
        rc, tree = parse_sql("SELECT FROM t")
        assert rc == Status.EINVALIDSQL
        assert tree is None
        assert capsys.readouterr().err.startswith("ERROR: Syntax error")


class TestAlgebra:
    """Tests for the relational algebra view and printing."""

    def test_to_algebra(self):
        query = SqlParser().parse("SELECT a FROM t, u WHERE a = 1")
        tree = to_algebra(query)

        assert isinstance(tree, Project)
        assert isinstance(tree.child, Select)
        assert isinstance(tree.child.child, Product)
        assert tree.child.child.left == Table(query.tables[0])

    def test_to_algebra_without_where(self):
        tree = to_algebra(SqlParser().parse("SELECT * FROM t"))
        assert isinstance(tree.child, Table)

    def test_format_select(self):
        query = SqlParser().parse("SELECT t.a, b AS x FROM t, u v WHERE t.a = 5 AND b = 'it''s'")

        assert format_statement(query) == (
            "Project([t.a, b AS x],\n"
            "    Select(t.a = 5 AND b = 'it''s',\n"
            "        Product(\n"
            "            Table(t),\n"
            "            Table(u AS v))))"
        )

    def test_format_mixed_bool_ops(self):
        query = SqlParser().parse("SELECT * FROM t WHERE (a = 1 OR a = 2) AND b IS NULL")

        assert format_statement(query) == (
            "Project([*],\n"
            "    Select((a = 1 OR a = 2) AND b IS NULL,\n"
            "        Table(t)))"
        )

    @pytest.mark.parametrize("sql, expected", [
        ("INSERT INTO t VALUES (1, 'a', NULL)", "Insert(t, [1, 'a', NULL])"),
        ("INSERT INTO t (a) VALUES (1)", "Insert(t(a), [1])"),
        ("CREATE TABLE t (id INTEGER PRIMARY KEY, n TEXT NOT NULL)", "CreateTable(t, [id INTEGER PRIMARY KEY, n TEXT NOT NULL])"),
        ("CREATE INDEX i ON t (a)", "CreateIndex(i ON t(a))"),
        ("DELETE FROM t", "Delete(t)"),
        ("DELETE FROM t WHERE NOT a = 1", "Delete(t, NOT (a = 1))"),
    ])
    def test_format_other_statements(self, sql, expected):
        assert format_statement(SqlParser().parse(sql)) == expected
