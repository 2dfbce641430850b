"""Parser for the shell's SQL dialect."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Union

import ply.yacc as yacc

from dbshell.engine import Status
from dbshell.parsing.sql_lexer import SqlLexer


@dataclass
class ColumnRef:
    """A column reference, optionally qualified by a table name or alias."""

    name: str
    table: str | None = None


@dataclass
class Literal:
    """An integer, string or NULL literal."""

    value: int | str | None


@dataclass
class Comparison:
    """A binary comparison like ``a = 5``."""

    left: ColumnRef | Literal
    operator: str  # =, !=, <, <=, >, >=
    right: ColumnRef | Literal


@dataclass
class IsNull:
    """An ``IS NULL`` / ``IS NOT NULL`` test."""

    operand: ColumnRef | Literal
    negate: bool = False


@dataclass
class Not:
    """A negated condition."""

    operand: Condition


@dataclass
class BoolOp:
    """A compound condition (AND/OR)."""

    left: Condition
    operator: str  # and, or
    right: Condition


Condition = Union[Comparison, IsNull, Not, BoolOp]


@dataclass
class Star:
    """The ``*`` select item."""

    pass


@dataclass
class SelectItem:
    """An item in a SELECT list."""

    expr: ColumnRef | Literal | Star
    alias: str | None = None


@dataclass
class TableRef:
    """A table in a FROM clause."""

    name: str
    alias: str | None = None

    @property
    def label(self) -> str:
        """The name columns are qualified with."""
        return self.alias or self.name


@dataclass
class SelectStatement:
    """A SELECT statement."""

    items: list[SelectItem] = field(default_factory=list)
    tables: list[TableRef] = field(default_factory=list)
    where: Condition | None = None


@dataclass
class InsertStatement:
    """An INSERT statement."""

    table: str
    values: list[Literal] = field(default_factory=list)
    columns: list[str] | None = None


@dataclass
class ColumnDef:
    """A column definition in CREATE TABLE."""

    name: str
    type_name: str
    primary_key: bool = False
    not_null: bool = False


@dataclass
class CreateTableStatement:
    """A CREATE TABLE statement."""

    table: str
    columns: list[ColumnDef] = field(default_factory=list)


@dataclass
class CreateIndexStatement:
    """A CREATE INDEX statement."""

    name: str
    table: str
    column: str


@dataclass
class DeleteStatement:
    """A DELETE statement."""

    table: str
    where: Condition | None = None


SqlStatement = Union[SelectStatement, InsertStatement, CreateTableStatement, CreateIndexStatement, DeleteStatement]


class SqlParser:
    """Parser for SQL statements."""

    tokens = SqlLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "OR"),
        ("left", "AND"),
        ("right", "NOT"),
    )

    def __init__(self) -> None:
        self.lexer = SqlLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : sql_statement SEMICOLON
                     | sql_statement"""
        p[0] = p[1]

    def p_sql_statement(self, p: yacc.YaccProduction) -> None:
        """sql_statement : select_statement
                         | insert_statement
                         | create_table_statement
                         | create_index_statement
                         | delete_statement"""
        p[0] = p[1]

    # --- SELECT ---

    def p_select_statement(self, p: yacc.YaccProduction) -> None:
        """select_statement : SELECT select_list FROM table_list where_clause"""
        p[0] = SelectStatement(items=p[2], tables=p[4], where=p[5])

    def p_select_list_star(self, p: yacc.YaccProduction) -> None:
        """select_list : STAR"""
        p[0] = [SelectItem(expr=Star())]

    def p_select_list_items(self, p: yacc.YaccProduction) -> None:
        """select_list : select_items"""
        p[0] = p[1]

    def p_select_items_single(self, p: yacc.YaccProduction) -> None:
        """select_items : select_item"""
        p[0] = [p[1]]

    def p_select_items_multiple(self, p: yacc.YaccProduction) -> None:
        """select_items : select_items COMMA select_item"""
        p[0] = p[1] + [p[3]]

    def p_select_item(self, p: yacc.YaccProduction) -> None:
        """select_item : operand"""
        p[0] = SelectItem(expr=p[1])

    def p_select_item_alias(self, p: yacc.YaccProduction) -> None:
        """select_item : operand AS IDENTIFIER"""
        p[0] = SelectItem(expr=p[1], alias=p[3])

    def p_table_list_single(self, p: yacc.YaccProduction) -> None:
        """table_list : table_ref"""
        p[0] = [p[1]]

    def p_table_list_multiple(self, p: yacc.YaccProduction) -> None:
        """table_list : table_list COMMA table_ref"""
        p[0] = p[1] + [p[3]]

    def p_table_ref(self, p: yacc.YaccProduction) -> None:
        """table_ref : IDENTIFIER"""
        p[0] = TableRef(name=p[1])

    def p_table_ref_alias(self, p: yacc.YaccProduction) -> None:
        """table_ref : IDENTIFIER IDENTIFIER
                     | IDENTIFIER AS IDENTIFIER"""
        p[0] = TableRef(name=p[1], alias=p[len(p) - 1])

    def p_where_clause(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE condition"""
        p[0] = p[2]

    def p_where_clause_empty(self, p: yacc.YaccProduction) -> None:
        """where_clause : empty"""
        p[0] = None

    # --- Conditions ---

    def p_condition_or(self, p: yacc.YaccProduction) -> None:
        """condition : condition OR condition"""
        p[0] = BoolOp(left=p[1], operator="or", right=p[3])

    def p_condition_and(self, p: yacc.YaccProduction) -> None:
        """condition : condition AND condition"""
        p[0] = BoolOp(left=p[1], operator="and", right=p[3])

    def p_condition_not(self, p: yacc.YaccProduction) -> None:
        """condition : NOT condition"""
        p[0] = Not(operand=p[2])

    def p_condition_paren(self, p: yacc.YaccProduction) -> None:
        """condition : LPAREN condition RPAREN"""
        p[0] = p[2]

    def p_condition_comparison(self, p: yacc.YaccProduction) -> None:
        """condition : operand EQ operand
                     | operand NEQ operand
                     | operand LT operand
                     | operand LTE operand
                     | operand GT operand
                     | operand GTE operand"""
        operator = "!=" if p[2] == "<>" else p[2]
        p[0] = Comparison(left=p[1], operator=operator, right=p[3])

    def p_condition_is_null(self, p: yacc.YaccProduction) -> None:
        """condition : operand IS NULL"""
        p[0] = IsNull(operand=p[1])

    def p_condition_is_not_null(self, p: yacc.YaccProduction) -> None:
        """condition : operand IS NOT NULL"""
        p[0] = IsNull(operand=p[1], negate=True)

    def p_operand(self, p: yacc.YaccProduction) -> None:
        """operand : column_ref
                   | literal"""
        p[0] = p[1]

    def p_column_ref(self, p: yacc.YaccProduction) -> None:
        """column_ref : IDENTIFIER"""
        p[0] = ColumnRef(name=p[1])

    def p_column_ref_qualified(self, p: yacc.YaccProduction) -> None:
        """column_ref : IDENTIFIER DOT IDENTIFIER"""
        p[0] = ColumnRef(name=p[3], table=p[1])

    def p_literal(self, p: yacc.YaccProduction) -> None:
        """literal : INTEGER
                   | STRING"""
        p[0] = Literal(value=p[1])

    def p_literal_negative(self, p: yacc.YaccProduction) -> None:
        """literal : MINUS INTEGER"""
        p[0] = Literal(value=-p[2])

    def p_literal_null(self, p: yacc.YaccProduction) -> None:
        """literal : NULL"""
        p[0] = Literal(value=None)

    # --- INSERT ---

    def p_insert_statement(self, p: yacc.YaccProduction) -> None:
        """insert_statement : INSERT INTO IDENTIFIER VALUES LPAREN literal_list RPAREN"""
        p[0] = InsertStatement(table=p[3], values=p[6])

    def p_insert_statement_columns(self, p: yacc.YaccProduction) -> None:
        """insert_statement : INSERT INTO IDENTIFIER LPAREN identifier_list RPAREN VALUES LPAREN literal_list RPAREN"""
        p[0] = InsertStatement(table=p[3], values=p[9], columns=p[5])

    def p_literal_list_single(self, p: yacc.YaccProduction) -> None:
        """literal_list : literal"""
        p[0] = [p[1]]

    def p_literal_list_multiple(self, p: yacc.YaccProduction) -> None:
        """literal_list : literal_list COMMA literal"""
        p[0] = p[1] + [p[3]]

    def p_identifier_list_single(self, p: yacc.YaccProduction) -> None:
        """identifier_list : IDENTIFIER"""
        p[0] = [p[1]]

    def p_identifier_list_multiple(self, p: yacc.YaccProduction) -> None:
        """identifier_list : identifier_list COMMA IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    # --- CREATE ---

    def p_create_table_statement(self, p: yacc.YaccProduction) -> None:
        """create_table_statement : CREATE TABLE IDENTIFIER LPAREN column_def_list RPAREN"""
        p[0] = CreateTableStatement(table=p[3], columns=p[5])

    def p_column_def_list_single(self, p: yacc.YaccProduction) -> None:
        """column_def_list : column_def"""
        p[0] = [p[1]]

    def p_column_def_list_multiple(self, p: yacc.YaccProduction) -> None:
        """column_def_list : column_def_list COMMA column_def"""
        p[0] = p[1] + [p[3]]

    def p_column_def(self, p: yacc.YaccProduction) -> None:
        """column_def : IDENTIFIER type_name column_constraints"""
        constraints = p[3]
        p[0] = ColumnDef(
            name=p[1],
            type_name=p[2],
            primary_key="primary key" in constraints,
            not_null="not null" in constraints,
        )

    def p_type_name(self, p: yacc.YaccProduction) -> None:
        """type_name : IDENTIFIER"""
        p[0] = p[1].upper()

    def p_type_name_sized(self, p: yacc.YaccProduction) -> None:
        """type_name : IDENTIFIER LPAREN INTEGER RPAREN"""
        p[0] = f"{p[1].upper()}({p[3]})"

    def p_column_constraints(self, p: yacc.YaccProduction) -> None:
        """column_constraints : column_constraints column_constraint"""
        p[0] = p[1] + [p[2]]

    def p_column_constraints_empty(self, p: yacc.YaccProduction) -> None:
        """column_constraints : empty"""
        p[0] = []

    def p_column_constraint_primary_key(self, p: yacc.YaccProduction) -> None:
        """column_constraint : PRIMARY KEY"""
        p[0] = "primary key"

    def p_column_constraint_not_null(self, p: yacc.YaccProduction) -> None:
        """column_constraint : NOT NULL"""
        p[0] = "not null"

    def p_create_index_statement(self, p: yacc.YaccProduction) -> None:
        """create_index_statement : CREATE INDEX IDENTIFIER ON IDENTIFIER LPAREN IDENTIFIER RPAREN"""
        p[0] = CreateIndexStatement(name=p[3], table=p[5], column=p[7])

    # --- DELETE ---

    def p_delete_statement(self, p: yacc.YaccProduction) -> None:
        """delete_statement : DELETE FROM IDENTIFIER where_clause"""
        p[0] = DeleteStatement(table=p[3], where=p[4])

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        pass

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="statement", **kwargs)

    def parse(self, data: str) -> SqlStatement:
        """Parse a SQL statement.

        Raises:
            SyntaxError: If ``data`` is not a valid statement.
        """
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        return self.parser.parse(data, lexer=self.lexer.lexer)


_parser: SqlParser | None = None


def parse_sql(sql: str) -> tuple[Status, SqlStatement | None]:
    """Parse ``sql``, reporting syntax errors on stderr.

    Returns ``(Status.OK, statement)`` or ``(Status.EINVALIDSQL, None)``.
    """
    global _parser
    if _parser is None:
        _parser = SqlParser()

    try:
        return Status.OK, _parser.parse(sql)
    except SyntaxError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return Status.EINVALIDSQL, None
