"""Relational algebra view of parsed statements, and statement printing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from dbshell.parsing.sql_parser import (
    BoolOp,
    ColumnRef,
    Comparison,
    Condition,
    CreateIndexStatement,
    CreateTableStatement,
    DeleteStatement,
    InsertStatement,
    IsNull,
    Literal,
    Not,
    SelectItem,
    SelectStatement,
    SqlStatement,
    Star,
    TableRef,
)


@dataclass
class Table:
    """A base table leaf."""

    ref: TableRef


@dataclass
class Product:
    """The cartesian product of two relations."""

    left: Relation
    right: Relation


@dataclass
class Select:
    """Rows of ``child`` satisfying ``condition``."""

    condition: Condition
    child: Relation


@dataclass
class Project:
    """The ``items`` columns of ``child``."""

    items: list[SelectItem]
    child: Relation


Relation = Union[Table, Product, Select, Project]


def to_algebra(statement: SelectStatement) -> Project:
    """Build the canonical Project(Select(Product(...))) tree for a SELECT."""
    relation: Relation = Table(statement.tables[0])
    for ref in statement.tables[1:]:
        relation = Product(relation, Table(ref))
    if statement.where is not None:
        relation = Select(statement.where, relation)
    return Project(statement.items, relation)


def format_expr(expr: ColumnRef | Literal | Star | Condition) -> str:
    """Render an expression or condition as SQL-like text."""
    if isinstance(expr, Star):
        return "*"
    if isinstance(expr, ColumnRef):
        return f"{expr.table}.{expr.name}" if expr.table else expr.name
    if isinstance(expr, Literal):
        if expr.value is None:
            return "NULL"
        if isinstance(expr.value, str):
            escaped = expr.value.replace("'", "''")
            return f"'{escaped}'"
        return str(expr.value)
    if isinstance(expr, Comparison):
        return f"{format_expr(expr.left)} {expr.operator} {format_expr(expr.right)}"
    if isinstance(expr, IsNull):
        return f"{format_expr(expr.operand)} IS {'NOT ' if expr.negate else ''}NULL"
    if isinstance(expr, Not):
        return f"NOT ({format_expr(expr.operand)})"
    if isinstance(expr, BoolOp):
        parts = []
        for side in (expr.left, expr.right):
            text = format_expr(side)
            # Mixed AND/OR nesting needs explicit grouping
            if isinstance(side, BoolOp) and side.operator != expr.operator:
                text = f"({text})"
            parts.append(text)
        return f" {expr.operator.upper()} ".join(parts)
    raise TypeError(f"Cannot format {type(expr).__name__}")


def _format_item(item: SelectItem) -> str:
    text = format_expr(item.expr)
    return f"{text} AS {item.alias}" if item.alias else text


def _format_relation(node: Relation, depth: int) -> str:
    pad = "    " * depth
    if isinstance(node, Table):
        alias = f" AS {node.ref.alias}" if node.ref.alias else ""
        return f"{pad}Table({node.ref.name}{alias})"
    if isinstance(node, Product):
        left = _format_relation(node.left, depth + 1)
        right = _format_relation(node.right, depth + 1)
        return f"{pad}Product(\n{left},\n{right})"
    if isinstance(node, Select):
        child = _format_relation(node.child, depth + 1)
        return f"{pad}Select({format_expr(node.condition)},\n{child})"
    if isinstance(node, Project):
        items = ", ".join(_format_item(item) for item in node.items)
        child = _format_relation(node.child, depth + 1)
        return f"{pad}Project([{items}],\n{child})"
    raise TypeError(f"Cannot format {type(node).__name__}")


def format_statement(tree: SqlStatement | Relation) -> str:
    """Render a parsed statement (or algebra tree) for display."""
    if isinstance(tree, SelectStatement):
        return _format_relation(to_algebra(tree), 0)
    if isinstance(tree, (Table, Product, Select, Project)):
        return _format_relation(tree, 0)
    if isinstance(tree, InsertStatement):
        values = ", ".join(format_expr(v) for v in tree.values)
        columns = f"({', '.join(tree.columns)})" if tree.columns else ""
        return f"Insert({tree.table}{columns}, [{values}])"
    if isinstance(tree, CreateTableStatement):
        columns = []
        for column in tree.columns:
            text = f"{column.name} {column.type_name}"
            if column.primary_key:
                text += " PRIMARY KEY"
            if column.not_null:
                text += " NOT NULL"
            columns.append(text)
        return f"CreateTable({tree.table}, [{', '.join(columns)}])"
    if isinstance(tree, CreateIndexStatement):
        return f"CreateIndex({tree.name} ON {tree.table}({tree.column}))"
    if isinstance(tree, DeleteStatement):
        if tree.where is None:
            return f"Delete({tree.table})"
        return f"Delete({tree.table}, {format_expr(tree.where)})"
    raise TypeError(f"Cannot format {type(tree).__name__}")
