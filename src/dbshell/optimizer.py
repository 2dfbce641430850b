"""Query optimizer: pushes selection conditions down to the tables they filter."""

from __future__ import annotations

import logging
import sys

from dbshell.engine import Database, EngineError, Status, TableInfo
from dbshell.parsing.algebra import Product, Project, Relation, Select, Table, to_algebra
from dbshell.parsing.sql_parser import (
    BoolOp,
    ColumnRef,
    Comparison,
    Condition,
    IsNull,
    Not,
    SelectStatement,
    SqlStatement,
    TableRef,
)

logger = logging.getLogger(__name__)


def split_conjuncts(condition: Condition) -> list[Condition]:
    """Flatten a tree of ANDs into its list of conjuncts."""
    if isinstance(condition, BoolOp) and condition.operator == "and":
        return split_conjuncts(condition.left) + split_conjuncts(condition.right)
    return [condition]


def join_conjuncts(conditions: list[Condition]) -> Condition:
    """Combine conjuncts back into a left-deep AND tree."""
    result = conditions[0]
    for condition in conditions[1:]:
        result = BoolOp(left=result, operator="and", right=condition)
    return result


def column_refs(condition: Condition) -> list[ColumnRef]:
    """Return every column referenced by ``condition``."""
    if isinstance(condition, Comparison):
        return [side for side in (condition.left, condition.right) if isinstance(side, ColumnRef)]
    if isinstance(condition, IsNull):
        return [condition.operand] if isinstance(condition.operand, ColumnRef) else []
    if isinstance(condition, Not):
        return column_refs(condition.operand)
    if isinstance(condition, BoolOp):
        return column_refs(condition.left) + column_refs(condition.right)
    return []


class _Scope:
    """The tables of a FROM clause, keyed by the label columns use."""

    def __init__(self, database: Database, tables: list[TableRef]) -> None:
        self.tables: dict[str, tuple[TableRef, TableInfo]] = {}
        for ref in tables:
            info = database.table_manager.get_table_info(ref.name, database.transaction)
            if info is None:
                raise EngineError(Status.EINVALIDSQL, f"no such table: {ref.name}")
            label = ref.label.lower()
            if label in self.tables:
                raise EngineError(Status.EINVALIDSQL, f"ambiguous table name: {ref.label}")
            self.tables[label] = (ref, info)

    def resolve(self, column: ColumnRef) -> str:
        """Return the label of the table ``column`` belongs to."""
        if column.table is not None:
            label = column.table.lower()
            entry = self.tables.get(label)
            if entry is None or entry[1].get_column(column.name) is None:
                raise EngineError(Status.EINVALIDSQL, f"no such column: {column.table}.{column.name}")
            return label

        matches = [label for label, (_, info) in self.tables.items() if info.get_column(column.name)]
        if not matches:
            raise EngineError(Status.EINVALIDSQL, f"no such column: {column.name}")
        if len(matches) > 1:
            raise EngineError(Status.EINVALIDSQL, f"ambiguous column name: {column.name}")
        return matches[0]


def _optimize_select(database: Database, statement: SelectStatement) -> Relation:
    scope = _Scope(database, statement.tables)

    for item in statement.items:
        if isinstance(item.expr, ColumnRef):
            scope.resolve(item.expr)

    pushed: dict[str, list[Condition]] = {}
    remaining: list[Condition] = []
    if statement.where is not None:
        for conjunct in split_conjuncts(statement.where):
            labels = {scope.resolve(c) for c in column_refs(conjunct)}
            if len(labels) == 1:
                pushed.setdefault(labels.pop(), []).append(conjunct)
            else:
                remaining.append(conjunct)

    relation: Relation | None = None
    for ref in statement.tables:
        leaf: Relation = Table(ref)
        conditions = pushed.get(ref.label.lower())
        if conditions:
            leaf = Select(join_conjuncts(conditions), leaf)
        relation = leaf if relation is None else Product(relation, leaf)

    assert relation is not None
    if remaining:
        relation = Select(join_conjuncts(remaining), relation)
    return Project(statement.items, relation)


def optimize(database: Database, tree: SqlStatement) -> tuple[Status, SqlStatement | Relation | None]:
    """Optimize a parsed statement against the tables of ``database``.

    SELECT statements come back as an optimized algebra tree. Other statements
    are returned unchanged. Resolution failures are reported on stderr.
    """
    if not isinstance(tree, SelectStatement):
        return Status.OK, tree

    try:
        optimized = _optimize_select(database, tree)
    except EngineError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return e.status, None

    logger.debug("optimized %s into %s", to_algebra(tree), optimized)
    return Status.OK, optimized
