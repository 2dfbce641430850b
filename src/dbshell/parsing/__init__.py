"""Parsing module for the shell's SQL dialect."""

from dbshell.parsing.algebra import Product, Project, Select, Table, format_statement, to_algebra
from dbshell.parsing.sql_parser import SelectStatement, SqlParser, parse_sql

__all__ = [
    "Product",
    "Project",
    "Select",
    "SelectStatement",
    "SqlParser",
    "Table",
    "format_statement",
    "parse_sql",
    "to_algebra",
]
