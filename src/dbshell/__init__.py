"""dbshell - an interactive command shell for an embedded SQL engine."""

from dbshell.commands import COMMANDS, Command, DispatchResult, handle_line
from dbshell.engine import ColumnType, Database, EngineError, Status, open_database
from dbshell.session import DisplayMode, Session
from dbshell.tokenizer import tokenize

__all__ = [
    # Dispatch
    "COMMANDS",
    "Command",
    "DispatchResult",
    "handle_line",
    "tokenize",
    # Session state
    "DisplayMode",
    "Session",
    # Engine
    "ColumnType",
    "Database",
    "EngineError",
    "Status",
    "open_database",
]

__version__ = "0.1.0"
