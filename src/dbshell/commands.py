"""Dot-command registry and line dispatch."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Callable, Union

from dbshell.engine import EngineError, Status, open_database
from dbshell.optimizer import optimize
from dbshell.parsing import format_statement, parse_sql
from dbshell.renderer import render_table_info, run_sql
from dbshell.session import DisplayMode, Session
from dbshell.tokenizer import tokenize

logger = logging.getLogger(__name__)

SENTINEL = "."
USAGE_ERROR = 1


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of handling one input line."""

    status: int = Status.OK
    terminate: bool = False  # The session should end


Handler = Callable[[Session, "Command", list[str]], Union[int, DispatchResult]]


@dataclass(frozen=True)
class Command:
    """A dot-command: its name (without the leading dot), usage text and handler."""

    name: str
    help: str
    handler: Handler

    def matches(self, word: str) -> bool:
        """Whether the command word ``word`` selects this command.

        The word only has to start with the name, so ``.optimizer`` selects
        ``opt`` and ``.openx`` selects ``open``.
        """
        return word[len(SENTINEL):].startswith(self.name)


def usage_error(command: Command, message: str) -> int:
    """Report a usage error for ``command`` and return the usage status."""
    print(f"ERROR: {message}", file=sys.stderr)
    print(command.help, file=sys.stderr)
    return USAGE_ERROR


def no_database_error() -> int:
    print("ERROR: No database is open.", file=sys.stderr)
    return USAGE_ERROR


def _parse_switch(command: Command, tokens: list[str], choices: dict[str, bool]) -> bool | None:
    """Validate a one-argument command against its allowed values.

    Returns the mapped value, or None after reporting a usage error.
    """
    if len(tokens) != 2:
        usage_error(command, "Invalid arguments")
        return None
    if tokens[1] not in choices:
        usage_error(command, "Invalid argument")
        return None
    return choices[tokens[1]]


ON_OFF = {"on": True, "off": False}


def cmd_open(session: Session, command: Command, tokens: list[str]) -> int:
    if len(tokens) != 2:
        return usage_error(command, "Invalid arguments")
    path = tokens[1]
    if not path:
        return usage_error(command, "Invalid argument")

    rc, database = open_database(path)
    if rc != Status.OK or database is None:
        print(f"ERROR: Could not open file {path} or file is not well formed.", file=sys.stderr)
        return rc

    session.replace_database(database, path)
    return Status.OK


def cmd_parse(session: Session, command: Command, tokens: list[str]) -> int:
    if len(tokens) != 2:
        return usage_error(command, "Invalid arguments")

    rc, tree = parse_sql(tokens[1])
    if rc != Status.OK:
        return rc

    print(format_statement(tree))
    return Status.OK


def cmd_opt(session: Session, command: Command, tokens: list[str]) -> int:
    if len(tokens) != 2:
        return usage_error(command, "Invalid arguments")
    if session.database is None:
        return no_database_error()

    rc, tree = parse_sql(tokens[1])
    if rc != Status.OK:
        return rc

    print(format_statement(tree))
    print()

    rc, optimized = optimize(session.database, tree)
    if rc != Status.OK:
        return rc

    print(format_statement(optimized))
    return Status.OK


def cmd_headers(session: Session, command: Command, tokens: list[str]) -> int:
    value = _parse_switch(command, tokens, ON_OFF)
    if value is None:
        return USAGE_ERROR
    session.header_visible = value
    return Status.OK


def cmd_mode(session: Session, command: Command, tokens: list[str]) -> int:
    if len(tokens) != 2:
        return usage_error(command, "Invalid arguments")
    try:
        session.display_mode = DisplayMode(tokens[1])
    except ValueError:
        return usage_error(command, "Invalid argument")
    return Status.OK


def cmd_explain(session: Session, command: Command, tokens: list[str]) -> int:
    value = _parse_switch(command, tokens, ON_OFF)
    if value is None:
        return USAGE_ERROR
    session.header_visible = value
    session.display_mode = DisplayMode.COLUMN if value else DisplayMode.LIST
    return Status.OK


def cmd_help(session: Session, command: Command, tokens: list[str]) -> int:
    for entry in COMMANDS:
        print(entry.help, file=sys.stderr)
    return Status.OK


def cmd_exit(session: Session, command: Command, tokens: list[str]) -> DispatchResult:
    session.close_database()
    return DispatchResult(Status.OK, terminate=True)


def cmd_desc(session: Session, command: Command, tokens: list[str]) -> int:
    if len(tokens) != 2:
        return usage_error(command, "Invalid arguments")
    database = session.database
    if database is None:
        return no_database_error()

    name = tokens[1]
    try:
        info = database.table_manager.get_table_info(name, database.transaction)
    except EngineError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return e.status
    if info is None:
        print(f"ERROR: No such table: {name}", file=sys.stderr)
        return Status.EINVALIDSQL

    render_table_info(session, info)
    return Status.OK


# Looked up in order; the first command whose name prefixes the word wins
COMMANDS: tuple[Command, ...] = (
    Command("open", ".open FILENAME     Close existing database (if any) and open FILENAME", cmd_open),
    Command("parse", '.parse "SQL"       Show parse tree for statement SQL', cmd_parse),
    Command("opt", '.optimizer "SQL"   Show parse tree and optimized parse tree for statement SQL', cmd_opt),
    Command("headers", ".headers on|off    Switch display of headers on or off in query results", cmd_headers),
    Command(
        "mode",
        ".mode MODE         Switch display mode. MODE is one of:\n"
        "                     column  Left-aligned columns\n"
        "                     list    Values delimited by | (default)",
        cmd_mode,
    ),
    Command("explain", ".explain on|off    Turn output mode suitable for EXPLAIN on or off.", cmd_explain),
    Command("help", ".help              Show this message", cmd_help),
    Command("exit", ".exit              Exit shell", cmd_exit),
    Command("desc", ".desc TABLENAME    Describe the columns of table TABLENAME", cmd_desc),
)


def find_command(word: str) -> Command | None:
    """Return the first registered command selected by ``word``."""
    for command in COMMANDS:
        if command.matches(word):
            return command
    return None


def handle_line(session: Session, line: str) -> DispatchResult:
    """Handle one line of input: a dot-command or a SQL statement."""
    if not line or line[0] != SENTINEL:
        # Anything that is not a command is SQL, which needs a database
        if session.database is None:
            return DispatchResult(no_database_error())
        return DispatchResult(run_sql(session, line))

    tokens = tokenize(line)
    command = find_command(tokens[0])
    if command is None:
        print(f"ERROR: Unrecognized command: {tokens[0]}", file=sys.stderr)
        return DispatchResult(USAGE_ERROR)

    logger.debug("dispatching %s with %d token(s)", command.name, len(tokens))
    result = command.handler(session, command, tokens)
    if isinstance(result, DispatchResult):
        return result
    return DispatchResult(result)
