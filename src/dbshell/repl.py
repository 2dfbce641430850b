"""Interactive shell for dbshell databases."""

from __future__ import annotations

import argparse
import logging
import readline  # noqa: F401 - enables line editing in input()
import sys
from pathlib import Path

from dbshell.commands import handle_line
from dbshell.engine import Status, open_database
from dbshell.session import DisplayMode, Session

logger = logging.getLogger(__name__)

PROMPT = "dbshell> "
HISTORY_FILE = ".dbshell_history"


def open_initial_database(session: Session, path: Path) -> int:
    """Open the database named on the command line."""
    rc, database = open_database(path)
    if rc != Status.OK or database is None:
        print(f"ERROR: Could not open file {path} or file is not well formed.", file=sys.stderr)
        return 1
    session.replace_database(database, str(path))
    return 0


def run_repl(session: Session) -> int:
    """Run the interactive shell until .exit or end of input."""
    print("dbshell - interactive SQL shell")
    if session.database_path:
        print(f"Database: {session.database_path}")
    else:
        print('No database open. Use ".open FILENAME" to open one.')
    print('Enter ".help" for usage hints.\n')

    # Command history
    history_file = Path.home() / HISTORY_FILE
    try:
        readline.read_history_file(history_file)
    except (FileNotFoundError, OSError):
        pass

    try:
        while True:
            try:
                line = input(PROMPT).strip()
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                # Ctrl-C abandons the line being typed
                print()
                continue

            if not line:
                continue

            result = handle_line(session, line)
            if result.terminate:
                break

    finally:
        # Save history
        try:
            readline.set_history_length(1000)
            readline.write_history_file(history_file)
        except OSError as e:
            logger.debug("could not save history to %s: %s", history_file, e)

        session.close_database()

    return 0


def run_file(file_path: Path, session: Session, verbose: bool = False) -> int:
    """Execute shell input from a file, one command or statement per line.

    Args:
        file_path: Path to the file to run
        session: Session the lines run against
        verbose: If True, print each line before executing it

    Returns:
        0 on success, 1 as soon as a line fails
    """
    try:
        content = file_path.read_text()
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    for line in content.splitlines():
        line = line.strip()
        # Skip blank lines and comments
        if not line or line.startswith("--"):
            continue

        if verbose:
            print(f">>> {line}")

        result = handle_line(session, line)
        if result.terminate:
            break
        if result.status != Status.OK:
            return 1

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        description="Interactive shell for embedded SQL databases"
    )
    arg_parser.add_argument(
        "database",
        type=Path,
        nargs="?",
        default=None,
        help="Database file to open on startup (optional)",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute a single command or statement and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute commands and statements from a file and exit",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each line before executing (for -f/--file)",
    )
    headers = arg_parser.add_mutually_exclusive_group()
    headers.add_argument(
        "--header",
        dest="header",
        action="store_true",
        default=None,
        help="Show column headers in query results (default)",
    )
    headers.add_argument(
        "--noheader",
        dest="header",
        action="store_false",
        help="Hide column headers in query results",
    )
    arg_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in DisplayMode],
        default=None,
        help="Initial display mode (default: list)",
    )
    arg_parser.add_argument(
        "--debug",
        action="store_true",
        help="Log engine and dispatch activity to stderr",
    )

    args = arg_parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    session = Session()
    if args.header is not None:
        session.header_visible = args.header
    if args.mode is not None:
        session.display_mode = DisplayMode(args.mode)

    if args.database is not None and open_initial_database(session, args.database) != 0:
        return 1

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            session.close_database()
            return 1
        try:
            return run_file(args.file, session, args.verbose)
        finally:
            session.close_database()

    if args.command:
        try:
            result = handle_line(session, args.command)
        finally:
            session.close_database()
        return 0 if result.status == Status.OK else 1

    return run_repl(session)


if __name__ == "__main__":
    sys.exit(main())
