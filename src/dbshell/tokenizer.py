"""Splits shell command lines into tokens."""

from __future__ import annotations


def tokenize(line: str) -> list[str]:
    """Split a command line on runs of whitespace.

    A token starting with a double quote runs to the next double quote and
    may contain whitespace; the quotes themselves are dropped. An unterminated
    quote extends to the end of the line.

    >>> tokenize('.parse "SELECT * FROM t"')
    ['.parse', 'SELECT * FROM t']
    """
    tokens = []
    i = 0
    n = len(line)

    while i < n:
        if line[i].isspace():
            i += 1
            continue

        if line[i] == '"':
            end = line.find('"', i + 1)
            if end == -1:
                end = n
            tokens.append(line[i + 1:end])
            i = end + 1
            continue

        start = i
        while i < n and not line[i].isspace():
            i += 1
        tokens.append(line[start:i])

    return tokens
