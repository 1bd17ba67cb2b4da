"""Loading of the lexeme table."""

from __future__ import annotations

import re
import warnings

from .tables import MAX_LEXEME_LENGTH, MAX_LEXEMES, Tables

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"'}
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


def _replace(match: re.Match) -> str:
    char = match.group(1)
    return _ESCAPES.get(char, "\\" + char)


def unescape(text: str) -> str:
    """Resolve the escape sequences of a stored lexeme.

    Recognised sequences are \\n, \\t, \\r, \\\\ and \\"; any other escape,
    as well as a trailing backslash, is kept as written.
    """
    return _ESCAPE.sub(_replace, text)


class LexiconLoader:
    """Fills the lexeme table of a program one entry at a time."""

    def __init__(self, tables: Tables) -> None:
        self.tables = tables
        self.expected = 0
        self.loaded = 0
        self.tables.lexemes.clear()

    def header(self, nb_entries: int) -> None:
        """Record how many lexemes the file announces."""
        if not 0 <= nb_entries <= MAX_LEXEMES:
            raise ValueError(f"nombre d'entrees invalide ({nb_entries})")
        self.expected = nb_entries

    def entry(self, index: int, lexeme: str) -> str:
        """Append one lexeme, escapes resolved and length limited.

        Entries are stored in the order they arrive; the index written in
        the file is not used for placement.
        """
        if self.loaded >= MAX_LEXEMES:
            raise ValueError("table lexique pleine")
        if lexeme is None:
            raise ValueError("lexeme NULL")
        text = unescape(lexeme)[: MAX_LEXEME_LENGTH - 1]
        self.tables.lexemes.append(text)
        self.loaded += 1
        return text

    def finish(self) -> int:
        """Check the count against the header and return how many were loaded."""
        if self.loaded != self.expected:
            warnings.warn(
                f"{self.loaded}/{self.expected} lexemes charges",
                RuntimeWarning,
                stacklevel=2,
            )
        return self.loaded