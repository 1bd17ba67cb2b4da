"""Loading of the declaration table."""

from __future__ import annotations

import warnings

from .tables import MAX_DECLARATIONS, MAX_LEXEMES, Declaration, Nature, Tables

_LABELS = {
    "TYPE_BASE": Nature.TYPE_BASE,
    "TYPE_STRUCT": Nature.TYPE_STRUCT,
    "TYPE_ARRAY": Nature.TYPE_ARRAY,
    "VAR": Nature.VAR,
    "PARAM": Nature.PARAM,
    "PROC": Nature.PROC,
    "FCT": Nature.FCT,
}


def nature_from_label(label: str) -> Nature:
    """Nature named by a label of a declaration file; unknown labels give TYPE_BASE."""
    nature = _LABELS.get(label)
    if nature is None:
        warnings.warn(f"nature inconnue '{label}'", RuntimeWarning, stacklevel=2)
        return Nature.TYPE_BASE
    return nature


class DeclarationLoader:
    """Fills the declaration table of a program one entry at a time."""

    def __init__(self, tables: Tables) -> None:
        self.tables = tables
        self.expected = 0
        self.loaded = 0
        self.tables.declarations.clear()

    def header(self, nb_declarations: int) -> None:
        """Record how many declarations the file announces."""
        if not 0 <= nb_declarations <= MAX_LEXEMES:
            raise ValueError(f"nombre de declarations invalide ({nb_declarations})")
        self.expected = nb_declarations

    def declaration(
        self,
        index: int,
        nature_name: str,
        region: int,
        description: int,
        execution: int,
    ) -> Declaration:
        """Store one declaration at its index."""
        if nature_name is None:
            raise ValueError("nature NULL")
        if index < 0:
            raise ValueError(f"index negatif ({index})")
        if index >= MAX_DECLARATIONS:
            raise ValueError(
                f"index >= MAX_DECLARATIONS ({index} >= {MAX_DECLARATIONS})"
            )
        if index >= MAX_LEXEMES and index >= self.tables.next_free_declaration:
            self.tables.next_free_declaration = index + 1
        entry = Declaration(
            nature=nature_from_label(nature_name),
            region=region,
            description=description,
            execution=execution,
            next_index=-1,
        )
        self.tables.declarations[index] = entry
        self.loaded += 1
        return entry

    def finish(self) -> int:
        """Check the count against the header and return how many were loaded."""
        if self.loaded != self.expected:
            warnings.warn(
                f"{self.loaded}/{self.expected} declarations chargees",
                RuntimeWarning,
                stacklevel=2,
            )
        return self.loaded