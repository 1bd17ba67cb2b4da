"""Loading of the abstract syntax trees of the regions."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional

from .tables import Node, NodeKind, Tables

MAX_PENDING = 1000

_BY_LABEL = {kind.label: kind for kind in NodeKind}


def nature_from_name(name: str) -> NodeKind:
    """Node kind named in a tree file; unknown names give an empty instruction."""
    kind = _BY_LABEL.get(name)
    if kind is None:
        warnings.warn(f"nature inconnue '{name}'", RuntimeWarning, stacklevel=2)
        return NodeKind.VIDE
    return kind


@dataclass
class _Pending:
    node: Node
    expected: int
    received: int = 0
    last: Optional[Node] = None

    @property
    def waiting(self) -> bool:
        return self.received < self.expected


class TreeLoader:
    """Rebuilds region trees from nodes given in prefix order."""

    def __init__(self, tables: Tables) -> None:
        self.tables = tables
        self.regions_loaded = 0
        self.current_region = -1
        self._pending: list[_Pending] = []

    def begin_region(self, num_region: int) -> None:
        """Start the tree of a new region."""
        self.current_region = num_region
        self._pending.clear()
        self.regions_loaded += 1

    def _push(self, node: Node, nb_children: int) -> None:
        if len(self._pending) >= MAX_PENDING:
            raise ValueError("pile d'arbres pleine")
        self._pending.append(_Pending(node, nb_children))

    def add_node(self, nature: str, num_lex: int, num_decl: int, nb_children: int) -> Node:
        """Create a node and attach it under the node still waiting for children."""
        node = Node(nature_from_name(nature), value=num_lex, declaration=num_decl)

        if not self._pending:
            if not 0 <= self.current_region < len(self.tables.regions):
                raise ValueError(f"numéro région invalide ({self.current_region})")
            self.tables.regions[self.current_region].instructions = node
            self._push(node, nb_children)
            return node

        top = self._pending[-1]
        if top.waiting:
            if top.last is None:
                top.node.first_child = node
            else:
                top.last.next_sibling = node
            top.last = node
            top.received += 1
            if top.received >= top.expected:
                self._pending.pop()

        if nb_children > 0:
            self._push(node, nb_children)
        return node

    def finish(self) -> int:
        """Return how many regions had a tree loaded."""
        return self.regions_loaded