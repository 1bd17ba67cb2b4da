"""Program tables shared by the loaders and the interpreter.

Holds the lexemes, declarations, type representations, regions and the
abstract syntax trees of a compiled program, with the queries the virtual
machine needs on them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, Optional

MAX_LEXEMES = 500
MAX_LEXEME_LENGTH = 100
MAX_DECLARATIONS = 5000
MAX_REGIONS = 100
MAX_REPRESENTATION = 10000
MAX_ENTRY_POINTS = 500

RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"
RESET = "\033[0m"
BOLD = "\033[1m"
LIGHT_BLUE = "\033[94m"
LIGHT_CYAN = "\033[96m"
LIGHT_GREEN = "\033[92m"
GREY = "\033[90m"

TYPE_INT = 0
TYPE_REAL = 1
TYPE_BOOL = 2
TYPE_CHAR = 3
BASE_TYPE_COUNT = 4
UNKNOWN_TYPE = -1

_SPEC = re.compile(r"%(.)", re.DOTALL)


class VMRuntimeError(Exception):
    """An error that stops the execution of the program."""


class Nature(IntEnum):
    """Kind of a declaration."""

    TYPE_BASE = 0
    TYPE_STRUCT = 1
    TYPE_ARRAY = 2
    VAR = 3
    PARAM = 4
    PROC = 5
    FCT = 6


class NodeKind(IntEnum):
    """Kind of an abstract syntax tree node."""

    PROGRAMME = 1
    LISTE_INSTRUCTIONS = 2
    LISTE_ARGUMENTS = 3
    LISTE_INDICES = 4
    LISTE_VARIABLES = 5
    OPAFF = 6
    IF_THEN_ELSE = 7
    WHILE = 8
    APPEL_PROC = 9
    APPEL_FCT = 10
    RETURN = 11
    LIRE = 12
    ECRIRE = 13
    VIDE = 14
    PLUS = 15
    MOINS = 16
    MULT = 17
    DIV = 18
    MOINS_UNAIRE = 19
    ET = 20
    OU = 21
    NON = 22
    EGAL = 23
    DIFF = 24
    INF = 25
    SUP = 26
    INF_EGAL = 27
    SUP_EGAL = 28
    IDF = 29
    ACCES_TABLEAU = 30
    ACCES_CHAMP = 31
    CSTE_ENT = 32
    CSTE_REELLE = 33
    CSTE_BOOL = 34
    CSTE_CHAR = 35
    CSTE_CHAINE = 36
    CHAMP = 37
    LISTE_CHAMPS = 38

    @property
    def label(self) -> str:
        """Name of the kind as written in tree files."""
        return f"A_{self.name}"


ARITHMETIC_KINDS = frozenset(
    {NodeKind.PLUS, NodeKind.MOINS, NodeKind.MULT, NodeKind.DIV}
)
COMPARISON_KINDS = frozenset(
    {
        NodeKind.EGAL,
        NodeKind.DIFF,
        NodeKind.INF,
        NodeKind.SUP,
        NodeKind.INF_EGAL,
        NodeKind.SUP_EGAL,
    }
)
BOOLEAN_KINDS = frozenset({NodeKind.ET, NodeKind.OU, NodeKind.NON})
CONSTANT_TYPES = {
    NodeKind.CSTE_ENT: TYPE_INT,
    NodeKind.CSTE_REELLE: TYPE_REAL,
    NodeKind.CSTE_BOOL: TYPE_BOOL,
    NodeKind.CSTE_CHAR: TYPE_CHAR,
}


@dataclass(eq=False)
class Node:
    """A node of an abstract syntax tree, in first-child / next-sibling form."""

    kind: NodeKind
    value: int = 0
    declaration: int = -1
    line: int = 0
    column: int = 0
    length: int = 0
    first_child: Optional[Node] = None
    next_sibling: Optional[Node] = None

    def children(self) -> Iterator[Node]:
        """Yield the first child and its chain of siblings."""
        node = self.first_child
        while node is not None:
            yield node
            node = node.next_sibling


@dataclass
class Declaration:
    """An entry of the declaration table."""

    nature: Nature
    region: int = -1
    description: int = -1
    execution: int = -1
    next_index: int = -1


@dataclass
class Region:
    """An entry of the region table."""

    number: int
    parent: int = -1
    nis: int = 0
    size: int = 0
    instructions: Optional[Node] = None


@dataclass
class EntryPoint:
    """Start of a representation: 'S' struct, 'A' array, 'F' function, 'P' procedure."""

    index: int
    kind: str


def _default_regions() -> list[Region]:
    return [Region(number) for number in range(MAX_REGIONS)]


@dataclass
class Tables:
    """Every table of a loaded program."""

    lexemes: list[str] = field(default_factory=list)
    declarations: dict[int, Declaration] = field(default_factory=dict)
    representation: list[int] = field(default_factory=list)
    entry_points: list[EntryPoint] = field(default_factory=list)
    regions: list[Region] = field(default_factory=_default_regions)
    next_free_declaration: int = MAX_LEXEMES

    def lexeme(self, number: int) -> str:
        """Text of the lexeme with this number."""
        if not 0 <= number < len(self.lexemes):
            raise VMRuntimeError(f"numéro de lexème invalide ({number})")
        return self.lexemes[number]

    def _declaration(self, index: int) -> Declaration:
        declaration = self.declarations.get(index)
        if declaration is None:
            raise VMRuntimeError(f"numéro déclaration invalide ({index})")
        return declaration

    def _cell(self, index: int) -> int:
        if not 0 <= index < len(self.representation):
            raise VMRuntimeError(f"numéro représentation invalide ({index})")
        return self.representation[index]

    def nature_of(self, index: int) -> Nature:
        """Nature of the declaration at this index."""
        return Nature(self._declaration(index).nature)

    def declaration_type(self, index: int) -> int:
        """Type of a variable or parameter, or representation index of a type."""
        return self._declaration(index).description

    def _fields(self, rep_index: int) -> Iterator[tuple[int, int, int]]:
        count = self._cell(rep_index)
        start = rep_index + 1
        cells = self.representation[start:start + 3 * count]
        if len(cells) != 3 * count:
            raise VMRuntimeError(f"structure tronquée ({rep_index})")
        values = iter(cells)
        return zip(values, values, values)

    def field_info(self, rep_index: int, num_lex: int) -> tuple[int, int]:
        """Type and displacement of the named field of a structure."""
        for lex, field_type, displacement in self._fields(rep_index):
            if lex == num_lex:
                return field_type, displacement
        raise VMRuntimeError("champ non trouvé")

    def array_dimensions(self, rep_index: int) -> int:
        """Number of dimensions of an array representation."""
        return self._cell(rep_index + 1)

    def array_bounds(self, rep_index: int, dimension: int) -> tuple[int, int]:
        """Lower and upper bound of one dimension of an array."""
        if not 0 <= dimension < self.array_dimensions(rep_index):
            raise VMRuntimeError(f"dimension invalide ({dimension})")
        start = rep_index + 2 + 2 * dimension
        return self._cell(start), self._cell(start + 1)

    def _all_bounds(self, rep_index: int) -> list[tuple[int, int]]:
        return [
            self.array_bounds(rep_index, dimension)
            for dimension in range(self.array_dimensions(rep_index))
        ]

    def array_element_type(self, rep_index: int) -> int:
        """Type of the elements of an array."""
        return self._cell(rep_index)

    def type_size(self, type_index: int) -> int:
        """Number of stack cells taken by a value of this type."""
        if 0 <= type_index < BASE_TYPE_COUNT:
            return 1
        nature = self.nature_of(type_index)
        rep_index = self.declaration_type(type_index)
        if nature == Nature.TYPE_BASE:
            return 1
        if nature == Nature.TYPE_STRUCT:
            return sum(
                self.type_size(field_type) for _, field_type, _ in self._fields(rep_index)
            )
        if nature == Nature.TYPE_ARRAY:
            size = self.type_size(self.array_element_type(rep_index))
            for low, high in self._all_bounds(rep_index):
                size *= high - low + 1
            return size
        raise VMRuntimeError(f"la déclaration {type_index} n'est pas un type")

    def is_function_region(self, num_region: int) -> bool:
        """Whether the region is the body of a function."""
        return any(
            declaration.nature == Nature.FCT and declaration.execution == num_region
            for declaration in self.declarations.values()
        )

    def region_tree(self, num_region: int) -> Optional[Node]:
        """Instruction tree of a region."""
        if not 0 <= num_region < len(self.regions):
            raise VMRuntimeError(f"numéro région invalide ({num_region})")
        return self.regions[num_region].instructions

    def _walk_accesses(self, node: Node) -> Iterator[tuple[NodeKind, Node, int]]:
        """Yield each access of a variable with the type reached after it."""
        current = self.declaration_type(node.declaration)
        access = node.first_child
        while access is not None:
            if access.kind == NodeKind.LISTE_CHAMPS:
                champ = access.first_child
                current, _ = self.field_info(self.declaration_type(current), champ.value)
                yield NodeKind.LISTE_CHAMPS, champ, current
                access = champ.next_sibling
            elif access.kind == NodeKind.LISTE_INDICES:
                first = access
                while access is not None and access.kind == NodeKind.LISTE_INDICES:
                    access = access.first_child.next_sibling
                current = self.array_element_type(self.declaration_type(current))
                yield NodeKind.LISTE_INDICES, first, current
            else:
                return

    def node_type(self, node: Optional[Node]) -> int:
        """Type of the value an expression node produces, or -1."""
        if node is None:
            return UNKNOWN_TYPE
        kind = node.kind
        if kind in CONSTANT_TYPES:
            return CONSTANT_TYPES[kind]
        if kind == NodeKind.IDF:
            current = self.declaration_type(node.declaration)
            for _, _, reached in self._walk_accesses(node):
                current = reached
            return current
        if kind in ARITHMETIC_KINDS or kind == NodeKind.MOINS_UNAIRE:
            return self.node_type(node.first_child)
        if kind in COMPARISON_KINDS or kind in BOOLEAN_KINDS:
            return TYPE_BOOL
        if kind == NodeKind.APPEL_FCT:
            return self._cell(self.declaration_type(node.declaration))
        return UNKNOWN_TYPE

    def is_string_type(self, type_index: int) -> bool:
        """Whether the type is a one-dimensional array of characters."""
        if type_index < BASE_TYPE_COUNT:
            return False
        declaration = self.declarations.get(type_index)
        if declaration is None or declaration.nature != Nature.TYPE_ARRAY:
            return False
        rep_index = declaration.description
        return (
            self.array_element_type(rep_index) == TYPE_CHAR
            and self.array_dimensions(rep_index) == 1
        )

    def variable_name(self, node: Node) -> str:
        """Full name of a variable with its field and index accesses."""
        parts = [self.lexeme(node.value)]
        for kind, access, _ in self._walk_accesses(node):
            if kind == NodeKind.LISTE_CHAMPS:
                parts.append(f".{self.lexeme(access.value)}")
            else:
                parts.append("[...]")
        return "".join(parts)


def count_specs(format_text: str) -> int:
    """Count the %d, %f and %c specifiers of a format, %% excluded."""
    return sum(1 for match in _SPEC.finditer(format_text) if match.group(1) in "dfc")