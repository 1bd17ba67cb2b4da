"""Execution of the instruction trees of a loaded program.

The interpreter walks the tree of the main region, runs each instruction
on an execution stack and writes the program's output to a text stream.
Trace lines describing each step go to the debug log.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, Callable, Iterator, Optional, TextIO

from . import operations
from .evaluator import Evaluator
from .stack import ExecutionStack
from .tables import (
    BOLD,
    GREEN,
    LIGHT_BLUE,
    RED,
    RESET,
    TYPE_BOOL,
    TYPE_CHAR,
    TYPE_INT,
    TYPE_REAL,
    Node,
    NodeKind,
    Tables,
    VMRuntimeError,
    count_specs,
)

_log = logging.getLogger(__name__)

_SPEC = re.compile(r"%(.)", re.DOTALL)
_INT = re.compile(r"[+-]?\d+")
_REAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_BASE_TYPES = (TYPE_INT, TYPE_REAL, TYPE_BOOL, TYPE_CHAR)
_READ_ERRORS = {
    TYPE_INT: "Erreur de lecture : entier attendu",
    TYPE_REAL: "Erreur de lecture : réel attendu",
    TYPE_BOOL: "Erreur de lecture : booléen (0 ou 1) attendu",
    TYPE_CHAR: "Erreur de lecture : caractère attendu",
}


def _trace(text: str) -> None:
    _log.debug(text)


def _cell_value(value: Any, type_index: int) -> Any:
    """Value converted for a cell of the given type; other types store integers."""
    if type_index == TYPE_REAL:
        return float(value)
    if type_index == TYPE_BOOL:
        return bool(value)
    if type_index == TYPE_CHAR:
        return value[:1] if isinstance(value, str) else chr(int(value))
    if isinstance(value, str):
        return ord(value[0]) if value else 0
    return int(value)


def _chain(node: Optional[Node], kind: NodeKind) -> Iterator[Node]:
    """Yield the elements of a list whose links are nodes of the given kind."""
    while node is not None and node.kind == kind:
        element = node.first_child
        if element is None:
            return
        yield element
        node = element.next_sibling


def _bool_text(value: Any) -> str:
    return "true" if value else "false"


class Interpreter:
    """Runs the trees of a program on an execution stack."""

    def __init__(
        self,
        tables: Tables,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self.tables = tables
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self._handlers: dict[NodeKind, Callable[[Node], None]] = {
            NodeKind.OPAFF: self.assign,
            NodeKind.ECRIRE: self.write,
            NodeKind.LIRE: self.read,
            NodeKind.IF_THEN_ELSE: self.if_then_else,
            NodeKind.WHILE: self.while_loop,
            NodeKind.RETURN: self.return_statement,
            NodeKind.APPEL_PROC: self.call_procedure,
            NodeKind.VIDE: self._empty,
        }
        self._reset()

    def _reset(self) -> None:
        self.stack = ExecutionStack(self.tables)
        self.evaluator = Evaluator(self.tables, self.stack, self.execute)

    def _dump(self) -> None:
        if _log.isEnabledFor(logging.DEBUG):
            _log.debug(self.stack.render())

    def run(self) -> ExecutionStack:
        """Execute the main region on a fresh stack and return that stack."""
        _trace("Début interprétation")
        self._reset()
        tree = self.tables.region_tree(0)
        if tree is None:
            raise VMRuntimeError("pas d'arbre pour région 0")
        self._dump()
        self.execute(tree)
        _trace("Fin interprétation")
        return self.stack

    def execute(self, node: Optional[Node]) -> None:
        """Execute an instruction or a list of instructions."""
        while node is not None and node.kind == NodeKind.LISTE_INSTRUCTIONS:
            _trace(f"{LIGHT_BLUE}Exécution : {node.kind.label}{RESET}")
            first = node.first_child
            if first is None:
                return
            self.execute(first)
            node = first.next_sibling
        if node is None:
            return
        _trace(f"{LIGHT_BLUE}Exécution : {node.kind.label}{RESET}")
        handler = self._handlers.get(node.kind)
        if handler is None:
            raise VMRuntimeError(f"instruction non gérée : {node.kind.label}")
        handler(node)

    def _empty(self, node: Node) -> None:
        _trace("  (instruction vide)")

    # --- assignment ------------------------------------------------------

    def _string_sources(self, node: Optional[Node]) -> Iterator[tuple[int, int]]:
        if node is None:
            return
        if node.kind == NodeKind.PLUS:
            left = node.first_child
            yield from self._string_sources(left)
            if left is not None:
                yield from self._string_sources(left.next_sibling)
        elif node.kind == NodeKind.IDF:
            address = self.evaluator.full_address(node)
            size = operations.string_size(self.tables, self.tables.node_type(node))
            yield address, size

    def assign(self, node: Node) -> None:
        """Store the value of the right-hand side in the destination variable."""
        destination = node.first_child
        if destination is None or destination.kind != NodeKind.IDF:
            raise VMRuntimeError("destination doit être IDF")
        source = destination.next_sibling
        name = self.tables.lexeme(destination.value)
        _trace(f"  Affectation : {name} := ...")

        address = self.evaluator.full_address(destination)
        type_index = self.tables.node_type(destination)

        if self.tables.is_string_type(type_index):
            size = operations.string_size(self.tables, type_index)
            if source is not None and source.kind == NodeKind.PLUS:
                operations.concatenate_strings(
                    self.stack, address, size, self._string_sources(source)
                )
            elif source is not None and source.kind == NodeKind.IDF:
                source_address = self.evaluator.full_address(source)
                operations.copy_string(self.stack, address, source_address, size)
                _trace(f"    Chaîne '{name}' : {size} caractères copiés")
            else:
                return
        else:
            value = self.evaluator.evaluate(source)
            _trace(
                f"    Variable '{name}' : pile[{address}] = "
                f"{operations.format_value(value, type_index)}"
            )
            self.stack.write(address, _cell_value(value, type_index))
        self._dump()

    # --- input and output ------------------------------------------------

    def _render_with_specs(self, text: str, variables: Optional[Node]) -> str:
        cursor = variables

        def replace(match: re.Match) -> str:
            nonlocal cursor
            spec = match.group(1)
            if spec == "%":
                return "%"
            if spec not in "dfc":
                return match.group(0)
            if cursor is None or cursor.first_child is None:
                raise VMRuntimeError("argument manquant pour le format")
            expression = cursor.first_child
            cursor = expression.next_sibling
            value = self.evaluator.evaluate(expression)
            return operations.format_value(value, self.tables.node_type(expression))

        return _SPEC.sub(replace, text)

    def _render_plain(self, text: str, variables: Optional[Node]) -> str:
        values = [
            operations.format_value(
                self.evaluator.evaluate(expression), self.tables.node_type(expression)
            )
            for expression in _chain(variables, NodeKind.LISTE_VARIABLES)
        ]
        return text + " ".join(values)

    def write(self, node: Node) -> None:
        """Print a format, filled with its variables, to the output stream."""
        format_node = node.first_child
        if format_node is None:
            raise VMRuntimeError("écriture sans format")
        text = self.tables.lexeme(format_node.value)
        variables = format_node.next_sibling
        _trace(f"  Write : {text}")
        if count_specs(text) > 0:
            rendered = self._render_with_specs(text, variables)
        else:
            rendered = self._render_plain(text, variables)
        self.stdout.write(f"{BOLD}Sortie : {RESET}{rendered}\n\n")

    def _next_input(self) -> Optional[str]:
        """Next line holding something other than whitespace, leading blanks removed."""
        while True:
            line = self.stdin.readline()
            if not line:
                return None
            text = line.lstrip()
            if text:
                return text

    @staticmethod
    def _parse_input(text: Optional[str], type_index: int) -> Any:
        error = _READ_ERRORS[type_index]
        if text is None:
            raise VMRuntimeError(error)
        if type_index == TYPE_CHAR:
            return text[0]
        if type_index == TYPE_REAL:
            match = _REAL.match(text)
            if match is None:
                raise VMRuntimeError(error)
            return float(match.group(0))
        match = _INT.match(text)
        if match is None:
            raise VMRuntimeError(error)
        number = int(match.group(0))
        return number != 0 if type_index == TYPE_BOOL else number

    def read(self, node: Node) -> None:
        """Read one value per variable from the input, one line each."""
        for variable in _chain(node.first_child, NodeKind.LISTE_VARIABLES):
            address = self.evaluator.full_address(variable)
            type_index = self.tables.node_type(variable)
            if type_index not in _BASE_TYPES:
                raise VMRuntimeError("Type non supporté pour lecture")
            value = self._parse_input(self._next_input(), type_index)
            self.stack.write(address, value)
            _trace(
                f"  Lecture : {self.tables.variable_name(variable)} = "
                f"{operations.format_value(value, type_index)}"
            )
        self._dump()

    # --- control flow ----------------------------------------------------

    def if_then_else(self, node: Node) -> None:
        """Run the branch selected by the condition."""
        condition = node.first_child
        if condition is None:
            raise VMRuntimeError("condition manquante")
        then_branch = condition.next_sibling
        else_branch = then_branch.next_sibling if then_branch is not None else None

        _trace("  Évaluation condition IF...")
        if self.evaluator.evaluate(condition):
            _trace(f"  Condition : {GREEN}true{RESET} -> Branche THEN")
            self.execute(then_branch)
        else:
            _trace(f"  Condition : {RED}false{RESET} -> Branche ELSE")
            self.execute(else_branch)
        _trace("  Fin IF")
        self._dump()

    def while_loop(self, node: Node) -> None:
        """Run the body as long as the condition holds."""
        condition = node.first_child
        if condition is None:
            raise VMRuntimeError("condition manquante")
        body = condition.next_sibling
        iterations = 0
        _trace("  Évaluation condition WHILE...")
        while self.evaluator.evaluate(condition):
            iterations += 1
            _trace(f"  Condition : {GREEN}true{RESET} -> Itération {iterations}")
            self.execute(body)
            _trace("  Réévaluation condition WHILE...")
        _trace(
            f"  Condition : {RED}false{RESET} -> Sortie WHILE "
            f"(après {iterations} itération(s))"
        )
        self._dump()

    def return_statement(self, node: Node) -> None:
        """Store the returned value in the return cell of the running function."""
        expression = node.first_child
        if expression is not None:
            value = self.evaluator.evaluate(expression)
            type_index = self.tables.node_type(expression)
            if type_index in _BASE_TYPES:
                self.stack.write_return_value(_cell_value(value, type_index))
        self._dump()

    def call_procedure(self, node: Node) -> None:
        """Evaluate the arguments, run the procedure in a new zone, then leave it."""
        declaration = self.tables.declarations.get(node.declaration)
        if declaration is None:
            raise VMRuntimeError(f"numéro déclaration invalide ({node.declaration})")
        num_region = declaration.execution

        arguments = [
            (self.evaluator.evaluate(argument), self.tables.node_type(argument))
            for argument in _chain(node.first_child, NodeKind.LISTE_ARGUMENTS)
        ]

        self.stack.push_zone(num_region)
        for position, (value, type_index) in enumerate(arguments):
            parameter = operations.find_parameter(self.tables, num_region, position)
            if parameter is None:
                raise VMRuntimeError("Paramètre introuvable")
            address = self.stack.base + self.tables.declarations[parameter].execution
            if type_index in _BASE_TYPES:
                self.stack.write(address, _cell_value(value, type_index))
            _trace(
                f"  Paramètre {position} : pile[{address}] = "
                f"{operations.format_value(value, type_index)}"
            )

        self.execute(self.tables.region_tree(num_region))
        self._dump()
        self.stack.pop_zone()


def interpret(
    tables: Tables,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> ExecutionStack:
    """Run a loaded program and return the stack it finished on."""
    return Interpreter(tables, stdin, stdout).run()