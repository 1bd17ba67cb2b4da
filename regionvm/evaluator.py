"""Evaluation of expressions by the virtual machine."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TextIO

from . import operations
from .addressing import array_address, field_address, variable_address
from .stack import ExecutionStack
from .tables import (
    ARITHMETIC_KINDS,
    COMPARISON_KINDS,
    CONSTANT_TYPES,
    CYAN,
    LIGHT_BLUE,
    RESET,
    TYPE_BOOL,
    TYPE_CHAR,
    TYPE_INT,
    TYPE_REAL,
    Node,
    NodeKind,
    Tables,
    VMRuntimeError,
)

_log = logging.getLogger(__name__)

_SYMBOLS = {
    NodeKind.PLUS: "+",
    NodeKind.MOINS: "-",
    NodeKind.MULT: "*",
    NodeKind.DIV: "/",
}


def _bool_text(value: Any) -> str:
    return "true" if value else "false"


def _coerce(value: Any, type_index: int) -> Optional[Any]:
    """Value converted for a cell of a base type, or None for other types."""
    if type_index == TYPE_INT:
        return ord(value[0]) if isinstance(value, str) and value else int(value)
    if type_index == TYPE_REAL:
        return float(value)
    if type_index == TYPE_BOOL:
        return bool(value)
    if type_index == TYPE_CHAR:
        return value if isinstance(value, str) else chr(int(value))
    return None


class Evaluator:
    """Computes the values of expression trees on an execution stack.

    ``execute`` runs the instruction tree of a called function.  Trace lines
    go to ``output`` when it is given, to the debug log otherwise.
    """

    def __init__(
        self,
        tables: Tables,
        stack: ExecutionStack,
        execute: Callable[[Optional[Node]], None],
        output: Optional[TextIO] = None,
    ) -> None:
        self.tables = tables
        self.stack = stack
        self.execute = execute
        self.output = output

    def _trace(self, text: str) -> None:
        if self.output is not None:
            self.output.write(text + "\n")
        else:
            _log.debug(text)

    def evaluate(self, node: Optional[Node]) -> Any:
        """Value of an expression."""
        if node is None:
            raise VMRuntimeError("evaluer_arbre NULL")
        kind = node.kind
        self._trace(f"{LIGHT_BLUE}Évaluation : {kind.label}{RESET}")

        if kind in CONSTANT_TYPES or kind == NodeKind.CSTE_CHAINE:
            return self.evaluate_constant(node)
        if kind == NodeKind.IDF:
            return self.evaluate_variable(node)
        if kind in ARITHMETIC_KINDS:
            return self._arithmetic(node)
        if kind == NodeKind.MOINS_UNAIRE:
            operand = self.evaluate(node.first_child)
            type_index = self.tables.node_type(node.first_child)
            result = operations.negate(operand, type_index)
            self._trace(f"  Négation unaire : -{operand} = {result}")
            return result
        if kind in COMPARISON_KINDS:
            return self._comparison(node)
        if kind in (NodeKind.ET, NodeKind.OU):
            left = self.evaluate(node.first_child)
            right = self.evaluate(node.first_child.next_sibling)
            result = operations.boolean_operation(kind, left, right)
            word = "and" if kind == NodeKind.ET else "or"
            self._trace(
                f"  Opération booléenne {word.upper()} : {_bool_text(left)} {word} "
                f"{_bool_text(right)} = {_bool_text(result)}"
            )
            return result
        if kind == NodeKind.NON:
            operand = self.evaluate(node.first_child)
            result = operations.boolean_not(operand)
            self._trace(
                f"  Negation booleenne : not {_bool_text(operand)} = {_bool_text(result)}"
            )
            return result
        if kind == NodeKind.APPEL_FCT:
            result = self.call_function(node)
            type_index = self.tables.node_type(node)
            self._trace(f"  Retour fonction : {operations.format_value(result, type_index)}")
            return result
        raise VMRuntimeError(f"expression non gérée : {kind.label}")

    def _arithmetic(self, node: Node) -> Any:
        left_node = node.first_child
        left = self.evaluate(left_node)
        right = self.evaluate(left_node.next_sibling)
        type_index = self.tables.node_type(left_node)
        result = operations.arithmetic(node.kind, left, right, type_index)
        symbol = _SYMBOLS[node.kind]
        self._trace(f"  Opération {symbol} : {CYAN}{left} {symbol} {right} = {result}{RESET}")
        return result

    def _comparison(self, node: Node) -> bool:
        left_node = node.first_child
        right_node = left_node.next_sibling
        type_index = self.tables.node_type(left_node)
        if self.tables.is_string_type(type_index):
            left_address = self.full_address(left_node)
            right_address = self.full_address(right_node)
            left_size = operations.string_size(self.tables, type_index)
            right_size = operations.string_size(
                self.tables, self.tables.node_type(right_node)
            )
            result = operations.compare_strings(
                self.stack, left_address, left_size, right_address, right_size, node.kind
            )
            self._trace(f"  Résultat : {_bool_text(result)}")
            return result
        left = self.evaluate(left_node)
        right = self.evaluate(right_node)
        result = operations.compare(node.kind, left, right, type_index)
        self._trace(f"  Comparaison : {_bool_text(result)}")
        return result

    def evaluate_constant(self, node: Node) -> Any:
        """Value of a constant node; a string constant gives its lexeme number."""
        kind = node.kind
        if kind == NodeKind.CSTE_ENT:
            value: Any = int(node.value)
            self._trace(f"  Constante entière : {value}")
        elif kind == NodeKind.CSTE_REELLE:
            text = self.tables.lexeme(node.value)
            try:
                value = float(text)
            except ValueError as error:
                raise VMRuntimeError(f"constante réelle invalide '{text}'") from error
            self._trace(f"  Constante réelle : {value:f}")
        elif kind == NodeKind.CSTE_BOOL:
            value = bool(node.value)
            self._trace(f"  Constante booléenne : {_bool_text(value)}")
        elif kind == NodeKind.CSTE_CHAR:
            value = chr(node.value)
            self._trace(f"  Constante caractère : '{value}'")
        elif kind == NodeKind.CSTE_CHAINE:
            value = node.value
            self._trace(f'  Constante chaîne : "{self.tables.lexeme(node.value)}"')
        else:
            raise VMRuntimeError("type constante inconnu")
        return value

    def evaluate_variable(self, node: Node) -> Any:
        """Value stored in a variable, accesses included."""
        if node.kind != NodeKind.IDF:
            raise VMRuntimeError("evaluer_variable sur non-IDF")
        self._trace(f"  Lecture variable '{self.tables.lexeme(node.value)}'")
        address = self.full_address(node)
        self._trace(f"    adresse pile = {address}")
        value = self.stack.read(address)
        type_index = self.tables.node_type(node)
        self._trace(f"    valeur = {operations.format_value(value, type_index)}")
        return value

    def call_function(self, node: Node) -> Any:
        """Evaluate the arguments, run the function and return its result."""
        declaration = self.tables.declarations.get(node.declaration)
        if declaration is None:
            raise VMRuntimeError(f"numéro déclaration invalide ({node.declaration})")
        num_region = declaration.execution

        arguments: list[tuple[Any, int]] = []
        cursor = node.first_child
        while cursor is not None and cursor.kind == NodeKind.LISTE_ARGUMENTS:
            argument = cursor.first_child
            arguments.append((self.evaluate(argument), self.tables.node_type(argument)))
            cursor = argument.next_sibling

        self.stack.push_zone(num_region)
        shift = 1 if self.tables.is_function_region(num_region) else 0
        for position, (value, type_index) in enumerate(arguments):
            parameter = operations.find_parameter(self.tables, num_region, position)
            if parameter is None:
                raise VMRuntimeError("Paramètre introuvable")
            address = (
                self.stack.base + self.tables.declarations[parameter].execution + shift
            )
            stored = _coerce(value, type_index)
            if stored is not None:
                self.stack.write(address, stored)
            self._trace(
                f"  Paramètre {position} : pile[{address}] = "
                f"{operations.format_value(value, type_index)}"
            )

        self.execute(self.tables.region_tree(num_region))
        self._trace(self.stack.render())
        return self.stack.pop_function_zone()

    def full_address(self, node: Optional[Node]) -> int:
        """Stack address of a variable after all its field and index accesses."""
        if node is None or node.kind != NodeKind.IDF:
            raise VMRuntimeError("calculer_adresse_complete sur non-IDF")
        address = variable_address(self.tables, self.stack, node.declaration)
        current_type = self.tables.declaration_type(node.declaration)

        access = node.first_child
        while access is not None:
            if access.kind == NodeKind.LISTE_CHAMPS:
                champ = access.first_child
                rep_index = self.tables.declaration_type(current_type)
                field_type, displacement = self.tables.field_info(rep_index, champ.value)
                address = field_address(self.stack, address, displacement)
                current_type = field_type
                access = champ.next_sibling
            elif access.kind == NodeKind.LISTE_INDICES:
                indices: list[int] = []
                while access is not None and access.kind == NodeKind.LISTE_INDICES:
                    element = access.first_child
                    indices.append(int(self.evaluate(element)))
                    access = element.next_sibling
                rep_index = self.tables.declaration_type(current_type)
                address = array_address(self.tables, self.stack, address, rep_index, indices)
                current_type = self.tables.array_element_type(rep_index)
            else:
                break
        return address