"""Value operations of the virtual machine.

Arithmetic, comparisons and boolean logic on the values held in stack
cells, plus the helpers that work on character strings laid out over
consecutive cells.
"""

from __future__ import annotations

import logging
import operator as _op
from typing import Any, Callable, Iterable, Optional

from .stack import ExecutionStack
from .tables import (
    CYAN,
    RED,
    RESET,
    TYPE_BOOL,
    TYPE_CHAR,
    TYPE_INT,
    TYPE_REAL,
    Nature,
    NodeKind,
    Tables,
    VMRuntimeError,
)

_log = logging.getLogger(__name__)

_COMPARATORS: dict[NodeKind, Callable[[Any, Any], bool]] = {
    NodeKind.EGAL: _op.eq,
    NodeKind.DIFF: _op.ne,
    NodeKind.INF: _op.lt,
    NodeKind.SUP: _op.gt,
    NodeKind.INF_EGAL: _op.le,
    NodeKind.SUP_EGAL: _op.ge,
}


def _kind(operator: int) -> Optional[NodeKind]:
    try:
        return NodeKind(operator)
    except ValueError:
        return None


def _code(value: Any) -> int:
    """Character code of a character value held as text or as a number."""
    if isinstance(value, str):
        return ord(value[0]) if value else 0
    return int(value)


def _char(value: Any) -> str:
    if isinstance(value, str):
        return value[:1]
    code = int(value)
    return chr(code) if 0 <= code < 0x110000 else "?"


def _truncating_div(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


def format_value(value: Any, type_index: int) -> str:
    """Text of a value according to its base type, coloured for a terminal."""
    if type_index == TYPE_INT:
        text = str(int(value))
    elif type_index == TYPE_REAL:
        text = f"{float(value):f}"
    elif type_index == TYPE_BOOL:
        text = "true" if value else "false"
    elif type_index == TYPE_CHAR:
        text = _char(value)
    else:
        return f"{RED}???{RESET}"
    return f"{CYAN}{text}{RESET}"


def arithmetic(operator: int, left: Any, right: Any, type_index: int) -> Any:
    """Apply +, -, * or / to two integers or two reals."""
    kind = _kind(operator)
    if type_index == TYPE_INT:
        a, b = int(left), int(right)
        if kind == NodeKind.PLUS:
            return a + b
        if kind == NodeKind.MOINS:
            return a - b
        if kind == NodeKind.MULT:
            return a * b
        if kind == NodeKind.DIV:
            if b == 0:
                raise VMRuntimeError("Division par zéro")
            return _truncating_div(a, b)
        raise VMRuntimeError("Opérateur arithmétique inconnu")
    if type_index == TYPE_REAL:
        x, y = float(left), float(right)
        if kind == NodeKind.PLUS:
            return x + y
        if kind == NodeKind.MOINS:
            return x - y
        if kind == NodeKind.MULT:
            return x * y
        if kind == NodeKind.DIV:
            if y == 0.0:
                raise VMRuntimeError("Division par zéro")
            return x / y
        raise VMRuntimeError("Opérateur arithmétique inconnu")
    raise VMRuntimeError("Type non numérique dans opération arithmétique")


def negate(value: Any, type_index: int) -> Any:
    """Unary minus on an integer or a real."""
    if type_index == TYPE_INT:
        return -int(value)
    if type_index == TYPE_REAL:
        return -float(value)
    raise VMRuntimeError("Type non numérique dans négation unaire")


def compare(operator: int, left: Any, right: Any, type_index: int) -> bool:
    """Compare two values of the same base type; booleans allow only = and <>."""
    kind = _kind(operator)
    if type_index == TYPE_INT:
        a, b = int(left), int(right)
    elif type_index == TYPE_REAL:
        a, b = float(left), float(right)
    elif type_index == TYPE_CHAR:
        a, b = _code(left), _code(right)
    elif type_index == TYPE_BOOL:
        if kind not in (NodeKind.EGAL, NodeKind.DIFF):
            raise VMRuntimeError("Opérateur de comparaison non supporté pour bool")
        a, b = bool(left), bool(right)
    else:
        raise VMRuntimeError("Type non comparable")
    comparator = _COMPARATORS.get(kind) if kind is not None else None
    if comparator is None:
        raise VMRuntimeError("Opérateur de comparaison inconnu")
    return bool(comparator(a, b))


def boolean_operation(operator: int, left: Any, right: Any) -> bool:
    """Logical AND or OR."""
    kind = _kind(operator)
    if kind == NodeKind.ET:
        return bool(left) and bool(right)
    if kind == NodeKind.OU:
        return bool(left) or bool(right)
    raise VMRuntimeError("Opérateur booléen inconnu")


def boolean_not(value: Any) -> bool:
    """Logical NOT."""
    return not value


def find_parameter(tables: Tables, num_region: int, position: int) -> Optional[int]:
    """Declaration index of the parameter at this position in a region, or None."""
    found = (
        index
        for index in sorted(tables.declarations)
        if tables.declarations[index].nature == Nature.PARAM
        and tables.declarations[index].region == num_region
    )
    for count, index in enumerate(found):
        if count == position:
            return index
    return None


def string_size(tables: Tables, type_index: int) -> int:
    """Number of characters of a string type (its single dimension)."""
    rep_index = tables.declaration_type(type_index)
    low, high = tables.array_bounds(rep_index, 0)
    return high - low + 1


def copy_string(stack: ExecutionStack, destination: int, source: int, size: int) -> None:
    """Copy a string cell by cell, initialisation flags included."""
    _log.debug(
        "Copie chaîne : pile[%d..%d] := pile[%d..%d]",
        destination,
        destination + size - 1,
        source,
        source + size - 1,
    )
    for offset in range(size):
        stack.check_address(source + offset)
        stack.check_address(destination + offset)
        origin = stack.cells[source + offset]
        target = stack.cells[destination + offset]
        target.value = origin.value
        target.initialised = origin.initialised


def compare_strings(
    stack: ExecutionStack,
    left_address: int,
    left_size: int,
    right_address: int,
    right_size: int,
    operator: int,
) -> bool:
    """Lexicographic comparison of two strings; ties are broken by declared size."""
    kind = _kind(operator)
    comparator = _COMPARATORS.get(kind) if kind is not None else None
    if comparator is None:
        raise VMRuntimeError("Opérateur de comparaison inconnu")

    for offset in range(min(left_size, right_size)):
        stack.check_address(left_address + offset)
        stack.check_address(right_address + offset)
        left = _code(stack.cells[left_address + offset].value)
        right = _code(stack.cells[right_address + offset].value)
        if left != right:
            _log.debug("Différence trouvée à l'index %d", offset)
            return bool(comparator(left, right))
    return bool(comparator(left_size, right_size))


def concatenate_strings(
    stack: ExecutionStack,
    destination: int,
    destination_size: int,
    sources: Iterable[tuple[int, int]],
) -> int:
    """Copy strings one after another into a destination.

    Each source is an (address, declared size) pair.  A source is copied up
    to its first uninitialised cell, and copying stops when the destination
    is full.  Returns the number of characters copied.
    """
    position = 0
    for address, size in sources:
        if position >= destination_size:
            _log.debug("Troncature : plus d'espace disponible")
            continue
        limit = min(size, destination_size - position)
        copied = 0
        for offset in range(limit):
            stack.check_address(address + offset)
            cell = stack.cells[address + offset]
            if not cell.initialised:
                break
            stack.write(destination + position + offset, cell.value)
            copied += 1
        if copied == limit and limit < size:
            _log.debug("Troncature : espace destination insuffisant")
        position += copied
    _log.debug("Résultat : %d caractères copiés au total", position)
    return position