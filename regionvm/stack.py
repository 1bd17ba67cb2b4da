"""Execution stack of the virtual machine.

Each region call gets a zone on the stack.  A zone starts with its dynamic
link (the base of the caller's zone), followed by one static link per
nesting level, an optional return cell for functions, and the local
variables of the region.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .tables import (
    BASE_TYPE_COUNT,
    BLUE,
    BOLD,
    GREEN,
    GREY,
    MAX_REGIONS,
    RESET,
    TYPE_BOOL,
    TYPE_CHAR,
    TYPE_INT,
    TYPE_REAL,
    YELLOW,
    Nature,
    Tables,
    VMRuntimeError,
)

STACK_SIZE = 5000
MAX_SAVED_REGIONS = 500

_log = logging.getLogger(__name__)

_TYPE_LABELS = {
    TYPE_INT: "int",
    TYPE_REAL: "real",
    TYPE_BOOL: "bool",
    TYPE_CHAR: "char",
}
_NATURE_LABELS = {
    Nature.TYPE_ARRAY: "tableau",
    Nature.TYPE_STRUCT: "structure",
}


@dataclass
class Cell:
    """One stack cell: a value and whether it has been written."""

    value: Any = 0
    initialised: bool = False


def _as_int(value: Any) -> int:
    if isinstance(value, str):
        return ord(value[0]) if value else 0
    return int(value)


def _as_float(value: Any) -> float:
    if isinstance(value, str):
        return float(ord(value[0])) if value else 0.0
    return float(value)


def _as_char(value: Any) -> str:
    if isinstance(value, str):
        return value[:1] or " "
    code = int(value)
    return chr(code) if 0 <= code < 0x110000 else "?"


def _label(type_index: int, nature: Optional[Nature]) -> Optional[str]:
    if type_index in _TYPE_LABELS:
        return _TYPE_LABELS[type_index]
    if nature is not None:
        return _NATURE_LABELS.get(nature)
    return None


class ExecutionStack:
    """The stack of zones the interpreter runs on."""

    def __init__(self, tables: Tables, size: int = STACK_SIZE) -> None:
        self.tables = tables
        self.size = size
        self.cells = [Cell() for _ in range(size)]
        self.base = 0
        self.current_region = 0
        self._saved_regions: list[int] = []
        _log.debug("Pile initialisée : BC=0, taille=%d", size)

    # --- cell access -----------------------------------------------------

    def check_address(self, address: int) -> None:
        """Raise if the address lies outside the stack."""
        if not 0 <= address < self.size:
            raise VMRuntimeError(f"Adresse pile invalide ({address})")

    def read(self, address: int) -> Any:
        """Value of an initialised cell."""
        self.check_address(address)
        cell = self.cells[address]
        if not cell.initialised:
            raise VMRuntimeError(
                f"Lecture d'une variable non initialisée (adresse pile : {address})"
            )
        return cell.value

    def write(self, address: int, value: Any) -> None:
        """Store a value and mark the cell initialised."""
        self._set(address, value, True)

    def is_initialised(self, address: int) -> bool:
        """Whether the cell has been written."""
        self.check_address(address)
        return self.cells[address].initialised

    def mark_initialised(self, address: int) -> None:
        """Mark a cell as written without changing its value."""
        self.check_address(address)
        self.cells[address].initialised = True

    def _set(self, address: int, value: Any, initialised: bool) -> None:
        self.check_address(address)
        cell = self.cells[address]
        cell.value = value
        cell.initialised = initialised

    def _clear(self, start: int, stop: int) -> None:
        for address in range(max(start, 0), min(stop, self.size)):
            self._set(address, 0, False)

    def _link(self, address: int) -> int:
        self.check_address(address)
        return _as_int(self.cells[address].value)

    # --- zones -----------------------------------------------------------

    def push_zone(self, num_region: int) -> None:
        """Open the zone of a called region and build its links."""
        if not 0 <= num_region < MAX_REGIONS:
            raise VMRuntimeError(f"numéro région invalide ({num_region})")
        regions = self.tables.regions
        is_function = self.tables.is_function_region(num_region)

        old_base = self.base
        new_base = old_base + regions[self.current_region].size
        if new_base >= self.size:
            raise VMRuntimeError(f"débordement pile (BC={new_base})")
        if len(self._saved_regions) >= MAX_SAVED_REGIONS:
            raise VMRuntimeError("débordement pile régions")
        self._saved_regions.append(self.current_region)

        self._set(new_base, old_base, True)

        caller_nis = regions[self.current_region].nis
        callee_nis = regions[num_region].nis
        if callee_nis > 0:
            if callee_nis > caller_nis:
                self._set(new_base + 1, old_base, True)
                for level in range(1, caller_nis + 1):
                    self._set(new_base + 1 + level, self._link(old_base + level), True)
                _log.debug("NIS augmente : %d -> %d", caller_nis, callee_nis)
            elif callee_nis == caller_nis:
                self._copy_static_links(old_base, new_base, callee_nis)
                _log.debug("NIS stagne : %d", caller_nis)
            else:
                target = self._link(old_base + caller_nis - callee_nis)
                self._copy_static_links(target, new_base, callee_nis)
                _log.debug("NIS decroit : %d -> %d", caller_nis, callee_nis)

        if is_function:
            self._set(new_base + callee_nis + 1, 0, False)

        self.base = new_base
        self.current_region = num_region

    def _copy_static_links(self, source_base: int, dest_base: int, count: int) -> None:
        for level in range(1, count + 1):
            self._set(dest_base + level, self._link(source_base + level), True)

    def _leave_zone(self, locals_start: int) -> None:
        old_base = self.base
        region = self.tables.regions[self.current_region]
        self._clear(locals_start, old_base + region.size)
        self.base = self._link(old_base)
        self.current_region = self._saved_regions.pop() if self._saved_regions else 0
        _log.debug(
            "Dépilement : BC %d -> %d (région %d)",
            old_base,
            self.base,
            self.current_region,
        )

    def pop_zone(self) -> None:
        """Close the current zone and return to the caller's."""
        if self.base == 0:
            raise VMRuntimeError("tentative dépiler région principale")
        nis = self.tables.regions[self.current_region].nis
        self._leave_zone(self.base + nis + 1)

    def pop_function_zone(self) -> Any:
        """Close the current zone and return the function's result (0 for others)."""
        if self.base == 0:
            raise VMRuntimeError("tentative dépiler région principale")
        is_function = self.tables.is_function_region(self.current_region)
        nis = self.tables.regions[self.current_region].nis
        result: Any = 0
        if is_function:
            address = self.base + nis + 1
            self.check_address(address)
            cell = self.cells[address]
            if not cell.initialised:
                raise VMRuntimeError(
                    "Fonction sans valeur de retour initialisée "
                    f"(adresse pile : {address})"
                )
            result = cell.value
        self._leave_zone(self.base + nis + (2 if is_function else 1))
        return result

    def write_return_value(self, value: Any) -> int:
        """Store the result of the running function; return its address."""
        nis = self.tables.regions[self.current_region].nis
        address = self.base + nis + 1
        self.write(address, value)
        _log.debug("Valeur retour écrite : pile[%d] = %s", address, value)
        return address

    # --- rendering -------------------------------------------------------

    def _nature_of_type(self, type_index: int) -> Optional[Nature]:
        declaration = self.tables.declarations.get(type_index)
        if declaration is not None:
            return Nature(declaration.nature)
        if 0 <= type_index < BASE_TYPE_COUNT:
            return Nature.TYPE_BASE
        return None

    def _type_at(self, address: int) -> Optional[tuple[int, Optional[Nature]]]:
        region = self.current_region
        shift = 0
        if region != 0 and self.tables.is_function_region(region):
            shift = 1
        for index in sorted(self.tables.declarations):
            declaration = self.tables.declarations[index]
            if declaration.nature != Nature.VAR or declaration.region != region:
                continue
            if region == 0:
                variable_address = declaration.execution
            else:
                variable_address = self.base + declaration.execution + shift
            if variable_address == address:
                type_index = declaration.description
                return type_index, self._nature_of_type(type_index)
        return None

    def _render_typed(self, cell: Cell, type_index: int, nature: Optional[Nature]) -> str:
        label = _label(type_index, nature)
        if not cell.initialised:
            text = f"{'(non init)':<20}"
            return text + (f"  {label}" if label else "")
        value = cell.value
        if type_index == TYPE_INT:
            shown = f"{_as_int(value):<20d}"
        elif type_index == TYPE_REAL:
            shown = f"{_as_float(value):<20.6f}"
        elif type_index == TYPE_BOOL:
            shown = f"{'true' if value else 'false':<20}"
        elif type_index == TYPE_CHAR:
            shown = "'" + f"{_as_char(value):<19}"
        elif label is not None:
            shown = f"{_as_int(value):<20d}"
        else:
            return f"{_as_int(value):<20d}  ?"
        return f"{YELLOW}{shown}{RESET}  {label}"

    def _render_variable_cell(self, address: int) -> str:
        cell = self.cells[address]
        found = self._type_at(address)
        if found is not None:
            return self._render_typed(cell, *found)
        if cell.initialised:
            return f"{YELLOW}{_as_int(cell.value):<20d}{RESET}"
        return f"{'(non init)':<20}"

    def render_zone(self, start: int, end: int) -> str:
        """Table of the cells from start to end inclusive."""
        start = max(start, 0)
        end = min(end, self.size - 1)
        if start > end:
            return ""
        lines = [
            "",
            "Index  Init  Valeur                Type",
            "-----  ----  --------------------  ----------",
        ]
        region = self.current_region
        nis = self.tables.regions[region].nis
        is_function = region != 0 and self.tables.is_function_region(region)
        locals_start = self.base + nis + (2 if is_function else 1)

        for address in range(start, end + 1):
            cell = self.cells[address]
            prefix = f"{address:5d}   {'O' if cell.initialised else 'N'}    "
            if region == 0 or address >= locals_start:
                body = self._render_variable_cell(address)
            elif address == self.base:
                body = f"{BLUE}{_as_int(cell.value):<20d}{RESET}  {BLUE}BC (chaine dyn){RESET}"
            elif self.base < address <= self.base + nis:
                body = (
                    f"{GREEN}{_as_int(cell.value):<20d}{RESET}"
                    f"  chaine stat[{address - self.base}]"
                )
            elif address == self.base + nis + 1 and is_function:
                if cell.initialised:
                    shown = f"{GREY}{BOLD}{_as_int(cell.value):<20d}{RESET}"
                else:
                    shown = f"{'(non init)':<20}"
                body = f"{shown}  {GREY}{BOLD}retour fct{RESET}"
            else:
                body = f"{_as_int(cell.value):<20d}"
            lines.append(prefix + body)
        lines.append("")
        return "\n".join(lines)

    def render(self) -> str:
        """Description of the current zone with its links and variables."""
        regions = self.tables.regions
        region = self.current_region
        lines = ["", "Pile execution", f"BC = {self.base}, Region = {region}"]
        if region == 0:
            last = regions[0].size - 1
            lines += ["", f"Zone programme principal [0..{last}]"]
            lines.append(self.render_zone(0, last))
            return "\n".join(lines)

        nis = regions[region].nis
        lines += [
            "",
            f"Zone region {region}",
            f"Chainage dynamique : pile[{self.base}] = {self._link(self.base)}",
        ]
        for level in range(1, nis + 1):
            lines.append(
                f"Chainage statique[{level}] : pile[{self.base + level}] = "
                f"{self._link(self.base + level)}"
            )
        lines.append(f"Variables : pile[{self.base + nis + 1}..]")
        end = self.base + regions[region].size - 1
        if self.tables.is_function_region(region):
            end += 1
        lines.append(self.render_zone(self.base, end))
        return "\n".join(lines)