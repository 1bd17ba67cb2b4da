"""Address computations on the execution stack."""

from __future__ import annotations

from typing import Sequence

from .stack import ExecutionStack
from .tables import MAX_DECLARATIONS, Tables, VMRuntimeError


def variable_address(tables: Tables, stack: ExecutionStack, num_declaration: int) -> int:
    """Stack address of a variable or parameter seen from the current region.

    Variables of the main region sit at their displacement.  Others are
    found through the static links: the difference between the nesting
    level of the current region and that of the declaring region selects
    which link gives the base of the declaring zone.
    """
    if not 0 <= num_declaration < MAX_DECLARATIONS:
        raise VMRuntimeError(f"numéro déclaration invalide ({num_declaration})")
    declaration = tables.declarations.get(num_declaration)
    if declaration is None:
        raise VMRuntimeError(f"numéro déclaration invalide ({num_declaration})")

    declaring_region = declaration.region
    displacement = declaration.execution
    if not 0 <= declaring_region < len(tables.regions):
        raise VMRuntimeError(f"numéro région invalide ({declaring_region})")

    declaring_nis = tables.regions[declaring_region].nis
    using_nis = tables.regions[stack.current_region].nis
    offset = using_nis - declaring_nis

    if offset == 0:
        declaring_base = stack.base
    else:
        if offset < 0 or stack.base + offset >= stack.size:
            raise VMRuntimeError(f"offset chaînage invalide ({offset})")
        declaring_base = int(stack.cells[stack.base + offset].value)

    if declaring_region == 0:
        address = displacement
    else:
        shift = 1 if tables.is_function_region(declaring_region) else 0
        address = declaring_base + displacement + shift

    if not 0 <= address < stack.size:
        raise VMRuntimeError(f"adresse calculée invalide ({address})")
    return address


def array_address(
    tables: Tables,
    stack: ExecutionStack,
    base_address: int,
    num_representation: int,
    indices: Sequence[int],
) -> int:
    """Stack address of an array element, row stride growing with each dimension.

    The first index varies fastest: the stride of the first dimension is the
    element size, and each following stride is the previous one times the
    extent of the previous dimension.
    """
    if not 0 <= num_representation < len(tables.representation):
        raise VMRuntimeError(
            f"numéro représentation invalide ({num_representation})"
        )
    element_type = tables.array_element_type(num_representation)
    dimensions = tables.array_dimensions(num_representation)
    if len(indices) != dimensions:
        raise VMRuntimeError(
            f"nombre indices ({len(indices)}) != nombre dimensions ({dimensions})"
        )

    stride = tables.type_size(element_type)
    origin = base_address
    offset = 0
    for dimension, index in enumerate(indices):
        low, high = tables.array_bounds(num_representation, dimension)
        if not low <= index <= high:
            raise VMRuntimeError(
                f"Indice tableau hors bornes : [{dimension}] = {index} "
                f"(bornes : [{low}..{high}])"
            )
        offset += stride * index
        origin -= stride * low
        stride *= high - low + 1

    address = origin + offset
    if not 0 <= address < stack.size:
        raise VMRuntimeError(f"adresse tableau calculée invalide ({address})")
    return address


def field_address(stack: ExecutionStack, base_address: int, displacement: int) -> int:
    """Stack address of a structure field at a displacement from its base."""
    address = base_address + displacement
    if not 0 <= address < stack.size:
        raise VMRuntimeError(f"adresse champ calculée invalide ({address})")
    return address