import pytest

from regionvm.stack import Cell, ExecutionStack
from regionvm.tables import (
    RESET,
    YELLOW,
    Declaration,
    Nature,
    Tables,
    VMRuntimeError,
)


def _configured_tables():
    tables = Tables()
    for number, (nis, size) in enumerate(
        [(0, 3), (1, 4), (2, 5), (3, 6), (3, 5), (1, 4)]
    ):
        tables.regions[number].nis = nis
        tables.regions[number].size = size
    return tables


def _links(stack, count):
    return [stack.cells[stack.base + level].value for level in range(1, count + 1)]


@pytest.fixture
def stack():
    return ExecutionStack(_configured_tables())


def test_static_links_through_nesting_levels(stack):
    # NIS 0 -> 1
    stack.push_zone(1)
    assert stack.base == 3
    assert _links(stack, 1) == [0]

    # NIS 1 -> 2
    before = stack.base
    stack.push_zone(2)
    assert stack.base == 7
    assert _links(stack, 2) == [before, 0]

    # NIS 2 -> 3
    before = stack.base
    ch1 = stack.cells[stack.base + 1].value
    stack.push_zone(3)
    assert stack.base == 12
    assert _links(stack, 3) == [before, ch1, 0]
    assert _links(stack, 3) == [7, 3, 0]

    # NIS 3 -> 3
    previous = _links(stack, 3)
    stack.push_zone(4)
    assert stack.base == 18
    assert _links(stack, 3) == previous

    # NIS 3 -> 1
    target = stack.cells[stack.base + 2].value
    ch1 = stack.cells[target + 1].value
    stack.push_zone(5)
    assert stack.base == 23
    assert _links(stack, 1) == [ch1]
    assert _links(stack, 1) == [0]


def test_pops_return_to_each_caller(stack):
    for region in (1, 2, 3, 4, 5):
        stack.push_zone(region)
    expected = [(18, 4), (12, 3), (7, 2), (3, 1), (0, 0)]
    for base, region in expected:
        stack.pop_zone()
        assert (stack.base, stack.current_region) == (base, region)


def test_dynamic_link_holds_caller_base(stack):
    stack.push_zone(1)
    stack.push_zone(2)
    assert stack.cells[stack.base].value == 3
    assert stack.cells[stack.base].initialised


def test_pop_main_region_raises(stack):
    with pytest.raises(VMRuntimeError):
        stack.pop_zone()
    with pytest.raises(VMRuntimeError):
        stack.pop_function_zone()


def test_push_invalid_region_raises(stack):
    with pytest.raises(VMRuntimeError):
        stack.push_zone(100)
    with pytest.raises(VMRuntimeError):
        stack.push_zone(-1)


def test_push_overflow_raises():
    tables = _configured_tables()
    tables.regions[0].size = 10
    small = ExecutionStack(tables, 10)
    with pytest.raises(VMRuntimeError):
        small.push_zone(1)


def test_write_then_read(stack):
    stack.write(2, 41)
    assert stack.read(2) == 41
    assert stack.is_initialised(2)


def test_read_uninitialised_raises(stack):
    with pytest.raises(VMRuntimeError):
        stack.read(1)


def test_invalid_address_raises(stack):
    with pytest.raises(VMRuntimeError):
        stack.check_address(5000)
    with pytest.raises(VMRuntimeError):
        stack.write(-1, 0)


def test_mark_initialised_keeps_value(stack):
    stack.mark_initialised(0)
    assert stack.read(0) == 0
    assert stack.cells[0] == Cell(0, True)


def test_pop_clears_locals(stack):
    stack.push_zone(1)
    stack.write(5, 9)
    stack.write(6, 8)
    stack.pop_zone()
    assert not stack.is_initialised(5)
    assert not stack.is_initialised(6)


def _function_tables():
    tables = _configured_tables()
    tables.declarations[500] = Declaration(Nature.FCT, region=0, description=0, execution=1)
    return tables


def test_function_zone_returns_value():
    stack = ExecutionStack(_function_tables())
    stack.push_zone(1)
    assert not stack.is_initialised(5)
    address = stack.write_return_value(42)
    assert address == 5
    stack.write(6, 1)
    assert stack.pop_function_zone() == 42
    assert stack.base == 0
    assert stack.current_region == 0
    assert not stack.is_initialised(6)


def test_function_without_return_raises():
    stack = ExecutionStack(_function_tables())
    stack.push_zone(1)
    with pytest.raises(VMRuntimeError):
        stack.pop_function_zone()


def test_pop_function_zone_of_procedure_gives_zero(stack):
    stack.push_zone(1)
    assert stack.pop_function_zone() == 0
    assert stack.base == 0


def test_render_main_zone_shows_typed_variables(stack):
    stack.tables.declarations[500] = Declaration(
        Nature.VAR, region=0, description=0, execution=1
    )
    stack.tables.declarations[501] = Declaration(
        Nature.VAR, region=0, description=0, execution=2
    )
    stack.write(1, 7)
    text = stack.render()
    assert "BC = 0, Region = 0" in text
    assert "Zone programme principal [0..2]" in text
    assert f"{YELLOW}{7:<20d}{RESET}  int" in text
    assert f"{'(non init)':<20}  int" in text


def test_render_nested_zone_shows_links(stack):
    stack.push_zone(1)
    stack.push_zone(2)
    text = stack.render()
    assert "Zone region 2" in text
    assert "Chainage dynamique : pile[7] = 3" in text
    assert "Chainage statique[1] : pile[8] = 3" in text
    assert "Chainage statique[2] : pile[9] = 0" in text
    assert "Variables : pile[10..]" in text
    assert "BC (chaine dyn)" in text


def test_render_zone_empty_range(stack):
    assert stack.render_zone(5, 2) == ""