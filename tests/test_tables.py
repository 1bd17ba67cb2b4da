import pytest

from regionvm.tables import (
    MAX_REGIONS,
    Declaration,
    Nature,
    Node,
    NodeKind,
    Tables,
    VMRuntimeError,
    count_specs,
)

LEXEMES = ["p", "t", "s", "a", "b", "f", "m"]
P, T, S, A, B, F, M = range(len(LEXEMES))

STRUCT, ARRAY, STRING, FUNC, MATRIX = 10, 11, 12, 13, 14
VAR_P, VAR_T, VAR_S, VAR_M = 20, 21, 22, 23


def make_tables():
    tables = Tables(lexemes=list(LEXEMES))
    for base in range(4):
        tables.declarations[base] = Declaration(Nature.TYPE_BASE, region=0, description=base)
    tables.representation = [
        2, A, 0, 0, B, 1, 1,      # struct at 0
        0, 1, 1, 10,              # array of int at 7
        3, 1, 0, 19,              # string at 11
        1, 0,                     # function returning real at 15
        STRUCT, 2, 0, 1, 0, 2,    # matrix of structs at 17
    ]
    tables.declarations[STRUCT] = Declaration(Nature.TYPE_STRUCT, region=0, description=0)
    tables.declarations[ARRAY] = Declaration(Nature.TYPE_ARRAY, region=0, description=7)
    tables.declarations[STRING] = Declaration(Nature.TYPE_ARRAY, region=0, description=11)
    tables.declarations[FUNC] = Declaration(Nature.FCT, region=0, description=15, execution=1)
    tables.declarations[MATRIX] = Declaration(Nature.TYPE_ARRAY, region=0, description=17)
    tables.declarations[VAR_P] = Declaration(Nature.VAR, region=0, description=STRUCT, execution=0)
    tables.declarations[VAR_T] = Declaration(Nature.VAR, region=0, description=ARRAY, execution=2)
    tables.declarations[VAR_S] = Declaration(Nature.VAR, region=0, description=STRING, execution=12)
    tables.declarations[VAR_M] = Declaration(Nature.VAR, region=0, description=MATRIX, execution=32)
    return tables


def field_access(num_lex):
    return Node(NodeKind.LISTE_CHAMPS, first_child=Node(NodeKind.CHAMP, value=num_lex))


def test_children_follow_sibling_chain():
    third = Node(NodeKind.VIDE)
    second = Node(NodeKind.VIDE, next_sibling=third)
    first = Node(NodeKind.VIDE, next_sibling=second)
    parent = Node(NodeKind.LISTE_INSTRUCTIONS, first_child=first)
    assert list(parent.children()) == [first, second, third]


def test_node_kind_values_and_labels():
    assert NodeKind(6) is NodeKind.OPAFF
    assert NodeKind(38) is NodeKind.LISTE_CHAMPS
    assert NodeKind.OPAFF.label == "A_OPAFF"


def test_lexeme_lookup_and_invalid_number():
    tables = make_tables()
    assert tables.lexeme(B) == "b"
    with pytest.raises(VMRuntimeError):
        tables.lexeme(len(LEXEMES))


def test_unknown_declaration_raises():
    tables = make_tables()
    with pytest.raises(VMRuntimeError):
        tables.nature_of(999)


@pytest.mark.parametrize(
    "kind, expected",
    [
        (NodeKind.CSTE_ENT, 0),
        (NodeKind.CSTE_REELLE, 1),
        (NodeKind.CSTE_BOOL, 2),
        (NodeKind.CSTE_CHAR, 3),
    ],
)
def test_constant_types(kind, expected):
    assert make_tables().node_type(Node(kind)) == expected


def test_comparison_and_boolean_are_bool():
    tables = make_tables()
    left = Node(NodeKind.CSTE_ENT, next_sibling=Node(NodeKind.CSTE_ENT))
    assert tables.node_type(Node(NodeKind.INF, first_child=left)) == tables.node_type(
        Node(NodeKind.CSTE_BOOL)
    )
    assert tables.node_type(Node(NodeKind.NON, first_child=Node(NodeKind.CSTE_BOOL))) == 2


def test_arithmetic_type_follows_left_operand():
    tables = make_tables()
    operands = Node(NodeKind.CSTE_REELLE, next_sibling=Node(NodeKind.CSTE_REELLE))
    plus = Node(NodeKind.PLUS, first_child=operands)
    assert tables.node_type(plus) == tables.node_type(Node(NodeKind.CSTE_REELLE))


def test_field_access_type():
    tables = make_tables()
    node = Node(NodeKind.IDF, value=P, declaration=VAR_P, first_child=field_access(B))
    assert tables.node_type(node) == 1


def test_array_access_type():
    tables = make_tables()
    index = Node(NodeKind.LISTE_INDICES, first_child=Node(NodeKind.CSTE_ENT, value=3))
    node = Node(NodeKind.IDF, value=T, declaration=VAR_T, first_child=index)
    assert tables.node_type(node) == 0


def test_matrix_then_field_access_type():
    tables = make_tables()
    second = Node(
        NodeKind.LISTE_INDICES,
        first_child=Node(NodeKind.CSTE_ENT, value=1, next_sibling=field_access(B)),
    )
    first = Node(
        NodeKind.LISTE_INDICES,
        first_child=Node(NodeKind.CSTE_ENT, value=0, next_sibling=second),
    )
    node = Node(NodeKind.IDF, value=M, declaration=VAR_M, first_child=first)
    assert tables.node_type(node) == 1
    assert tables.variable_name(node).startswith("m")


def test_plain_variable_type_is_declared_type():
    tables = make_tables()
    node = Node(NodeKind.IDF, value=P, declaration=VAR_P)
    assert tables.node_type(node) == STRUCT


def test_function_call_type_is_return_type():
    tables = make_tables()
    call = Node(NodeKind.APPEL_FCT, value=F, declaration=FUNC)
    assert tables.node_type(call) == 1


def test_field_info_and_missing_field():
    tables = make_tables()
    assert tables.field_info(0, B) == (1, 1)
    assert tables.field_info(0, A) == (0, 0)
    with pytest.raises(VMRuntimeError):
        tables.field_info(0, M)


def test_array_queries():
    tables = make_tables()
    assert tables.array_element_type(7) == 0
    assert tables.array_dimensions(17) == 2
    assert tables.array_bounds(7, 0) == (1, 10)
    assert tables.array_bounds(17, 1) == (0, 2)
    with pytest.raises(VMRuntimeError):
        tables.array_bounds(7, 1)


def test_type_sizes_are_consistent():
    tables = make_tables()
    assert tables.type_size(0) == 1
    assert tables.type_size(STRUCT) == tables.type_size(0) + tables.type_size(1)
    assert tables.type_size(ARRAY) == 10 * tables.type_size(0)
    assert tables.type_size(MATRIX) == 2 * 3 * tables.type_size(STRUCT)


def test_type_size_of_variable_raises():
    with pytest.raises(VMRuntimeError):
        make_tables().type_size(VAR_P)


def test_string_type_detection():
    tables = make_tables()
    assert tables.is_string_type(STRING) is True
    assert tables.is_string_type(ARRAY) is False
    assert tables.is_string_type(MATRIX) is False
    assert tables.is_string_type(3) is False


def test_function_region_detection():
    tables = make_tables()
    assert tables.is_function_region(1) is True
    assert tables.is_function_region(0) is False


def test_region_tree_round_trip():
    tables = make_tables()
    assert len(tables.regions) == MAX_REGIONS
    assert tables.region_tree(2) is None
    tree = Node(NodeKind.VIDE)
    tables.regions[2].instructions = tree
    assert tables.region_tree(2) is tree
    with pytest.raises(VMRuntimeError):
        tables.region_tree(MAX_REGIONS)


def test_variable_name_with_field():
    tables = make_tables()
    node = Node(NodeKind.IDF, value=P, declaration=VAR_P, first_child=field_access(B))
    assert tables.variable_name(node) == "p.b"


@pytest.mark.parametrize("count", [0, 1, 4])
def test_count_specs_counts_each_spec(count):
    assert count_specs("%d" * count) == count
    assert count_specs("x%f" * count) == count
    assert count_specs("%c " * count) == count


def test_count_specs_ignores_escaped_percent():
    assert count_specs("%%" * 3) == 0
    assert count_specs("%%d") == count_specs("")
    assert count_specs("%x%c") == count_specs("%c")