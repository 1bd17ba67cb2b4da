# regionvm

`regionvm` runs programs that a compiler has already turned into an
intermediate form made of four tables:

- a **lexicon**: the identifiers and literal strings of the program;
- a **declaration table**: types, variables, parameters, procedures and
  functions, each tied to a region;
- a **region table**: for each region its nesting level (NIS) and the size
  of its zone on the stack;
- one **abstract syntax tree** per region: the main program and the body of
  every procedure and function.

The machine keeps a single execution stack (`ExecutionStack`, 5000 cells by
default). Each call pushes a zone that holds the dynamic link, one static
link per nesting level, a return cell for functions, then the parameters
and locals. Integers, reals, booleans and characters take one cell each;
arrays, structures and fixed-size character strings are laid out over
consecutive cells. Reading a cell that was never written, indexing an array
outside its bounds, dividing by zero or leaving a function whose return
cell was never written raises `regionvm.tables.VMRuntimeError`.

## Building the tables

All tables live in a `Tables` object (`regionvm.tables`) and are filled
through one loader per kind of table:

| Loader                                    | Fills                                  |
|-------------------------------------------|----------------------------------------|
| `LexiconLoader` (`regionvm.lexicon`)      | the lexicon, escape sequences decoded  |
| `DeclarationLoader` (`regionvm.declarations`) | the declaration table              |
| `RegionLoader` (`regionvm.regions`)       | the region table                       |
| `TreeLoader` (`regionvm.trees`)           | one syntax tree per region             |

Each loader takes a header with the expected number of entries
(`header(...)`), then the entries, then `finish()`, which returns how many
entries were loaded and issues a `RuntimeWarning` if that differs from the
header. Out-of-range counts and indices raise `ValueError`.

Trees are given in prefix order through `TreeLoader.add_node(nature,
num_lex, num_decl, nb_children)`: each node names its kind (`"A_OPAFF"`,
`"A_IDF"`, `"A_CSTE_ENT"`, …), its lexeme number or constant value, its
declaration number and how many children follow it. An unknown kind name
gives an empty instruction (`A_VIDE`) with a warning.

```python
import sys

from regionvm.declarations import DeclarationLoader
from regionvm.interpreter import interpret
from regionvm.lexicon import LexiconLoader
from regionvm.regions import RegionLoader
from regionvm.tables import Tables
from regionvm.trees import TreeLoader

tables = Tables()

lexicon = LexiconLoader(tables)
words = ["int", "real", "bool", "char", "x", "x = %d"]
lexicon.header(len(words))
for index, word in enumerate(words):
    lexicon.entry(index, word)
lexicon.finish()

declarations = DeclarationLoader(tables)
declarations.header(5)
for index in range(4):
    declarations.declaration(index, "TYPE_BASE", 0, -1, 1)
declarations.declaration(4, "VAR", 0, 0, 0)     # x : int, cell 0 of region 0
declarations.finish()

regions = RegionLoader(tables)
regions.header(1)
regions.region(0, 0, 1)                          # main region: NIS 0, one cell
regions.finish()

trees = TreeLoader(tables)
trees.begin_region(0)
trees.add_node("A_LISTE_INSTRUCTIONS", 0, -1, 2)
trees.add_node("A_OPAFF", 0, -1, 2)              # x := 42
trees.add_node("A_IDF", 4, 4, 0)
trees.add_node("A_CSTE_ENT", 42, -1, 0)
trees.add_node("A_ECRIRE", 0, -1, 2)             # write("x = %d", x)
trees.add_node("A_CSTE_CHAINE", 5, -1, 0)
trees.add_node("A_LISTE_VARIABLES", 0, -1, 1)
trees.add_node("A_IDF", 4, 4, 0)
trees.finish()

stack = interpret(tables, sys.stdin, sys.stdout)
```

`interpret` runs the tree of region 0 on a fresh stack and returns that
stack. A write instruction prints `Sortie : ` followed by its format, with
`%d`, `%f` and `%c` replaced by the values of its variables (`%%` gives
`%`); a format without specifiers is followed by the values separated by
spaces. The output carries ANSI colour codes. A read instruction takes one
value per variable from the input stream, one non-blank line each.

The interpreter traces every evaluation and dumps the current zone of the
stack through the `logging` module at `DEBUG` level; enable debug logging
to follow calls, static links and assignments step by step.

## Lower-level pieces

- `ExecutionStack` (`regionvm.stack`): cell access (`read`, `write`,
  `is_initialised`), zone handling (`push_zone`, `pop_zone`,
  `pop_function_zone`, `write_return_value`) with static-link maintenance,
  and a text rendering of the current zone (`render`, `render_zone`).
- `regionvm.operations`: `arithmetic`, `negate`, `compare`,
  `boolean_operation`, `boolean_not`, `format_value`, and string helpers
  over stack cells (`copy_string`, `compare_strings`,
  `concatenate_strings`, `string_size`).
- `regionvm.addressing`: `variable_address`, `array_address`,
  `field_address`.
- `Evaluator` (`regionvm.evaluator`) and `Interpreter`
  (`regionvm.interpreter`): expression evaluation and statement execution.

## What it does not do

The package has no command-line program and does not read table files from
disk: the tables are filled by calling the loaders from Python. It does not
compile source programs either; it only runs programs already expressed as
these tables.

## Running the tests

Install the package with its `test` extra and run `pytest` from the
project directory.