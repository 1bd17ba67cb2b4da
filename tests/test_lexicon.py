import warnings

import pytest

from regionvm.lexicon import LexiconLoader, unescape
from regionvm.tables import MAX_LEXEME_LENGTH, MAX_LEXEMES, Tables


@pytest.mark.parametrize(
    "raw, expected",
    [("\\n", "\n"), ("\\t", "\t"), ("\\r", "\r"), ("\\\\", "\\"), ('\\"', '"')],
)
def test_known_escapes(raw, expected):
    assert unescape(raw) == expected


def test_plain_text_unchanged():
    assert unescape("bonjour %d") == "bonjour %d"


def test_unknown_escape_kept():
    assert unescape("\\q") == "\\q"


def test_trailing_backslash_kept():
    assert unescape("abc\\") == "abc\\"


def test_escape_inside_text():
    assert unescape("x = %d\\n") == "x = %d\n"


def test_entries_stored_in_order():
    tables = Tables()
    loader = LexiconLoader(tables)
    words = ["int", "real", "bool", "char", "main"]
    loader.header(len(words))
    for index, word in enumerate(words):
        loader.entry(index, word)
    assert tables.lexemes == words
    assert loader.finish() == len(words)


def test_loader_resets_existing_lexemes():
    tables = Tables(lexemes=["old", "stuff"])
    LexiconLoader(tables)
    assert tables.lexemes == []


def test_entry_is_unescaped():
    tables = Tables()
    loader = LexiconLoader(tables)
    stored = loader.entry(0, "a\\tb")
    assert stored == "a\tb"
    assert tables.lexemes[0] == stored


def test_long_lexeme_truncated():
    tables = Tables()
    loader = LexiconLoader(tables)
    loader.entry(0, "z" * (MAX_LEXEME_LENGTH * 2))
    assert len(tables.lexemes[0]) == MAX_LEXEME_LENGTH - 1


def test_full_table_rejected():
    tables = Tables()
    loader = LexiconLoader(tables)
    for index in range(MAX_LEXEMES):
        loader.entry(index, f"w{index}")
    with pytest.raises(ValueError):
        loader.entry(MAX_LEXEMES, "extra")
    assert len(tables.lexemes) == MAX_LEXEMES


def test_none_lexeme_rejected():
    loader = LexiconLoader(Tables())
    with pytest.raises(ValueError):
        loader.entry(0, None)


@pytest.mark.parametrize("count", [-1, MAX_LEXEMES + 1])
def test_invalid_header(count):
    loader = LexiconLoader(Tables())
    with pytest.raises(ValueError):
        loader.header(count)


def test_finish_warns_on_mismatch():
    loader = LexiconLoader(Tables())
    loader.header(3)
    loader.entry(0, "only")
    with pytest.warns(RuntimeWarning):
        assert loader.finish() == 1


def test_finish_silent_when_counts_match():
    loader = LexiconLoader(Tables())
    loader.header(2)
    loader.entry(0, "a")
    loader.entry(1, "b")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert loader.finish() == 2