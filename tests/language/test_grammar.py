import pytest

from mcnls.language.grammar import (
    KEYWORDS,
    OPERATORS,
    IndentAction,
    highlight,
    language_configuration,
    monarch_definition,
    on_enter_action,
    should_decrease_indent,
    should_increase_indent,
)


def kinds_and_text(text):
    return [(token.kind, token.text) for token in highlight(text)]


def test_block_is_tokenized_into_keywords_identifiers_operators_and_numbers():
    assert kinds_and_text("if x > 1\n  debug x\nend") == [
        ("keyword", "if"),
        ("identifier", "x"),
        ("operator", ">"),
        ("number", "1"),
        ("keyword", "debug"),
        ("identifier", "x"),
        ("keyword", "end"),
    ]


def test_comment_runs_to_end_of_line():
    assert kinds_and_text("x = 1 # note + 2\ny") == [
        ("identifier", "x"),
        ("operator", "="),
        ("number", "1"),
        ("comment", "# note + 2"),
        ("identifier", "y"),
    ]


def test_token_positions():
    tokens = highlight("pass\n  end")

    assert (tokens[1].line, tokens[1].column) == (1, 2)
    assert tokens[1].scope == "keyword.mcn-16"


def test_numbers():
    assert kinds_and_text("0x1f 0b10 7") == [
        ("number.hex", "0x1f"),
        ("number.binary", "0b10"),
        ("number", "7"),
    ]


def test_semicolon_is_whitespace():
    assert kinds_and_text("pass;pass") == [("keyword", "pass"), ("keyword", "pass")]


def test_keyword_requires_exact_match():
    assert kinds_and_text("endless _if") == [("identifier", "endless"), ("identifier", "_if")]


@pytest.mark.parametrize("operator", OPERATORS)
def test_every_operator_is_a_single_token(operator):
    assert kinds_and_text(f"a {operator} b")[1] == ("operator", operator)


def test_unknown_character_is_invalid():
    assert kinds_and_text("a $ b")[1] == ("invalid", "$")


def test_brackets_and_separators():
    assert kinds_and_text("m.f(a, b)") == [
        ("identifier", "m"),
        ("punctuation.separator", "."),
        ("identifier", "f"),
        ("delimiter.parenthesis", "("),
        ("identifier", "a"),
        ("punctuation.separator", ","),
        ("identifier", "b"),
        ("delimiter.parenthesis", ")"),
    ]


@pytest.mark.parametrize(
    "line",
    ["forever", "  else", "if x == 1", "elif y", "elseif y", "while i < 3"],
)
def test_block_openers_increase_indent(line):
    assert should_increase_indent(line)
    assert on_enter_action(line) is IndentAction.INDENT


@pytest.mark.parametrize("line", ["x = 1", "end", "debug", "pass"])
def test_other_lines_do_not_increase_indent(line):
    assert not should_increase_indent(line)


def test_end_decreases_indent():
    assert should_decrease_indent("  end  ")
    assert not should_decrease_indent("endless")
    assert on_enter_action("    end") is IndentAction.OUTDENT
    assert on_enter_action("x = 1") is IndentAction.NONE


def test_monarch_definition_lists_the_grammar():
    definition = monarch_definition()

    assert definition["keywords"] == list(KEYWORDS)
    assert definition["operators"] == list(OPERATORS)
    assert definition["tokenPostfix"] == ".mcn-16"
    assert definition["brackets"] == [
        {"open": "(", "close": ")", "token": "delimiter.parenthesis"}
    ]


def test_language_configuration():
    config = language_configuration()

    assert config["comments"] == {"lineComment": "#"}
    assert config["brackets"] == [["(", ")"]]
    assert config["indentationRules"]["decreaseIndentPattern"] == r"^\s*(end)\s*$"
    assert [rule["action"]["indentAction"] for rule in config["onEnterRules"]] == [1, 3]


def test_uppercase_hex_is_not_a_hex_number():
    assert kinds_and_text("0xFF") == [("number", "0"), ("identifier", "xFF")]
