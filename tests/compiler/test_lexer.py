import pytest

from mcnls.compiler import CompileErrors, ErrorKind, TokenType, tokenize
from mcnls.compiler.nodes import Comparison, Operator
from mcnls.compiler.span import Location, Span


def types_of(source):
    return [token.type for token in tokenize(source)]


def test_numbers_in_all_bases():
    tokens = tokenize("0x1f 0b101 42")

    assert [t.value for t in tokens[:-1]] == [31, 5, 42]
    assert all(t.type is TokenType.NUMBER for t in tokens[:-1])
    assert tokens[-1].type is TokenType.EOF


def test_numbers_wrap_to_signed_16_bit():
    assert tokenize("0xFFFF")[0].value == -1
    assert tokenize("32768")[0].value == -32768


def test_number_out_of_range_is_reported():
    with pytest.raises(CompileErrors) as exc_info:
        tokenize("x = 70000")

    (error,) = exc_info.value.errors
    assert error.kind is ErrorKind.NUMBER_OUT_OF_RANGE
    assert error.span == Span(Location(0, 4), Location(0, 9))


def test_keywords_and_elseif_alias():
    assert types_of("if elif elseif else end") == [
        TokenType.IF,
        TokenType.ELIF,
        TokenType.ELIF,
        TokenType.ELSE,
        TokenType.END,
        TokenType.EOF,
    ]


def test_keyword_prefix_is_an_identifier():
    token = tokenize("iffy")[0]

    assert token.type is TokenType.IDENTIFIER
    assert token.value == "iffy"


def test_semicolons_newlines_and_comments_are_skipped():
    tokens = tokenize("x += 1; # trailing comment\ny")

    assert [t.type for t in tokens] == [
        TokenType.IDENTIFIER,
        TokenType.ASSIGN_OPERATOR,
        TokenType.NUMBER,
        TokenType.IDENTIFIER,
        TokenType.EOF,
    ]
    assert tokens[1].value is Operator.PLUS
    assert tokens[3].span.start == Location(1, 0)


def test_operators_and_comparisons():
    tokens = tokenize("a <= b != c ^ d = e")

    assert tokens[1].value is Comparison.LE
    assert tokens[3].value is Comparison.NE
    assert tokens[5].type is TokenType.BINARY_OPERATOR
    assert tokens[5].value is Operator.XOR
    assert tokens[7].type is TokenType.EQUALS


def test_paren_glued_to_identifier_opens_call():
    assert types_of("f(x) f (x)") == [
        TokenType.IDENTIFIER,
        TokenType.OPEN_CALL_PAREN,
        TokenType.IDENTIFIER,
        TokenType.CLOSE_PAREN,
        TokenType.IDENTIFIER,
        TokenType.OPEN_PAREN,
        TokenType.IDENTIFIER,
        TokenType.CLOSE_PAREN,
        TokenType.EOF,
    ]


def test_every_unexpected_character_is_reported():
    with pytest.raises(CompileErrors) as exc_info:
        tokenize("x $ 1\n@")

    errors = exc_info.value.errors
    assert [e.kind for e in errors] == [ErrorKind.UNEXPECTED_CHARACTER] * 2
    assert errors[0].span.start == Location(0, 2)
    assert errors[1].span.start == Location(1, 0)
    assert "'$'" in errors[0].message


def test_empty_source_is_just_eof():
    assert types_of("") == [TokenType.EOF]


def test_hex_digits_are_lowercase_like_the_editor_grammar():
    tokens = tokenize("0xff 0xFF")

    assert tokens[0].value == -1
    assert [(t.type, t.value) for t in tokens[1:3]] == [
        (TokenType.NUMBER, 0),
        (TokenType.IDENTIFIER, "xFF"),
    ]
