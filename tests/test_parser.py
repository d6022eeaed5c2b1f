from itertools import product

import pytest

from fsmlab.fsm import ENFA, AutomatonOptions, Transition
from fsmlab.parser import (
    InternalError,
    Lexer,
    RegexErrorKind,
    RegexSyntaxError,
    TokenType,
    regex_to_automaton,
)
from fsmlab.thompson import (
    alternation,
    base,
    concatenate,
    one_or_more,
    zero_or_more,
    zero_or_one,
)
from fsmlab.utils import EPSILON


def words_up_to(alphabet, length):
    for n in range(length + 1):
        for chars in product(alphabet, repeat=n):
            yield "".join(chars)


def test_look_ahead_does_not_consume():
    lexer = Lexer("a*")
    assert lexer.look_ahead().type is TokenType.SYMBOL
    assert lexer.look_ahead().position == 0
    assert lexer.next_token().text == "a"
    assert lexer.next_token().type is TokenType.STAR
    assert lexer.next_token().type is TokenType.EOI
    # the end of the input is sticky
    assert lexer.next_token().type is TokenType.EOI
    assert lexer.position == 2


@pytest.mark.parametrize(
    "char, token_type",
    [
        ("|", TokenType.PIPE),
        ("?", TokenType.QUESTION_MARK),
        ("*", TokenType.STAR),
        ("+", TokenType.PLUS),
        ("(", TokenType.OPEN_PAREN),
        (")", TokenType.CLOSE_PAREN),
        ("x", TokenType.SYMBOL),
        (" ", TokenType.SYMBOL),
    ],
)
def test_token_types(char, token_type):
    assert Lexer(char).next_token().type is token_type


def test_get_parentheses_nested():
    lexer = Lexer("((a)b)c")
    assert lexer.next_token().type is TokenType.OPEN_PAREN
    token = lexer.get_parentheses()
    assert token.type is TokenType.SUB_REGEX
    assert token.text == "(a)b"
    assert token.position == 1
    assert lexer.next_token().text == "c"


def test_get_parentheses_unterminated():
    lexer = Lexer("(a(b)")
    lexer.next_token()
    token = lexer.get_parentheses()
    assert token.type is TokenType.ERROR
    assert token.kind is RegexErrorKind.UNTERMINATED_PARENTHESIS
    assert token.position == 5
    assert "parenthesis at 0" in token.text


@pytest.mark.parametrize(
    "regex, group, rest",
    [
        ("a", "a", ""),
        ("ab", "a", "b"),
        ("a*b", "a*", "b"),
        ("a+?", "a+", "?"),
        ("(ab)?c", "(ab)?", "c"),
        ("(a(b))d", "(a(b))", "d"),
    ],
)
def test_next_group(regex, group, rest):
    lexer = Lexer(regex)
    token = lexer.next_group()
    assert token.type is TokenType.SUB_REGEX
    assert token.text == group
    assert token.position == 0
    assert "".join(iter(lambda: lexer.next_token().text, "")) == rest


@pytest.mark.parametrize("regex", ["*a", "+", "?", "|a", ")", ""])
def test_next_group_errors(regex):
    token = Lexer(regex).next_group()
    assert token.type is TokenType.ERROR
    assert token.kind is RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND


def test_base():
    automaton = base("a", "S0")
    assert isinstance(automaton, ENFA)
    assert automaton.state_names == ("IS0", "FS0")
    assert automaton.accepts_word("a")
    assert not automaton.accepts_word("")
    assert not automaton.accepts_word("aa")


def test_concatenate_renumbers_states():
    automaton = concatenate(base("a"), base("b"))
    assert automaton.state_count == 4
    assert automaton.alphabet == ("a", "b")
    assert automaton.initial_states == {0}
    assert automaton.final_states == {3}
    assert automaton.transitions[-1] == Transition(EPSILON, 1, 2)
    assert automaton.accepts_word("ab")
    assert not automaton.accepts_word("a")


def test_alternation():
    automaton = alternation(base("a"), base("a"), "|0")
    assert automaton.state_count == 6
    assert automaton.alphabet == ("a",)
    assert automaton.state_names[-2:] == ("I|0", "F|0")
    assert automaton.initial_states == {4}
    assert automaton.final_states == {5}
    assert automaton.accepts_word("a")
    assert not automaton.accepts_word("")


@pytest.mark.parametrize(
    "construction, empty, once, many",
    [
        (zero_or_more, True, True, True),
        (one_or_more, False, True, True),
        (zero_or_one, True, True, False),
    ],
)
def test_quantifier_constructions(construction, empty, once, many):
    operand = base("a")
    automaton = construction(operand, "q")
    assert automaton.state_count == 4
    assert automaton.initial_states == {2}
    assert automaton.final_states == {3}
    assert automaton.accepts_word("") == empty
    assert automaton.accepts_word("a") == once
    assert automaton.accepts_word("aaa") == many
    # operands are never modified
    assert len(operand.transitions) == 1


@pytest.mark.parametrize(
    "regex, word, expected",
    [
        ("a*", "", True),
        ("a*", "aaa", True),
        ("a*", "b", False),
        ("ab|c", "ab", True),
        ("ab|c", "c", True),
        ("ab|c", "a", False),
        ("ab|c", "ac", False),
        ("(a|b)+", "", False),
        ("(a|b)+", "ababab", True),
        ("a?", "", True),
        ("a?", "a", True),
        ("a?", "aa", False),
        ("a?b", "b", True),
        ("a?b", "ab", True),
        ("a?b", "aab", False),
        ("(ab)*c", "c", True),
        ("(ab)*c", "ababc", True),
        ("(ab)*c", "aba", False),
        ("a|b|c", "b", True),
        ("a|b|c", "c", True),
        ("a|b|c", "ab", False),
        ("a|(bc)", "bc", True),
        ("a|(bc)", "a", True),
        ("a|bc", "ac", True),
        ("a|bc", "a", False),
        ("a|b*", "", True),
        ("a|b*", "bbb", True),
        ("a|b*", "ab", False),
        ("(a|b)*abb", "aababb", True),
        ("(a|b)*abb", "ab", False),
        ("a+?", "", True),
        ("a+?", "aaa", True),
        ("((a))", "a", True),
        ("((a))", "", False),
    ],
)
def test_regex_acceptance(regex, word, expected):
    assert regex_to_automaton(regex).accepts_word(word) == expected


@pytest.mark.parametrize(
    "regex, kind, position",
    [
        ("(a", RegexErrorKind.UNTERMINATED_PARENTHESIS, 2),
        ("(b*", RegexErrorKind.UNTERMINATED_PARENTHESIS, 3),
        ("((a)", RegexErrorKind.UNTERMINATED_PARENTHESIS, 4),
        ("a|(b", RegexErrorKind.UNTERMINATED_PARENTHESIS, 4),
        ("a)", RegexErrorKind.UNMATCHED_CLOSING_PARENTHESIS, 1),
        ("(a))", RegexErrorKind.UNMATCHED_CLOSING_PARENTHESIS, 3),
        ("*a", RegexErrorKind.OPERATOR_MISSING_OPERAND, 0),
        ("a(*)", RegexErrorKind.OPERATOR_MISSING_OPERAND, 2),
        ("|a", RegexErrorKind.ALTERNATION_MISSING_OPERAND, 0),
        ("a|", RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND, 2),
        ("a|*", RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND, 2),
        ("a|)", RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND, 2),
        ("a||b", RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND, 2),
        ("", RegexErrorKind.EMPTY_REGEX, 0),
        ("()", RegexErrorKind.EMPTY_REGEX, 1),
        ("a(b())", RegexErrorKind.EMPTY_REGEX, 4),
    ],
)
def test_regex_errors(regex, kind, position):
    with pytest.raises(RegexSyntaxError) as info:
        regex_to_automaton(regex)
    assert info.value.kind is kind
    assert info.value.position == position


def test_operator_missing_operand_names_the_operator():
    with pytest.raises(RegexSyntaxError) as info:
        regex_to_automaton("+")
    assert info.value.operator == "+"


def test_debug_state_names():
    assert regex_to_automaton("ab").state_names == ("IS0", "FS0", "IS1", "FS1")
    assert regex_to_automaton("a", "X").state_names == ("IXS0", "FXS0")


@pytest.mark.parametrize(
    "regex", ["a*", "ab|c", "(a|b)+", "a?b*", "(ab|b)*a?", "((a|b)c)*|a+"]
)
def test_compiled_regexes_survive_conversions(regex):
    enfa = regex_to_automaton(regex)
    nfa = enfa.to_nfa()
    dfa = nfa.to_dfa()
    for word in words_up_to(enfa.alphabet, 4):
        expected = enfa.accepts_word(word)
        assert nfa.accepts_word(word) == expected, (regex, word)
        assert dfa.accepts_word(word) == expected, (regex, word)


def test_invalid_fragment_is_an_internal_error(monkeypatch):
    def broken_base(symbol, label=""):
        return ENFA(AutomatonOptions(symbol, 2, None, [], [1], []))

    monkeypatch.setattr("fsmlab.parser.base", broken_base)
    with pytest.raises(InternalError):
        regex_to_automaton("a")
