import logging
from enum import Enum, auto
from functools import reduce
from itertools import count
from typing import Final, NamedTuple, Optional

from fsmlab.fsm import ENFA, FsmError, InvalidDefinition
from fsmlab.thompson import (
    alternation,
    base,
    concatenate,
    one_or_more,
    zero_or_more,
    zero_or_one,
)

logger = logging.getLogger(__name__)


class TokenType(Enum):
    SYMBOL = auto()
    PIPE = auto()
    QUESTION_MARK = auto()
    STAR = auto()
    PLUS = auto()
    OPEN_PAREN = auto()
    CLOSE_PAREN = auto()
    EOI = auto()
    # only produced by the lexer's scanning methods
    SUB_REGEX = auto()
    ERROR = auto()


char2token_type: Final[dict[str, TokenType]] = {
    "|": TokenType.PIPE,
    "?": TokenType.QUESTION_MARK,
    "*": TokenType.STAR,
    "+": TokenType.PLUS,
    "(": TokenType.OPEN_PAREN,
    ")": TokenType.CLOSE_PAREN,
}

QUANTIFIERS: Final[frozenset[TokenType]] = frozenset(
    {TokenType.STAR, TokenType.PLUS, TokenType.QUESTION_MARK}
)


class RegexErrorKind(Enum):
    UNTERMINATED_PARENTHESIS = "unterminated-parenthesis"
    UNMATCHED_CLOSING_PARENTHESIS = "unmatched-closing-parenthesis"
    OPERATOR_MISSING_OPERAND = "operator-missing-operand"
    ALTERNATION_MISSING_OPERAND = "alternation-missing-operand"
    ALTERNATION_MISSING_RIGHT_OPERAND = "alternation-missing-right-operand"
    EMPTY_REGEX = "empty-regex"


class RegexSyntaxError(FsmError):
    def __init__(
        self,
        kind: RegexErrorKind,
        message: str,
        position: int,
        operator: Optional[str] = None,
    ):
        super().__init__(f"{message} ({kind.value} at position {position})")
        self.kind = kind
        self.position = position
        self.operator = operator


class InternalError(RuntimeError):
    """The regex compiler produced an automaton it should not have"""


class Token(NamedTuple):
    text: str
    type: TokenType
    # index into the top level regex
    position: int
    kind: Optional[RegexErrorKind] = None


class Lexer:
    """
    A tokenizer with a lookahead of a single character

    Examples
    --------
    >>> lexer = Lexer('a(b|c)*|d')
    >>> lexer.next_token()
    Token(text='a', type=<TokenType.SYMBOL: 1>, position=0, kind=None)
    >>> lexer.next_token().type
    <TokenType.OPEN_PAREN: 6>
    >>> lexer.get_parentheses()
    Token(text='b|c', type=<TokenType.SUB_REGEX: 9>, position=2, kind=None)
    >>> lexer.next_token().type
    <TokenType.STAR: 4>
    >>> lexer.next_token().type
    <TokenType.PIPE: 2>
    >>> lexer.next_group()
    Token(text='d', type=<TokenType.SUB_REGEX: 9>, position=8, kind=None)
    >>> lexer.next_token().type
    <TokenType.EOI: 8>
    """

    def __init__(self, regex: str, offset: int = 0):
        self._regex = regex
        self._pos = 0
        self._offset = offset

    @property
    def position(self) -> int:
        return self._offset + self._pos

    def look_ahead(self) -> Token:
        if self._pos >= len(self._regex):
            return Token("", TokenType.EOI, self.position)
        char = self._regex[self._pos]
        return Token(char, char2token_type.get(char, TokenType.SYMBOL), self.position)

    def next_token(self) -> Token:
        token = self.look_ahead()
        if token.type is not TokenType.EOI:
            self._pos += 1
        return token

    def get_parentheses(self) -> Token:
        """
        Scan up to the parenthesis closing the one which was just consumed

        Returns
        -------
        Token
            A SUB_REGEX token with the text strictly between the two parentheses, or
            an ERROR token if the input ends first
        """
        start = self._pos
        depth = 1
        while depth > 0:
            token = self.next_token()
            match token.type:
                case TokenType.EOI:
                    return Token(
                        f"parenthesis at {self._offset + start - 1} is never closed",
                        TokenType.ERROR,
                        token.position,
                        RegexErrorKind.UNTERMINATED_PARENTHESIS,
                    )
                case TokenType.OPEN_PAREN:
                    depth += 1
                case TokenType.CLOSE_PAREN:
                    depth -= 1
        return Token(
            self._regex[start : self._pos - 1],
            TokenType.SUB_REGEX,
            self._offset + start,
        )

    def next_group(self) -> Token:
        """
        Scan the next operand: a symbol or a parenthesized group, and the quantifier following it if any
        """
        start = self._pos
        token = self.next_token()
        match token.type:
            case TokenType.PIPE | TokenType.STAR | TokenType.PLUS | TokenType.QUESTION_MARK:
                return Token(
                    f"operand cannot start with operator {token.text!r}",
                    TokenType.ERROR,
                    token.position,
                    RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND,
                )
            case TokenType.EOI:
                return Token(
                    "operand cannot be empty",
                    TokenType.ERROR,
                    token.position,
                    RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND,
                )
            case TokenType.CLOSE_PAREN:
                return Token(
                    "operand cannot start with ')'",
                    TokenType.ERROR,
                    token.position,
                    RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND,
                )
            case TokenType.OPEN_PAREN:
                group = self.get_parentheses()
                if group.type is TokenType.ERROR:
                    return group

        if self.look_ahead().type in QUANTIFIERS:
            self.next_token()
        return Token(
            self._regex[start : self._pos], TokenType.SUB_REGEX, self._offset + start
        )

    def __repr__(self):
        return f"Lexer({self._regex!r}, position={self.position})"


class RegexParser:
    """
    Compiles a regex into an ε-NFA

    Operands are kept on a stack; a quantifier replaces the operand on top of the stack,
    an alternation replaces the whole stack, and the operands left at the end of the input
    are concatenated. Parenthesized groups and the right operand of an alternation are
    compiled by parsers of their own.

    Parameters
    ----------
    regex: str
        Supported syntax: single character symbols, `|`, `*`, `+`, `?` and parentheses
    label: str
        Prefix of the (debug only) names given to the states
    offset: int
        Position of `regex` in the top level regex, used in error positions

    Raises
    ------
    RegexSyntaxError
        If the regex is malformed
    """

    def __init__(self, regex: str, label: str = "", offset: int = 0):
        self._regex = regex
        self._label = label
        self._offset = offset
        self._lexer = Lexer(regex, offset)
        self._operands: list[ENFA] = []
        self._counter = count()
        self._root = self.parse()

    @property
    def root(self) -> ENFA:
        return self._root

    def next_label(self, kind: str) -> str:
        return f"{self._label}{kind}{next(self._counter)}"

    def parse(self) -> ENFA:
        while (token := self._lexer.next_token()).type is not TokenType.EOI:
            match token.type:
                case TokenType.SYMBOL:
                    self._operands.append(base(token.text, self.next_label("S")))
                case TokenType.OPEN_PAREN:
                    self._operands.append(self.parse_group())
                case TokenType.CLOSE_PAREN:
                    raise RegexSyntaxError(
                        RegexErrorKind.UNMATCHED_CLOSING_PARENTHESIS,
                        f"parenthesis at {token.position} has no matching opening parenthesis",
                        token.position,
                    )
                case TokenType.STAR | TokenType.PLUS | TokenType.QUESTION_MARK:
                    self.parse_quantifier(token)
                case TokenType.PIPE:
                    self.parse_alternation(token)

        if not self._operands:
            raise RegexSyntaxError(
                RegexErrorKind.EMPTY_REGEX, "empty regex", self._offset
            )
        return self._concatenate_operands()

    def _concatenate_operands(self) -> ENFA:
        automaton = reduce(concatenate, self._operands)
        self._operands.clear()
        return automaton

    def parse_group(self) -> ENFA:
        sub_regex = self._lexer.get_parentheses()
        if sub_regex.type is TokenType.ERROR:
            raise RegexSyntaxError(sub_regex.kind, sub_regex.text, sub_regex.position)
        return RegexParser(
            sub_regex.text, self.next_label("G"), sub_regex.position
        ).root

    def parse_quantifier(self, token: Token) -> None:
        if not self._operands:
            raise RegexSyntaxError(
                RegexErrorKind.OPERATOR_MISSING_OPERAND,
                f"operator {token.text!r} at {token.position} has no expression in front",
                token.position,
                operator=token.text,
            )
        match token.type:
            case TokenType.STAR:
                construction = zero_or_more
            case TokenType.PLUS:
                construction = one_or_more
            case TokenType.QUESTION_MARK:
                construction = zero_or_one
            case _:
                raise RuntimeError(f"unrecognized quantifier {token.text}")
        self._operands.append(
            construction(self._operands.pop(), self.next_label(token.text))
        )

    def parse_alternation(self, token: Token) -> None:
        if self._lexer.look_ahead().type is TokenType.EOI:
            raise RegexSyntaxError(
                RegexErrorKind.ALTERNATION_MISSING_RIGHT_OPERAND,
                "unexpected end of input after '|'",
                self._lexer.position,
            )
        if not self._operands:
            raise RegexSyntaxError(
                RegexErrorKind.ALTERNATION_MISSING_OPERAND,
                f"operator '|' at {token.position} has no expression in front",
                token.position,
            )
        lower = self._concatenate_operands()

        group = self._lexer.next_group()
        if group.type is TokenType.ERROR:
            raise RegexSyntaxError(group.kind, group.text, group.position)
        upper = RegexParser(group.text, self.next_label("P"), group.position).root

        self._operands.append(alternation(lower, upper, self.next_label("|")))

    def __repr__(self):
        return f"Parser({self._regex})"


def regex_to_automaton(regex: str, label: str = "") -> ENFA:
    """
    Examples
    --------
    >>> automaton = regex_to_automaton('(a|b)+c?')
    >>> automaton.accepts_word('abbac'), automaton.accepts_word('c')
    (True, False)
    >>> regex_to_automaton('a|')
    Traceback (most recent call last):
        ...
    fsmlab.parser.RegexSyntaxError: unexpected end of input after '|' (alternation-missing-right-operand at position 2)
    """
    try:
        automaton = RegexParser(regex, label).root
    except InvalidDefinition as e:
        raise InternalError(f"could not build an automaton for {regex!r}") from e
    logger.debug(
        "compiled %r into an ε-NFA with %d states", regex, automaton.state_count
    )
    return automaton
