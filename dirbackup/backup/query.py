"""
Text queries for finder expressions.

Examples:
    all
    name = *.mp3
    size > 1024 and not writable
    (name = "*.mp3" or name = '*.wav') and size > 100
    except name = *.tmp

Keywords are case-insensitive. 'and' binds tighter than 'or'.
"""

import re
from typing import List, Tuple

from .expressions import (
    Expression,
    ExpressionError,
    All,
    NameMatches,
    LargerThan,
    Writable,
    Not,
    And,
    Or,
    expression_from_dict,
)


_TOKEN_RE = re.compile(r"""
    \s*(?:
        (?P<string>"[^"]*"|'[^']*')
      | (?P<punct>[()=>])
      | (?P<word>[^\s()=>"']+)
    )
""", re.VERBOSE)

Token = Tuple[str, str, int]


def tokenize(text: str) -> List[Token]:
    """
    Split a query into (kind, value, position) tokens.

    Raises:
        ExpressionError: On an unterminated quote or stray character
    """
    tokens = []
    pos = 0
    text = text.rstrip()

    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match or match.end() == pos:
            rest = text[pos:].lstrip()
            bad = len(text) - len(rest)
            raise ExpressionError(f"Unexpected character at position {bad}: {rest!r}")

        kind = match.lastgroup
        value = match.group(kind)
        start = match.start(kind)
        if kind == 'string':
            value = value[1:-1]
        tokens.append((kind, value, start))
        pos = match.end()

    return tokens


class QueryParser:
    """Recursive-descent parser producing an Expression tree."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    def parse(self) -> Expression:
        if not self.tokens:
            raise ExpressionError("Empty query")

        expression = self._parse_or()

        if self.index < len(self.tokens):
            _, value, position = self.tokens[self.index]
            raise ExpressionError(f"Unexpected '{value}' at position {position}")

        return expression

    def _peek(self):
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _next(self, expected: str = None) -> Token:
        token = self._peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of query, expected {expected or 'more input'}")
        self.index += 1
        return token

    def _peek_keyword(self, *keywords) -> bool:
        token = self._peek()
        return token is not None and token[0] == 'word' and token[1].lower() in keywords

    def _expect_punct(self, symbol: str):
        kind, value, position = self._next(f"'{symbol}'")
        if kind != 'punct' or value != symbol:
            raise ExpressionError(f"Expected '{symbol}' at position {position}, got '{value}'")

    def _parse_or(self) -> Expression:
        expression = self._parse_and()
        while self._peek_keyword('or'):
            self.index += 1
            expression = Or(expression, self._parse_and())
        return expression

    def _parse_and(self) -> Expression:
        expression = self._parse_unary()
        while self._peek_keyword('and'):
            self.index += 1
            expression = And(expression, self._parse_unary())
        return expression

    def _parse_unary(self) -> Expression:
        if self._peek_keyword('not', 'except'):
            self.index += 1
            return Not(self._parse_unary())

        token = self._peek()
        if token is not None and token[0] == 'punct' and token[1] == '(':
            self.index += 1
            expression = self._parse_or()
            self._expect_punct(')')
            return expression

        return self._parse_atom()

    def _parse_atom(self) -> Expression:
        kind, value, position = self._next('a condition')

        if kind != 'word':
            raise ExpressionError(f"Expected a condition at position {position}, got '{value}'")

        keyword = value.lower()

        if keyword == 'all':
            return All()

        if keyword == 'writable':
            return Writable()

        if keyword == 'name':
            self._expect_punct('=')
            pattern_kind, pattern, pattern_position = self._next('a name pattern')
            if pattern_kind not in ('word', 'string'):
                raise ExpressionError(f"Expected a name pattern at position {pattern_position}, got '{pattern}'")
            return NameMatches(pattern)

        if keyword == 'size':
            self._expect_punct('>')
            _, size, size_position = self._next('a size in bytes')
            if not (size.isascii() and size.isdigit()):
                raise ExpressionError(f"Expected a size in bytes at position {size_position}, got '{size}'")
            return LargerThan(int(size))

        raise ExpressionError(f"Unknown condition '{value}' at position {position}")


def parse_query(text: str) -> Expression:
    """
    Parse a text query into an expression.

    Args:
        text: Query such as "name = *.mp3 and size > 100"

    Returns:
        Expression tree

    Raises:
        ExpressionError: If the query is malformed
    """
    if not isinstance(text, str):
        raise ExpressionError(f"Query must be a string, got {type(text).__name__}")
    return QueryParser(text).parse()


def load_selector(selector) -> Expression:
    """
    Turn a selector received from configuration or the API into an expression.

    Args:
        selector: None (all files), a query string, a dict, or an Expression

    Returns:
        Expression instance

    Raises:
        ExpressionError: If the selector is malformed
    """
    if selector is None:
        return All()
    if isinstance(selector, Expression):
        return selector
    if isinstance(selector, str):
        return parse_query(selector)
    if isinstance(selector, dict):
        return expression_from_dict(selector)
    raise ExpressionError(f"Unsupported selector type: {type(selector).__name__}")
