"""A label selector that accepts only exact matches, such as ``k1=v1, k2 = v2``.

Grammar::

    <selector-syntax> ::= [ <requirement> | <requirement> "," <selector-syntax> ]
    <requirement>     ::= KEY "=" VALUE
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator, Mapping

from .field import FieldError, FieldPath, invalid
from .naming import is_qualified_name, is_valid_label_value


class Token(IntEnum):
    ERROR = 0
    END_OF_STRING = 1
    COMMA = 2
    EQUALS = 3
    IDENTIFIER = 4


_SYMBOLS = {",": Token.COMMA, "=": Token.EQUALS}
_WHITESPACE = frozenset(" \t\r\n")
_SPECIAL = frozenset("=,")

_QUALIFIED_NAME_ERROR_MSG = "must match format [ DNS 1123 subdomain / ] DNS 1123 label"


class LabelSelectorError(ValueError):
    """Raised when a selector string cannot be parsed."""


class Lexer:
    """Splits a selector string into tokens."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def lex(self) -> tuple[Token, str]:
        """Return the next token and its literal."""
        text = self._text
        while self._pos < len(text) and text[self._pos] in _WHITESPACE:
            self._pos += 1
        if self._pos >= len(text):
            return Token.END_OF_STRING, ""
        if text[self._pos] in _SPECIAL:
            return self._scan_special()
        return self._scan_identifier()

    def _scan_identifier(self) -> tuple[Token, str]:
        text = self._text
        start = self._pos
        while self._pos < len(text) and text[self._pos] not in _SPECIAL and text[self._pos] not in _WHITESPACE:
            self._pos += 1
        literal = text[start:self._pos]
        return _SYMBOLS.get(literal, Token.IDENTIFIER), literal

    def _scan_special(self) -> tuple[Token, str]:
        text = self._text
        start = end = self._pos
        best = None
        while end < len(text) and text[end] in _SPECIAL:
            end += 1
            token = _SYMBOLS.get(text[start:end])
            if token is not None:
                best = (token, text[start:end])
                self._pos = end
            elif best is not None:
                break
        if best is None:
            self._pos = end
            return Token.ERROR, f"error expected: keyword found '{text[start:end]}'"
        return best


def _tokens(lexer: Lexer) -> Iterator[tuple[Token, str]]:
    while True:
        item = lexer.lex()
        yield item
        if item[0] is Token.END_OF_STRING:
            return


def _validate_label_key(key: str) -> None:
    if is_qualified_name(key):
        raise invalid(FieldPath("label key"), key, _QUALIFIED_NAME_ERROR_MSG)


def _validate_label_value(value: str) -> None:
    if is_valid_label_value(value):
        raise invalid(FieldPath("label value"), value, _QUALIFIED_NAME_ERROR_MSG)


class _Parser:
    def __init__(self, selector: str) -> None:
        self._items = list(_tokens(Lexer(selector)))
        self._pos = 0

    def _lookahead(self) -> tuple[Token, str]:
        return self._items[min(self._pos, len(self._items) - 1)]

    def _consume(self) -> tuple[Token, str]:
        self._pos += 1
        if self._pos > len(self._items):
            return Token.END_OF_STRING, ""
        return self._items[self._pos - 1]

    def parse(self) -> dict[str, str]:
        labels: dict[str, str] = {}
        while True:
            token, literal = self._lookahead()
            if token is Token.END_OF_STRING:
                return labels
            if token is not Token.IDENTIFIER:
                raise LabelSelectorError(f"found '{literal}', expected: identifier or 'end of string'")
            try:
                key, value = self._parse_label()
            except (LabelSelectorError, FieldError) as err:
                raise LabelSelectorError(f"unable to parse requirement: {err}") from err
            labels[key] = value
            token, literal = self._consume()
            if token is Token.END_OF_STRING:
                return labels
            if token is not Token.COMMA:
                raise LabelSelectorError(f"found '{literal}', expected: ',' or 'end of string'")
            next_token, next_literal = self._lookahead()
            if next_token is not Token.IDENTIFIER:
                raise LabelSelectorError(f"found '{next_literal}', expected: identifier after ','")

    def _parse_label(self) -> tuple[str, str]:
        key = self._parse_key()
        self._parse_operator()
        return key, self._parse_exact_value()

    def _parse_key(self) -> str:
        token, literal = self._consume()
        if token is not Token.IDENTIFIER:
            raise LabelSelectorError(f"found '{literal}', expected: identifier")
        _validate_label_key(literal)
        return literal

    def _parse_operator(self) -> str:
        token, literal = self._consume()
        if token is not Token.EQUALS:
            raise LabelSelectorError(f"found '{literal}', expected: '='")
        return "="

    def _parse_exact_value(self) -> str:
        if self._lookahead()[0] in (Token.END_OF_STRING, Token.COMMA):
            return ""
        token, literal = self._consume()
        if token is not Token.IDENTIFIER:
            raise LabelSelectorError(f"found '{literal}', expected: identifier")
        _validate_label_value(literal)
        return literal


def parse(selector: str) -> dict[str, str]:
    """Parse a selector into a mapping of label keys to values."""
    return _Parser(selector).parse()


def conflicts(labels1: Mapping[str, str], labels2: Mapping[str, str]) -> bool:
    """Return True if a key present in both maps has different values."""
    return any(key in labels2 and labels2[key] != value for key, value in labels1.items())


def merge(labels1: Mapping[str, str], labels2: Mapping[str, str]) -> dict[str, str]:
    """Combine the maps; values from ``labels2`` win. Conflicts are not checked."""
    return {**labels1, **labels2}


def equals(labels1: Mapping[str, str], labels2: Mapping[str, str]) -> bool:
    """Return True if both maps hold the same keys and values."""
    return dict(labels1) == dict(labels2)