"""Parser for filter expressions such as ``age > 18 && (name ~ 'jo' || admin = true)``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Union

JOIN_AND = "&&"
JOIN_OR = "||"

SIGN_OPERATORS = frozenset(
    {
        "=", "!=", "~", "!~", "<", "<=", ">", ">=",
        "?=", "?!=", "?~", "?!~", "?<", "?<=", "?>", "?>=",
    }
)

_WHITESPACE = " \t\n"
_SIGN_CHARS = "=?!<>~"
_JOIN_CHARS = "&|"
_QUOTES = "'\""
_IDENTIFIER_START = re.compile(r"[A-Za-z@#_]")
_IDENTIFIER_CHAR = re.compile(r"[A-Za-z0-9@#_.:]")
_IDENTIFIER = re.compile(r"[@#_]?[A-Za-z0-9_.:]*[A-Za-z0-9_]")


class FilterSyntaxError(ValueError):
    """Raised when a filter expression cannot be parsed."""


class TokenType(str, Enum):
    JOIN = "join"
    SIGN = "sign"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    TEXT = "text"
    GROUP = "group"


_OPERANDS = (TokenType.IDENTIFIER, TokenType.NUMBER, TokenType.TEXT)


@dataclass(frozen=True)
class FilterToken:
    type: TokenType
    literal: str


@dataclass(frozen=True)
class Expr:
    """A single comparison: ``left op right``."""

    left: FilterToken
    op: str
    right: FilterToken


@dataclass(frozen=True)
class ExprGroup:
    """A comparison or a parenthesised group, joined to what precedes it."""

    join: str
    item: Union[Expr, "tuple[ExprGroup, ...]"]


def _take_while(text: str, pos: int, allowed: str) -> int:
    while pos < len(text) and text[pos] in allowed:
        pos += 1
    return pos


def _scan_text(text: str, pos: int) -> tuple[str, int]:
    quote = text[pos]
    chars = []
    pos += 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\" and pos + 1 < len(text) and text[pos + 1] == quote:
            chars.append(quote)
            pos += 2
            continue
        if ch == quote:
            return "".join(chars), pos + 1
        chars.append(ch)
        pos += 1
    raise FilterSyntaxError(f"unterminated text starting at {text[:pos]!r}")


def _scan_group(text: str, pos: int) -> tuple[str, int]:
    start = pos + 1
    depth = 0
    while pos < len(text):
        ch = text[pos]
        if ch in _QUOTES:
            _, pos = _scan_text(text, pos)
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[start:pos], pos + 1
        pos += 1
    raise FilterSyntaxError("unbalanced parenthesis in filter expression")


def _scan(text: str) -> Iterator[FilterToken]:
    pos = 0
    while pos < len(text):
        ch = text[pos]
        if ch in _WHITESPACE:
            pos = _take_while(text, pos, _WHITESPACE)
        elif text.startswith("//", pos):
            end = text.find("\n", pos)
            pos = len(text) if end < 0 else end
        elif ch in _QUOTES:
            literal, pos = _scan_text(text, pos)
            yield FilterToken(TokenType.TEXT, literal)
        elif ch == "-" or "0" <= ch <= "9":
            end = _take_while(text, pos + 1, "0123456789.")
            literal = text[pos:end]
            try:
                float(literal)
            except ValueError:
                raise FilterSyntaxError(f"invalid number {literal!r}") from None
            pos = end
            yield FilterToken(TokenType.NUMBER, literal)
        elif _IDENTIFIER_START.match(ch):
            end = pos + 1
            while end < len(text) and _IDENTIFIER_CHAR.match(text[end]):
                end += 1
            literal = text[pos:end]
            if not _IDENTIFIER.fullmatch(literal):
                raise FilterSyntaxError(f"invalid identifier {literal!r}")
            pos = end
            yield FilterToken(TokenType.IDENTIFIER, literal)
        elif ch in _SIGN_CHARS:
            end = _take_while(text, pos, _SIGN_CHARS)
            literal = text[pos:end]
            if literal not in SIGN_OPERATORS:
                raise FilterSyntaxError(f"invalid sign operator {literal!r}")
            pos = end
            yield FilterToken(TokenType.SIGN, literal)
        elif ch in _JOIN_CHARS:
            end = _take_while(text, pos, _JOIN_CHARS)
            literal = text[pos:end]
            if literal not in (JOIN_AND, JOIN_OR):
                raise FilterSyntaxError(f"invalid join operator {literal!r}")
            pos = end
            yield FilterToken(TokenType.JOIN, literal)
        elif ch == "(":
            literal, pos = _scan_group(text, pos)
            yield FilterToken(TokenType.GROUP, literal)
        else:
            raise FilterSyntaxError(f"unexpected character {ch!r}")


def parse(text: str) -> list[ExprGroup]:
    """Parse ``text`` into a list of joined expressions and groups."""
    groups: list[ExprGroup] = []
    join = JOIN_AND
    expect = "left"
    left: FilterToken | None = None
    op = ""

    for token in _scan(text):
        if expect == "left":
            if token.type is TokenType.GROUP:
                groups.append(ExprGroup(join, tuple(parse(token.literal))))
                expect = "join"
            elif token.type in _OPERANDS:
                left = token
                expect = "sign"
            else:
                raise FilterSyntaxError(
                    f"expected left operand, got {token.type.value} {token.literal!r}"
                )
        elif expect == "sign":
            if token.type is not TokenType.SIGN:
                raise FilterSyntaxError(
                    f"expected sign operator, got {token.type.value} {token.literal!r}"
                )
            op = token.literal
            expect = "right"
        elif expect == "right":
            if token.type not in _OPERANDS:
                raise FilterSyntaxError(
                    f"expected right operand, got {token.type.value} {token.literal!r}"
                )
            assert left is not None
            groups.append(ExprGroup(join, Expr(left, op, token)))
            expect = "join"
        else:
            if token.type is not TokenType.JOIN:
                raise FilterSyntaxError(
                    f"expected join operator, got {token.type.value} {token.literal!r}"
                )
            join = token.literal
            expect = "left"

    if not groups and expect == "left":
        raise FilterSyntaxError("empty filter expression")
    if expect != "join":
        raise FilterSyntaxError("invalid or incomplete filter expression")
    return groups