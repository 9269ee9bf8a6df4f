"""
Tokenizer for bracket expressions.

The scanner switches between three modes: outside brackets (joins and
grouping parentheses), inside a bracket (operand, target, modifiers, flags)
and inside a modifier parameter list (raw comma separated values).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from ..errors import ExpressionSyntaxError, ParseError


class TokenKind(str, Enum):
    LBRACKET = "["
    RBRACKET = "]"
    LPAREN = "("
    RPAREN = ")"
    PIPE = "|"
    COMMA = ","
    DASH = "-"
    JOIN = "join"
    OPERAND = "operand"
    STRING = "string"
    WORD = "word"
    PARAM = "param"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    position: int


_OPERATORS_2 = (">=", "<=", "!=", "<>")
_OPERATORS_1 = ("=", ">", "<")
_WORD_EXTRA = set("_./:@+")


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char in _WORD_EXTRA


class Tokenizer:
    """Converts expression text into a flat token list."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.tokens: List[Token] = []

    def _error(self, message: str, position: int) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(ParseError(message, position, self.text))

    def _emit(self, kind: TokenKind, text: str, position: int) -> None:
        self.tokens.append(Token(kind, text, position))

    def tokenize(self) -> List[Token]:
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char.isspace():
                self.pos += 1
            elif char == "[":
                self._emit(TokenKind.LBRACKET, char, self.pos)
                self.pos += 1
                self._scan_bracket()
            elif char == "(":
                self._emit(TokenKind.LPAREN, char, self.pos)
                self.pos += 1
            elif char == ")":
                self._emit(TokenKind.RPAREN, char, self.pos)
                self.pos += 1
            elif text.startswith("&&", self.pos) or text.startswith("||", self.pos):
                self._emit(TokenKind.JOIN, text[self.pos:self.pos + 2], self.pos)
                self.pos += 2
            else:
                raise self._error(f"Unexpected character {char!r}", self.pos)
        self._emit(TokenKind.EOF, "", len(text))
        return self.tokens

    def _scan_bracket(self) -> None:
        text = self.text
        start = self.pos - 1
        while self.pos < len(text):
            char = text[self.pos]
            if char.isspace():
                self.pos += 1
            elif char == "]":
                self._emit(TokenKind.RBRACKET, char, self.pos)
                self.pos += 1
                return
            elif char == '"':
                self._scan_string()
            elif char == "|":
                self._emit(TokenKind.PIPE, char, self.pos)
                self.pos += 1
            elif char == "(":
                self._emit(TokenKind.LPAREN, char, self.pos)
                self.pos += 1
                self._scan_params()
            elif char == "-":
                self._emit(TokenKind.DASH, char, self.pos)
                self.pos += 1
            elif char in "<>=!":
                self._scan_operator()
            elif _is_word_char(char):
                begin = self.pos
                while self.pos < len(text) and _is_word_char(text[self.pos]):
                    self.pos += 1
                self._emit(TokenKind.WORD, text[begin:self.pos], begin)
            else:
                raise self._error(f"Unexpected character {char!r} in expression", self.pos)
        raise self._error("Unclosed expression bracket", start)

    def _scan_string(self) -> None:
        begin = self.pos
        end = self.text.find('"', begin + 1)
        if end < 0:
            raise self._error("Unterminated quoted target", begin)
        self._emit(TokenKind.STRING, self.text[begin + 1:end], begin)
        self.pos = end + 1

    def _scan_operator(self) -> None:
        for op in _OPERATORS_2:
            if self.text.startswith(op, self.pos):
                self._emit(TokenKind.OPERAND, op, self.pos)
                self.pos += 2
                return
        char = self.text[self.pos]
        if char in _OPERATORS_1:
            self._emit(TokenKind.OPERAND, char, self.pos)
            self.pos += 1
            return
        raise self._error(f"Unknown operand starting with {char!r}", self.pos)

    def _scan_params(self) -> None:
        text = self.text
        start = self.pos - 1
        begin = self.pos
        while self.pos < len(text):
            char = text[self.pos]
            if char == '"':
                end = text.find('"', self.pos + 1)
                if end < 0:
                    raise self._error("Unterminated quoted parameter", self.pos)
                self.pos = end + 1
            elif char in ",)":
                self._emit(TokenKind.PARAM, text[begin:self.pos].strip(), begin)
                if char == ",":
                    self._emit(TokenKind.COMMA, char, self.pos)
                    self.pos += 1
                    begin = self.pos
                else:
                    self._emit(TokenKind.RPAREN, char, self.pos)
                    self.pos += 1
                    return
            elif char in "[]":
                break
            else:
                self.pos += 1
        raise self._error("Unclosed modifier parameter list", start)


def tokenize(text: str) -> List[Token]:
    return Tokenizer(text).tokenize()
