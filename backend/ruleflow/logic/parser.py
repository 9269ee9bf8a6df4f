"""
Expression Parser for validation rules.

Compiles bracket expressions into immutable Expression trees:

    [="5"]                      value equals 5
    [>this|mx(10)]              operand, target and a parameterised modifier
    [|r]&&[|e]                  several brackets joined into one group
    ([|u]||[|l])&&([|r])        parenthesised groups joined together
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..config import RuleFlowSettings
from ..errors import ExpressionSyntaxError, MissingArgumentError, ParseError
from ..models import (
    FLAG_CODES,
    MODIFIER_CODES,
    OPERAND_SYMBOLS,
    ExpressionFlag,
    ExpressionModifier,
    JoinType,
    Operand,
)
from .comparison import to_decimal
from .expression import (
    THIS,
    Expression,
    ExpressionGroup,
    LimitRule,
    LookupRule,
    MembershipRule,
    ModifierRule,
    RangeRule,
)
from .tokenizer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

MODIFIER_NAMES: Dict[ExpressionModifier, str] = {
    ExpressionModifier.UPPERCASE: "Upper Case",
    ExpressionModifier.LOWERCASE: "Lower Case",
    ExpressionModifier.CASE_INSENSITIVE: "Case Insensitive",
    ExpressionModifier.ROUND_UP: "Round Up",
    ExpressionModifier.ROUND_DOWN: "Round Down",
    ExpressionModifier.MAX: "Max",
    ExpressionModifier.MIN: "Min",
    ExpressionModifier.BETWEEN: "Between",
    ExpressionModifier.EMAIL: "Email",
    ExpressionModifier.REQUIRED: "Required",
    ExpressionModifier.IN: "In",
    ExpressionModifier.IN_DB: "InDB",
}


@dataclass
class ParseResult:
    """Outcome of compiling one expression."""
    expression: Optional[Expression]
    errors: List[ParseError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.expression is not None and not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "expression": self.expression.to_dict() if self.expression else None,
            "errors": [
                {"message": e.message, "position": e.position} for e in self.errors
            ],
            "warnings": list(self.warnings),
        }


def _unquote(text: str) -> str:
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


class _Builder:
    """Recursive descent over the token list of a single expression."""

    def __init__(self, text: str, tokens: List[Token], max_depth: int):
        self.text = text
        self.tokens = tokens
        self.index = 0
        self.max_depth = max_depth
        self.warnings: List[str] = []

    # Token helpers

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != TokenKind.EOF:
            self.index += 1
        return token

    def _error(self, message: str, position: int) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(ParseError(message, position, self.text))

    def _expect(self, kind: TokenKind, message: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            raise self._error(message, token.position)
        return self._advance()

    # Grammar

    def build(self) -> Expression:
        units, join = self._sequence(depth=0)
        trailing = self._peek()
        if trailing.kind != TokenKind.EOF:
            raise self._error(f"Unexpected {trailing.text!r}", trailing.position)
        if len(units) == 1:
            return units[0]
        return Expression(
            source=self.text,
            groups=(ExpressionGroup(join, tuple(units)),),
            position=units[0].position,
        )

    def _sequence(self, depth: int) -> Tuple[List[Expression], JoinType]:
        units = [self._unit(depth)]
        join: Optional[JoinType] = None
        while self._peek().kind == TokenKind.JOIN:
            token = self._advance()
            kind = JoinType(token.text)
            if join is None:
                join = kind
            elif kind != join:
                self.warnings.append(
                    f"Mixed join operators at position {token.position}; "
                    f"'{join.value}' applies to the whole group"
                )
            units.append(self._unit(depth))
        return units, join or JoinType.AND

    def _unit(self, depth: int) -> Expression:
        token = self._peek()
        if token.kind == TokenKind.LBRACKET:
            return self._bracket()
        if token.kind == TokenKind.LPAREN:
            if depth + 1 > self.max_depth:
                raise self._error(
                    f"Maximum nesting depth of {self.max_depth} exceeded", token.position
                )
            self._advance()
            units, join = self._sequence(depth + 1)
            close = self._expect(TokenKind.RPAREN, "Expected ')' to close group")
            return Expression(
                source=self.text[token.position:close.position + 1],
                groups=(ExpressionGroup(join, tuple(units)),),
                position=token.position,
            )
        if token.kind == TokenKind.EOF:
            raise self._error("Expected an expression", token.position)
        raise self._error(f"Expected '[' or '(' but found {token.text!r}", token.position)

    def _bracket(self) -> Expression:
        opening = self._advance()
        operand = Operand.EQUALS
        target: Any = THIS

        if self._peek().kind == TokenKind.OPERAND:
            operand = OPERAND_SYMBOLS[self._advance().text]

        if self._peek().kind in (TokenKind.STRING, TokenKind.WORD):
            target = self._advance().text

        modifiers = ExpressionModifier.NONE
        rules: List[ModifierRule] = []
        while self._peek().kind == TokenKind.PIPE:
            self._advance()
            code = self._expect(TokenKind.WORD, "Expected a modifier code after '|'")
            modifier = MODIFIER_CODES.get(code.text.lower())
            if modifier is None:
                raise self._error(f"Unknown modifier '{code.text}'", code.position)
            if modifiers & modifier:
                raise self._error(f"Duplicate modifier '{code.text}'", code.position)
            params: List[str] = []
            if self._peek().kind == TokenKind.LPAREN:
                self._advance()
                params = self._params()
            rules.append(self._rule(modifier, params, code.position))
            modifiers |= modifier

        flags = ExpressionFlag.NONE
        while self._peek().kind == TokenKind.DASH:
            self._advance()
            word = self._expect(TokenKind.WORD, "Expected a flag after '-'")
            for char in word.text.lower():
                flag = FLAG_CODES.get(char)
                if flag is None:
                    raise self._error(f"Unknown flag '-{char}'", word.position)
                flags |= flag

        closing = self._expect(TokenKind.RBRACKET, "Expected ']' to close expression")
        rules.sort(key=lambda r: r.modifier.value)
        return Expression(
            source=self.text[opening.position:closing.position + 1],
            target=target,
            operand=operand,
            modifiers=modifiers,
            rules=tuple(rules),
            flags=flags,
            position=opening.position,
        )

    def _params(self) -> List[str]:
        params = []
        while True:
            token = self._expect(TokenKind.PARAM, "Expected a modifier parameter")
            params.append(_unquote(token.text))
            separator = self._advance()
            if separator.kind == TokenKind.RPAREN:
                break
            if separator.kind != TokenKind.COMMA:
                raise self._error("Expected ',' or ')' in parameter list", separator.position)
        if params == [""]:
            return []
        return params

    def _rule(self, modifier: ExpressionModifier, params: List[str], position: int) -> ModifierRule:
        """Check modifier arity and build its typed record."""
        name = MODIFIER_NAMES[modifier]

        def missing() -> ExpressionSyntaxError:
            return self._error(str(MissingArgumentError(name)), position)

        if modifier in (ExpressionModifier.MAX, ExpressionModifier.MIN):
            if not params or not params[0].strip():
                raise missing()
            if len(params) != 1:
                raise self._error(f"The {name} modifier takes exactly one parameter.", position)
            limit = to_decimal(params[0])
            if limit is None:
                raise self._error(
                    f"The {name} modifier requires a numeric value to validate against.", position
                )
            return LimitRule(modifier, limit)

        if modifier == ExpressionModifier.BETWEEN:
            if len(params) < 2 or not all(p.strip() for p in params):
                raise missing()
            if len(params) != 2:
                raise self._error(f"The {name} modifier takes exactly two parameters.", position)
            return RangeRule(modifier, params[0].strip(), params[1].strip())

        if modifier == ExpressionModifier.IN:
            values = tuple(p.strip() for p in params if p.strip())
            if not values:
                raise missing()
            return MembershipRule(modifier, values)

        if modifier == ExpressionModifier.IN_DB:
            if not params or not params[0].strip():
                raise missing()
            table, _, column = params[0].strip().partition(".")
            if not table or not column or "." in column:
                raise self._error(
                    f"The {name} modifier requires a 'table.column' first parameter.", position
                )
            filters = []
            for raw in params[1:]:
                key, sep, value = raw.partition("=")
                if not sep or not key.strip():
                    raise self._error(
                        f"The {name} modifier filters must be written as column=value.", position
                    )
                filters.append((key.strip(), _unquote(value.strip())))
            return LookupRule(modifier, table, column, tuple(filters))

        if params:
            raise self._error(f"The {name} modifier does not take parameters.", position)
        return ModifierRule(modifier)


class ExpressionParser:
    """
    Parser for bracket validation expressions.

    Parse problems are returned as data on the ParseResult; use
    ``compile_expression`` to get an exception instead.
    """

    def __init__(self, settings: Optional[RuleFlowSettings] = None):
        self.settings = settings or RuleFlowSettings()

    def parse(self, text: str) -> ParseResult:
        """
        Parse an expression.

        Args:
            text: Expression source text.

        Returns:
            ParseResult holding the compiled tree or the errors found.
        """
        if not isinstance(text, str):
            return ParseResult(None, [ParseError(f"Expected string expression, got {type(text).__name__}", 0, "")])

        if not text.strip():
            return ParseResult(None, [ParseError("Empty expression", 0, text)])

        builder: Optional[_Builder] = None
        try:
            builder = _Builder(text, tokenize(text), self.settings.max_depth)
            expression = builder.build()
        except ExpressionSyntaxError as e:
            logger.debug("Expression did not compile: %s", e)
            warnings = builder.warnings if builder else []
            return ParseResult(None, [e.error], list(warnings))

        for warning in builder.warnings:
            logger.warning("%s in %r", warning, text)
        return ParseResult(expression, [], list(builder.warnings))

    def compile_expression(self, text: str) -> Expression:
        """Parse an expression, raising ExpressionSyntaxError on the first error."""
        result = self.parse(text)
        if result.errors:
            raise ExpressionSyntaxError(result.errors[0])
        return result.expression

    def validate(self, text: str) -> Tuple[bool, Optional[str]]:
        """
        Validate an expression.

        Returns:
            Tuple of (is_valid, error_message).
        """
        result = self.parse(text)
        if result.errors:
            return False, str(result.errors[0])
        return True, None


_default_parser: Optional[ExpressionParser] = None
_default_parser_lock = threading.Lock()


def default_expression_parser() -> ExpressionParser:
    """Shared parser built from environment settings on first use."""
    global _default_parser
    if _default_parser is None:
        with _default_parser_lock:
            if _default_parser is None:
                _default_parser = ExpressionParser()
    return _default_parser


def compile_expression(text: str, parser: Optional[ExpressionParser] = None) -> Expression:
    return (parser or default_expression_parser()).compile_expression(text)
