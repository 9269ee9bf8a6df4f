"""
Workflow instruction parser.

Parses chained instructions into action nodes:

    SET(total, 10)                      a single action
    gt(5) => SET(flag, 1)               test => action
    !in(a, b) => END() => LIST(x, y)    test => action => else action

Parameters are literals, references written ``[target|object.property]``
or nested comparison/date calls such as ``gt(EOM())``.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from ..config import RuleFlowSettings
from ..errors import ParseError, WorkflowSyntaxError
from ..models import SUB_MODIFIERS, WorkflowModifier
from .action import LiteralParam, NestedParam, Node, Param, ReferenceParam, TestAction, WorkflowAction
from .registry import ActionRegistry, default_registry

logger = logging.getLogger(__name__)

_ACTION_CALL = re.compile(r"^(?P<name>[A-Za-z]+)\s*\((?P<params>.*)\)$", re.DOTALL)
_REFERENCE = re.compile(
    r"^\[\s*(?P<target>[^|\]]+?)\s*\|\s*(?P<obj>[^.\]|]+?)\s*(?:\.\s*(?P<var>[^\]]*?)\s*)?\]$"
)
_INTEGER = re.compile(r"^[-+]?\d+$")
_DECIMAL = re.compile(r"^[-+]?(\d+\.\d*|\.\d+)$")

_OPENERS = {"(": ")", "[": "]"}
_CLOSERS = {")": "(", "]": "["}


class _Failure(Exception):
    """Internal: carries a ParseError out of the recursive parse."""

    def __init__(self, error: ParseError):
        super().__init__(error.message)
        self.error = error


@dataclass
class WorkflowParseResult:
    """Outcome of parsing one workflow instruction."""
    nodes: List[Node] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def actions(self) -> List[WorkflowAction]:
        return flatten(self.nodes)


def flatten(nodes: List[Node]) -> List[WorkflowAction]:
    """Test action first (flagged), then its branches; plain actions as-is."""
    actions: List[WorkflowAction] = []
    for node in nodes:
        if isinstance(node, TestAction):
            actions.extend(node.actions())
        else:
            actions.append(node)
    return actions


def _literal(text: str) -> Any:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if _INTEGER.match(text):
        return int(text)
    if _DECIMAL.match(text):
        try:
            return Decimal(text)
        except InvalidOperation:
            return text
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return text


class WorkflowParser:
    """
    Parser for workflow instructions.

    Action names are resolved case-insensitively and bound to the execute
    functions of the given registry.
    """

    def __init__(
        self,
        registry: Optional[ActionRegistry] = None,
        settings: Optional[RuleFlowSettings] = None,
    ):
        self.registry = registry if registry is not None else default_registry()
        self.settings = settings or RuleFlowSettings()

    def parse(self, text: str) -> WorkflowParseResult:
        """
        Parse an instruction.

        Args:
            text: Instruction source text.

        Returns:
            WorkflowParseResult with the nodes or the error found.
        """
        if not isinstance(text, str) or not text.strip():
            return WorkflowParseResult(errors=[ParseError("Empty workflow instruction", 0, text or "")])
        try:
            node = self._parse_node(text, text, 0)
        except _Failure as e:
            logger.debug("Workflow instruction did not parse: %s", e.error)
            return WorkflowParseResult(errors=[e.error])
        return WorkflowParseResult(nodes=[node])

    def parse_nodes(self, text: str) -> List[Node]:
        result = self.parse(text)
        if result.errors:
            raise WorkflowSyntaxError(result.errors[0])
        return result.nodes

    def parse_workflow(self, text: str) -> List[WorkflowAction]:
        """Parse an instruction into its flat action list."""
        return flatten(self.parse_nodes(text))

    def validate(self, text: str) -> Tuple[bool, Optional[str]]:
        result = self.parse(text)
        if result.errors:
            return False, str(result.errors[0])
        return True, None

    # Parsing

    def _fail(self, message: str, position: int, source: str) -> _Failure:
        return _Failure(ParseError(message, position, source))

    def _split(self, source: str, text: str, offset: int, separator: str) -> List[Tuple[str, int]]:
        """Split on a separator outside parentheses, brackets and quotes."""
        parts: List[Tuple[str, int]] = []
        stack: List[Tuple[str, int]] = []
        quote: Optional[str] = None
        start = 0
        i = 0
        while i < len(text):
            char = text[i]
            if quote:
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                quote = char
            elif char in _OPENERS:
                stack.append((char, i))
            elif char in _CLOSERS:
                if not stack or stack[-1][0] != _CLOSERS[char]:
                    raise self._fail(f"Unbalanced '{char}'", offset + i, source)
                stack.pop()
            elif not stack and text.startswith(separator, i):
                parts.append((text[start:i], offset + start))
                i += len(separator)
                start = i
                continue
            i += 1
        if quote:
            raise self._fail("Unterminated quoted value", offset + len(text), source)
        if stack:
            opener, position = stack[-1]
            raise self._fail(f"Unclosed '{opener}'", offset + position, source)
        parts.append((text[start:], offset + start))
        return parts

    def _parse_node(self, source: str, text: str, offset: int) -> Node:
        parts = self._split(source, text, offset, "=>")
        if len(parts) > 3:
            raise self._fail(
                "An instruction may only contain a test, an action and an else action",
                parts[3][1],
                source,
            )
        if len(parts) == 1:
            return self._parse_action(source, text, offset, depth=0)

        condition = self._parse_action(source, parts[0][0], parts[0][1], depth=0).as_test()
        then_branch = self._parse_action(source, parts[1][0], parts[1][1], depth=0)
        else_branch = None
        if len(parts) == 3:
            else_branch = self._parse_action(source, parts[2][0], parts[2][1], depth=0)
        return TestAction(text.strip(), condition, then_branch, else_branch)

    def _parse_action(self, source: str, text: str, offset: int, depth: int) -> WorkflowAction:
        stripped = text.strip()
        offset += len(text) - len(text.lstrip())
        if not stripped:
            raise self._fail("Expected an action", offset, source)

        body = stripped
        negative = False
        if body[0] in ("!", "^"):
            negative = True
            body = body[1:].lstrip()
        body_offset = offset + (len(stripped) - len(body))

        match = _ACTION_CALL.match(body)
        if not match:
            raise self._fail("Expected an action call such as NAME(...)", body_offset, source)

        name = match.group("name")
        modifier = WorkflowModifier.from_name(name)
        if modifier is None or modifier == WorkflowModifier.NONE:
            raise self._fail(f"Unknown action '{name}'", body_offset, source)

        params_text = match.group("params")
        params_offset = body_offset + match.start("params")
        params: List[Param] = []
        if params_text.strip():
            for raw, position in self._split(source, params_text, params_offset, ","):
                params.append(self._parse_param(source, raw, position, depth))

        binding = self.registry.binding(modifier)
        if binding is not None and not binding.accepts(len(params)):
            raise self._fail(
                f"{modifier.value} takes {binding.arity_text()} parameter(s), got {len(params)}",
                body_offset,
                source,
            )

        action = WorkflowAction(stripped, modifier, tuple(params), negative)
        if binding is not None:
            action = action.bind(binding.execute, binding.translate)
        return action

    def _parse_param(self, source: str, raw: str, offset: int, depth: int) -> Param:
        text = raw.strip()
        position = offset + len(raw) - len(raw.lstrip())
        if not text:
            raise self._fail("Empty parameter", position, source)

        call = _ACTION_CALL.match(text.lstrip("!^").lstrip())
        if call:
            modifier = WorkflowModifier.from_name(call.group("name"))
            if modifier in SUB_MODIFIERS:
                if depth + 1 > self.settings.max_depth:
                    raise self._fail(
                        f"Maximum nesting depth of {self.settings.max_depth} exceeded",
                        position,
                        source,
                    )
                return NestedParam(self._parse_action(source, raw, offset, depth + 1))

        reference = _REFERENCE.match(text)
        if reference:
            return ReferenceParam(
                reference.group("target"),
                reference.group("obj"),
                reference.group("var") or "",
            )

        return LiteralParam(_literal(text))


_default_parser: Optional[WorkflowParser] = None
_default_parser_lock = threading.Lock()


def default_workflow_parser() -> WorkflowParser:
    """Shared parser bound to the default registry, created on first use."""
    global _default_parser
    if _default_parser is None:
        with _default_parser_lock:
            if _default_parser is None:
                _default_parser = WorkflowParser()
    return _default_parser


def parse_workflow(text: str, parser: Optional[WorkflowParser] = None) -> List[WorkflowAction]:
    return (parser or default_workflow_parser()).parse_workflow(text)


def parse_nodes(text: str, parser: Optional[WorkflowParser] = None) -> List[Node]:
    return (parser or default_workflow_parser()).parse_nodes(text)
