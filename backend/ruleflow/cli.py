"""Command line entry point for RuleFlow."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError

from backend.ruleflow import __version__
from backend.ruleflow.config import RuleFlowSettings
from backend.ruleflow.errors import ConfigurationError, RuleFlowError, WorkflowSyntaxError
from backend.ruleflow.log import configure_logging
from backend.ruleflow.logic.evaluator import Evaluator
from backend.ruleflow.logic.parser import ExpressionParser
from backend.ruleflow.validator import RuleSet
from backend.ruleflow.workflow.definition import Workflow
from backend.ruleflow.workflow.parser import WorkflowParser

logger = logging.getLogger(__name__)


def _load_json(value: Optional[str], name: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{name} is not valid JSON: {e}") from e


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ruleflow",
        description="Compile and run validation expressions and workflow instructions",
    )
    parser.add_argument("--version", action="version", version=f"ruleflow {__version__}")
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="YAML settings file (defaults to RULEFLOW_* environment variables)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser("test", help="Test a value against a bracket expression")
    test.add_argument("expression", help='Expression, e.g. \'[>"5"|mx(10)]\'')
    test.add_argument("value", help="Value to test")
    test.add_argument(
        "--json-value",
        action="store_true",
        help="Decode VALUE as JSON so numbers and null keep their type",
    )
    test.add_argument("--plain", action="store_true", help="Plain text messages instead of HTML")

    parse = subparsers.add_parser("parse", help="Show the compiled tree of an expression")
    parse.add_argument("text", help="Expression or workflow instruction")
    parse.add_argument(
        "--workflow",
        action="store_true",
        help="Parse TEXT as a workflow instruction instead of a bracket expression",
    )

    run = subparsers.add_parser("run", help="Run a workflow YAML file")
    run.add_argument("file", type=Path, help="Workflow YAML file")
    run.add_argument("--target", default=None, help="Target value as JSON")
    run.add_argument("--translate", action="store_true", help="Print the plain language translation")

    check = subparsers.add_parser("check", help="Validate a JSON record against a rules file")
    check.add_argument("rules", type=Path, help="Rules YAML file")
    check.add_argument("record", help="Record as JSON")

    return parser


def _cmd_test(args: argparse.Namespace, settings: RuleFlowSettings) -> int:
    expression = ExpressionParser(settings).compile_expression(args.expression)
    value = _load_json(args.value, "VALUE") if args.json_value else args.value
    evaluation = Evaluator(settings).evaluate(expression, value)
    print("PASS" if evaluation.passed else "FAIL")
    messages = evaluation.get_validation_messages(html_formatted=not args.plain)
    if messages:
        print(messages)
    return 0 if evaluation.passed else 1


def _cmd_parse(args: argparse.Namespace, settings: RuleFlowSettings) -> int:
    if args.workflow:
        result = WorkflowParser(settings=settings).parse(args.text)
        if result.errors:
            raise WorkflowSyntaxError(result.errors[0])
        _print_json([node.to_dict() for node in result.nodes])
        return 0
    result = ExpressionParser(settings).parse(args.text)
    _print_json(result.to_dict())
    return 0 if result.valid else 2


def _cmd_run(args: argparse.Namespace, settings: RuleFlowSettings) -> int:
    workflow = Workflow.from_file(args.file, settings=settings)
    target = _load_json(args.target, "--target")
    run = workflow.run(target)
    output = run.to_dict()
    if args.translate:
        output["translations"] = [t.to_dict() for t in workflow.wordify(context=run.context)]
    _print_json(output)
    return 0 if run.result.is_complete else 1


def _cmd_check(args: argparse.Namespace, settings: RuleFlowSettings) -> int:
    rules = RuleSet.from_file(args.rules, parser=ExpressionParser(settings), evaluator=Evaluator(settings))
    record = _load_json(args.record, "RECORD")
    result = rules.validate(record)
    _print_json(result.to_dict())
    return 0 if result.valid else 1


COMMANDS = {
    "test": _cmd_test,
    "parse": _cmd_parse,
    "run": _cmd_run,
    "check": _cmd_check,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = RuleFlowSettings.from_file(args.settings) if args.settings else RuleFlowSettings()
    except (ConfigurationError, ValidationError) as e:
        # Logging isn't configured yet.
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, json_output=args.json_logs)

    try:
        return COMMANDS[args.command](args, settings)
    except FileNotFoundError as e:
        logger.error("File not found: %s", e.filename)
        print(f"File not found: {e.filename}", file=sys.stderr)
        return 2
    except RuleFlowError as e:
        logger.error("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
