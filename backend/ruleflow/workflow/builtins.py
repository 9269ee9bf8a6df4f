"""
Builtin workflow actions.

Every function takes ``(target, params, context)`` and returns a
WorkflowResult. Comparisons read ``target OP param`` with one parameter and
``param[0] OP param[1]`` with two.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List

from ..errors import InvalidModelError, ModifierValueError, NotFoundError, WorkflowError
from ..logic.comparison import between, compare, is_empty, is_member, to_date, to_decimal
from ..models import WorkflowModifier
from . import dates
from .result import WorkflowResult

logger = logging.getLogger(__name__)


# Comparisons

def _operands(target: Any, params: List[Any]):
    if len(params) >= 2:
        return params[0], params[1]
    return target, params[0]


def _comparison(test: Callable[[int], bool]):
    def run(target: Any, params: List[Any], context) -> WorkflowResult:
        left, right = _operands(target, params)
        return WorkflowResult.of(test(compare(left, right)))
    return run


def between_action(target: Any, params: List[Any], context) -> WorkflowResult:
    if len(params) >= 3:
        value, low, high = params[0], params[1], params[2]
    else:
        value, low, high = target, params[0], params[1]
    return WorkflowResult.of(between(value, low, high))


def length_action(target: Any, params: List[Any], context) -> WorkflowResult:
    """No parameter: target is not empty. One parameter: length is at least n."""
    if not params:
        return WorkflowResult.of(not is_empty(target))
    minimum = to_decimal(params[0])
    if minimum is None:
        raise ModifierValueError("len", params[0], "numeric")
    if target is None:
        length = 0
    elif isinstance(target, (str, list, tuple, dict, set)):
        length = len(target)
    else:
        length = len(str(target))
    return WorkflowResult.of(length >= minimum, value=length)


def in_action(target: Any, params: List[Any], context) -> WorkflowResult:
    return WorkflowResult.of(is_member(target, params))


# Date anchors

def _reference_day(name: str, params: List[Any], context) -> date:
    if not params:
        return context.today()
    day = to_date(params[0])
    if day is None:
        raise ModifierValueError(name, params[0], "date")
    return day.date() if isinstance(day, datetime) else day


def _anchor(name: str, pick: Callable[[date, Any], date]):
    def run(target: Any, params: List[Any], context) -> WorkflowResult:
        day = _reference_day(name, params, context)
        return WorkflowResult.complete(pick(day, context.settings))
    return run


def _holidays(settings) -> frozenset:
    return frozenset(settings.holidays)


DATE_ANCHORS: Dict[WorkflowModifier, Callable] = {
    WorkflowModifier.TODAY: _anchor("Today", lambda d, s: d),
    WorkflowModifier.EOM: _anchor("EOM", lambda d, s: dates.month_bounds(d)[1]),
    WorkflowModifier.EOQ: _anchor(
        "EOQ", lambda d, s: dates.quarter_bounds(d, s.fiscal_year_start_month)[1]
    ),
    WorkflowModifier.EOFY: _anchor(
        "EOFY", lambda d, s: dates.fiscal_year_bounds(d, s.fiscal_year_start_month)[1]
    ),
    WorkflowModifier.LWDOM: _anchor(
        "LWDOM", lambda d, s: dates.last_working_day(*dates.month_bounds(d), _holidays(s))
    ),
    WorkflowModifier.LWDOQ: _anchor(
        "LWDOQ",
        lambda d, s: dates.last_working_day(
            *dates.quarter_bounds(d, s.fiscal_year_start_month), _holidays(s)
        ),
    ),
    WorkflowModifier.LWDOFY: _anchor(
        "LWDOFY",
        lambda d, s: dates.last_working_day(
            *dates.fiscal_year_bounds(d, s.fiscal_year_start_month), _holidays(s)
        ),
    ),
    WorkflowModifier.FWDOM: _anchor(
        "FWDOM", lambda d, s: dates.first_working_day(*dates.month_bounds(d), _holidays(s))
    ),
    WorkflowModifier.FWDOQ: _anchor(
        "FWDOQ",
        lambda d, s: dates.first_working_day(
            *dates.quarter_bounds(d, s.fiscal_year_start_month), _holidays(s)
        ),
    ),
    WorkflowModifier.FWDOFY: _anchor(
        "FWDOFY",
        lambda d, s: dates.first_working_day(
            *dates.fiscal_year_bounds(d, s.fiscal_year_start_month), _holidays(s)
        ),
    ),
}


# Variables and control

def set_action(target: Any, params: List[Any], context) -> WorkflowResult:
    """SET(name, value) stores value; SET(name) stores the target."""
    name = str(params[0])
    value = params[1] if len(params) > 1 else target
    context.variables[name] = value
    return WorkflowResult.complete(value)


def get_action(target: Any, params: List[Any], context) -> WorkflowResult:
    name = str(params[0])
    if name not in context.variables:
        raise NotFoundError(f"Variable '{name}' has not been set")
    return WorkflowResult.complete(context.variables[name])


def check_action(target: Any, params: List[Any], context) -> WorkflowResult:
    name = str(params[0])
    if name not in context.variables:
        return WorkflowResult.fail(NotFoundError(f"Variable '{name}' has not been set"))
    stored = context.variables[name]
    return WorkflowResult.of(compare(stored, params[1]) == 0, value=stored)


def end_action(target: Any, params: List[Any], context) -> WorkflowResult:
    context.stop()
    return WorkflowResult.complete()


def ifttt_action(target: Any, params: List[Any], context) -> WorkflowResult:
    condition = params[0]
    if isinstance(condition, str):
        condition = condition.strip().lower() not in ("", "false", "0", "no")
    return WorkflowResult.of(bool(condition))


def list_action(target: Any, params: List[Any], context) -> WorkflowResult:
    return WorkflowResult.complete(list(params))


def _to_int(value: Any) -> int:
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        raise ValueError(f"{value!r} is not a whole number")
    return int(number)


def _to_decimal(value: Any) -> Decimal:
    number = to_decimal(value)
    if number is None:
        raise ValueError(f"{value!r} is not a number")
    return number


def _to_date(value: Any) -> date:
    day = to_date(value)
    if day is None:
        raise ValueError(f"{value!r} is not a date")
    return day


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "yes", "1"):
            return True
        if text in ("false", "no", "0", ""):
            return False
        raise ValueError(f"{value!r} is not a boolean")
    return bool(value)


CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "int": _to_int,
    "integer": _to_int,
    "decimal": _to_decimal,
    "number": _to_decimal,
    "text": lambda v: "" if v is None else str(v),
    "string": lambda v: "" if v is None else str(v),
    "date": _to_date,
    "bool": _to_bool,
    "boolean": _to_bool,
    "upper": lambda v: str(v).upper(),
    "lower": lambda v: str(v).lower(),
}


def convert_action(target: Any, params: List[Any], context) -> WorkflowResult:
    kind = str(params[0]).strip().lower()
    converter = CONVERTERS.get(kind)
    if converter is None:
        raise WorkflowError(f"CONVERTTO does not know how to convert to '{params[0]}'")
    try:
        return WorkflowResult.complete(converter(target))
    except (ValueError, TypeError) as e:
        return WorkflowResult.fail(InvalidModelError(str(e), incorrect_model=type(target)))


# name: (execute, min_params, max_params)
LIBRARY: Dict[WorkflowModifier, tuple] = {
    WorkflowModifier.GT: (_comparison(lambda r: r > 0), 1, 2),
    WorkflowModifier.LT: (_comparison(lambda r: r < 0), 1, 2),
    WorkflowModifier.EQ: (_comparison(lambda r: r == 0), 1, 2),
    WorkflowModifier.GTE: (_comparison(lambda r: r >= 0), 1, 2),
    WorkflowModifier.LTE: (_comparison(lambda r: r <= 0), 1, 2),
    WorkflowModifier.BW: (between_action, 2, 3),
    WorkflowModifier.LEN: (length_action, 0, 1),
    WorkflowModifier.IN: (in_action, 1, None),
    WorkflowModifier.SET: (set_action, 1, 2),
    WorkflowModifier.GET: (get_action, 1, 1),
    WorkflowModifier.CHECK: (check_action, 2, 2),
    WorkflowModifier.END: (end_action, 0, 0),
    WorkflowModifier.IFTTT: (ifttt_action, 1, None),
    WorkflowModifier.LIST: (list_action, 0, None),
    WorkflowModifier.CONVERTTO: (convert_action, 1, 1),
}

# Registered without an execute function; callers bind their own.
UNBOUND: Dict[WorkflowModifier, tuple] = {
    WorkflowModifier.ATTACH: (0, None),
    WorkflowModifier.EMAIL: (1, None),
    WorkflowModifier.WAIT: (1, None),
    WorkflowModifier.WF: (1, None),
    WorkflowModifier.ZIP: (0, None),
    WorkflowModifier.EACH: (1, None),
    WorkflowModifier.GOTO: (1, 1),
    WorkflowModifier.SWITCH: (1, None),
}


def register_builtins(registry, overwrite: bool = True) -> None:
    """Register the builtin library on a registry."""
    for modifier, (execute, min_params, max_params) in LIBRARY.items():
        if overwrite or modifier not in registry:
            registry.register(modifier, execute, min_params=min_params, max_params=max_params)
    for modifier, execute in DATE_ANCHORS.items():
        if overwrite or modifier not in registry:
            registry.register(modifier, execute, min_params=0, max_params=1)
    for modifier, (min_params, max_params) in UNBOUND.items():
        if modifier not in registry:
            registry.register(modifier, None, min_params=min_params, max_params=max_params)
    logger.debug("Registered %d builtin actions", len(registry))
