"""
Row-filter expression language.

A row filter is a small boolean expression evaluated against one row of
key/value data and the store's session context, e.g.::

    WHERE region = SESSION_CONTEXT('user_region') AND status != 'closed'

The grammar is intentionally flat. There are no parentheses and no
operator precedence; text is split on literal separators in a fixed order:

1. ``AND`` (every part must hold, evaluated left to right)
2. ``OR`` (any part may hold, evaluated left to right)
3. ``!=`` then ``=`` (string comparison of two operands)
4. ``TRUE`` / ``FALSE``

Parts produced by an AND split are parsed again, so ``a = 'x' AND b = 'y'
OR c = 'z'`` groups as ``a = 'x' AND (b = 'y' OR c = 'z')``. That grouping is
a consequence of the split order, not a precedence rule.

Separators inside quoted text are ignored.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Mapping, Optional, Tuple, Union

from lakekit.errors import EvaluationError, FilterParseError, MissingSessionContextKeyError
from lakekit.models.grants import RowFilter

from .tokens import QUOTES, find_outside_quotes, split_outside_quotes

logger = logging.getLogger(__name__)

_WHERE_PREFIX = re.compile(r"^WHERE\s+", re.IGNORECASE)
_SESSION_CONTEXT_CALL = re.compile(r"^SESSION_CONTEXT\s*\((.*)\)$", re.IGNORECASE | re.DOTALL)
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    """A quoted string."""
    value: str


@dataclass(frozen=True)
class ColumnRef:
    """
    Bare operand text.

    Resolves to the row value when the row has a column of that name;
    otherwise the text stands for itself (numbers, unrecognized words).
    """
    name: str


@dataclass(frozen=True)
class SessionContextCall:
    """SESSION_CONTEXT('key'): a lookup in the session context."""
    key: str


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool


@dataclass(frozen=True)
class Equals:
    left: "Operand"
    right: "Operand"


@dataclass(frozen=True)
class NotEquals:
    left: "Operand"
    right: "Operand"


@dataclass(frozen=True)
class And:
    parts: Tuple["Expression", ...]


@dataclass(frozen=True)
class Or:
    parts: Tuple["Expression", ...]


Operand = Union[Literal, ColumnRef, SessionContextCall]
Expression = Union[BooleanLiteral, Equals, NotEquals, And, Or]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _segments(text: str, separator: str, offset: int) -> List[Tuple[str, int]]:
    """Split on a separator outside quotes, keeping each part's absolute offset."""
    result = []
    cursor = 0
    for raw in split_outside_quotes(text, separator, ignore_case=True):
        leading = len(raw) - len(raw.lstrip())
        result.append((raw.strip(), offset + cursor + leading))
        cursor += len(raw) + len(separator)
    return result


def _parse_operand(text: str, offset: int) -> Operand:
    value = text.strip()
    if not value:
        raise FilterParseError("Missing operand", rule="operand", position=offset)

    if len(value) >= 2 and value[0] in QUOTES and value[-1] == value[0]:
        return Literal(value[1:-1])

    call = _SESSION_CONTEXT_CALL.match(value)
    if call:
        key = call.group(1).strip()
        if len(key) >= 2 and key[0] in QUOTES and key[-1] == key[0]:
            key = key[1:-1]
        if not key:
            raise FilterParseError("SESSION_CONTEXT requires a key", rule="session_context", position=offset)
        return SessionContextCall(key)

    return ColumnRef(value)


def _parse_comparison(text: str, offset: int, operator: str) -> Optional[Expression]:
    index = find_outside_quotes(text, operator)
    if index == -1:
        return None
    left = _parse_operand(text[:index], offset)
    right = _parse_operand(text[index + len(operator):], offset + index + len(operator))
    if operator == "!=":
        return NotEquals(left, right)
    return Equals(left, right)


def _parse_expression(text: str, offset: int) -> Expression:
    if not text:
        raise FilterParseError("Empty expression", rule="expression", position=offset)

    for separator, node in ((" AND ", And), (" OR ", Or)):
        segments = _segments(text, separator, offset)
        if len(segments) > 1:
            return node(tuple(_parse_expression(part, part_offset) for part, part_offset in segments))

    for operator in ("!=", "="):
        comparison = _parse_comparison(text, offset, operator)
        if comparison is not None:
            return comparison

    if text.upper() == "TRUE":
        return BooleanLiteral(True)
    if text.upper() == "FALSE":
        return BooleanLiteral(False)

    raise FilterParseError(f"Cannot evaluate expression: {text}", rule="expression", position=offset)


@lru_cache(maxsize=512)
def parse_filter(text: str) -> Expression:
    """
    Parse row-filter text into an expression tree.

    An optional leading ``WHERE`` is stripped.

    Raises:
        FilterParseError: If the text is not a valid filter expression
    """
    body = text.strip()
    offset = len(text) - len(text.lstrip())
    where = _WHERE_PREFIX.match(body)
    if where:
        offset += where.end()
        body = body[where.end():]
    return _parse_expression(body.strip(), offset)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

class FilterEvaluator:
    """
    Evaluates parsed filters against one row and one session context.

    Resolution order for operands:
    1. Quoted literal -> its text
    2. SESSION_CONTEXT('key') -> context value (missing key is an error)
    3. Bare name present in the row -> row value
    4. Number -> its literal text
    5. Anything else -> the text itself
    """

    def __init__(self, row: Optional[Mapping[str, str]] = None, session_context: Optional[Mapping[str, str]] = None):
        self.row = dict(row or {})
        self.session_context = dict(session_context or {})

    def evaluate(self, expression: Expression) -> bool:
        if isinstance(expression, BooleanLiteral):
            return expression.value
        if isinstance(expression, Equals):
            return self.resolve(expression.left) == self.resolve(expression.right)
        if isinstance(expression, NotEquals):
            return self.resolve(expression.left) != self.resolve(expression.right)
        if isinstance(expression, And):
            return all(self.evaluate(part) for part in expression.parts)
        if isinstance(expression, Or):
            return any(self.evaluate(part) for part in expression.parts)
        raise EvaluationError(f"Unsupported expression node: {type(expression).__name__}")

    def resolve(self, operand: Operand) -> str:
        if isinstance(operand, Literal):
            return operand.value
        if isinstance(operand, SessionContextCall):
            if operand.key not in self.session_context:
                raise MissingSessionContextKeyError(operand.key)
            return self.session_context[operand.key]
        if isinstance(operand, ColumnRef):
            if operand.name in self.row:
                return self.row[operand.name]
            if _NUMBER.match(operand.name):
                return operand.name
            logger.debug(f"Operand '{operand.name}' is neither a column nor a number; using it verbatim")
            return operand.name
        raise EvaluationError(f"Unsupported operand: {type(operand).__name__}")


def evaluate_filter(
    row_filter: Union[RowFilter, str],
    row: Optional[Mapping[str, str]] = None,
    session_context: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Parse and evaluate a row filter.

    Args:
        row_filter: A RowFilter or raw expression text
        row: Row data (column name to value)
        session_context: Session context used by SESSION_CONTEXT() lookups

    Returns:
        True if the row passes the filter

    Raises:
        FilterParseError: If the expression is malformed
        MissingSessionContextKeyError: If a referenced context key is absent
    """
    text = row_filter.expression if isinstance(row_filter, RowFilter) else row_filter
    return FilterEvaluator(row, session_context).evaluate(parse_filter(text))
