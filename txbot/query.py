"""Event query language: parsing, rendering and matching against event attributes."""

from __future__ import annotations

import operator
import re
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable


class QueryError(ValueError):
    """Raised for a query that cannot be parsed or evaluated."""


@dataclass(frozen=True)
class EventValue:
    """One event attribute, keyed as '<event type>.<attribute>'."""

    key: str = ""
    value: str = ""


def events_to_map(values: Iterable[EventValue]) -> dict[str, list[str]]:
    """Group event values by key, keeping their order."""
    result: dict[str, list[str]] = {}
    for item in values:
        result.setdefault(item.key, []).append(item.value)
    return result


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}
_KEYWORDS = frozenset({"AND", "CONTAINS", "EXISTS", "DATE", "TIME"})
_NUMBER = re.compile(r"\d+(\.\d+)?")
_TAG = re.compile(r"[A-Za-z_][^\s'\"<>=()]*")
_LEXEME = re.compile(
    r"\s*(?:(?P<string>'[^']*')|(?P<op><=|>=|<|>|=)|(?P<word>[^\s'\"<>=()]+))"
)


def _to_number(text: str) -> Decimal:
    if re.fullmatch(r"-?\d+", text):
        return Decimal(text)
    found = _NUMBER.match(text)
    if found is None:
        raise QueryError(f"cannot parse {text!r} as a number")
    return Decimal(found.group())


def _to_date(text: str) -> date:
    try:
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise QueryError(f"cannot parse {text!r} as a date") from exc


def _to_time(text: str) -> datetime:
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise QueryError(f"cannot parse {text!r} as a time") from exc
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


_CONVERTERS: dict[str, Callable[[str], Any]] = {
    "number": _to_number,
    "DATE": _to_date,
    "TIME": _to_time,
}


@dataclass(frozen=True)
class _Condition:
    tag: str
    op: str
    kind: str = ""
    operand: str = ""

    def __str__(self) -> str:
        if self.op == "EXISTS":
            return f"{self.tag} EXISTS"
        if self.kind == "string":
            argument = f"'{self.operand}'"
        elif self.kind == "number":
            argument = self.operand
        else:
            argument = f"{self.kind} {self.operand}"
        return f"{self.tag} {self.op} {argument}"

    def matches(self, events: Mapping[str, Sequence[str]]) -> bool:
        if self.op == "EXISTS":
            return self.tag in events
        return any(self._holds(value) for value in events.get(self.tag) or ())

    def _holds(self, value: str) -> bool:
        if self.kind == "string":
            return self.operand in value if self.op == "CONTAINS" else value == self.operand
        convert = _CONVERTERS[self.kind]
        return _OPERATORS[self.op](convert(value), convert(self.operand))


@dataclass(frozen=True)
class Query:
    """A conjunction of conditions over event attributes."""

    conditions: tuple[_Condition, ...]

    def __str__(self) -> str:
        return " AND ".join(str(condition) for condition in self.conditions)

    def matches(self, events: Mapping[str, Sequence[str]]) -> bool:
        """Tell whether every condition holds for the given attribute map."""
        return all(condition.matches(events) for condition in self.conditions)


def _lex(text: str) -> deque[tuple[str, str]]:
    text = text.rstrip()
    parts: deque[tuple[str, str]] = deque()
    position = 0
    while position < len(text):
        found = _LEXEME.match(text, position)
        if found is None:
            raise QueryError(f"unexpected input at position {position}: {text[position:]!r}")
        kind = found.lastgroup or ""
        parts.append((kind, found.group(kind)))
        position = found.end()
    return parts


def _next(parts: deque[tuple[str, str]], expected: str) -> tuple[str, str]:
    if not parts:
        raise QueryError(f"unexpected end of query, expected {expected}")
    return parts.popleft()


def _condition(parts: deque[tuple[str, str]]) -> _Condition:
    kind, tag = _next(parts, "a tag")
    if kind != "word" or tag in _KEYWORDS or not _TAG.fullmatch(tag):
        raise QueryError(f"expected a tag, got {tag!r}")

    kind, op = _next(parts, "an operator")
    if (kind, op) == ("word", "EXISTS"):
        return _Condition(tag, "EXISTS")
    if kind != "op" and (kind, op) != ("word", "CONTAINS"):
        raise QueryError(f"expected an operator, got {op!r}")

    kind, operand = _next(parts, "an operand")
    if kind == "string":
        operand_kind, operand = "string", operand[1:-1]
    elif kind == "word" and operand in ("DATE", "TIME"):
        value_kind, value = _next(parts, f"a {operand.lower()} value")
        if value_kind != "word":
            raise QueryError(f"expected a {operand.lower()} value, got {value!r}")
        _CONVERTERS[operand](value)
        operand_kind, operand = operand, value
    elif kind == "word" and _NUMBER.fullmatch(operand):
        operand_kind = "number"
    else:
        raise QueryError(f"expected an operand, got {operand!r}")

    if op == "CONTAINS" and operand_kind != "string":
        raise QueryError(f"CONTAINS needs a string operand, got {operand!r}")
    if operand_kind == "string" and op not in ("=", "CONTAINS"):
        raise QueryError(f"operator {op} cannot be applied to a string")
    return _Condition(tag, op, operand_kind, operand)


def parse_query(text: str) -> Query:
    """Parse a query such as "tm.event = 'Tx' AND tx.height > 5"."""
    parts = _lex(text)
    if not parts:
        raise QueryError("empty query")
    conditions = [_condition(parts)]
    while parts:
        kind, word = parts.popleft()
        if (kind, word) != ("word", "AND"):
            raise QueryError(f"expected AND, got {word!r}")
        conditions.append(_condition(parts))
    return Query(tuple(conditions))