"""Condition expressions for `when` blocks and option gates.

    when gold                   gold >= 1
    when !key                   key is unset (0)
    when turn >= 3              threshold
    when gold >= 5 & gold < 10  every clause must hold
    if ride a bike & ?!tired    option gate, same grammar

Operators: >=, <, >, <=, ==, !=. Legacy `[key]` / `[!key]` brackets are
accepted around a clause.

The variable provider only answers `has(name, threshold)`, so every
comparison is rewritten as one or two threshold checks.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Callable
from typing import NamedTuple

logger = logging.getLogger(__name__)

HasVariable = Callable[..., bool]  # has(name, threshold=1) -> bool

NAME_PATTERN = r"[A-Za-z_][\w-]*"

_CLAUSE_RE = re.compile(
    rf"^(?P<neg>!)?\s*(?P<name>{NAME_PATTERN})"
    r"(?:\s*(?P<op>>=|<=|==|!=|>|<)\s*(?P<value>\d+))?$"
)


class Clause(NamedTuple):
    name: str
    op: str
    value: int


@functools.lru_cache(maxsize=1024)
def parse_condition(expr: str) -> tuple[Clause, ...] | None:
    """Parse an expression into clauses, or None if it is malformed."""
    clauses: list[Clause] = []
    for raw in expr.split("&"):
        part = raw.strip()
        if part.startswith("[") and part.endswith("]"):
            part = part[1:-1].strip()
        m = _CLAUSE_RE.match(part)
        if not m:
            return None
        name = m.group("name")
        op = m.group("op")
        if m.group("neg"):
            if op is not None:
                return None  # "!gold >= 3" is ambiguous
            clauses.append(Clause(name, "<", 1))
        elif op is None:
            clauses.append(Clause(name, ">=", 1))
        else:
            clauses.append(Clause(name, op, int(m.group("value"))))
    return tuple(clauses) if clauses else None


def _has(has: HasVariable, name: str, threshold: int) -> bool:
    if threshold <= 0:
        return True
    if threshold == 1:
        return bool(has(name))
    return bool(has(name, threshold))


def _check_clause(clause: Clause, has: HasVariable) -> bool:
    name, op, n = clause
    if op == ">=":
        return _has(has, name, n)
    if op == "<":
        return not _has(has, name, n)
    if op == ">":
        return _has(has, name, n + 1)
    if op == "<=":
        return not _has(has, name, n + 1)
    equal = _has(has, name, n) and not _has(has, name, n + 1)
    return equal if op == "==" else not equal


def check_condition(expr: str, has: HasVariable) -> bool:
    """Evaluate `expr` against the current variable state.

    Malformed expressions never hold.
    """
    clauses = parse_condition(expr.strip())
    if clauses is None:
        logger.debug("malformed condition %r treated as false", expr)
        return False
    return all(_check_clause(c, has) for c in clauses)
