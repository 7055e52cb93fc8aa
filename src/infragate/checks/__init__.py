"""
Checkers module for Infragate.

Policy logic is a fixed set of composable checker functions parameterized
by data loaded from policy files. There are no rule-specific code paths:
a policy's predicate is the concatenation of its checks, guarded by its
scope.

Key concepts:
    - FieldRef/FieldMatch: Typed lookup with explicit missing-key semantics
    - CheckFailure: One failing field, with a message naming it
    - Predicate: context -> list of failures (empty list = pass)
"""

from functools import partial
from typing import Callable, Sequence

from infragate.checks.checkers import CHECKERS, CheckFailure
from infragate.checks.fields import MISSING, FieldMatch, resolve
from infragate.schema import CheckSpec, CheckType, EvaluationContext, PolicyScope

Predicate = Callable[[EvaluationContext], list[CheckFailure]]


def compile_predicate(scope: PolicyScope, checks: Sequence[CheckSpec]) -> Predicate:
    """
    Build a predicate from a scope and an ordered list of checks.

    Contexts outside the scope pass vacuously. Failures are returned in
    check order, and within a check in field order.
    """
    bound = tuple(partial(CHECKERS[CheckType(check.type)], check=check) for check in checks)

    def predicate(context: EvaluationContext) -> list[CheckFailure]:
        if not scope.matches(context.kind, context.namespace):
            return []
        failures: list[CheckFailure] = []
        for checker in bound:
            failures.extend(checker(context))
        return failures

    return predicate


__all__ = [
    "CHECKERS",
    "CheckFailure",
    "FieldMatch",
    "MISSING",
    "Predicate",
    "compile_predicate",
    "resolve",
]
