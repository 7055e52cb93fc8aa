"""
Checker functions for policy predicates.

Each checker is a pure function of (context, check parameters) that yields
a CheckFailure for every failing field. Checkers never raise for bad
input: a value that cannot be interpreted is itself a failure
(fail-closed).

Checkers:
    - check_required: field present and non-empty
    - check_allowed_values: present value is in an allowed set
    - check_forbidden: field (or specific values) must not be present
    - check_conditional_required: field B required when field A is in a trigger set
    - check_numeric_threshold: numeric value within [min, max]
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterator

from infragate.checks.fields import FieldMatch, as_text, format_number, parse_number, resolve
from infragate.schema import (
    AllowedValuesCheck,
    CheckType,
    ConditionalRequiredCheck,
    EvaluationContext,
    ForbiddenCheck,
    NumericThresholdCheck,
    RequiredCheck,
)


@dataclass(frozen=True)
class CheckFailure:
    """
    A single failing field.

    Attributes:
        message: Human-readable message naming the field
        field: Fully qualified field reference
    """

    message: str
    field: str


class _KeepPlaceholders(dict):
    """format_map mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _render(template: str | None, default: str, **values: Any) -> str:
    """Render a policy-supplied message, falling back to the default."""
    if not template:
        return default
    try:
        return template.format_map(_KeepPlaceholders(values))
    except ValueError:
        # Format spec the value cannot take (e.g. {value:d} on text): show it as written
        return template


def _show(value: Any) -> str:
    text = as_text(value)
    return text if text is not None else repr(value)


# =============================================================================
# Checkers
# =============================================================================


def check_required(context: EvaluationContext, check: RequiredCheck) -> Iterator[CheckFailure]:
    """Fail if the field is absent or an empty string."""
    for match in resolve(context, check.field):
        if match.empty:
            default = f"missing required {match.noun} '{match.label}'"
            yield CheckFailure(
                _render(check.message, default, field=match.label),
                match.reference,
            )


def check_allowed_values(
    context: EvaluationContext,
    check: AllowedValuesCheck,
) -> Iterator[CheckFailure]:
    """Fail if the field is present and its value is not in the allowed set."""
    allowed = ", ".join(check.values)
    for match in resolve(context, check.field):
        if match.missing:
            continue
        text = as_text(match.value)
        if text is not None and text in check.values:
            continue
        default = (
            f"{match.noun} '{match.label}' has value '{_show(match.value)}', "
            f"expected one of: {allowed}"
        )
        yield CheckFailure(
            _render(check.message, default, field=match.label, value=_show(match.value), allowed=allowed),
            match.reference,
        )


def check_forbidden(context: EvaluationContext, check: ForbiddenCheck) -> Iterator[CheckFailure]:
    """Fail if the field is present (or holds one of the forbidden values)."""
    for match in resolve(context, check.field):
        if match.missing:
            continue
        if check.values:
            text = as_text(match.value)
            if text is None or text not in check.values:
                continue
            default = f"{match.noun} '{match.label}' must not be '{text}'"
        else:
            default = f"{match.noun} '{match.label}' is not allowed"
        yield CheckFailure(
            _render(check.message, default, field=match.label, value=_show(match.value)),
            match.reference,
        )


def check_conditional_required(
    context: EvaluationContext,
    check: ConditionalRequiredCheck,
) -> Iterator[CheckFailure]:
    """Fail if the trigger field holds a trigger value and the required field is absent."""
    triggered: FieldMatch | None = None
    for match in resolve(context, check.when.field):
        if not match.missing and as_text(match.value) in check.when.values:
            triggered = match
            break
    if triggered is None:
        return

    trigger_value = _show(triggered.value)
    for match in resolve(context, check.require):
        if match.empty:
            default = (
                f"missing required {match.noun} '{match.label}' "
                f"({triggered.noun} '{triggered.label}' is '{trigger_value}')"
            )
            yield CheckFailure(
                _render(check.message, default, field=match.label, value=trigger_value),
                match.reference,
            )


def check_numeric_threshold(
    context: EvaluationContext,
    check: NumericThresholdCheck,
) -> Iterator[CheckFailure]:
    """Fail if the field is non-numeric or outside the configured bounds."""
    for match in resolve(context, check.field):
        if match.missing:
            continue

        shown = _show(match.value)
        number = parse_number(match.value)
        if number is None:
            default = f"{match.noun} '{match.label}' must be numeric, got '{shown}'"
            yield CheckFailure(
                _render(check.message, default, field=match.label, value=shown, limit=""),
                match.reference,
            )
            continue

        if check.max is not None and number > check.max:
            limit = format_number(check.max)
            default = f"{match.noun} '{match.label}' is {shown}, exceeds maximum {limit}"
        elif check.min is not None and number < check.min:
            limit = format_number(check.min)
            default = f"{match.noun} '{match.label}' is {shown}, below minimum {limit}"
        else:
            continue

        yield CheckFailure(
            _render(check.message, default, field=match.label, value=shown, limit=limit),
            match.reference,
        )


Checker = Callable[[EvaluationContext, Any], Iterator[CheckFailure]]

CHECKERS: dict[CheckType, Checker] = {
    CheckType.REQUIRED: check_required,
    CheckType.ALLOWED_VALUES: check_allowed_values,
    CheckType.FORBIDDEN: check_forbidden,
    CheckType.CONDITIONAL_REQUIRED: check_conditional_required,
    CheckType.NUMERIC_THRESHOLD: check_numeric_threshold,
}
