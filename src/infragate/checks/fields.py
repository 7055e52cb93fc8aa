"""
Field lookup with explicit missing-key semantics.

Checkers never index into context maps directly. They resolve a FieldRef
into one or more FieldMatch values, each either holding a value or
MISSING. A ``*`` segment in a spec path fans out over every list item or
map value, producing one match per element in document order.
"""

import math
from dataclasses import dataclass
from typing import Any

from infragate.schema import EvaluationContext, FieldRef, FieldSource

WILDCARD = "*"


class _Missing:
    """Sentinel for an absent field."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

_NOUNS = {
    FieldSource.LABELS: "label",
    FieldSource.ANNOTATIONS: "annotation",
    FieldSource.TAGS: "tag",
    FieldSource.SPEC: "field",
}


@dataclass(frozen=True)
class FieldMatch:
    """
    One resolved field.

    Attributes:
        source: Attribute map the value came from
        label: Concrete key or path (wildcards replaced by index/key)
        value: The value, or MISSING
    """

    source: FieldSource
    label: str
    value: Any

    @property
    def missing(self) -> bool:
        """True if the field is absent or null."""
        return self.value is MISSING or self.value is None

    @property
    def empty(self) -> bool:
        """True if the field is absent, null or an empty string."""
        return self.missing or self.value == ""

    @property
    def noun(self) -> str:
        return _NOUNS[self.source]

    @property
    def reference(self) -> str:
        """Fully qualified reference, e.g. ``annotations.approved-by``."""
        return f"{self.source.value}.{self.label}"


def resolve(context: EvaluationContext, ref: FieldRef) -> list[FieldMatch]:
    """
    Resolve a field reference against a context.

    Flat sources (labels, annotations, tags) always yield exactly one
    match. Spec paths yield one match per wildcard expansion, and no
    matches when a wildcard expands over an empty collection.
    """
    attributes = context.attributes(ref.source)
    segments = ref.segments()

    if ref.source != FieldSource.SPEC:
        key = segments[0]
        return [FieldMatch(ref.source, key, attributes.get(key, MISSING))]

    matches: list[FieldMatch] = []
    _walk(attributes, segments, [], ref.source, matches)
    return matches


def _walk(
    node: Any,
    segments: tuple[str, ...],
    trail: list[str],
    source: FieldSource,
    out: list[FieldMatch],
) -> None:
    if not segments:
        out.append(FieldMatch(source, ".".join(trail), node))
        return

    head, rest = segments[0], segments[1:]

    if node is MISSING:
        out.append(FieldMatch(source, ".".join(trail + list(segments)), MISSING))
        return

    if head == WILDCARD:
        if isinstance(node, dict):
            for key, child in node.items():
                _walk(child, rest, trail + [str(key)], source, out)
        elif isinstance(node, list):
            for index, child in enumerate(node):
                _walk(child, rest, trail + [str(index)], source, out)
        else:
            out.append(FieldMatch(source, ".".join(trail + list(segments)), MISSING))
        return

    if isinstance(node, dict):
        child = node.get(head, MISSING)
    elif isinstance(node, list) and head.isdigit() and int(head) < len(node):
        child = node[int(head)]
    else:
        child = MISSING
    _walk(child, rest, trail + [head], source, out)


def as_text(value: Any) -> str | None:
    """
    Canonical text of a scalar for membership comparison.

    Returns None for values that have no scalar text form (maps, lists).
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return None


def parse_number(value: Any) -> float | None:
    """
    Parse a numeric field.

    Accepts ints, floats and decimal strings. Booleans, NaN, infinities,
    ints too large for a float and anything else return None so callers
    can fail closed.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_number(value: float) -> str:
    """Render 2.0 as "2" and 2.5 as "2.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
