"""
Schema definitions for Infragate.

This module defines the Pydantic models used throughout Infragate:
- PolicySpec/PolicyFile: Policy declarations as loaded from YAML
- Check models: Parameters for the fixed set of checkers
- EvaluationContext: Normalized view of the resource being evaluated
- Violation/Decision: The result of evaluation

Design Decisions:
    - Policy parameters are data; checker logic lives in infragate.checks
    - Unknown keys in policy files are rejected (extra="forbid")
    - Runtime models are immutable (frozen=True)
    - No implicit str coercion of label/annotation/tag values
"""

from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path
from string import Formatter
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Name used by the synthetic violation emitted for unparseable resources
MALFORMED_INPUT_POLICY = "malformed-input"

# Replacement fields a policy message may use
MESSAGE_PLACEHOLDERS = frozenset({"field", "value", "limit", "allowed"})


# =============================================================================
# Enums
# =============================================================================


class EnforcementLevel(str, Enum):
    """
    Severity tier of a policy.

    HARD_MANDATORY violations block the operation, SOFT_MANDATORY
    violations are recorded for an override workflow, ADVISORY
    violations are surfaced as warnings only.
    """

    ADVISORY = "advisory"
    SOFT_MANDATORY = "soft-mandatory"
    HARD_MANDATORY = "hard-mandatory"


class ViolationKind(str, Enum):
    """What produced a violation."""

    POLICY = "policy"
    MALFORMED_INPUT = "malformed_input"
    PREDICATE_ERROR = "predicate_error"


class FieldSource(str, Enum):
    """Which attribute map of the context a field reference reads from."""

    LABELS = "labels"
    ANNOTATIONS = "annotations"
    TAGS = "tags"
    SPEC = "spec"


class ContextOrigin(str, Enum):
    """The kind of document a context was built from."""

    TERRAFORM = "terraform"
    KUBERNETES = "kubernetes"
    MANIFEST = "manifest"


class CheckType(str, Enum):
    """The fixed set of checkers a policy can use."""

    REQUIRED = "required"
    ALLOWED_VALUES = "allowed_values"
    FORBIDDEN = "forbidden"
    CONDITIONAL_REQUIRED = "conditional_required"
    NUMERIC_THRESHOLD = "numeric_threshold"


# =============================================================================
# Check Models
# =============================================================================


class FieldRef(BaseModel):
    """
    Reference to a single attribute of an EvaluationContext.

    Labels, annotations and tags are flat maps: ``key`` is used verbatim
    (keys such as ``app.kubernetes.io/name`` keep their dots). For the
    ``spec`` source, ``key`` is a dotted path; use ``path`` instead when a
    segment itself contains dots (e.g. ``nvidia.com/gpu``). A ``*`` segment
    matches every list item or map value at that level.

    Attributes:
        source: Attribute map to read from
        key: Flat key, or dotted path for the spec source
        path: Explicit path segments (spec source only)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: FieldSource = Field(..., description="Attribute map to read from")
    key: str | None = Field(default=None, min_length=1, description="Key or dotted spec path")
    path: list[str] | None = Field(default=None, min_length=1, description="Explicit spec path segments")

    @model_validator(mode="after")
    def validate_key_or_path(self) -> "FieldRef":
        """Exactly one of key/path must be set; path is only valid for spec."""
        if (self.key is None) == (self.path is None):
            msg = "Field reference needs exactly one of 'key' or 'path'"
            raise ValueError(msg)
        if self.path is not None and self.source != FieldSource.SPEC:
            msg = f"'path' is only supported for source 'spec', not '{self.source.value}'"
            raise ValueError(msg)
        return self

    def segments(self) -> tuple[str, ...]:
        """Return the lookup path as segments."""
        if self.path is not None:
            return tuple(self.path)
        if self.key is None:
            return ()
        if self.source == FieldSource.SPEC:
            return tuple(self.key.split("."))
        return (self.key,)

    def __str__(self) -> str:
        return f"{self.source.value}.{'.'.join(self.segments())}"


class CheckBase(BaseModel):
    """
    Fields shared by every check.

    ``message`` replaces the generated violation message. It may use the
    ``{field}``, ``{value}``, ``{limit}`` and ``{allowed}`` placeholders;
    any other replacement field is rejected when the policy is loaded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    message: str | None = None

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str | None) -> str | None:
        """Only bare, known placeholder names are allowed."""
        if v is None:
            return v
        try:
            parsed = list(Formatter().parse(v))
        except ValueError as e:
            msg = f"Invalid message template: {e}"
            raise ValueError(msg) from e
        for _, name, format_spec, conversion in parsed:
            if name is None:
                continue
            if name not in MESSAGE_PLACEHOLDERS:
                known = ", ".join("{" + p + "}" for p in sorted(MESSAGE_PLACEHOLDERS))
                msg = f"Unsupported placeholder '{{{name}}}' in message; use {known}"
                raise ValueError(msg)
            if conversion not in (None, "r", "s", "a"):
                msg = f"Unknown conversion '!{conversion}' for '{{{name}}}' in message"
                raise ValueError(msg)
            if format_spec and "{" in format_spec:
                msg = f"Nested placeholder in '{{{name}:{format_spec}}}' is not supported"
                raise ValueError(msg)
        return v


class RequiredCheck(CheckBase):
    """Fails if the field is absent or an empty string."""

    type: Literal["required"] = "required"
    field: FieldRef


class AllowedValuesCheck(CheckBase):
    """Fails if the field is present and its value is outside ``values``."""

    type: Literal["allowed_values"] = "allowed_values"
    field: FieldRef
    values: list[str] = Field(..., min_length=1)


class ForbiddenCheck(CheckBase):
    """
    Fails if the field is present.

    When ``values`` is non-empty, only those values are forbidden.
    """

    type: Literal["forbidden"] = "forbidden"
    field: FieldRef
    values: list[str] = Field(default_factory=list)


class ConditionalTrigger(BaseModel):
    """The condition half of a conditional requirement."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: FieldRef
    values: list[str] = Field(..., min_length=1)


class ConditionalRequiredCheck(CheckBase):
    """Fails if ``when.field`` is in ``when.values`` and ``require`` is absent."""

    type: Literal["conditional_required"] = "conditional_required"
    when: ConditionalTrigger
    require: FieldRef


class NumericThresholdCheck(CheckBase):
    """
    Fails if the field is not numeric or falls outside [min, max].

    An absent field passes; pair with a ``required`` check to demand it.
    """

    type: Literal["numeric_threshold"] = "numeric_threshold"
    field: FieldRef
    max: float | None = None
    min: float | None = None

    @model_validator(mode="after")
    def validate_bounds(self) -> "NumericThresholdCheck":
        """At least one bound is required and min must not exceed max."""
        if self.max is None and self.min is None:
            msg = "numeric_threshold needs 'max' and/or 'min'"
            raise ValueError(msg)
        if self.max is not None and self.min is not None and self.min > self.max:
            msg = f"numeric_threshold min ({self.min}) exceeds max ({self.max})"
            raise ValueError(msg)
        return self


CheckSpec = Annotated[
    Union[
        RequiredCheck,
        AllowedValuesCheck,
        ForbiddenCheck,
        ConditionalRequiredCheck,
        NumericThresholdCheck,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Policy Models
# =============================================================================


class PolicyScope(BaseModel):
    """
    Which resources a policy applies to.

    Patterns are case-sensitive fnmatch globs. An empty list matches
    every kind (or namespace).

    Attributes:
        kinds: Resource kinds or Terraform resource types
        namespaces: Kubernetes namespaces or deployment environments
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kinds: list[str] = Field(default_factory=list)
    namespaces: list[str] = Field(default_factory=list)

    def matches(self, kind: str, namespace: str) -> bool:
        """Return True if the scope covers this kind and namespace."""
        if self.kinds and not any(fnmatchcase(kind, p) for p in self.kinds):
            return False
        if self.namespaces and not any(fnmatchcase(namespace, p) for p in self.namespaces):
            return False
        return True


class PolicySpec(BaseModel):
    """
    A single policy as declared in a policy file.

    Attributes:
        name: Unique policy name
        enforcement_level: Severity tier
        description: Optional human-readable description
        scope: Kinds/namespaces the policy applies to
        checks: Ordered list of checks; each may produce violations
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")
    enforcement_level: EnforcementLevel
    description: str | None = None
    scope: PolicyScope = Field(default_factory=PolicyScope)
    checks: list[CheckSpec] = Field(..., min_length=1)


class PolicyFile(BaseModel):
    """
    Top-level structure of a policy YAML file.

    Attributes:
        version: Policy file format version
        policies: Policies in declaration order
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = "1"
    policies: list[PolicySpec]

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Accept unquoted numeric versions (version: 1)."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


# =============================================================================
# Runtime Models
# =============================================================================


class EvaluationContext(BaseModel):
    """
    Normalized view of the resource being evaluated.

    Built fresh per evaluation and never mutated afterwards.

    Attributes:
        kind: Kubernetes kind or Terraform resource type
        namespace: Kubernetes namespace or deployment environment
        name: Resource name or Terraform address
        origin: The kind of document the context came from
        labels: Kubernetes labels
        annotations: Kubernetes annotations
        tags: Cloud resource tags
        spec_fields: Every other field, preserved for structural checks
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str = Field(..., min_length=1)
    namespace: str = ""
    name: str = ""
    origin: ContextOrigin = ContextOrigin.MANIFEST
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)
    spec_fields: dict[str, Any] = Field(default_factory=dict)

    def attributes(self, source: FieldSource) -> dict[str, Any]:
        """Return the attribute map for a field source."""
        if source == FieldSource.LABELS:
            return self.labels
        if source == FieldSource.ANNOTATIONS:
            return self.annotations
        if source == FieldSource.TAGS:
            return self.tags
        return self.spec_fields

    def describe(self) -> str:
        """Short identifier for messages and logs."""
        parts = [self.kind]
        if self.namespace:
            parts.append(self.namespace)
        if self.name:
            parts.append(self.name)
        return "/".join(parts)


class Violation(BaseModel):
    """
    A single failed check.

    Attributes:
        policy_name: Policy that produced the violation
        message: Human-readable message naming the offending field
        severity: Enforcement level of the owning policy
        field: Offending field reference, if any
        kind: Whether this is a policy violation, malformed input or checker fault
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    policy_name: str
    message: str
    severity: EnforcementLevel
    field: str | None = None
    kind: ViolationKind = ViolationKind.POLICY

    def render(self) -> str:
        """Message prefixed with the policy name."""
        return f"[{self.policy_name}] {self.message}"


class Decision(BaseModel):
    """
    Aggregate result of evaluating a context.

    Attributes:
        allowed: False iff a hard-mandatory violation exists
        violations: Hard- and soft-mandatory violations in evaluation order
        warnings: Advisory violations in evaluation order
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    violations: list[Violation] = Field(default_factory=list)
    warnings: list[Violation] = Field(default_factory=list)

    @property
    def denied_by(self) -> list[Violation]:
        """Violations that block the operation."""
        return [v for v in self.violations if v.severity == EnforcementLevel.HARD_MANDATORY]

    @property
    def overridable(self) -> list[Violation]:
        """Soft-mandatory violations awaiting an override or waiver."""
        return [v for v in self.violations if v.severity == EnforcementLevel.SOFT_MANDATORY]

    def deny_reason(self) -> str:
        """Reason string for a denial, used verbatim in admission responses."""
        return "; ".join(v.render() for v in self.denied_by)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_policy_file(path: Path | str) -> PolicyFile:
    """
    Load a policy file from YAML.

    The file is read as bytes so that PyYAML detects the encoding and
    reports undecodable content as a YAML error.

    Args:
        path: Path to the YAML file

    Returns:
        Validated PolicyFile object

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is not valid YAML or not decodable
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open("rb") as f:
        data = yaml.safe_load(f)

    return PolicyFile.model_validate(data)


def load_policy_file_from_string(content: str) -> PolicyFile:
    """Load a policy file from a YAML string."""
    data = yaml.safe_load(content)
    return PolicyFile.model_validate(data)


def load_document(path: Path | str) -> Any:
    """
    Load a resource document (YAML or JSON) from a file.

    JSON is parsed by the YAML loader, so Terraform plans
    (``terraform show -json``) and admission reviews load the same way
    as Kubernetes manifests. Undecodable bytes raise ``yaml.YAMLError``.
    """
    path = Path(path)
    with path.open("rb") as f:
        return yaml.safe_load(f)


def load_document_from_string(content: str | bytes) -> Any:
    """Load a resource document from a YAML or JSON string or raw bytes."""
    return yaml.safe_load(content)
