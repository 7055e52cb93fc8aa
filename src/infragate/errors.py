"""
Exception hierarchy for Infragate.

All Infragate exceptions inherit from InfragateError, allowing callers to
catch all Infragate-specific exceptions with a single except clause.

Exception Categories:
    - ConfigError: Policy source is malformed (fatal at load)
    - MalformedInputError: Subject resource cannot be normalized
    - PredicateRuntimeError: A checker failed unexpectedly

Propagation:
    Only ConfigError is fatal. The engine converts MalformedInputError and
    PredicateRuntimeError into violations so that evaluation always returns
    a Decision.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Configuration errors: 1xxx
ERROR_CONFIG_INVALID = 1001
ERROR_CONFIG_SOURCE_NOT_FOUND = 1002
ERROR_CONFIG_SOURCE_UNREADABLE = 1003
ERROR_CONFIG_SCHEMA = 1004
ERROR_CONFIG_DUPLICATE_POLICY = 1005
ERROR_CONFIG_RESERVED_NAME = 1006

# Input errors: 2xxx
ERROR_INPUT_MALFORMED = 2001
ERROR_INPUT_MISSING_FIELD = 2002
ERROR_INPUT_INVALID_MAP = 2003

# Predicate errors: 3xxx
ERROR_PREDICATE_RUNTIME = 3001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class InfragateError(Exception):
    """
    Base exception for all Infragate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(InfragateError):
    """
    Raised when a policy source cannot be loaded.

    A ConfigError is fatal: the registry refuses to load rather than run
    with a partial rule set.

    Attributes:
        source: Path (or "<string>") of the offending policy source
    """

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid policy source: {self.source}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["source"] = self.source


@dataclass
class PolicySourceError(ConfigError):
    """Raised when a policy source is missing, unreadable or not valid YAML."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot read policy source {self.source}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_SOURCE_UNREADABLE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class PolicySchemaError(ConfigError):
    """Raised when a policy source does not match the policy file schema."""

    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid policy definition in {self.source}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_SCHEMA
        if not self.suggestion:
            self.suggestion = "Check enforcement_level, scope and checks against the policy file format"
        super().__post_init__()
        self.context["validation_error"] = self.validation_error


@dataclass
class DuplicatePolicyError(ConfigError):
    """Raised when two policies share a name."""

    policy_name: str = ""
    first_source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Duplicate policy name '{self.policy_name}' in {self.source} "
                f"(first defined in {self.first_source})"
            )
        if self.code == 0:
            self.code = ERROR_CONFIG_DUPLICATE_POLICY
        if not self.suggestion:
            self.suggestion = "Policy names must be unique across all policy sources"
        super().__post_init__()
        self.context.update({
            "policy_name": self.policy_name,
            "first_source": self.first_source,
        })


@dataclass
class ReservedPolicyNameError(ConfigError):
    """Raised when a policy uses a name reserved for synthetic violations."""

    policy_name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Policy name '{self.policy_name}' is reserved"
        if self.code == 0:
            self.code = ERROR_CONFIG_RESERVED_NAME
        super().__post_init__()
        self.context["policy_name"] = self.policy_name


# =============================================================================
# Input Errors
# =============================================================================


@dataclass
class MalformedInputError(InfragateError):
    """
    Raised when a raw resource cannot be normalized into a context.

    Attributes:
        field_name: The structural field that is absent or invalid
        reason: Why the field is unusable
    """

    field_name: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            if self.field_name:
                self.message = f"Malformed resource: '{self.field_name}' {self.reason or 'is missing'}"
            else:
                self.message = f"Malformed resource: {self.reason}"
        if self.code == 0:
            self.code = ERROR_INPUT_MALFORMED
        self.context.update({
            "field_name": self.field_name,
            "reason": self.reason,
        })


# =============================================================================
# Predicate Errors
# =============================================================================


@dataclass
class PredicateRuntimeError(InfragateError):
    """
    Raised when a policy predicate fails unexpectedly.

    This signals a fault in the checker itself, not a non-compliant
    resource. The aggregator converts it into a violation.

    Attributes:
        policy_name: Name of the policy whose predicate failed
        underlying_error: Description of the original exception
    """

    policy_name: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Policy '{self.policy_name}' failed to evaluate: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_PREDICATE_RUNTIME
        self.context.update({
            "policy_name": self.policy_name,
            "underlying_error": self.underlying_error,
        })
