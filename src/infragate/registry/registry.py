"""
Policy registry for Infragate.

The registry holds every loaded policy for the lifetime of the process.
It is built once from a set of policy sources and is read-only afterwards,
so it can be shared across concurrent evaluations without locking.

Design:
    - Load is all-or-nothing: any bad source raises ConfigError
    - Policy names are unique across all sources
    - Declaration order (source order, then file order) is preserved
    - Reloading means building a new registry and swapping the reference

Usage:
    from infragate.registry import PolicyRegistry

    registry = PolicyRegistry.load(["policies/"])
    for policy in registry.lookup("Deployment", "production"):
        ...
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

import yaml
from pydantic import ValidationError

from infragate import APP_NAME
from infragate.checks import Predicate, compile_predicate
from infragate.errors import (
    ERROR_CONFIG_SOURCE_NOT_FOUND,
    DuplicatePolicyError,
    PolicySchemaError,
    PolicySourceError,
    ReservedPolicyNameError,
)
from infragate.schema import (
    MALFORMED_INPUT_POLICY,
    EnforcementLevel,
    PolicyFile,
    PolicyScope,
    PolicySpec,
    load_policy_file,
    load_policy_file_from_string,
)

logger = logging.getLogger(f"{APP_NAME}.registry")

POLICY_FILE_SUFFIXES = (".yaml", ".yml")
RESERVED_NAMES = frozenset({MALFORMED_INPUT_POLICY})


@dataclass(frozen=True)
class Policy:
    """
    A loaded, immutable policy.

    Attributes:
        name: Unique policy name
        enforcement_level: Severity tier of the policy's violations
        predicate: Compiled checker chain (scope-guarded)
        scope: Kinds/namespaces the policy applies to
        description: Optional human-readable description
        source: Policy source the policy was loaded from
        spec: The declaration the predicate was compiled from
    """

    name: str
    enforcement_level: EnforcementLevel
    predicate: Predicate
    scope: PolicyScope
    description: str | None = None
    source: str = ""
    spec: PolicySpec | None = None

    @classmethod
    def from_spec(cls, spec: PolicySpec, source: str = "") -> "Policy":
        """Compile a policy declaration."""
        return cls(
            name=spec.name,
            enforcement_level=spec.enforcement_level,
            predicate=compile_predicate(spec.scope, spec.checks),
            scope=spec.scope,
            description=spec.description,
            source=source,
            spec=spec,
        )

    def applies_to(self, kind: str, namespace: str) -> bool:
        """Return True if the policy's scope covers this kind and namespace."""
        return self.scope.matches(kind, namespace)


class PolicyRegistry:
    """
    Read-only collection of policies in declaration order.

    Attributes:
        _policies: Policies in declaration order
        _by_name: Name index into _policies
    """

    def __init__(self, policies: Iterable[Policy] = ()) -> None:
        """
        Build a registry from already compiled policies.

        Raises:
            DuplicatePolicyError: If two policies share a name
            ReservedPolicyNameError: If a policy uses a reserved name
        """
        ordered: list[Policy] = []
        by_name: dict[str, Policy] = {}
        for policy in policies:
            if policy.name in RESERVED_NAMES:
                raise ReservedPolicyNameError(source=policy.source, policy_name=policy.name)
            existing = by_name.get(policy.name)
            if existing is not None:
                raise DuplicatePolicyError(
                    source=policy.source,
                    policy_name=policy.name,
                    first_source=existing.source,
                )
            by_name[policy.name] = policy
            ordered.append(policy)

        self._policies: tuple[Policy, ...] = tuple(ordered)
        self._by_name: dict[str, Policy] = by_name

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls, sources: Iterable[Path | str]) -> "PolicyRegistry":
        """
        Load policies from files and directories.

        Directories contribute their *.yaml / *.yml files sorted by name.

        Args:
            sources: Policy files or directories, in precedence order

        Returns:
            A populated registry

        Raises:
            ConfigError: If any source is missing, unreadable, invalid,
                or defines a duplicate policy name
        """
        policies: list[Policy] = []
        for path in _expand_sources(sources):
            policy_file = _read_source(path)
            policies.extend(Policy.from_spec(spec, str(path)) for spec in policy_file.policies)
            logger.debug("Loaded %d policies from %s", len(policy_file.policies), path)

        registry = cls(policies)
        logger.info("Policy registry loaded with %d policies", len(registry))
        return registry

    @classmethod
    def load_from_string(cls, content: str, source: str = "<string>") -> "PolicyRegistry":
        """Load policies from a YAML string."""
        try:
            policy_file = load_policy_file_from_string(content)
        except yaml.YAMLError as e:
            raise PolicySourceError(source=source, underlying_error=str(e)) from e
        except ValidationError as e:
            raise PolicySchemaError(source=source, validation_error=_summarize(e)) from e
        except ValueError as e:
            raise PolicySourceError(source=source, underlying_error=str(e)) from e
        return cls(Policy.from_spec(spec, source) for spec in policy_file.policies)

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(self, kind: str, namespace: str) -> tuple[Policy, ...]:
        """
        Return the policies applicable to a kind and namespace.

        Order is declaration order and is stable across calls.
        """
        return tuple(p for p in self._policies if p.applies_to(kind, namespace))

    def get(self, name: str) -> Policy | None:
        """Look up a policy by name."""
        return self._by_name.get(name)

    def names(self) -> list[str]:
        """Policy names in declaration order."""
        return [p.name for p in self._policies]

    @property
    def policies(self) -> tuple[Policy, ...]:
        """All policies in declaration order."""
        return self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self) -> Iterator[Policy]:
        return iter(self._policies)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __repr__(self) -> str:
        return f"<PolicyRegistry: [{', '.join(self.names())}]>"


# =============================================================================
# Source Helpers
# =============================================================================


def _expand_sources(sources: Iterable[Path | str]) -> list[Path]:
    """Resolve sources into an ordered list of policy files."""
    files: list[Path] = []
    for source in sources:
        path = Path(source)
        if path.is_dir():
            found = sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix in POLICY_FILE_SUFFIXES
            )
            if not found:
                logger.warning("Policy directory %s contains no policy files", path)
            files.extend(found)
        elif path.is_file():
            files.append(path)
        else:
            raise PolicySourceError(
                source=str(path),
                underlying_error="no such file or directory",
                code=ERROR_CONFIG_SOURCE_NOT_FOUND,
                suggestion="Check the --policy path or INFRAGATE_POLICY_PATH",
            )
    return files


def _read_source(path: Path) -> PolicyFile:
    """Parse one policy file, converting failures into ConfigError."""
    try:
        return load_policy_file(path)
    except OSError as e:
        raise PolicySourceError(source=str(path), underlying_error=str(e)) from e
    except yaml.YAMLError as e:
        raise PolicySourceError(source=str(path), underlying_error=str(e)) from e
    except ValidationError as e:
        raise PolicySchemaError(source=str(path), validation_error=_summarize(e)) from e
    except ValueError as e:
        # PyYAML scalar construction, e.g. an integer past the digit limit
        raise PolicySourceError(source=str(path), underlying_error=str(e)) from e


def _summarize(error: ValidationError) -> str:
    """One line per validation error, with its location."""
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"{location}: {item['msg']}")
    return "; ".join(lines)
