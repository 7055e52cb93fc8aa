"""
Decision aggregator for Infragate.

Runs every applicable policy predicate against an EvaluationContext and
reduces the resulting violations to a Decision.

Aggregation rules:
    - Any hard-mandatory violation => allowed=False
    - Soft-mandatory violations are recorded in ``violations`` but do not block
    - Advisory violations go to ``warnings`` and never affect ``allowed``
    - Each failing check is its own Violation, in check order

Policies that contradict each other are evaluated independently; the
engine applies no precedence between them.

Failure handling:
    - A predicate that raises is converted into a ``predicate_error``
      violation at the owning policy's level and logged on
      ``infragate.engine.faults``
    - An unparseable resource becomes one synthetic ``malformed-input``
      hard-mandatory violation
    The engine therefore always returns a Decision.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from infragate import APP_NAME
from infragate.context import (
    DEFAULT_ENVIRONMENT_TAG,
    build_context,
    build_resource_change_context,
    iter_resource_changes,
)
from infragate.errors import MalformedInputError, PredicateRuntimeError
from infragate.registry import Policy, PolicyRegistry
from infragate.schema import (
    MALFORMED_INPUT_POLICY,
    Decision,
    EnforcementLevel,
    EvaluationContext,
    Violation,
    ViolationKind,
)

logger = logging.getLogger(f"{APP_NAME}.engine")
fault_logger = logging.getLogger(f"{APP_NAME}.engine.faults")


def evaluate(context: EvaluationContext, policies: Iterable[Policy]) -> Decision:
    """
    Evaluate a context against policies and aggregate the result.

    Args:
        context: The normalized resource
        policies: Policies to run, in the order their violations are reported

    Returns:
        Decision with violations and warnings in evaluation order
    """
    violations: list[Violation] = []
    warnings: list[Violation] = []

    for policy in policies:
        for violation in _run_policy(policy, context):
            if violation.severity == EnforcementLevel.ADVISORY:
                warnings.append(violation)
            else:
                violations.append(violation)

    allowed = not any(v.severity == EnforcementLevel.HARD_MANDATORY for v in violations)
    decision = Decision(allowed=allowed, violations=violations, warnings=warnings)

    logger.info(
        "%s %s: %d violation(s), %d warning(s)",
        "ALLOW" if allowed else "DENY",
        context.describe(),
        len(violations),
        len(warnings),
    )
    return decision


def malformed_input_decision(error: MalformedInputError) -> Decision:
    """Decision for a resource that could not be normalized."""
    violation = Violation(
        policy_name=MALFORMED_INPUT_POLICY,
        message=error.message,
        severity=EnforcementLevel.HARD_MANDATORY,
        field=error.field_name or None,
        kind=ViolationKind.MALFORMED_INPUT,
    )
    logger.info("Rejected malformed resource: %s", error.message)
    return Decision(allowed=False, violations=[violation])


def _run_policy(policy: Policy, context: EvaluationContext) -> list[Violation]:
    """Run one predicate, converting unexpected faults into a violation."""
    try:
        failures = policy.predicate(context)
    except Exception as e:
        error = PredicateRuntimeError(
            policy_name=policy.name,
            underlying_error=f"{type(e).__name__}: {e}",
        )
        fault_logger.error(
            "Checker fault in policy '%s' on %s: %s",
            policy.name,
            context.describe(),
            error.underlying_error,
            exc_info=True,
        )
        return [
            Violation(
                policy_name=policy.name,
                message=error.message,
                severity=policy.enforcement_level,
                kind=ViolationKind.PREDICATE_ERROR,
            )
        ]

    violations = [
        Violation(
            policy_name=policy.name,
            message=failure.message,
            severity=policy.enforcement_level,
            field=failure.field,
        )
        for failure in failures
    ]
    for violation in violations:
        logger.debug(
            "Policy '%s' (%s) violated by %s: %s",
            policy.name,
            policy.enforcement_level.value,
            context.describe(),
            violation.message,
        )
    return violations


@dataclass(frozen=True)
class ResourceVerdict:
    """
    Decision for one resource of a larger document (e.g. a Terraform plan).

    Attributes:
        address: Terraform address or resource identifier
        context: The context evaluated, or None if the resource was malformed
        decision: The decision for this resource
    """

    address: str
    context: EvaluationContext | None
    decision: Decision


class PolicyEngine:
    """
    Facade tying a policy registry to the context builder and aggregator.

    The engine holds no per-request state and can be shared across threads.

    Usage:
        engine = PolicyEngine(PolicyRegistry.load(["policies/"]))
        decision = engine.check_resource(manifest)
        if not decision.allowed:
            print(decision.deny_reason())

    Attributes:
        registry: The loaded policies
        environment_tag: Tag used as the namespace of Terraform resources
    """

    def __init__(
        self,
        registry: PolicyRegistry,
        environment_tag: str = DEFAULT_ENVIRONMENT_TAG,
    ) -> None:
        self.registry = registry
        self.environment_tag = environment_tag

    def check(self, context: EvaluationContext) -> Decision:
        """Evaluate a context against the policies whose scope covers it."""
        return evaluate(context, self.registry.lookup(context.kind, context.namespace))

    def check_resource(self, raw: Any) -> Decision:
        """
        Build a context from a raw document and evaluate it.

        Malformed documents yield a denying Decision instead of raising.
        """
        try:
            context = build_context(raw, self.environment_tag)
        except MalformedInputError as e:
            return malformed_input_decision(e)
        return self.check(context)

    def check_plan(self, plan: Any) -> list[ResourceVerdict]:
        """
        Evaluate every gated resource change of a Terraform JSON plan.

        Returns:
            One verdict per resource change, in plan order
        """
        try:
            changes = list(iter_resource_changes(plan))
        except MalformedInputError as e:
            return [ResourceVerdict("<plan>", None, malformed_input_decision(e))]

        verdicts: list[ResourceVerdict] = []
        for index, change in enumerate(changes):
            address = _address_of(change, index)
            try:
                context = build_resource_change_context(change, self.environment_tag)
            except MalformedInputError as e:
                verdicts.append(ResourceVerdict(address, None, malformed_input_decision(e)))
                continue
            verdicts.append(ResourceVerdict(address, context, self.check(context)))
        return verdicts


def _address_of(change: Any, index: int) -> str:
    if isinstance(change, dict) and isinstance(change.get("address"), str):
        return change["address"]
    return f"resource_changes[{index}]"
