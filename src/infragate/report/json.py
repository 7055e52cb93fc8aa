"""
JSON report generator for Infragate.

Generates structured JSON output for pipelines that gate on a decision
(CI jobs running against a Terraform plan, audit collectors).

Design Principles:
    - Complete data: every violation with policy, severity, field and kind
    - Consistent schema: same structure for single resources and plans
    - Reproducible: no timestamps, so identical input gives identical output
"""

import json
from typing import Any, Sequence

from infragate.engine import ResourceVerdict
from infragate.schema import Decision, EvaluationContext, Violation

REPORT_VERSION = "1.0"


def build_decision_dict(
    decision: Decision,
    context: EvaluationContext | None = None,
) -> dict[str, Any]:
    """
    Build a report dictionary for a single decision.

    Args:
        decision: The decision to report
        context: The evaluated context, if one could be built

    Returns:
        Dictionary with verdict, violations and warnings
    """
    return {
        "resource": _serialize_context(context) if context else None,
        "allowed": decision.allowed,
        "summary": {
            "denied": len(decision.denied_by),
            "overridable": len(decision.overridable),
            "warnings": len(decision.warnings),
        },
        "violations": [_serialize_violation(v) for v in decision.violations],
        "warnings": [_serialize_violation(v) for v in decision.warnings],
    }


def build_plan_report_dict(verdicts: Sequence[ResourceVerdict]) -> dict[str, Any]:
    """Build a report dictionary covering every resource of a plan."""
    resources = []
    for verdict in verdicts:
        entry = build_decision_dict(verdict.decision, verdict.context)
        entry["address"] = verdict.address
        resources.append(entry)

    return {
        "report_version": REPORT_VERSION,
        "allowed": all(v.decision.allowed for v in verdicts),
        "statistics": {
            "total_resources": len(verdicts),
            "denied_resources": sum(1 for v in verdicts if not v.decision.allowed),
            "resources_with_overridable": sum(1 for v in verdicts if v.decision.overridable),
            "resources_with_warnings": sum(1 for v in verdicts if v.decision.warnings),
        },
        "resources": resources,
    }


def generate_json_report(
    decision: Decision,
    context: EvaluationContext | None = None,
    indent: int = 2,
) -> str:
    """Generate a JSON report for a single decision."""
    report = {"report_version": REPORT_VERSION, **build_decision_dict(decision, context)}
    return json.dumps(report, indent=indent)


def generate_plan_json_report(verdicts: Sequence[ResourceVerdict], indent: int = 2) -> str:
    """Generate a JSON report for a Terraform plan."""
    return json.dumps(build_plan_report_dict(verdicts), indent=indent)


def _serialize_context(context: EvaluationContext) -> dict[str, Any]:
    """Identity of the evaluated resource (maps omitted; they can be large)."""
    return {
        "kind": context.kind,
        "namespace": context.namespace,
        "name": context.name,
        "origin": context.origin.value,
    }


def _serialize_violation(violation: Violation) -> dict[str, Any]:
    return {
        "policy": violation.policy_name,
        "severity": violation.severity.value,
        "kind": violation.kind.value,
        "field": violation.field,
        "message": violation.message,
    }
