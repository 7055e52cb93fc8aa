"""
Reporting module for Infragate.

Formats decisions for the systems and people that consume them.

Output formats:
    - Console: Rich terminal output with verdict header and findings table
    - JSON: Structured output for CI pipelines and audit collectors
    - Admission: AdmissionReview responses for Kubernetes admission control

Example:
    from infragate.report import build_admission_response, print_decision

    print_decision(decision, context)
    response = build_admission_response(review, decision)
"""

from infragate.report.admission import build_admission_response
from infragate.report.console import print_decision, print_plan_report, print_policy_table
from infragate.report.json import (
    build_decision_dict,
    build_plan_report_dict,
    generate_json_report,
    generate_plan_json_report,
)

__all__ = [
    "build_admission_response",
    "build_decision_dict",
    "build_plan_report_dict",
    "generate_json_report",
    "generate_plan_json_report",
    "print_decision",
    "print_plan_report",
    "print_policy_table",
]
