"""
Infragate - Policy decision engine for AI/ML infrastructure governance.

Infragate evaluates Terraform planned resource changes and Kubernetes
admission requests against a set of named policies and returns an
allow/deny verdict with human-readable messages.
It provides:
- Enforcement levels (advisory, soft-mandatory, hard-mandatory)
- Declarative policy files (YAML) with a fixed set of checkers
- Fail-closed evaluation: malformed input is a violation, never a pass
- Admission review responses for cluster admission controllers

Example usage:
    $ infragate plan tfplan.json --policy policies/
    $ infragate admit review.json --policy policies/
    $ infragate check deployment.yaml --policy policies/
"""

__version__ = "0.1.0"
__author__ = "Infragate Contributors"

APP_NAME = "infragate"

__all__ = [
    "APP_NAME",
    "__version__",
    "__author__",
]
