"""
Evaluation context module for Infragate.

Turns Kubernetes admission reviews, Kubernetes manifests and Terraform
planned resource changes into a uniform EvaluationContext (kind,
namespace, labels, annotations, tags, spec_fields).
"""

from infragate.context.builder import (
    DEFAULT_ENVIRONMENT_TAG,
    build_context,
    build_resource_change_context,
    iter_resource_changes,
)

__all__ = [
    "DEFAULT_ENVIRONMENT_TAG",
    "build_context",
    "build_resource_change_context",
    "iter_resource_changes",
]
