"""
Pytest configuration and fixtures for Infragate tests.

This module provides shared fixtures used across unit and integration
tests: policy YAML snippets, loaded registries and sample resources.
"""

import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from infragate.registry import PolicyRegistry
from infragate.schema import EvaluationContext

PROJECT_ROOT = Path(__file__).resolve().parent.parent
BUNDLED_POLICIES = PROJECT_ROOT / "policies"
EXAMPLES_DIR = PROJECT_ROOT / "examples"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def approval_policy_yaml() -> str:
    """Hard-mandatory policy requiring an approver on production deployments."""
    return """
version: "1"
policies:
  - name: production-approval
    enforcement_level: hard-mandatory
    scope:
      kinds: [Deployment]
      namespaces: [production]
    checks:
      - type: required
        field: {source: annotations, key: approved-by}
        message: "production deployments require 'approved-by' annotation"
"""


@pytest.fixture
def mixed_policy_yaml() -> str:
    """One policy per enforcement level, all unscoped."""
    return """
version: "1"
policies:
  - name: team-label
    enforcement_level: hard-mandatory
    checks:
      - type: required
        field: {source: labels, key: team}
  - name: tier-values
    enforcement_level: soft-mandatory
    checks:
      - type: allowed_values
        field: {source: labels, key: tier}
        values: [experimental, staging, production]
  - name: owner-annotation
    enforcement_level: advisory
    checks:
      - type: required
        field: {source: annotations, key: owner}
"""


@pytest.fixture
def approval_registry(approval_policy_yaml: str) -> PolicyRegistry:
    """Registry with only the production-approval policy."""
    return PolicyRegistry.load_from_string(approval_policy_yaml)


@pytest.fixture
def mixed_registry(mixed_policy_yaml: str) -> PolicyRegistry:
    """Registry with one policy per enforcement level."""
    return PolicyRegistry.load_from_string(mixed_policy_yaml)


@pytest.fixture
def production_context() -> EvaluationContext:
    """Production deployment without the approved-by annotation."""
    return EvaluationContext(
        kind="Deployment",
        namespace="production",
        labels={"team": "ai-team"},
        annotations={},
    )


@pytest.fixture
def deployment_manifest() -> dict[str, Any]:
    """A Kubernetes Deployment manifest with one GPU container."""
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": "model-server",
            "namespace": "production",
            "labels": {"team": "ai-team"},
            "annotations": {"approved-by": "platform-lead"},
        },
        "spec": {
            "replicas": 2,
            "template": {
                "spec": {
                    "containers": [
                        {
                            "name": "server",
                            "resources": {"limits": {"nvidia.com/gpu": "1"}},
                        }
                    ]
                }
            },
        },
    }


@pytest.fixture
def notebook_change() -> dict[str, Any]:
    """A Terraform resource change creating a SageMaker notebook."""
    return {
        "address": "aws_sagemaker_notebook_instance.research",
        "mode": "managed",
        "type": "aws_sagemaker_notebook_instance",
        "name": "research",
        "change": {
            "actions": ["create"],
            "before": None,
            "after": {
                "name": "research-notebook",
                "instance_type": "ml.t3.medium",
                "kms_key_id": "arn:aws:kms:us-east-1:111122223333:key/abcd",
                "tags": {"Project": "fraud-detection", "Owner": "ai-team"},
                "tags_all": {
                    "Project": "fraud-detection",
                    "Owner": "ai-team",
                    "Environment": "production",
                },
            },
        },
    }


@pytest.fixture
def bundled_policies() -> Path:
    """Directory of policies shipped with the project."""
    return BUNDLED_POLICIES


@pytest.fixture
def examples_dir() -> Path:
    """Directory of example resources shipped with the project."""
    return EXAMPLES_DIR
