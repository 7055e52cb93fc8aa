"""
Unit tests for the evaluation context builder.

Tests cover:
- Kubernetes manifests and AdmissionReviews
- Terraform resource changes (tags, environment, kubernetes provider)
- Malformed input detection
- Terraform plan iteration
"""

import copy
from typing import Any

import pytest

from infragate.context import build_context, build_resource_change_context, iter_resource_changes
from infragate.errors import ERROR_INPUT_INVALID_MAP, ERROR_INPUT_MISSING_FIELD, MalformedInputError
from infragate.schema import ContextOrigin


def _review(obj: Any, namespace: str = "production") -> dict[str, Any]:
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
            "operation": "CREATE",
            "namespace": namespace,
            "object": obj,
        },
    }


# =============================================================================
# Kubernetes Tests
# =============================================================================


class TestManifest:
    """Tests for plain Kubernetes manifests."""

    def test_manifest_fields(self, deployment_manifest: dict[str, Any]) -> None:
        ctx = build_context(deployment_manifest)
        assert ctx.kind == "Deployment"
        assert ctx.namespace == "production"
        assert ctx.name == "model-server"
        assert ctx.origin == ContextOrigin.MANIFEST
        assert ctx.labels == {"team": "ai-team"}
        assert ctx.annotations == {"approved-by": "platform-lead"}
        assert ctx.tags == {}

    def test_spec_fields_keep_everything_else(self, deployment_manifest: dict[str, Any]) -> None:
        ctx = build_context(deployment_manifest)
        assert set(ctx.spec_fields) == {"apiVersion", "spec"}
        assert ctx.spec_fields["spec"]["replicas"] == 2

    def test_missing_labels_are_empty(self) -> None:
        ctx = build_context({"kind": "Pod", "metadata": {"name": "p"}})
        assert ctx.labels == {}
        assert ctx.annotations == {}
        assert ctx.namespace == ""

    def test_build_is_pure(self, deployment_manifest: dict[str, Any]) -> None:
        """Same document, equal context; the input is not mutated."""
        before = copy.deepcopy(deployment_manifest)
        assert build_context(deployment_manifest) == build_context(deployment_manifest)
        assert deployment_manifest == before

    def test_missing_kind(self) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            build_context({"metadata": {}})
        assert exc_info.value.field_name == "kind"
        assert exc_info.value.code == ERROR_INPUT_MISSING_FIELD

    def test_missing_metadata(self) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            build_context({"kind": "Deployment"})
        assert exc_info.value.field_name == "metadata"

    def test_non_string_label_rejected(self) -> None:
        """Labels are not coerced to strings."""
        with pytest.raises(MalformedInputError) as exc_info:
            build_context({"kind": "Pod", "metadata": {"labels": {"replicas": 3}}})
        assert exc_info.value.code == ERROR_INPUT_INVALID_MAP
        assert exc_info.value.field_name == "metadata.labels.replicas"
        assert exc_info.value.reason == "must be a string, got int"

    def test_non_string_label_key_rejected(self) -> None:
        """The error names the key's type, not the value's."""
        with pytest.raises(MalformedInputError) as exc_info:
            build_context({"kind": "Pod", "metadata": {"labels": {1: "one"}}})
        assert exc_info.value.code == ERROR_INPUT_INVALID_MAP
        assert exc_info.value.field_name == "metadata.labels.1"
        assert exc_info.value.reason == "key must be a string, got int"

    def test_labels_must_be_map(self) -> None:
        with pytest.raises(MalformedInputError):
            build_context({"kind": "Pod", "metadata": {"labels": ["team"]}})

    @pytest.mark.parametrize("raw", [None, "kind: Pod", ["a"], 42])
    def test_non_mapping_rejected(self, raw: Any) -> None:
        with pytest.raises(MalformedInputError):
            build_context(raw)


class TestAdmissionReview:
    """Tests for AdmissionReview requests."""

    def test_object_is_evaluated(self, deployment_manifest: dict[str, Any]) -> None:
        ctx = build_context(_review(deployment_manifest))
        assert ctx.kind == "Deployment"
        assert ctx.origin == ContextOrigin.KUBERNETES
        assert ctx.annotations == {"approved-by": "platform-lead"}

    def test_namespace_from_request(self, deployment_manifest: dict[str, Any]) -> None:
        """Objects created without metadata.namespace take the request namespace."""
        del deployment_manifest["metadata"]["namespace"]
        ctx = build_context(_review(deployment_manifest, namespace="staging"))
        assert ctx.namespace == "staging"

    def test_delete_uses_old_object(self, deployment_manifest: dict[str, Any]) -> None:
        review = _review(None)
        review["request"]["oldObject"] = deployment_manifest
        assert build_context(review).name == "model-server"

    def test_missing_request(self) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            build_context({"kind": "AdmissionReview"})
        assert exc_info.value.field_name == "request"

    def test_missing_object(self) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            build_context(_review(None))
        assert exc_info.value.field_name == "request.object"

    def test_object_without_metadata(self) -> None:
        with pytest.raises(MalformedInputError):
            build_context(_review({"kind": "Deployment"}))


# =============================================================================
# Terraform Tests
# =============================================================================


class TestResourceChange:
    """Tests for Terraform resource changes."""

    def test_resource_change_fields(self, notebook_change: dict[str, Any]) -> None:
        ctx = build_context(notebook_change)
        assert ctx.kind == "aws_sagemaker_notebook_instance"
        assert ctx.name == "aws_sagemaker_notebook_instance.research"
        assert ctx.origin == ContextOrigin.TERRAFORM
        assert ctx.namespace == "production"
        assert ctx.spec_fields["instance_type"] == "ml.t3.medium"

    def test_tags_merge_tags_all(self, notebook_change: dict[str, Any]) -> None:
        """Provider default tags from tags_all are included."""
        ctx = build_context(notebook_change)
        assert ctx.tags == {
            "Project": "fraud-detection",
            "Owner": "ai-team",
            "Environment": "production",
        }
        assert "tags" not in ctx.spec_fields
        assert "tags_all" not in ctx.spec_fields

    def test_tags_override_tags_all(self, notebook_change: dict[str, Any]) -> None:
        notebook_change["change"]["after"]["tags"]["Owner"] = "ml-platform"
        assert build_context(notebook_change).tags["Owner"] == "ml-platform"

    def test_custom_environment_tag(self, notebook_change: dict[str, Any]) -> None:
        notebook_change["change"]["after"]["tags"]["Stage"] = "dev"
        ctx = build_context(notebook_change, environment_tag="Stage")
        assert ctx.namespace == "dev"

    def test_no_environment_tag(self, notebook_change: dict[str, Any]) -> None:
        del notebook_change["change"]["after"]["tags_all"]
        assert build_context(notebook_change).namespace == ""

    def test_delete_uses_before(self, notebook_change: dict[str, Any]) -> None:
        body = notebook_change["change"]
        body["before"], body["after"] = body["after"], None
        assert build_context(notebook_change).tags["Owner"] == "ai-team"

    def test_kubernetes_provider_metadata(self) -> None:
        """kubernetes_* resources carry labels in a metadata block list."""
        change = {
            "address": "kubernetes_deployment.trainer",
            "type": "kubernetes_deployment",
            "change": {
                "actions": ["create"],
                "after": {
                    "metadata": [{
                        "name": "trainer",
                        "namespace": "ml-training",
                        "labels": {"team": "research"},
                        "annotations": {"approved-by": "lead"},
                    }],
                    "spec": [{"replicas": "1"}],
                },
            },
        }
        ctx = build_context(change)
        assert ctx.namespace == "ml-training"
        assert ctx.labels == {"team": "research"}
        assert ctx.annotations == {"approved-by": "lead"}

    def test_non_string_tag_rejected(self, notebook_change: dict[str, Any]) -> None:
        notebook_change["change"]["after"]["tags"]["Replicas"] = 2
        with pytest.raises(MalformedInputError) as exc_info:
            build_context(notebook_change)
        assert exc_info.value.field_name == "change.after.tags.Replicas"

    def test_missing_type(self, notebook_change: dict[str, Any]) -> None:
        del notebook_change["type"]
        with pytest.raises(MalformedInputError) as exc_info:
            build_context(notebook_change)
        assert exc_info.value.field_name == "type"

    def test_missing_after_and_before(self, notebook_change: dict[str, Any]) -> None:
        notebook_change["change"]["after"] = None
        with pytest.raises(MalformedInputError):
            build_context(notebook_change)

    def test_explicit_resource_change(self) -> None:
        """Entries of a plan are never treated as manifests."""
        with pytest.raises(MalformedInputError) as exc_info:
            build_resource_change_context({"kind": "Deployment", "metadata": {}})
        assert exc_info.value.field_name == "type"


class TestIterResourceChanges:
    """Tests for Terraform plan iteration."""

    def _change(self, address: str, actions: list[str]) -> dict[str, Any]:
        return {"address": address, "type": "aws_s3_bucket", "change": {"actions": actions, "after": {}}}

    def test_skips_noop_read_and_delete(self) -> None:
        plan = {
            "resource_changes": [
                self._change("a", ["create"]),
                self._change("b", ["no-op"]),
                self._change("c", ["read"]),
                self._change("d", ["delete"]),
                self._change("e", ["delete", "create"]),
                self._change("f", ["update"]),
            ]
        }
        addresses = [c["address"] for c in iter_resource_changes(plan)]
        assert addresses == ["a", "e", "f"]

    def test_empty_plan(self) -> None:
        assert list(iter_resource_changes({})) == []
        assert list(iter_resource_changes({"resource_changes": None})) == []

    def test_malformed_entries_are_yielded(self) -> None:
        """Bad entries are reported individually by the engine."""
        assert list(iter_resource_changes({"resource_changes": ["oops"]})) == ["oops"]

    def test_plan_must_be_mapping(self) -> None:
        with pytest.raises(MalformedInputError):
            list(iter_resource_changes(["resource_changes"]))

    def test_changes_must_be_list(self) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            list(iter_resource_changes({"resource_changes": {"a": 1}}))
        assert exc_info.value.field_name == "resource_changes"
