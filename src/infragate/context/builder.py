"""
Evaluation context builder for Infragate.

Normalizes the documents that external systems hand us into a uniform
EvaluationContext:

    - Kubernetes AdmissionReview (admission.k8s.io/v1)
    - Plain Kubernetes manifests (Deployment, Pod, ...)
    - Terraform planned resource changes (entries of ``resource_changes``
      in ``terraform show -json`` output)

Building is a pure function: the same document always yields an equal
context. Label, annotation and tag maps are copied without coercion; a
non-string value is malformed input, not something to stringify.
"""

from typing import Any, Iterator

from infragate.errors import (
    ERROR_INPUT_INVALID_MAP,
    ERROR_INPUT_MISSING_FIELD,
    MalformedInputError,
)
from infragate.schema import ContextOrigin, EvaluationContext

DEFAULT_ENVIRONMENT_TAG = "Environment"

# Terraform actions that do not produce a resource worth gating
_SKIPPED_ACTIONS = (["no-op"], ["read"], ["delete"])

_TAG_KEYS = ("tags_all", "tags")


def build_context(
    raw: Any,
    environment_tag: str = DEFAULT_ENVIRONMENT_TAG,
) -> EvaluationContext:
    """
    Build an EvaluationContext from a raw resource document.

    Args:
        raw: Parsed document (AdmissionReview, manifest or resource change)
        environment_tag: Tag whose value is used as the namespace of
            Terraform resources

    Returns:
        Normalized, immutable context

    Raises:
        MalformedInputError: If required structural fields are absent
    """
    if not isinstance(raw, dict):
        raise MalformedInputError(reason=f"resource must be a mapping, got {type(raw).__name__}")

    if raw.get("kind") == "AdmissionReview":
        return _from_admission_review(raw)
    if "change" in raw or "address" in raw:
        return _from_resource_change(raw, environment_tag)
    return _from_manifest(raw, ContextOrigin.MANIFEST)


def build_resource_change_context(
    change: Any,
    environment_tag: str = DEFAULT_ENVIRONMENT_TAG,
) -> EvaluationContext:
    """Build a context from an entry known to be a Terraform resource change."""
    if not isinstance(change, dict):
        raise MalformedInputError(
            reason=f"resource change must be a mapping, got {type(change).__name__}",
        )
    return _from_resource_change(change, environment_tag)


def iter_resource_changes(plan: Any) -> Iterator[Any]:
    """
    Yield the resource changes of a Terraform JSON plan that need gating.

    No-op, read and pure delete actions are skipped. Plan order is kept.
    Entries are yielded as-is (even when malformed) so that each one is
    reported individually.

    Raises:
        MalformedInputError: If the plan itself is not a mapping or its
            ``resource_changes`` is not a list
    """
    if not isinstance(plan, dict):
        raise MalformedInputError(reason=f"plan must be a mapping, got {type(plan).__name__}")

    changes = plan.get("resource_changes", [])
    if changes is None:
        return
    if not isinstance(changes, list):
        raise MalformedInputError(field_name="resource_changes", reason="must be a list")

    for change in changes:
        body = change.get("change") if isinstance(change, dict) else None
        actions = body.get("actions") if isinstance(body, dict) else None
        if isinstance(actions, list) and actions in _SKIPPED_ACTIONS:
            continue
        yield change


# =============================================================================
# Kubernetes
# =============================================================================


def _from_admission_review(review: dict[str, Any]) -> EvaluationContext:
    """Build a context from the object carried by an AdmissionReview."""
    request = review.get("request")
    if not isinstance(request, dict):
        raise MalformedInputError(field_name="request", code=ERROR_INPUT_MISSING_FIELD)

    obj = request.get("object")
    if obj is None:
        # DELETE requests only carry the old object
        obj = request.get("oldObject")
    if not isinstance(obj, dict):
        raise MalformedInputError(field_name="request.object", code=ERROR_INPUT_MISSING_FIELD)

    namespace = request.get("namespace")
    return _from_manifest(
        obj,
        ContextOrigin.KUBERNETES,
        default_namespace=namespace if isinstance(namespace, str) else "",
    )


def _from_manifest(
    manifest: dict[str, Any],
    origin: ContextOrigin,
    default_namespace: str = "",
) -> EvaluationContext:
    kind = manifest.get("kind")
    if not isinstance(kind, str) or not kind:
        raise MalformedInputError(field_name="kind", code=ERROR_INPUT_MISSING_FIELD)

    metadata = manifest.get("metadata")
    if not isinstance(metadata, dict):
        raise MalformedInputError(field_name="metadata", code=ERROR_INPUT_MISSING_FIELD)

    namespace = metadata.get("namespace") or default_namespace
    name = metadata.get("name") or metadata.get("generateName") or ""

    return EvaluationContext(
        kind=kind,
        namespace=_require_str(namespace, "metadata.namespace"),
        name=_require_str(name, "metadata.name"),
        origin=origin,
        labels=_string_map(metadata.get("labels"), "metadata.labels"),
        annotations=_string_map(metadata.get("annotations"), "metadata.annotations"),
        spec_fields={k: v for k, v in manifest.items() if k not in ("kind", "metadata")},
    )


# =============================================================================
# Terraform
# =============================================================================


def _from_resource_change(change: dict[str, Any], environment_tag: str) -> EvaluationContext:
    """
    Build a context from one Terraform resource change.

    Tags come from ``tags_all`` (provider default tags included) overlaid
    with ``tags``. The namespace is the value of the environment tag, or
    the Kubernetes namespace for kubernetes_* resources.
    """
    resource_type = change.get("type")
    if not isinstance(resource_type, str) or not resource_type:
        raise MalformedInputError(field_name="type", code=ERROR_INPUT_MISSING_FIELD)

    body = change.get("change")
    if not isinstance(body, dict):
        raise MalformedInputError(field_name="change", code=ERROR_INPUT_MISSING_FIELD)

    attributes = body.get("after")
    if attributes is None:
        attributes = body.get("before")
    if not isinstance(attributes, dict):
        raise MalformedInputError(field_name="change.after", code=ERROR_INPUT_MISSING_FIELD)

    tags: dict[str, str] = {}
    for key in _TAG_KEYS:
        tags.update(_string_map(attributes.get(key), f"change.after.{key}"))

    labels: dict[str, str] = {}
    annotations: dict[str, str] = {}
    namespace = tags.get(environment_tag, "")
    metadata = _terraform_metadata(attributes.get("metadata"))
    if metadata is not None:
        labels = _string_map(metadata.get("labels"), "change.after.metadata.labels")
        annotations = _string_map(metadata.get("annotations"), "change.after.metadata.annotations")
        if not namespace:
            namespace = _require_str(metadata.get("namespace") or "", "change.after.metadata.namespace")

    address = change.get("address") or resource_type

    return EvaluationContext(
        kind=resource_type,
        namespace=namespace,
        name=_require_str(address, "address"),
        origin=ContextOrigin.TERRAFORM,
        labels=labels,
        annotations=annotations,
        tags=tags,
        spec_fields={k: v for k, v in attributes.items() if k not in _TAG_KEYS},
    )


def _terraform_metadata(value: Any) -> dict[str, Any] | None:
    """The kubernetes provider encodes metadata as a single-item block list."""
    if isinstance(value, list) and len(value) == 1 and isinstance(value[0], dict):
        return value[0]
    if isinstance(value, dict):
        return value
    return None


# =============================================================================
# Helpers
# =============================================================================


def _require_str(value: Any, location: str) -> str:
    if not isinstance(value, str):
        raise MalformedInputError(
            field_name=location,
            reason=f"must be a string, got {type(value).__name__}",
            code=ERROR_INPUT_INVALID_MAP,
        )
    return value


def _string_map(value: Any, location: str) -> dict[str, str]:
    """Copy a str -> str map, rejecting anything else. None means empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedInputError(
            field_name=location,
            reason=f"must be a mapping, got {type(value).__name__}",
            code=ERROR_INPUT_INVALID_MAP,
        )
    result: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise MalformedInputError(
                field_name=f"{location}.{key}",
                reason=f"key must be a string, got {type(key).__name__}",
                code=ERROR_INPUT_INVALID_MAP,
            )
        if not isinstance(item, str):
            raise MalformedInputError(
                field_name=f"{location}.{key}",
                reason=f"must be a string, got {type(item).__name__}",
                code=ERROR_INPUT_INVALID_MAP,
            )
        result[key] = item
    return result
