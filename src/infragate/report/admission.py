"""
Admission review responses.

Turns a Decision into the AdmissionReview response a Kubernetes API
server expects from a validating webhook. The deny reason is placed in
``status.message`` verbatim; soft-mandatory and advisory findings are
returned as ``warnings`` so kubectl shows them to the user.
"""

from typing import Any

from infragate.schema import Decision

ADMISSION_API_VERSION = "admission.k8s.io/v1"
DENIED_STATUS_CODE = 403


def build_admission_response(review: Any, decision: Decision) -> dict[str, Any]:
    """
    Build an AdmissionReview response for a request.

    Args:
        review: The incoming AdmissionReview (its uid and apiVersion are echoed)
        decision: The decision for the request's object

    Returns:
        AdmissionReview dict ready for JSON encoding
    """
    request = review.get("request") if isinstance(review, dict) else None
    uid = request.get("uid", "") if isinstance(request, dict) else ""
    api_version = review.get("apiVersion") if isinstance(review, dict) else None

    response: dict[str, Any] = {
        "uid": uid if isinstance(uid, str) else "",
        "allowed": decision.allowed,
    }
    if not decision.allowed:
        response["status"] = {
            "code": DENIED_STATUS_CODE,
            "message": decision.deny_reason(),
        }

    warnings = [v.render() for v in decision.overridable] + [v.render() for v in decision.warnings]
    if warnings:
        response["warnings"] = warnings

    return {
        "apiVersion": api_version if isinstance(api_version, str) and api_version else ADMISSION_API_VERSION,
        "kind": "AdmissionReview",
        "response": response,
    }
