"""Shape checks for AI-generated action plans.

The engine never interprets a plan; it only needs to know that one exists and
which kind it is. Structured customer plans are checked against a minimal
JSON schema so that a malformed payload is caught at ingestion rather than
when a listener tries to display it. Plans that are not JSON objects are
accepted as opaque blobs.
"""

from __future__ import annotations

from jsonschema import Draft202012Validator

from domain.exceptions import ValidationError
from domain.models import PlanKind, PlanPayload

CUSTOMER_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "planId": {"type": "string"},
        "clientId": {"type": "string"},
        "clientName": {"type": "string"},
        "createdAt": {"type": "string"},
        "status": {"enum": ["active", "in_progress", "completed", "on_hold"]},
        "priority": {"enum": ["high", "medium", "low"]},
    },
}

REGION_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "region": {"type": "string"},
        "actions": {"type": "array"},
    },
}

_VALIDATORS = {
    PlanKind.CUSTOMER_PLAN: Draft202012Validator(CUSTOMER_PLAN_SCHEMA),
    PlanKind.REGION_PLAN: Draft202012Validator(REGION_PLAN_SCHEMA),
}


def plan_errors(plan: PlanPayload) -> list[str]:
    """Schema violations of a structured plan; empty for valid or opaque plans."""
    if not isinstance(plan.raw, dict):
        return []
    validator = _VALIDATORS[plan.kind]
    return [
        f"{'/'.join(str(p) for p in error.absolute_path) or '<root>'}: {error.message}"
        for error in validator.iter_errors(plan.raw)
    ]


def validate_plan(plan: PlanPayload | None, invoice_id: str | None = None) -> None:
    """Raise ValidationError if a structured plan does not match its schema."""
    if plan is None:
        return
    if not isinstance(plan.kind, PlanKind):
        raise ValidationError("unknown plan kind", "reconquest_plan.kind", invoice_id)
    errors = plan_errors(plan)
    if errors:
        raise ValidationError("; ".join(errors), "reconquest_plan", invoice_id)
