"""
GuardSpine — Approval Gates

Builds and submits approval requests to POST /api/v1/approvals.

Two request shapes:
  - interrupt approvals: raised by a mandatory_review nomotic interrupt,
    fixed approver list, timeout in hours (default 72)
  - save approvals: raised when a workflow save evaluates at or above
    SAVE_APPROVAL_TIER, carrying findings and the version diff

Escalation notifications for callback webhooks are built here as well so
both interrupt paths send the same payload.
"""

from __future__ import annotations

import logging
from typing import Any

from guardspine.client import GuardSpineClient
from guardspine.models import EvaluationResult, NomoticInterrupt, WorkflowData

logger = logging.getLogger("guardspine.approvals")

APPROVALS_PATH = "/api/v1/approvals"
REQUIRED_APPROVERS = ("owner", "compliance_delegate")
DEFAULT_REVIEW_TIMEOUT_HOURS = 72
DEFAULT_ESCALATION_TIMEOUT_HOURS = 24
ESCALATION_EVENT_TYPE = "nomotic_interrupt.escalation"


def interrupt_reason(interrupt: NomoticInterrupt, tagged: bool = False) -> str:
    """Human-readable reason for an interrupt-driven action."""
    if tagged:
        return f"Nomotic interrupt [{interrupt.interrupt_type}]: {interrupt.trigger_condition}"
    return f"Nomotic interrupt: {interrupt.trigger_condition}"


def build_interrupt_approval(
    interrupt: NomoticInterrupt,
    bead_id: str | None = None,
    reason: str | None = None,
) -> dict[str, Any]:
    request: dict[str, Any] = {
        "interrupt_id": interrupt.interrupt_id,
        "artifact_id": interrupt.artifact_id,
        "reason": reason or interrupt_reason(interrupt),
        "timeout_hours": interrupt.timeout_hours or DEFAULT_REVIEW_TIMEOUT_HOURS,
        "required_approvers": list(REQUIRED_APPROVERS),
        "interrupt_type": interrupt.interrupt_type,
        "trigger_condition": interrupt.trigger_condition,
    }
    if bead_id:
        request["bead_id"] = bead_id
    return request


def build_escalation_notice(
    interrupt: NomoticInterrupt,
    bead_id: str | None = None,
) -> dict[str, Any]:
    notice: dict[str, Any] = {
        "event_type": ESCALATION_EVENT_TYPE,
        "interrupt_id": interrupt.interrupt_id,
        "trigger_condition": interrupt.trigger_condition,
        "severity": interrupt.severity,
        "timeout_hours": interrupt.timeout_hours or DEFAULT_ESCALATION_TIMEOUT_HOURS,
        "artifact_id": interrupt.artifact_id,
        "escalation_level": interrupt.metadata.get("escalation_level") or "L3",
    }
    if bead_id:
        notice["bead_id"] = bead_id
    return notice


def build_save_approval(
    workflow: WorkflowData,
    evaluation: EvaluationResult,
    version: dict[str, Any],
    diff: dict[str, Any],
    bead_id: str | None = None,
    callback_url: str = "",
) -> dict[str, Any]:
    """Approval request for a high-risk workflow save."""
    changes = diff.get("changes") or []
    request: dict[str, Any] = {
        "artifact_id": workflow.id,
        "artifact_name": workflow.name,
        "risk_tier": evaluation.escalation_level,
        "required_approvers": list(evaluation.required_approvers),
        "reason": f'Workflow "{workflow.name}" save triggered {evaluation.escalation_level}',
        "findings": [f.to_approval_dict() for f in evaluation.findings],
        "diff_data": {
            "from_version_id": version.get("previous_version_id") or "initial",
            "to_version_id": version.get("version_id") or version.get("id"),
            "changes_count": diff.get("changes_count") or len(changes),
            "changes": changes,
        },
    }
    if bead_id:
        request["bead_id"] = bead_id
        logger.debug("Including bead_id in approval request: %s", bead_id)
    if callback_url:
        request["callback_url"] = callback_url
        logger.debug("Including callback_url in approval request: %s", callback_url)
    return request


class ApprovalGate:
    """Submits approval requests to the backend."""

    def __init__(self, client: GuardSpineClient):
        self.client = client

    async def submit(
        self, request: dict[str, Any], base_url: str | None = None,
    ) -> str | None:
        """Create an approval gate. Returns the approval id, if any."""
        res = await self.client.post(APPROVALS_PATH, request, base_url=base_url)
        approval_id = res.first("id", "approval_id")
        return str(approval_id) if approval_id else None
