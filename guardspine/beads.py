"""
GuardSpine — Bead Lifecycle

A bead is the backend work item mirroring one workflow run's governance
state. This module is the only writer of bead state:

    open ──► blocked ──► done | failed
      └───────────────► done | failed

  - created "open" by the pre-run hook
  - "blocked" when the risk tier meets the threshold or an interrupt fires
  - "done" / "failed" by the post-run hook, then evidence is attached

Methods raise on transport failure; the hooks decide what is best-effort.
"""

from __future__ import annotations

import logging
from typing import Any

from guardspine.client import GuardSpineClient
from guardspine.models import BeadStatus, WorkflowData

logger = logging.getLogger("guardspine.beads")

BEADS_PATH = "/api/v1/beads/tasks"
BEAD_LABELS = ["guardspine", "n8n", "execution"]


class BeadLifecycleManager:

    def __init__(self, client: GuardSpineClient):
        self.client = client

    async def create(
        self,
        workflow: WorkflowData,
        execution_mode: str | None = None,
        base_url: str | None = None,
    ) -> str | None:
        """Open a bead for one execution. Returns the bead id, if any."""
        res = await self.client.post(BEADS_PATH, {
            "title": f"[n8n] {workflow.name}",
            "description": f"Execution of workflow {workflow.id}",
            "status": BeadStatus.OPEN.value,
            "labels": list(BEAD_LABELS),
            "metadata": {
                "workflow_id": workflow.id,
                "workflow_name": workflow.name,
                "execution_mode": execution_mode or "manual",
            },
        }, base_url=base_url)
        bead_id = res.first("id", "bead_id")
        logger.debug("Bead created: %s", bead_id)
        return str(bead_id) if bead_id else None

    async def update_status(
        self,
        bead_id: str,
        status: BeadStatus | str,
        base_url: str | None = None,
        **fields: Any,
    ):
        status = BeadStatus(status)
        body = {"status": status.value, **fields}
        res = await self.client.put(f"{BEADS_PATH}/{bead_id}", body, base_url=base_url)
        logger.debug("Bead %s updated to %s", bead_id, status.value)
        return res

    async def block(self, bead_id: str, reason: str, base_url: str | None = None):
        res = await self.update_status(
            bead_id, BeadStatus.BLOCKED, base_url=base_url, reason=reason,
        )
        logger.warning("Bead %s set to blocked (%s)", bead_id, reason)
        return res

    async def complete(self, bead_id: str, success: bool, base_url: str | None = None):
        """Terminal transition after the run: done on success, failed otherwise."""
        return await self.update_status(
            bead_id,
            BeadStatus.DONE if success else BeadStatus.FAILED,
            base_url=base_url,
            execution_result="success" if success else "error",
        )

    async def attach_evidence(
        self,
        bead_id: str,
        escalation_level: str | None,
        findings_count: int,
        evidence_type: str = "execution_log",
        base_url: str | None = None,
    ):
        return await self.client.put(f"{BEADS_PATH}/{bead_id}/evidence", {
            "evidence_type": evidence_type,
            "escalation_level": escalation_level or "L0",
            "findings_count": findings_count,
        }, base_url=base_url)
