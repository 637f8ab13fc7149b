"""
GuardSpine — Bead-Interrupt Wiring

Ties one nomotic interrupt to one known bead:

  - mandatory_review(72h) → approval request, then bead blocked
  - escalation(24h)       → callback notification, then bead blocked
  - block                 → bead blocked immediately

Unlike the dispatcher, this path is awaited. Approval and bead-update
failures propagate to the caller; a failed escalation webhook is logged and
swallowed.
"""

from __future__ import annotations

import logging
from typing import Any

from guardspine.approvals import (
    ApprovalGate,
    build_escalation_notice,
    build_interrupt_approval,
    interrupt_reason,
)
from guardspine.beads import BeadLifecycleManager
from guardspine.client import GuardSpineClient
from guardspine.config import GuardSpineConfig, current_callback_url
from guardspine.errors import serialize_error
from guardspine.models import InterruptType, NomoticInterrupt

logger = logging.getLogger("guardspine.bead_wiring")


async def wire_interrupt_to_beads(
    interrupt: NomoticInterrupt | dict[str, Any],
    bead_id: str,
    backend_url: str | None = None,
    *,
    client: GuardSpineClient | None = None,
    callback_url: str | None = None,
) -> None:
    """
    Wire a nomotic interrupt to a bead in the beads lifecycle.

    Args:
        interrupt: The interrupt to wire
        bead_id: The bead to block
        backend_url: GuardSpine API base URL (default: configured API URL)
        client: Transport to use (default: built from the environment)
        callback_url: Escalation webhook; read from the environment at call
            time when not given
    """
    interrupt = NomoticInterrupt.coerce(interrupt)
    if client is None:
        client = GuardSpineClient(GuardSpineConfig.from_env())
    api_base = backend_url or client.base_url
    beads = BeadLifecycleManager(client)
    reason = interrupt_reason(interrupt, tagged=True)
    kind = interrupt.interrupt_type

    if kind == InterruptType.MANDATORY_REVIEW.value:
        request = build_interrupt_approval(interrupt, bead_id=bead_id, reason=reason)
        await ApprovalGate(client).submit(request, base_url=api_base)
        await beads.block(bead_id, reason, base_url=api_base)
        logger.info(
            "Bead %s blocked for mandatory_review (%sh): %s",
            bead_id, request["timeout_hours"], interrupt.trigger_condition,
        )

    elif kind == InterruptType.ESCALATION.value:
        webhook = current_callback_url() if callback_url is None else callback_url
        if webhook:
            try:
                await client.post_external(
                    webhook, build_escalation_notice(interrupt, bead_id=bead_id),
                )
            except Exception as e:
                logger.warning("Escalation webhook failed (non-fatal): %s", serialize_error(e))
        await beads.block(bead_id, reason, base_url=api_base)
        logger.info(
            "Bead %s blocked for escalation: %s", bead_id, interrupt.trigger_condition,
        )

    elif kind == InterruptType.BLOCK.value:
        await beads.block(bead_id, reason, base_url=api_base)
        logger.info("Bead %s immediately blocked: %s", bead_id, interrupt.trigger_condition)

    else:
        logger.warning("Unknown interrupt type for bead wiring: %s", kind)
