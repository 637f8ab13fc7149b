"""
GuardSpine — Nomotic Interrupt Dispatcher

Processes nomotic interrupts returned by policy evaluation:

  - block             → enforce: raise GuardSpineBlocked (no network call)
                        audit:   log a warning, continue
  - mandatory_review  → approval request, 72h default timeout (background)
  - escalation        → callback webhook notification (background)
  - anything else     → warning, no action

The dispatcher is synchronous. Network side effects are submitted to a
BackgroundTasks queue and complete after it returns; await
tasks.drain() to observe them. Interrupts are handled in list order and a
block raise aborts the rest.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from guardspine.approvals import (
    ApprovalGate,
    build_escalation_notice,
    build_interrupt_approval,
)
from guardspine.background import BackgroundTasks
from guardspine.client import GuardSpineClient
from guardspine.config import GuardSpineConfig
from guardspine.errors import GuardSpineBlocked, serialize_error
from guardspine.models import InterruptType, NomoticInterrupt

logger = logging.getLogger("guardspine.interrupts")


def handle_nomotic_interrupts(
    interrupts: Iterable[NomoticInterrupt | dict[str, Any]] | None,
    mode: str,
    backend_url: str | None = None,
    callback_url: str | None = None,
    *,
    client: GuardSpineClient | None = None,
    tasks: BackgroundTasks | None = None,
) -> BackgroundTasks | None:
    """
    Dispatch each interrupt to its side effect.

    Args:
        interrupts: NomoticInterrupt values (or backend dicts)
        mode: enforce | audit | off
        backend_url: GuardSpine API base URL (default: configured API URL)
        callback_url: Webhook URL for escalations (default: configured)
        client: Transport to use (default: built from the environment)
        tasks: Background queue for the fire-and-forget submissions; a
            fresh queue is created per call when omitted

    Returns:
        The queue holding the submissions (await its drain()), or None
        when nothing was dispatched

    Raises:
        GuardSpineBlocked: a block interrupt in enforce mode
    """
    interrupts = [NomoticInterrupt.coerce(i) for i in (interrupts or [])]
    if mode == "off" or not interrupts:
        return None

    if client is None:
        client = GuardSpineClient(GuardSpineConfig.from_env())
    api_base = backend_url or client.base_url
    webhook = client.config.callback_url if callback_url is None else callback_url
    if tasks is None:
        tasks = BackgroundTasks()
    gate = ApprovalGate(client)

    for interrupt in interrupts:
        kind = interrupt.interrupt_type

        if kind == InterruptType.BLOCK.value:
            if mode == "enforce":
                raise GuardSpineBlocked(
                    f"GuardSpine BLOCKED: nomotic interrupt {interrupt.interrupt_id} "
                    f"(trigger: {interrupt.trigger_condition}, severity: {interrupt.severity})",
                    interrupt_id=interrupt.interrupt_id,
                )
            logger.warning(
                "Block interrupt in audit mode: %s (trigger: %s)",
                interrupt.interrupt_id, interrupt.trigger_condition,
            )

        elif kind == InterruptType.MANDATORY_REVIEW.value:
            tasks.submit(
                _approval_job(gate, interrupt, api_base),
                name=f"approval:{interrupt.interrupt_id}",
            )

        elif kind == InterruptType.ESCALATION.value:
            if webhook:
                tasks.submit(
                    _escalation_job(client, interrupt, webhook),
                    name=f"escalation:{interrupt.interrupt_id}",
                )
            else:
                logger.warning(
                    "Escalation interrupt %s fired but no callback URL configured",
                    interrupt.interrupt_id,
                )

        else:
            logger.warning("Unknown interrupt type: %s", kind)

    return tasks


def _approval_job(gate: ApprovalGate, interrupt: NomoticInterrupt, api_base: str):
    async def job():
        try:
            approval_id = await gate.submit(build_interrupt_approval(interrupt), base_url=api_base)
        except Exception as e:
            logger.error(
                "Failed to create approval for interrupt %s: %s",
                interrupt.interrupt_id, serialize_error(e),
            )
            return
        logger.info("Approval created for interrupt %s: %s", interrupt.interrupt_id, approval_id)
    return job


def _escalation_job(client: GuardSpineClient, interrupt: NomoticInterrupt, webhook: str):
    async def job():
        try:
            res = await client.post_external(webhook, build_escalation_notice(interrupt))
        except Exception as e:
            logger.error(
                "Failed to send escalation for %s: %s",
                interrupt.interrupt_id, serialize_error(e),
            )
            return
        logger.info(
            "Escalation notification sent for %s: status=%d",
            interrupt.interrupt_id, res.status,
        )
    return job
