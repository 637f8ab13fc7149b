"""
GuardSpine — Hook Orchestrator

Lifecycle hooks between the host workflow engine and the GuardSpine
backend. All guard evaluation is delegated to the backend; this layer only
sequences calls, tracks run state and decides what may fail the host.

Entry points:
  - on_ready()                       startup reachability check
  - pre_execute(workflow, mode)      evaluate, open bead, maybe block
  - post_execute(run_data, workflow) close bead, seal evidence
  - on_save(workflow)                version, diff, evaluate, maybe approve

Failure policy:
  GuardSpineBlocked (enforce mode, risk >= threshold, or a block interrupt)
  is the only error that escapes, and only from pre_execute. Every other
  failure is logged and the hook returns normally (fail-open).

Usage:
    from guardspine.hooks import GuardSpineHooks

    hooks = GuardSpineHooks()          # config snapshot from the environment
    await hooks.pre_execute(workflow)
    await hooks.post_execute({"finished": True}, workflow)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

import httpx

from guardspine.approvals import ApprovalGate, build_save_approval
from guardspine.artifacts import ArtifactKind, detect_artifact_kind
from guardspine.background import BackgroundTasks
from guardspine.bead_wiring import wire_interrupt_to_beads
from guardspine.beads import BeadLifecycleManager
from guardspine.client import DEFAULT_TIMEOUT_SECONDS, GuardSpineClient
from guardspine.config import GuardSpineConfig
from guardspine.context import ExecutionContextStore
from guardspine.errors import GuardSpineBlocked, is_blocking_error, serialize_error
from guardspine.evidence import EvidenceSealer
from guardspine.interrupts import handle_nomotic_interrupts
from guardspine.logging import configure_logging, set_level
from guardspine.models import (
    EvaluationResult,
    ExecutionContext,
    Finding,
    InterruptType,
    NomoticInterrupt,
    WorkflowData,
    now_ms,
)
from guardspine.telemetry import (
    TelemetryAggregates,
    TelemetryEmitter,
    count_findings_by_severity,
)
from guardspine.tier import (
    SAVE_APPROVAL_TIER,
    has_escalation_level,
    tier_at_least,
    tier_from_escalation,
)

logger = logging.getLogger("guardspine.hooks")

HEALTH_PATH = "/health"
EVALUATE_PATH = "/api/v1/policies/evaluate"
DIFFS_PATH = "/api/v1/diffs"


def _versions_path(artifact_id: str) -> str:
    return f"/api/v1/artifacts/{artifact_id}/versions"


@dataclass
class _RunEvaluation:
    """What pre_execute needs after the fail-open section."""
    evaluation: EvaluationResult
    risk_tier: int
    at_threshold: bool
    bead_id: str | None


class GuardSpineHooks:
    """
    Owns one configuration snapshot, its transport, the execution context
    store, telemetry aggregates and the background task queue.

    Construct once per process (or per test). reset() rebuilds the snapshot
    from the environment and clears all in-memory state.
    """

    def __init__(
        self,
        config: GuardSpineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        tasks: BackgroundTasks | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._transport = transport
        self._timeout = timeout
        self.contexts = ExecutionContextStore()
        self.aggregates = TelemetryAggregates()
        self.tasks = tasks or BackgroundTasks()
        self._apply_config(config or GuardSpineConfig.from_env())

    def _apply_config(self, config: GuardSpineConfig) -> None:
        self.config = config
        self.client = GuardSpineClient(config, transport=self._transport, timeout=self._timeout)
        self.beads = BeadLifecycleManager(self.client)
        self.approvals = ApprovalGate(self.client)
        self.evidence = EvidenceSealer(self.client)
        self.telemetry = TelemetryEmitter(self.client)

    def reset(
        self,
        config: GuardSpineConfig | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Re-derive the config snapshot and drop contexts and aggregates."""
        self._apply_config(config or GuardSpineConfig.from_env(environ))
        self.contexts.clear()
        self.aggregates.reset()

    def registry(self) -> dict[str, list[Callable[..., Any]]]:
        """Hook registration mapping for the host engine."""
        return {
            "n8n.ready": [self.on_ready],
            "workflow.preExecute": [self.pre_execute],
            "workflow.postExecute": [self.post_execute],
            "workflow.afterCreate": [self.on_save],
            "workflow.afterUpdate": [self.on_save],
        }

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for background interrupt submissions to finish."""
        return await self.tasks.drain(timeout)

    # ═══════════════════════════════════════════════════════════════
    # n8n.ready
    # ═══════════════════════════════════════════════════════════════

    async def on_ready(self) -> None:
        cfg = self.config
        logger.info("=== GuardSpine Hooks Loaded (Thin Client) ===")
        logger.info("Mode: %s", cfg.mode)
        logger.info("API: %s", cfg.api_url)
        logger.info("Risk threshold: %s", cfg.risk_threshold)
        logger.info("Rubric pack: %s", cfg.rubric_pack)
        logger.info("Classification: %s", cfg.classification)
        logger.info("Backend: %s%s", cfg.backend, f" (model: {cfg.model})" if cfg.model else "")

        try:
            res = await self.client.get(HEALTH_PATH)
        except Exception as e:
            logger.error("GuardSpine API unreachable: %s", serialize_error(e))
            return
        if res.status == 200:
            logger.info("GuardSpine API is reachable")
        else:
            logger.warning("GuardSpine API returned status %s: %s", res.status, res.data)

    # ═══════════════════════════════════════════════════════════════
    # workflow.preExecute
    # ═══════════════════════════════════════════════════════════════

    async def pre_execute(
        self,
        workflow: WorkflowData | dict[str, Any] | None,
        execution_mode: str | None = None,
    ) -> None:
        """
        Evaluate a workflow before it runs.

        Raises:
            GuardSpineBlocked: enforce mode and the risk tier meets the
                threshold, or a block interrupt was returned
        """
        if not self.config.enabled:
            return

        start_ms = now_ms()
        try:
            wf = WorkflowData.coerce(workflow)
            logger.info(
                'Pre-execute: "%s" (id: %s, mode: %s)',
                wf.name, wf.id, execution_mode or "unknown",
            )
            run = await self._evaluate_run(wf, execution_mode, start_ms)
        except Exception as e:
            logger.error("Pre-execute guard failed: %s", serialize_error(e))
            return

        if self.config.enforcing and run.at_threshold:
            msg = (
                f'GuardSpine BLOCKED workflow "{wf.name}" '
                f"(escalation={run.evaluation.escalation_level}, "
                f"threshold={self.config.risk_threshold})"
            )
            logger.error(msg)
            raise GuardSpineBlocked(
                msg, workflow_id=wf.id, escalation_level=run.evaluation.escalation_level,
            )

        self.handle_interrupts(_unwired(run.evaluation.interrupts, run.bead_id))

    async def _evaluate_run(
        self,
        wf: WorkflowData,
        execution_mode: str | None,
        start_ms: float,
    ) -> _RunEvaluation:
        artifact_kind = detect_artifact_kind(wf.nodes)
        if artifact_kind is not ArtifactKind.CODE:
            logger.info(
                "Detected artifact kind: %s (guard lane: %sGuard)",
                artifact_kind.value, artifact_kind.value,
            )

        content = _dumps({
            "workflow_id": wf.id,
            "workflow_name": wf.name,
            "nodes": [n.to_dict() for n in wf.nodes],
            "node_types": wf.node_types,
            "tags": wf.tags,
            "connections": wf.connections,
            "execution_mode": execution_mode or "manual",
        })
        request = self._evaluation_request(wf, artifact_kind, content, {
            "workflow_name": wf.name,
            "node_types": wf.node_types,
            "tags": wf.tags,
        })
        res = await self.client.post(EVALUATE_PATH, request)
        evaluation = EvaluationResult.from_dict(res.data)

        risk_tier = tier_from_escalation(evaluation.escalation_level)
        at_threshold = tier_at_least(evaluation.escalation_level, self.config.risk_threshold)
        if not has_escalation_level(evaluation.escalation_level):
            logger.warning(
                "Evaluation returned no escalation level (status %s), treating as L0",
                res.status,
            )

        logger.info(
            "Guard evaluate: escalation=%s, score=%s, findings=%d",
            evaluation.escalation_level, evaluation.total_score, len(evaluation.findings),
        )
        if evaluation.required_approvers:
            logger.info("Required approvers: %s", ", ".join(evaluation.required_approvers))
        _log_findings(evaluation.findings)

        bead_id = await self._open_bead(
            wf, execution_mode, evaluation.escalation_level, at_threshold,
        )
        if bead_id and evaluation.interrupts:
            await self._wire_interrupts(evaluation.interrupts, bead_id)

        evaluation_duration_ms = round(now_ms() - start_ms)

        self.contexts.put(wf.id, ExecutionContext(
            artifact_id=evaluation.artifact_id or wf.id,
            escalation_level=evaluation.escalation_level,
            risk_tier=risk_tier,
            bead_id=bead_id,
            findings=list(evaluation.findings),
            artifact_kind=artifact_kind.value,
            start_time=start_ms,
            evaluation_duration_ms=evaluation_duration_ms,
        ))

        self.aggregates.record_evaluation(
            evaluation.escalation_level, artifact_kind.value, evaluation.findings,
        )
        self.aggregates.record_interrupts(len(evaluation.interrupts))

        await self.telemetry.emit("workflow.preExecute", wf.id, "evaluation", {
            "evaluation_duration_ms": evaluation_duration_ms,
            "escalation_level": evaluation.escalation_level,
            "risk_tier": risk_tier,
            "artifact_kind": artifact_kind.value,
            "findings_count": len(evaluation.findings),
            "findings_by_severity": count_findings_by_severity(evaluation.findings),
            "interrupts_count": len(evaluation.interrupts),
            "bead_id": bead_id,
            "mode": self.config.mode,
        })

        return _RunEvaluation(
            evaluation=evaluation,
            risk_tier=risk_tier,
            at_threshold=at_threshold,
            bead_id=bead_id,
        )

    async def _open_bead(
        self,
        wf: WorkflowData,
        execution_mode: str | None,
        escalation_level: str | None,
        at_threshold: bool,
    ) -> str | None:
        """Create the run's bead, blocking it when at or above threshold."""
        try:
            bead_id = await self.beads.create(wf, execution_mode)
        except Exception as e:
            logger.warning("Bead creation failed (non-fatal): %s", serialize_error(e))
            return None

        if bead_id and at_threshold:
            try:
                await self.beads.block(
                    bead_id, f"Blocked by GuardSpine: escalation={escalation_level}",
                )
            except Exception as e:
                logger.warning("Bead block failed (non-fatal): %s", serialize_error(e))
        return bead_id

    async def _wire_interrupts(
        self, interrupts: Iterable[NomoticInterrupt], bead_id: str,
    ) -> None:
        for interrupt in interrupts:
            try:
                await self.wire_interrupt(interrupt, bead_id)
            except Exception as e:
                logger.warning(
                    "Interrupt %s wiring to bead %s failed (non-fatal): %s",
                    interrupt.interrupt_id, bead_id, serialize_error(e),
                )

    # ═══════════════════════════════════════════════════════════════
    # workflow.postExecute
    # ═══════════════════════════════════════════════════════════════

    async def post_execute(
        self,
        run_data: Any,
        workflow: WorkflowData | dict[str, Any] | None,
    ) -> None:
        """Close the run's bead and seal its evidence. Never raises."""
        if not self.config.enabled:
            return

        try:
            await self._post_execute(run_data, WorkflowData.coerce(workflow))
        except Exception as e:
            logger.error("Post-execute hook failed: %s", serialize_error(e))

    async def _post_execute(self, run_data: Any, wf: WorkflowData) -> None:
        success = run_succeeded(run_data)
        status = "success" if success else "error"
        logger.info('Post-execute: "%s" (id: %s) status=%s', wf.name, wf.id, status)

        ctx = self.contexts.pop(wf.id)

        if ctx.bead_id:
            try:
                await self.beads.complete(ctx.bead_id, success)
            except Exception as e:
                logger.warning("Bead update failed (non-fatal): %s", serialize_error(e))
            try:
                await self.beads.attach_evidence(
                    ctx.bead_id, ctx.escalation_level, len(ctx.findings),
                )
            except Exception as e:
                logger.warning("Bead evidence failed (non-fatal): %s", serialize_error(e))

        seal_ms = 0
        try:
            seal = await self.evidence.record_execution(
                wf.id, wf.name, status, ctx.escalation_level,
            )
            seal_ms = round(seal.seal_duration_ms)
        except Exception as e:
            logger.error("Post-execute evidence failed: %s", serialize_error(e))

        total_ms = round(now_ms() - ctx.start_time) if ctx.start_time else 0
        await self.telemetry.emit("workflow.postExecute", wf.id, "execution_completed", {
            "execution_status": status,
            "total_duration_ms": total_ms,
            "evaluation_duration_ms": ctx.evaluation_duration_ms or 0,
            "bundle_seal_time_ms": seal_ms,
            "escalation_level": ctx.escalation_level or "L0",
            "bead_id": ctx.bead_id,
            "findings_count": len(ctx.findings),
        })

    # ═══════════════════════════════════════════════════════════════
    # workflow.afterCreate / workflow.afterUpdate
    # ═══════════════════════════════════════════════════════════════

    async def on_save(self, workflow: WorkflowData | dict[str, Any] | None) -> None:
        """Version, diff and evaluate a saved workflow. Never raises."""
        if not self.config.enabled:
            return

        start_ms = now_ms()
        try:
            await self._on_save(WorkflowData.coerce(workflow), start_ms)
        except Exception as e:
            logger.error("Workflow save hook failed: %s", serialize_error(e))

    async def _on_save(self, wf: WorkflowData, start_ms: float) -> None:
        version = (await self.client.post(_versions_path(wf.id), {
            "artifact_type": "n8n_workflow",
            "artifact_data": wf.to_dict(),
        })).data
        to_version_id = version.get("version_id") or version.get("id")
        logger.debug("Artifact version created: %s", to_version_id)

        diff = (await self.client.post(DIFFS_PATH, {
            "artifact_id": wf.id,
            "from_version_id": version.get("previous_version_id") or None,
            "to_version_id": to_version_id,
        })).data
        changes = diff.get("changes") or []
        logger.info('Workflow "%s" diff: %d change(s)', wf.name, diff.get("changes_count") or 0)

        artifact_kind = detect_artifact_kind(wf.nodes)
        content = _dumps({
            "workflow_id": wf.id,
            "workflow_name": wf.name,
            "diff_id": diff.get("id"),
            "changes": changes,
        })
        res = await self.client.post(EVALUATE_PATH, self._evaluation_request(
            wf, artifact_kind, content, {"diff_id": diff.get("id")},
        ))
        evaluation = EvaluationResult.from_dict(res.data)
        tier = tier_from_escalation(evaluation.escalation_level)
        logger.info(
            "Save evaluation: escalation=%s, findings=%d",
            evaluation.escalation_level, len(evaluation.findings),
        )

        # A run of the same workflow may still be in flight
        ctx = self.contexts.get(wf.id)

        approval_required = tier >= SAVE_APPROVAL_TIER
        if approval_required:
            logger.warning(
                'High risk (%s) on save of "%s" - requesting approval',
                evaluation.escalation_level, wf.name,
            )
            await self._request_save_approval(wf, evaluation, version, diff, ctx)

        _log_findings(evaluation.findings)

        if evaluation.interrupts:
            self.aggregates.record_interrupts(len(evaluation.interrupts))
            await self._route_save_interrupts(wf, evaluation.interrupts, ctx)

        await self.telemetry.emit("workflow.save", wf.id, "workflow_saved", {
            "save_duration_ms": round(now_ms() - start_ms),
            "artifact_kind": artifact_kind.value,
            "escalation_level": evaluation.escalation_level,
            "findings_count": len(evaluation.findings),
            "findings_by_severity": count_findings_by_severity(evaluation.findings),
            "changes_count": diff.get("changes_count") or 0,
            "approval_required": approval_required,
            "interrupts_count": len(evaluation.interrupts),
        })

    async def _route_save_interrupts(
        self,
        wf: WorkflowData,
        interrupts: list[NomoticInterrupt],
        ctx: ExecutionContext | None,
    ) -> None:
        """
        Wire save-time interrupts to the live run's bead, if any, and
        dispatch the rest. The save is already committed, so a block in
        enforce mode is logged rather than raised.
        """
        bead_id = ctx.bead_id if ctx else None
        if bead_id:
            await self._wire_interrupts(interrupts, bead_id)
        try:
            self.handle_interrupts(_unwired(interrupts, bead_id))
        except Exception as e:
            if not is_blocking_error(e):
                raise
            logger.error('Block interrupt on save of "%s": %s', wf.name, e)

    async def _request_save_approval(
        self,
        wf: WorkflowData,
        evaluation: EvaluationResult,
        version: dict[str, Any],
        diff: dict[str, Any],
        ctx: ExecutionContext | None,
    ) -> str | None:
        bead_id = ctx.bead_id if ctx else None

        request = build_save_approval(
            wf, evaluation, version, diff,
            bead_id=bead_id, callback_url=self.config.callback_url,
        )
        approval_id = await self.approvals.submit(request)
        logger.info(
            "Approval gate created: %s (bead: %s, callback: %s)",
            approval_id, bead_id or "none", "yes" if self.config.callback_url else "no",
        )
        if ctx and approval_id:
            ctx.approval_id = approval_id
        return approval_id

    # ═══════════════════════════════════════════════════════════════
    # Interrupts
    # ═══════════════════════════════════════════════════════════════

    def handle_interrupts(
        self,
        interrupts: Iterable[NomoticInterrupt | dict[str, Any]] | None,
        mode: str | None = None,
    ) -> None:
        """Dispatch interrupts with this orchestrator's client and task queue."""
        handle_nomotic_interrupts(
            interrupts,
            mode or self.config.mode,
            client=self.client,
            tasks=self.tasks,
        )

    async def wire_interrupt(
        self, interrupt: NomoticInterrupt | dict[str, Any], bead_id: str,
    ) -> None:
        await wire_interrupt_to_beads(
            interrupt, bead_id,
            client=self.client,
            callback_url=self.config.callback_url or None,
        )

    # ═══════════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════════

    def _evaluation_request(
        self,
        wf: WorkflowData,
        artifact_kind: ArtifactKind,
        content: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "artifact_id": wf.id,
            "artifact_kind": artifact_kind.value,
            "content": content,
            "pack_ids": [self.config.rubric_pack],
            "metadata": {**metadata, "artifact_kind": artifact_kind.value},
        }
        if self.config.classification != "auto":
            request["forced_escalation"] = self.config.classification
        return request


def run_succeeded(run_data: Any) -> bool:
    """A run succeeded unless its result explicitly says finished=False."""
    if run_data is None:
        return True
    if isinstance(run_data, dict):
        finished = run_data.get("finished")
    else:
        finished = getattr(run_data, "finished", None)
    return finished is not False


def _unwired(
    interrupts: list[NomoticInterrupt], bead_id: str | None,
) -> list[NomoticInterrupt]:
    """Interrupts still to dispatch; with a bead only blocks remain to enforce."""
    if not bead_id:
        return interrupts
    return [i for i in interrupts if i.interrupt_type == InterruptType.BLOCK.value]


def _log_findings(findings: Iterable[Finding]) -> None:
    for f in findings:
        if f.severity == "critical":
            level = logging.ERROR
        elif f.severity == "high":
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, "[%s] %s", f.label, f.title)


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), default=str)


def build_hooks(
    environ: Mapping[str, str] | None = None,
    configure_logs: bool = True,
    **kwargs: Any,
) -> GuardSpineHooks:
    """Build an orchestrator from the environment, the way the host loads it."""
    config = GuardSpineConfig.from_env(environ)
    if configure_logs:
        configure_logging(config.log_level)
    else:
        set_level(config.log_level)
    return GuardSpineHooks(config=config, **kwargs)
