"""
GuardSpine — Workflow Governance Hooks

Thin-client lifecycle hooks for a workflow-execution engine. Risk scoring,
approvals, beads and evidence all live in the GuardSpine backend; this
package sequences the calls around each run and each save.

  - guardspine.hooks: GuardSpineHooks, build_hooks (entry points)
  - guardspine.interrupts: handle_nomotic_interrupts (dispatcher)
  - guardspine.bead_wiring: wire_interrupt_to_beads
  - guardspine.artifacts / guardspine.tier: pure classifiers
"""

from guardspine.artifacts import ArtifactKind, detect_artifact_kind
from guardspine.bead_wiring import wire_interrupt_to_beads
from guardspine.config import GuardSpineConfig
from guardspine.errors import GuardSpineBlocked, GuardSpineError, GuardSpineTransportError
from guardspine.hooks import GuardSpineHooks, build_hooks
from guardspine.interrupts import handle_nomotic_interrupts
from guardspine.models import (
    BeadStatus,
    EvaluationResult,
    ExecutionContext,
    Finding,
    NomoticInterrupt,
    WorkflowData,
)
from guardspine.tier import tier_from_escalation

__version__ = "0.1.0"

__all__ = [
    "ArtifactKind",
    "BeadStatus",
    "EvaluationResult",
    "ExecutionContext",
    "Finding",
    "GuardSpineBlocked",
    "GuardSpineConfig",
    "GuardSpineError",
    "GuardSpineHooks",
    "GuardSpineTransportError",
    "NomoticInterrupt",
    "WorkflowData",
    "build_hooks",
    "detect_artifact_kind",
    "handle_nomotic_interrupts",
    "tier_from_escalation",
    "wire_interrupt_to_beads",
]
