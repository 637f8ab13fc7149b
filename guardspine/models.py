"""
GuardSpine — Data Model

Value types exchanged between the host engine, the hook layer and the
GuardSpine backend. Backend payloads are parsed leniently: missing keys get
defaults, unknown keys are ignored.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SEVERITIES = ("critical", "high", "medium", "low", "info")


class InterruptType(str, Enum):
    MANDATORY_REVIEW = "mandatory_review"
    ESCALATION = "escalation"
    BLOCK = "block"


class BeadStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"
    FAILED = "failed"


# ═══════════════════════════════════════════════════════════════════
# Host-supplied workflow description
# ═══════════════════════════════════════════════════════════════════

@dataclass
class WorkflowNode:
    id: str = ""
    name: str = ""
    type: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowNode:
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            parameters=dict(data.get("parameters") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "parameters": self.parameters,
        }


@dataclass
class WorkflowData:
    """A workflow as handed to the hooks by the host engine."""
    id: str = "unknown"
    name: str = "unnamed"
    nodes: list[WorkflowNode] = field(default_factory=list)
    connections: dict[str, Any] = field(default_factory=dict)
    tags: list[Any] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def coerce(cls, data: WorkflowData | dict[str, Any] | None) -> WorkflowData:
        """Accept a WorkflowData, a plain dict, or None."""
        if isinstance(data, WorkflowData):
            return data
        data = data or {}
        return cls(
            id=str(data.get("id") or "unknown"),
            name=str(data.get("name") or "unnamed"),
            nodes=[
                WorkflowNode.from_dict(n) if isinstance(n, dict) else n
                for n in (data.get("nodes") or [])
            ],
            connections=dict(data.get("connections") or {}),
            tags=list(data.get("tags") or []),
            raw=dict(data),
        )

    @property
    def node_types(self) -> list[str]:
        """Distinct node types, first-seen order."""
        return list(dict.fromkeys(n.type for n in self.nodes))

    def to_dict(self) -> dict[str, Any]:
        if self.raw:
            return self.raw
        return {
            "id": self.id,
            "name": self.name,
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": self.connections,
            "tags": self.tags,
        }


# ═══════════════════════════════════════════════════════════════════
# Backend payloads
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Finding:
    """A single policy finding returned by evaluation."""
    finding_id: str | None
    title: str
    description: str = ""
    severity: str = "info"
    source_trigger: str | None = None
    enforcement: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            finding_id=data.get("finding_id") or data.get("id"),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            severity=str(data.get("severity") or "info"),
            source_trigger=data.get("source_trigger"),
            enforcement=data.get("enforcement"),
        )

    @property
    def label(self) -> str:
        return str(self.source_trigger or self.finding_id)

    def to_approval_dict(self) -> dict[str, Any]:
        return {
            "finding_id": self.finding_id,
            "title": self.title,
            "description": self.description or self.title,
            "severity": self.severity,
            "source_trigger": self.source_trigger,
            "enforcement": self.enforcement or "warn",
        }


@dataclass(frozen=True)
class NomoticInterrupt:
    """A block / mandatory-review / escalation directive from the backend."""
    interrupt_id: str
    interrupt_type: str
    trigger_condition: str = ""
    severity: str = ""
    timeout_hours: float = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NomoticInterrupt:
        return cls(
            interrupt_id=str(data.get("interrupt_id") or data.get("id") or ""),
            interrupt_type=str(data.get("interrupt_type") or ""),
            trigger_condition=str(data.get("trigger_condition") or ""),
            severity=str(data.get("severity") or ""),
            timeout_hours=data.get("timeout_hours") or 0,
            metadata=dict(data.get("metadata") or {}),
        )

    @classmethod
    def coerce(cls, value: NomoticInterrupt | dict[str, Any]) -> NomoticInterrupt:
        return value if isinstance(value, cls) else cls.from_dict(value)

    @property
    def artifact_id(self) -> str:
        return str(self.metadata.get("artifact_id") or "")


@dataclass
class EvaluationResult:
    """Response of POST /api/v1/policies/evaluate."""
    artifact_id: str | None = None
    escalation_level: str | None = None
    total_score: float | None = None
    findings: list[Finding] = field(default_factory=list)
    required_approvers: list[str] = field(default_factory=list)
    interrupts: list[NomoticInterrupt] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvaluationResult:
        interrupts = data.get("nomotic_interrupts") or data.get("interrupts") or []
        return cls(
            artifact_id=data.get("artifact_id"),
            escalation_level=data.get("escalation_level"),
            total_score=data.get("total_score"),
            findings=[
                Finding.from_dict(f) for f in (data.get("findings") or [])
                if isinstance(f, dict)
            ],
            required_approvers=list(data.get("required_approvers") or []),
            interrupts=[
                NomoticInterrupt.from_dict(i) for i in interrupts
                if isinstance(i, dict)
            ],
        )


# ═══════════════════════════════════════════════════════════════════
# Execution context (pre-run → post-run bridge)
# ═══════════════════════════════════════════════════════════════════

@dataclass
class ExecutionContext:
    artifact_id: str
    escalation_level: str | None = None
    risk_tier: int = 0
    bead_id: str | None = None
    findings: list[Finding] = field(default_factory=list)
    approval_id: str | None = None
    artifact_kind: str | None = None
    start_time: float | None = None
    evaluation_duration_ms: float = 0

    @classmethod
    def fallback(cls, workflow_id: str) -> ExecutionContext:
        """Zeroed context for a post-run with no matching pre-run."""
        return cls(artifact_id=workflow_id)


# ═══════════════════════════════════════════════════════════════════
# Telemetry
# ═══════════════════════════════════════════════════════════════════

TELEMETRY_WHO = "guardspine-hooks:n8n"


@dataclass
class TelemetryEvent:
    event_type: str
    project: str
    why: str
    metrics: dict[str, Any] = field(default_factory=dict)
    who: str = TELEMETRY_WHO
    timestamp: str = ""
    when: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = _iso_now()
        if not self.when:
            self.when = self.timestamp

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "who": self.who,
            "when": self.when,
            "project": self.project,
            "why": self.why,
            "metrics": self.metrics,
        }


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> float:
    return time.time() * 1000
