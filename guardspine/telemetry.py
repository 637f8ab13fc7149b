"""
GuardSpine — Telemetry

Best-effort event emission to POST /api/v1/events plus in-process
aggregate counters. Telemetry never breaks workflow execution: emit()
swallows and logs every failure.

Events carry WHO/WHEN/PROJECT/WHY metadata:
    who      — "guardspine-hooks:n8n"
    when     — ISO-8601 UTC timestamp
    project  — workflow id
    why      — evaluation | execution_completed | workflow_saved

Aggregates are plain counters with no locking (see ExecutionContextStore).
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable

from guardspine.client import GuardSpineClient
from guardspine.errors import serialize_error
from guardspine.models import SEVERITIES, Finding, TelemetryEvent

logger = logging.getLogger("guardspine.telemetry")

EVENTS_PATH = "/api/v1/events"


def count_findings_by_severity(findings: Iterable[Finding]) -> dict[str, int]:
    """Findings per severity; unknown severities are not counted."""
    counts = {s: 0 for s in SEVERITIES}
    for f in findings:
        severity = (f.severity or "info").lower()
        if severity in counts:
            counts[severity] += 1
    return counts


class TelemetryAggregates:
    """Running counters across all hook invocations of one orchestrator."""

    def __init__(self):
        self.risk_tier_distribution: Counter[str] = Counter()
        self.findings_by_severity: Counter[str] = Counter()
        self.guard_lane_usage: Counter[str] = Counter()
        self.interrupt_trigger_counts = 0

    def record_evaluation(
        self,
        escalation_level: str | None,
        artifact_kind: str,
        findings: Iterable[Finding] = (),
    ) -> None:
        self.risk_tier_distribution[escalation_level or "L0"] += 1
        self.guard_lane_usage[artifact_kind] += 1
        for severity, n in count_findings_by_severity(findings).items():
            if n:
                self.findings_by_severity[severity] += n

    def record_interrupts(self, count: int) -> None:
        self.interrupt_trigger_counts += count

    def snapshot(self) -> dict[str, Any]:
        return {
            "risk_tier_distribution": dict(self.risk_tier_distribution),
            "findings_by_severity": dict(self.findings_by_severity),
            "guard_lane_usage": dict(self.guard_lane_usage),
            "interrupt_trigger_counts": self.interrupt_trigger_counts,
        }

    def reset(self) -> None:
        self.risk_tier_distribution.clear()
        self.findings_by_severity.clear()
        self.guard_lane_usage.clear()
        self.interrupt_trigger_counts = 0


class TelemetryEmitter:

    def __init__(self, client: GuardSpineClient):
        self.client = client

    async def emit(
        self,
        event_type: str,
        project: str,
        why: str,
        metrics: dict[str, Any],
    ) -> bool:
        """Send one event. Returns False (and logs) on any failure."""
        event = TelemetryEvent(
            event_type=event_type, project=project, why=why, metrics=metrics,
        )
        try:
            await self.client.post(EVENTS_PATH, event.to_dict())
        except Exception as e:
            logger.warning("Telemetry failed (non-fatal): %s", serialize_error(e))
            return False
        logger.debug("Telemetry emitted: %s (project: %s)", event_type, project)
        return True
