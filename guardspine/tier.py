"""
GuardSpine — Escalation Tier Mapping

Maps the backend's ordinal escalation levels (L0..L4) to integer risk
tiers. Higher number = more restrictive.

A missing or unparseable level maps to tier 0. This is a fail-open
default: a backend response-shape drift reads as "lowest risk". Callers
that care should check has_escalation_level() and log.
"""

from __future__ import annotations

import re

_LEVEL_RE = re.compile(r"L(\d)")

# Save-hook approvals use this fixed tier, independent of risk_threshold
SAVE_APPROVAL_TIER = 3


def tier_from_escalation(level: str | None) -> int:
    """Return the digit following 'L' in level, or 0."""
    if not level or not isinstance(level, str):
        return 0
    match = _LEVEL_RE.search(level)
    return int(match.group(1)) if match else 0


def has_escalation_level(level: str | None) -> bool:
    return isinstance(level, str) and _LEVEL_RE.search(level) is not None


def tier_at_least(level: str | None, threshold: str | None) -> bool:
    """Check if level meets or exceeds threshold."""
    return tier_from_escalation(level) >= tier_from_escalation(threshold)
