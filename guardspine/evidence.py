"""
GuardSpine — Evidence Bundles

After every run an evidence bundle is created (POST /api/v1/bundles) and
then sealed (POST /api/v1/evidence/seal). The seal returns the bundle hash
used for offline verification.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from guardspine.client import GuardSpineClient

logger = logging.getLogger("guardspine.evidence")

BUNDLES_PATH = "/api/v1/bundles"
SEAL_PATH = "/api/v1/evidence/seal"

SYSTEM_SIGNER = {
    "signer_id": "n8n-hooks",
    "signer_type": "system",
    "display_name": "n8n GuardSpine Hooks",
}


@dataclass
class SealResult:
    bundle_id: str | None
    bundle_hash: str | None
    seal_duration_ms: float


class EvidenceSealer:

    def __init__(self, client: GuardSpineClient):
        self.client = client

    async def create_bundle(
        self,
        artifact_id: str,
        assertion_text: str,
        metadata: dict[str, Any],
        assertion_type: str = "execution_completed",
    ) -> str | None:
        res = await self.client.post(BUNDLES_PATH, {
            "artifact_id": artifact_id,
            "assertion_type": assertion_type,
            "assertion_text": assertion_text,
            "signer": dict(SYSTEM_SIGNER),
            "metadata": metadata,
        })
        bundle_id = res.first("id", "bundle_id")
        logger.debug("Evidence bundle created: %s", bundle_id)
        return str(bundle_id) if bundle_id else None

    async def seal(self, bundle_id: str | None) -> SealResult:
        t0 = time.time()
        res = await self.client.post(SEAL_PATH, {"bundle_id": bundle_id})
        elapsed_ms = (time.time() - t0) * 1000
        bundle_hash = res.first("bundle_hash", "hash")
        logger.debug("Evidence bundle sealed: %s (%s)", bundle_id, bundle_hash)
        return SealResult(
            bundle_id=bundle_id, bundle_hash=bundle_hash, seal_duration_ms=elapsed_ms,
        )

    async def record_execution(
        self,
        workflow_id: str,
        workflow_name: str,
        status: str,
        escalation_level: str | None,
    ) -> SealResult:
        """Create and seal the execution_completed bundle for one run."""
        bundle_id = await self.create_bundle(
            artifact_id=workflow_id,
            assertion_text=f"Workflow {workflow_name} executed with status {status}",
            metadata={
                "escalation_level": escalation_level or "L0",
                "execution_status": status,
            },
        )
        return await self.seal(bundle_id)
