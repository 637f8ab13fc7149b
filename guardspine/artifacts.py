"""
GuardSpine — Artifact Kind Detection

Routes a workflow to a guard lane (code, xlsx, pdf, image) from its node
types. A node type matches a lane when any lane pattern is a
case-insensitive substring of it. When several lanes match, the one with
the highest risk priority wins; no match means "code".
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable


class ArtifactKind(str, Enum):
    CODE = "code"
    XLSX = "xlsx"
    PDF = "pdf"
    IMAGE = "image"

    @property
    def priority(self) -> int:
        return ARTIFACT_RISK_PRIORITY[self]


# Higher = more risky, takes precedence
ARTIFACT_RISK_PRIORITY = {
    ArtifactKind.CODE: 1,
    ArtifactKind.XLSX: 2,
    ArtifactKind.PDF: 3,
    ArtifactKind.IMAGE: 4,
}

PDF_NODE_PATTERNS = (
    "n8n-nodes-base.readPdf",
    "n8n-nodes-base.pdfMerge",
    "n8n-nodes-base.pdfExtract",
    "@n8n/n8n-nodes-langchain.documentLoaderPdf",
    "pdf",
)

SPREADSHEET_NODE_PATTERNS = (
    "n8n-nodes-base.spreadsheetFile",
    "n8n-nodes-base.googleSheets",
    "n8n-nodes-base.microsoftExcel",
    "n8n-nodes-base.airtable",
    "excel",
    "sheets",
    "csv",
)

IMAGE_NODE_PATTERNS = (
    "n8n-nodes-base.imageResize",
    "n8n-nodes-base.screenshot",
    "n8n-nodes-base.imageEdit",
    "n8n-nodes-base.imageMagick",
    "@n8n/n8n-nodes-langchain.documentLoaderImage",
    "image",
    "screenshot",
)

_LANES = (
    (ArtifactKind.PDF, tuple(p.lower() for p in PDF_NODE_PATTERNS)),
    (ArtifactKind.XLSX, tuple(p.lower() for p in SPREADSHEET_NODE_PATTERNS)),
    (ArtifactKind.IMAGE, tuple(p.lower() for p in IMAGE_NODE_PATTERNS)),
)


def matched_kinds(node_type: str) -> set[ArtifactKind]:
    """All lanes whose patterns match a single node type."""
    lowered = (node_type or "").lower()
    return {
        kind for kind, patterns in _LANES
        if any(p in lowered for p in patterns)
    }


def detect_artifact_kind(nodes: Iterable[Any]) -> ArtifactKind:
    """
    Detect the highest-risk artifact kind across a workflow's nodes.

    Accepts node objects with a `type` attribute or dicts with a "type" key.
    """
    detected: set[ArtifactKind] = set()
    for node in nodes or ():
        node_type = node.get("type", "") if isinstance(node, dict) else getattr(node, "type", "")
        detected |= matched_kinds(node_type)

    if not detected:
        return ArtifactKind.CODE
    return max(detected, key=lambda k: k.priority)
