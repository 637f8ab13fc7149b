"""
GuardSpine — Execution Context Store

Bridges the pre-run and post-run phases of one workflow run. Keyed by
workflow id; at most one live context per id.

No locking: the host engine runs at most one pre/post pair per workflow id
at a time. Concurrent runs of the same id race and the later writer wins.
"""

from __future__ import annotations

import logging

from guardspine.models import ExecutionContext

logger = logging.getLogger("guardspine.context")


class ExecutionContextStore:

    def __init__(self):
        self._contexts: dict[str, ExecutionContext] = {}

    def put(self, workflow_id: str, context: ExecutionContext) -> None:
        """Store a context, overwriting any previous one for the id."""
        if workflow_id in self._contexts:
            logger.debug("Overwriting live execution context for %s", workflow_id)
        self._contexts[workflow_id] = context

    def get(self, workflow_id: str) -> ExecutionContext | None:
        """Peek at a live context without consuming it."""
        return self._contexts.get(workflow_id)

    def pop(self, workflow_id: str) -> ExecutionContext:
        """Consume the context, or return a zeroed fallback if none is live."""
        context = self._contexts.pop(workflow_id, None)
        if context is None:
            logger.debug("No execution context for %s, using fallback", workflow_id)
            return ExecutionContext.fallback(workflow_id)
        return context

    def clear(self) -> None:
        self._contexts.clear()

    def __contains__(self, workflow_id: str) -> bool:
        return workflow_id in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)
