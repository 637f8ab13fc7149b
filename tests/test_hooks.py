"""
GuardSpine — Hook Orchestrator Tests

End-to-end hook flows against an in-memory backend:
  - mode off issues no requests
  - enforce blocks at or above threshold, audit passes; bead blocked in both
  - transport failures fail open
  - post-run closes the bead, seals evidence, falls back without context
  - on-save requests approval at L3+ with bead id and callback URL
  - evaluation interrupts are wired to the bead, block still enforced
  - on-save interrupts go to the live bead or the dispatcher; a block is logged
"""

import os
import sys
import unittest
from unittest import mock

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _base)
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fake_backend import FakeBackend
from guardspine.approvals import APPROVALS_PATH
from guardspine.background import BackgroundTasks
from guardspine.beads import BEADS_PATH
from guardspine.config import GuardSpineConfig
from guardspine.errors import GuardSpineBlocked
from guardspine.evidence import BUNDLES_PATH, SEAL_PATH
from guardspine.hooks import (
    DIFFS_PATH,
    EVALUATE_PATH,
    GuardSpineHooks,
    build_hooks,
    run_succeeded,
)
from guardspine.telemetry import EVENTS_PATH

VERSIONS_PATH = "/api/v1/artifacts/wf-1/versions"
BEAD_PATH = f"{BEADS_PATH}/bead-1"

SAVE_BLOCK = {
    "interrupt_id": "int-save-block",
    "interrupt_type": "block",
    "trigger_condition": "credential_exposure",
    "severity": "critical",
}
SAVE_REVIEW = {
    "interrupt_id": "int-save-review",
    "interrupt_type": "mandatory_review",
    "trigger_condition": "schema_change",
}

WORKFLOW = {
    "id": "wf-1",
    "name": "Invoice Intake",
    "nodes": [
        {"id": "n1", "name": "Hook", "type": "n8n-nodes-base.webhook", "parameters": {}},
        {"id": "n2", "name": "Read", "type": "n8n-nodes-base.readPdf", "parameters": {}},
    ],
    "connections": {"Hook": {"main": [[{"node": "Read"}]]}},
    "tags": ["finance"],
}


def _evaluation(level, findings=None, **extra):
    return {
        "artifact_id": "wf-1",
        "escalation_level": level,
        "total_score": 50,
        "findings": findings or [],
        **extra,
    }


class HooksTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.backend = FakeBackend()
        self.backend.route("POST", BEADS_PATH, {"id": "bead-1"})
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L1"))

    def make_hooks(self, **config):
        config.setdefault("api_url", "http://gs.test")
        return GuardSpineHooks(
            config=GuardSpineConfig(**config),
            transport=self.backend.transport,
            tasks=BackgroundTasks(),
        )

    def bead_updates(self):
        return [c.body for c in self.backend.requests("PUT", BEAD_PATH)]


class TestModeOff(HooksTestCase):

    async def test_no_requests(self):
        hooks = self.make_hooks(mode="off")
        await hooks.pre_execute(WORKFLOW, "manual")
        await hooks.post_execute({"finished": True}, WORKFLOW)
        await hooks.on_save(WORKFLOW)
        self.assertEqual(self.backend.calls, [])
        self.assertEqual(len(hooks.contexts), 0)


class TestPreExecute(HooksTestCase):

    async def test_enforce_blocks_at_threshold(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L4"))
        hooks = self.make_hooks(mode="enforce", risk_threshold="L3")
        with self.assertRaises(GuardSpineBlocked) as cm:
            await hooks.pre_execute(WORKFLOW, "manual")
        msg = str(cm.exception)
        self.assertTrue(msg.startswith("GuardSpine BLOCKED"))
        self.assertIn("Invoice Intake", msg)
        self.assertIn("L4", msg)
        self.assertIn("L3", msg)
        self.assertEqual(self.bead_updates(), [{
            "status": "blocked", "reason": "Blocked by GuardSpine: escalation=L4",
        }])
        # context and telemetry recorded before the block is raised
        self.assertEqual(hooks.contexts.get("wf-1").risk_tier, 4)
        self.assertEqual(len(self.backend.requests("POST", EVENTS_PATH)), 1)

    async def test_audit_passes_but_blocks_bead(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L4"))
        hooks = self.make_hooks(mode="audit", risk_threshold="L3")
        await hooks.pre_execute(WORKFLOW, "manual")
        self.assertEqual(self.bead_updates()[0]["status"], "blocked")

    async def test_below_threshold(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L2"))
        hooks = self.make_hooks(mode="enforce", risk_threshold="L3")
        await hooks.pre_execute(WORKFLOW)
        self.assertEqual(self.bead_updates(), [])
        ctx = hooks.contexts.get("wf-1")
        self.assertEqual(ctx.bead_id, "bead-1")
        self.assertEqual(ctx.escalation_level, "L2")
        self.assertEqual(ctx.artifact_kind, "pdf")

    async def test_evaluation_request(self):
        hooks = self.make_hooks(mode="audit", rubric_pack="strict", classification="L2")
        await hooks.pre_execute(WORKFLOW, "trigger")
        body = self.backend.requests("POST", EVALUATE_PATH)[0].body
        self.assertEqual(body["artifact_id"], "wf-1")
        self.assertEqual(body["artifact_kind"], "pdf")
        self.assertEqual(body["pack_ids"], ["strict"])
        self.assertEqual(body["forced_escalation"], "L2")
        self.assertEqual(body["metadata"]["node_types"], [
            "n8n-nodes-base.webhook", "n8n-nodes-base.readPdf",
        ])
        self.assertEqual(body["metadata"]["tags"], ["finance"])
        self.assertIn('"execution_mode":"trigger"', body["content"])
        self.assertIn('"workflow_name":"Invoice Intake"', body["content"])

    async def test_auto_classification_not_forced(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        body = self.backend.requests("POST", EVALUATE_PATH)[0].body
        self.assertNotIn("forced_escalation", body)

    async def test_findings_logged_by_severity(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L2", findings=[
            {"finding_id": "F-1", "title": "Leaks PII", "severity": "critical"},
            {"finding_id": "F-2", "title": "No retry", "severity": "low",
             "source_trigger": "reliability"},
        ]))
        hooks = self.make_hooks(mode="audit")
        with self.assertLogs("guardspine.hooks", level="INFO") as cm:
            await hooks.pre_execute(WORKFLOW)
        self.assertIn("ERROR:guardspine.hooks:[F-1] Leaks PII", cm.output)
        self.assertIn("INFO:guardspine.hooks:[reliability] No retry", cm.output)

    async def test_evaluate_failure_fails_open(self):
        self.backend.fail("POST", EVALUATE_PATH)
        hooks = self.make_hooks(mode="enforce")
        with self.assertLogs("guardspine.hooks", level="ERROR"):
            await hooks.pre_execute(WORKFLOW)
        self.assertEqual(len(hooks.contexts), 0)
        self.assertEqual(self.backend.requests("POST", BEADS_PATH), [])

    async def test_bead_failure_is_non_fatal(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L4"))
        self.backend.fail("POST", BEADS_PATH)
        hooks = self.make_hooks(mode="enforce")
        with self.assertRaises(GuardSpineBlocked):
            await hooks.pre_execute(WORKFLOW)
        self.assertIsNone(hooks.contexts.get("wf-1").bead_id)

    async def test_missing_level_is_tier_zero(self):
        self.backend.route("POST", EVALUATE_PATH, {"detail": "Internal Server Error"})
        hooks = self.make_hooks(mode="enforce", risk_threshold="L1")
        with self.assertLogs("guardspine.hooks", level="WARNING"):
            await hooks.pre_execute(WORKFLOW)
        self.assertEqual(hooks.contexts.get("wf-1").risk_tier, 0)

    async def test_telemetry_failure_never_fails_hook(self):
        self.backend.fail("POST", EVENTS_PATH)
        hooks = self.make_hooks(mode="enforce")
        await hooks.pre_execute(WORKFLOW)
        await hooks.post_execute({"finished": True}, WORKFLOW)
        self.assertEqual(self.bead_updates()[0]["status"], "done")

    async def test_aggregates(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L2", findings=[
            {"finding_id": "F-1", "title": "t", "severity": "high"},
        ]))
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        snap = hooks.aggregates.snapshot()
        self.assertEqual(snap["risk_tier_distribution"], {"L2": 1})
        self.assertEqual(snap["guard_lane_usage"], {"pdf": 1})
        self.assertEqual(snap["findings_by_severity"], {"high": 1})

    async def test_telemetry_metrics(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        event = self.backend.requests("POST", EVENTS_PATH)[0].body
        self.assertEqual(event["event_type"], "workflow.preExecute")
        self.assertEqual(event["project"], "wf-1")
        self.assertEqual(event["why"], "evaluation")
        self.assertEqual(event["metrics"]["escalation_level"], "L1")
        self.assertEqual(event["metrics"]["bead_id"], "bead-1")
        self.assertEqual(event["metrics"]["interrupts_count"], 0)


class TestPreExecuteInterrupts(HooksTestCase):

    REVIEW = {
        "interrupt_id": "int-review",
        "interrupt_type": "mandatory_review",
        "trigger_condition": "financial_write",
    }
    BLOCK = {
        "interrupt_id": "int-block",
        "interrupt_type": "block",
        "trigger_condition": "pii_exfiltration",
        "severity": "critical",
    }

    async def test_wired_to_bead_then_block_enforced(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", nomotic_interrupts=[self.REVIEW, self.BLOCK],
        ))
        hooks = self.make_hooks(mode="enforce", risk_threshold="L3")
        with self.assertRaises(GuardSpineBlocked) as cm:
            await hooks.pre_execute(WORKFLOW)
        self.assertIn("int-block", str(cm.exception))
        await hooks.drain()

        approvals = self.backend.requests("POST", APPROVALS_PATH)
        self.assertEqual(len(approvals), 1)
        self.assertEqual(approvals[0].body["bead_id"], "bead-1")
        reasons = [u["reason"] for u in self.bead_updates()]
        self.assertEqual(reasons, [
            "Nomotic interrupt [mandatory_review]: financial_write",
            "Nomotic interrupt [block]: pii_exfiltration",
        ])
        self.assertEqual(hooks.aggregates.interrupt_trigger_counts, 2)

    async def test_without_bead_dispatched_in_background(self):
        self.backend.route("POST", BEADS_PATH, {})
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", interrupts=[self.REVIEW],
        ))
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        self.assertTrue(await hooks.drain())
        approval = self.backend.requests("POST", APPROVALS_PATH)[0].body
        self.assertEqual(approval["reason"], "Nomotic interrupt: financial_write")
        self.assertNotIn("bead_id", approval)

    async def test_block_interrupt_in_audit(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", nomotic_interrupts=[self.BLOCK],
        ))
        hooks = self.make_hooks(mode="audit")
        with self.assertLogs("guardspine.interrupts", level="WARNING"):
            await hooks.pre_execute(WORKFLOW)
        self.assertEqual(self.bead_updates()[0]["status"], "blocked")

    async def test_escalation_uses_configured_callback(self):
        escalation = {
            "interrupt_id": "int-esc",
            "interrupt_type": "escalation",
            "trigger_condition": "unusual_volume",
            "severity": "medium",
        }
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", nomotic_interrupts=[escalation],
        ))
        hooks = self.make_hooks(mode="audit", callback_url="http://cb.test/hook")
        with mock.patch.dict(os.environ):
            os.environ.pop("GUARDSPINE_CALLBACK_URL", None)
            await hooks.pre_execute(WORKFLOW)

        notices = self.backend.requests("POST", "/hook")
        self.assertEqual(len(notices), 1)
        self.assertEqual(notices[0].url, "http://cb.test/hook")
        self.assertEqual(notices[0].body["interrupt_id"], "int-esc")
        self.assertEqual(notices[0].body["bead_id"], "bead-1")
        self.assertEqual(self.bead_updates()[0]["status"], "blocked")


class TestPostExecute(HooksTestCase):

    def setUp(self):
        super().setUp()
        self.backend.route("POST", BUNDLES_PATH, {"id": "bundle-1"})
        self.backend.route("POST", SEAL_PATH, {"bundle_hash": "sha256:abc"})

    async def test_success_closes_bead_and_seals(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        self.backend.calls.clear()
        await hooks.post_execute({"finished": True}, WORKFLOW)
        self.assertEqual(self.backend.paths(), [
            ("PUT", BEAD_PATH),
            ("PUT", f"{BEAD_PATH}/evidence"),
            ("POST", BUNDLES_PATH),
            ("POST", SEAL_PATH),
            ("POST", EVENTS_PATH),
        ])
        self.assertEqual(self.backend.calls[0].body["status"], "done")
        self.assertEqual(self.backend.calls[1].body["escalation_level"], "L1")
        metrics = self.backend.calls[-1].body["metrics"]
        self.assertEqual(metrics["execution_status"], "success")
        self.assertEqual(metrics["bead_id"], "bead-1")

    async def test_failed_run(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        await hooks.post_execute({"finished": False}, WORKFLOW)
        self.assertEqual(self.bead_updates()[-1], {"status": "failed", "execution_result": "error"})
        bundle = self.backend.requests("POST", BUNDLES_PATH)[0].body
        self.assertEqual(bundle["metadata"]["execution_status"], "error")

    async def test_second_post_run_uses_fallback(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        await hooks.post_execute({"finished": True}, WORKFLOW)
        self.backend.calls.clear()
        await hooks.post_execute({"finished": True}, WORKFLOW)
        self.assertEqual(self.backend.paths(), [
            ("POST", BUNDLES_PATH),
            ("POST", SEAL_PATH),
            ("POST", EVENTS_PATH),
        ])
        metrics = self.backend.calls[-1].body["metrics"]
        self.assertEqual(metrics["escalation_level"], "L0")
        self.assertIsNone(metrics["bead_id"])
        self.assertEqual(metrics["findings_count"], 0)

    async def test_bead_and_seal_failures_fail_open(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        self.backend.fail("PUT", BEAD_PATH)
        self.backend.fail("POST", BUNDLES_PATH)
        await hooks.post_execute({"finished": True}, WORKFLOW)
        # evidence attach is independent of the failed status update
        self.assertEqual(len(self.backend.requests("PUT", f"{BEAD_PATH}/evidence")), 1)
        self.assertEqual(self.backend.requests("POST", SEAL_PATH), [])
        self.assertEqual(len(self.backend.requests("POST", EVENTS_PATH)), 2)

    def test_run_succeeded(self):
        self.assertTrue(run_succeeded(None))
        self.assertTrue(run_succeeded({}))
        self.assertTrue(run_succeeded({"finished": True}))
        self.assertFalse(run_succeeded({"finished": False}))


class TestOnSave(HooksTestCase):

    def setUp(self):
        super().setUp()
        self.backend.route("POST", VERSIONS_PATH, {
            "version_id": "v2", "previous_version_id": "v1",
        })
        self.backend.route("POST", DIFFS_PATH, {
            "id": "diff-1",
            "changes_count": 2,
            "changes": [{"op": "add", "node": "Read"}, {"op": "remove", "node": "Set"}],
        })
        self.backend.route("POST", APPROVALS_PATH, {"id": "appr-1"})

    async def test_high_risk_requests_approval(self):
        hooks = self.make_hooks(mode="audit", callback_url="http://hooks.test/approved")
        # live run of the same workflow contributes its bead id
        await hooks.pre_execute(WORKFLOW)
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L3", findings=[
            {"finding_id": "F-1", "title": "Writes ledger", "severity": "high"},
        ], required_approvers=["owner", "finance"]))

        await hooks.on_save(WORKFLOW)

        version = self.backend.requests("POST", VERSIONS_PATH)[0].body
        self.assertEqual(version["artifact_type"], "n8n_workflow")
        self.assertEqual(version["artifact_data"], WORKFLOW)
        diff = self.backend.requests("POST", DIFFS_PATH)[0].body
        self.assertEqual(diff, {
            "artifact_id": "wf-1", "from_version_id": "v1", "to_version_id": "v2",
        })
        evaluate = self.backend.requests("POST", EVALUATE_PATH)[-1].body
        self.assertIn('"diff_id":"diff-1"', evaluate["content"])

        approval = self.backend.requests("POST", APPROVALS_PATH)[0].body
        self.assertEqual(approval["risk_tier"], "L3")
        self.assertEqual(approval["required_approvers"], ["owner", "finance"])
        self.assertEqual(approval["bead_id"], "bead-1")
        self.assertEqual(approval["callback_url"], "http://hooks.test/approved")
        self.assertEqual(approval["findings"][0]["description"], "Writes ledger")
        self.assertEqual(approval["diff_data"]["from_version_id"], "v1")
        self.assertEqual(approval["diff_data"]["to_version_id"], "v2")
        self.assertEqual(approval["diff_data"]["changes_count"], 2)
        self.assertEqual(hooks.contexts.get("wf-1").approval_id, "appr-1")

        event = self.backend.requests("POST", EVENTS_PATH)[-1].body
        self.assertEqual(event["event_type"], "workflow.save")
        self.assertTrue(event["metrics"]["approval_required"])
        self.assertEqual(event["metrics"]["changes_count"], 2)

    async def test_approval_tier_independent_of_threshold(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L3"))
        hooks = self.make_hooks(mode="enforce", risk_threshold="L4")
        await hooks.on_save(WORKFLOW)
        approval = self.backend.requests("POST", APPROVALS_PATH)[0].body
        self.assertNotIn("bead_id", approval)
        self.assertNotIn("callback_url", approval)

    async def test_low_risk_no_approval(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation("L2"))
        hooks = self.make_hooks(mode="enforce")
        await hooks.on_save(WORKFLOW)
        self.assertEqual(self.backend.requests("POST", APPROVALS_PATH), [])

    async def test_first_version_diff_from_null(self):
        self.backend.route("POST", VERSIONS_PATH, {"id": "v1"})
        hooks = self.make_hooks(mode="audit")
        await hooks.on_save(WORKFLOW)
        diff = self.backend.requests("POST", DIFFS_PATH)[0].body
        self.assertIsNone(diff["from_version_id"])
        self.assertEqual(diff["to_version_id"], "v1")

    async def test_failure_is_logged(self):
        self.backend.fail("POST", VERSIONS_PATH)
        hooks = self.make_hooks(mode="enforce")
        with self.assertLogs("guardspine.hooks", level="ERROR"):
            await hooks.on_save(WORKFLOW)
        self.assertEqual(self.backend.paths(), [("POST", VERSIONS_PATH)])

    async def test_interrupts_dispatched_without_live_run(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", nomotic_interrupts=[SAVE_BLOCK, SAVE_REVIEW],
        ))
        hooks = self.make_hooks(mode="audit")
        with self.assertLogs("guardspine.interrupts", level="WARNING"):
            await hooks.on_save(WORKFLOW)
        self.assertTrue(await hooks.drain())
        approval = self.backend.requests("POST", APPROVALS_PATH)[0].body
        self.assertEqual(approval["interrupt_id"], "int-save-review")
        self.assertNotIn("bead_id", approval)
        self.assertEqual(hooks.aggregates.interrupt_trigger_counts, 2)
        event = self.backend.requests("POST", EVENTS_PATH)[-1].body
        self.assertEqual(event["metrics"]["interrupts_count"], 2)

    async def test_interrupts_wired_to_live_bead(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        self.backend.calls.clear()
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", nomotic_interrupts=[SAVE_REVIEW],
        ))
        await hooks.on_save(WORKFLOW)
        await hooks.drain()
        approvals = self.backend.requests("POST", APPROVALS_PATH)
        self.assertEqual(len(approvals), 1)
        self.assertEqual(approvals[0].body["bead_id"], "bead-1")
        self.assertEqual(self.bead_updates(), [{
            "status": "blocked",
            "reason": "Nomotic interrupt [mandatory_review]: schema_change",
        }])

    async def test_block_interrupt_on_save_does_not_raise(self):
        self.backend.route("POST", EVALUATE_PATH, _evaluation(
            "L1", nomotic_interrupts=[SAVE_BLOCK],
        ))
        hooks = self.make_hooks(mode="enforce")
        with self.assertLogs("guardspine.hooks", level="ERROR") as cm:
            await hooks.on_save(WORKFLOW)
        self.assertTrue(any("int-save-block" in line for line in cm.output))
        # telemetry still emitted after the logged block
        self.assertEqual(len(self.backend.requests("POST", EVENTS_PATH)), 1)


class TestReadyAndRegistry(HooksTestCase):

    async def test_health_ok(self):
        self.backend.route("GET", "/health", {"status": "ok"})
        hooks = self.make_hooks(mode="off")
        with self.assertLogs("guardspine.hooks", level="INFO") as cm:
            await hooks.on_ready()
        self.assertIn("INFO:guardspine.hooks:GuardSpine API is reachable", cm.output)
        self.assertEqual(self.backend.paths(), [("GET", "/health")])

    async def test_health_bad_status(self):
        self.backend.route("GET", "/health", {"status": "degraded"}, status=503)
        hooks = self.make_hooks()
        with self.assertLogs("guardspine.hooks", level="WARNING") as cm:
            await hooks.on_ready()
        self.assertTrue(any("503" in line for line in cm.output))

    async def test_health_unreachable(self):
        self.backend.fail("GET", "/health")
        hooks = self.make_hooks()
        with self.assertLogs("guardspine.hooks", level="ERROR"):
            await hooks.on_ready()

    def test_registry(self):
        hooks = self.make_hooks()
        registry = hooks.registry()
        self.assertEqual(set(registry), {
            "n8n.ready",
            "workflow.preExecute",
            "workflow.postExecute",
            "workflow.afterCreate",
            "workflow.afterUpdate",
        })
        self.assertEqual(registry["workflow.preExecute"], [hooks.pre_execute])
        self.assertEqual(registry["workflow.afterUpdate"], [hooks.on_save])


class TestConfiguration(HooksTestCase):

    async def test_reset_rebuilds_config_and_clears_state(self):
        hooks = self.make_hooks(mode="audit")
        await hooks.pre_execute(WORKFLOW)
        self.assertEqual(len(hooks.contexts), 1)
        hooks.reset(environ={"GUARDSPINE_MODE": "off", "GUARDSPINE_API_URL": "http://gs.test"})
        self.assertEqual(hooks.config.mode, "off")
        self.assertEqual(len(hooks.contexts), 0)
        self.assertEqual(hooks.aggregates.snapshot()["risk_tier_distribution"], {})

    async def test_build_hooks_from_environment(self):
        hooks = build_hooks(
            environ={
                "GUARDSPINE_API_URL": "http://gs.test",
                "GUARDSPINE_API_KEY": "tok",
                "GUARDSPINE_MODE": "enforce",
                "GUARDSPINE_BACKEND": "litellm",
            },
            configure_logs=False,
            transport=self.backend.transport,
        )
        self.assertTrue(hooks.config.enforcing)
        await hooks.pre_execute(WORKFLOW)
        headers = self.backend.requests("POST", EVALUATE_PATH)[0].headers
        self.assertEqual(headers["authorization"], "Bearer tok")
        self.assertEqual(headers["x-guardspine-backend"], "litellm")


if __name__ == "__main__":
    unittest.main()
