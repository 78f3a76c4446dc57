"""
tests/test_receipts_export.py - Receipts and Trace Export Tests
"""

import io
import json

import pytest

from kernel.export import (
    export_model_details,
    export_trace,
    generate_report,
    trace_rows,
    verify_trace,
)
from kernel.tick import run_simulation
from kernel.types_config import SCENARIO_INNER_STORM
from kernel.types_state import SystemState
from kernel.validation import emit_violation_receipt, find_bound_violations
from receipts import (
    ENVELOPE_FIELDS,
    dual_hash,
    emit_receipt,
    merkle,
    read_receipts_jsonl,
    write_receipt_jsonl,
)


@pytest.fixture(scope="module")
def result():
    return run_simulation(40, SCENARIO_INNER_STORM.params, seed=8)


# =============================================================================
# RECEIPTS
# =============================================================================

class TestReceipts:

    def test_dual_hash_format(self):
        h = dual_hash("payload")
        sha, b3 = h.split(":")
        assert len(sha) == 64 and len(b3) == 64
        assert dual_hash(b"payload") == h

    def test_emit_receipt_fields(self):
        r = emit_receipt("tick", {"tenant_id": "kernel", "tick": 3})
        assert r["receipt_type"] == "tick"
        assert r["tenant_id"] == "kernel"
        assert r["tick"] == 3
        assert "ts" in r and ":" in r["payload_hash"]

    def test_envelope_precedes_payload(self):
        r = emit_receipt("guard_expired", {"tenant_id": "kernel", "intervention": "COOLANT_FLUSH"})
        assert tuple(r)[:4] == ENVELOPE_FIELDS
        assert r["intervention"] == "COOLANT_FLUSH"

    def test_payload_hash_ignores_key_order(self):
        a = emit_receipt("x", {"a": 1, "b": 2})
        b = emit_receipt("x", {"b": 2, "a": 1})
        assert a["payload_hash"] == b["payload_hash"]

    def test_jsonl(self):
        buf = io.StringIO()
        write_receipt_jsonl(emit_receipt("tick", {"tick": 1}), buf)
        write_receipt_jsonl(emit_receipt("tick", {"tick": 2}), buf)
        buf.seek(0)
        assert [r["tick"] for r in read_receipts_jsonl(buf)] == [1, 2]

    def test_merkle(self):
        assert merkle([]) == dual_hash(b"empty")
        assert merkle([1, 2, 3]) == merkle([1, 2, 3])
        assert merkle([1, 2, 3]) != merkle([3, 2, 1])

    def test_violation_receipt(self):
        state = SystemState()
        state.health.health = 1.5
        state.health.lesions = -1
        violations = find_bound_violations(state)
        assert {v["field"] for v in violations} == {"health.health", "health.lesions"}
        receipt = emit_violation_receipt(state, violations)
        assert receipt["receipt_type"] == "bound_violation"


# =============================================================================
# EXPORT
# =============================================================================

class TestExport:

    def test_rows_match_ticks(self, result):
        rows = trace_rows(result)
        assert len(rows) == 40
        assert set(rows[0]) == set(result.traces)

    def test_export_verifies(self, result):
        export = export_trace(result)
        assert verify_trace(export)
        export["rows"][0]["health"] = -1.0
        assert not verify_trace(export)

    def test_export_to_file(self, result, tmp_path):
        path = tmp_path / "trace.json"
        export_trace(result, str(path))
        on_disk = json.loads(path.read_text())
        assert on_disk["merkle_root"] == merkle(on_disk["rows"])
        assert on_disk["params"]["decoherence_chance"] == 0.15

    def test_report(self, result):
        report = generate_report(result)
        assert "KERNEL RUN REPORT" in report
        assert "Ticks: 40" in report
        assert "Bounds: PASS" in report

    def test_model_details(self):
        model = export_model_details()
        assert model["thresholds"]["failure_health"] == 0.05
        assert model["guard_durations"]["GROUNDING_DISCHARGE"] == 15.0
        assert ":" in model["dual_hash"]
