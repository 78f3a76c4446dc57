"""
kernel/export.py - Report and Trace Export

Human-readable run summary and a JSON trace export whose integrity can be
checked against a merkle root over the per-tick rows.
"""

import json
from typing import Optional

from receipts import dual_hash, emit_receipt, merkle

from .classifier import ClassifierThresholds, DEFAULT_THRESHOLDS
from .constants import GUARD_DURATIONS, RECEIPT_SCHEMA
from .types_result import SimResult


def trace_rows(result: SimResult) -> list:
    """Per-tick rows zipped from the trace columns."""
    keys = list(result.traces)
    columns = [result.traces[k] for k in keys]
    return [dict(zip(keys, row)) for row in zip(*columns)]


def export_trace(result: SimResult, output_path: Optional[str] = None) -> dict:
    """
    Export a run as a JSON-ready dict.

    Args:
        result: SimResult to export
        output_path: Optional file path to write JSON export

    Returns:
        dict: params, statistics, rows, violations, final state, merkle_root
    """
    rows = trace_rows(result)
    export = {
        "params": {
            "decoherence_chance": result.params.decoherence_chance,
            "lesion_chance": result.params.lesion_chance,
        },
        "statistics": result.statistics,
        "rows": rows,
        "violations": result.violations,
        "final_state": result.final_state.to_dict(),
        "merkle_root": merkle(rows),
    }

    if output_path:
        with open(output_path, "w") as f:
            json.dump(export, f, indent=2, default=str)
    return export


def verify_trace(export: dict) -> bool:
    return merkle(export.get("rows", [])) == export.get("merkle_root")


def generate_report(result: SimResult) -> str:
    s = result.statistics
    lines = [
        "=== KERNEL RUN REPORT ===",
        f"Ticks: {s['ticks']}",
        f"Final axiom: {s['final_axiom']}",
        f"First failure tick: {s['first_failure_tick'] if s['first_failure_tick'] is not None else '-'}",
        f"Min health: {s['min_health']:.4f}",
        f"Max decoherence: {s['max_decoherence']:.4f}",
        f"Final lesions: {s['final_lesions']}",
        f"Violations: {len(result.violations)}",
        "",
        "Bounds: " + ("PASS" if not result.violations else "FAIL"),
    ]
    return "\n".join(lines)


def export_model_details(thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
                         output_path: Optional[str] = None) -> dict:
    """Classifier cutoffs, guard durations and receipt types, hashed."""
    model = {
        "name": "sophia-kernel",
        "thresholds": dict(vars(thresholds)),
        "guard_durations": {k.value: v for k, v in GUARD_DURATIONS.items()},
        "receipt_schemas": RECEIPT_SCHEMA,
    }
    model["dual_hash"] = dual_hash(json.dumps(model, sort_keys=True))

    if output_path:
        with open(output_path, "w") as f:
            json.dump(model, f, indent=2)

    emit_receipt("model_export", {
        "tenant_id": "kernel",
        "dual_hash": model["dual_hash"],
        "output_path": output_path,
    })
    return model
