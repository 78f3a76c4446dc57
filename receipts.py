"""
receipts.py - Kernel Audit Trail

A receipt is a flat dict describing one thing the kernel did: a tick
completed, an operator command ran (or was refused), a guard ran out, a
bound escaped, a headless run finished. The session appends every receipt
to its in-memory list and, when given a handle, streams it out as one JSON
line.

Each receipt carries an envelope ahead of its payload:

    receipt_type   what happened ("tick", "intervention", "guard_expired", ...)
    ts             UTC wall-clock time the receipt was built, ISO 8601
    tenant_id      owning component, "kernel" for everything emitted here
    payload_hash   digest of the canonical payload, "<sha256>:<blake3>"
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, TextIO, Union

import blake3

__all__ = [
    "ENVELOPE_FIELDS",
    "StopRule",
    "dual_hash",
    "emit_receipt",
    "merkle",
    "read_receipts_jsonl",
    "write_receipt_jsonl",
]

ENVELOPE_FIELDS = ("receipt_type", "ts", "tenant_id", "payload_hash")


def _canonical(value: Any) -> str:
    # Sorted keys so dict ordering never changes a digest.
    return json.dumps(value, sort_keys=True, default=str)


# =============================================================================
# Digest
# =============================================================================

def dual_hash(data: Union[bytes, str]) -> str:
    """Hex SHA-256 and BLAKE3 digests of ``data``, joined by a colon."""
    raw = data.encode() if isinstance(data, str) else data
    return f"{hashlib.sha256(raw).hexdigest()}:{blake3.blake3(raw).hexdigest()}"


# =============================================================================
# Envelope
# =============================================================================

def emit_receipt(receipt_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Wrap a payload in the receipt envelope.

    Args:
        receipt_type: Event name stored in ``receipt_type``
        data: JSON-friendly payload; its own ``tenant_id`` is lifted into the
            envelope, otherwise "default" is used

    Returns:
        Envelope fields followed by the payload keys
    """
    envelope = {
        "receipt_type": receipt_type,
        "ts": datetime.now(timezone.utc).isoformat(),
        "tenant_id": data.get("tenant_id", "default"),
        "payload_hash": dual_hash(_canonical(data)),
    }
    envelope.update(data)
    return envelope


# =============================================================================
# Streams
# =============================================================================

def write_receipt_jsonl(receipt: Dict[str, Any], fh: TextIO) -> None:
    fh.write(json.dumps(receipt, separators=(",", ":"), default=str) + "\n")


def read_receipts_jsonl(fh: Iterable[str]) -> List[Dict[str, Any]]:
    """Parse a receipt stream, skipping blank lines."""
    return [json.loads(line) for line in fh if line.strip()]


# =============================================================================
# Merkle root
# =============================================================================

def merkle(items: Iterable[Any]) -> str:
    """
    Root digest over ``items`` in order, used to seal exported traces.

    Leaves are digests of each item's canonical JSON. An odd level pairs its
    last node with itself. No items gives the digest of b"empty".
    """
    level = [dual_hash(_canonical(item)) for item in items]
    if not level:
        return dual_hash(b"empty")
    while len(level) > 1:
        if len(level) % 2:
            level.append(level[-1])
        level = [dual_hash(left + right) for left, right in zip(level[::2], level[1::2])]
    return level[0]


# =============================================================================
# Hard stop
# =============================================================================

class StopRule(Exception):
    """A run hit a condition it must not continue past, such as a bound escape under strict mode."""
