"""
persistence.py - Local Resource Store

A small JSON key-value file holding the operator's resource record between
sessions. Best effort only: read and write failures are logged as warnings
and the caller carries on with whatever it already has.

Stored value under ``STORAGE_KEY``:
    {"tier": "ACOLYTE", "tokens": 0, "ledgerHistory": [...]}
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from kernel.constants import UserTier
from kernel.types_state import UserResources

logger = logging.getLogger(__name__)

STORAGE_KEY = "S7_OPERATOR_DATA"


def resources_to_record(resources: UserResources) -> Dict[str, Any]:
    return {
        "tier": resources.tier.value,
        "tokens": resources.tokens,
        "ledgerHistory": list(resources.ledger_history),
    }


def merge_record(defaults: UserResources, record: Dict[str, Any]) -> UserResources:
    """Overlay a stored record on defaults; unreadable fields keep the default."""
    merged = UserResources(
        tier=defaults.tier,
        tokens=defaults.tokens,
        ledger_history=list(defaults.ledger_history),
    )
    if "tier" in record:
        try:
            merged.tier = UserTier(record["tier"])
        except ValueError:
            logger.warning("ignoring stored tier %r", record["tier"])
    if "tokens" in record:
        try:
            merged.tokens = max(0, int(record["tokens"]))
        except (TypeError, ValueError):
            logger.warning("ignoring stored tokens %r", record["tokens"])
    if isinstance(record.get("ledgerHistory"), list):
        merged.ledger_history = list(record["ledgerHistory"])
    return merged


class StateStore:
    """JSON file mapping string keys to JSON values."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[Any]:
        try:
            return self._read_all().get(key)
        except (OSError, ValueError) as e:
            logger.warning("state store read failed (%s): %s", self.path, e)
            return None

    def set(self, key: str, value: Any) -> bool:
        """Write atomically (temp file + rename). Returns False on failure."""
        try:
            try:
                data = self._read_all()
            except ValueError:
                data = {}
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning("state store write failed (%s): %s", self.path, e)
            return False

    # -------------------------------------------------------------------------
    # Resource record
    # -------------------------------------------------------------------------

    def load_resources(self, defaults: Optional[UserResources] = None) -> UserResources:
        defaults = defaults or UserResources()
        record = self.get(STORAGE_KEY)
        if not isinstance(record, dict):
            return merge_record(defaults, {})
        return merge_record(defaults, record)

    def save_resources(self, resources: UserResources) -> bool:
        return self.set(STORAGE_KEY, resources_to_record(resources))
