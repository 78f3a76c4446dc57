"""
profile_sync.py - Operator Profile Sync

One-shot fetch of the operator's tier and token balance at session start.
Any failure (network, HTTP status, malformed body) yields ``None`` and the
session keeps its local defaults. Nothing here ever raises into the kernel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from kernel.constants import UserTier
from kernel.types_state import SystemState

logger = logging.getLogger(__name__)

PROFILE_PATH = "/api/operator/profile"
DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class OperatorProfile:
    tier: UserTier
    tokens: int

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "OperatorProfile":
        """
        Raises:
            KeyError / ValueError / TypeError on a malformed body
        """
        tokens = int(data["tokens"])
        if tokens < 0:
            raise ValueError(f"negative token balance: {tokens}")
        return cls(tier=UserTier(data["tier"]), tokens=tokens)


class ProfileClient:
    """Minimal client for the operator profile endpoint."""

    def __init__(self, base_url: str, token: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def fetch(self) -> Optional[OperatorProfile]:
        """GET the profile; ``None`` on any failure."""
        url = f"{self.base_url}{PROFILE_PATH}"
        try:
            resp = self._http.get(url, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            return OperatorProfile.from_json(resp.json())
        except requests.RequestException as e:
            logger.debug("profile sync request failed: %s", e)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("profile sync returned a malformed body: %s", e)
        return None


def fetch_profile(base_url: Optional[str], token: Optional[str] = None,
                  timeout: float = DEFAULT_TIMEOUT) -> Optional[OperatorProfile]:
    if not base_url:
        return None
    return ProfileClient(base_url, token, timeout).fetch()


def apply_profile(state: SystemState, profile: Optional[OperatorProfile]) -> SystemState:
    """Overlay tier and tokens onto a copy; no profile means no change."""
    if profile is None:
        return state
    nxt = state.copy()
    nxt.resources.tier = profile.tier
    nxt.resources.tokens = profile.tokens
    return nxt
