"""Shared state management for MCP server.

FastMCP's Context is per-request, so loaded transactions and derived results
(RFM analyses, cohort table) are kept here between tool calls. Derived
results are reused until the next load discards them.
"""

import threading
from datetime import datetime
from typing import Any

TRANSACTIONS_KEY = "transactions"
TRANSACTIONS_METADATA_KEY = "transactions_metadata"
RFM_ANALYSIS_KEY = "rfm_analysis"
COHORT_TABLE_KEY = "cohort_table"


class SharedState:
    """Thread-safe shared state storage for MCP tools.

    Uses threading.RLock for thread-safe access to shared data.
    Implements basic size-based eviction to prevent unbounded memory growth.

    Protected keys (the loaded transactions and their metadata) are only
    evicted as a last resort when all keys in the store are protected.
    """

    MAX_ITEMS = 100

    PROTECTED_KEYS = frozenset({TRANSACTIONS_KEY, TRANSACTIONS_METADATA_KEY})

    def __init__(self):
        self._store: dict[str, Any] = {}
        self._lock = threading.RLock()

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest unprotected entry when full."""
        with self._lock:
            if len(self._store) >= self.MAX_ITEMS and key not in self._store:
                victim = next(
                    (k for k in self._store if k not in self.PROTECTED_KEYS),
                    next(iter(self._store)),
                )
                del self._store[victim]
            self._store[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._store.get(key, default)

    def require(self, key: str, hint: str) -> Any:
        """Return a stored value or raise with a hint on how to produce it.

        Raises:
            ValueError: If the key has not been stored
        """
        with self._lock:
            if key not in self._store:
                raise ValueError(f"No {key.replace('_', ' ')} available. {hint}")
            return self._store[key]

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def invalidate_derived(self) -> None:
        """Drop every result computed from a previously loaded dataset."""
        with self._lock:
            for key in [k for k in self._store if k not in self.PROTECTED_KEYS]:
                del self._store[key]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


def rfm_analysis_key(reference_date: datetime | None, bucket_count: int) -> str:
    """Key of the RFM analysis computed with the given parameters."""
    anchor = reference_date.isoformat() if reference_date else "latest"
    return f"{RFM_ANALYSIS_KEY}:{anchor}:{bucket_count}"


# Global shared state instance
_shared_state = SharedState()


def get_shared_state() -> SharedState:
    """Get the global shared state instance."""
    return _shared_state
