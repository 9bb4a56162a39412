"""
Usage metering seam.

The join pipeline never meters anything itself. The request boundary calls
record_usage(kind, count) after a successful job; deployments that persist
usage swap in their own UsageRecorder.
"""

import logging
import threading
from collections import Counter

logger = logging.getLogger(__name__)


class UsageRecorder:
    """Default recorder: logs each event and keeps in-process totals."""

    def __init__(self):
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def record_usage(self, kind: str, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._counts[kind] += count
            total = self._counts[kind]
        logger.info(f"Usage recorded: {kind} +{count} (total {total})")

    def totals(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)


_usage_recorder: UsageRecorder | None = None


def get_usage_recorder() -> UsageRecorder:
    """Get the process-wide usage recorder."""
    global _usage_recorder
    if _usage_recorder is None:
        _usage_recorder = UsageRecorder()
    return _usage_recorder
