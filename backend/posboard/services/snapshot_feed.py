# Overview: Full-snapshot change feed for live views.

"""
Snapshot Feed

A live view never receives deltas. Each publish stores the complete result
set and bumps a version; readers compare versions and, when behind, take the
whole snapshot and replace whatever they held.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from flask import current_app


RECENT_TRANSACTIONS = "pos_transactions.recent"
FEED_NAMES = (RECENT_TRANSACTIONS,)


class SnapshotFeed:
    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._version = 0
        self._snapshot: Any = None

    def publish(self, snapshot: Any) -> int:
        """Replace the stored snapshot outright; returns the new version."""
        with self._lock:
            self._version += 1
            self._snapshot = snapshot
            return self._version

    def seed(self, loader: Callable[[], Any]) -> int:
        """Publish loader() if nothing has been published yet; returns the version."""
        with self._lock:
            if self._version == 0:
                self._snapshot = loader()
                self._version = 1
            return self._version

    def latest(self) -> tuple[int, Any]:
        with self._lock:
            return self._version, self._snapshot

    def changed_since(self, version: int) -> tuple[int, Any] | None:
        """
        (version, snapshot) unless the caller already holds the current version.

        A version ahead of ours comes from before a restart and is stale too.
        """
        with self._lock:
            if self._version != version:
                return self._version, self._snapshot
            return None


def init_feeds(app) -> None:
    """One feed per name, owned by the app so separate apps never share state."""
    app.extensions["snapshot_feeds"] = {name: SnapshotFeed(name) for name in FEED_NAMES}


def get_feed(name: str) -> SnapshotFeed:
    return current_app.extensions["snapshot_feeds"][name]
