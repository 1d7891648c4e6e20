"""Versioned conversation snapshots with rollback.

Each thread owns an append-only list of snapshots. Versions start at 1 and grow
by one per appended turn. Rolling back discards every snapshot after the target
version; the next append continues from the target version + 1.

The store lives in process memory and is owned by whoever creates it (the HTTP
app creates one at startup). Deployments with more than one process need an
external keyed store instead.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from relaygraph.core.agent.messages import ChatMessage
from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.STORE)


class Snapshot(BaseModel):
    """Full conversation history of a thread at one version."""
    model_config = ConfigDict(frozen=True)

    version: int
    state: List[ChatMessage] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConversationStore:
    """In-memory snapshot log keyed by thread id."""

    def __init__(self) -> None:
        self._threads: Dict[str, List[Snapshot]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, thread_id: str) -> asyncio.Lock:
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = self._locks[thread_id] = asyncio.Lock()
        return lock

    def latest(self, thread_id: str) -> Optional[Snapshot]:
        snapshots = self._threads.get(thread_id)
        return snapshots[-1] if snapshots else None

    def history(self, thread_id: str) -> List[Snapshot]:
        return list(self._threads.get(thread_id, []))

    def threads(self) -> List[str]:
        return list(self._threads)

    async def append(self, thread_id: str, turn: Sequence[ChatMessage]) -> Snapshot:
        """Record `turn` on top of the latest snapshot and return the new one."""
        async with self._lock(thread_id):
            previous = self.latest(thread_id)
            snapshot = Snapshot(
                version=previous.version + 1 if previous else 1,
                state=[*(previous.state if previous else []), *turn],
            )
            self._threads.setdefault(thread_id, []).append(snapshot)

        logger.debug(f"Thread '{thread_id}' snapshotted at version {snapshot.version}")
        return snapshot

    async def truncate_to(self, thread_id: str, version: int) -> Optional[Snapshot]:
        """Roll `thread_id` back to `version`.

        Returns:
            The snapshot at `version`, or None when the thread or version does
            not exist (in which case nothing is modified)
        """
        if thread_id not in self._threads:
            return None
        async with self._lock(thread_id):
            snapshots = self._threads.get(thread_id)
            if not snapshots:
                return None
            for index, snapshot in enumerate(snapshots):
                if snapshot.version == version:
                    del snapshots[index + 1:]
                    logger.info(f"Thread '{thread_id}' rolled back to version {version}")
                    return snapshot
        return None

    def clear(self) -> None:
        """Drop every thread."""
        self._threads.clear()
        self._locks.clear()
