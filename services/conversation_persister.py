"""Write conversation snapshots to storage in mutation order."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from dal.conversation_dal import ConversationDAL
from services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

_STOP = object()


class ConversationPersister:
    """Single writer task fed by the store's change notifications.

    Saves are best effort: a failed write is logged and the next mutation
    rewrites the full collection anyway.
    """

    def __init__(self, dal: ConversationDAL) -> None:
        self._dal = dal
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    async def restore(self, store: ConversationStore) -> None:
        """Load persisted state into the store, starting fresh when absent or corrupt."""
        try:
            conversations = await self._dal.load()
        except Exception as exc:
            logger.error("Failed to load persisted conversations: %s", exc)
            conversations = None
        store.load(conversations or [])

    def attach(self, store: ConversationStore) -> None:
        store.subscribe(self.enqueue)
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def enqueue(self, snapshot: List[Dict[str, Any]]) -> None:
        self._queue.put_nowait(snapshot)

    async def flush(self) -> None:
        """Wait until every queued snapshot has been written."""
        await self._queue.join()

    async def close(self) -> None:
        if self._task is None:
            return
        self._queue.put_nowait(_STOP)
        await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            snapshot = await self._queue.get()
            try:
                if snapshot is _STOP:
                    return
                # Only the newest snapshot matters; skip ones already superseded.
                while not self._queue.empty():
                    newer = self._queue.get_nowait()
                    self._queue.task_done()
                    if newer is _STOP:
                        await self._save(snapshot)
                        return
                    snapshot = newer
                await self._save(snapshot)
            finally:
                self._queue.task_done()

    async def _save(self, snapshot: List[Dict[str, Any]]) -> None:
        try:
            await self._dal.save(snapshot)
        except Exception as exc:
            logger.error("Failed to persist conversations: %s", exc)
