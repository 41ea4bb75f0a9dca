"""Async Data Access Layer for the persisted conversation blob.

The whole ordered conversation collection is stored as one JSON document
under a fixed key in the STATE table.
"""

from __future__ import annotations

import json
import logging
import time
from typing import List, Optional

from models.conversation_models import Conversation
from utils.database_init import AsyncDatabaseInitializer

STORAGE_KEY = "kimo_pro_v4"

logger = logging.getLogger(__name__)


class ConversationDAL:
    """Load and save the conversation collection.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer, key: str = STORAGE_KEY) -> None:
        self._db = db_initializer
        self._key = key

    async def load(self) -> Optional[List[Conversation]]:
        """Return the stored conversations, or None when absent or corrupt."""
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT value FROM STATE WHERE key = ?", (self._key,))
            row = await cur.fetchone()
        if row is None:
            return None
        try:
            payload = json.loads(row[0])
            if not isinstance(payload, list):
                raise TypeError(f"expected a list, got {type(payload).__name__}")
            return [Conversation.from_dict(item) for item in payload]
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Discarding corrupt persisted state under %r: %s", self._key, exc)
            return None

    async def save(self, conversations: List[dict]) -> None:
        """Overwrite the stored blob with already-serialized conversations."""
        blob = json.dumps(conversations, ensure_ascii=False)
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO STATE (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (self._key, blob, int(time.time())),
            )
            await conn.commit()
