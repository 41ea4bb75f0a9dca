"""Progressive reveal of a finalized assistant message."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from models.app_state import AppState
from models.conversation_models import Conversation
from services.realtime.event_hub import EventHub

logger = logging.getLogger(__name__)


@dataclass
class RevealState:
    """Reveal progress for one message slot."""

    conversation_id: str
    index: int
    full_text: str
    revealed_length: int = 0
    ticks: int = 0
    active: bool = True

    @property
    def text(self) -> str:
        return self.full_text[: self.revealed_length]

    @property
    def finished(self) -> bool:
        return self.revealed_length >= len(self.full_text)

    def advance(self, chunk_size: int) -> str:
        """Grow the revealed prefix by one chunk and return it."""
        self.revealed_length = min(len(self.full_text), self.revealed_length + chunk_size)
        self.ticks += 1
        return self.text


class RevealEngine:
    """Run at most one reveal at a time, process wide."""

    def __init__(
        self,
        state: AppState,
        hub: EventHub,
        *,
        chunk_size: int = 15,
        tick_interval: float = 0.015,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive.")
        self.state = state
        self.hub = hub
        self.chunk_size = chunk_size
        self.tick_interval = tick_interval
        self._sleep = sleep
        self._current: Optional[RevealState] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def current(self) -> Optional[RevealState]:
        return self._current

    @property
    def active_timers(self) -> int:
        return 1 if self._task is not None and not self._task.done() else 0

    def start(self, conversation_id: str, index: int, text: str) -> RevealState:
        """Replace any reveal in flight with a new one for this message slot."""
        self.stop()
        reveal = RevealState(conversation_id=conversation_id, index=index, full_text=text)
        self._current = reveal
        self._set_typing(True)
        self._task = asyncio.create_task(self._run(reveal))
        return reveal

    def stop(self) -> None:
        """Cancel the active reveal; the stored message is shown in full afterwards."""
        reveal, task = self._current, self._task
        if reveal is not None and reveal.active:
            reveal.active = False
            self._publish(reveal, done=True)
        if task is not None and not task.done():
            task.cancel()
        self._task = None
        self._set_typing(False)

    async def wait(self) -> None:
        """Wait for the current reveal to finish or be cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def displayed_text(self, conversation_id: str, index: int) -> Optional[str]:
        """Partial text for a slot being revealed, else None."""
        reveal = self._current
        if reveal is None or not reveal.active:
            return None
        if reveal.conversation_id != conversation_id or reveal.index != index:
            return None
        return reveal.text

    def render(self, conversation: Conversation) -> Dict[str, Any]:
        """Serialize a conversation, adding `display` to the slot being revealed."""
        payload = conversation.to_dict()
        for index, message in enumerate(payload["messages"]):
            partial = self.displayed_text(conversation.id, index)
            if partial is not None:
                message["display"] = partial
        return payload

    def _set_typing(self, typing: bool) -> None:
        if self.state.typing == typing:
            return
        self.state.typing = typing
        self.hub.publish({"type": "chat.state", **self.state.to_dict()})

    async def _run(self, reveal: RevealState) -> None:
        while reveal.active and not reveal.finished:
            await self._sleep(self.tick_interval)
            if not reveal.active:
                return
            reveal.advance(self.chunk_size)
            self._publish(reveal, done=reveal.finished)
        if reveal.active:
            if reveal.ticks == 0:
                self._publish(reveal, done=True)
            reveal.active = False
            if self._current is reveal:
                self._set_typing(False)
            logger.debug("Reveal of %s[%d] finished after %d ticks", reveal.conversation_id, reveal.index, reveal.ticks)

    def _publish(self, reveal: RevealState, *, done: bool) -> None:
        self.hub.publish(
            {
                "type": "reveal.update",
                "conversation_id": reveal.conversation_id,
                "index": reveal.index,
                "text": reveal.full_text if done else reveal.text,
                "done": done,
            }
        )
