"""Per-turn request orchestration: pick an operation, call the API, record the reply."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from models.app_state import AppState
from models.conversation_models import Message, Mode, PendingAttachment, Role
from services.chat.completion_service import ChatCompletionService
from services.chat.context_builder import CONTEXT_LIMIT, build_context
from services.chat.image_url import build_image_url
from services.chat.media_inputs import build_user_content, system_message, to_image_data_url
from services.chat.prompts import FALLBACK_IMAGE_PROMPT, image_edit_prompt, image_prompt_author_prompt
from services.chat.reveal_engine import RevealEngine
from services.conversation_store import ConversationStore
from services.realtime.event_hub import EventHub
from utils.errors import AssistantError, MalformedResponse, TurnInProgressError

logger = logging.getLogger(__name__)

FAILURE_TOAST = "Something went wrong. Please try again."
STICKERS = ("✨", "🚀", "🤖", "💡", "🔥", "💎", "🌟", "🌈")


class TurnOperation(str, Enum):
    PLAIN_CHAT = "plain_chat"
    VISION_CHAT = "vision_chat"
    IMAGE_AUTHOR = "image_author"
    IMAGE_EDIT = "image_edit"


class TurnStatus(str, Enum):
    IDLE = "idle"
    INFLIGHT = "inflight"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def select_operation(mode: Mode, attachment: Optional[PendingAttachment]) -> TurnOperation:
    """Resolve the remote operation for a turn from its mode and attachment."""
    if mode == Mode.IMAGE:
        return TurnOperation.IMAGE_EDIT if attachment else TurnOperation.IMAGE_AUTHOR
    return TurnOperation.VISION_CHAT if attachment else TurnOperation.PLAIN_CHAT


@dataclass
class Turn:
    """Inputs captured at send time plus the outcome of one turn."""

    conversation_id: str
    text: str
    mode: Mode
    operation: TurnOperation
    history: Tuple[Message, ...]
    attachment: Optional[PendingAttachment] = None
    status: TurnStatus = TurnStatus.IDLE
    reply: Optional[Message] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def inflight(self) -> bool:
        return self.status == TurnStatus.INFLIGHT

    async def wait(self) -> "Turn":
        if self.task is not None:
            try:
                await self.task
            except asyncio.CancelledError:
                if not self.task.cancelled():
                    raise
        return self


class RequestDispatcher:
    """Run one chat turn at a time against the remote API.

    A turn appends the user message before its request is dispatched and
    appends at most one assistant message. Cancelled or failed turns append
    nothing, and `loading` is always cleared when the turn ends.
    """

    def __init__(
        self,
        store: ConversationStore,
        state: AppState,
        hub: EventHub,
        completions: ChatCompletionService,
        reveal: RevealEngine,
        *,
        context_limit: int = CONTEXT_LIMIT,
        decoration_probability: float = 0.3,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.state = state
        self.hub = hub
        self.completions = completions
        self.reveal = reveal
        self.context_limit = context_limit
        self.decoration_probability = decoration_probability
        self._rng = rng or random.Random()
        self._current: Optional[Turn] = None
        self._operations: Dict[TurnOperation, Callable[[Turn], Awaitable[Message]]] = {
            TurnOperation.PLAIN_CHAT: self._plain_chat,
            TurnOperation.VISION_CHAT: self._vision_chat,
            TurnOperation.IMAGE_AUTHOR: self._image_author,
            TurnOperation.IMAGE_EDIT: self._image_edit,
        }

    @property
    def current_turn(self) -> Optional[Turn]:
        return self._current

    def submit(self, text: str) -> Optional[Turn]:
        """Record the user message and start the turn in the background.

        Returns None when there is nothing to send.

        Raises:
            TurnInProgressError: when the previous turn has not finished.
        """
        if self.state.loading:
            raise TurnInProgressError("A request is already in progress.")

        text_snapshot = text or ""
        if not text_snapshot.strip() and self.state.pending_attachment is None:
            return None
        attachment = self.state.take_attachment()
        mode = self.state.mode

        # A reply still typing out must not interleave with the next one.
        self.reveal.stop()

        conversation = self.store.current or self.store.create_conversation()
        user_message = Message(
            role=Role.USER,
            content=text_snapshot,
            image=attachment.data_uri if attachment else None,
            image_mime=attachment.mime if attachment else None,
            image_base64=attachment.base64 if attachment else None,
        )
        conversation = self.store.append_message(conversation.id, user_message)

        turn = Turn(
            conversation_id=conversation.id,
            text=text_snapshot,
            mode=mode,
            operation=select_operation(mode, attachment),
            history=tuple(conversation.messages),
            attachment=attachment,
            status=TurnStatus.INFLIGHT,
        )
        self._current = turn
        self.state.loading = True
        self._publish_state()
        self.hub.publish({"type": "conversation.updated", "conversation": conversation.to_dict()})
        turn.task = asyncio.create_task(self._run(turn))
        turn.task.add_done_callback(lambda _task: self._settle(turn))
        return turn

    async def send(self, text: str) -> Optional[Turn]:
        """Submit a turn and wait for it to finish."""
        turn = self.submit(text)
        if turn is not None:
            await turn.wait()
        return turn

    def cancel(self) -> bool:
        """Stop the in-flight request and any running reveal.

        Returns True when a request was in flight.
        """
        self.reveal.stop()
        turn = self._current
        if turn is None or not turn.inflight or turn.task is None:
            return False
        turn.task.cancel()
        return True

    async def _run(self, turn: Turn) -> None:
        try:
            reply = await self._operations[turn.operation](turn)
        except asyncio.CancelledError:
            turn.status = TurnStatus.CANCELLED
            logger.debug("Turn in %s cancelled by user", turn.conversation_id)
            raise
        except AssistantError as exc:
            turn.status = TurnStatus.FAILED
            logger.error("%s turn failed: %s", turn.operation.value, exc)
            self.hub.toast(FAILURE_TOAST)
        except Exception:
            turn.status = TurnStatus.FAILED
            logger.exception("Unexpected failure during %s turn", turn.operation.value)
            self.hub.toast(FAILURE_TOAST)
        else:
            self._complete(turn, reply)
        finally:
            self.state.loading = False
            self._publish_state()

    def _settle(self, turn: Turn) -> None:
        # A task cancelled before its first step never enters _run, so its
        # finally clause cannot clear the loading flag.
        if turn.inflight:
            turn.status = TurnStatus.CANCELLED
        if self._current is turn and self.state.loading:
            self.state.loading = False
            self._publish_state()

    def _complete(self, turn: Turn, reply: Message) -> None:
        conversation = self.store.append_message(turn.conversation_id, reply)
        turn.reply = reply
        turn.status = TurnStatus.COMPLETED
        if conversation is None:
            logger.info("Conversation %s was deleted before its reply arrived", turn.conversation_id)
            return
        index = len(conversation.messages) - 1
        if not reply.is_image:
            display = f"{reply.content} {reply.decoration}" if reply.decoration else reply.content
            self.reveal.start(conversation.id, index, display)
        self.hub.publish({"type": "conversation.updated", "conversation": self.reveal.render(conversation)})

    async def _plain_chat(self, turn: Turn) -> Message:
        messages = build_context(turn.history, turn.mode, limit=self.context_limit)
        return self._text_reply(await self.completions.complete(messages))

    async def _vision_chat(self, turn: Turn) -> Message:
        messages = build_context(turn.history, turn.mode, turn.attachment, limit=self.context_limit)
        return self._text_reply(await self.completions.complete(messages))

    async def _image_author(self, turn: Turn) -> Message:
        messages = [
            system_message(image_prompt_author_prompt()),
            {"role": "user", "content": turn.text.strip()},
        ]
        return self._image_reply(await self.completions.complete(messages))

    async def _image_edit(self, turn: Turn) -> Message:
        attachment = turn.attachment
        image_url = to_image_data_url(attachment.base64, attachment.mime)
        messages = [
            system_message(image_edit_prompt()),
            {"role": "user", "content": build_user_content(turn.text.strip() or FALLBACK_IMAGE_PROMPT, image_url)},
        ]
        return self._image_reply(await self.completions.complete(messages))

    def _text_reply(self, text: str) -> Message:
        decoration = None
        if self._rng.random() < self.decoration_probability:
            decoration = self._rng.choice(STICKERS)
        return Message(role=Role.ASSISTANT, content=text, decoration=decoration)

    def _image_reply(self, expanded_prompt: str) -> Message:
        try:
            url = build_image_url(expanded_prompt)
        except ValueError as exc:
            raise MalformedResponse("Prompt expansion returned no usable text.") from exc
        return Message(role=Role.ASSISTANT, content=url, is_image=True)

    def _publish_state(self) -> None:
        self.hub.publish({"type": "chat.state", **self.state.to_dict()})
