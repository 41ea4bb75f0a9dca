"""In-memory conversation collection, the single source of truth for chats."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from models.conversation_models import Conversation, Message, title_for

ChangeListener = Callable[[List[Dict[str, Any]]], None]


class ConversationStore:
	"""Ordered conversations (newest first) plus the current selection.

	Every operation is synchronous and total: unknown ids and out-of-range
	indexes are ignored rather than raised.
	"""

	def __init__(self) -> None:
		self._conversations: List[Conversation] = []
		self._current_id: Optional[str] = None
		self._listeners: List[ChangeListener] = []
		self._last_id = 0

	@property
	def conversations(self) -> List[Conversation]:
		return list(self._conversations)

	@property
	def current_id(self) -> Optional[str]:
		return self._current_id

	@property
	def current(self) -> Optional[Conversation]:
		return self.get(self._current_id) if self._current_id else None

	def get(self, conversation_id: str) -> Optional[Conversation]:
		for conversation in self._conversations:
			if conversation.id == conversation_id:
				return conversation
		return None

	def subscribe(self, listener: ChangeListener) -> None:
		"""Register a callback invoked with the serialized collection after each mutation."""
		self._listeners.append(listener)

	def load(self, conversations: Iterable[Conversation]) -> None:
		"""Replace the collection with persisted conversations."""
		self._conversations = list(conversations)
		numeric_ids = [int(c.id) for c in self._conversations if c.id.isdigit()]
		self._last_id = max(numeric_ids, default=0)
		if self._conversations:
			self._current_id = self._conversations[0].id
			self._changed()
		else:
			self.create_conversation()

	def create_conversation(self) -> Conversation:
		"""Make a fresh empty conversation current, reusing an empty head."""
		if self._conversations and self._conversations[0].is_empty:
			head = self._conversations[0]
			self._current_id = head.id
			return head
		conversation = Conversation(id=self._next_id())
		self._conversations.insert(0, conversation)
		self._current_id = conversation.id
		self._changed()
		return conversation

	def select(self, conversation_id: str) -> Optional[Conversation]:
		conversation = self.get(conversation_id)
		if conversation is not None:
			self._current_id = conversation.id
		return conversation

	def delete_conversation(self, conversation_id: str) -> None:
		conversation = self.get(conversation_id)
		if conversation is None:
			return
		self._conversations.remove(conversation)
		if self._current_id == conversation_id:
			if self._conversations:
				self._current_id = self._conversations[0].id
			else:
				self._current_id = None
				self.create_conversation()
				return
		self._changed()

	def update_messages(self, conversation_id: str, messages: Iterable[Message]) -> Optional[Conversation]:
		"""Replace the message sequence and recompute the title."""
		conversation = self.get(conversation_id)
		if conversation is None:
			return None
		conversation.messages = list(messages)
		conversation.title = title_for(conversation.messages)
		self._changed()
		return conversation

	def append_message(self, conversation_id: str, message: Message) -> Optional[Conversation]:
		conversation = self.get(conversation_id)
		if conversation is None:
			return None
		return self.update_messages(conversation_id, [*conversation.messages, message])

	def toggle_liked(self, conversation_id: str, index: int) -> Optional[Message]:
		return self._replace_message(conversation_id, index, Message.with_liked_toggled)

	def toggle_disliked(self, conversation_id: str, index: int) -> Optional[Message]:
		return self._replace_message(conversation_id, index, Message.with_disliked_toggled)

	def snapshot(self) -> List[Dict[str, Any]]:
		return [conversation.to_dict() for conversation in self._conversations]

	def _replace_message(
		self,
		conversation_id: str,
		index: int,
		transform: Callable[[Message], Message],
	) -> Optional[Message]:
		conversation = self.get(conversation_id)
		if conversation is None or not 0 <= index < len(conversation.messages):
			return None
		messages = list(conversation.messages)
		messages[index] = transform(messages[index])
		self.update_messages(conversation_id, messages)
		return messages[index]

	def _next_id(self) -> str:
		# Creation-time millisecond timestamp, bumped when two chats share a tick.
		candidate = int(time.time() * 1000)
		if candidate <= self._last_id:
			candidate = self._last_id + 1
		self._last_id = candidate
		return str(candidate)

	def _changed(self) -> None:
		snapshot = self.snapshot()
		for listener in self._listeners:
			listener(snapshot)
