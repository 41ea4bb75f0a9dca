"""Conversation domain models shared by the store, dispatcher and persistence."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_TITLE = "New chat"
TITLE_LENGTH = 30


class Role(str, Enum):
	USER = "user"
	ASSISTANT = "assistant"


class Mode(str, Enum):
	"""Mutually exclusive conversational behavior selector."""

	NORMAL = "normal"
	IMAGE = "image"
	CODER = "coder"


def utc_timestamp() -> str:
	return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Message:
	"""One chat message. Replaced, never mutated, once appended."""

	role: Role
	content: str
	image: Optional[str] = None
	image_mime: Optional[str] = None
	image_base64: Optional[str] = None
	timestamp: str = field(default_factory=utc_timestamp)
	liked: bool = False
	disliked: bool = False
	is_image: bool = False
	decoration: Optional[str] = None

	def with_liked_toggled(self) -> "Message":
		return replace(self, liked=not self.liked, disliked=False)

	def with_disliked_toggled(self) -> "Message":
		return replace(self, disliked=not self.disliked, liked=False)

	def to_dict(self) -> Dict[str, Any]:
		"""Serialize using the front-end's camelCase keys."""
		payload: Dict[str, Any] = {
			"role": self.role.value,
			"content": self.content,
			"image": self.image,
			"imageMime": self.image_mime,
			"imageBase64": self.image_base64,
			"timestamp": self.timestamp,
			"liked": self.liked,
			"disliked": self.disliked,
			"isImage": self.is_image,
		}
		if self.decoration:
			payload["decoration"] = self.decoration
		return payload

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Message":
		liked = bool(data.get("liked"))
		disliked = bool(data.get("disliked")) and not liked
		return cls(
			role=Role(data["role"]),
			content=data.get("content") or "",
			image=data.get("image"),
			image_mime=data.get("imageMime") or data.get("imageType"),
			image_base64=data.get("imageBase64"),
			timestamp=data.get("timestamp") or utc_timestamp(),
			liked=liked,
			disliked=disliked,
			is_image=bool(data.get("isImage")),
			decoration=data.get("decoration"),
		)


@dataclass(frozen=True)
class PendingAttachment:
	"""Image selected by the user for the next turn."""

	data_uri: str
	base64: str
	mime: str

	def to_dict(self) -> Dict[str, Any]:
		return {"dataUri": self.data_uri, "mime": self.mime}


def title_for(messages: List[Message]) -> str:
	"""Return the conversation title derived from the first message."""
	if not messages:
		return DEFAULT_TITLE
	title = messages[0].content.strip()[:TITLE_LENGTH]
	return title or DEFAULT_TITLE


@dataclass
class Conversation:
	"""Ordered sequence of messages with a derived title."""

	id: str
	title: str = DEFAULT_TITLE
	messages: List[Message] = field(default_factory=list)

	@property
	def is_empty(self) -> bool:
		return not self.messages

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"title": self.title,
			"messages": [message.to_dict() for message in self.messages],
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
		messages = [Message.from_dict(item) for item in data.get("messages") or []]
		return cls(id=str(data["id"]), title=title_for(messages), messages=messages)
