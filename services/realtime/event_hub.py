"""Fan out engine events to every connected websocket."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List


class EventHub:
	"""Publish-subscribe over per-subscriber asyncio queues.

	`publish` never blocks, so the dispatcher and reveal engine can emit
	events from synchronous code paths.
	"""

	def __init__(self) -> None:
		self._subscribers: List[asyncio.Queue] = []

	def subscribe(self) -> asyncio.Queue:
		queue: asyncio.Queue = asyncio.Queue()
		self._subscribers.append(queue)
		return queue

	def unsubscribe(self, queue: asyncio.Queue) -> None:
		if queue in self._subscribers:
			self._subscribers.remove(queue)

	def publish(self, event: Dict[str, Any]) -> None:
		for queue in list(self._subscribers):
			queue.put_nowait(event)

	def toast(self, message: str) -> None:
		"""Publish a short transient notification."""
		self.publish({"type": "toast", "message": message})
