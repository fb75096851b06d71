"""In-process publish/subscribe hub for entity change events.

Delivery is fire-and-forget: ``publish`` never blocks and never raises to the
caller.  Each subscriber owns a bounded queue; when it is full the event is
dropped for that subscriber only.  Nothing is logged for replay, so a client
that connects after an event was published never sees it.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable

import structlog

from app.schemas.events import ChangeEvent

logger = structlog.get_logger("farmlink.notifier")


class Subscription:
	"""A single connected consumer with an optional channel filter."""

	def __init__(self, channels: Iterable[str] | None, maxsize: int):
		self.id = uuid.uuid4()
		self.channels: frozenset[str] | None = None
		self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)
		self.dropped = 0
		self.closed = False
		self.set_channels(channels)

	def set_channels(self, channels: Iterable[str] | None) -> None:
		# An empty or missing filter means "everything".
		normalized = frozenset(channels or ())
		self.channels = normalized or None

	def accepts(self, channel: str) -> bool:
		return self.channels is None or channel in self.channels

	async def get(self, timeout: float | None = None) -> ChangeEvent | None:
		try:
			return await asyncio.wait_for(self.queue.get(), timeout=timeout)
		except TimeoutError:
			return None

	def drain(self) -> list[ChangeEvent]:
		events: list[ChangeEvent] = []
		while not self.queue.empty():
			events.append(self.queue.get_nowait())
		return events


class ChangeNotifier:
	"""Broadcast hub: one publisher side (the store), many subscribers."""

	def __init__(self, queue_size: int = 256):
		self.queue_size = queue_size
		self._subscribers: dict[uuid.UUID, Subscription] = {}

	@property
	def subscriber_count(self) -> int:
		return len(self._subscribers)

	def subscribe(self, channels: Iterable[str] | None = None) -> Subscription:
		subscription = Subscription(channels, self.queue_size)
		self._subscribers[subscription.id] = subscription
		logger.info(
			"subscriber_connected",
			subscription_id=str(subscription.id),
			channels=sorted(subscription.channels) if subscription.channels else None,
		)
		return subscription

	def unsubscribe(self, subscription: Subscription) -> None:
		subscription.closed = True
		if self._subscribers.pop(subscription.id, None) is not None:
			logger.info(
				"subscriber_disconnected",
				subscription_id=str(subscription.id),
				dropped=subscription.dropped,
			)

	def publish(self, event: ChangeEvent) -> int:
		"""Enqueue ``event`` for every matching subscriber; return the delivery count."""
		delivered = 0
		for subscription in list(self._subscribers.values()):
			if subscription.closed or not subscription.accepts(event.event):
				continue
			try:
				subscription.queue.put_nowait(event)
			except asyncio.QueueFull:
				subscription.dropped += 1
				logger.warning(
					"subscriber_queue_full",
					subscription_id=str(subscription.id),
					channel=event.event,
				)
				continue
			delivered += 1
		return delivered
