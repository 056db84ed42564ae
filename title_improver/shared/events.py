"""
Event System - topic-based publish/subscribe between pipeline stages.

Stages never call each other: each one subscribes to a topic and emits the
next. Two transports share the same contract:

- InMemoryEventBus: FIFO queue in the current process (local runs, tests)
- CeleryEventBus: one Celery task per emitted event, delivered in a worker
"""

from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union
import asyncio
import copy
import logging
import uuid

from common.datetime_utils import utcnow_aware

logger = logging.getLogger(__name__)

DISPATCH_TASK_NAME = "title_improver.dispatch_event"


class Topic(str, Enum):
    """Pipeline topics"""
    SUBMIT = "yt.submit"
    CHANNEL_RESOLVED = "yt.channel.resolved"
    CHANNEL_ERROR = "yt.channel.error"
    VIDEOS_FETCHED = "yt.videos.fetched"
    VIDEOS_ERROR = "yt.videos.error"
    TITLES_READY = "yt.titles.ready"
    TITLES_ERROR = "yt.titles.error"


Handler = Callable[[Dict[str, Any]], Awaitable[None]]


@dataclass
class Event:
    """Envelope around an emitted payload"""
    topic: Topic
    data: Dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow_aware)
    source: str = "title-improver"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic.value,
            "source": self.source,
            "time": self.timestamp.isoformat(),
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        return cls(
            id=data['id'],
            topic=Topic(data['topic']),
            source=data.get('source', 'title-improver'),
            timestamp=datetime.fromisoformat(data['time']),
            data=data['data'],
        )


class EventBus(ABC):
    """
    Base bus: subscriber registry, delivery with error isolation and a
    bounded history of emitted events.

    Subclasses implement ``_publish`` (how an event reaches ``deliver``).
    """

    def __init__(self, history_size: int = 1000):
        self.handlers: Dict[Topic, List[Handler]] = defaultdict(list)
        self.history: Deque[Event] = deque(maxlen=history_size)

    def subscribe(self, topic: Union[Topic, str], handler: Handler):
        """Register ``handler`` for ``topic``. Done once at startup."""
        topic = Topic(topic)
        self.handlers[topic].append(handler)
        logger.info(f"Handler registered for: {topic.value}")

    async def emit(self, topic: Union[Topic, str], payload: Dict[str, Any]) -> None:
        """Fire-and-forget: hands the event to the transport and returns"""
        event = Event(topic=Topic(topic), data=copy.deepcopy(payload))
        self.history.append(event)
        await self._publish(event)
        logger.debug(
            f"📡 Event emitted: {event.topic.value}",
            extra={'topic': event.topic.value, 'job_id': payload.get('jobId')}
        )

    @abstractmethod
    async def _publish(self, event: Event) -> None:
        """Hand ``event`` to the transport"""

    async def deliver(self, topic: Union[Topic, str], payload: Dict[str, Any]) -> int:
        """
        Invoke every subscriber of ``topic`` with ``payload``.

        A handler that raises is logged and the event is dropped for that
        handler; other handlers still run.

        Returns:
            Number of handlers that completed without raising
        """
        topic = Topic(topic)
        handlers = self.handlers.get(topic, [])
        if not handlers:
            logger.debug(f"No handler for topic: {topic.value}")
            return 0

        delivered = 0
        for handler in handlers:
            try:
                await handler(copy.deepcopy(payload))
                delivered += 1
            except Exception as e:
                logger.error(
                    f"❌ Handler {getattr(handler, '__qualname__', handler)} failed on {topic.value}: {e}",
                    exc_info=True,
                    extra={'topic': topic.value, 'job_id': payload.get('jobId')}
                )
        return delivered

    def emitted(self, topic: Optional[Union[Topic, str]] = None) -> List[Event]:
        """Emitted events, optionally filtered by topic"""
        if topic is None:
            return list(self.history)
        topic = Topic(topic)
        return [e for e in self.history if e.topic == topic]


class InMemoryEventBus(EventBus):
    """
    In-process FIFO transport.

    Events are queued on emit and delivered in emission order by ``drain()``.
    With ``auto_drain`` each emit schedules a drain on the running loop; only
    one drainer runs at a time.
    """

    def __init__(self, auto_drain: bool = False, history_size: int = 1000):
        super().__init__(history_size=history_size)
        self.auto_drain = auto_drain
        self.queue: Deque[Event] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None

    async def _publish(self, event: Event) -> None:
        self.queue.append(event)
        if self.auto_drain and not self._draining:
            self._drain_task = asyncio.get_running_loop().create_task(self.drain())

    async def drain(self) -> int:
        """
        Deliver queued events until the queue is empty, including events
        emitted by the handlers themselves.

        Returns:
            Number of events delivered
        """
        if self._draining:
            return 0
        self._draining = True
        count = 0
        try:
            while self.queue:
                event = self.queue.popleft()
                await self.deliver(event.topic, event.data)
                count += 1
        finally:
            self._draining = False
        return count


class CeleryEventBus(EventBus):
    """
    Celery transport: each emit becomes one ``dispatch_event`` task on the
    configured queue. The worker calls ``deliver`` for the topic.
    """

    def __init__(self, celery_app, queue: str, history_size: int = 1000):
        super().__init__(history_size=history_size)
        self.celery_app = celery_app
        self.queue = queue

    async def _publish(self, event: Event) -> None:
        try:
            self.celery_app.send_task(
                DISPATCH_TASK_NAME,
                args=[event.topic.value, event.data],
                queue=self.queue,
            )
        except Exception as e:
            logger.error(f"❌ Failed to send {event.topic.value} to Celery: {e}")
            raise


def get_event_bus(settings) -> EventBus:
    """Build the bus selected by ``EVENT_BUS_BACKEND``"""
    if settings.event_bus_backend == "memory":
        logger.info("Using in-memory event bus")
        return InMemoryEventBus(auto_drain=True)

    from ..infrastructure.celery_config import celery_app
    logger.info(f"Using Celery event bus (queue: {settings.celery_queue})")
    return CeleryEventBus(celery_app, queue=settings.celery_queue)
