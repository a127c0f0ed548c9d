"""
Discovery sink for a spider session.

Events are buffered in a queue and delivered to subscribers on a dedicated
dispatcher thread, so a slow or failing subscriber never blocks the crawl.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from queue import Queue
from typing import Callable, Dict, List, Optional

from linkspider.core import logger
from linkspider.models import CrawlResult


@dataclass(frozen=True)
class SpiderEvent:
    timestamp: datetime = field(default_factory=datetime.now, kw_only=True)

    @property
    def event_type(self) -> str:
        return self.__class__.__name__


@dataclass(frozen=True)
class ResourceDiscovered(SpiderEvent):
    """A URL passed admission and became a crawl task."""
    url: str
    depth: int
    discovered_from: Optional[str] = None


@dataclass(frozen=True)
class TaskCompleted(SpiderEvent):
    result: CrawlResult


_STOP = object()


class EventPublisher:
    """
    FLOW: publish() buffers the event -> dispatcher thread pops it ->
    Calls every handler subscribed to its event type -> Logs (never raises) handler failures.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}
        self._handlers_lock = threading.Lock()
        self._queue = Queue()
        self._thread = None

    def subscribe(self, event_type, handler: Callable) -> None:
        """Subscribe by event class or by its name ("ResourceDiscovered")."""
        if isinstance(event_type, type):
            event_type = event_type.__name__
        with self._handlers_lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"subscribed handler to {event_type}")

    def unsubscribe(self, event_type, handler: Callable) -> None:
        if isinstance(event_type, type):
            event_type = event_type.__name__
        with self._handlers_lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    def publish(self, event: SpiderEvent) -> None:
        if self._thread is None:
            self._deliver(event)
            return
        self._queue.put(event)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="EventPublisher", daemon=True)
        self._thread.start()

    def close(self, timeout: Optional[float] = None) -> None:
        """Deliver everything still buffered, then stop the dispatcher thread."""
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def _run(self):
        while True:
            event = self._queue.get()
            if event is _STOP:
                break
            self._deliver(event)

    def _deliver(self, event):
        with self._handlers_lock:
            handlers = list(self._handlers.get(event.event_type, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"event handler failed for {event.event_type}: {e}")
