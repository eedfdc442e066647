"""Event bus connecting sessions to the host."""

import asyncio
from typing import Any, Callable, Dict, List, Set

from pydantic import BaseModel

from .util.log import Log, LogLevel

# Event names
NOTIFY = "roslyn.notify"
INITIALIZED = "roslyn.initialized"
DIAGNOSTICS = "roslyn.diagnostics"
SESSION_STOPPED = "roslyn.session.stopped"

TITLE = "roslyn"


class Event(BaseModel):
    """Base event class."""

    type: str
    properties: Dict[str, Any]


class EventBus:
    """Simple event bus for pub/sub communication."""

    _log = Log.create({"service": "bus"})

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}
        self._async_subscribers: Dict[str, List[Callable[[Event], Any]]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, event_type: str, handler: Callable[[Event], None]) -> Callable[[], None]:
        """Subscribe to an event type. Returns unsubscribe function."""
        return self._add(self._subscribers, event_type, handler)

    def subscribe_async(self, event_type: str, handler: Callable[[Event], Any]) -> Callable[[], None]:
        """Subscribe with a coroutine handler. Returns unsubscribe function."""
        return self._add(self._async_subscribers, event_type, handler)

    @staticmethod
    def _add(table: Dict[str, List[Callable]], event_type: str, handler: Callable) -> Callable[[], None]:
        table.setdefault(event_type, []).append(handler)

        def unsubscribe():
            try:
                table.get(event_type, []).remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event_type: str, properties: Dict[str, Any]) -> None:
        """
        Publish an event synchronously.

        Coroutine subscribers are scheduled on the running loop when there is one.
        """
        event = Event(type=event_type, properties=properties)

        for handler in list(self._subscribers.get(event_type, [])):
            try:
                handler(event)
            except Exception as e:
                self._log.error("subscriber failed", {"event": event_type, "error": str(e)})

        async_handlers = self._async_subscribers.get(event_type, [])
        if not async_handlers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._log.warn("no running loop for async subscribers", {"event": event_type})
            return
        for handler in list(async_handlers):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    task = loop.create_task(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
            except Exception as e:
                self._log.error("subscriber failed", {"event": event_type, "error": str(e)})

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._log.error("subscriber failed", {"error": str(task.exception())})

    async def publish_async(self, event_type: str, properties: Dict[str, Any]) -> None:
        """Publish an event and wait for async subscribers."""
        event = Event(type=event_type, properties=properties)

        for handler in list(self._subscribers.get(event_type, [])):
            try:
                handler(event)
            except Exception as e:
                self._log.error("subscriber failed", {"event": event_type, "error": str(e)})

        tasks = []
        for handler in list(self._async_subscribers.get(event_type, [])):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    tasks.append(result)
            except Exception as e:
                self._log.error("subscriber failed", {"event": event_type, "error": str(e)})

        if tasks:
            for result in await asyncio.gather(*tasks, return_exceptions=True):
                if isinstance(result, Exception):
                    self._log.error("subscriber failed", {"event": event_type, "error": str(result)})

    def notify(self, message: str, level: LogLevel = LogLevel.INFO, title: str = TITLE) -> None:
        """Publish a user-visible message."""
        self.publish(NOTIFY, {"message": message, "level": LogLevel(level).value, "title": title})


# Global event bus instance
Bus = EventBus()
