from typing import Callable, Dict, List, Set
import asyncio
import logging
logger = logging.getLogger(__name__)


class EventEmitter:
    """
    Simple event emitter for store and status events.

    Listeners run synchronously in emit order, so a subscriber always
    observes every intermediate state. Coroutine listeners are scheduled
    on the running loop.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._pending: Set[asyncio.Task] = set()

    def on(self, event_name: str, callback: Callable) -> Callable[[], None]:
        """Subscribe to an event. Returns a callable that unsubscribes."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)
        return lambda: self.off(event_name, callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                if asyncio.iscoroutinefunction(callback):
                    self._schedule(event_name, callback(*args, **kwargs))
                else:
                    callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")

    def _schedule(self, event_name: str, coro):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.error(f"Async listener for {event_name} skipped: no running event loop")
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_listener_done(event_name, t))

    def _on_listener_done(self, event_name: str, task: asyncio.Task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Error in event listener for {event_name}: {task.exception()}")

    async def drain(self):
        """Wait for scheduled coroutine listeners to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
