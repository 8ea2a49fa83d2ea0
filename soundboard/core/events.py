"""Listener registration shared by the playback backends."""
import inspect
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Named events; listeners may be plain callables or coroutine functions."""

    events: tuple = ()

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}

    def add_listener(self, event: str, listener: Listener) -> None:
        if event not in self.events:
            raise ValueError(f"unknown event {event!r}")
        self._listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event) or []
        if listener in listeners:
            listeners.remove(listener)

    async def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event) or []):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for %s failed", event)
