"""Listenable event channels used for child process streams and lifecycle."""

from __future__ import annotations

from collections.abc import Callable
from threading import RLock
from typing import TypeAlias

import structlog

logger = structlog.get_logger(__name__)

Listener: TypeAlias = Callable[..., object]


class EventTarget:
    """Push-based event channel with per-event listener lists.

    Emission snapshots the listener list first, so listeners may detach
    themselves (or others) while an event is being delivered.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.setdefault(event, [])
            if listener not in listeners:
                listeners.append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Detach one listener. Unknown listeners are ignored."""

        with self._lock:
            listeners = self._listeners.get(event)
            if not listeners:
                return
            try:
                listeners.remove(listener)
            except ValueError:
                return
            if not listeners:
                del self._listeners[event]

    def once(self, event: str, listener: Listener) -> Listener:
        """Attach a listener that detaches itself after its first delivery."""

        def _wrapper(*args: object) -> None:
            self.off(event, _wrapper)
            listener(*args)

        self.on(event, _wrapper)
        return _wrapper

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: object) -> None:
        with self._lock:
            listeners = tuple(self._listeners.get(event, ()))

        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.warning("Event listener failed.", event_name=event, exc_info=True)


def on(target: EventTarget, event: str, listener: Listener) -> None:
    target.on(event, listener)


def off(target: EventTarget, event: str, listener: Listener) -> None:
    target.off(event, listener)


def once(target: EventTarget, event: str, listener: Listener) -> Listener:
    return target.once(event, listener)


def emit(target: EventTarget, event: str, *args: object) -> None:
    target.emit(event, *args)
