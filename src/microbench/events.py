"""Lifecycle events shared by benchmark runs and suites."""

from __future__ import annotations

import enum
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    ADD = "add"
    START = "start"
    CYCLE = "cycle"
    ERROR = "error"
    ABORT = "abort"
    RESET = "reset"
    COMPLETE = "complete"


@dataclass
class Event:
    """An event delivered to listeners.

    Attributes:
        type: Event type.
        target: Object the event concerns (a run, or a suite).
        current_target: Object whose listeners are being invoked.
        timestamp: Wall-clock creation time.
        cancelled: Set when a listener returns ``False``; vetoes the default action.
        aborted: Set by a listener to stop the remaining listeners.
        message: Error carried by ``error`` events.
        result: Return value of the last listener called.
    """

    type: EventType
    target: Any = None
    current_target: Any = None
    timestamp: float = field(default_factory=time.time)
    cancelled: bool = False
    aborted: bool = False
    message: BaseException | None = None
    result: Any = None


Listener = Callable[[Event], Any]


class EventEmitter:
    """Mixin holding per-type listener lists."""

    def __init__(self) -> None:
        self._events: dict[EventType, list[Listener]] = {}

    def listeners(self, type: EventType) -> list[Listener]:
        """Mutable listener list for ``type``."""
        return self._events.setdefault(type, [])

    def on(self, type: EventType, listener: Listener) -> EventEmitter:
        self.listeners(type).append(listener)
        return self

    def off(
        self, type: EventType | None = None, listener: Listener | None = None
    ) -> EventEmitter:
        """Unregister ``listener``, all listeners of ``type``, or everything."""
        types = [type] if type is not None else list(self._events)
        for t in types:
            registered = self._events.get(t)
            if not registered:
                continue
            if listener is None:
                registered.clear()
            elif listener in registered:
                registered.remove(listener)
        return self

    def emit(self, event: Event | EventType) -> Event:
        """Call listeners in registration order until one aborts the event.

        Args:
            event: Event to deliver, or a bare type to wrap.

        Returns:
            The delivered event, with ``cancelled``/``aborted`` flags set by listeners.
        """
        if isinstance(event, EventType):
            event = Event(event)
        if event.target is None:
            event.target = self
        event.current_target = self
        event.result = None

        for listener in list(self._events.get(event.type, ())):
            event.result = listener(event)
            if event.result is False:
                event.cancelled = True
            if event.aborted:
                break
        return event
