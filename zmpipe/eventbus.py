"""Thread-safe in-process publish/subscribe bus."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable, ClassVar, Optional

Callback = Callable[[str], None]


class EventBus:
    """Delivers messages published on a channel to its subscribers."""

    _instance: ClassVar[Optional["EventBus"]] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._subscribers: defaultdict[str, list[Callback]] = defaultdict(list)
        self._lock = threading.Lock()

    @classmethod
    def instance(cls) -> "EventBus":
        """Return the process-wide bus."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def subscribe(self, channel: str, callback: Callback) -> None:
        """Register ``callback`` for messages on ``channel``."""
        with self._lock:
            self._subscribers[channel].append(callback)

    def publish(self, channel: str, message: str) -> None:
        """Call every subscriber of ``channel`` with ``message``."""
        with self._lock:
            callbacks = list(self._subscribers.get(channel, ()))
        for callback in callbacks:
            callback(message)