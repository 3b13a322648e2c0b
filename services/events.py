"""Ordered observer registry with handle-based unsubscribe."""

from __future__ import annotations

import itertools
from typing import Callable, Dict, Generic, List, TypeVar

from core.log import get_logger


T = TypeVar("T")


class ObserverRegistry(Generic[T]):
    """Listeners are notified in subscription order.

    ``subscribe`` returns an integer handle; the same callable may be
    registered twice and each registration is removed independently.
    """

    def __init__(self, name: str = "events") -> None:
        self._listeners: Dict[int, Callable[[T], None]] = {}
        self._counter = itertools.count(1)
        self._logger = get_logger(name)

    def subscribe(self, callback: Callable[[T], None]) -> int:
        handle = next(self._counter)
        self._listeners[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> bool:
        return self._listeners.pop(handle, None) is not None

    def emit(self, value: T) -> None:
        for handle, listener in list(self._listeners.items()):
            try:
                listener(value)
            except Exception:
                self._logger.exception("Listener %s failed", handle)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


__all__ = ["ObserverRegistry"]
