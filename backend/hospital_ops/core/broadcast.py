from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class ListenerRegistry(Generic[T]):
    """Ordered registry of synchronous listeners.

    ``emit`` calls every listener in registration order on the caller's
    thread before returning. A failing listener is logged and skipped so the
    remaining listeners still see the update.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self._listeners = [
                registered for registered in self._listeners if registered is not listener
            ]

        return unsubscribe

    def emit(self, payload: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener %r for %s failed", listener, self._name)

    def __len__(self) -> int:
        return len(self._listeners)
