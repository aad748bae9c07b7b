"""Event buses that carry build events to the console and the journal."""

from collections.abc import Callable
from typing import Protocol

from mason.builder.events import BaseBuildEvent, BuildEventType

SyncHandler = Callable[[BaseBuildEvent], None]


class EventBus(Protocol):
    """What the builder components need from a bus."""

    def emit(self, event: BaseBuildEvent) -> None: ...

    def subscribe(
        self,
        handler: SyncHandler,
        event_types: list[BuildEventType] | None = None,
    ) -> None: ...


class LocalEventBus:
    """In-process bus owned by one BuildManager.

    Delivery is synchronous, in subscription order. A handler registered
    with event_types only sees those types.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[SyncHandler, list[BuildEventType] | None]] = []

    def emit(self, event: BaseBuildEvent) -> None:
        for handler, wanted in self._subscribers:
            if wanted is None or event.event_type in wanted:
                handler(event)

    def subscribe(
        self,
        handler: SyncHandler,
        event_types: list[BuildEventType] | None = None,
    ) -> None:
        self._subscribers.append((handler, event_types))

    def unsubscribe(self, handler: SyncHandler) -> None:
        """Drop every subscription of handler."""
        self._subscribers = [entry for entry in self._subscribers if entry[0] != handler]

    def clear(self) -> None:
        self._subscribers.clear()


class NullEventBus:
    """Bus that drops everything; the default when no bus is wired in."""

    def emit(self, event: BaseBuildEvent) -> None:
        return None

    def subscribe(
        self,
        handler: SyncHandler,
        event_types: list[BuildEventType] | None = None,
    ) -> None:
        return None

    def unsubscribe(self, handler: SyncHandler) -> None:
        return None
