"""
Engine -> observer event stream.

Events are small frozen records emitted synchronously at each suspension
point, in order. A renderer subscribes to the EventBus and reads them; it
never writes back into the routing tables.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Type, TypeVar

from graph import NodeId
from routing import RoutingEntry

LOGGER = logging.getLogger(__name__)


class Event:
    """Base class for everything the engine emits."""


@dataclass(frozen=True)
class LinkActivated(Event):
    src: NodeId
    dst: NodeId


@dataclass(frozen=True)
class LinkDeactivated(Event):
    src: NodeId
    dst: NodeId


@dataclass(frozen=True)
class NodeActivated(Event):
    node: NodeId


@dataclass(frozen=True)
class NodeDeactivated(Event):
    node: NodeId


@dataclass(frozen=True)
class EntryProcessing(Event):
    node: NodeId
    dest: NodeId


@dataclass(frozen=True)
class EntryUpdated(Event):
    node: NodeId
    dest: NodeId
    entry: RoutingEntry


@dataclass(frozen=True)
class PassStarted(Event):
    pass_number: int
    max_passes: int


@dataclass(frozen=True)
class PassEnded(Event):
    pass_number: int
    changed: bool


@dataclass(frozen=True)
class StatusMessage(Event):
    text: str


@dataclass(frozen=True)
class Converged(Event):
    passes: int = 0


@dataclass(frozen=True)
class Aborted(Event):
    reason: Optional[str] = None


Listener = Callable[[Event], None]
E = TypeVar("E", bound=Event)


class EventBus:
    """
    Synchronous fan-out to subscribed listeners.

    A failing listener is logged and skipped; it must not break the run.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception("event listener failed on %s", type(event).__name__)


class EventLog:
    """
    Listener that records every event; handy for tests and summaries.
    """

    def __init__(self) -> None:
        self.events: List[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, kind: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, kind)]

    def clear(self) -> None:
        self.events.clear()
