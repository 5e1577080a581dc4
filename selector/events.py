"""
Event Models for Image Selector

Pydantic models for the notifications a SelectionModel publishes, and the
small publish/subscribe channel that delivers them to UI listeners.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from selector.models import SelectionState

if TYPE_CHECKING:
    from selector.logger import AppLogger


STATE = "state"
PROGRESS = "progress"
SELECTION = "selection"
TOPICS = (STATE, PROGRESS, SELECTION)


class SelectorEvent(BaseModel):
    """Base class for all model notifications."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class StateChangeEvent(SelectorEvent):
    old_state: SelectionState
    new_state: SelectionState


class ProgressEvent(SelectorEvent):
    stage: str = "Searching"
    done: int = 0
    total: int = 1
    fraction: float = 0.0
    eta_seconds: Optional[float] = None
    eta_formatted: str = "—"

    @computed_field
    @property
    def percent(self) -> int:
        return int(round(self.fraction * 100))


class SelectionChangeEvent(SelectorEvent):
    # PolyLine instances; typed loosely so they are passed through untouched.
    segments: tuple[Any, ...] = Field(default_factory=tuple)
    closed: bool = False


Listener = Callable[[SelectorEvent], None]


class EventBus:
    """
    Topic-based listener registry.

    Listeners are called synchronously on the publishing thread, in
    subscription order. A listener that raises is logged and skipped so one
    faulty view cannot break the model.
    """

    def __init__(self, logger: Optional['AppLogger'] = None):
        self.logger = logger
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    @staticmethod
    def _check_topic(topic: str):
        if topic not in TOPICS:
            raise ValueError(f"Unknown topic '{topic}'; expected one of {', '.join(TOPICS)}")

    def subscribe(self, topic: str, listener: Listener) -> None:
        self._check_topic(topic)
        with self._lock:
            if listener not in self._listeners[topic]:
                self._listeners[topic].append(listener)

    def unsubscribe(self, topic: str, listener: Listener) -> None:
        self._check_topic(topic)
        with self._lock:
            if listener in self._listeners[topic]:
                self._listeners[topic].remove(listener)

    def listeners(self, topic: str) -> list[Listener]:
        self._check_topic(topic)
        with self._lock:
            return list(self._listeners[topic])

    def publish(self, topic: str, event: SelectorEvent) -> None:
        for listener in self.listeners(topic):
            try:
                listener(event)
            except Exception as e:
                if self.logger is None:
                    raise
                self.logger.error(f"Listener for '{topic}' failed: {e}", component="events", exc_info=True)
