from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from selector.events import (
    PROGRESS,
    SELECTION,
    STATE,
    EventBus,
    ProgressEvent,
    SelectionChangeEvent,
    StateChangeEvent,
)
from selector.models import PolyLine, SelectionState


class TestEventModels:
    def test_progress_percent(self):
        event = ProgressEvent(done=3, total=4, fraction=0.75)
        assert event.percent == 75
        assert event.model_dump()["percent"] == 75

    def test_events_are_frozen(self):
        event = StateChangeEvent(old_state=SelectionState.SELECTING, new_state=SelectionState.SELECTED)
        with pytest.raises(ValidationError):
            event.new_state = SelectionState.NO_SELECTION

    def test_selection_event_keeps_segments(self):
        seg = PolyLine.straight((0, 0), (1, 1))
        event = SelectionChangeEvent(segments=(seg,), closed=False)
        assert event.segments[0] is seg


class TestEventBus:
    def test_publish_in_subscription_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(STATE, lambda e: calls.append("a"))
        bus.subscribe(STATE, lambda e: calls.append("b"))
        bus.publish(STATE, StateChangeEvent(old_state=SelectionState.NO_SELECTION,
                                            new_state=SelectionState.SELECTING))
        assert calls == ["a", "b"]

    def test_topics_are_separate(self):
        bus = EventBus()
        listener = MagicMock()
        bus.subscribe(PROGRESS, listener)
        bus.publish(SELECTION, SelectionChangeEvent())
        listener.assert_not_called()

    def test_duplicate_subscription_ignored(self):
        bus = EventBus()
        listener = MagicMock()
        bus.subscribe(PROGRESS, listener)
        bus.subscribe(PROGRESS, listener)
        bus.publish(PROGRESS, ProgressEvent())
        assert listener.call_count == 1
        bus.unsubscribe(PROGRESS, listener)
        assert bus.listeners(PROGRESS) == []

    def test_unknown_topic(self):
        bus = EventBus()
        with pytest.raises(ValueError, match="Unknown topic"):
            bus.subscribe("cursor", print)

    def test_failing_listener_logged(self):
        logger = MagicMock()
        bus = EventBus(logger)
        after = MagicMock()
        bus.subscribe(PROGRESS, MagicMock(side_effect=RuntimeError("boom")))
        bus.subscribe(PROGRESS, after)
        bus.publish(PROGRESS, ProgressEvent())
        after.assert_called_once()
        logger.error.assert_called_once()

    def test_failing_listener_without_logger_raises(self):
        bus = EventBus()
        bus.subscribe(PROGRESS, MagicMock(side_effect=RuntimeError("boom")))
        with pytest.raises(RuntimeError):
            bus.publish(PROGRESS, ProgressEvent())
