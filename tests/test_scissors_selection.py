"""
Tests for the SelectionModel driving intelligent scissors with background searches.
"""
from unittest.mock import MagicMock

import pytest

from selector.error_handling import InvalidIndexError, UnreachableError
from selector.events import PROGRESS, SELECTION, STATE
from selector.models import Point, PolyLine, SelectionState
from selector.selection_model import SelectionModel
from selector.strategies import ScissorsStrategy, make_strategy

CORNERS = [Point(10, 10), Point(29, 10), Point(29, 29), Point(10, 29)]


def assert_closed(model):
    segs = model.segments
    for a, b in zip(segs, segs[1:]):
        assert a.end == b.start
    assert segs[-1].end == segs[0].start == model.start


@pytest.fixture
def model(mock_config, mock_logger, square_image):
    m = SelectionModel(mock_config, mock_logger, strategy="gray", image=square_image)
    yield m
    m.shutdown()


def add_and_wait(model, p):
    model.add_point(p)
    assert model.wait_for_search(timeout=30)
    assert model.state is SelectionState.SELECTING


class TestScissorsSelection:
    def test_first_point_launches_search(self, model):
        model.add_point(CORNERS[0])
        assert model.state is SelectionState.PROCESSING
        assert model.paths is None
        assert model.wait_for_search(timeout=30)
        assert model.state is SelectionState.SELECTING
        assert model.paths.seed == CORNERS[0]

    def test_live_wire_follows_square_edge(self, model):
        add_and_wait(model, CORNERS[0])
        wire = model.live_wire(CORNERS[1])
        assert wire.start == CORNERS[0]
        assert wire.end == CORNERS[1]
        # Route hugs the top edge of the square (rows 9-10).
        assert all(p.y in (9, 10) for p in wire)
        assert model.live_wire(CORNERS[1]) == wire

    def test_live_wire_during_processing_is_straight(self, model):
        add_and_wait(model, CORNERS[0])
        model.add_point(CORNERS[1])
        assert model.state is SelectionState.PROCESSING
        assert model.live_wire((29, 29)) == PolyLine.straight(CORNERS[1], (29, 29))

    def test_closed_square(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        model.finish_selection()
        assert model.state is SelectionState.SELECTED
        assert len(model.segments) == 4
        assert_closed(model)
        x0, y0, x1, y1 = model.selection_bounds()
        assert x0 >= 9 and y0 >= 9
        assert x1 <= 30 and y1 <= 30

    def test_cancel_restores_previous_map(self, model):
        """Cancelling the pending search reverts its point and keeps the earlier map live."""
        add_and_wait(model, CORNERS[0])
        add_and_wait(model, CORNERS[1])
        before = model.paths
        expected = model.live_wire(CORNERS[2])

        model.add_point(CORNERS[2])
        assert model.state is SelectionState.PROCESSING
        model.cancel_processing()

        assert model.state is SelectionState.SELECTING
        assert len(model.segments) == 1
        assert model.last_point() == CORNERS[1]
        assert model.paths is before
        assert model.live_wire(CORNERS[2]) == expected

    def test_cancel_first_search_keeps_anchor(self, model):
        model.add_point(CORNERS[0])
        model.cancel_processing()
        assert model.state is SelectionState.SELECTING
        assert model.start == CORNERS[0]
        assert model.live_wire(CORNERS[1]) == PolyLine.straight(CORNERS[0], CORNERS[1])

    def test_stale_results_ignored_after_cancel(self, model):
        add_and_wait(model, CORNERS[0])
        before = model.paths
        model.add_point(CORNERS[1])
        model.cancel_processing()
        model.process_events()
        assert model.paths is before
        assert model.state is SelectionState.SELECTING

    def test_undo_in_processing_cancels(self, model):
        add_and_wait(model, CORNERS[0])
        model.add_point(CORNERS[1])
        model.undo()
        assert model.state is SelectionState.SELECTING
        assert model.segments == ()

    def test_undo_in_selected_reuses_cached_map(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        last_map = model.paths
        model.finish_selection()
        model.undo()
        assert model.state is SelectionState.SELECTING
        assert len(model.segments) == 3
        assert model.paths is last_map

    def test_undo_in_selecting_reuses_cached_map(self, model):
        add_and_wait(model, CORNERS[0])
        first_map = model.paths
        add_and_wait(model, CORNERS[1])
        model.undo()
        assert model.state is SelectionState.SELECTING
        assert model.paths is first_map

    def test_move_point_retraces_in_background(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        model.finish_selection()
        states = []
        model.subscribe(STATE, lambda e: states.append(e.new_state))
        progress = []
        model.subscribe(PROGRESS, progress.append)

        model.move_point(2, (30, 30))
        # Returns before the search: the vertex has moved with straight segments.
        assert model.state is SelectionState.PROCESSING
        assert model.segments[1] == PolyLine.straight(CORNERS[1], (30, 30))
        assert model.segments[2] == PolyLine.straight((30, 30), CORNERS[3])
        assert_closed(model)

        assert model.wait_for_search(timeout=30)
        assert model.state is SelectionState.SELECTED
        assert states == [SelectionState.PROCESSING, SelectionState.SELECTED]
        assert progress and progress[-1].fraction == 1.0
        assert model.segments[1].end == Point(30, 30)
        assert model.segments[2].start == Point(30, 30)
        assert len(model.segments[1]) > 2
        assert len(model.segments[2]) > 2
        assert_closed(model)

    def test_cancel_move_restores_vertex(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        model.finish_selection()
        original = model.segments

        model.move_point(2, (30, 30))
        model.cancel_processing()
        assert model.state is SelectionState.SELECTED
        assert model.segments == original
        # The finished result of the cancelled search must not be applied.
        model.process_events()
        assert model.segments == original

    def test_move_start_vertex(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        model.finish_selection()
        model.move_point(0, (9, 9))
        assert model.start == Point(9, 9)
        assert model.wait_for_search(timeout=30)
        assert model.start == Point(9, 9)
        assert model.segments[-1].end == Point(9, 9)
        assert_closed(model)

    def test_failed_move_search_reverts(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        model.finish_selection()
        original = model.segments
        model.engine = MagicMock()
        model.engine.search.side_effect = RuntimeError("boom")
        model.move_point(1, (28, 11))
        with pytest.raises(RuntimeError, match="boom"):
            model.wait_for_search(timeout=30)
        assert model.state is SelectionState.SELECTED
        assert model.segments == original

    def test_path_cache_pruned_on_undo(self, model):
        for p in CORNERS[:3]:
            add_and_wait(model, p)
        assert set(model._path_cache) == set(CORNERS[:3])
        model.undo()
        model.undo()
        assert set(model._path_cache) == {CORNERS[0]}
        assert model.paths.seed == CORNERS[0]

    def test_path_cache_pruned_on_cancel_and_move(self, model):
        add_and_wait(model, CORNERS[0])
        model.add_point(CORNERS[1])
        assert model.wait_for_search(timeout=30)
        model.add_point(CORNERS[2])
        model.cancel_processing()
        assert set(model._path_cache) == {CORNERS[0], CORNERS[1]}

        add_and_wait(model, CORNERS[2])
        add_and_wait(model, CORNERS[3])
        model.finish_selection()
        model.move_point(2, (30, 30))
        assert model.wait_for_search(timeout=30)
        assert set(model._path_cache) == {CORNERS[0], CORNERS[1], Point(30, 30), CORNERS[3]}

    def test_move_point_invalid(self, model):
        for p in CORNERS:
            add_and_wait(model, p)
        model.finish_selection()
        with pytest.raises(InvalidIndexError):
            model.move_point(4, (1, 1))
        with pytest.raises(InvalidIndexError):
            model.move_point(0, (40, 40))
        assert_closed(model)

    def test_progress_and_state_events(self, model):
        seen = {STATE: [], PROGRESS: [], SELECTION: []}
        for topic, events in seen.items():
            model.subscribe(topic, events.append)
        add_and_wait(model, CORNERS[0])
        states = [e.new_state for e in seen[STATE]]
        assert states == [SelectionState.SELECTING, SelectionState.PROCESSING, SelectionState.SELECTING]
        assert seen[PROGRESS]
        assert seen[PROGRESS][-1].fraction == 1.0
        assert len(seen[SELECTION]) == 1

    def test_failed_search_reverts_point(self, model):
        add_and_wait(model, CORNERS[0])
        model.engine = MagicMock()
        model.engine.search.side_effect = RuntimeError("boom")
        model.add_point(CORNERS[1])
        with pytest.raises(RuntimeError, match="boom"):
            model.wait_for_search(timeout=30)
        assert model.state is SelectionState.SELECTING
        assert model.segments == ()

    def test_unreachable_falls_back_to_straight(self, model, mock_logger):
        add_and_wait(model, CORNERS[0])
        model.strategy.live_wire = MagicMock(side_effect=UnreachableError(CORNERS[1], CORNERS[0]))
        assert model.live_wire(CORNERS[1]) == PolyLine.straight(CORNERS[0], CORNERS[1])
        mock_logger.warning.assert_called()

    def test_target_outside_window(self, model, mock_config):
        mock_config.search_window_radius = 2
        add_and_wait(model, CORNERS[0])
        wire = model.live_wire(CORNERS[1])
        # The target lies outside the window: the wire stops at the window edge.
        assert wire.end == Point(12, 10)
        model.add_point(CORNERS[1])
        assert model.segments[0].end == CORNERS[1]
        model.wait_for_search(timeout=30)

    def test_point_outside_image(self, model):
        with pytest.raises(InvalidIndexError):
            model.add_point((-1, 5))
        assert model.state is SelectionState.NO_SELECTION

    def test_requires_image(self, mock_config, mock_logger):
        model = SelectionModel(mock_config, mock_logger, strategy="gray")
        with pytest.raises(ValueError):
            model.add_point((1, 1))
        assert model.state is SelectionState.NO_SELECTION


class TestStrategySwitch:
    def test_switch_to_scissors_keeps_segments(self, mock_config, mock_logger, square_image):
        model = SelectionModel(mock_config, mock_logger, image=square_image)
        model.add_point(CORNERS[0])
        model.add_point(CORNERS[1])
        model.set_strategy("luminance")
        assert isinstance(model.strategy, ScissorsStrategy)
        assert model.state is SelectionState.PROCESSING
        assert model.wait_for_search(timeout=30)
        assert len(model.segments) == 1
        assert model.paths.seed == CORNERS[1]
        model.shutdown()

    def test_switch_during_processing(self, model):
        add_and_wait(model, CORNERS[0])
        model.add_point(CORNERS[1])
        model.set_strategy("point_to_point")
        assert model.state is SelectionState.SELECTING
        assert model.segments == ()
        model.add_point(CORNERS[1])
        assert model.segments[0] == PolyLine.straight(CORNERS[0], CORNERS[1])


class TestStrategies:
    def test_make_strategy(self):
        assert make_strategy("straight").name == "point_to_point"
        assert make_strategy("CrossGradMono").name == "gray"
        with pytest.raises(ValueError):
            make_strategy("magic")

    def test_route_outside_window_extends_straight(self, mock_config, mock_logger, square_image):
        from selector.pathfinder import PathSearchEngine
        from selector.strategies import route_to

        strategy = ScissorsStrategy("gray")
        engine = PathSearchEngine(mock_config, mock_logger)
        paths = engine.search(Point(5, 5), strategy.cost_field(square_image), window_radius=2)
        line = route_to(paths, Point(20, 5))
        assert line.end == Point(20, 5)
        assert Point(7, 5) in line.points
        with pytest.raises(UnreachableError):
            paths.trace(Point(20, 5))

    def test_cost_field_cached_per_image(self, square_image):
        strategy = ScissorsStrategy("color")
        assert strategy.cost_field(square_image) is strategy.cost_field(square_image)
