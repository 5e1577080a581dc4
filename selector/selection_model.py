"""
Selection state machine.

`SelectionModel` turns anchor points and cursor positions into a closed,
editable boundary. It owns the committed segments and the current
SelectionState, and delegates the shape of each segment to a strategy.

Threading model
---------------
All public methods must be called from one foreground thread. In scissors
mode each new anchor, and each moved vertex of a closed selection, starts a
path search on a worker thread; the worker only writes to its own PathMap and
posts messages to a queue. The foreground picks them up in `process_events()`
(or `wait_for_search()`), which installs the finished map (or applies the
retraced segments of a moved vertex), leaves PROCESSING and publishes
notifications. At most one worker is alive per model: a new search is only
started after the previous one has been cancelled and joined.

Completed maps are cached per boundary vertex and dropped as soon as their
seed stops being one (undo, cancel, move).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from itertools import count
from queue import Empty, Queue
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from selector import image_io
from selector.error_handling import (
    ErrorHandler,
    IllegalTransitionError,
    InvalidIndexError,
    SearchCancelledError,
    SelectorError,
    UnreachableError,
)
from selector.events import (
    PROGRESS,
    SELECTION,
    STATE,
    EventBus,
    ProgressEvent,
    SelectionChangeEvent,
    StateChangeEvent,
)
from selector.models import Point, PointLike, PolyLine, SelectionState, as_point
from selector.pathfinder import PathMap, PathSearchEngine
from selector.strategies import SelectionStrategy, make_strategy

if TYPE_CHECKING:
    from selector.config import Config
    from selector.logger import AppLogger

_DONE = "done"
_FAILED = "failed"
_CANCELLED = "cancelled"


@dataclass
class _PendingMove:
    """Vertex move waiting for the search seeded at its new position."""
    index: int
    prev_index: int
    prev_vertex: Point
    new_pos: Point
    next_vertex: Point
    old_incoming: PolyLine
    old_outgoing: PolyLine


@dataclass
class _SearchJob:
    job_id: int
    seed: Point
    reverts_segment: bool
    move: Optional[_PendingMove] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None


class SelectionModel:
    """
    Builds a closed selection from a sequence of points.

    Notifications are published on ``self.events`` under the topics
    ``"state"``, ``"progress"`` and ``"selection"``.
    """

    def __init__(self, config: "Config", logger: "AppLogger",
                 strategy: Union[SelectionStrategy, str, None] = None,
                 image: Optional[np.ndarray] = None):
        self.config = config
        self.logger = logger
        self.events = EventBus(logger)
        self.engine = PathSearchEngine(config, logger)
        self.error_handler = ErrorHandler(logger, component="selection")

        if strategy is None:
            strategy = config.default_strategy
        self.strategy: SelectionStrategy = make_strategy(strategy) if isinstance(strategy, str) else strategy
        self._image = image

        self._state = SelectionState.NO_SELECTION
        self._start: Optional[Point] = None
        self._segments: List[PolyLine] = []
        self._paths: Optional[PathMap] = None
        self._path_cache: Dict[Point, PathMap] = {}
        self._job: Optional[_SearchJob] = None
        self._messages: Queue = Queue()
        self._job_ids = count(1)

        self._guarded_live_wire = self.error_handler.with_fallback(
            self._straight, (UnreachableError,))(self._strategy_live_wire)
        self._guarded_commit = self.error_handler.with_fallback(
            self._straight, (UnreachableError,))(self._strategy_commit)
        self._guarded_reconnect = self.error_handler.with_fallback(
            self._straight_pair, (UnreachableError,))(self._strategy_reconnect)

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def subscribe(self, topic: str, listener: Callable) -> None:
        self.events.subscribe(topic, listener)

    def unsubscribe(self, topic: str, listener: Callable) -> None:
        self.events.unsubscribe(topic, listener)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def start(self) -> Optional[Point]:
        return self._start

    @property
    def segments(self) -> Tuple[PolyLine, ...]:
        return tuple(self._segments)

    @property
    def paths(self) -> Optional[PathMap]:
        """Most recently completed path map (never one still being computed)."""
        return self._paths

    @property
    def is_processing(self) -> bool:
        return self._state is SelectionState.PROCESSING

    def is_closed(self) -> bool:
        return self._state is SelectionState.SELECTED

    def last_point(self) -> Point:
        if self._state is SelectionState.NO_SELECTION:
            raise IllegalTransitionError("query the last point", self._state)
        return self._segments[-1].end if self._segments else self._start

    def anchors(self) -> List[Point]:
        """Boundary vertices in order; the closing vertex is not repeated."""
        if self._start is None:
            return []
        pts = [self._start] + [seg.end for seg in self._segments]
        if self._state is SelectionState.SELECTED:
            pts.pop()
        return pts

    def closest_point(self, p: PointLike, max_distance_sq: Optional[int] = None) -> Optional[int]:
        """
        Index of the segment whose start vertex is nearest to ``p``, or None if
        no vertex lies within ``max_distance_sq`` (squared pixels).
        """
        p = as_point(p)
        if max_distance_sq is None:
            max_distance_sq = self.config.vertex_pick_distance_sq
        best, best_d = None, None
        for i, seg in enumerate(self._segments):
            d = seg.start.distance_sq(p)
            if d <= max_distance_sq and (best_d is None or d < best_d):
                best, best_d = i, d
        return best

    def selection_bounds(self) -> Optional[Tuple[int, int, int, int]]:
        if not self._segments:
            return None
        return image_io.selection_bounds(self._segments)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def set_image(self, image: Optional[np.ndarray]) -> None:
        """Selects from ``image`` from now on; any current selection is discarded."""
        self.reset()
        self._path_cache.clear()
        self._image = image
        if image is not None:
            self.logger.info(f"Image set: {image.shape[1]}x{image.shape[0]}", component="selection")

    def set_strategy(self, strategy: Union[SelectionStrategy, str]) -> None:
        """
        Switches between straight-line and scissors strategies, keeping the
        committed segments. An in-flight search is cancelled first.
        """
        if isinstance(strategy, str):
            strategy = make_strategy(strategy)
        if strategy.uses_search and self._image is None and self._state is not SelectionState.NO_SELECTION:
            raise ValueError(f"Strategy '{strategy.name}' needs an image")
        if self._state is SelectionState.PROCESSING:
            self.cancel_processing()
        self.strategy = strategy
        self._path_cache.clear()
        self._paths = None
        self.logger.info(f"Selection strategy set to {strategy.name}", component="selection")
        if self._state is SelectionState.SELECTING and strategy.uses_search:
            self._launch_search(self.last_point(), reverts_segment=False)

    def add_point(self, p: PointLike) -> None:
        """Starts a selection at ``p`` or extends the open selection to ``p``."""
        p = self._check_point(p)
        if self.strategy.uses_search and self._image is None:
            raise ValueError(f"Strategy '{self.strategy.name}' needs an image")
        if self._state is SelectionState.NO_SELECTION:
            self._start_selection(p)
        elif self._state is SelectionState.SELECTING:
            self._append_to_selection(p)
        else:
            raise IllegalTransitionError("add a point", self._state)

    def live_wire(self, cursor: PointLike) -> PolyLine:
        """Preview of the segment that ``add_point(cursor)`` would commit. Never blocks."""
        if self._state is SelectionState.NO_SELECTION:
            raise IllegalTransitionError("draw a live wire", self._state)
        return self._guarded_live_wire(self.last_point(), as_point(cursor))

    def finish_selection(self) -> None:
        """Closes the polygon by connecting the last point back to the start."""
        if self._state is not SelectionState.SELECTING:
            raise IllegalTransitionError("finish the selection", self._state)
        if not self._segments:
            self.reset()
            return
        self._segments.append(self._guarded_commit(self.last_point(), self._start))
        self._set_state(SelectionState.SELECTED)
        self._fire_selection()

    def move_point(self, index: int, new_pos: PointLike) -> None:
        """
        Moves the start vertex of segment ``index`` of a closed selection to
        ``new_pos``, rebuilding the two segments that meet there.

        With a searching strategy the vertex moves at once with straight
        segments, and the model enters PROCESSING while the edge-following
        routes are computed in the background; they replace the straight
        segments when the search completes. Cancelling puts the vertex back.
        """
        if self._state is not SelectionState.SELECTED:
            raise IllegalTransitionError("move a point", self._state)
        if not 0 <= index < len(self._segments):
            raise InvalidIndexError(f"Invalid segment index {index}")
        new_pos = self._check_point(new_pos)

        prev_index = (index - 1) % len(self._segments)
        move = _PendingMove(
            index=index,
            prev_index=prev_index,
            prev_vertex=self._segments[prev_index].start,
            new_pos=new_pos,
            next_vertex=self._segments[index].end,
            old_incoming=self._segments[prev_index],
            old_outgoing=self._segments[index],
        )
        self.logger.debug(f"Moving vertex {index} from {tuple(move.old_outgoing.start)} to {tuple(new_pos)}",
                          component="selection")
        self._apply_move(move, None)
        if self.strategy.uses_search:
            self._launch_search(new_pos, reverts_segment=False, move=move)

    def undo(self) -> None:
        """Reverts the most recent change to the selection."""
        if self._state is SelectionState.NO_SELECTION:
            raise IllegalTransitionError("undo", self._state)
        if self._state is SelectionState.PROCESSING:
            self.cancel_processing()
            return
        if not self._segments:
            self.reset()
            return
        self._segments.pop()
        self._set_state(SelectionState.SELECTING)
        self._prune_cache()
        self._fire_selection()
        self._restore_paths()

    def reset(self) -> None:
        """Discards the whole selection."""
        self._stop_worker()
        if self._state is SelectionState.NO_SELECTION and not self._segments:
            return
        self._segments.clear()
        self._start = None
        self._paths = None
        self._path_cache.clear()
        self._set_state(SelectionState.NO_SELECTION)
        self._fire_selection()

    def cancel_processing(self) -> None:
        """
        Stops the in-flight search and reverts the point addition or vertex
        move that started it. The previously completed path map becomes live
        again.
        """
        if self._state is not SelectionState.PROCESSING:
            raise IllegalTransitionError("cancel processing", self._state)
        job = self._stop_worker()
        self.logger.info("Path search cancelled", component="selection")
        self._undo_job(job)

    def save_selection(self, sink: image_io.Sink, format: Optional[str] = None) -> None:
        """Writes the cropped selection to ``sink``. Legal only once the selection is closed."""
        if self._state is not SelectionState.SELECTED:
            raise IllegalTransitionError("save the selection", self._state)
        if self._image is None:
            raise image_io.ImageIOError("No image to save the selection from")
        fmt = format or self.config.output_format
        image_io.save_selection(self._image, self._segments, sink, format=fmt)
        self.logger.success(f"Selection saved as {fmt}", component="selection")

    # ------------------------------------------------------------------
    # Background search plumbing
    # ------------------------------------------------------------------

    def process_events(self) -> int:
        """
        Applies messages posted by the search worker. Call from the foreground
        thread (e.g. on a UI timer). Returns the number of messages handled.
        """
        handled = 0
        while True:
            try:
                kind, job_id, payload = self._messages.get_nowait()
            except Empty:
                return handled
            handled += 1
            job = self._job
            if job is None or job.job_id != job_id:
                continue  # superseded or cancelled search
            if kind == PROGRESS:
                self.events.publish(PROGRESS, payload)
            elif kind == _DONE:
                self._job = None
                self._path_cache[payload.seed] = payload
                if job.move is not None:
                    self._apply_move(job.move, payload)
                    self._prune_cache()
                    self._set_state(SelectionState.SELECTED)
                else:
                    self._paths = payload
                    self._set_state(SelectionState.SELECTING)
            elif kind == _FAILED:
                self._job = None
                self._undo_job(job)
                raise payload

    def wait_for_search(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until the current search finishes (or ``timeout`` elapses), then
        processes its messages. Returns True when no search is in flight.
        """
        job = self._job
        if job is not None and job.thread is not None:
            job.thread.join(timeout)
        self.process_events()
        return self._job is None

    def shutdown(self) -> None:
        """Cancels and joins any running search."""
        if self._state is SelectionState.PROCESSING:
            self.cancel_processing()
        else:
            self._stop_worker()

    def __enter__(self) -> "SelectionModel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_point(self, p: PointLike) -> Point:
        p = as_point(p)
        if self._image is not None:
            h, w = self._image.shape[:2]
            if not (0 <= p.x < w and 0 <= p.y < h):
                raise InvalidIndexError(f"Point {tuple(p)} lies outside the {w}x{h} image")
        return p

    def _start_selection(self, p: Point) -> None:
        self._start = p
        self._set_state(SelectionState.SELECTING)
        self._fire_selection()
        if self.strategy.uses_search:
            self._launch_search(p, reverts_segment=False)

    def _append_to_selection(self, p: Point) -> None:
        self._segments.append(self._guarded_commit(self.last_point(), p))
        self._fire_selection()
        if self.strategy.uses_search:
            self._launch_search(p, reverts_segment=True)

    def _restore_paths(self) -> None:
        """Makes the path map for the current last point live, searching again if it is not cached."""
        if not self.strategy.uses_search:
            return
        anchor = self.last_point()
        cached = self._path_cache.get(anchor)
        if cached is not None:
            self._paths = cached
        else:
            self._launch_search(anchor, reverts_segment=False)

    def _apply_move(self, move: _PendingMove, paths: Optional[PathMap]) -> None:
        """Rebuilds the two segments at a moved vertex; straight while ``paths`` is None."""
        incoming, outgoing = self._guarded_reconnect(move.prev_vertex, move.new_pos, move.next_vertex, paths)
        self._segments[move.prev_index] = incoming
        self._segments[move.index] = outgoing
        self._start = self._segments[0].start
        self._fire_selection()

    def _revert_move(self, move: _PendingMove) -> None:
        self._segments[move.prev_index] = move.old_incoming
        self._segments[move.index] = move.old_outgoing
        self._start = self._segments[0].start
        self._fire_selection()

    def _undo_job(self, job: Optional[_SearchJob]) -> None:
        """Reverts the change that launched ``job`` and returns to the state it started from."""
        if job is not None and job.move is not None:
            self._revert_move(job.move)
            restored = SelectionState.SELECTED
        else:
            if job is not None and job.reverts_segment and self._segments:
                self._segments.pop()
                self._fire_selection()
            restored = SelectionState.SELECTING
        self._prune_cache()
        self._set_state(restored)

    def _prune_cache(self) -> None:
        """Drops maps whose seed is no longer a boundary vertex and re-points the live map."""
        keep = set(self.anchors())
        for seed in [s for s in self._path_cache if s not in keep]:
            del self._path_cache[seed]
        self._paths = self._path_cache.get(self.last_point())

    def _launch_search(self, seed: Point, reverts_segment: bool, move: Optional[_PendingMove] = None) -> None:
        self._stop_worker()
        cached = self._path_cache.get(seed)
        if cached is not None:
            if move is not None:
                self._apply_move(move, cached)
                self._prune_cache()
            else:
                self._paths = cached
            return
        cost_field = self.strategy.cost_field(self._image)
        job = _SearchJob(next(self._job_ids), seed, reverts_segment, move)
        job.thread = threading.Thread(
            target=self._run_search, args=(job, cost_field), name=f"path-search-{job.job_id}", daemon=True
        )
        self._job = job
        self._set_state(SelectionState.PROCESSING)
        self.logger.debug(f"Launching path search {job.job_id} from {tuple(seed)}", component="selection")
        job.thread.start()

    def _run_search(self, job: _SearchJob, cost_field) -> None:
        """Worker-thread body; communicates only through the message queue."""
        def report(event: ProgressEvent) -> None:
            self._messages.put((PROGRESS, job.job_id, event))

        try:
            paths = self.engine.search(job.seed, cost_field, cancel_event=job.cancel_event, progress=report)
        except SearchCancelledError:
            self._messages.put((_CANCELLED, job.job_id, None))
            return
        except Exception as e:
            self.logger.error(f"Path search from {tuple(job.seed)} failed", component="selection", exc_info=True)
            self._messages.put((_FAILED, job.job_id, e))
            return
        self._messages.put((_DONE, job.job_id, paths))

    def _stop_worker(self) -> Optional[_SearchJob]:
        """Cancels the current job and waits until its thread has exited."""
        job = self._job
        if job is None:
            return None
        job.cancel_event.set()
        if job.thread is not None:
            job.thread.join(self.config.worker_join_timeout)
            if job.thread.is_alive():
                self.logger.critical(f"Path search {job.job_id} did not stop", component="selection")
                raise SelectorError(f"Path search {job.job_id} did not stop within {self.config.worker_join_timeout}s")
        self._job = None
        return job

    def _set_state(self, new_state: SelectionState) -> None:
        old_state = self._state
        if new_state is old_state:
            return
        self._state = new_state
        self.logger.debug(f"State {old_state.name} -> {new_state.name}", component="selection")
        self.events.publish(STATE, StateChangeEvent(old_state=old_state, new_state=new_state))

    def _fire_selection(self) -> None:
        self.events.publish(SELECTION, SelectionChangeEvent(
            segments=tuple(self._segments), closed=self._state is SelectionState.SELECTED))

    def _strategy_live_wire(self, anchor: Point, cursor: Point) -> PolyLine:
        return self.strategy.live_wire(anchor, cursor, self._paths)

    def _strategy_commit(self, anchor: Point, target: Point) -> PolyLine:
        return self.strategy.commit(anchor, target, self._paths)

    def _strategy_reconnect(self, prev_vertex: Point, new_pos: Point, next_vertex: Point,
                            paths: Optional[PathMap]) -> Tuple[PolyLine, PolyLine]:
        return self.strategy.reconnect(prev_vertex, new_pos, next_vertex, paths)

    @staticmethod
    def _straight(start: Point, end: Point) -> PolyLine:
        return PolyLine.straight(start, end)

    @staticmethod
    def _straight_pair(prev_vertex: Point, new_pos: Point, next_vertex: Point,
                       paths: Optional[PathMap] = None) -> Tuple[PolyLine, PolyLine]:
        return PolyLine.straight(prev_vertex, new_pos), PolyLine.straight(new_pos, next_vertex)
