"""
Shortest-path search over the implicit 8-connected pixel graph.

`PathSearchEngine.search` runs Dijkstra's algorithm from a seed pixel inside a
square window around it and returns a `PathMap`: the predecessor and settled
cost of every pixel it reached. One map answers any number of live-wire
queries for that seed. The search is meant to run on a worker thread; it polls
a cancel event before every expansion and reports progress through a
`ProgressTracker`.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from selector.error_handling import InvalidIndexError, SearchCancelledError, UnreachableError
from selector.events import ProgressEvent
from selector.models import Point, PointLike, PolyLine, as_point
from selector.priority_queue import HeapMinQueue
from selector.progress import ProgressTracker
from selector.weighers.base import NEIGHBOR_OFFSETS, CostField

if TYPE_CHECKING:
    from selector.config import Config
    from selector.logger import AppLogger

Bounds = Tuple[int, int, int, int]

_USE_CONFIG = object()


def search_window(seed: Point, radius: Optional[int], width: int, height: int) -> Bounds:
    """Inclusive (x0, y0, x1, y1) box of half-size ``radius`` around ``seed``, clipped to the image."""
    if radius is None:
        return 0, 0, width - 1, height - 1
    return (
        max(0, seed.x - radius),
        max(0, seed.y - radius),
        min(width - 1, seed.x + radius),
        min(height - 1, seed.y + radius),
    )


def trace_path(path_map: "PathMap", target: PointLike) -> List[Point]:
    """
    Walks predecessors from ``target`` back to the seed and returns the route seed-first.

    Raises:
        UnreachableError: if ``target`` was never settled by the search.
    """
    target = as_point(target)
    if target not in path_map.distances:
        raise UnreachableError(target, path_map.seed)
    path = [target]
    preds = path_map.predecessors
    p = target
    while p != path_map.seed:
        p = preds[p]
        path.append(p)
    path.reverse()
    return path


class PathMap:
    """
    Result of one completed search: predecessor and settled cost per reached pixel.

    Immutable once built; safe to read from any thread.
    """

    def __init__(self, seed: Point, bounds: Bounds, predecessors: Dict[Point, Point],
                 distances: Dict[Point, int], weigher_name: Optional[str] = None):
        self.seed = seed
        self.bounds = bounds
        self.predecessors = predecessors
        self.distances = distances
        self.weigher_name = weigher_name

    def __repr__(self) -> str:
        return f"PathMap(seed={tuple(self.seed)}, settled={self.settled_count}, bounds={self.bounds})"

    @property
    def settled_count(self) -> int:
        return len(self.distances)

    def is_settled(self, p: PointLike) -> bool:
        return as_point(p) in self.distances

    def cost_to(self, p: PointLike) -> int:
        p = as_point(p)
        try:
            return self.distances[p]
        except KeyError:
            raise UnreachableError(p, self.seed) from None

    def trace(self, target: PointLike) -> PolyLine:
        return PolyLine(tuple(trace_path(self, target)))

    def nearest_settled(self, p: PointLike) -> Point:
        """
        Returns ``p`` if it was settled, otherwise the closest pixel of the
        search window (clamping each coordinate) provided that one was settled.
        """
        p = as_point(p)
        if p in self.distances:
            return p
        x0, y0, x1, y1 = self.bounds
        q = Point(min(max(p.x, x0), x1), min(max(p.y, y0), y1))
        if q in self.distances:
            return q
        raise UnreachableError(p, self.seed)


class PathSearchEngine:
    """Runs bounded single-source Dijkstra searches over a CostField."""

    def __init__(self, config: "Config", logger: "AppLogger"):
        self.config = config
        self.logger = logger

    def search(
        self,
        seed: PointLike,
        cost_field: CostField,
        window_radius=_USE_CONFIG,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> PathMap:
        """
        Computes shortest routes from ``seed`` to every pixel of its search window.

        Args:
            seed: Root pixel of the search.
            cost_field: Step costs for the image.
            window_radius: Half-size of the search window; None searches the
                whole image. Defaults to ``config.search_window_radius``.
            cancel_event: Checked before each expansion; once set the search
                stops and raises SearchCancelledError.
            progress: Receives ProgressEvents with the settled fraction of the window.

        Returns:
            PathMap rooted at ``seed``.
        """
        seed = as_point(seed)
        if not cost_field.in_bounds(seed):
            raise InvalidIndexError(f"Seed {tuple(seed)} lies outside the {cost_field.width}x{cost_field.height} image")
        if window_radius is _USE_CONFIG:
            window_radius = self.config.search_window_radius

        x0, y0, x1, y1 = search_window(seed, window_radius, cost_field.width, cost_field.height)
        costs = cost_field.window(x0, y0, x1, y1)
        total = (x1 - x0 + 1) * (y1 - y0 + 1)
        interval = max(1, int(self.config.search_progress_interval))

        tracker = None
        if progress is not None:
            tracker = ProgressTracker(progress, self.logger, stage="Searching",
                                      throttle_interval=self.config.progress_throttle_seconds)
            tracker.start(total)

        t0 = time.perf_counter()
        distances: Dict[Point, int] = {}
        predecessors: Dict[Point, Point] = {}
        tentative: Dict[Point, int] = {seed: 0}
        frontier: HeapMinQueue[Point] = HeapMinQueue()
        frontier.add_or_update(seed, 0)

        while frontier:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info(f"Search from {tuple(seed)} cancelled after {len(distances)} pixels",
                                 component="pathfinder", operation="search")
                raise SearchCancelledError(f"Search from {tuple(seed)} cancelled")

            p = frontier.remove_min()
            dist = tentative.pop(p)
            distances[p] = dist
            px, py = p
            lx, ly = px - x0, py - y0
            for d, (dx, dy) in enumerate(NEIGHBOR_OFFSETS):
                nx, ny = px + dx, py + dy
                if nx < x0 or nx > x1 or ny < y0 or ny > y1:
                    continue
                n = Point(nx, ny)
                if n in distances:
                    continue
                candidate = dist + costs[d][ly][lx]
                known = tentative.get(n)
                if known is None or candidate < known:
                    tentative[n] = candidate
                    predecessors[n] = p
                    frontier.add_or_update(n, candidate)

            if tracker is not None and len(distances) % interval == 0:
                tracker.set(len(distances))

        if tracker is not None:
            tracker.done_stage()

        duration_ms = (time.perf_counter() - t0) * 1000
        self.logger.info(
            f"Search from {tuple(seed)} settled {len(distances)} pixels",
            component="pathfinder",
            operation="search",
            duration_ms=duration_ms,
        )
        return PathMap(seed, (x0, y0, x1, y1), predecessors, distances, weigher_name=cost_field.weigher.name)
