"""
Selection strategies.

A strategy decides what shape connects two boundary points; the
SelectionModel owns all state and calls into whichever strategy is active.

- `PointToPointStrategy` joins points with straight lines.
- `ScissorsStrategy` follows image edges using the shortest-path maps the
  model computes in the background.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from selector.models import Point, PolyLine
from selector.weighers import CostField, WeigherRegistry, get_weigher

if TYPE_CHECKING:
    from selector.pathfinder import PathMap

POINT_TO_POINT = "point_to_point"
_POINT_TO_POINT_ALIASES = {POINT_TO_POINT, "point-to-point", "straight", "polygon"}


@runtime_checkable
class SelectionStrategy(Protocol):
    """Interface shared by the straight-line and intelligent-scissors strategies."""

    name: str
    display_name: str
    uses_search: bool

    def cost_field(self, image: np.ndarray) -> Optional[CostField]:
        ...

    def live_wire(self, anchor: Point, cursor: Point, paths: Optional["PathMap"]) -> PolyLine:
        """Preview segment from ``anchor`` towards ``cursor``; must not mutate anything."""
        ...

    def commit(self, anchor: Point, target: Point, paths: Optional["PathMap"]) -> PolyLine:
        """Segment to append when ``target`` is added; always ends exactly at ``target``."""
        ...

    def reconnect(self, prev_vertex: Point, new_pos: Point, next_vertex: Point,
                  paths: Optional["PathMap"]) -> Tuple[PolyLine, PolyLine]:
        """
        Replacement segments prev_vertex -> new_pos and new_pos -> next_vertex,
        given the completed map seeded at ``new_pos`` (or None).
        """
        ...


class PointToPointStrategy:
    name = POINT_TO_POINT
    display_name = "Point-to-point"
    uses_search = False

    def __repr__(self) -> str:
        return "PointToPointStrategy()"

    def cost_field(self, image):
        return None

    def live_wire(self, anchor, cursor, paths=None):
        return PolyLine.straight(anchor, cursor)

    def commit(self, anchor, target, paths=None):
        return PolyLine.straight(anchor, target)

    def reconnect(self, prev_vertex, new_pos, next_vertex, paths=None):
        return PolyLine.straight(prev_vertex, new_pos), PolyLine.straight(new_pos, next_vertex)


def route_to(paths: "PathMap", target: Point) -> PolyLine:
    """
    Traced route from the seed of ``paths`` to ``target``.

    If ``target`` lies outside the searched window the route runs to the
    nearest settled pixel and finishes with a straight step to ``target``.
    """
    reached = paths.nearest_settled(target)
    line = paths.trace(reached)
    if reached != target:
        line = line.concat(PolyLine.straight(reached, target))
    return line


class ScissorsStrategy:
    """Edge-following strategy backed by a named weigher."""

    uses_search = True

    def __init__(self, weigher_name: str = "gray"):
        self.weigher = get_weigher(weigher_name)
        self.name = self.weigher.config.name
        self.display_name = self.weigher.config.display_name
        self._field_image: Optional[np.ndarray] = None
        self._field: Optional[CostField] = None

    def __repr__(self) -> str:
        return f"ScissorsStrategy({self.name!r})"

    def cost_field(self, image: np.ndarray) -> CostField:
        """Step costs for ``image``, computed once per image object."""
        if image is None:
            raise ValueError("Intelligent scissors need an image")
        if self._field is None or self._field_image is not image:
            self._field = self.weigher.cost_field(image)
            self._field_image = image
        return self._field

    def live_wire(self, anchor, cursor, paths=None):
        # No map for this anchor yet (search pending or cancelled): preview a straight line.
        if paths is None or paths.seed != anchor:
            return PolyLine.straight(anchor, cursor)
        return paths.trace(paths.nearest_settled(cursor))

    def commit(self, anchor, target, paths=None):
        if paths is None or paths.seed != anchor:
            return PolyLine.straight(anchor, target)
        return route_to(paths, target)

    def reconnect(self, prev_vertex, new_pos, next_vertex, paths=None):
        if paths is None or paths.seed != new_pos:
            return PolyLine.straight(prev_vertex, new_pos), PolyLine.straight(new_pos, next_vertex)
        # Step costs are symmetric, so the map seeded at new_pos yields both routes.
        return route_to(paths, prev_vertex).reversed(), route_to(paths, next_vertex)


def available_strategies() -> list[str]:
    return [POINT_TO_POINT] + WeigherRegistry.list_names()


def make_strategy(name: str) -> SelectionStrategy:
    """Builds a strategy from ``point_to_point`` or any registered weigher name/alias."""
    if name.lower() in _POINT_TO_POINT_ALIASES:
        return PointToPointStrategy()
    return ScissorsStrategy(name)
