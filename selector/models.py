from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, NamedTuple, Tuple, Union


class Point(NamedTuple):
    """Integer pixel coordinate."""
    x: int
    y: int

    def distance_sq(self, other: "Point") -> int:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy

    def chebyshev(self, other: "Point") -> int:
        return max(abs(self.x - other.x), abs(self.y - other.y))


PointLike = Union[Point, Tuple[int, int]]


def as_point(p: PointLike) -> Point:
    """Coerces an (x, y) pair into a Point, rejecting non-integral coordinates."""
    if isinstance(p, Point):
        return p
    x, y = p
    if int(x) != x or int(y) != y:
        raise ValueError(f"Pixel coordinates must be integers, got {p!r}")
    return Point(int(x), int(y))


@dataclass(frozen=True)
class PolyLine:
    """
    An immutable, non-empty sequence of points forming one piece of a selection boundary.

    A straight segment is simply the two-vertex polyline ``(start, end)``; a traced
    segment lists every pixel along the route.
    """

    points: Tuple[Point, ...]

    def __post_init__(self):
        pts = tuple(as_point(p) for p in self.points)
        if not pts:
            raise ValueError("A PolyLine needs at least one point")
        object.__setattr__(self, "points", pts)

    @classmethod
    def straight(cls, start: PointLike, end: PointLike) -> "PolyLine":
        return cls((start, end))

    @classmethod
    def of(cls, points: Iterable[PointLike]) -> "PolyLine":
        return cls(tuple(points))

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    @property
    def size(self) -> int:
        return len(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.points)

    def reversed(self) -> "PolyLine":
        return PolyLine(self.points[::-1])

    def concat(self, other: "PolyLine") -> "PolyLine":
        """Joins ``other`` onto the end of this polyline; the shared endpoint appears once."""
        if self.end != other.start:
            raise ValueError(f"Cannot join polyline ending at {self.end} to one starting at {other.start}")
        return PolyLine(self.points + other.points[1:])

    def bounds(self) -> Tuple[int, int, int, int]:
        """Returns (x_min, y_min, x_max, y_max), inclusive."""
        xs = [p.x for p in self.points]
        ys = [p.y for p in self.points]
        return min(xs), min(ys), max(xs), max(ys)


class SelectionState(Enum):
    NO_SELECTION = "no_selection"
    SELECTING = "selecting"
    PROCESSING = "processing"
    SELECTED = "selected"

    def is_empty(self) -> bool:
        return self is SelectionState.NO_SELECTION

    def is_finished(self) -> bool:
        return self is SelectionState.SELECTED
