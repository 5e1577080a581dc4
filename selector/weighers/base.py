"""
Weigher Protocol and Base Types for edge-cost models.

This module defines the core abstractions for turning an image into the
weights of the implicit 8-connected pixel graph:
- `WeigherConfig`: Metadata for a cost variant
- `Weigher`: Protocol every cost variant implements
- `CostField`: Precomputed per-direction step costs for one image

Example usage:
    from selector.weighers import get_weigher

    field = get_weigher("gray").cost_field(image_rgb)
    field.cost(Point(3, 4), Point(4, 4))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol, Tuple, runtime_checkable

import numpy as np

from selector.models import Point

# Fixed neighbour order; index i of a CostField's first axis is the step NEIGHBOR_OFFSETS[i].
NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-1, -1), (0, -1), (1, -1),
    (-1, 0),           (1, 0),
    (-1, 1),  (0, 1),  (1, 1),
)
DIRECTION_INDEX = {offset: i for i, offset in enumerate(NEIGHBOR_OFFSETS)}


@dataclass
class WeigherConfig:
    """
    Configuration and metadata for a cost variant.

    Attributes:
        name: Machine-readable identifier (e.g., "gray")
        display_name: Human-readable label for UI
        max_cost: Cost of a step through a perfectly flat region
        aliases: Alternative names accepted by the registry
        description: Tooltip/help text for UI
    """

    name: str
    display_name: str
    max_cost: int = 255
    aliases: Tuple[str, ...] = ()
    description: str = ""


def as_rgb(image: Any) -> np.ndarray:
    """
    Normalises an image to an (H, W, 3) uint8 array.

    Accepts grayscale (H, W), single-channel, RGB and RGBA (alpha dropped)
    input. Non-uint8 data is clipped into 0..255.
    """
    arr = np.asarray(image)
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    elif arr.ndim == 3 and arr.shape[2] == 1:
        arr = np.repeat(arr, 3, axis=2)
    elif arr.ndim == 3 and arr.shape[2] == 4:
        arr = arr[:, :, :3]
    elif not (arr.ndim == 3 and arr.shape[2] == 3):
        raise ValueError(f"Unsupported image shape {arr.shape}; expected (H, W), (H, W, 3) or (H, W, 4)")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError("Image must have at least one pixel")
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    return np.ascontiguousarray(arr)


class CostField:
    """
    Step costs of the pixel graph for one image.

    ``costs[d, y, x]`` is the cost of stepping from (x, y) in direction
    ``NEIGHBOR_OFFSETS[d]``. Entries for steps leaving the image are
    meaningless; callers check bounds first.
    """

    def __init__(self, costs: np.ndarray, weigher: WeigherConfig):
        if costs.ndim != 3 or costs.shape[0] != len(NEIGHBOR_OFFSETS):
            raise ValueError(f"Expected an (8, H, W) cost array, got {costs.shape}")
        if costs.size and int(costs.min()) < 0:
            raise ValueError("Edge costs must be non-negative")
        self.costs = costs
        self.weigher = weigher

    @property
    def height(self) -> int:
        return self.costs.shape[1]

    @property
    def width(self) -> int:
        return self.costs.shape[2]

    @property
    def max_cost(self) -> int:
        return self.weigher.max_cost

    def in_bounds(self, p: Point) -> bool:
        return 0 <= p[0] < self.width and 0 <= p[1] < self.height

    def cost(self, current: Point, neighbor: Point) -> int:
        """Cost of the single step from ``current`` to the adjacent pixel ``neighbor``."""
        d = DIRECTION_INDEX.get((neighbor[0] - current[0], neighbor[1] - current[1]))
        if d is None:
            raise ValueError(f"{tuple(neighbor)} is not 8-adjacent to {tuple(current)}")
        if not (self.in_bounds(current) and self.in_bounds(neighbor)):
            raise ValueError(f"Step {tuple(current)} -> {tuple(neighbor)} leaves the image")
        return int(self.costs[d, current[1], current[0]])

    def window(self, x0: int, y0: int, x1: int, y1: int) -> List[List[List[int]]]:
        """
        Returns costs for the inclusive box [x0, x1] x [y0, y1] as nested lists
        indexed ``[d][y - y0][x - x0]``; plain lists keep the search loop fast.
        """
        return self.costs[:, y0:y1 + 1, x0:x1 + 1].tolist()


@runtime_checkable
class Weigher(Protocol):
    """
    Protocol defining the cost-variant interface.

    All weighers must implement:
    - config: Property returning WeigherConfig metadata
    - edge_costs: Method computing the (8, H, W) step-cost array
    """

    @property
    def config(self) -> WeigherConfig:
        """Returns weigher configuration and metadata."""
        ...

    def edge_costs(self, image: np.ndarray) -> np.ndarray:
        """
        Compute non-negative integer step costs for every pixel and direction.

        Args:
            image: Image array (H, W), (H, W, 3) or (H, W, 4)

        Returns:
            int32 array of shape (8, H, W)
        """
        ...

    def cost_field(self, image: np.ndarray) -> CostField:
        """Wraps ``edge_costs`` in a CostField."""
        ...
