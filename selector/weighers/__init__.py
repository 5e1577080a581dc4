"""
Edge-cost models for the intelligent scissors search.

Each weigher turns an image into the step costs of the implicit 8-connected
pixel graph. Costs are non-negative integers and lowest along strong edges.

Quick Start:
    from selector.weighers import WeigherRegistry, get_weigher

    for cfg in WeigherRegistry.list_all():
        print(f"{cfg.name}: {cfg.display_name}")

    field = get_weigher("luminance").cost_field(image_rgb)
"""

from selector.weighers.base import (
    DIRECTION_INDEX,
    NEIGHBOR_OFFSETS,
    CostField,
    Weigher,
    WeigherConfig,
    as_rgb,
)
from selector.weighers.registry import (
    WeigherRegistry,
    get_weigher,
    register_weigher,
)

# Import weighers to trigger registration
from selector.weighers.cross_gradient import ColorWeigher, GrayWeigher, LuminanceWeigher, cross_gradients

__all__ = [
    "DIRECTION_INDEX",
    "NEIGHBOR_OFFSETS",
    "CostField",
    "Weigher",
    "WeigherConfig",
    "WeigherRegistry",
    "as_rgb",
    "get_weigher",
    "register_weigher",
    "GrayWeigher",
    "ColorWeigher",
    "LuminanceWeigher",
    "cross_gradients",
]
