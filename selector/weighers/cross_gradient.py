"""
Cross-gradient weighers.

The cost of a step depends on the intensity change *across* it: for an
axis-aligned step, the difference between the pixel pairs flanking the step
on either side; for a diagonal step, the difference between the two pixels on
the other diagonal. A step running alongside a strong edge therefore gets a
large gradient and a small cost, so shortest paths hug object boundaries.

Pixels beyond the border are replicated, which keeps every cost symmetric:
stepping p -> n and n -> p reads the same flanking pixels.
"""

from __future__ import annotations

import cv2
import numpy as np

from selector.weighers.base import NEIGHBOR_OFFSETS, CostField, WeigherConfig, as_rgb
from selector.weighers.registry import register_weigher


def cross_gradients(channel: np.ndarray) -> np.ndarray:
    """
    Absolute cross gradient of a single-channel image for all 8 step directions.

    Args:
        channel: (H, W) intensity array

    Returns:
        int32 array of shape (8, H, W), values in 0..255 for uint8 input
    """
    ch = np.asarray(channel, dtype=np.int32)
    h, w = ch.shape
    padded = np.pad(ch, 1, mode="edge")

    def at(dx: int, dy: int) -> np.ndarray:
        # Intensity at (x + dx, y + dy) for every pixel, clamped to the border.
        return padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]

    out = np.empty((len(NEIGHBOR_OFFSETS), h, w), dtype=np.int32)
    for d, (dx, dy) in enumerate(NEIGHBOR_OFFSETS):
        if dy == 0:
            grad = np.abs((at(0, -1) + at(dx, -1)) - (at(0, 1) + at(dx, 1))) // 2
        elif dx == 0:
            grad = np.abs((at(-1, 0) + at(-1, dy)) - (at(1, 0) + at(1, dy))) // 2
        else:
            grad = np.abs(at(dx, 0) - at(0, dy))
        out[d] = grad
    return out


def inverse_cost(gradient: np.ndarray, max_cost: int) -> np.ndarray:
    """Maps gradients to costs: ``max_cost - clamp(gradient, 0, max_cost)``."""
    return (max_cost - np.clip(gradient, 0, max_cost)).astype(np.int32)


class _CrossGradientWeigher:
    """Shared cost_field implementation; subclasses provide config and edge_costs."""

    def cost_field(self, image: np.ndarray) -> CostField:
        return CostField(self.edge_costs(image), self.config)


@register_weigher
class GrayWeigher(_CrossGradientWeigher):
    """Cross gradient of the mean of the RGB channels."""

    @property
    def config(self) -> WeigherConfig:
        return WeigherConfig(
            name="gray",
            display_name="Intelligent scissors: gray",
            max_cost=255,
            aliases=("mono", "crossgradmono"),
            description="Monochrome cross gradient; cheapest along brightness edges.",
        )

    def edge_costs(self, image: np.ndarray) -> np.ndarray:
        rgb = as_rgb(image).astype(np.int32)
        mono = rgb.sum(axis=2) // 3
        return inverse_cost(cross_gradients(mono), self.config.max_cost)


@register_weigher
class ColorWeigher(_CrossGradientWeigher):
    """Sum of the per-channel cross gradients, so hue edges count as well as brightness edges."""

    @property
    def config(self) -> WeigherConfig:
        return WeigherConfig(
            name="color",
            display_name="Intelligent scissors: color detail",
            max_cost=3 * 255,
            aliases=("colour", "colorweigher"),
            description="Per-channel cross gradients summed over R, G and B.",
        )

    def edge_costs(self, image: np.ndarray) -> np.ndarray:
        rgb = as_rgb(image)
        grad = sum(cross_gradients(rgb[:, :, c]) for c in range(3))
        return inverse_cost(grad, self.config.max_cost)


@register_weigher
class LuminanceWeigher(_CrossGradientWeigher):
    """Cross gradient of perceptual luma (ITU-R 601 weights)."""

    @property
    def config(self) -> WeigherConfig:
        return WeigherConfig(
            name="luminance",
            display_name="Intelligent scissors: luminance",
            max_cost=255,
            aliases=("luma", "luminanceweigher"),
            description="Cross gradient of the luminance channel.",
        )

    def edge_costs(self, image: np.ndarray) -> np.ndarray:
        luma = cv2.cvtColor(as_rgb(image), cv2.COLOR_RGB2GRAY)
        return inverse_cost(cross_gradients(luma), self.config.max_cost)
