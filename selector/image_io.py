"""
Image decoding and selection export.

Decoding and encoding go through Pillow; the selection polygon is rasterised
with OpenCV. Every I/O failure surfaces as ImageIOError so callers can report
it without touching the selection.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from PIL import Image

from selector.error_handling import ImageIOError
from selector.models import PolyLine
from selector.weighers import as_rgb

Sink = Union[str, Path, BinaryIO]


def load_image(path: Union[str, Path]) -> np.ndarray:
    """Decodes an image file into an (H, W, 3) uint8 RGB array."""
    p = Path(path)
    try:
        with Image.open(p) as img:
            return np.array(img.convert("RGB"))
    except FileNotFoundError as e:
        raise ImageIOError(f"Image not found: {p}") from e
    except (OSError, ValueError) as e:
        raise ImageIOError(f"Unable to read image {p}: {e}") from e


def polygon_vertices(segments: Iterable[PolyLine]) -> np.ndarray:
    """Concatenates segment points into an (N, 2) int32 array of (x, y) vertices."""
    pts = [pt for seg in segments for pt in seg.points]
    if not pts:
        raise ValueError("Selection has no points")
    return np.asarray(pts, dtype=np.int32).reshape(-1, 2)


def selection_bounds(segments: Sequence[PolyLine], shape: Optional[Tuple[int, int]] = None) -> Tuple[int, int, int, int]:
    """Inclusive (x0, y0, x1, y1) box around the selection, clipped to ``shape`` (H, W) if given."""
    verts = polygon_vertices(segments)
    x0, y0 = verts.min(axis=0)
    x1, y1 = verts.max(axis=0)
    if shape is not None:
        h, w = shape[:2]
        x0, y0 = max(0, int(x0)), max(0, int(y0))
        x1, y1 = min(w - 1, int(x1)), min(h - 1, int(y1))
    return int(x0), int(y0), int(x1), int(y1)


def selection_mask(shape: Tuple[int, ...], segments: Sequence[PolyLine]) -> np.ndarray:
    """Returns an (H, W) uint8 mask that is 255 inside the closed selection polygon and on its boundary."""
    h, w = shape[:2]
    mask = np.zeros((h, w), dtype=np.uint8)
    verts = polygon_vertices(segments).reshape(-1, 1, 2)
    cv2.fillPoly(mask, [verts], 255)
    cv2.polylines(mask, [verts], isClosed=True, color=255, thickness=1)
    return mask


def crop_selection(image: np.ndarray, segments: Sequence[PolyLine]) -> np.ndarray:
    """
    Cuts the selection out of ``image``.

    Returns:
        (h, w, 4) uint8 RGBA array covering the selection's bounding box, with
        alpha 0 outside the polygon.
    """
    rgb = as_rgb(image)
    mask = selection_mask(rgb.shape, segments)
    x0, y0, x1, y1 = selection_bounds(segments, rgb.shape)
    if x1 < x0 or y1 < y0:
        raise ValueError("Selection lies entirely outside the image")
    rgba = np.dstack([rgb, mask])
    return np.ascontiguousarray(rgba[y0:y1 + 1, x0:x1 + 1])


def save_selection(image: np.ndarray, segments: Sequence[PolyLine], sink: Sink, format: str = "PNG") -> None:
    """
    Encodes the cropped selection to ``sink`` (a path or a writable binary file).

    Raises:
        ImageIOError: if the selection cannot be rendered or written.
    """
    try:
        cropped = crop_selection(image, segments)
    except ValueError as e:
        raise ImageIOError(f"Cannot render selection: {e}") from e
    try:
        Image.fromarray(cropped).save(sink, format=format)
    except (OSError, ValueError, KeyError) as e:
        raise ImageIOError(f"Error writing {format} image: {e}") from e
