"""
Shared pytest fixtures and configuration.

This module provides the mock logger/config used across the suite and a few
small synthetic images with known edge structure.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from selector.models import Point


@pytest.fixture
def mock_logger():
    """Mock Application Logger."""
    return MagicMock()


@pytest.fixture
def mock_config():
    """Mock Config object with the selection and search parameters."""
    config = MagicMock()
    # Selection params
    config.default_strategy = "point_to_point"
    config.vertex_pick_radius = 8
    config.vertex_pick_distance_sq = 64
    # Search params
    config.search_window_radius = None
    config.search_progress_interval = 4
    config.progress_throttle_seconds = 0.0
    config.worker_join_timeout = 5.0
    # Export params
    config.output_format = "PNG"
    return config


@pytest.fixture
def flat_image():
    """5x5 RGB image of a single gray level (no edges)."""
    return np.full((5, 5, 3), 128, dtype=np.uint8)


@pytest.fixture
def edge_image():
    """32x32 RGB image: dark left half, bright right half (vertical edge between x=15 and x=16)."""
    img = np.zeros((32, 32, 3), dtype=np.uint8)
    img[:, 16:] = 220
    return img


@pytest.fixture
def square_image():
    """40x40 grayscale image with a bright filled square from (10, 10) to (29, 29)."""
    img = np.zeros((40, 40), dtype=np.uint8)
    img[10:30, 10:30] = 200
    return img


@pytest.fixture
def random_image():
    """12x10 RGB image with random noise (seed 7 for consistency)."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, (10, 12, 3), dtype=np.uint8)


@pytest.fixture
def triangle():
    """Three vertices of a right triangle, clockwise from the origin."""
    return [Point(0, 0), Point(10, 0), Point(10, 10)]
