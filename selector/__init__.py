"""
Image Selector: interactive polygon and intelligent-scissors selection.

Quick Start:
    from selector import SelectionModel, load_config, AppLogger, load_image

    config = load_config()
    logger = AppLogger(config, log_to_console=False)
    image = load_image("photo.png")

    with SelectionModel(config, logger, strategy="gray", image=image) as model:
        model.add_point((10, 10))
        model.wait_for_search()
        model.add_point((80, 12))
        model.wait_for_search()
        model.add_point((50, 70))
        model.wait_for_search()
        model.finish_selection()
        model.save_selection("cutout.png")
"""

from selector.config import Config, load_config
from selector.error_handling import (
    EmptyQueueError,
    ErrorHandler,
    IllegalTransitionError,
    ImageIOError,
    InvalidIndexError,
    SearchCancelledError,
    SelectorError,
    UnreachableError,
)
from selector.events import EventBus, ProgressEvent, SelectionChangeEvent, StateChangeEvent
from selector.image_io import crop_selection, load_image, save_selection, selection_mask
from selector.logger import AppLogger
from selector.models import Point, PolyLine, SelectionState
from selector.pathfinder import PathMap, PathSearchEngine, trace_path
from selector.priority_queue import HeapMinQueue
from selector.selection_model import SelectionModel
from selector.strategies import PointToPointStrategy, ScissorsStrategy, available_strategies, make_strategy

__version__ = "1.0.0"

__all__ = [
    "AppLogger",
    "Config",
    "EmptyQueueError",
    "ErrorHandler",
    "EventBus",
    "HeapMinQueue",
    "IllegalTransitionError",
    "ImageIOError",
    "InvalidIndexError",
    "PathMap",
    "PathSearchEngine",
    "Point",
    "PointToPointStrategy",
    "PolyLine",
    "ProgressEvent",
    "ScissorsStrategy",
    "SearchCancelledError",
    "SelectionChangeEvent",
    "SelectionModel",
    "SelectionState",
    "SelectorError",
    "StateChangeEvent",
    "UnreachableError",
    "available_strategies",
    "crop_selection",
    "load_config",
    "load_image",
    "make_strategy",
    "save_selection",
    "selection_mask",
    "trace_path",
]
