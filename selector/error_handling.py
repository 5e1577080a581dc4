"""
Error Handling Infrastructure for Image Selector
"""
import functools
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from selector.logger import AppLogger


class SelectorError(Exception):
    """Base class for all errors raised by the selection engine."""


class EmptyQueueError(SelectorError, IndexError):
    """Raised when reading from or removing from an empty priority queue."""


class IllegalTransitionError(SelectorError, RuntimeError):
    """Raised when an operation is invoked in a state that forbids it."""

    def __init__(self, operation: str, state: Any):
        super().__init__(f"May not {operation} in state {getattr(state, 'name', state)}")
        self.operation = operation
        self.state = state


class InvalidIndexError(SelectorError, IndexError):
    """Raised for a segment/vertex index or pixel outside the valid range."""


class UnreachableError(SelectorError, LookupError):
    """Raised when a path is requested to a pixel the search never settled."""

    def __init__(self, target: Any, seed: Any = None):
        msg = f"Pixel {tuple(target)} was not reached"
        if seed is not None:
            msg += f" from seed {tuple(seed)}"
        super().__init__(msg)
        self.target = target
        self.seed = seed


class ImageIOError(SelectorError, OSError):
    """Raised when an image cannot be decoded or the selection cannot be encoded."""


class SearchCancelledError(SelectorError):
    """Raised inside a path search when its cancel event has been set."""


class ErrorHandler:
    def __init__(self, logger: 'AppLogger', component: str = "error_handler"):
        """
        Initializes the ErrorHandler.

        Args:
            logger: Application logger.
            component: Component tag attached to log messages.
        """
        self.logger = logger
        self.component = component

    def with_fallback(self, fallback_func: Callable, recoverable_exceptions: tuple = (Exception,)):
        """
        Decorator that executes a fallback function if the primary function fails.

        Args:
            fallback_func: Function to call on failure, with the same arguments.
            recoverable_exceptions: Tuple of exceptions that trigger the fallback.

        Returns:
            Decorated function.
        """
        def decorator(func: Callable) -> Callable:
            @functools.wraps(func)
            def wrapper(*args, **kwargs) -> Any:
                try:
                    return func(*args, **kwargs)
                except recoverable_exceptions as e:
                    self.logger.warning(f"Primary function {func.__name__} failed, using fallback: {str(e)}", component=self.component)
                    try:
                        return fallback_func(*args, **kwargs)
                    except Exception as fallback_error:
                        self.logger.error(f"Both primary and fallback functions failed for {func.__name__}", component=self.component, exc_info=True)
                        raise fallback_error
            return wrapper
        return decorator
