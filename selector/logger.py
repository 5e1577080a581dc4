"""
Logging Infrastructure for Image Selector

Every record goes through `AppLogger`, which builds a `LogEvent` and writes it
to up to three handlers: the console, a plain session log and a JSONL file
holding the serialized events.
"""
import json
import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel

if TYPE_CHECKING:
    from selector.config import Config


SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")


class LogEvent(BaseModel):
    """One structured log entry, as written to the JSONL log."""
    timestamp: str
    level: str
    message: str
    component: str
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    stack_trace: Optional[str] = None

    def render(self) -> str:
        """Single-line text form used by the console and the session log."""
        text = f"{self.message} [{self.component}]"
        if self.operation:
            text += f" [{self.operation}]"
        if self.duration_ms:
            text += f" ({self.duration_ms:.1f}ms)"
        if self.stack_trace:
            text += f"\n{self.stack_trace}"
        return text


class ColoredFormatter(logging.Formatter):
    """Wraps the level name in an ANSI color."""
    COLORS = {
        'DEBUG': '\033[36m', 'INFO': '\033[37m', 'SUCCESS': '\033[32m',
        'WARNING': '\033[33m', 'ERROR': '\033[31m', 'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        record.levelname = f"{self.COLORS.get(levelname, self.RESET)}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class JsonFormatter(logging.Formatter):
    """Serializes the LogEvent attached to each record."""
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(record.log_event.model_dump(exclude_none=True), default=str, ensure_ascii=False)


class AppLogger:
    """Structured logger shared by the selection model, the search engine and the CLI."""

    def __init__(self, config: 'Config', log_dir: Optional[Path] = None,
                 log_to_file: bool = True, log_to_console: bool = True):
        self.config = config
        self.log_dir = Path(log_dir or config.logs_dir)
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.session_log_file = self.log_dir / f"session_{self.session_id}.log"
        self.structured_log_file = self.log_dir / config.log_structured_path

        self.logger = logging.getLogger(f'selector_{self.session_id}_{id(self):x}')
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.logger.handlers.clear()

        if log_to_console:
            formatter_cls = ColoredFormatter if config.log_colored else logging.Formatter
            self._add_handler(logging.StreamHandler(), formatter_cls(config.log_format), config.log_level.upper())
        if log_to_file:
            self.log_dir.mkdir(exist_ok=True, parents=True)
            self._add_handler(logging.FileHandler(self.session_log_file, encoding='utf-8'),
                              logging.Formatter(config.log_format))
            self._add_handler(logging.FileHandler(self.structured_log_file, encoding='utf-8'), JsonFormatter())

    def _add_handler(self, handler: logging.Handler, formatter: logging.Formatter, level=logging.DEBUG) -> None:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        self.logger.addHandler(handler)

    def close(self):
        """Flushes and detaches all handlers."""
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def _emit(self, level: str, levelno: int, message: str, component: str,
              exc_info: bool = False, **fields) -> None:
        event = LogEvent(
            timestamp=datetime.now().isoformat(),
            level=level,
            message=message,
            component=component,
            stack_trace=traceback.format_exc() if exc_info else None,
            **fields,
        )
        self.logger.log(levelno, event.render(), extra={'log_event': event})

    def debug(self, message: str, component: str = "system", **kwargs):
        self._emit("DEBUG", logging.DEBUG, message, component, **kwargs)

    def info(self, message: str, component: str = "system", **kwargs):
        self._emit("INFO", logging.INFO, message, component, **kwargs)

    def success(self, message: str, component: str = "system", **kwargs):
        self._emit("SUCCESS", SUCCESS_LEVEL_NUM, message, component, **kwargs)

    def warning(self, message: str, component: str = "system", **kwargs):
        self._emit("WARNING", logging.WARNING, message, component, **kwargs)

    def error(self, message: str, component: str = "system", **kwargs):
        self._emit("ERROR", logging.ERROR, message, component, **kwargs)

    def critical(self, message: str, component: str = "system", **kwargs):
        self._emit("CRITICAL", logging.CRITICAL, message, component, **kwargs)
