"""
Configuration Management for Image Selector
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_OUTPUT_FORMATS = ("PNG", "TIFF", "WEBP")


def json_config_settings_source(config_path: Union[str, Path] = "config.json") -> Dict[str, Any]:
    """Loads settings from a JSON file. Returns an empty dict if the file is absent."""
    path = Path(config_path)
    if not path.is_file():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return data


class Config(BaseSettings):
    """Manages the application's configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="SELECTOR_", env_nested_delimiter="__", case_sensitive=False, extra="ignore"
    )

    # Paths
    logs_dir: str = "logs"

    # Logging Config
    log_level: str = "INFO"
    log_format: str = "%(asctime)s | %(levelname)8s | %(name)s | %(message)s"
    log_colored: bool = True
    log_structured_path: str = "structured_log.jsonl"

    # Selection
    default_strategy: str = "point_to_point"
    vertex_pick_radius: int = 8

    # Path search
    # Half-size of the square window explored around each seed. None searches the whole image.
    search_window_radius: Optional[int] = 128
    search_progress_interval: int = 512
    progress_throttle_seconds: float = 0.1
    worker_join_timeout: float = 5.0

    # Export
    output_format: str = "PNG"

    def model_post_init(self, __context: Any) -> None:
        """Post-initialization hook to validate paths."""
        self._validate_paths()

    def _validate_paths(self):
        """Ensures the log directory exists and is writable."""
        path = Path(self.logs_dir)
        path.mkdir(parents=True, exist_ok=True)
        try:
            test_file = path / ".write_test"
            test_file.touch()
            test_file.unlink()
        except (PermissionError, OSError):
            print(f"WARNING: Directory {self.logs_dir} is not writable.")

    @field_validator("search_window_radius")
    @classmethod
    def _validate_radius(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("search_window_radius must be positive or None")
        return v

    @field_validator("output_format")
    @classmethod
    def _validate_output_format(cls, v: str) -> str:
        v = v.upper()
        if v not in SUPPORTED_OUTPUT_FORMATS:
            raise ValueError(f"output_format must be one of {', '.join(SUPPORTED_OUTPUT_FORMATS)}")
        return v

    @model_validator(mode="after")
    def _validate_config(self) -> "Config":
        """Validates numeric limits that depend on each other."""
        if self.search_progress_interval < 1:
            raise ValueError("search_progress_interval must be at least 1.")
        if self.vertex_pick_radius < 0:
            raise ValueError("vertex_pick_radius cannot be negative.")
        return self

    @property
    def vertex_pick_distance_sq(self) -> int:
        """Squared pick radius, as used by vertex hit-testing."""
        return self.vertex_pick_radius * self.vertex_pick_radius


def load_config(config_path: Optional[Union[str, Path]] = None, **overrides: Any) -> Config:
    """
    Builds a Config from an optional JSON file plus keyword overrides.

    Environment variables still apply to any field neither source sets.
    """
    data = json_config_settings_source(config_path) if config_path else {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    return Config(**data)
