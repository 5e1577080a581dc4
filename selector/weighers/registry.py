"""
Weigher Registry for managing and discovering cost variants.

Provides centralized registration and lookup by name or alias.
"""

from __future__ import annotations

from typing import Optional, Type

from selector.weighers.base import Weigher, WeigherConfig


class WeigherRegistry:
    """
    Central registry for weigher instances.

    Weighers are registered under their config name; aliases resolve to the
    same instance.
    """

    _weighers: dict[str, Weigher] = {}
    _aliases: dict[str, str] = {}

    @classmethod
    def register(cls, weigher: Weigher) -> None:
        """
        Register a weigher instance.

        Args:
            weigher: Weigher instance to register
        """
        name = weigher.config.name
        cls._weighers[name] = weigher
        for alias in weigher.config.aliases:
            cls._aliases[alias.lower()] = name

    @classmethod
    def resolve(cls, name: str) -> Optional[str]:
        """Returns the canonical name for ``name`` or an alias, or None."""
        if name in cls._weighers:
            return name
        lowered = name.lower()
        if lowered in cls._weighers:
            return lowered
        return cls._aliases.get(lowered)

    @classmethod
    def get(cls, name: str) -> Optional[Weigher]:
        """
        Get a weigher by name or alias.

        Args:
            name: Weigher name (from config.name) or one of its aliases

        Returns:
            Weigher instance or None if not found
        """
        canonical = cls.resolve(name)
        return cls._weighers.get(canonical) if canonical else None

    @classmethod
    def list_all(cls) -> list[WeigherConfig]:
        """List all registered weigher configs."""
        return [w.config for w in cls._weighers.values()]

    @classmethod
    def list_names(cls) -> list[str]:
        """List all registered weigher names."""
        return list(cls._weighers.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations (useful for testing)."""
        cls._weighers.clear()
        cls._aliases.clear()


def register_weigher(cls: Type[Weigher]) -> Type[Weigher]:
    """
    Decorator to register a weigher class.

    Instantiates the class and registers it with WeigherRegistry.

    Usage:
        @register_weigher
        class MyWeigher:
            ...
    """
    WeigherRegistry.register(cls())
    return cls


def get_weigher(name: str) -> Weigher:
    """Looks up a weigher, raising ValueError with the available names if unknown."""
    weigher = WeigherRegistry.get(name)
    if weigher is None:
        raise ValueError(f"Unknown weigher '{name}'. Available: {', '.join(WeigherRegistry.list_names())}")
    return weigher
