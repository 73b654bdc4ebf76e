"""Engine registry: register and create weight index engines by name."""

from __future__ import annotations

from typing import Any, Callable, Type

from mutable_categorical.engines.base import BaseIndex

_REGISTRY: dict[str, Type[BaseIndex]] = {}


def register(name: str) -> Callable:
    """Decorator to register an engine class under *name*."""

    def wrapper(cls: Type[BaseIndex]) -> Type[BaseIndex]:
        if name in _REGISTRY:
            raise ValueError(f"Engine '{name}' is already registered")
        _REGISTRY[name] = cls
        return cls

    return wrapper


def get_engine_class(name: str) -> Type[BaseIndex]:
    """Return the engine class registered under *name*."""
    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY)) or "(none)"
        raise ValueError(f"Unknown engine '{name}'. Available: {available}")
    return _REGISTRY[name]


def create_engine(name: str, **kwargs: Any) -> BaseIndex:
    """Instantiate a registered engine by name."""
    return get_engine_class(name)(**kwargs)


def available_engines() -> list[str]:
    """Return sorted list of registered engine names."""
    return sorted(_REGISTRY)


# Register the built-in engines.
from mutable_categorical.engines import dense_index, linked_index  # noqa: E402,F401
