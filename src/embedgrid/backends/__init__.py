"""Embedding backends for embedgrid.

This module provides a registry of embedding backends, allowing runtime
selection of the model that turns texts into vectors.
"""

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .base import EmbeddingBackend

from .hashing import HashingBackend
from .sbert import SentenceTransformerBackend

__all__ = ["BackendRegistry"]


class BackendRegistry:
    """Registry for managing embedding backends by name."""

    _backends: ClassVar[dict[str, type["EmbeddingBackend"]]] = {}

    @classmethod
    def register(cls, name: str, backend_class: type["EmbeddingBackend"]) -> None:
        """Register an embedding backend.

        Args:
            name: Name to register the backend under
            backend_class: Class that implements EmbeddingBackend
        """
        cls._backends[name] = backend_class

    @classmethod
    def get(cls, name: str) -> type["EmbeddingBackend"]:
        """Get a backend class by name.

        Raises:
            KeyError: If backend name not found
        """
        if name not in cls._backends:
            available = ", ".join(cls._backends.keys()) if cls._backends else "none"
            raise KeyError(
                f"Backend '{name}' not found. Available backends: {available}"
            )
        return cls._backends[name]

    @classmethod
    def names(cls) -> list[str]:
        return sorted(cls._backends)


# Register backends
BackendRegistry.register(SentenceTransformerBackend.name, SentenceTransformerBackend)
BackendRegistry.register(HashingBackend.name, HashingBackend)
