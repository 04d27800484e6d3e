"""Abstract base class for embedding backends.

This module defines the interface every embedding backend implements: an
asynchronous model load followed by asynchronous batch embedding.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from ..models import EmbeddingBatch

if TYPE_CHECKING:
    from ..config import ModelConfig


class EmbeddingBackend(ABC):
    """Abstract base class for embedding backends.

    The model handle returned by ``load`` is opaque to the pipeline; it is
    only ever passed back to ``embed``.
    """

    name: str = ""

    @classmethod
    def from_config(cls, config: "ModelConfig") -> "EmbeddingBackend":
        """Build the backend from the [model] config section."""
        return cls()

    @abstractmethod
    async def load(self) -> Any:
        """Load the embedding model.

        Returns:
            Opaque model handle

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    async def embed(self, model: Any, texts: Sequence[str]) -> EmbeddingBatch:
        """Embed texts with a loaded model.

        Args:
            model: Handle returned by ``load``
            texts: Texts to embed

        Returns:
            Array of shape (len(texts), D), rows in input order

        Raises:
            EmbeddingError: If embedding fails
        """
        pass
