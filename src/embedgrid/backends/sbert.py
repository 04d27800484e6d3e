"""Embedding backend using sentence-transformers."""

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from ..errors import EmbeddingError, ModelLoadError
from ..models import EmbeddingBatch
from .base import EmbeddingBackend

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

    from ..config import ModelConfig

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"


def _load_sentence_transformer(
    model_name: str, device: str | None
) -> "SentenceTransformer":
    # Import here to avoid loading torch at module import time
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name, device=device)


class SentenceTransformerBackend(EmbeddingBackend):
    """Embed texts with a sentence-transformers model.

    Model loading and encoding are blocking calls; both run in a worker
    thread so the event loop keeps serving edits and hover events.
    """

    name = "sentence-transformers"

    def __init__(self, model_name: str = DEFAULT_MODEL, device: str | None = None):
        """Initialize backend.

        Args:
            model_name: Name of sentence-transformers model to use
            device: Torch device ("cpu", "cuda", "mps"); None lets the library pick
        """
        self.model_name = model_name
        self.device = device

    @classmethod
    def from_config(cls, config: "ModelConfig") -> "SentenceTransformerBackend":
        device = None if config.device == "auto" else config.device
        return cls(model_name=config.name, device=device)

    async def load(self) -> "SentenceTransformer":
        logger.debug(f"Loading sentence-transformers model {self.model_name}")
        try:
            model = await asyncio.to_thread(
                _load_sentence_transformer, self.model_name, self.device
            )
        except Exception as e:
            raise ModelLoadError(
                f"Failed to load model {self.model_name}: {e}", e
            ) from e

        logger.debug(
            f"Loaded {self.model_name} "
            f"(dimension {model.get_sentence_embedding_dimension()})"
        )
        return model

    async def embed(
        self, model: "SentenceTransformer", texts: Sequence[str]
    ) -> EmbeddingBatch:
        def _encode() -> np.ndarray:
            return model.encode(list(texts), convert_to_numpy=True)

        try:
            embeddings = await asyncio.to_thread(_encode)
        except Exception as e:
            raise EmbeddingError(f"Failed to embed {len(texts)} texts: {e}", e) from e

        # Ensure correct shape
        return np.asarray(embeddings).reshape(len(texts), -1)
