"""Offline embedding backend using hashed bag-of-words vectors.

Needs no model download, which makes it useful on air-gapped machines and in
tests. Similarity reflects shared tokens rather than meaning.
"""

import logging
import re
from collections.abc import Sequence

import numpy as np

from ..errors import EmbeddingError
from ..models import EmbeddingBatch
from .base import EmbeddingBackend

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION = 256

_TOKEN_RE = re.compile(r"[a-z0-9_\-']+")


class HashingBackend(EmbeddingBackend):
    """Stable hashed bag-of-words embeddings."""

    name = "hashing"

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    async def load(self) -> int:
        # Nothing to load; the handle is the vector dimension.
        return self.dimension

    async def embed(self, model: int, texts: Sequence[str]) -> EmbeddingBatch:
        if model != self.dimension:
            raise EmbeddingError(
                f"Model handle {model!r} does not match dimension {self.dimension}"
            )

        matrix = np.zeros((len(texts), self.dimension), dtype=np.float32)
        for row, text in enumerate(texts):
            for token in _TOKEN_RE.findall(text.lower()):
                matrix[row, self._bucket(token)] += 1.0

        logger.debug(f"Hashed {len(texts)} texts into {self.dimension} buckets")
        return matrix

    def _bucket(self, token: str) -> int:
        # Python's hash() is salted per process; keep buckets stable across runs
        h = 0
        for ch in token:
            h = (h * 131 + ord(ch)) & 0xFFFFFFFF
        return h % self.dimension
