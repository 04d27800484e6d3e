"""Data models and type aliases shared by the pipeline stages."""

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

import numpy as np

# Type aliases for clarity
Snapshot: TypeAlias = tuple[str, ...]
Embedding: TypeAlias = np.ndarray  # Shape: (D,)
EmbeddingBatch: TypeAlias = np.ndarray  # Shape: (n, D)
Matrix: TypeAlias = tuple[tuple[float, ...], ...]
Highlight: TypeAlias = tuple[bool, ...]


class PipelineStatus(str, Enum):
    """Lifecycle of the most recently issued embedding request."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class PipelineState:
    """Displayed output of the embedding pipeline.

    Attributes:
        status: Lifecycle of the latest request
        generation: Generation tag of the request this state belongs to
        inputs: Debounced snapshot the embeddings were computed from
        embeddings: Embedding batch, or None when not available
        matrix: Rounded similarity matrix, or None when not available
        error: Failure of the latest request, if any
    """

    status: PipelineStatus = PipelineStatus.IDLE
    generation: int = 0
    inputs: Snapshot | None = None
    embeddings: EmbeddingBatch | None = None
    matrix: Matrix | None = None
    error: Exception | None = None

    @property
    def available(self) -> bool:
        """True when a matrix can be displayed."""
        return self.matrix is not None
