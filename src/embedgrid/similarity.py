"""Cosine similarity and similarity-matrix construction."""

import math
from collections.abc import Sequence

import numpy as np

from .errors import LengthMismatch
from .models import Matrix

DEFAULT_PRECISION = 2


def similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Each vector is first divided by its largest magnitude, which leaves the
    cosine unchanged and keeps both squared norms within ``[1, len]``. Sums
    are exactly rounded (``math.fsum``) and the norms are combined as
    ``sqrt(|a|^2 * |b|^2)``, so swapping the arguments yields the identical
    float and ``similarity(v, v) == 1.0`` for any nonzero ``v``.

    Args:
        vector_a: First vector
        vector_b: Second vector

    Returns:
        Cosine similarity in [-1.0, 1.0], or 0.0 if either vector has zero
        norm or holds a non-finite value

    Raises:
        LengthMismatch: If the vectors have different lengths
    """
    if len(vector_a) != len(vector_b):
        raise LengthMismatch(len(vector_a), len(vector_b))

    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)

    scale_a = float(np.max(np.abs(a), initial=0.0))
    scale_b = float(np.max(np.abs(b), initial=0.0))
    if not (math.isfinite(scale_a) and math.isfinite(scale_b)):
        return 0.0  # NaN or inf has no direction
    if scale_a == 0.0 or scale_b == 0.0:
        return 0.0  # avoid division by zero

    a = a / scale_a
    b = b / scale_b

    squared_a = math.fsum(a * a)
    squared_b = math.fsum(b * b)
    dot = math.fsum(a * b)
    cosine = dot / math.sqrt(squared_a * squared_b)

    # Clamp to valid range to handle floating point precision
    return max(-1.0, min(1.0, cosine))


def round_similarity(value: float, precision: int = DEFAULT_PRECISION) -> float:
    """Round a similarity score, keeping an exact 1 untouched."""
    if value == 1:
        return value
    return round(value, precision)


def format_similarity(value: float, precision: int = DEFAULT_PRECISION) -> str:
    """Render a matrix cell: ``"1"`` for an exact 1, fixed decimals otherwise."""
    if value == 1:
        return "1"
    return f"{value:.{precision}f}"


def similarity_matrix(
    vectors: Sequence[Sequence[float]], precision: int = DEFAULT_PRECISION
) -> Matrix:
    """Build the N x N matrix of rounded pairwise similarities.

    Only the upper triangle (diagonal included) is computed; the lower
    triangle mirrors it so ``matrix[i][j] == matrix[j][i]`` exactly.

    Args:
        vectors: N vectors of equal length
        precision: Decimal places kept for every entry except an exact 1

    Returns:
        Nested tuple of shape (N, N)

    Raises:
        LengthMismatch: If any two vectors differ in length
    """
    n = len(vectors)
    rows = [[0.0] * n for _ in range(n)]

    for i in range(n):
        for j in range(i, n):
            value = round_similarity(similarity(vectors[i], vectors[j]), precision)
            rows[i][j] = value
            rows[j][i] = value

    return tuple(tuple(row) for row in rows)
