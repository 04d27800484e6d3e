"""Custom embedgrid exceptions."""


class EmbedGridError(Exception):
    """Base exception for embedgrid errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class ModelLoadError(EmbedGridError):
    """Exception raised when the embedding model cannot be loaded.

    This typically occurs when:
    - The model name is unknown to the backend
    - Model files are missing and cannot be downloaded
    - The backend library itself fails to import
    """

    pass


class EmbeddingError(EmbedGridError):
    """Exception raised when embedding a snapshot fails.

    The pipeline recovers from this error: it is reported as state and the
    next input change issues a fresh request.
    """

    pass


class LengthMismatch(EmbedGridError):
    """Two vectors of different length were compared.

    Indicates a corrupted embedding source. Never recovered by the pipeline.
    """

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must be the same length (got {left} and {right})")
        self.left = left
        self.right = right


class IndexOutOfRange(EmbedGridError, IndexError):
    """Exception raised for an update or delete outside the input list."""

    def __init__(self, index: int, length: int) -> None:
        super().__init__(
            f"Index {index} out of range for input list of length {length}"
        )
        self.index = index
        self.length = length
