"""embedgrid - live cosine similarity matrices over text embeddings."""

__version__ = "0.1.0"
__all__ = ["Session"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "Session":
        from .session import Session

        return Session
    raise AttributeError(f"module 'embedgrid' has no attribute {name!r}")
