"""Model management for embedgrid - downloading and caching of embedding models."""

import logging
import os
import sys
from pathlib import Path

from .backends.sbert import DEFAULT_MODEL

logger = logging.getLogger(__name__)


def get_model_cache_dir() -> Path:
    """Get the huggingface cache directory for models."""
    cache_home = os.environ.get("HF_HOME", Path.home() / ".cache/huggingface")
    return Path(cache_home) / "hub"


def hub_model_id(model_name: str) -> str:
    """Map a sentence-transformers model name to its Hugging Face Hub id.

    Bare names such as "all-MiniLM-L6-v2" live under the
    sentence-transformers organisation.
    """
    if "/" in model_name:
        return model_name
    return f"sentence-transformers/{model_name}"


def check_model_cached(model_name: str = DEFAULT_MODEL) -> bool:
    """Check if a model is already cached locally.

    Args:
        model_name: Name of the model to check

    Returns:
        True if model weights are found in the cache
    """
    model_dir_name = f"models--{hub_model_id(model_name).replace('/', '--')}"
    model_path = get_model_cache_dir() / model_dir_name

    if not model_path.is_dir():
        return False

    for _root, _dirs, files in os.walk(model_path):
        if "pytorch_model.bin" in files:
            return True
        if any(f.endswith(".safetensors") for f in files):
            return True

    return False


def download_models(model_name: str = DEFAULT_MODEL) -> None:
    """Download the embedding model so later sessions can run offline.

    Raises:
        SystemExit: If the download fails
    """
    print(f"Downloading embedding model {model_name}...")

    try:
        # Import here to avoid loading torch at module import time
        from sentence_transformers import SentenceTransformer

        # Force online mode for downloading
        os.environ.pop("HF_HUB_OFFLINE", None)
        os.environ.pop("TRANSFORMERS_OFFLINE", None)

        model = SentenceTransformer(model_name)
        dim = model.get_sentence_embedding_dimension()
        print(f"✓ Model downloaded successfully (dimension: {dim})")
        print(f"✓ Models cached at: {get_model_cache_dir()}")

    except Exception as e:
        logger.debug(f"Model download failed: {e!r}")
        print(f"✗ Failed to download model: {e}", file=sys.stderr)
        print("\nTroubleshooting:", file=sys.stderr)
        print("1. Check your internet connection", file=sys.stderr)
        print("2. Check the model name on https://huggingface.co", file=sys.stderr)
        print("3. Check disk space in ~/.cache/huggingface/", file=sys.stderr)
        raise SystemExit(1) from None


def configure_offline_mode(model_name: str = DEFAULT_MODEL) -> bool:
    """Switch Hugging Face libraries to offline mode if the model is cached.

    Avoids network round-trips on every model load. When the model is not
    cached, the environment is left alone and the first load downloads it.

    Returns:
        True if offline mode was enabled
    """
    if not check_model_cached(model_name):
        logger.debug(f"Model {model_name} not cached, staying online")
        return False

    os.environ["HF_HUB_OFFLINE"] = "1"
    os.environ["TRANSFORMERS_OFFLINE"] = "1"
    return True
