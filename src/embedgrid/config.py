"""Configuration management for embedgrid.

Loads configuration from ~/.config/embedgrid/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "embedgrid"
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
# embedgrid configuration

[model]
# Backend: "sentence-transformers" (neural, downloads a model once),
#          "hashing" (offline bag-of-words, no download)
backend = "sentence-transformers"

# sentence-transformers model name
name = "all-MiniLM-L6-v2"

# Compute device for local models: "auto", "mps" (Apple Silicon), "cuda", "cpu"
device = "auto"

[pipeline]
# Quiet period after the last edit before embeddings are recomputed
debounce_ms = 750

# Decimal places shown in the similarity matrix
precision = 2
"""


@dataclass(frozen=True)
class ModelConfig:
    """Embedding backend configuration."""

    backend: str
    name: str
    device: str


@dataclass(frozen=True)
class PipelineConfig:
    """Recomputation pipeline configuration."""

    debounce_ms: int
    precision: int

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


@dataclass(frozen=True)
class EmbedGridConfig:
    """Top-level embedgrid configuration."""

    model: ModelConfig
    pipeline: PipelineConfig


_cached_config: EmbedGridConfig | None = None


def generate_config() -> Path:
    """Generate default config file at ~/.config/embedgrid/config.toml."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(DEFAULT_CONFIG)
    return CONFIG_PATH


def load_config() -> EmbedGridConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and continues with its defaults.

    Returns:
        Loaded and validated EmbedGridConfig.

    Raises:
        SystemExit: If the config file is invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if not CONFIG_PATH.exists():
        path = generate_config()
        print(f"No config found. Generated {path} with defaults.", file=sys.stderr)

    try:
        with open(CONFIG_PATH, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        print(f"Invalid config file {CONFIG_PATH}: {e}", file=sys.stderr)
        raise SystemExit(1) from None

    model = data.get("model", {})
    pipeline = data.get("pipeline", {})

    # Validate required fields
    missing = []
    if "backend" not in model:
        missing.append("model.backend")
    if "name" not in model:
        missing.append("model.name")
    if "debounce_ms" not in pipeline:
        missing.append("pipeline.debounce_ms")
    if "precision" not in pipeline:
        missing.append("pipeline.precision")

    if missing:
        print(
            f"Missing required config values: {', '.join(missing)}",
            file=sys.stderr,
        )
        print(f"Edit {CONFIG_PATH} or delete it to regenerate.", file=sys.stderr)
        raise SystemExit(1)

    # Env vars override config file values
    try:
        config = EmbedGridConfig(
            model=ModelConfig(
                backend=os.getenv("EMBEDGRID_BACKEND", model["backend"]),
                name=os.getenv("EMBEDGRID_MODEL", model["name"]),
                device=os.getenv("EMBEDGRID_DEVICE", model.get("device", "auto")),
            ),
            pipeline=PipelineConfig(
                debounce_ms=int(
                    os.getenv("EMBEDGRID_DEBOUNCE_MS", pipeline["debounce_ms"])
                ),
                precision=int(os.getenv("EMBEDGRID_PRECISION", pipeline["precision"])),
            ),
        )
    except ValueError as e:
        print(f"Invalid config value: {e}", file=sys.stderr)
        raise SystemExit(1) from None

    if config.pipeline.debounce_ms < 0 or config.pipeline.precision < 0:
        print(
            "pipeline.debounce_ms and pipeline.precision must be non-negative",
            file=sys.stderr,
        )
        raise SystemExit(1)

    _cached_config = config
    return _cached_config
