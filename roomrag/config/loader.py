"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo, including
                            the per-processor chunking table
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

``load_config()`` reads the YAML file first, then deep-merges the values
from :class:`Settings` on top.
"""

from pathlib import Path

import yaml

from roomrag.config.settings import Settings

_DEFAULT_CHUNKING: dict[str, dict[str, int]] = {
    "default": {"chunk_size": 1000, "overlap": 200},
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
            treated as an empty document.
        settings: Optional pre-built settings; a fresh ``Settings()`` is
            created when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_tokens,
        },
        "vector_store": {
            "backend": settings.vector_store_backend,
            "persist_dir": settings.chromadb_persist_dir,
            "collection": settings.chromadb_collection,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    yaml_config.setdefault("chunking", {})
    yaml_config["chunking"].setdefault(
        "default",
        {"chunk_size": settings.chunk_size, "overlap": settings.chunk_overlap},
    )
    return yaml_config


def chunking_table(config: dict) -> dict[str, dict[str, int]]:
    """Return the ``{processor_type: {chunk_size, overlap}}`` table from *config*."""
    table = config.get("chunking") or _DEFAULT_CHUNKING
    return {
        name: {"chunk_size": int(entry["chunk_size"]), "overlap": int(entry["overlap"])}
        for name, entry in table.items()
        if isinstance(entry, dict) and "chunk_size" in entry and "overlap" in entry
    }


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
