"""Configuration module: exports Settings and the YAML loader."""

from roomrag.config.loader import chunking_table, load_config
from roomrag.config.settings import Settings

__all__ = ["Settings", "chunking_table", "load_config"]
