"""Configuration: pydantic-settings Settings and the YAML loader."""

from kbcore.config.loader import load_config
from kbcore.config.settings import Settings

__all__ = ["Settings", "load_config"]
