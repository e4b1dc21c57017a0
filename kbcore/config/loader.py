"""YAML configuration loader with environment variable overrides.

Configuration layers, later overriding earlier:

    1. config/config.yaml  -- defaults checked into the repo
    2. .env file           -- local overrides (not committed)
    3. Environment vars    -- ``KBCORE_*`` set at deploy time

``load_config`` reads the YAML first, then deep-merges the values resolved by
:class:`~kbcore.config.settings.Settings` on top.
"""

from pathlib import Path

import yaml

from kbcore.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is treated
            as empty.
        settings: Pre-built settings; read from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "chunking": {
            "type": settings.chunking_type.value,
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "min_chunk_size": settings.min_chunk_size,
        },
        "knowledge_base": {
            "id": settings.kb_id,
            "type": settings.kb_type.value,
            "embedding_dimensions": settings.embedding_dimensions,
        },
        "pgvector": {
            "dsn": settings.pg_dsn,
            "table": settings.pg_table,
            "distance_metric": settings.distance_metric.value,
        },
        "chromadb": {
            "persist_dir": settings.chromadb_persist_dir,
        },
        "search": {
            "top_k": settings.search_top_k,
            "similarity_threshold": settings.search_similarity_threshold,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
