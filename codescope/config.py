"""
Configuration management for codescope.

Provides default configuration, loading from .codescope/config.toml and
environment overrides for the embedding provider.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Optional
try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python versions

logger = logging.getLogger(__name__)

CONFIG_DIR = ".codescope"
CONFIG_FILE = "config.toml"

DEFAULT_CONFIG = {
    "indexer": {
        "exclude": [],
        "max_file_size": 1048576,  # 1MB
        "max_workers": min(8, (os.cpu_count() or 1)),
    },
    "chunking": {
        "mode": "hierarchical",  # "hierarchical" or "simple"
        "max_lines_per_chunk": 200,
        "min_lines_per_chunk": 5,
        "include_metadata": True,
        "max_recursion_depth": 5,
    },
    "embeddings": {
        "provider": "local",  # "local", "openai", "siliconflow", "cohere"
        "model": None,  # provider default when unset
        "api_url": None,
        "api_key": None,
        "batch_size": 10,
        "timeout": 30.0,
        "dimension": None,
    },
    "store": {
        "path": ".codescope/data.lance",
        "collection_prefix": "codescope_",
    },
    "search": {
        "default_limit": 10,
        "min_score": 0.3,
    },
    "watcher": {
        "debounce_seconds": 1.0,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "json": False,
    },
}

# Environment variable -> (embeddings key, converter)
EMBEDDING_ENV_OVERRIDES = {
    "CODESCOPE_EMBEDDING_PROVIDER": ("provider", str),
    "CODESCOPE_EMBEDDING_API_URL": ("api_url", str),
    "CODESCOPE_EMBEDDING_MODEL": ("model", str),
    "CODESCOPE_EMBEDDING_API_KEY": ("api_key", str),
    "CODESCOPE_EMBEDDING_BATCH_SIZE": ("batch_size", int),
    "CODESCOPE_EMBEDDING_TIMEOUT": ("timeout", float),
    "CODESCOPE_EMBEDDING_DIMENSION": ("dimension", int),
}

CONFIG_TEMPLATE = """# codescope configuration

[indexer]
exclude = []              # extra gitwildmatch patterns, relative to the root
max_file_size = 1048576   # 1MB

[chunking]
mode = "hierarchical"     # "hierarchical" or "simple"
max_lines_per_chunk = 200
min_lines_per_chunk = 5
include_metadata = true
max_recursion_depth = 5

[embeddings]
# "local" runs a sentence-transformers model; "openai", "siliconflow" and
# "cohere" call an OpenAI-compatible HTTP endpoint (api_key required)
provider = "local"
# model = "all-MiniLM-L6-v2"
batch_size = 10
timeout = 30.0

[store]
path = ".codescope/data.lance"

[search]
default_limit = 10
min_score = 0.3

[watcher]
debounce_seconds = 1.0

[logging]
level = "INFO"
"""


class Config:
    """
    Configuration manager for codescope.

    Loads configuration from .codescope/config.toml if it exists,
    otherwise uses defaults. Embedding settings can be overridden with
    CODESCOPE_EMBEDDING_* environment variables.
    """

    def __init__(self, project_root: Optional[Path] = None, environ: Optional[dict[str, str]] = None):
        """
        Initialize configuration.

        Args:
            project_root: Root directory of the project (defaults to current directory)
            environ: Environment to read overrides from (defaults to os.environ)
        """
        self.project_root = Path(project_root or Path.cwd())
        self.config_path = self.project_root / CONFIG_DIR / CONFIG_FILE
        self._config = self._load_config()
        self._apply_env_overrides(os.environ if environ is None else environ)

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file or use defaults."""
        if not self.config_path.exists():
            logger.debug("No config file found, using defaults")
            return copy.deepcopy(DEFAULT_CONFIG)

        try:
            with open(self.config_path, "rb") as f:
                user_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Failed to load config from {self.config_path}: {e}")
            logger.warning("Using default configuration")
            return copy.deepcopy(DEFAULT_CONFIG)

        logger.info(f"Loaded config from {self.config_path}")
        return self._merge_configs(DEFAULT_CONFIG, user_config)

    def _merge_configs(self, default: dict, user: dict) -> dict:
        """
        Recursively merge user config with defaults.

        User values take precedence, but missing keys use defaults.
        """
        merged = copy.deepcopy(default)
        for key, value in user.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _apply_env_overrides(self, environ: dict[str, str]) -> None:
        for var, (key, convert) in EMBEDDING_ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                self.set("embeddings", key, value=convert(raw))
            except ValueError:
                logger.warning(f"Ignoring invalid value for {var}: {raw!r}")
                continue
            logger.debug(f"Embedding setting '{key}' overridden by {var}")

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a configuration value by nested keys.

        Examples:
            config.get("chunking", "max_lines_per_chunk")
            config.get("embeddings", "model")

        Args:
            *keys: Nested keys to traverse
            default: Default value if key not found or unset

        Returns:
            Configuration value or default
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return default if value is None else value

    def set(self, *keys: str, value: Any) -> None:
        """
        Set a configuration value by nested keys.

        Args:
            *keys: Nested keys to traverse
            value: Value to set
        """
        if not keys:
            return

        current = self._config
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    @property
    def store_path(self) -> Path:
        """Location of the LanceDB database, resolved against the project root."""
        path = Path(self.get("store", "path", default=".codescope/data.lance"))
        return path if path.is_absolute() else self.project_root / path

    @property
    def chunking(self) -> dict[str, Any]:
        """Get chunking configuration."""
        return self._config.get("chunking", {})

    def __repr__(self) -> str:
        """String representation."""
        return f"Config(project_root={self.project_root})"
