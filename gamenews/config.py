"""
Configuration management for GameNews.
"""
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Feed URLs historically supplied one per environment variable
FEED_ENV_VARS = [
    "IGN_NEWS_FEED",
    "IGN_REVIEWS_FEED",
    "GAMESPOT_NEWS_FEED",
    "GAMESPOT_REVIEWS_FEED",
    "POLYGON_FEED",
    "EUROGAMER_FEED",
    "PCGAMER_FEED",
    "GAMERANT_FEED",
    "THEGAMER_FEED",
]

# Default configuration
DEFAULT_CONFIG = {
    "feeds": [],
    "storage": {
        "path": "gamenews.db",
        "max_articles": 1000
    },
    "cache": {
        "ttl_seconds": 60,
        "redis_url": None,
        "redis_timeout_seconds": 1.0
    },
    "http": {
        "timeout_seconds": 30,
        "max_concurrent": 5,
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
        )
    },
    "scheduler": {
        "interval_seconds": 300,
        "run_on_start": True
    },
    "query": {
        "default_limit": 10,
        "restricted_sources": ["polygon", "gamerant", "thegamer"],
        "eu_countries": [
            "AT", "BE", "BG", "CY", "CZ", "DE", "DK", "EE", "ES", "FI", "FR",
            "GR", "HR", "HU", "IE", "IT", "LT", "LU", "LV", "MT", "NL", "PL",
            "PT", "RO", "SE", "SI", "SK"
        ]
    }
}


class Config:
    """
    Configuration manager for GameNews.
    """
    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the Config.

        Args:
            config_path: Path to a YAML or JSON configuration file
        """
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """
        Load configuration from file, legacy variables and prefixed overrides.

        Returns:
            Configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            try:
                path = Path(self.config_path)
                if path.exists():
                    if path.suffix.lower() in ['.yaml', '.yml']:
                        with open(path, 'r') as f:
                            user_config = yaml.safe_load(f) or {}
                    elif path.suffix.lower() == '.json':
                        with open(path, 'r') as f:
                            user_config = json.load(f)
                    else:
                        raise ValueError(f"Unsupported config file format: {path.suffix}")

                    self._update_dict(config, user_config)
                else:
                    logger.warning(f"Config file {self.config_path} not found, using defaults")
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.error(f"Error loading config from {self.config_path}: {e}")
                logger.error("Using default configuration")

        self._apply_legacy_env(config)
        self._override_from_env(config)

        return config

    def _update_dict(self, target: Dict, source: Dict) -> None:
        """
        Recursively update a dictionary.

        Args:
            target: Target dictionary to update
            source: Source dictionary with new values
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _apply_legacy_env(self, config: Dict) -> None:
        """
        Apply the unprefixed variables older deployments rely on.

        Args:
            config: Configuration dictionary to update
        """
        env_feeds = [os.environ[name] for name in FEED_ENV_VARS if os.environ.get(name)]
        if env_feeds:
            config["feeds"] = list(config.get("feeds") or []) + env_feeds

        if os.environ.get("MAX_NEWS_LIMIT"):
            config["storage"]["max_articles"] = int(os.environ["MAX_NEWS_LIMIT"])
        if os.environ.get("CACHE_DURATION_MS"):
            config["cache"]["ttl_seconds"] = int(os.environ["CACHE_DURATION_MS"]) / 1000
        if os.environ.get("REDIS_URL"):
            config["cache"]["redis_url"] = os.environ["REDIS_URL"]

    def _override_from_env(self, config: Dict, prefix: str = 'GAMENEWS_') -> None:
        """
        Override configuration with environment variables.

        Nesting levels are separated by a double underscore, so
        GAMENEWS_CACHE__TTL_SECONDS sets cache.ttl_seconds.

        Args:
            config: Configuration dictionary to update
            prefix: Prefix for environment variables
        """
        for key, value in os.environ.items():
            if not key.startswith(prefix) or key == f"{prefix}CONFIG_PATH":
                continue

            parts = key[len(prefix):].lower().split('__')

            current = config
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            try:
                current[parts[-1]] = json.loads(value)
            except json.JSONDecodeError:
                current[parts[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'cache.ttl_seconds')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self.config

        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]

        return current

    @property
    def feeds(self) -> List[str]:
        """Configured feed URLs, empty entries dropped."""
        return [url for url in (self.get("feeds") or []) if url]


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Build a Config from an explicit path or GAMENEWS_CONFIG_PATH.

    Args:
        config_path: Optional path overriding the environment

    Returns:
        Config instance
    """
    return Config(config_path or os.getenv('GAMENEWS_CONFIG_PATH'))
