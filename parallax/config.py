"""
Configuration management for Parallax.
"""
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

ENV_PREFIX = "PARALLAX_"

DEFAULT_CONFIG = {
    "fetch": {
        "requests_per_second": 1,
        "max_concurrent": 5,
        "timeout_seconds": 15,
        "max_tries": 3,
        "user_agent": "Parallax Lens/0.1 (+https://github.com/parallax-lens)",
    },
    "scoring": {
        "window_days": 7,
        # one of: bonus, filter, off
        "temporal_mode": "bonus",
        # one of: exact, soft, seeded
        "strategy": "seeded",
        "min_score": 0,
    },
    "dedup": {
        "title_threshold": 0.8,
    },
    "llm": {
        "model": "gpt-4o-mini",
        "temperature": 0,
        "max_tokens": 3000,
        "base_url": None,
        "api_key_env": "OPENAI_API_KEY",
        "max_tries": 3,
    },
    "edges": {
        "batch_threshold": 50,
        "overlap": 10,
    },
    "layout": {
        "ring_spacing": 100,
        "target_radius": 1.45,
    },
    "search": {
        "provider": "google_news",
        "language": "en",
        "country": "us",
        "brave_key_env": "BRAVE_API_KEY",
        "newsapi_key_env": "NEWSAPI_API_KEY",
    },
    "lenses": {},
}


class Config:
    """
    Configuration manager for Parallax.

    Values come from DEFAULT_CONFIG, then an optional YAML/JSON file, then
    PARALLAX_* environment variables (PARALLAX_SCORING_WINDOW_DAYS=3 sets
    scoring.window_days).
    """
    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the Config.

        Args:
            config_path: Path to a .yaml/.yml/.json configuration file
        """
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """
        Load configuration from file or use defaults.

        Returns:
            Configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            path = Path(self.config_path)
            if path.exists():
                try:
                    user_config = self._read_file(path)
                    if isinstance(user_config, dict):
                        self._update_dict(config, user_config)
                except (OSError, ValueError, yaml.YAMLError) as e:
                    logger.error(f"Error loading config from {self.config_path}: {e}")
                    logger.error("Using default configuration")
            else:
                logger.warning(f"Config file {self.config_path} not found, using defaults")

        self._override_from_env(config)
        return config

    @staticmethod
    def _read_file(path: Path) -> Any:
        suffix = path.suffix.lower()
        with open(path, "r", encoding="utf-8") as f:
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
            if suffix == ".json":
                return json.load(f)
        raise ValueError(f"Unsupported config file format: {path.suffix}")

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

    def _override_from_env(self, config: Dict, prefix: str = ENV_PREFIX) -> None:
        """
        Override configuration with environment variables.

        Section names never contain underscores, so the first underscore after
        the prefix separates the section from the key; the rest of the name is
        the key itself (PARALLAX_FETCH_MAX_CONCURRENT -> fetch.max_concurrent).

        Args:
            config: Configuration dictionary to update
            prefix: Prefix for environment variables
        """
        for key, value in os.environ.items():
            if not key.startswith(prefix) or key == f"{prefix}CONFIG_PATH":
                continue
            name = key[len(prefix):].lower()
            section, _, option = name.partition("_")
            if not option:
                continue
            current = config.setdefault(section, {})
            if not isinstance(current, dict):
                continue
            try:
                current[option] = json.loads(value)
            except json.JSONDecodeError:
                current[option] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'scoring.window_days')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self.config
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def save(self, path: Optional[str] = None) -> bool:
        """
        Save the current configuration to a file.

        Args:
            path: Path to save the configuration to

        Returns:
            True if successful, False otherwise
        """
        save_path = path or self.config_path
        if not save_path:
            logger.error("No path specified for saving configuration")
            return False

        target = Path(save_path)
        try:
            if target.suffix.lower() in (".yaml", ".yml"):
                with open(target, "w", encoding="utf-8") as f:
                    yaml.safe_dump(self.config, f, default_flow_style=False)
            elif target.suffix.lower() == ".json":
                with open(target, "w", encoding="utf-8") as f:
                    json.dump(self.config, f, indent=2)
            else:
                raise ValueError(f"Unsupported config file format: {target.suffix}")
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error saving config to {save_path}: {e}")
            return False


# Global configuration instance
config = Config(os.getenv("PARALLAX_CONFIG_PATH"))


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value from the global configuration.

    Args:
        key: Dot-separated key path (e.g., 'fetch.timeout_seconds')
        default: Default value if key not found

    Returns:
        Configuration value
    """
    return config.get(key, default)


def load_config(config_path: Optional[str]) -> Config:
    """
    Replace the global configuration, e.g. with a path given on the command line.

    Args:
        config_path: Path to a .yaml/.yml/.json configuration file

    Returns:
        The new global Config
    """
    global config
    config = Config(config_path)
    return config
