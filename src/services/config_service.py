"""
Configuration Service Module

Reads the player configuration from YAML: built-in defaults, the shipped
template in config/default_config.yaml, then the user's own file.
"""

import copy
from typing import Any, Dict, Optional
from pathlib import Path
import os
import sys
import yaml
import threading
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'app': {
        'name': 'Cassette Player',
        'log_level': 'INFO',
    },
    'audio': {
        'backend': 'pygame',
        'require_rate': False,
        'status_interval_ms': 200,
    },
    'playback': {
        'default_volume': 1.0,
        'default_rate': 1.0,
        'seek_step_seconds': 10,
        'persist_session': True,
    },
    'memory': {
        'sync_interval_seconds': 5,
    },
    'persistence': {
        # Empty means the platform data directory
        'db_path': '',
    },
    'sfx': {
        'clips': {
            'insert': 'assets/sfx/tape-cassette-insert.mp3',
            'eject': 'assets/sfx/cassette-eject.mp3',
        },
        'insert_delay_ms': 250,
        'eject_delay_ms': 200,
    },
    'catalog': {
        'directory': 'assets/mp3s',
        'tracks': [],
    },
}


class ConfigService:
    """
    Configuration Service - Singleton Pattern

    Usage Example:
        config = ConfigService("config/default_config.yaml")

        step = config.get("playback.seek_step_seconds", 10)

        config.set("playback.default_volume", 0.6)
        config.save()
    """

    _instance: Optional['ConfigService'] = None
    _lock = threading.Lock()

    def __new__(cls, config_path: str = None) -> 'ConfigService':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: str = None):
        if self._initialized:
            return

        self._default_config_path = Path("config/default_config.yaml")
        provided_path = Path(config_path) if config_path else None

        # A custom path is both read and written; the template path is
        # read-only and saves go to the user directory instead.
        self._use_custom_path = (
            provided_path is not None and provided_path != self._default_config_path
        )
        if self._use_custom_path:
            self._user_config_path = provided_path
        else:
            self._user_config_path = self._get_user_config_path()

        self._config: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._initialized = True

        self._load()

    @property
    def user_config_path(self) -> Path:
        return self._user_config_path

    @staticmethod
    def _get_user_config_path() -> Path:
        """Get user configuration file path (platform-specific)"""
        if sys.platform == "win32":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif sys.platform == "darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        return base / "cassette-player" / "config.yaml"

    def _load(self) -> None:
        """Rebuild the configuration from defaults and files"""
        config = self._get_default_config()

        sources = [self._user_config_path]
        if not self._use_custom_path:
            sources.insert(0, self._default_config_path)

        for path in sources:
            loaded = self._read_yaml(path)
            if loaded:
                self._deep_merge(config, loaded)

        with self._lock:
            self._config = config

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.warning("Failed to load configuration %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring configuration %s: top level is not a mapping", path)
            return {}
        return data

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Deep merge dictionaries, override overwrites base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _get_default_config(self) -> Dict[str, Any]:
        return copy.deepcopy(DEFAULT_CONFIG)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Supports dot-separated nested keys, e.g., "sfx.clips.insert".
        """
        with self._lock:
            value = self._config
            try:
                for k in key.split('.'):
                    value = value[k]
                return value
            except (KeyError, TypeError):
                return default

    def get_float(self, key: str, default: float) -> float:
        """Numeric value, falling back to default when missing or malformed"""
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Invalid number for %s: %r, using %s", key, value, default)
            return float(default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value (dot-separated key)"""
        with self._lock:
            keys = key.split('.')
            config = self._config
            for k in keys[:-1]:
                if not isinstance(config.get(k), dict):
                    config[k] = {}
                config = config[k]
            config[keys[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._config)

    def save(self) -> bool:
        """
        Save configuration to the user configuration file.

        Returns:
            bool: True if saving was successful.
        """
        try:
            self._user_config_path.parent.mkdir(parents=True, exist_ok=True)

            with self._lock:
                with open(self._user_config_path, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(self._config, f, allow_unicode=True, default_flow_style=False)
            logger.debug("Configuration saved to: %s", self._user_config_path)
            return True
        except Exception as e:
            logger.error("Failed to save configuration: %s", e)
            return False

    def reload(self) -> bool:
        try:
            self._load()
            return True
        except Exception as e:
            logger.error("Failed to reload configuration: %s", e)
            return False

    def reset(self) -> None:
        """Reset to default configuration."""
        with self._lock:
            self._config = self._get_default_config()

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing only)."""
        with cls._lock:
            cls._instance = None
