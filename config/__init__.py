"""
Configuration Module for the Serial OCR Pipeline.

This module provides centralized configuration management using YAML files.
Recognition, extraction and logging parameters are controlled through
configuration, not hard-coded.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from serial_ocr.utils.helpers import merge_dicts


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


class ConfigurationManager:
    """
    Centralized configuration management for the serial OCR pipeline.

    Loads the packaged ``settings.yaml`` and, when a custom file is given,
    deep-merges it over the defaults so a deployment only lists the keys
    it changes.

    Attributes:
        config_path (Path): Path to the custom configuration file, if any.
        config (Dict): Loaded configuration dictionary.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("ocr.preferred_provider")
        'cloud'
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        """
        Singleton pattern to ensure only one configuration instance exists.

        Args:
            config_path: Optional path to configuration file.

        Returns:
            ConfigurationManager instance.
        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to a custom configuration file
                        merged over config/settings.yaml.
        """
        if self._initialized:
            return

        self.config_path = Path(config_path) if config_path else None

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load default configuration and merge the custom file over it.

        Raises:
            FileNotFoundError: If a configuration file doesn't exist.
            yaml.YAMLError: If a configuration file is invalid.
        """
        config = self._read_yaml(DEFAULT_SETTINGS_PATH)

        if self.config_path is not None:
            config = merge_dicts(config, self._read_yaml(self.config_path))

        self._config = config

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "ocr.timeout_ms").
            default: Default value if key doesn't exist.

        Returns:
            Configuration value or default.

        Example:
            >>> config.get("ocr.language_hints")
            ['vi', 'en']
            >>> config.get("nonexistent.key", "default_value")
            'default_value'
        """
        value = self._config

        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_all(self) -> Dict[str, Any]:
        """
        Get the complete configuration dictionary.

        Returns:
            Complete configuration dictionary.
        """
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """
        Reset the singleton instance.
        Useful for testing or configuration changes.
        """
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get configuration values.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config', 'DEFAULT_SETTINGS_PATH']
