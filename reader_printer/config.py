"""
Configuration management for reader-printer.

Handles loading configuration from YAML files and environment variables
with sensible defaults.
"""

import os
import logging
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Mapping

from .exceptions import ConfigMissing
from .models import PrintOptions

logger = logging.getLogger(__name__)


# Environment variable -> dotted config key. Earlier names win.
ENV_OVERRIDES = (
    ('API_KEY', 'reader.api_key'),
    ('READER_API_KEY', 'reader.api_key'),
    ('PRINTER_NAME', 'printing.printer'),
    ('READER_PRINTER_STATE', 'state.path'),
)


class Config:
    """Configuration manager for reader-printer."""

    def __init__(self, config_file: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 load_user_config: bool = True):
        """
        Initialize configuration.

        Args:
            config_file: Path to custom config file. If None, uses default locations.
            environ: Environment mapping to read overrides from (os.environ if None)
            load_user_config: Search the default locations when no file is given
        """
        self.config_data = self._load_default_config()

        if config_file:
            self.load_file(config_file)
        elif load_user_config:
            self._load_user_config()

        self._apply_environment(os.environ if environ is None else environ)

    def _load_default_config(self) -> Dict[str, Any]:
        """Load default configuration values."""
        return {
            "reader": {
                "api_key": None,
                "base_url": "https://readwise.io/api/v3",
                "auth_url": "https://readwise.io/api/v2/auth/",
                "location": None,
                "category": None,
                "timeout": 30,
                "user_agent": "reader-printer/1.0.0"
            },
            "printing": {
                "printer": None,
                "options": {
                    "sides": "two-sided-long-edge"
                },
                "settle_delay": 5,
                "lp_command": "lp",
                "lpstat_command": "lpstat",
                "timeout": 60
            },
            "renderer": {
                "command": ["percollate"],
                "page_size": "letter",
                "timeout": 300
            },
            "state": {
                "path": "db.json",
                "temp_dir": None
            }
        }

    def _load_user_config(self) -> None:
        """Load user configuration from standard locations."""
        possible_paths = [
            Path.home() / ".reader-printer.yml",
            Path.home() / ".reader-printer.yaml",
            Path.home() / ".config" / "reader-printer" / "config.yml",
            Path.home() / ".config" / "reader-printer" / "config.yaml",
            Path("reader-printer.yml"),
            Path("reader-printer.yaml")
        ]

        for config_path in possible_paths:
            if config_path.exists():
                self.load_file(str(config_path))
                break

    def load_file(self, config_file: str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_file: Path to the configuration file.
        """
        config_path = Path(config_file).expanduser()
        if not config_path.exists():
            logger.warning("Config file %s does not exist, using defaults", config_path)
            return

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            # Keep the defaults rather than failing the run
            logger.warning("Could not load config file %s: %s", config_file, e)
            return

        if isinstance(user_config, dict):
            self._merge_config(user_config)
            logger.debug("Loaded configuration from %s", config_path)

    def _apply_environment(self, environ: Mapping[str, str]) -> None:
        applied = set()
        for variable, key in ENV_OVERRIDES:
            value = environ.get(variable)
            if value and key not in applied:
                self.set(key, value)
                applied.add(key)

    def _merge_config(self, user_config: Dict[str, Any]) -> None:
        """
        Merge user configuration with defaults.

        Args:
            user_config: User configuration dictionary.
        """
        def deep_merge(default: Dict, user: Dict) -> Dict:
            """Recursively merge user config into default config."""
            result = default.copy()
            for key, value in user.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value
            return result

        self.config_data = deep_merge(self.config_data, user_config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'reader.timeout' or 'printing.printer')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self.config_data

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'printing.printer')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config_data

        # Navigate to the parent of the target key
        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def require(self, key: str, hint: Optional[str] = None) -> Any:
        """
        Get a configuration value that must be present.

        Raises:
            ConfigMissing: If the value is unset or empty
        """
        value = self.get(key)
        if value is None or value == '':
            raise ConfigMissing(key, hint)
        return value

    def get_reader_config(self) -> Dict[str, Any]:
        """Get Reader API settings."""
        return self.get('reader', {})

    def get_printing_config(self) -> Dict[str, Any]:
        """Get printing settings."""
        return self.get('printing', {})

    def get_renderer_config(self) -> Dict[str, Any]:
        """Get webpage renderer settings."""
        return self.get('renderer', {})

    def get_print_options(self) -> PrintOptions:
        """Build print options from the ``printing.options`` mapping."""
        return PrintOptions.from_dict(self.get('printing.options', {}))


# Global configuration instance
_config = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
