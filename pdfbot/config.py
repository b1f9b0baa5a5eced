"""
load the config from config.yaml and environment variables
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any


DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

# Environment variable -> nested config key
ENV_MAPPINGS = {
    'TELEGRAM_BOT_TOKEN': ('telegram', 'bot_token'),
    'TELEGRAM_API_URL': ('telegram', 'api_url'),
    'API_BASE_URL': ('acquisition', 'base_url'),
    'API_KEY': ('acquisition', 'api_key'),
    'FETCHER_TIMEOUT': ('fetcher', 'timeout'),
    'FETCHER_MAX_REDIRECTS': ('fetcher', 'max_redirects'),
    'REMOTE_TIMEOUT': ('acquisition', 'remote_timeout'),
    'NAVIGATION_TIMEOUT': ('renderer', 'navigation_timeout'),
    'RENDER_TIMEOUT': ('renderer', 'render_timeout'),
    'UPLOAD_TIMEOUT': ('telegram', 'upload_timeout'),
    'LOG_LEVEL': ('logging', 'level'),
    'HOST': ('server', 'host'),
    'PORT': ('server', 'port'),
}

# Credentials and URLs are never type-converted ("0123" must stay a string)
STRING_ENV_VARS = {'TELEGRAM_BOT_TOKEN', 'TELEGRAM_API_URL', 'API_BASE_URL', 'API_KEY', 'LOG_LEVEL', 'HOST'}


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    def __init__(self, config_path: str = None, environ: Dict[str, str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, uses the config.yaml
                        shipped next to this module.
            environ: Mapping to read overrides from; defaults to os.environ.
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        self.config_path = Path(config_path)
        self._environ = os.environ if environ is None else environ
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in ENV_MAPPINGS.items():
            env_value = self._environ.get(env_var)
            if env_value is None or env_value == '':
                continue

            current = config
            for key in config_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]

            if env_var in STRING_ENV_VARS:
                current[config_path[-1]] = env_value
            else:
                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by nested keys.

        Args:
            *keys: Configuration keys (e.g., 'fetcher', 'timeout')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return default if current is None else current

    @property
    def renderer(self) -> Dict[str, Any]:
        return self.get('renderer', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        return self.get('logging', default={})

    @property
    def bot_token(self) -> str:
        return self.get('telegram', 'bot_token', default='')

    @property
    def api_key(self) -> str:
        return self.get('acquisition', 'api_key', default='')

    @property
    def acquisition_base_url(self) -> str:
        return self.get('acquisition', 'base_url', default='')


def load_config(config_path: str = None) -> Config:
    return Config(config_path)
