"""Configuration management for the insights engine."""

import json
import os
import yaml
from dataclasses import asdict, fields
from typing import Dict, Any, Optional
import logging

from ..models.core import EngineConfig
from .error_handler import ConfigurationError


logger = logging.getLogger(__name__)


STRING_KEYS = ('uploaded_journal', 'bundled_binary', 'currency_symbol', 'balancing_account')
OPTIONAL_STRING_KEYS = ('ledger_binary', 'log_directory')
NUMBER_KEYS = ('command_timeout', 'max_gap_variation', 'anomaly_threshold', 'high_severity_threshold')
POSITIVE_INT_KEYS = ('min_occurrences', 'category_depth')


class ConfigManager:
    """Loads and validates the engine configuration"""

    SEARCH_PATHS = [
        'ledger_config.json',
        'ledger_config.yml',
        'ledger_config.yaml',
        'config/ledger_config.json',
        'config/ledger_config.yml',
        'config/ledger_config.yaml',
        os.path.expanduser('~/.ledger_insights/config.json'),
        os.path.expanduser('~/.ledger_insights/config.yml'),
    ]

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to configuration file. If None, searches the default locations.
        """
        self.config_path = config_path
        self._config_cache: Optional[EngineConfig] = None

    def load_config(self, force_reload: bool = False) -> EngineConfig:
        """Load configuration from file or return defaults

        Args:
            force_reload: Force reload from file even if cached

        Returns:
            EngineConfig with loaded or default values
        """
        if self._config_cache is not None and not force_reload:
            return self._config_cache

        config_data = self._load_config_file()
        known = {f.name for f in fields(EngineConfig)}
        unknown = sorted(set(config_data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        self._config_cache = EngineConfig(**{k: v for k, v in config_data.items() if k in known})
        logger.info(f"Configuration loaded successfully from {self.config_path or 'defaults'}")
        return self._config_cache

    def _load_config_file(self) -> Dict[str, Any]:
        """Read and validate the configuration file

        Returns:
            Configuration data, or an empty dict when no usable file is found
        """
        config_file = self._find_config_file()

        if not config_file or not os.path.exists(config_file):
            logger.info("No configuration file found, using defaults")
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if config_file.endswith('.json'):
                    data = json.load(f)
                elif config_file.endswith(('.yml', '.yaml')):
                    data = yaml.safe_load(f)
                else:
                    logger.warning(f"Unsupported config file format: {config_file}")
                    return {}

            self._validate_config_data(data)
            logger.info(f"Configuration loaded from {config_file}")
            return data

        except (OSError, ValueError, yaml.YAMLError, ConfigurationError) as e:
            logger.warning(f"Error reading configuration file {config_file}: {e}. Using defaults.")
            return {}

    def _find_config_file(self) -> Optional[str]:
        if self.config_path:
            return self.config_path

        for path in self.SEARCH_PATHS:
            if os.path.exists(path):
                return path

        return None

    def _validate_config_data(self, data: Any) -> None:
        """Validate configuration data structure

        Raises:
            ConfigurationError: If a value has the wrong type or range
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        if 'journal_files' in data:
            if not isinstance(data['journal_files'], list):
                raise ConfigurationError("journal_files must be a list")
            for path in data['journal_files']:
                if not isinstance(path, str) or not path.strip():
                    raise ConfigurationError("All journal file paths must be non-empty strings")

        for key in STRING_KEYS:
            if key in data and (not isinstance(data[key], str) or not data[key].strip()):
                raise ConfigurationError(f"{key} must be a non-empty string")

        for key in OPTIONAL_STRING_KEYS:
            if data.get(key) is not None and not isinstance(data[key], str):
                raise ConfigurationError(f"{key} must be a string")

        if 'sign_insensitive_dedup' in data and not isinstance(data['sign_insensitive_dedup'], bool):
            raise ConfigurationError("sign_insensitive_dedup must be a boolean")

        for key in NUMBER_KEYS:
            if key in data:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise ConfigurationError(f"{key} must be a positive number")

        for key in POSITIVE_INT_KEYS:
            if key in data:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                    raise ConfigurationError(f"{key} must be a positive integer")

        if data.get('min_occurrences', 3) < 2:
            raise ConfigurationError("min_occurrences must be at least 2")

    def save_config_template(self, output_path: str) -> None:
        """Write a configuration file holding every key at its default value"""
        template = asdict(EngineConfig())

        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            if output_path.endswith(('.yml', '.yaml')):
                yaml.safe_dump(template, f, default_flow_style=False, indent=2, allow_unicode=True)
            else:
                json.dump(template, f, indent=2, ensure_ascii=False)

        logger.info(f"Configuration template saved to {output_path}")

    def update_config(self, updates: Dict[str, Any]) -> None:
        """Apply updates to the cached configuration"""
        if self._config_cache is None:
            self.load_config()

        for key, value in updates.items():
            if hasattr(self._config_cache, key):
                setattr(self._config_cache, key, value)
                logger.debug(f"Updated configuration: {key} = {value}")
            else:
                logger.warning(f"Unknown configuration key: {key}")

    def reset_config(self) -> None:
        """Reset configuration cache, forcing reload on next access"""
        self._config_cache = None
        logger.debug("Configuration cache reset")
