"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

from models import ExportVariant

DEFAULT_CONFIG: Dict[str, Any] = {
    'export': {
        'manifest_path': './attachment_manifest.json',
        'shelf_marker': 'home'
    },
    'migration': {
        'mode': ExportVariant.HTML.value,
        'dry_run': False,
        'page_delay': 0.6,
        'entity_delay': 0.1,
        'max_upload_size': 50 * 1024 * 1024
    },
    'retry': {
        'max_attempts': 5,
        'base_delay': 0.3,
        'multiplier': 2
    },
    'advanced': {
        'request_timeout': 30,
        'verify_ssl': True,
        'connection_retries': 3,
        'progress_bars': True
    },
    'logging': {
        'level': None,
        'file': None
    }
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Missing sections are filled from DEFAULT_CONFIG.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.apply_defaults(config_data)

    @classmethod
    def apply_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``config`` with every DEFAULT_CONFIG key present."""
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in config.items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = copy.deepcopy(values)
        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any], require_remote: bool = True) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate
            require_remote: Whether BookStack credentials are mandatory

        Raises:
            ValueError: If validation fails
        """
        mode = get_nested(config, 'migration.mode', ExportVariant.HTML.value)
        try:
            ExportVariant(mode)
        except ValueError:
            raise ValueError(
                f"migration.mode must be one of: {[v.value for v in ExportVariant]}"
            )

        if require_remote:
            cls._validate_required_field(config, 'bookstack.base_url')
            cls._validate_required_field(config, 'bookstack.token_id')
            cls._validate_required_field(config, 'bookstack.token_secret')
            cls._validate_url(get_nested(config, 'bookstack.base_url'), 'bookstack.base_url')

        cls._validate_required_field(config, 'export.path')

        for key in ('migration.page_delay', 'migration.entity_delay', 'retry.base_delay'):
            value = get_nested(config, key, 0)
            if not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"{key} must be a non-negative number")

        multiplier = get_nested(config, 'retry.multiplier', 2)
        if not isinstance(multiplier, (int, float)) or multiplier < 1:
            raise ValueError("retry.multiplier must be a number >= 1")

        max_attempts = get_nested(config, 'retry.max_attempts', 5)
        if not isinstance(max_attempts, int) or max_attempts < 1:
            raise ValueError("retry.max_attempts must be a positive integer")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_upload_size = get_nested(config, 'migration.max_upload_size', 0)
        if not isinstance(max_upload_size, int) or max_upload_size <= 0:
            raise ValueError("migration.max_upload_size must be a positive integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('migration', 'export', 'logging', 'bookstack'):
            merged.setdefault(section, {})

        if getattr(args, 'mode', None):
            merged['migration']['mode'] = args.mode

        if getattr(args, 'dry_run', None) is not None:
            merged['migration']['dry_run'] = args.dry_run

        if getattr(args, 'page_delay', None) is not None:
            merged['migration']['page_delay'] = args.page_delay

        if getattr(args, 'export_path', None):
            merged['export']['path'] = args.export_path

        if getattr(args, 'folder', None):
            merged['export']['folder'] = args.folder

        if getattr(args, 'manifest', None):
            merged['export']['manifest_path'] = args.manifest

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "bookstack.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
