"""
Configuration management for GemGuard.

Handles loading, merging and discovery of YAML configuration files. The
packaged ``gemguard/config/default.yaml`` is always the base; a user file
is deep-merged over it.
"""
import copy
import importlib.resources as importlib_resources
import logging
import os
from typing import Any, Optional

import yaml

from ..utils.exceptions import FileError

PROJECT_CONFIG_FILE = ".gemguard.yml"

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages GemGuard configuration loading and merging operations."""

    def load_config(self, path: str) -> dict:
        """Load configuration from a YAML file. An empty file yields {}."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise yaml.YAMLError(f"top-level value must be a mapping, got {type(data).__name__}")
        return data

    def deep_merge(self, default: dict, user: dict) -> dict:
        """Deep merge user config into default config."""
        result = copy.deepcopy(default)
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def load_package_default_config(self) -> dict:
        """Load default config shipped with the package."""
        import gemguard.config

        default_config_path = importlib_resources.files(gemguard.config) / "default.yaml"
        with default_config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)

    def load_and_merge_config(self, user_config_path: str) -> dict:
        """Load a user config and merge it over the package default.

        Invalid YAML is reported and the defaults are used instead.
        """
        default_config = self.load_package_default_config()
        try:
            user_config = self.load_config(user_config_path)
        except yaml.YAMLError as e:
            logger.warning(f"Invalid YAML in {user_config_path}: {e}. Using default configuration.")
            return default_config
        return self.deep_merge(default_config, user_config)

    def discover_and_load_config(self, config_arg: Optional[str], cwd: Optional[str] = None) -> dict:
        """Discover config file with priority order.

        1. ``--config`` argument (must exist)
        2. ``.gemguard.yml`` in the working directory
        3. Package default config
        """
        if config_arg:
            if os.path.exists(config_arg):
                return self.load_and_merge_config(config_arg)
            raise FileError(f"Config file not found: {config_arg}", path=config_arg)

        project_config = os.path.join(cwd or os.getcwd(), PROJECT_CONFIG_FILE)
        if os.path.exists(project_config):
            return self.load_and_merge_config(project_config)

        return self.load_package_default_config()

    def merge_config_and_args(self, config: dict, **overrides: Any) -> dict:
        """Apply CLI arguments over configuration. ``None`` values are ignored."""
        for key, value in overrides.items():
            if value is not None:
                self.set(config, key, value)
        return config

    @staticmethod
    def get(config: dict, key: str, default: Any = None) -> Any:
        """Read a dot-notation key such as ``sbom.format``."""
        value: Any = config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    @staticmethod
    def set(config: dict, key: str, value: Any) -> None:
        """Write a dot-notation key, creating intermediate mappings."""
        parts = key.split(".")
        target = config
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = value

    def save(self, config: dict, path: str = PROJECT_CONFIG_FILE) -> None:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
