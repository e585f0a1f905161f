"""Configuration management for BoundingBox Editor."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .annotation_strategy import write_atomic
from .models import CategoryRegistry

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class AppConfig:
    """
    Application configuration settings.

    Stores user preferences and application state.
    """

    default_directory: str = ""
    default_save_format: str = "pascal_voc"  # Format used when none is given: pascal_voc or simple
    simple_file_name: str = "annotations.json"  # Dataset file of the Simple format
    category_file_name: str = "categories.yaml"  # Category colors stored next to saved annotations
    auto_detect_format: bool = True  # Auto-detect format when loading a directory
    max_recent_paths: int = 10  # Number of recent paths to remember (0-20, 0 = disabled)
    recent_paths: list[str] = field(default_factory=list)  # List of recently opened paths

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "defaultDirectory": self.default_directory,
            "defaultSaveFormat": self.default_save_format,
            "simpleFileName": self.simple_file_name,
            "categoryFileName": self.category_file_name,
            "autoDetectFormat": self.auto_detect_format,
            "maxRecentPaths": self.max_recent_paths,
            "recentPaths": self.recent_paths,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Create config from dictionary."""
        recent_paths = data.get("recentPaths", [])
        if not isinstance(recent_paths, list):
            logger.warning(f"Ignoring recentPaths of type {type(recent_paths).__name__}")
            recent_paths = []

        return cls(
            default_directory=data.get("defaultDirectory", ""),
            default_save_format=data.get("defaultSaveFormat", "pascal_voc"),
            simple_file_name=data.get("simpleFileName", "annotations.json"),
            category_file_name=data.get("categoryFileName", "categories.yaml"),
            auto_detect_format=data.get("autoDetectFormat", True),
            max_recent_paths=data.get("maxRecentPaths", 10),
            recent_paths=[str(p) for p in recent_paths],
        )


def _read_yaml_mapping(path: Path, description: str) -> Optional[Dict[str, Any]]:
    """
    Read a YAML file whose top level must be a mapping.

    Returns:
        The mapping, or None if the file is missing, unreadable or not a mapping
    """
    if not path.exists():
        logger.info(f"{description} not found at {path}")
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing {description.lower()} {path}: {e}")
        return None
    except OSError as e:
        logger.error(f"Error reading {description.lower()} {path}: {e}")
        return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.error(f"Invalid {description.lower()} {path}: top level must be a mapping, got {type(data).__name__}")
        return None
    return data


def _write_yaml(path: Path, data: Dict[str, Any], description: str) -> bool:
    try:
        write_atomic(path, yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
    except OSError as e:
        logger.error(f"Error saving {description.lower()} {path}: {e}")
        return False
    return True


class ConfigManager:
    """
    Loads, caches and saves the application configuration.

    A missing, unreadable or malformed file yields the default AppConfig.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        self.config_path = Path(config_path)
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        """Read the configuration file, falling back to defaults."""
        data = _read_yaml_mapping(self.config_path, "Config file")
        if data is None:
            return AppConfig()

        config = AppConfig.from_dict(data)
        logger.info(f"Loaded configuration from {self.config_path}")
        return config

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """
        Write the configuration file.

        Args:
            config: Configuration to store as current before saving

        Returns:
            True if the file was written
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        if not _write_yaml(self.config_path, self._config.to_dict(), "Config file"):
            return False
        logger.info(f"Saved configuration to {self.config_path}")
        return True

    def update(self, **kwargs: Any) -> None:
        """Set known configuration fields and save; unknown keys are logged and ignored."""
        config = self.config
        for key, value in kwargs.items():
            if key in AppConfig.__dataclass_fields__:
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown config key: {key}")
        self.save()

    def add_recent_path(self, path: str) -> None:
        """Move a path to the front of the recent paths list."""
        config = self.config
        if config.max_recent_paths <= 0:
            return
        recent = [p for p in config.recent_paths if p != path]
        recent.insert(0, path)
        config.recent_paths = recent[:config.max_recent_paths]
        self.save()


class CategoryRegistryFile:
    """
    Category exchange file (categories.yaml).

    Stores the name -> color mapping of a category registry next to exported
    annotations so that reopening a project reproduces the same colors.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self, registry: Optional[CategoryRegistry] = None) -> CategoryRegistry:
        """
        Load categories from file.

        Args:
            registry: Registry to add missing categories to (existing
                categories keep their colors)

        Returns:
            The updated registry, or a new one
        """
        registry = registry if registry is not None else CategoryRegistry()
        data = _read_yaml_mapping(self.path, "Category file")
        if data is None:
            return registry

        categories = data.get("categories", {})
        if not isinstance(categories, dict):
            logger.error(f"Invalid category file {self.path}: 'categories' must be a mapping")
            return registry

        loaded = CategoryRegistry.from_dict({str(k): str(v) for k, v in categories.items()})
        for category in loaded:
            if category.name not in registry:
                registry.add(category)

        logger.info(f"Loaded {len(loaded)} categories from {self.path}")
        return registry

    def save(self, registry: CategoryRegistry) -> bool:
        """Save the categories of a registry to file."""
        if not _write_yaml(self.path, {"categories": registry.to_dict()}, "Category file"):
            return False
        logger.info(f"Saved {len(registry)} categories to {self.path}")
        return True
