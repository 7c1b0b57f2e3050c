"""Configuration module -- exports Settings and the YAML loader."""

from memocache.config.loader import load_config, settings_from_config
from memocache.config.settings import Settings

__all__ = ["Settings", "load_config", "settings_from_config"]
