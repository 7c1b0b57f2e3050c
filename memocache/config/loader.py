"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the host project
  2. .env file           -- local developer overrides
  3. Environment vars    -- set at deploy time

The _deep_merge helper does recursive dict merging:
  base = {"cache": {"memory_max_size": 512}}
  overrides = {"cache": {"durable_backend": "memory"}}
  result = {"cache": {"memory_max_size": 512, "durable_backend": "memory"}}
"""

from pathlib import Path

import yaml

from memocache.config.settings import Settings

# Settings field → (section, key) in the YAML document.
_FIELD_SECTIONS = {
    "app_env": ("app", "env"),
    "durable_backend": ("cache", "durable_backend"),
    "memory_max_size": ("cache", "memory_max_size"),
    "sqlite_db_path": ("cache", "sqlite_db_path"),
    "sqlite_table": ("cache", "sqlite_table"),
    "report_errors": ("cache", "report_errors"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml") -> dict:
    """Load YAML config and merge with environment-based Settings.

    Only settings actually supplied through the environment or ``.env``
    override YAML values; unset fields leave the YAML untouched.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = Settings()
    env_overrides: dict = {}
    for field in settings.model_fields_set:
        if field not in _FIELD_SECTIONS:
            continue
        section, key = _FIELD_SECTIONS[field]
        env_overrides.setdefault(section, {})[key] = getattr(settings, field)

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def settings_from_config(config: dict) -> Settings:
    """Build a Settings instance from a resolved configuration dictionary."""
    values = {}
    for field, (section, key) in _FIELD_SECTIONS.items():
        section_values = config.get(section) or {}
        if key in section_values:
            values[field] = section_values[key]
    return Settings(**values)


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
