"""
Settings management

Loads the packaged YAML settings with per-environment overrides
"""
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from protpipe.core.exceptions import ConfigError, ConfigNotFoundError, ConfigValidationError


ENV_PREFIX = "PROTPIPE_"


class Config:
    """
    Settings manager

    Usage:
        config = Config()  # default: production environment
        config = Config(env="development")

        image = config.get("backend.image")
        grace = config.get("stages.grace_period_seconds", default=15)
    """

    _instance: "Config | None" = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs) -> "Config":
        """Singleton"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, env: str | None = None, config_dir: Path | None = None):
        if Config._initialized:
            return

        load_dotenv()

        # environment: argument > env var > default
        self.env = env or os.getenv(f"{ENV_PREFIX}ENV", "production")

        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            # protpipe/config
            self.config_dir = Path(__file__).parent.parent / "config"

        self._config: dict[str, Any] = {}
        self._load_config()

        Config._initialized = True

    def _load_config(self) -> None:
        """Load base settings, then environment settings, then env vars"""
        base_config_path = self.config_dir / "settings.yaml"
        if base_config_path.exists():
            self._config = self._load_yaml(base_config_path)
        else:
            raise ConfigNotFoundError(
                f"Base settings file not found: {base_config_path}"
            )

        env_config_path = self.config_dir / f"settings.{self.env}.yaml"
        if env_config_path.exists():
            env_config = self._load_yaml(env_config_path)
            self._deep_merge(self._config, env_config)

        self._apply_env_overrides()

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load a YAML file"""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error: {path}", {"error": str(e)})

        if not isinstance(data, dict):
            raise ConfigValidationError(f"Settings file must contain a mapping: {path}")
        return data

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Deep merge (override wins)"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Override settings from PROTPIPE_<SECTION>__<KEY> variables

        Values are YAML scalars or flow collections, so "false" is a bool,
        "15" an int and "[--cleanenv, --nv]" a list.
        """
        for key, value in os.environ.items():
            if key.startswith(ENV_PREFIX) and "__" in key:
                # PROTPIPE_STAGES__GRACE_PERIOD_SECONDS -> stages.grace_period_seconds
                config_key = key[len(ENV_PREFIX):].lower().replace("__", ".")
                try:
                    parsed = yaml.safe_load(value)
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid value in {key}", {"error": str(e)})
                self._set_nested(config_key, parsed)

    def _set_nested(self, key: str, value: Any) -> None:
        """Set a nested value using dot notation"""
        keys = key.split(".")
        current = self._config

        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a setting (dot notation)

        Args:
            key: setting key (e.g. "backend.image", "stages.library.marker")
            default: value returned when the key is missing

        Returns:
            setting value or default
        """
        keys = key.split(".")
        current = self._config

        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def get_required(self, key: str) -> Any:
        """
        Look up a required setting

        Args:
            key: setting key

        Returns:
            setting value

        Raises:
            ConfigValidationError: when the key is missing
        """
        value = self.get(key)
        if value is None:
            raise ConfigValidationError(f"Required setting is missing: {key}")
        return value

    def get_section(self, section: str) -> dict[str, Any]:
        """Return a whole section"""
        return self.get(section, {})

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for tests)"""
        cls._instance = None
        cls._initialized = False


def get_config() -> Config:
    """Return the Config instance"""
    return Config()
