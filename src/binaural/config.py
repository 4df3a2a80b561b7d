"""
Configuration management for the binaural renderer.

Loads and validates a TOML config against strict bounds. Executable paths,
upload location and streaming parameters live here and are handed to the
components at construction time; business logic never reads the environment.
"""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional
import toml
import logging

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "server": {
            "port": (1, 65535),
        },
        "paths": {
            "ffmpeg": None,
            "ffprobe": None,
            "upload_dir": None,
        },
        "probe": {
            "timeout_seconds": (1, 300),
        },
        "render": {
            "chunk_size_bytes": (4096, 1048576),
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "server": {
            "host": "0.0.0.0",
            "port": 3000,
        },
        "paths": {
            "ffmpeg": "ffmpeg",
            "ffprobe": "ffprobe",
            "upload_dir": "uploads",
        },
        "probe": {
            "timeout_seconds": 30,
        },
        "render": {
            "chunk_size_bytes": 65536,
        },
    }

    # Environment variable -> (section, param, cast)
    ENV_OVERRIDES = {
        "PORT": ("server", "port", int),
        "FFMPEG_PATH": ("paths", "ffmpeg", str),
        "FFPROBE_PATH": ("paths", "ffprobe", str),
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def defaults(cls) -> "Config":
        """Config built purely from DEFAULT_CONFIG."""
        return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "Config":
        """
        Load config from TOML file, then apply environment overrides.

        Args:
            config_path: Path to binaural.toml. If None, uses BINAURAL_CONFIG_PATH
                        env var or defaults to configs/binaural.toml.
            environ: Environment mapping (defaults to os.environ).

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or cannot be parsed.
        """
        if environ is None:
            environ = dict(os.environ)

        if config_path is None:
            config_path = environ.get("BINAURAL_CONFIG_PATH", "configs/binaural.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            config_dict = copy.deepcopy(cls.DEFAULT_CONFIG)
        else:
            try:
                config_dict = toml.load(config_path)
                logger.info(f"Loaded config from {config_path}")
            except Exception as e:
                raise ConfigError(f"Failed to load config from {config_path}: {e}")

        cls._apply_env_overrides(config_dict, environ)
        return cls(config_dict)

    @classmethod
    def _apply_env_overrides(cls, config_dict: Dict[str, Any], environ: Dict[str, str]) -> None:
        for var, (section, param, cast) in cls.ENV_OVERRIDES.items():
            raw = environ.get(var)
            if not raw:
                continue
            try:
                value = cast(raw)
            except ValueError:
                raise ConfigError(f"Invalid value for {var}: {raw!r}")
            config_dict.setdefault(section, {})[param] = value
            logger.debug(f"{var} overrides {section}.{param}")

    def _validate(self) -> None:
        """
        Validate all config parameters against their bounds.

        Raises:
            ConfigError: If any parameter is out of bounds.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]
            defaults = self.DEFAULT_CONFIG.get(section, {})

            for param, default_val in defaults.items():
                if param not in section_data:
                    logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                    section_data[param] = default_val

            for param, bounds in params.items():
                value = section_data.get(param)

                # String params: only require a non-empty value
                if bounds is None:
                    if not isinstance(value, str) or not value:
                        raise ConfigError(f"Parameter {section}.{param} must be a non-empty string")
                    continue

                min_val, max_val = bounds
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigError(f"Parameter {section}.{param}={value!r} is not a number")
                if not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        logger.info("✅ Config validation passed")

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["paths"]"""
        return self.data.get(section, {})

    @property
    def ffmpeg_path(self) -> str:
        return self.get("paths", "ffmpeg")

    @property
    def ffprobe_path(self) -> str:
        return self.get("paths", "ffprobe")

    @property
    def upload_dir(self) -> Path:
        return Path(self.get("paths", "upload_dir"))

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"
