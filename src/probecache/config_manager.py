"""Configuration management module.

Persistent settings for probecache, stored as TOML. The cache engine itself
takes plain arguments; this module is how the CLI and the action dispatcher
obtain them.

Security:
- Config file permissions: 0600 (owner read/write only)
- Insecure permissions are fixed on load with a warning

Environment overrides (applied after the file is read):
    PROBECACHE_CACHE_ROOT: cache root directory
    PROBECACHE_CACHE_TTL: cache TTL in seconds
"""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import tomli
import tomlkit

from probecache.exceptions import ConfigError
from probecache.file_lock_manager import DEFAULT_LOCK_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CACHE_ROOT = "/tmp/probecache"  # noqa: S108 - default location, overridable
DEFAULT_USER = "zabbix"
DEFAULT_GROUP = "zabbix"

ENV_CACHE_ROOT = "PROBECACHE_CACHE_ROOT"
ENV_CACHE_TTL = "PROBECACHE_CACHE_TTL"


@dataclass
class CacheSettings:
    """probecache configuration data."""

    cache_root: str = DEFAULT_CACHE_ROOT
    cache_ttl: float = 0  # 0 -> 60s default
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    debug: bool = False
    user: str = DEFAULT_USER
    group: str = DEFAULT_GROUP
    check_identity: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def validate(self) -> None:
        """Check settings for values the cache cannot work with.

        A negative TTL is accepted (every entry is then always stale).

        Raises:
            ConfigError: If a setting is invalid
        """
        if not self.cache_root:
            raise ConfigError("cache_root must not be empty")
        if self.lock_timeout <= 0:
            raise ConfigError(f"lock_timeout must be positive, got {self.lock_timeout}")
        if self.check_identity and not (self.user and self.group):
            raise ConfigError("user and group are required when check_identity is enabled")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheSettings":
        """Create from dictionary.

        Raises:
            ConfigError: If a value has the wrong type
        """
        unknown = set(data) - set(cls.__dataclass_fields__)
        for key in sorted(unknown):
            logger.warning(f"Unknown config key: {key}")

        try:
            return cls(
                cache_root=str(data.get("cache_root", DEFAULT_CACHE_ROOT)),
                cache_ttl=float(data.get("cache_ttl", 0)),
                lock_timeout=float(data.get("lock_timeout", DEFAULT_LOCK_TIMEOUT)),
                debug=_as_bool(data.get("debug", False)),
                user=str(data.get("user", DEFAULT_USER)),
                group=str(data.get("group", DEFAULT_GROUP)),
                check_identity=_as_bool(data.get("check_identity", False)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "no", "0", "off", ""):
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


class ConfigManager:
    """Manage probecache configuration file.

    Configuration is stored at ~/.probecache/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".probecache"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If a custom path is given but does not exist
        """
        if custom_path:
            path = Path(custom_path).expanduser().resolve()
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path

        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> CacheSettings:
        """Load configuration from file, then apply environment overrides.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            CacheSettings object

        Raises:
            ConfigError: If loading fails
        """
        data = cls._load_file_data(custom_path)
        data.update(cls._env_overrides())
        return CacheSettings.from_dict(data)

    @classmethod
    def _load_file_data(cls, custom_path: str | None = None) -> dict[str, Any]:
        """Raw settings from the config file, without environment overrides."""
        config_path = cls.get_config_path(custom_path)

        data: dict[str, Any] = {}
        if config_path.exists():
            try:
                # Verify file permissions
                mode = config_path.stat().st_mode & 0o777
                if mode & 0o077:  # Check if group/other have any permissions
                    logger.warning(
                        f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                    )
                    os.chmod(config_path, 0o600)

                with open(config_path, "rb") as f:
                    data = tomli.load(f)

                logger.debug(f"Loaded config from: {config_path}")
            except (OSError, tomli.TOMLDecodeError) as e:
                raise ConfigError(f"Failed to load config: {e}") from e
        else:
            logger.debug("Config file not found, using defaults")

        return data

    @classmethod
    def save_config(cls, config: CacheSettings, custom_path: str | None = None) -> Path:
        """Save configuration to file.

        Comments and formatting of an existing file are preserved.

        Args:
            config: Configuration to save
            custom_path: Custom config file path (optional)

        Returns:
            Path of the written config file

        Raises:
            ConfigError: If saving fails
        """
        temp_path: Path | None = None
        try:
            if custom_path:
                config_path = Path(custom_path).expanduser().resolve()
            else:
                config_path = cls.DEFAULT_CONFIG_FILE
            config_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

            temp_path = config_path.with_suffix(".tmp")

            # Load existing file if it exists (preserves comments/formatting)
            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()
            for key, value in config.to_dict().items():
                doc[key] = value

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)

            # Set secure permissions before moving
            os.chmod(temp_path, 0o600)

            # Atomic rename
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")
            return config_path

        except Exception as e:
            # Cleanup temp file on error
            if temp_path and temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

    @classmethod
    def update_config(cls, custom_path: str | None = None, **updates: Any) -> CacheSettings:
        """Update configuration values.

        Raises:
            ConfigError: If a key is unknown or the update fails
        """
        # Environment overrides are not persisted
        data = CacheSettings.from_dict(cls._load_file_data(custom_path)).to_dict()
        for key, value in updates.items():
            if key not in data:
                raise ConfigError(f"Unknown config key: {key}")
            data[key] = value

        config = CacheSettings.from_dict(data)
        cls.save_config(config, custom_path)
        return config

    @staticmethod
    def _env_overrides() -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if root := os.environ.get(ENV_CACHE_ROOT):
            overrides["cache_root"] = root
        if ttl := os.environ.get(ENV_CACHE_TTL):
            overrides["cache_ttl"] = ttl
        return overrides


__all__ = ["CacheSettings", "ConfigManager"]
