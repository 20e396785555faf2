"""
Layered configuration for the migrator.

Lookup order (first hit wins):
1. Command-line flags, applied by the CLI through ``override``
2. Environment variables with the ESCROW_ prefix
3. The TOML file
4. The caller's default
"""
import os
from pathlib import Path
from typing import Any, Mapping, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from escrow_migrator.core.errors import ConfigurationError

_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def env_key(prefix: str, key: str) -> str:
    """``migration.dry_run`` -> ``ESCROW_MIGRATION_DRY_RUN``."""
    return prefix + key.upper().replace(".", "_")


def coerce_env(raw: str) -> Any:
    """Turn an environment string into a bool, number, list or str."""
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return float(raw) if "." in raw else int(raw)
    except ValueError:
        pass
    if "," in raw:
        return [part.strip() for part in raw.split(",")]
    return raw


class ConfigManager:
    """Dot-notation access over flags, environment and a TOML file.

    Usage:
        config = ConfigManager(Path("config/default.toml"))
        config.override("migration.network", args.network)
        batch_size = config.get_int("migration.migration_batch_size", 450)
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_prefix: str = "ESCROW_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config_path = config_path
        self._env_prefix = env_prefix
        self._environ = os.environ if environ is None else environ
        self._overrides: dict[str, Any] = {}
        self._data: dict[str, Any] = {}
        if config_path is not None and config_path.exists():
            try:
                with open(config_path, "rb") as f:
                    self._data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}", cause=e)

    def _from_file(self, key: str) -> tuple[bool, Any]:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return False, None
            node = node[part]
        return True, node

    def _resolve(self, key: str) -> tuple[Optional[str], Any]:
        if key in self._overrides:
            return "override", self._overrides[key]
        name = env_key(self._env_prefix, key)
        if name in self._environ:
            return "env", coerce_env(self._environ[name])
        found, value = self._from_file(key)
        if found:
            return "file", value
        return None, None

    def override(self, key: str, value: Any) -> None:
        """Pin ``key`` above env and file. ``None`` leaves it unset."""
        if value is not None:
            self._overrides[key] = value

    def source(self, key: str) -> Optional[str]:
        """Which layer supplies ``key``: "override", "env", "file" or None."""
        return self._resolve(key)[0]

    def get(self, key: str, default: Any = None) -> Any:
        layer, value = self._resolve(key)
        return default if layer is None else value

    def require(self, key: str) -> Any:
        """Like ``get`` but a missing or empty value is a ConfigurationError."""
        value = self.get(key)
        if value is None or value == "":
            raise ConfigurationError(
                f"Missing configuration value {key} "
                f"(set it in the config file or {env_key(self._env_prefix, key)})"
            )
        return value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ConfigurationError(f"{key} must be a boolean, got {value!r}")
        return bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, float) and not value.is_integer():
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}", cause=e)

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be a number, got {value!r}", cause=e)

    def get_list(self, key: str, default: Optional[list[Any]] = None) -> list[Any]:
        value = self.get(key)
        if value is None:
            return list(default or [])
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [value]

    @property
    def config_path(self) -> Optional[Path]:
        """Path the TOML data was loaded from, if any."""
        return self._config_path

    @property
    def raw_data(self) -> dict[str, Any]:
        """Copy of the TOML data, without env or overrides."""
        return dict(self._data)
