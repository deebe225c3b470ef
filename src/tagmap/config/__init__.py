"""Configuration management for tagmap."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import LoggingSettings, SortMode, TagMapConfig
from .resolver import flatten_for_env, merge_defaults, resolve_with_precedence

DEFAULT_CONFIG_DIRNAME = ".tagmap"
DEFAULT_CONFIG_FILENAME = "config.yaml"
ENV_PREFIX = "TAGMAP__"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # tagmap configuration file
    # Generated automatically; manage via `tagmap config edit` or `tagmap config set`.
    """
)


def config_path_for(vault_root: Path) -> Path:
    """Return the settings file location for a vault."""
    return vault_root.expanduser() / DEFAULT_CONFIG_DIRNAME / DEFAULT_CONFIG_FILENAME


class ConfigManager:
    """Load and persist vault settings, applying precedence rules."""

    def __init__(
        self,
        config_path: Path,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = config_path.expanduser()
        self._env = env if env is not None else os.environ

    @classmethod
    def for_vault(cls, vault_root: Path, *, env: Mapping[str, str] | None = None) -> ConfigManager:
        """Return a manager bound to the settings file of ``vault_root``."""
        return cls(config_path_for(vault_root), env=env)

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> TagMapConfig:
        """Load settings from disk with defaults merged underneath stored values."""
        if ensure_file:
            self.ensure_exists()

        file_data = self._read_file()
        env_data: Mapping[str, str] | None = None
        if include_env:
            env_data = env_overrides if env_overrides is not None else self._env

        return resolve_with_precedence(
            defaults=TagMapConfig(),
            file_overrides=file_data,
            env_overrides=self._extract_env(env_data) if env_data else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def save(self, config: TagMapConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, TagMapConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a settings file with defaults if one does not exist."""
        path = self._config_path
        if not path.exists():
            self._write_file(TagMapConfig().model_dump(mode="python"))
        return path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")

        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        timestamp = f"# Last updated: {stamp}\n"
        self._config_path.write_text(_CONFIG_HEADER + timestamp + serialized, encoding="utf-8")

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, raw_value in env.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
            if not path:
                continue
            try:
                parsed_value: Any = yaml.safe_load(raw_value)
            except yaml.YAMLError:
                parsed_value = raw_value

            current = overrides
            for segment in path[:-1]:
                existing = current.get(segment)
                if not isinstance(existing, dict):
                    existing = {}
                    current[segment] = existing
                current = existing
            current[path[-1]] = parsed_value

        return overrides


__all__ = [
    "ConfigManager",
    "ConfigError",
    "DEFAULT_CONFIG_DIRNAME",
    "ENV_PREFIX",
    "LoggingSettings",
    "SortMode",
    "TagMapConfig",
    "config_path_for",
    "flatten_for_env",
    "merge_defaults",
    "resolve_with_precedence",
]
