"""
Server settings.

Settings are layered, later sources win:

1. dataclass defaults
2. a YAML file (``MCNLS_CONFIG`` or an explicit path)
3. ``MCNLS_*`` environment variables (``DEBUG`` switches to debug logging)
4. ``initializationOptions`` sent by the client in ``initialize``
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV = "MCNLS_CONFIG"
ENV_PREFIX = "MCNLS_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(ValueError):
    """Raised when a settings source holds an invalid value."""


@dataclass(frozen=True)
class ServerSettings:
    max_source_length: int = 65536
    diagnostic_source: str = "mcn"
    log_level: str = "INFO"
    log_to_client: bool = True

    def merged(self, overrides: Mapping[str, Any] | None) -> ServerSettings:
        """
        Return a copy with ``overrides`` applied.

        Keys may be snake_case or camelCase. Unknown keys are ignored so
        clients can send options meant for other tools.

        Raises:
            ConfigError: if a known key has a value of the wrong type.
        """
        if not overrides:
            return self

        known = {f.name: f for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = _snake_case(str(key))
            if name not in known:
                continue
            changes[name] = _coerce(name, known[name].type, value)
        return replace(self, **changes)


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServerSettings:
    """
    Build settings from the YAML file and the environment.

    Args:
        path: YAML file to read. Defaults to ``$MCNLS_CONFIG`` when set.
        environ: Environment mapping, ``os.environ`` if None.

    Raises:
        ConfigError: if the file is not a mapping or holds invalid values.
    """
    if environ is None:
        environ = os.environ

    settings = ServerSettings()

    if path is None and environ.get(CONFIG_ENV):
        path = Path(environ[CONFIG_ENV])
    if path is not None:
        settings = settings.merged(_read_yaml(path))

    env_overrides = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key != CONFIG_ENV
    }
    if environ.get("DEBUG"):
        env_overrides.setdefault("log_level", "DEBUG")

    return settings.merged(env_overrides)


def _read_yaml(path: Path) -> Mapping[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, Mapping):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return data


def _snake_case(key: str) -> str:
    out = []
    for char in key:
        if char.isupper():
            out.append("_")
            out.append(char.lower())
        else:
            out.append(char)
    return "".join(out)


def _coerce(name: str, annotation: Any, value: Any) -> Any:
    # annotations are strings because of `from __future__ import annotations`
    kind = annotation if isinstance(annotation, str) else annotation.__name__

    if kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(value, str) and value.lower() in ("0", "false", "no", "off", ""):
            return False
        raise ConfigError(f"{name} must be a boolean, got {value!r}")

    if kind == "int":
        if isinstance(value, bool):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be an integer, got {value!r}") from e
        if number <= 0:
            raise ConfigError(f"{name} must be positive, got {number}")
        return number

    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")
    if name == "log_level":
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level {value!r}")
        return level
    return value
