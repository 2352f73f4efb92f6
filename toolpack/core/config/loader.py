"""
Configuration loader — reads .toolpack.yaml files into ``AppConfig``.

Sources, later wins:

    1. Built-in defaults
    2. ~/.toolpack.yaml           (global, optional)
    3. ./.toolpack.yaml           (project, optional)
    4. --config FILE              (explicit, must exist)
    5. Environment variables      (TOOLPACK_REGISTRY_URL,
                                   TOOLPACK_REGISTRY_BRANCH,
                                   TOOLPACK_TOKEN / GITHUB_TOKEN)

Mappings are merged key by key, so a project file that only sets
``registry.branch`` keeps the global ``registry.url``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from toolpack.core.errors import ConfigError
from toolpack.core.models.config import AppConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = ".toolpack.yaml"

ENV_REGISTRY_URL = "TOOLPACK_REGISTRY_URL"
ENV_REGISTRY_BRANCH = "TOOLPACK_REGISTRY_BRANCH"
ENV_TOKENS = ("TOOLPACK_TOKEN", "GITHUB_TOKEN")


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse one YAML config file into a mapping.

    Raises:
        ConfigError: Unreadable file, invalid YAML, or not a mapping.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path=str(path)) from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}", path=str(path),
        )
    return data


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``override`` wins on conflicts."""
    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = merge(out[key], value)
        else:
            out[key] = value
    return out


def _env_overrides(env: dict[str, str]) -> dict[str, Any]:
    registry: dict[str, Any] = {}
    if env.get(ENV_REGISTRY_URL):
        registry["url"] = env[ENV_REGISTRY_URL]
    if env.get(ENV_REGISTRY_BRANCH):
        registry["branch"] = env[ENV_REGISTRY_BRANCH]
    for name in ENV_TOKENS:
        if env.get(name):
            registry["auth_token"] = env[name]
            break
    return {"registry": registry} if registry else {}


def load_config(
    path: Path | None = None,
    *,
    home: Path | None = None,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
) -> AppConfig:
    """Load and validate the effective configuration.

    Args:
        path: Explicit config file (``--config``); must exist.
        home: Home directory override (tests).
        cwd: Working directory override (tests).
        env: Environment override (tests); defaults to ``os.environ``.

    Raises:
        ConfigError: If any file is invalid, or ``path`` is missing.
    """
    home = home if home is not None else Path.home()
    cwd = cwd if cwd is not None else Path.cwd()
    env = dict(os.environ) if env is None else env

    data: dict[str, Any] = {}
    for candidate in (home / CONFIG_FILE, cwd / CONFIG_FILE):
        if candidate.is_file():
            logger.debug("Loading config from %s", candidate)
            data = merge(data, read_config_file(candidate))

    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}", path=str(path))
        logger.debug("Loading config from %s", path)
        data = merge(data, read_config_file(path))

    data = merge(data, _env_overrides(env))

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
