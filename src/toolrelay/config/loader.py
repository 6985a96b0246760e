"""Configuration loading for toolrelay.

Layers, lowest priority first:
    1. Model defaults
    2. ``$XDG_CONFIG_HOME/toolrelay/config.toml`` (``~/.config`` fallback)
    3. ``./toolrelay.toml``
    4. The file named by ``$TOOLRELAY_CONFIG``
    5. An explicit ``--config`` path
    6. Programmatic overrides

After validation the loader settles what depends on the process
environment: the SearXNG base URL (from ``tools.web_search.searxng_url_env``
when no file sets it) and the search capability override that follows
from having one.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolrelay.core.errors import ConfigError

from .schema import ToolRelayConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TOOLRELAY_CONFIG"
PROJECT_FILE = "toolrelay.toml"
SEARCH_CAPABILITY = "SEARXNG_URL"


def config_layers(path: str | Path | None = None) -> list[Path]:
    """Config files to merge, lowest priority first.

    Implicit locations are skipped when absent; a file named by
    ``$TOOLRELAY_CONFIG`` or ``path`` must exist.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    user_dir = Path(xdg) if xdg else Path.home() / ".config"
    implicit = (user_dir / "toolrelay" / "config.toml", Path.cwd() / PROJECT_FILE)
    layers = [p for p in implicit if p.is_file()]

    env_problem = f"{CONFIG_ENV_VAR} points to non-existent file"
    explicit = (
        (os.environ.get(CONFIG_ENV_VAR), env_problem),
        (path, "Config file not found"),
    )
    for value, problem in explicit:
        if not value:
            continue
        candidate = Path(value)
        if not candidate.is_file():
            msg = f"{problem}: {value}"
            raise ConfigError(msg)
        layers.append(candidate)
    return layers


def _read_layer(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def merge_tables(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge TOML tables key by key; any non-table value replaces outright."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_tables(current, value)
        else:
            merged[key] = value
    return merged


def _settle_environment(config: ToolRelayConfig) -> None:
    """Resolve the SearXNG URL and seed the search capability (in-place)."""
    search = config.tools.web_search
    if not search.searxng_url and search.searxng_url_env:
        search.searxng_url = os.environ.get(search.searxng_url_env) or None
    if search.searxng_url:
        config.capabilities.overrides.setdefault(SEARCH_CAPABILITY, True)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ToolRelayConfig:
    """Load, merge and validate configuration.

    Args:
        path: Explicit config file, merged above every discovered file.
        overrides: Tables merged last (highest overall priority).

    Raises:
        ConfigError: On a missing explicit file, invalid TOML, or a
            value the schema rejects (bad origin, proxy path, types).
    """
    merged: dict[str, Any] = {}
    for layer in config_layers(path):
        logger.debug("Reading config layer %s", layer)
        merged = merge_tables(merged, _read_layer(layer))
    if overrides:
        merged = merge_tables(merged, overrides)

    try:
        config = ToolRelayConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _settle_environment(config)
    return config
