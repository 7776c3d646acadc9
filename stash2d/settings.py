"""TOML configuration loader.

Loads the bundled defaults.toml and overlays an optional user file.
Both files keep their keys under a [stash2d] table.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from stash2d.errors import ConfigError
from stash2d.schemas.stash import StashConfig

# Default config directory relative to the stash2d package
_CONFIG_DIR = Path(__file__).parent / "config"
DEFAULTS_FILE = _CONFIG_DIR / "defaults.toml"


def _read_section(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    section = raw.get("stash2d", {})
    if not isinstance(section, dict):
        raise ConfigError(f"[stash2d] in {path} must be a table")
    return section


def load_config(config_path: Path | None = None) -> StashConfig:
    """Load the effective configuration.

    Args:
        config_path: Optional user config file overriding the defaults.

    Returns:
        StashConfig with defaults overlaid by the user file.

    Raises:
        ConfigError: If a file is missing, unparsable, or holds bad values.
    """
    if not DEFAULTS_FILE.exists():
        raise ConfigError(f"Default config not found: {DEFAULTS_FILE}")

    values = _read_section(DEFAULTS_FILE)

    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        values.update(_read_section(config_path))

    try:
        return StashConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
