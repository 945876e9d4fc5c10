"""Render configuration for the dashboard core.

Settings are resolved in layers, later layers overriding earlier ones:
1. Built-in defaults (the dataclass field defaults below)
2. User config file: ~/.oms/tui.json
3. Project config file: .oms/tui.json (relative to the working directory)
4. Environment variables: OMS_TUI_<FIELD> (e.g. OMS_TUI_RESULT_MAX_LINES=20)

Invalid values are logged and ignored; loading never raises unless the
strict path (used by the CLI ``--config`` flag) is requested.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "OMS_TUI_"


@dataclass(frozen=True)
class RenderConfig:
    """Tunable limits and styling knobs for the rendering core."""
    markdown_cache_limit: int = 128  # LRU capacity for rendered markdown
    result_max_lines: int = 8  # Body lines shown for a plain tool result
    structured_max_lines: int = 12  # Rows shown for structured list results
    agent_summary_max_chars: int = 180  # Clip length for agent log summaries
    scroll_step_lines: int = 3  # Lines per mouse-wheel step
    ambiguous_width: int = 1  # Columns for East Asian Ambiguous characters
    code_theme: str = "monokai"  # Pygments theme for fenced code ("" = no highlighting)
    max_table_word_width: int = 30  # Cap for the unbreakable-word column minimum

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        base: Optional["RenderConfig"] = None,
        *,
        strict: bool = False,
    ) -> "RenderConfig":
        """Build a config by overlaying ``data`` on ``base``.

        Args:
            data: Mapping of field name to value.
            base: Config to start from (defaults to built-in defaults).
            strict: Raise ConfigError on unknown keys or invalid values
                instead of logging and skipping them.

        Returns:
            The merged configuration.
        """
        config = base or cls()
        known = {f.name: f for f in fields(cls)}
        updates: Dict[str, Any] = {}

        for key, value in data.items():
            field_def = known.get(key)
            if field_def is None:
                if strict:
                    raise ConfigError(f"Unknown config key: {key}")
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            coerced = _coerce(key, value, getattr(config, key))
            if coerced is None:
                if strict:
                    raise ConfigError(f"Invalid value for {key}: {value!r}")
                logger.warning(f"Ignoring invalid value for {key}: {value!r}")
                continue
            updates[key] = coerced

        return replace(config, **updates) if updates else config


def _coerce(key: str, value: Any, current: Any) -> Any:
    """Coerce a raw config value to the type of the current value.

    Returns:
        The coerced value, or None when the value is not acceptable.
    """
    if isinstance(current, bool):
        return value if isinstance(value, bool) else None
    if isinstance(current, int):
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                return None
        if not isinstance(value, int):
            return None
        if key == "ambiguous_width":
            return value if value in (1, 2) else None
        return value if value >= 0 else None
    if isinstance(current, str):
        return value.strip() if isinstance(value, str) else None
    return None


def _config_paths() -> list:
    """Config file locations, lowest precedence first."""
    return [
        Path.home() / ".oms" / "tui.json",
        Path.cwd() / ".oms" / "tui.json",
    ]


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load a JSON config file.

    Returns:
        The decoded object, or an empty dict when the file is absent or invalid.
    """
    try:
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning(f"Config file {path} does not contain an object")
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load config file {path}: {e}")
    return {}


def _env_overrides() -> Dict[str, Any]:
    """Collect OMS_TUI_<FIELD> environment overrides."""
    overrides: Dict[str, Any] = {}
    for f in fields(RenderConfig):
        value = os.environ.get(ENV_PREFIX + f.name.upper())
        if value is not None:
            overrides[f.name] = value
    return overrides


def load_config(path: Optional[str] = None, *, strict: bool = False) -> RenderConfig:
    """Load configuration from files and the environment.

    Args:
        path: Explicit config file. When given, it replaces the default
            file discovery (environment overrides still apply).
        strict: Raise ConfigError for an unreadable explicit file or
            invalid values.

    Returns:
        The resolved RenderConfig.
    """
    config = RenderConfig()

    if path is not None:
        explicit = Path(path)
        try:
            with open(explicit, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            if strict:
                raise ConfigError(f"Cannot load config {explicit}: {e}") from e
            logger.warning(f"Failed to load config file {explicit}: {e}")
            data = {}
        if not isinstance(data, dict):
            if strict:
                raise ConfigError(f"Config {explicit} must contain a JSON object")
            data = {}
        config = RenderConfig.from_dict(data, config, strict=strict)
    else:
        for candidate in _config_paths():
            data = _load_json_file(candidate)
            if data:
                config = RenderConfig.from_dict(data, config)
                logger.debug(f"Loaded config from {candidate}")

    return RenderConfig.from_dict(_env_overrides(), config, strict=strict)


_active_config: Optional[RenderConfig] = None


def get_config() -> RenderConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _active_config
    if _active_config is None:
        _active_config = load_config()
    return _active_config


def set_config(config: RenderConfig) -> None:
    """Replace the process-wide configuration."""
    global _active_config
    _active_config = config


def reset_config() -> None:
    """Drop the cached configuration so the next access reloads it."""
    global _active_config
    _active_config = None
