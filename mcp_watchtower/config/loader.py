"""Configuration file loading and validation.

Loads a YAML configuration file, expands ``${ENV_VAR}`` placeholders,
and validates against the Pydantic models in :mod:`schema`.  Running
without a config file is valid and yields the defaults.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from mcp_watchtower.config.env import expand_env_vars
from mcp_watchtower.config.schema import WatchtowerConfig
from mcp_watchtower.constants import CONFIG_ENV_VAR, CONFIG_SEARCH_ORDER
from mcp_watchtower.errors import ConfigurationError

logger = logging.getLogger(__name__)

_YAML_EXTS = frozenset({".yaml", ".yml"})


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except Exception as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def find_config_file() -> Optional[str]:
    """Locate a config file: ``$WATCHTOWER_CONFIG`` first, then the CWD."""
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return from_env
    for name in CONFIG_SEARCH_ORDER:
        candidate = os.path.join(os.getcwd(), name)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_watchtower_config(cfg_fpath: Optional[str] = None) -> WatchtowerConfig:
    """Load, expand and validate the configuration.

    ``None`` returns the built-in defaults.

    Raises:
        ConfigurationError: On a missing file, I/O or parse errors, or
            validation failures (all errors reported at once).
    """
    if cfg_fpath is None:
        logger.debug("No configuration file; using defaults.")
        return WatchtowerConfig()

    logger.debug("Loading configuration file: %s", cfg_fpath)
    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    raw_data = expand_env_vars(_read_config_file(cfg_fpath))

    try:
        config = WatchtowerConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc

    logger.info("Configuration '%s' loaded (v%s).", cfg_fpath, config.version)
    return config
