"""Configuration file loading and validation.

Loads a YAML configuration file, expands ``${VAR}`` placeholders and
validates the result against :class:`~mcp_hub.config.schema.HubConfig`.
:func:`backends_to_conf` turns the validated backends into the plain dicts
:class:`~mcp_hub.bridge.client_manager.ClientManager` connects from.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import yaml
from mcp import StdioServerParameters
from pydantic import ValidationError

from mcp_hub.config.schema import (
    HubConfig,
    SseBackendConfig,
    StdioBackendConfig,
    StreamableHttpBackendConfig,
)
from mcp_hub.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MCP_HUB_CONFIG"
DEFAULT_CONFIG_NAMES = ("config.yaml", "config.yml")

_YAML_EXTS = frozenset({".yaml", ".yml"})

# ${VAR} or ${VAR:-fallback}
_ENV_VAR_RE = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` / ``${VAR:-fallback}`` in strings.

    An unset variable without a fallback leaves the placeholder unchanged.
    """
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(_substitute, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _substitute(match: "re.Match[str]") -> str:
    name, fallback = match.group(1), match.group(2)
    if name in os.environ:
        return os.environ[name]
    return fallback if fallback is not None else match.group(0)


def find_config_file(explicit: Optional[str] = None) -> Optional[str]:
    """Pick the config file: explicit path, ``$MCP_HUB_CONFIG``, then CWD."""
    if explicit:
        return explicit
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return from_env
    for name in DEFAULT_CONFIG_NAMES:
        if os.path.isfile(name):
            return name
    return None


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
    except (OSError, yaml.YAMLError) as exc:
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


def parse_hub_config(raw_data: Dict[str, Any]) -> HubConfig:
    """Expand placeholders in already-parsed data and validate it."""
    try:
        return HubConfig.model_validate(expand_env_vars(raw_data))
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n{error_summary}"
        ) from exc


def load_hub_config(cfg_fpath: str) -> HubConfig:
    """Load, expand and validate the configuration file at *cfg_fpath*.

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures (all errors reported at once).
    """
    logger.debug("Loading configuration file: %s", cfg_fpath)
    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    config = parse_hub_config(_read_config_file(cfg_fpath))
    logger.info(
        "Configuration '%s' loaded (v%s). %d backend(s) defined.",
        cfg_fpath,
        config.version,
        len(config.backends),
    )
    return config


# ── Conversion for ClientManager ────────────────────────────────────────


def _backend_to_dict(
    cfg: StdioBackendConfig | SseBackendConfig | StreamableHttpBackendConfig,
) -> Dict[str, Any]:
    if isinstance(cfg, StdioBackendConfig):
        params = StdioServerParameters(command=cfg.command, args=cfg.args, env=cfg.env)
        entry: Dict[str, Any] = {"type": "stdio", "params": params}
    elif isinstance(cfg, StreamableHttpBackendConfig):
        entry = {"type": "streamable-http", "url": cfg.url}
        if cfg.headers:
            entry["headers"] = cfg.headers
    else:
        entry = {"type": "sse", "url": cfg.url}
        if cfg.command:
            entry["command"] = cfg.command
            entry["args"] = cfg.args
            entry["env"] = cfg.env
        if cfg.headers:
            entry["headers"] = cfg.headers

    if cfg.display_name:
        entry["display_name"] = cfg.display_name

    timeouts = cfg.timeouts
    for key, value in (
        ("init_timeout", timeouts.init),
        ("cap_fetch_timeout", timeouts.cap_fetch),
        ("sse_startup_delay", timeouts.sse_startup),
        ("startup_timeout", timeouts.startup),
    ):
        if value is not None:
            entry[key] = value
    return entry


def backends_to_conf(config: HubConfig) -> Dict[str, Dict[str, Any]]:
    """``{backend_name: connection dict}`` for :meth:`ClientManager.start_all`."""
    conf: Dict[str, Dict[str, Any]] = {}
    for name, backend in config.backends.items():
        conf[name] = _backend_to_dict(backend)
        logger.debug("Backend '%s' (type=%s) prepared.", name, backend.type)
    return conf
