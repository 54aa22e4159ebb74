"""Configuration loading from YAML files with environment variable support."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .core.exceptions import ConfigurationError

logger = logging.getLogger("anthropic-proxy")

# Default path to the config file (relative to project root)
DEFAULT_CONFIG_PATH = "configs/config_default.yaml"

DEFAULT_BASE_URL = "https://openrouter.ai/api"
DEFAULT_MODEL = "google/gemini-2.5-pro"
DEFAULT_TIMEOUT = 600.0
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class ProxySettings:
    """Read-only settings handed to the translator and the app factory."""

    base_url: str = DEFAULT_BASE_URL
    requires_api_key: bool = True
    api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    reasoning_model: str = DEFAULT_MODEL
    completion_model: str = DEFAULT_MODEL
    debug: bool = False
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    finalize_on_eof: bool = True

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/v1/chat/completions"


def resolve_config_path(path: str) -> Path:
    """Resolve config path relative to project root if needed."""
    if Path(path).is_absolute():
        return Path(path)
    project_root = Path(__file__).parent.parent
    return project_root / path


def load_env_values(env_path: Path) -> dict[str, str]:
    """Load environment values from a .env file without mutating os.environ."""
    if not env_path.exists():
        return {}
    raw_values = dotenv_values(env_path)
    return {key: value for key, value in raw_values.items() if value is not None}


def load_config(
    path: str | None = None,
    env_values: Mapping[str, str] | None = None,
    substitute_env: bool = True,
) -> dict:
    """Load configuration from a YAML file.

    Args:
        path: Path to the config file. Defaults to ANTHROPIC_PROXY_CONFIG,
              or configs/config_default.yaml in the project root.
        env_values: Extra values (usually from a .env file) consulted before
              the process environment during substitution.
        substitute_env: Whether to substitute environment variables in the config.

    Returns:
        Parsed configuration dictionary. A missing file yields an empty dict.

    Raises:
        ConfigurationError: If the file exists but cannot be parsed.
    """
    if path is None:
        path = os.getenv("ANTHROPIC_PROXY_CONFIG") or DEFAULT_CONFIG_PATH

    config_path = resolve_config_path(path)

    if not config_path.exists():
        logger.info(f"No config file at {config_path}, using environment only")
        return {}

    logger.info(f"Loading configuration from {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    if substitute_env:
        data = _substitute_env_vars(data, env_values)

    return data


def _substitute_env_vars(
    obj: Any, env_values: Mapping[str, str] | None = None
) -> Any:
    """Recursively substitute environment variables in configuration values.

    Supports two formats:
    - ${VAR_NAME}: Braced format
    - $VAR_NAME: Simple format

    Unset variables leave the literal placeholder in place and log a warning.
    """
    env_values = env_values or {}

    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v, env_values) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item, env_values) for item in obj]
    if isinstance(obj, str):
        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            value = env_values.get(var_name)
            if value is None:
                value = os.getenv(var_name)
            if value is None:
                logger.warning(
                    f"CONFIG ERROR: Environment variable '${var_name}' is not set! "
                    f"The literal placeholder will be used."
                )
                return match.group(0)
            return value

        return _ENV_PATTERN.sub(replace_var, obj)
    return obj


def _section(config: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    current: Any = config
    for key in keys:
        if not isinstance(current, Mapping):
            return {}
        current = current.get(key) or {}
    return current if isinstance(current, Mapping) else {}


def _to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off", ""}:
        return False
    return None


def _to_float(value: Any, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid numeric setting {value!r}")
        return default


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid integer setting {value!r}")
        return default


def build_settings(
    config: Mapping[str, Any],
    environ: Mapping[str, str],
) -> ProxySettings:
    """Merge a parsed config file with environment values.

    Environment variables take priority over the config file.
    """
    backend_cfg = _section(config, "backend")
    models_cfg = _section(config, "models")
    proxy_cfg = _section(config, "proxy_settings")
    server_cfg = _section(proxy_cfg, "server")
    stream_cfg = _section(proxy_cfg, "stream")

    env_base_url = environ.get("ANTHROPIC_PROXY_BASE_URL")
    base_url = str(env_base_url or backend_cfg.get("base_url") or DEFAULT_BASE_URL)

    # A base URL given through the environment is assumed to be a
    # self-hosted backend without auth unless the config file says otherwise.
    requires_api_key = _to_bool(backend_cfg.get("requires_api_key"))
    if requires_api_key is None:
        requires_api_key = not env_base_url

    api_key = environ.get("OPENROUTER_API_KEY") or backend_cfg.get("api_key")
    if not requires_api_key:
        api_key = None
    elif not api_key:
        logger.warning("Backend requires an API key but OPENROUTER_API_KEY is not set")

    debug = _to_bool(environ.get("DEBUG"))
    if debug is None:
        debug = bool(_to_bool(proxy_cfg.get("debug")))

    finalize_on_eof = _to_bool(stream_cfg.get("finalize_on_eof"))

    return ProxySettings(
        base_url=base_url,
        requires_api_key=requires_api_key,
        api_key=str(api_key) if api_key else None,
        timeout=_to_float(
            environ.get("ANTHROPIC_PROXY_TIMEOUT") or backend_cfg.get("timeout"),
            DEFAULT_TIMEOUT,
        ),
        reasoning_model=str(
            environ.get("REASONING_MODEL") or models_cfg.get("reasoning") or DEFAULT_MODEL
        ),
        completion_model=str(
            environ.get("COMPLETION_MODEL") or models_cfg.get("completion") or DEFAULT_MODEL
        ),
        debug=debug,
        host=str(environ.get("ANTHROPIC_PROXY_HOST") or server_cfg.get("host") or DEFAULT_HOST),
        port=_to_int(
            environ.get("ANTHROPIC_PROXY_PORT") or server_cfg.get("port"),
            DEFAULT_PORT,
        ),
        finalize_on_eof=True if finalize_on_eof is None else finalize_on_eof,
    )


def load_settings(
    path: str | None = None,
    env_path: str | None = None,
) -> ProxySettings:
    """Load settings from the config file, a .env file and the environment."""
    dotenv_path = resolve_config_path(env_path or ".env")
    env_file_values = load_env_values(dotenv_path)
    if env_file_values:
        logger.info(f"Loaded environment variables from {dotenv_path}")

    environ: dict[str, str] = dict(env_file_values)
    environ.update(os.environ)

    config = load_config(path, env_values=env_file_values)
    return build_settings(config, environ)
