"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.d365cli/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import yaml
from dotenv import load_dotenv

from d365cli.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".d365cli"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "D365CLI_"

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BACKOFF_BASE = 2.0

# Values shipped in sample config files that must be replaced before use
PLACEHOLDER_PREFIXES = ("[Enter here", "{", "<")

# Keys whose environment values are passed through verbatim, never coerced
RAW_STRING_KEYS = ("auth.", "api.base_url")

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('auth': {'client_id'} -> 'auth.client_id')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Test overrides
    2. Environment Variables (including those loaded from .env)
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load or parse YAML config {config_file}: {e}") from e
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets everything loaded so far. Mainly for tests."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _env_key(key: str) -> str:
    return ENV_PREFIX + key.upper().replace(".", "_")


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    Environment variables are looked up as D365CLI_<KEY> with dots replaced
    by underscores, e.g. 'auth.client_id' -> D365CLI_AUTH_CLIENT_ID.

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        value = os.environ[env_key]
        return value if key.startswith(RAW_STRING_KEYS) else _coerce(value)

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def _is_placeholder(value: Optional[str]) -> bool:
    return not value or not value.strip() or value.strip().startswith(PLACEHOLDER_PREFIXES)


def get_client_id() -> Optional[str]:
    value = get_config("auth.client_id")
    return str(value) if value is not None else None


def get_client_secret() -> Optional[str]:
    value = get_config("auth.client_secret")
    return str(value) if value is not None else None


def get_authority() -> Optional[str]:
    """Gets the token authority, e.g. https://login.microsoftonline.com/<tenant>."""
    value = get_config("auth.authority")
    return str(value).rstrip("/") if value is not None else None


def get_api_base_url() -> Optional[str]:
    """Gets the Web API base URL, e.g. https://org.crm.dynamics.com/api/data/v9.1/."""
    value = get_config("api.base_url")
    if value is None:
        return None
    value = str(value)
    return value if value.endswith("/") else value + "/"


def get_scope() -> Optional[str]:
    """Gets the client-credentials scope.

    Defaults to '<resource>/.default' derived from the API base URL.
    """
    value = get_config("auth.scope")
    if value is not None:
        return str(value)
    base_url = get_api_base_url()
    if base_url is None:
        return None
    parts = urlsplit(base_url)
    return f"{parts.scheme}://{parts.netloc}/.default"


def get_timeout_seconds() -> float:
    return float(get_config("api.timeout_seconds", DEFAULT_TIMEOUT_SECONDS))


def get_max_attempts() -> int:
    value = int(get_config("retry.max_attempts", DEFAULT_MAX_ATTEMPTS))
    if value < 0:
        raise ConfigurationError(f"retry.max_attempts must be >= 0, got {value}")
    return value


def get_backoff_base() -> float:
    value = float(get_config("retry.backoff_base", DEFAULT_BACKOFF_BASE))
    if value <= 1:
        raise ConfigurationError(f"retry.backoff_base must be > 1, got {value}")
    return value


def get_auth_settings() -> Dict[str, str]:
    """Returns the settings needed for the client-credentials flow.

    Raises:
        ConfigurationError: If any of them is missing or still a placeholder.
    """
    settings = {
        "client_id": get_client_id(),
        "client_secret": get_client_secret(),
        "authority": get_authority(),
        "scope": get_scope(),
    }
    missing = [name for name, value in settings.items() if _is_placeholder(value)]
    if missing:
        raise ConfigurationError(
            "Missing auth settings: " + ", ".join(missing)
            + f". Set them in {DEFAULT_CONFIG_FILE} or as {ENV_PREFIX}AUTH_* environment variables."
        )
    return settings  # type: ignore[return-value]


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
