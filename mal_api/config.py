import json
import os
from typing import Any, Dict

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # MyAnimeList API client (https://myanimelist.net/apiconfig)
    "mal_client_id": "",
    "mal_client_secret": "",
    "mal_redirect_uri": "",

    # Tokens from a previous authorization, if the caller keeps them around.
    "mal_access_token": "",
    "mal_refresh_token": "",
    "mal_auto_refresh": False,

    # HTTP
    "mal_api_base_url": "https://api.myanimelist.net/v2/",
    "mal_oauth_base_url": "https://myanimelist.net/v1/oauth2/",
    "mal_timeout": 30.0,
    "mal_pkce_challenge_size": 32,
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "mal_client_id": {"type": str, "required": False},
    "mal_client_secret": {"type": str, "required": False},
    "mal_redirect_uri": {"type": str, "required": False},
    "mal_access_token": {"type": str, "required": False},
    "mal_refresh_token": {"type": str, "required": False},
    "mal_auto_refresh": {"type": bool, "required": False},
    "mal_api_base_url": {"type": str, "required": True},
    "mal_oauth_base_url": {"type": str, "required": True},
    "mal_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    # RFC 7636 verifiers are 43-128 chars: 32-96 random bytes once encoded.
    "mal_pkce_challenge_size": {"type": int, "required": False, "min": 32, "max": 96},
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; don't let True pass as a number.
        expected_type = rules.get("type")
        wrong_bool = isinstance(value, bool) and expected_type is not bool
        if expected_type and (wrong_bool or not isinstance(value, expected_type)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # Range check for numeric values
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def get_config_value(key: str, default: Any = None, path: str = CONFIG_PATH) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config(path)
    except (FileNotFoundError, json.JSONDecodeError):
        return default
    return config.get(key, default)
