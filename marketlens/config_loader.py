"""Configuration loader for MarketLens."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


DEFAULT_DESKTOP_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
]
DEFAULT_MOBILE_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 12; Pixel 6) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0 Mobile Safari/537.36"
)
DEFAULT_HEADERS = {
    "accept-language": "en-IN,en;q=0.9",
    "upgrade-insecure-requests": "1",
    "referer": "https://www.google.com/",
}
DEFAULT_BLOCK_TITLE_PATTERN = "recaptcha|captcha|verify you are human|just a moment"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default locations.

    Returns:
        Dictionary with configuration values.
    """
    load_dotenv()

    if config_path is None:
        locations = [
            "config.yaml",
            "config.yml",
            "../config.yaml",
            "../config.yml",
            "/app/config.yaml",
        ]
        for loc in locations:
            if Path(loc).exists():
                config_path = loc
                break

    if config_path is None or not Path(config_path).exists():
        raise FileNotFoundError("Configuration file not found. Please provide config.yaml")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return _substitute_env_vars(config)


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in config.

    Supports syntax: ${VAR_NAME} or ${VAR_NAME:default_value}
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return _substitute_env_string(obj)
    else:
        return obj


def _substitute_env_string(value: str) -> str:
    """Substitute environment variables in a string."""
    pattern = r'\$\{([^}]+)\}'

    def replace(match):
        var_expr = match.group(1)
        if ':' in var_expr:
            var_name, default = var_expr.split(':', 1)
            return os.getenv(var_name, default)
        else:
            return os.getenv(var_expr, match.group(0))

    return re.sub(pattern, replace, value)


def _section(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = (config or {}).get(key, {})
    return value if isinstance(value, dict) else {}


def as_bool(value: Any, default: bool = False) -> bool:
    """Coerce YAML/env flag values ("1", "true", "yes") into a bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def get_scraping_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get scraping configuration."""
    return _section(config, "scraping")


def get_browser_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get browser configuration."""
    return _section(config, "browser")


def get_api_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get API configuration."""
    return _section(config, "api")


def get_device_profile(config: Dict[str, Any], device: str) -> Dict[str, Any]:
    """Resolve timing/scroll settings for one device class with defaults filled in."""
    scraping = get_scraping_config(config)
    if device == "mobile":
        defaults = {
            "timeout_ms": 6500,
            "per_site_limit": 10,
            "min_wait_ms": 80,
            "max_wait_ms": 160,
            "scroll_steps": 2,
            "scroll_pause_ms": 120,
            "extract_scroll_steps": 1,
        }
    else:
        defaults = {
            "timeout_ms": 9000,
            "per_site_limit": int(scraping.get("per_site_limit", 12)),
            "min_wait_ms": 100,
            "max_wait_ms": 250,
            "scroll_steps": 2,
            "scroll_pause_ms": 150,
        }
    overrides = scraping.get(device, {})
    if not isinstance(overrides, dict):
        overrides = {}
    profile = {**defaults, **overrides}
    profile.setdefault("extract_scroll_steps", profile["scroll_steps"])
    return {key: int(value) for key, value in profile.items()}


def get_user_agents(config: Dict[str, Any]) -> List[str]:
    """Desktop user-agent rotation pool."""
    agents = get_browser_config(config).get("desktop_user_agents") or []
    return list(agents) or list(DEFAULT_DESKTOP_USER_AGENTS)


def ensure_directories(config: Dict[str, Any]):
    """Ensure all required directories exist."""
    log_path = (config or {}).get("logging", {}).get("file", "data/logs/marketlens.log")
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
