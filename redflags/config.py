"""
Configuration management for Red Flags.

Loads configuration from config.yaml, .env file, and environment variables.
Priority: Environment variables > .env file > config.yaml
"""

import os
from pathlib import Path
from typing import Any

import yaml

# Load .env file if it exists (before reading os.environ)
def _load_dotenv():
    """Load .env file from project root."""
    current = Path.cwd()
    for path in [current] + list(current.parents):
        env_path = path / ".env"
        if env_path.exists():
            with open(env_path) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, _, value = line.partition("=")
                        key = key.strip()
                        value = value.strip().strip('"').strip("'")
                        # Only set if not already in environment
                        if key not in os.environ:
                            os.environ[key] = value
            break

_load_dotenv()


# Only the official endpoint is allowed; not configurable.
COURTLISTENER_BASE_URL = "https://www.courtlistener.com/api/rest/v4"

INTEGER_KEYS = {"max_age_days", "rate_limit_ms", "interval_hours"}
BOOLEAN_KEYS = {"debug"}


class Config:
    """Application configuration singleton."""

    _instance = None
    _config: dict = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _find_config_file(self) -> Path | None:
        """Find config.yaml in current directory or parent directories."""
        current = Path.cwd()
        for path in [current] + list(current.parents):
            config_path = path / "config.yaml"
            if config_path.exists():
                return config_path
        return None

    def _load_config(self) -> None:
        """Load configuration from file and environment."""
        config_path = self._find_config_file()

        if config_path:
            with open(config_path) as f:
                self._config = yaml.safe_load(f) or {}
        else:
            self._config = {}

        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """Override config values with environment variables."""
        env_mappings = {
            "REDFLAGS_DATA_DIR": ("data", "data_dir"),
            "DATA_MAX_AGE_DAYS": ("data", "max_age_days"),
            "COURTLISTENER_API_TOKEN": ("courtlistener", "api_token"),
            "COURTLISTENER_RATE_LIMIT_MS": ("courtlistener", "rate_limit_ms"),
            "REDFLAGS_REFRESH_INTERVAL_HOURS": ("sync", "interval_hours"),
            "REDFLAGS_DEBUG": ("logging", "debug"),
        }

        for env_var, path in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None and value != "":
                self._set_nested(path, value)

    def _set_nested(self, path: tuple, value: Any) -> None:
        """Set a nested config value."""
        current = self._config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Type conversion for known integer and boolean fields
        if path[-1] in INTEGER_KEYS:
            value = int(value)
        elif path[-1] in BOOLEAN_KEYS:
            value = str(value).strip().lower() in ("1", "true", "yes")

        current[path[-1]] = value

    def _get_nested(self, path: tuple, default: Any = None) -> Any:
        """Get a nested config value."""
        current = self._config
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    @property
    def data_dir(self) -> Path:
        """Get data directory path (cached datasets and manifest)."""
        dir_path = self._get_nested(("data", "data_dir"), "./data")
        path = Path(dir_path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def data_max_age_days(self) -> int:
        """Days before a cached dataset is considered stale."""
        return int(self._get_nested(("data", "max_age_days"), 7))

    @property
    def courtlistener_api_token(self) -> str | None:
        """Get CourtListener API token."""
        return self._get_nested(("courtlistener", "api_token"))

    @property
    def courtlistener_base_url(self) -> str:
        return COURTLISTENER_BASE_URL

    @property
    def courtlistener_rate_limit_ms(self) -> int:
        """Minimum delay between CourtListener requests."""
        return int(self._get_nested(("courtlistener", "rate_limit_ms"), 500))

    @property
    def refresh_interval_hours(self) -> int:
        """Get scheduled refresh interval in hours."""
        return int(self._get_nested(("sync", "interval_hours"), 24))

    @property
    def debug(self) -> bool:
        """Get debug output flag."""
        return bool(self._get_nested(("logging", "debug"), False))

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def get(self, *path: str, default: Any = None) -> Any:
        """Get a config value by path."""
        return self._get_nested(path, default)


# Global config instance
config = Config()
