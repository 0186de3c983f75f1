"""Configuration loading for curatarr."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Self


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""


def _config_dir() -> Path:
    return Path.home() / ".config" / "curatarr"


def _default_data_path() -> Path:
    """Get the default directory for the JSON stores."""
    return _config_dir() / "data"


def _default_state_path() -> Path:
    """Get the default state file path."""
    return _config_dir() / "state.json"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass
class TMDBConfig:
    """TMDB credentials and list fetch options."""

    api_key: str
    english_only: bool = True
    pages: int = 3


@dataclass
class DataConfig:
    """Location of the JSON stores."""

    path: Path = field(default_factory=_default_data_path)

    @property
    def library_file(self) -> Path:
        return self.path / "library.json"

    @property
    def lists_file(self) -> Path:
        return self.path / "import_lists.json"

    @property
    def exclusions_file(self) -> Path:
        return self.path / "exclusions.json"

    @property
    def filters_file(self) -> Path:
        return self.path / "filters.json"

    @property
    def activity_file(self) -> Path:
        return self.path / "activity.json"


@dataclass
class StateConfig:
    """Configuration for state persistence."""

    path: Path = field(default_factory=_default_state_path)


@dataclass
class ServerConfig:
    """Configuration for the HTTP API server."""

    host: str = "0.0.0.0"
    port: int = 8080
    api_key: str | None = None


@dataclass
class SchedulerConfig:
    """Configuration for the background scheduler."""

    enabled: bool = True
    history_limit: int = 100
    notification_interval: int = 5
    activity_retention_days: int = 30


@dataclass
class NotificationConfig:
    """Configuration for the notification feed."""

    capacity: int = 50
    fetch_limit: int = 30


@dataclass
class ActivityConfig:
    """Remote activity log; the local activity store is polled when unset."""

    url: str
    api_key: str


@dataclass
class SearchConfig:
    """Where search triggers for newly added items are sent."""

    webhook_url: str | None = None


@dataclass
class LoggingConfig:
    """Logging level and output format."""

    level: str = "info"
    format: str = "text"


DEFAULT_TIMEOUT = 30.0


# --- Helper functions for parsing config sections ---


def _parse_tmdb_from_dict(data: dict[str, Any]) -> TMDBConfig | None:
    """Parse TMDBConfig from a config dictionary.

    Returns:
        TMDBConfig if an API key is present, None otherwise
    """
    section = data.get("tmdb")
    if not section or not section.get("api_key"):
        return None
    return TMDBConfig(
        api_key=section["api_key"],
        english_only=section.get("english_only", True),
        pages=int(section.get("pages", 3)),
    )


def _parse_tmdb_from_env(base: TMDBConfig | None) -> TMDBConfig | None:
    api_key = os.environ.get("CURATARR_TMDB_API_KEY")
    if not api_key:
        return base
    if base is None:
        return TMDBConfig(api_key=api_key)
    return TMDBConfig(api_key=api_key, english_only=base.english_only, pages=base.pages)


def _parse_data_from_dict(data: dict[str, Any]) -> DataConfig:
    if "data" not in data or "path" not in data["data"]:
        return DataConfig()
    return DataConfig(path=Path(data["data"]["path"]).expanduser())


def _parse_data_from_env(base: DataConfig) -> DataConfig:
    data_path = os.environ.get("CURATARR_DATA_PATH")
    if not data_path:
        return base
    return DataConfig(path=Path(data_path).expanduser())


def _parse_state_from_dict(data: dict[str, Any]) -> StateConfig:
    if "state" not in data or "path" not in data["state"]:
        return StateConfig()
    return StateConfig(path=Path(data["state"]["path"]).expanduser())


def _parse_state_from_env(base: StateConfig) -> StateConfig:
    state_path = os.environ.get("CURATARR_STATE_PATH")
    if not state_path:
        return base
    return StateConfig(path=Path(state_path).expanduser())


def _parse_server_from_dict(data: dict[str, Any]) -> ServerConfig:
    """Parse ServerConfig from a config dictionary.

    Args:
        data: The full config dictionary

    Returns:
        ServerConfig instance
    """
    if "server" not in data:
        return ServerConfig()
    server_data = data["server"]
    defaults = ServerConfig()
    return ServerConfig(
        host=server_data.get("host", defaults.host),
        port=int(server_data.get("port", defaults.port)),
        api_key=server_data.get("api_key", defaults.api_key),
    )


def _parse_server_from_env(base: ServerConfig) -> ServerConfig:
    """Parse ServerConfig from environment variables.

    Args:
        base: Base ServerConfig to use for defaults

    Returns:
        ServerConfig instance with environment overrides
    """
    host = os.environ.get("CURATARR_SERVER_HOST")
    port_str = os.environ.get("CURATARR_SERVER_PORT")
    api_key = os.environ.get("CURATARR_API_KEY")

    if not any([host, port_str, api_key]):
        return base

    try:
        port = int(port_str) if port_str else base.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid CURATARR_SERVER_PORT: {port_str}") from e

    return ServerConfig(host=host or base.host, port=port, api_key=api_key or base.api_key)


def _parse_scheduler_from_dict(data: dict[str, Any]) -> SchedulerConfig:
    if "scheduler" not in data:
        return SchedulerConfig()
    scheduler_data = data["scheduler"]
    defaults = SchedulerConfig()
    return SchedulerConfig(
        enabled=scheduler_data.get("enabled", defaults.enabled),
        history_limit=int(scheduler_data.get("history_limit", defaults.history_limit)),
        notification_interval=int(
            scheduler_data.get("notification_interval", defaults.notification_interval)
        ),
        activity_retention_days=int(
            scheduler_data.get("activity_retention_days", defaults.activity_retention_days)
        ),
    )


def _parse_scheduler_from_env(base: SchedulerConfig) -> SchedulerConfig:
    scheduler_enabled = os.environ.get("CURATARR_SCHEDULER_ENABLED")
    if scheduler_enabled is None:
        return base

    return SchedulerConfig(
        enabled=_env_bool(scheduler_enabled),
        history_limit=base.history_limit,
        notification_interval=base.notification_interval,
        activity_retention_days=base.activity_retention_days,
    )


def _parse_notifications_from_dict(data: dict[str, Any]) -> NotificationConfig:
    if "notifications" not in data:
        return NotificationConfig()
    section = data["notifications"]
    defaults = NotificationConfig()
    return NotificationConfig(
        capacity=int(section.get("capacity", defaults.capacity)),
        fetch_limit=int(section.get("fetch_limit", defaults.fetch_limit)),
    )


def _parse_activity_from_dict(data: dict[str, Any]) -> ActivityConfig | None:
    section = data.get("activity")
    if not section:
        return None
    url = section.get("url")
    api_key = section.get("api_key")
    if url and api_key:
        return ActivityConfig(url=url, api_key=api_key)
    return None


def _parse_activity_from_env(base: ActivityConfig | None) -> ActivityConfig | None:
    url = os.environ.get("CURATARR_ACTIVITY_URL")
    api_key = os.environ.get("CURATARR_ACTIVITY_API_KEY")
    if url and api_key:
        return ActivityConfig(url=url, api_key=api_key)
    return base


def _parse_search_from_dict(data: dict[str, Any]) -> SearchConfig:
    if "search" not in data:
        return SearchConfig()
    return SearchConfig(webhook_url=data["search"].get("webhook_url"))


def _parse_search_from_env(base: SearchConfig) -> SearchConfig:
    webhook_url = os.environ.get("CURATARR_SEARCH_WEBHOOK_URL")
    if not webhook_url:
        return base
    return SearchConfig(webhook_url=webhook_url)


def _parse_logging_from_dict(data: dict[str, Any]) -> LoggingConfig:
    if "logging" not in data:
        return LoggingConfig()
    section = data["logging"]
    defaults = LoggingConfig()
    return LoggingConfig(
        level=str(section.get("level", defaults.level)).lower(),
        format=str(section.get("format", defaults.format)).lower(),
    )


def _parse_logging_from_env(base: LoggingConfig) -> LoggingConfig:
    level = os.environ.get("CURATARR_LOG_LEVEL")
    fmt = os.environ.get("CURATARR_LOG_FORMAT")
    if not level and not fmt:
        return base
    return LoggingConfig(
        level=level.lower() if level else base.level,
        format=fmt.lower() if fmt else base.format,
    )


@dataclass
class Config:
    """Application configuration."""

    timeout: float = DEFAULT_TIMEOUT
    tmdb: TMDBConfig | None = None
    data: DataConfig = field(default_factory=DataConfig)
    state: StateConfig = field(default_factory=StateConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    activity: ActivityConfig | None = None
    search: SearchConfig = field(default_factory=SearchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls) -> Self:
        """Load configuration from environment and config file.

        Configuration precedence (highest to lowest):
        1. Environment variables
        2. Config file (~/.config/curatarr/config.toml)

        Environment variables:
        - CURATARR_TMDB_API_KEY
        - CURATARR_DATA_PATH, CURATARR_STATE_PATH
        - CURATARR_SERVER_HOST, CURATARR_SERVER_PORT, CURATARR_API_KEY
        - CURATARR_SCHEDULER_ENABLED
        - CURATARR_ACTIVITY_URL, CURATARR_ACTIVITY_API_KEY
        - CURATARR_SEARCH_WEBHOOK_URL
        - CURATARR_LOG_LEVEL, CURATARR_LOG_FORMAT
        - CURATARR_TIMEOUT (external call timeout in seconds)

        Returns:
            Config instance with loaded values

        Raises:
            ConfigurationError: If config file exists but is invalid
        """
        config = cls()

        config_file = _config_dir() / "config.toml"
        if config_file.exists():
            config = cls._load_from_file(config_file)

        return cls._load_from_env(config)

    @classmethod
    def _load_from_file(cls, path: Path) -> Self:
        """Load configuration from TOML file.

        Raises:
            ConfigurationError: If file cannot be parsed
        """
        data = _load_toml_file(path)

        try:
            timeout = float(data.get("timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid timeout in {path}: {data.get('timeout')}") from e

        return cls(
            timeout=timeout,
            tmdb=_parse_tmdb_from_dict(data),
            data=_parse_data_from_dict(data),
            state=_parse_state_from_dict(data),
            server=_parse_server_from_dict(data),
            scheduler=_parse_scheduler_from_dict(data),
            notifications=_parse_notifications_from_dict(data),
            activity=_parse_activity_from_dict(data),
            search=_parse_search_from_dict(data),
            logging=_parse_logging_from_dict(data),
        )

    @classmethod
    def _load_from_env(cls, base: Self) -> Self:
        """Override configuration with environment variables.

        Args:
            base: Base config to override

        Returns:
            Config instance with environment overrides
        """
        timeout_str = os.environ.get("CURATARR_TIMEOUT")
        try:
            timeout = float(timeout_str) if timeout_str else base.timeout
        except ValueError as e:
            raise ConfigurationError(f"Invalid CURATARR_TIMEOUT: {timeout_str}") from e

        return cls(
            timeout=timeout,
            tmdb=_parse_tmdb_from_env(base.tmdb),
            data=_parse_data_from_env(base.data),
            state=_parse_state_from_env(base.state),
            server=_parse_server_from_env(base.server),
            scheduler=_parse_scheduler_from_env(base.scheduler),
            notifications=base.notifications,
            activity=_parse_activity_from_env(base.activity),
            search=_parse_search_from_env(base.search),
            logging=_parse_logging_from_env(base.logging),
        )

    def require_tmdb(self) -> TMDBConfig:
        """Get TMDB config, raising if not configured.

        Raises:
            ConfigurationError: If TMDB is not configured
        """
        if self.tmdb is None:
            raise ConfigurationError(
                "TMDB is not configured. Set the CURATARR_TMDB_API_KEY environment "
                "variable, or add a [tmdb] section to ~/.config/curatarr/config.toml"
            )
        return self.tmdb


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load and parse a TOML file.

    Raises:
        ConfigurationError: If file cannot be parsed
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid config file: {e}") from e
