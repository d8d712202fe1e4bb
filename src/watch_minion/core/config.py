"""
Configuration management for Watch Minion
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger


@dataclass
class CloudConfig:
    """Configuration for the shared cloud store."""

    url: str = ""  # Project base URL, e.g. https://xyz.supabase.co
    anon_key: str = ""
    table: str = "movie_entries"
    request_timeout_seconds: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)


@dataclass
class SyncConfig:
    """Configuration for the sync engine."""

    max_attempts: int = 1  # 1 = fail fast, user retries manually
    backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    connectivity_timeout_seconds: float = 2.0
    auto_sync_on_startup: bool = True  # Background reconcile when the shell starts

    def validate(self) -> None:
        """Validate sync configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise ValueError(
                f"backoff_seconds must be >= 0, got {self.backoff_seconds}"
            )
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )
        if self.connectivity_timeout_seconds <= 0:
            raise ValueError("connectivity_timeout_seconds must be positive")


@dataclass
class StoreConfig:
    """Configuration for the local durable store."""

    database_path: Optional[str] = (
        None  # Default: ~/.local/share/watch-minion/watch_minion.db
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/watch-minion/watch-minion.log)
    )
    console_output: bool = False  # Also output to stderr (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    cloud: CloudConfig = field(default_factory=CloudConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "watch-minion"
    return Path.home() / ".config" / "watch-minion"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Used during development so the project's config file is found even when
    the working directory differs.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/watch-minion (or ~/.config/watch-minion)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "watch-minion"
    return Path.home() / ".local" / "share" / "watch-minion"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Watch Minion Configuration

[cloud]
# Base URL of the hosted cloud project (leave empty for local-only mode)
url = ""

# Public (anon) API key of the cloud project
# anon_key = "your-anon-key-here"

# Table holding one row per tracked entry
table = "movie_entries"

# Timeout for a single cloud request, in seconds
request_timeout_seconds = 30

[sync]
# Attempts per cloud request (1 = fail fast, retry manually)
max_attempts = 1

# Delay before the second attempt; multiplied for each further attempt
backoff_seconds = 1.0
backoff_multiplier = 2.0

# Time limit for the connectivity check when a session is established
connectivity_timeout_seconds = 2.0

# Run a silent background sync when the interactive shell starts
auto_sync_on_startup = true

[store]
# Custom path for the local database
# database_path = "/path/to/watch_minion.db"

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/watch-minion/watch-minion.log)
# log_file = "/path/to/custom/watch-minion.log"

# Also output logs to stderr (useful for debugging)
console_output = false
""".strip()


def _parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML, section by section."""
    config = Config()

    if "cloud" in toml_data:
        cloud_data = toml_data["cloud"]
        config.cloud = CloudConfig(
            url=cloud_data.get("url", config.cloud.url).rstrip("/"),
            anon_key=cloud_data.get("anon_key", config.cloud.anon_key),
            table=cloud_data.get("table", config.cloud.table),
            request_timeout_seconds=float(
                cloud_data.get(
                    "request_timeout_seconds", config.cloud.request_timeout_seconds
                )
            ),
        )

    if "sync" in toml_data:
        sync_data = toml_data["sync"]
        config.sync = SyncConfig(
            max_attempts=int(sync_data.get("max_attempts", config.sync.max_attempts)),
            backoff_seconds=float(
                sync_data.get("backoff_seconds", config.sync.backoff_seconds)
            ),
            backoff_multiplier=float(
                sync_data.get("backoff_multiplier", config.sync.backoff_multiplier)
            ),
            connectivity_timeout_seconds=float(
                sync_data.get(
                    "connectivity_timeout_seconds",
                    config.sync.connectivity_timeout_seconds,
                )
            ),
            auto_sync_on_startup=bool(
                sync_data.get(
                    "auto_sync_on_startup", config.sync.auto_sync_on_startup
                )
            ),
        )
        try:
            config.sync.validate()
        except ValueError as e:
            logger.warning(f"Invalid sync configuration: {e}. Using defaults.")
            config.sync = SyncConfig()

    if "store" in toml_data:
        database_path = toml_data["store"].get("database_path")
        if database_path:
            database_path = str(Path(database_path).expanduser())
        config.store = StoreConfig(database_path=database_path)

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def _apply_env_overrides(config: Config) -> Config:
    """Override cloud credentials with environment variables if present."""
    cloud_url = os.environ.get("WATCH_MINION_CLOUD_URL")
    cloud_anon_key = os.environ.get("WATCH_MINION_CLOUD_ANON_KEY")

    if cloud_url:
        config.cloud.url = cloud_url.rstrip("/")
    if cloud_anon_key:
        config.cloud.anon_key = cloud_anon_key

    return config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - WATCH_MINION_CLOUD_URL
    - WATCH_MINION_CLOUD_ANON_KEY
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
        config = _parse_config(toml_data)
    except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        logger.error(f"Error loading configuration from {config_path}: {e}")
        logger.warning("Using default configuration.")
        config = Config()

    return _apply_env_overrides(config)


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
