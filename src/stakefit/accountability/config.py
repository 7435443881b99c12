"""Configuration management for the accountability core.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Signed-in user for the CLI
    user_id: Optional[str]

    # Cache
    cache_ttl: int  # seconds

    # Background progress sync
    progress_interval: int  # seconds

    # Ledger intents older than this without settling are reported
    intent_stale_after: int  # seconds

    # Fitbit
    fitbit_access_token: Optional[str]

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "STAKEFIT_DB_PATH",
            str(Path.home() / ".stakefit" / "stakefit.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            user_id=os.environ.get("STAKEFIT_USER_ID"),
            cache_ttl=int(os.environ.get("STAKEFIT_CACHE_TTL", "300")),
            progress_interval=int(os.environ.get("STAKEFIT_PROGRESS_INTERVAL", "900")),
            intent_stale_after=int(os.environ.get("STAKEFIT_INTENT_STALE_AFTER", "600")),
            fitbit_access_token=os.environ.get("FITBIT_ACCESS_TOKEN"),
            log_level=os.environ.get("STAKEFIT_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.cache_ttl < 0:
            errors.append("STAKEFIT_CACHE_TTL must not be negative")
        if self.progress_interval <= 0:
            errors.append("STAKEFIT_PROGRESS_INTERVAL must be positive")
        if self.log_level not in LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")

        return errors

    def has_fitbit_config(self) -> bool:
        """Check if Fitbit configuration is present."""
        return bool(self.fitbit_access_token)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
