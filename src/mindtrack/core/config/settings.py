"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MindTrack server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: there is no auth layer in front of a single-user
    # wellbeing journal. Opt into `0.0.0.0` explicitly for remote access.
    mindtrack_host: str = "127.0.0.1"
    mindtrack_port: int = 8001
    mindtrack_log_level: str = "info"
    mindtrack_allow_insecure_bind: bool = False

    # Storage (local record store)
    db_path: str = "~/.mindtrack/wellbeing.db"

    # Encryption (notes and raw responses at rest)
    encryption_key: str = ""

    # Mood scale: fixed per deployment. 1-5 ("Very Bad" .. "Very Good") ships;
    # a 7-point scale is selected by setting the max to 7.
    mood_scale_min: int = 1
    mood_scale_max: int = 5

    # Assessment catalog override (empty = packaged YAML definitions)
    catalog_dir: str = ""

    # Reminders
    local_timezone: str = ""
    reminder_sweep_enabled: bool = True
    reminder_sweep_interval_seconds: int = 60


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
