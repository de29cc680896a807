"""
Configuration management for FlightGlobe.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.

Runtime-tunable values (refresh interval, retention, client tracking) live
in the ledger's app_settings table instead; the values here are only their
fallbacks.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: bool) -> bool:
    """Parse an environment flag, falling back to default when unset."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class OpenSkyConfig:
    """OpenSky API configuration."""
    client_id: Optional[str] = os.getenv('OPENSKY_CLIENT_ID') or None
    client_secret: Optional[str] = os.getenv('OPENSKY_CLIENT_SECRET') or None
    base_url: str = os.getenv('OPENSKY_BASE_URL', 'https://opensky-network.org/api')
    token_url: str = os.getenv(
        'OPENSKY_TOKEN_URL',
        'https://auth.opensky-network.org/auth/realms/opensky-network'
        '/protocol/openid-connect/token',
    )
    timeout: float = float(os.getenv('OPENSKY_TIMEOUT', '30'))

    @property
    def is_authenticated(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class DatabaseConfig:
    """Position ledger configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///flightglobe.db')

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class IngestionConfig:
    """Background polling settings."""
    enabled: bool = _get_bool('INGESTION_ENABLED', True)

    # Pause between region fetches to stay friendly with the OpenSky API
    region_delay_seconds: float = float(os.getenv('REGION_DELAY_SECONDS', '1'))

    # Overall budget for one poll cycle (0 = no deadline)
    cycle_deadline_seconds: float = float(os.getenv('CYCLE_DEADLINE_SECONDS', '60'))

    include_on_ground: bool = _get_bool('INCLUDE_ON_GROUND', True)


@dataclass(frozen=True)
class DedupConfig:
    """Thresholds deciding whether a new position is worth storing."""
    min_distance_km: float = float(os.getenv('DEDUP_MIN_DISTANCE_KM', '1'))
    min_minutes: float = float(os.getenv('DEDUP_MIN_MINUTES', '5'))


@dataclass(frozen=True)
class SettingsConfig:
    """Defaults for the runtime settings stored in the ledger."""
    refresh_interval: int = 30
    retention_days: int = 14
    client_tracking: bool = True

    # How long a settings read is reused before hitting the ledger again
    cache_seconds: int = int(os.getenv('SETTINGS_CACHE_SECONDS', '60'))


@dataclass(frozen=True)
class TrajectoryConfig:
    """Trajectory query windows."""
    default_hours: float = 6
    default_single_hours: float = 24
    max_hours: float = 168
    stale_seconds: int = 600


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    opensky: OpenSkyConfig = field(default_factory=OpenSkyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    settings: SettingsConfig = field(default_factory=SettingsConfig)
    trajectory: TrajectoryConfig = field(default_factory=TrajectoryConfig)

    # Shared secret for the cron endpoint (None = open)
    cron_secret: Optional[str] = None

    # Flask settings
    secret_key: str = 'dev-key-change-in-prod'
    debug: bool = False


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        opensky=OpenSkyConfig(),
        database=DatabaseConfig(),
        ingestion=IngestionConfig(),
        dedup=DedupConfig(),
        settings=SettingsConfig(),
        trajectory=TrajectoryConfig(),
        cron_secret=os.getenv('CRON_SECRET') or None,
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
