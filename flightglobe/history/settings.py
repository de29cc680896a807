"""
Runtime settings backed by the ledger's app_settings table.

Stored values are strings; anything missing or malformed falls back to
the configured defaults instead of failing.
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from flightglobe.config import config, SettingsConfig
from flightglobe.ledger import LedgerUnavailable, PositionLedger

logger = logging.getLogger(__name__)

SETTING_KEYS = ('refresh_interval', 'retention_days', 'client_tracking')


@dataclass(frozen=True)
class Settings:
    """
    Deployment-wide runtime settings.

    refresh_interval: seconds between background polls (0 disables polling)
    retention_days: history horizon, always >= 1
    client_tracking: whether interactive clients may write positions
    """
    refresh_interval: int
    retention_days: int
    client_tracking: bool

    @classmethod
    def defaults(cls, defaults: SettingsConfig = None) -> 'Settings':
        defaults = defaults or config.settings
        return cls(
            refresh_interval=defaults.refresh_interval,
            retention_days=defaults.retention_days,
            client_tracking=defaults.client_tracking,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_int(value: Optional[str], minimum: int) -> Optional[int]:
    if value is None:
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return None
    return parsed if parsed >= minimum else None


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if normalized == 'true':
        return True
    if normalized == 'false':
        return False
    return None


def parse_settings(raw: Dict[str, str], defaults: SettingsConfig = None) -> Settings:
    """Build Settings from raw key/value rows, defaulting anything invalid."""
    base = Settings.defaults(defaults)

    refresh_interval = _parse_int(raw.get('refresh_interval'), minimum=0)
    retention_days = _parse_int(raw.get('retention_days'), minimum=1)
    client_tracking = _parse_bool(raw.get('client_tracking'))

    return Settings(
        refresh_interval=base.refresh_interval if refresh_interval is None else refresh_interval,
        retention_days=base.retention_days if retention_days is None else retention_days,
        client_tracking=base.client_tracking if client_tracking is None else client_tracking,
    )


def validate_setting(key: str, value) -> str:
    """
    Check a setting update and return its stored string form.

    Raises ValueError for unknown keys or values that would not parse back.
    """
    if key not in SETTING_KEYS:
        raise ValueError(f'Unknown setting: {key}')

    if key == 'client_tracking':
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if _parse_bool(value) is None:
            raise ValueError('client_tracking must be true or false')
        return str(value).strip().lower()

    if isinstance(value, bool):
        raise ValueError(f'{key} must be an integer')
    minimum = 1 if key == 'retention_days' else 0
    parsed = _parse_int(value, minimum=minimum)
    if parsed is None:
        raise ValueError(f'{key} must be an integer >= {minimum}')
    return str(parsed)


class SettingsStore:
    """
    Read-mostly settings cache in front of the ledger.

    Reads are served from memory for cache_seconds; updates go straight
    to the ledger and drop the cached copy.
    """

    def __init__(
        self,
        ledger: Optional[PositionLedger],
        defaults: SettingsConfig = None,
        cache_seconds: Optional[int] = None,
    ):
        self.ledger = ledger
        self.defaults = defaults or config.settings
        self.cache_seconds = self.defaults.cache_seconds if cache_seconds is None else cache_seconds

        self._cached: Optional[Settings] = None
        self._cached_at: float = 0
        self._lock = threading.Lock()

    def get(self, force: bool = False) -> Settings:
        """Current settings; never raises."""
        with self._lock:
            age = time.time() - self._cached_at
            if not force and self._cached is not None and age < self.cache_seconds:
                return self._cached

        settings = self._load()

        with self._lock:
            self._cached = settings
            self._cached_at = time.time()
        return settings

    def _load(self) -> Settings:
        if self.ledger is None:
            return Settings.defaults(self.defaults)
        try:
            raw = self.ledger.get_settings()
        except LedgerUnavailable as e:
            logger.warning(f'Could not read settings, using defaults: {e}')
            return Settings.defaults(self.defaults)
        return parse_settings(raw, self.defaults)

    def update(self, key: str, value) -> bool:
        """
        Validate and persist one setting.

        Raises ValueError for invalid input; returns False if the ledger
        is missing or rejects the write.
        """
        stored = validate_setting(key, value)
        if self.ledger is None:
            return False

        ok = self.ledger.upsert_setting(key, stored)
        if ok:
            self.invalidate()
            logger.info(f'Setting {key} updated to {stored}')
        return ok

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._cached_at = 0
