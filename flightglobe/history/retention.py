"""
Retention sweeper - removes position history past the retention horizon.

Cleanup is best-effort: it runs inside larger workflows (the scheduled
poll cycle) and must never abort them, so every failure becomes a
logged zero.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from flightglobe.history.settings import SettingsStore
from flightglobe.ledger import LedgerUnavailable, PositionLedger

logger = logging.getLogger(__name__)


def get_retention_cutoff(days: int, now: Optional[datetime] = None) -> datetime:
    """
    Calculate the retention cutoff.

    Records recorded strictly before this should be deleted.
    """
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=max(days, 1))


class RetentionSweeper:
    """Deletes ledger rows older than the configured retention_days."""

    def __init__(self, ledger: Optional[PositionLedger], settings: SettingsStore):
        self.ledger = ledger
        self.settings = settings

    def sweep(self) -> int:
        """Delete expired rows. Returns the number actually removed."""
        if self.ledger is None:
            return 0

        retention_days = self.settings.get().retention_days
        cutoff = get_retention_cutoff(retention_days)

        try:
            deleted = self.ledger.delete_older_than(cutoff)
        except LedgerUnavailable as e:
            logger.error(f'Error cleaning up old positions: {e}')
            return 0

        if deleted:
            logger.info(
                f'Cleanup: removed {deleted} positions older than '
                f'{retention_days} days'
            )
        return deleted
