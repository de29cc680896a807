"""
Ingestion pipeline - orchestrates data flow from OpenSky to the ledger.

One poll cycle:
1. Fetch: poll OpenSky once per region
2. Normalize: decode state vectors into canonical positions
3. Write: deduplicate and batch-insert per region
4. Cleanup: sweep history past the retention horizon

Failures stay local: a region that fails to fetch or write is reported
in the cycle summary and the next region still runs. Writes committed
before a deadline expires stay committed.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from flightglobe.config import config
from flightglobe.history import DeduplicatingWriter, RetentionSweeper, SettingsStore
from flightglobe.ingestion import CanonicalPosition, OpenSkyClient, OpenSkyError, normalize_states
from flightglobe.models import Region, Source

logger = logging.getLogger(__name__)

# Polled in this order every cycle
ALL_REGIONS = (Region.USA, Region.EUROPE, Region.EAST_ASIA)


def _region_result(region: Region, fetched=0, saved=0, skipped=0, error=None) -> dict:
    result = {
        'region': region.value,
        'fetched': fetched,
        'saved': saved,
        'skipped': skipped,
    }
    if error:
        result['error'] = error
    return result


class IngestionPipeline:
    """
    Manages the polling lifecycle.

    Coordinates fetching from OpenSky, deduplicated writes and retention
    cleanup. Can run as a background thread for continuous polling.
    """

    def __init__(
        self,
        client: OpenSkyClient,
        writer: DeduplicatingWriter,
        sweeper: RetentionSweeper,
        settings: SettingsStore,
        regions: Optional[Iterable[Region]] = None,
        region_delay_seconds: Optional[float] = None,
        deadline_seconds: Optional[float] = None,
        include_on_ground: Optional[bool] = None,
    ):
        self.client = client
        self.writer = writer
        self.sweeper = sweeper
        self.settings = settings
        self.regions = tuple(regions) if regions else ALL_REGIONS
        self.region_delay_seconds = (
            config.ingestion.region_delay_seconds
            if region_delay_seconds is None else region_delay_seconds
        )
        self.deadline_seconds = (
            config.ingestion.cycle_deadline_seconds
            if deadline_seconds is None else deadline_seconds
        )
        self.include_on_ground = (
            config.ingestion.include_on_ground
            if include_on_ground is None else include_on_ground
        )

        # State tracking
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_cycle_time: float = 0
        self._cycle_count: int = 0
        self._error_count: int = 0
        self._last_summary: Optional[dict] = None
        # Cron requests and the background thread can run cycles concurrently
        self._stats_lock = threading.Lock()

    def _record_error(self) -> None:
        with self._stats_lock:
            self._error_count += 1

    def fetch_region(self, region: Region) -> List[CanonicalPosition]:
        """
        Fetch and normalize current positions for one region.

        Raises OpenSkyError (including rate limits) to the caller.
        """
        _, states = self.client.get_region_states(region)
        return normalize_states(states, include_on_ground=self.include_on_ground)

    def run_cycle(
        self,
        source: Source = Source.CRON,
        deadline_seconds: Optional[float] = None,
    ) -> dict:
        """
        Execute one poll cycle over every region plus a cleanup sweep.

        Returns the operational summary (per-region counts, totals,
        cleanup count, rate-limit info).
        """
        start = time.monotonic()
        if deadline_seconds is None:
            deadline_seconds = self.deadline_seconds
        deadline = start + deadline_seconds if deadline_seconds else None

        results = []
        for index, region in enumerate(self.regions):
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f'Cycle deadline reached before {region.value}')
                results.append(_region_result(region, error='deadline exceeded'))
                continue

            try:
                positions = self.fetch_region(region)
                summary = self.writer.write(positions, region, source)
                results.append(_region_result(
                    region,
                    fetched=len(positions),
                    saved=summary.saved,
                    skipped=summary.skipped,
                ))
            except OpenSkyError as e:
                self._record_error()
                logger.error(f'Fetch failed for {region.value}: {e}')
                results.append(_region_result(region, error=str(e)))
            except Exception as e:
                self._record_error()
                logger.exception(f'Unexpected error processing {region.value}')
                results.append(_region_result(region, error=str(e) or type(e).__name__))

            # Small delay between region calls to be nice to OpenSky
            if self.region_delay_seconds and index < len(self.regions) - 1:
                self._stop_event.wait(self.region_delay_seconds)

        deleted = 0
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning('Cycle deadline reached, skipping cleanup')
        else:
            try:
                deleted = self.sweeper.sweep()
            except Exception:
                logger.exception('Error during cleanup')

        duration_ms = int((time.monotonic() - start) * 1000)
        with self._stats_lock:
            self._cycle_count += 1
            self._last_cycle_time = time.time()

        summary = {
            'success': True,
            'duration_ms': duration_ms,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'regions': results,
            'totals': {
                'fetched': sum(r['fetched'] for r in results),
                'saved': sum(r['saved'] for r in results),
                'skipped': sum(r['skipped'] for r in results),
            },
            'cleanup': {
                'deleted': deleted,
            },
            'rate_limit': {
                'remaining': self.client.rate_limit.remaining,
                'authenticated': self.client.rate_limit.authenticated,
            },
        }
        with self._stats_lock:
            self._last_summary = summary

        totals = summary['totals']
        logger.info(
            f'Cycle completed in {duration_ms}ms: fetched {totals["fetched"]}, '
            f'saved {totals["saved"]}, skipped {totals["skipped"]}, cleaned {deleted}'
        )
        return summary

    def run_continuous(self) -> None:
        """
        Run poll cycles until stopped.

        The interval is re-read from settings every cycle; 0 pauses
        polling until it changes. This method blocks - use
        start_background() for non-blocking.
        """
        logger.info('Starting continuous ingestion')

        while not self._stop_event.is_set():
            interval = self.settings.get().refresh_interval
            if interval <= 0:
                # Polling disabled; check again once the settings cache turns over
                self._stop_event.wait(max(self.settings.cache_seconds, 5))
                continue

            try:
                self.run_cycle(source=Source.CRON)
            except Exception:
                self._record_error()
                logger.exception('Ingestion cycle failed')

            self._stop_event.wait(interval)

        logger.info('Ingestion stopped')

    def start_background(self) -> None:
        """Start ingestion in background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Ingestion already running')
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_continuous,
            name='ingestion',
            daemon=True,
        )
        self._thread.start()
        logger.info('Background ingestion started')

    def stop(self) -> None:
        """Stop background ingestion."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    @property
    def stats(self) -> dict:
        """Get ingestion statistics."""
        with self._stats_lock:
            return {
                'cycle_count': self._cycle_count,
                'error_count': self._error_count,
                'last_cycle_time': self._last_cycle_time,
                'running': self.running,
            }
