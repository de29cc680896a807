"""
Deduplicating writer - decides which positions are worth keeping.

Polls can run every few seconds, but a stationary or slow aircraft does
not need a row per poll. A position is stored only when it is the
aircraft's first sighting, or it moved at least min_distance_km, or at
least min_minutes passed since the aircraft's newest stored row.

The lookup/decide/insert sequence is not serialized across processes:
two writers polling the same aircraft at the same moment may both store
a row. That costs one extra close-together row and breaks nothing.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Union

from flightglobe.config import config
from flightglobe.geo import haversine_distance
from flightglobe.ingestion.normalizer import CanonicalPosition
from flightglobe.ledger import LedgerUnavailable, LedgerWriteError, PositionLedger
from flightglobe.models import FlightPosition, Region, Source

logger = logging.getLogger(__name__)


@dataclass
class WriteSummary:
    """Outcome of one write call."""
    saved: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {'saved': self.saved, 'skipped': self.skipped}


def should_store(
    position: CanonicalPosition,
    last: Optional[FlightPosition],
    now: datetime,
    min_distance_km: float,
    min_interval: timedelta,
) -> bool:
    """Apply the dedup thresholds against the aircraft's newest stored row."""
    if last is None:
        return True

    distance_km = haversine_distance(last.lat, last.lng, position.latitude, position.longitude)
    if distance_km >= min_distance_km:
        return True

    return now - last.recorded_at >= min_interval


def _to_record(
    position: CanonicalPosition,
    region: str,
    source: str,
    recorded_at: datetime,
) -> dict:
    return {
        'id': str(uuid.uuid4()),
        'icao24': position.icao24,
        'callsign': position.callsign or None,
        'lat': position.latitude,
        'lng': position.longitude,
        'altitude': position.altitude,
        'velocity': position.velocity,
        'heading': position.heading,
        'vertical_rate': position.vertical_rate,
        'origin_country': position.origin_country or None,
        'on_ground': position.on_ground,
        'region': region,
        'source': source,
        'recorded_at': recorded_at,
    }


class DeduplicatingWriter:
    """
    Persists canonical positions with smart deduplication.

    Positions are judged one at a time in input order, each against the
    ledger only (never against siblings in the same call), then every
    accepted position goes in as a single batch.
    """

    def __init__(
        self,
        ledger: Optional[PositionLedger],
        min_distance_km: Optional[float] = None,
        min_minutes: Optional[float] = None,
    ):
        self.ledger = ledger
        self.min_distance_km = (
            config.dedup.min_distance_km if min_distance_km is None else min_distance_km
        )
        self.min_interval = timedelta(
            minutes=config.dedup.min_minutes if min_minutes is None else min_minutes
        )

        # Interactive submissions run here, one at a time
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='position-writer')
        # At most one queued or running submission per region
        self._pending: Dict[str, Future] = {}
        self._pending_lock = threading.Lock()

    def _latest(self, icao24: str) -> Optional[FlightPosition]:
        try:
            return self.ledger.latest_position(icao24)
        except LedgerUnavailable as e:
            # Same as an unseen aircraft; the batch insert reports real outages
            logger.warning(f'Last position lookup failed for {icao24}: {e}')
            return None

    def write(
        self,
        positions: Sequence[CanonicalPosition],
        region: Union[Region, str],
        source: Union[Source, str] = Source.CLIENT,
    ) -> WriteSummary:
        """
        Decide and persist positions for one region.

        Never raises for ledger problems: a missing ledger or a rejected
        batch both come back as saved=0, skipped=len(positions).
        """
        region = Region(region).value
        source = Source(source).value

        if self.ledger is None:
            return WriteSummary(saved=0, skipped=len(positions))

        to_insert: List[dict] = []
        skipped = 0

        for position in positions:
            last = self._latest(position.icao24)
            now = datetime.now(timezone.utc)

            if should_store(position, last, now, self.min_distance_km, self.min_interval):
                to_insert.append(_to_record(position, region, source, now))
            else:
                skipped += 1

        if to_insert:
            try:
                self.ledger.insert_positions(to_insert)
            except LedgerWriteError as e:
                logger.error(f'Error saving flight positions for {region}: {e}')
                return WriteSummary(saved=0, skipped=len(positions))

        logger.debug(f'{region}/{source}: saved {len(to_insert)}, skipped {skipped}')
        return WriteSummary(saved=len(to_insert), skipped=skipped)

    def submit(
        self,
        positions: Sequence[CanonicalPosition],
        region: Union[Region, str],
        source: Union[Source, str] = Source.CLIENT,
    ) -> 'Future[WriteSummary]':
        """
        Dispatch a write without waiting for it.

        The returned future carries the WriteSummary (or the exception);
        callers that do not care may drop it. While an earlier submission
        for the same region is still queued or running, the new batch is
        dropped and an already-completed future reports it as skipped.
        """
        region = Region(region).value
        positions = list(positions)

        with self._pending_lock:
            pending = self._pending.get(region)
            if pending is not None and not pending.done():
                logger.debug(f'Write for {region} already pending, dropping {len(positions)} positions')
                dropped: Future = Future()
                dropped.set_result(WriteSummary(saved=0, skipped=len(positions)))
                return dropped

            future = self._executor.submit(self.write, positions, region, source)
            self._pending[region] = future

        future.add_done_callback(_log_failed_write)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _log_failed_write(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f'Background position write failed: {error}')
