import threading
from datetime import timedelta

import pytest

from flightglobe.history import DeduplicatingWriter
from flightglobe.ledger import LedgerUnavailable, LedgerWriteError
from flightglobe.models import Region, Source

from conftest import make_position, store_row


def test_first_sighting_is_stored(ledger):
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position()], Region.USA, Source.CRON)

    assert summary.to_dict() == {'saved': 1, 'skipped': 0}
    row = ledger.latest_position('abc123')
    assert row.region == 'usa'
    assert row.source == 'cron'
    assert row.lat == 40.0


def test_close_and_recent_position_is_skipped(ledger):
    store_row(ledger, lat=40.0, lng=-74.0, age=timedelta(minutes=1))
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position(lat=40.0005, lng=-74.0)], Region.USA)

    assert summary.saved == 0
    assert summary.skipped == 1
    assert len(ledger.query_by_aircraft('abc123')) == 1


def test_distant_position_is_stored(ledger):
    store_row(ledger, lat=40.0, lng=-74.0, age=timedelta(minutes=1))
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position(lat=40.02, lng=-74.0)], Region.USA)

    assert summary.saved == 1
    assert len(ledger.query_by_aircraft('abc123')) == 2


def test_close_but_old_position_is_stored(ledger):
    store_row(ledger, lat=40.0, lng=-74.0, age=timedelta(minutes=6))
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position(lat=40.0005, lng=-74.0)], Region.USA)

    assert summary.saved == 1


def test_previous_row_from_other_region_and_source_counts(ledger):
    store_row(ledger, region=Region.EUROPE, source=Source.CLIENT, age=timedelta(minutes=1))
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position()], Region.USA, Source.CRON)

    assert summary.skipped == 1


def test_siblings_in_same_call_are_not_compared(ledger):
    writer = DeduplicatingWriter(ledger)

    # Both are first sightings as far as the ledger knows
    summary = writer.write(
        [make_position(lat=40.0), make_position(lat=40.0001)],
        Region.USA,
    )

    assert summary.saved == 2


def test_mixed_batch_counts(ledger):
    store_row(ledger, icao24='aaa111', age=timedelta(minutes=1))
    writer = DeduplicatingWriter(ledger)

    summary = writer.write(
        [make_position('aaa111'), make_position('bbb222')],
        'usa',
        'client',
    )

    assert summary.to_dict() == {'saved': 1, 'skipped': 1}
    assert ledger.latest_position('bbb222').source == 'client'


def test_missing_ledger_skips_everything():
    writer = DeduplicatingWriter(None)

    summary = writer.write([make_position('aaa111'), make_position('bbb222')], Region.USA)

    assert summary.to_dict() == {'saved': 0, 'skipped': 2}


def test_batch_failure_counts_all_skipped(ledger, monkeypatch):
    store_row(ledger, icao24='aaa111', age=timedelta(minutes=1))

    def reject(records):
        raise LedgerWriteError('insert rejected')

    monkeypatch.setattr(ledger, 'insert_positions', reject)
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position('aaa111'), make_position('bbb222')], Region.USA)

    assert summary.to_dict() == {'saved': 0, 'skipped': 2}


def test_lookup_failure_treated_as_first_sighting(ledger, monkeypatch):
    def unavailable(icao24):
        raise LedgerUnavailable('timeout')

    monkeypatch.setattr(ledger, 'latest_position', unavailable)
    writer = DeduplicatingWriter(ledger)

    summary = writer.write([make_position()], Region.USA)

    assert summary.saved == 1


def test_custom_thresholds(ledger):
    store_row(ledger, age=timedelta(minutes=1))
    writer = DeduplicatingWriter(ledger, min_distance_km=10, min_minutes=0.5)

    assert writer.write([make_position(lat=40.02)], Region.USA).saved == 1


def test_unknown_region_rejected(ledger):
    writer = DeduplicatingWriter(ledger)
    with pytest.raises(ValueError):
        writer.write([make_position()], 'mars')


def test_submit_returns_future_with_summary(ledger):
    writer = DeduplicatingWriter(ledger)
    try:
        future = writer.submit([make_position()], Region.USA, Source.CLIENT)
        assert future.result(timeout=5).saved == 1
    finally:
        writer.shutdown()

    assert ledger.latest_position('abc123').source == 'client'


def test_submit_drops_batches_while_region_write_pending(ledger, monkeypatch):
    release = threading.Event()
    latest_position = ledger.latest_position

    def slow_lookup(icao24):
        release.wait(5)
        return latest_position(icao24)

    monkeypatch.setattr(ledger, 'latest_position', slow_lookup)
    writer = DeduplicatingWriter(ledger)
    try:
        first = writer.submit([make_position('aaa111')], Region.USA)
        dropped = [writer.submit([make_position('bbb222')], Region.USA) for _ in range(50)]
        other_region = writer.submit([make_position('ccc333')], Region.EUROPE)

        assert all(future.done() for future in dropped)
        assert dropped[0].result().to_dict() == {'saved': 0, 'skipped': 1}
        assert not other_region.done()

        release.set()
        assert first.result(timeout=5).saved == 1
        assert other_region.result(timeout=5).saved == 1

        # Accepted again once the earlier write has finished
        again = writer.submit([make_position('bbb222')], Region.USA)
        assert again.result(timeout=5).saved == 1
    finally:
        release.set()
        writer.shutdown()

    assert ledger.latest_position('bbb222') is not None
