import threading
from datetime import timedelta

from flightglobe.history import DeduplicatingWriter, RetentionSweeper, SettingsStore
from flightglobe.ingestion import OpenSkyError, OpenSkyRateLimitError
from flightglobe.models import Region
from flightglobe.pipeline import IngestionPipeline

from conftest import FakeOpenSkyClient, state_vector, store_row


def _pipeline(ledger, client, **kwargs):
    settings = SettingsStore(ledger)
    writer = DeduplicatingWriter(ledger)
    kwargs.setdefault('region_delay_seconds', 0)
    kwargs.setdefault('deadline_seconds', 0)
    return IngestionPipeline(client, writer, RetentionSweeper(ledger, settings), settings, **kwargs)


def test_cycle_summary(ledger):
    store_row(ledger, icao24='old111', age=timedelta(days=20))
    client = FakeOpenSkyClient(
        states_by_region={
            Region.USA: [state_vector(icao24='AAA111'), state_vector(icao24='BBB222', lat=None)],
            Region.EUROPE: [state_vector(icao24='CCC333', lat=51.0, lon=0.0)],
        },
        errors={Region.EAST_ASIA: OpenSkyRateLimitError('OpenSky rate limit exceeded')},
    )

    summary = _pipeline(ledger, client).run_cycle()

    assert summary['success'] is True
    assert summary['regions'] == [
        {'region': 'usa', 'fetched': 1, 'saved': 1, 'skipped': 0},
        {'region': 'europe', 'fetched': 1, 'saved': 1, 'skipped': 0},
        {'region': 'eastAsia', 'fetched': 0, 'saved': 0, 'skipped': 0,
         'error': 'OpenSky rate limit exceeded'},
    ]
    assert summary['totals'] == {'fetched': 2, 'saved': 2, 'skipped': 0}
    assert summary['cleanup'] == {'deleted': 1}
    assert summary['rate_limit'] == {'remaining': 3999, 'authenticated': False}
    assert ledger.latest_position('ccc333').region == 'europe'


def test_second_cycle_skips_unmoved_aircraft(ledger):
    client = FakeOpenSkyClient(states_by_region={Region.USA: [state_vector(icao24='AAA111')]})
    pipeline = _pipeline(ledger, client, regions=[Region.USA])

    pipeline.run_cycle()
    summary = pipeline.run_cycle()

    assert summary['totals'] == {'fetched': 1, 'saved': 0, 'skipped': 1}


def test_region_failure_does_not_stop_others(ledger):
    client = FakeOpenSkyClient(
        states_by_region={Region.EUROPE: [state_vector(icao24='CCC333')]},
        errors={Region.USA: OpenSkyError('OpenSky API error: 503')},
    )

    summary = _pipeline(ledger, client, regions=[Region.USA, Region.EUROPE]).run_cycle()

    assert summary['regions'][0]['error'] == 'OpenSky API error: 503'
    assert summary['regions'][1]['saved'] == 1


def test_deadline_keeps_committed_work(ledger):
    client = FakeOpenSkyClient(
        states_by_region={
            Region.USA: [state_vector(icao24='AAA111')],
            Region.EUROPE: [state_vector(icao24='CCC333')],
        },
        delay=0.2,
    )

    summary = _pipeline(ledger, client).run_cycle(deadline_seconds=0.05)

    assert summary['regions'][0]['saved'] == 1
    assert summary['regions'][1]['error'] == 'deadline exceeded'
    assert summary['regions'][2]['error'] == 'deadline exceeded'
    assert client.calls == [Region.USA]
    assert ledger.latest_position('aaa111') is not None


def test_on_ground_filter(ledger):
    client = FakeOpenSkyClient(states_by_region={
        Region.USA: [state_vector(icao24='AAA111'), state_vector(icao24='GGG000', on_ground=True)],
    })

    summary = _pipeline(ledger, client, regions=[Region.USA], include_on_ground=False).run_cycle()

    assert summary['totals']['fetched'] == 1


def test_cycle_without_ledger(fake_client):
    fake_client.states_by_region = {Region.USA: [state_vector()]}

    summary = _pipeline(None, fake_client, regions=[Region.USA]).run_cycle()

    assert summary['regions'] == [{'region': 'usa', 'fetched': 1, 'saved': 0, 'skipped': 1}]
    assert summary['cleanup'] == {'deleted': 0}


def test_stats(ledger, fake_client):
    pipeline = _pipeline(ledger, fake_client, regions=[Region.USA])
    pipeline.run_cycle()

    assert pipeline.stats['cycle_count'] == 1
    assert pipeline.stats['running'] is False


def test_concurrent_cycles_keep_counts(ledger):
    client = FakeOpenSkyClient(errors={Region.USA: OpenSkyError('OpenSky API error: 503')})
    pipeline = _pipeline(ledger, client, regions=[Region.USA])

    threads = [threading.Thread(target=pipeline.run_cycle) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert pipeline.stats['cycle_count'] == 8
    assert pipeline.stats['error_count'] == 8
